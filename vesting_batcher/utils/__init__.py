"""Small validation helpers shared by the planner and the inspector."""
