"""Command-line entry points: bulk schedule creation and schedule checks."""
