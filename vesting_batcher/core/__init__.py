"""
Core utilities shared by the distribution pipeline and the inspector.

Currently the exception taxonomy used to decide what is retried, recorded,
skipped or fatal.
"""
