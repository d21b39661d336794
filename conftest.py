"""Root conftest.py - keeps sample configs and build output out of collection."""

collect_ignore = [
    "examples",
    "build",
]
