"""Storage of assembled work items and plans."""
