"""Core graph model, traversal, cloning and splitting for fsmsplit."""
