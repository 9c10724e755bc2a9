"""Command line interface for fsmsplit."""
