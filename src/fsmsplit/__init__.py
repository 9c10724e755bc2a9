"""fsmsplit - split state machine controllers into self-contained pieces."""

__version__ = "0.1.0"
