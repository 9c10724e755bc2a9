"""Visualization module for fsmsplit.

Provides ASCII state machine rendering.
"""

from fsmsplit.viz.ascii import render_ascii, state_machine_to_networkx

__all__ = ["render_ascii", "state_machine_to_networkx"]
