"""Example access layer.

This module holds the reusable example buffer and the example sources
that decode dataset examples into it.
"""
