"""Approval Desk: proposal numbering, approval tickets and decisions."""

__version__ = "1.0.0"
