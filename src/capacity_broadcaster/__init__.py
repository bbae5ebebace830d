"""Capacity broadcaster - advertises spare cluster capacity to a peered cluster."""

__version__ = "0.1.0"
