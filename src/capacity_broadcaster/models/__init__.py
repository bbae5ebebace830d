"""Shared models for the capacity broadcaster."""
