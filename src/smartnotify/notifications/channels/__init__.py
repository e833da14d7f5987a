"""Concrete output adapters."""
