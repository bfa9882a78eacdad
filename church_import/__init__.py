"""Bulk CSV giving / membership import engine."""

__version__ = "0.1.0"
