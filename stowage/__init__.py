"""Stowage - storage unit booking and availability engine."""

__version__ = "1.0.0"
