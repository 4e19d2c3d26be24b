"""Simulated backend and client state for the hospital administration console."""
from .console import Console, build_console

__all__ = ["Console", "build_console"]
