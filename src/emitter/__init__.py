"""Utilities for printing ESTree programs back to JavaScript source."""

from .writer import EmitError, EmitOptions, EmitResult, emit_program

__all__ = ["EmitError", "EmitOptions", "EmitResult", "emit_program"]
