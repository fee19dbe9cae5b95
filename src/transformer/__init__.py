"""Rewriting of conditional declarations into standard JavaScript syntax trees."""

from .core import (
    ConditionalDeclarationTransformer,
    ConstAssignmentError,
    DeclarationConditional,
    InvalidBindingError,
    ProgramResult,
    ProgramTransformer,
    TransformContext,
    TransformError,
    TransformOptions,
    TransformResult,
    UnsupportedContextError,
    extract_conditional,
    is_conditional_declaration,
    transform_conditional,
    transform_program,
)

__all__ = [
    "ConditionalDeclarationTransformer",
    "ConstAssignmentError",
    "DeclarationConditional",
    "InvalidBindingError",
    "ProgramResult",
    "ProgramTransformer",
    "TransformContext",
    "TransformError",
    "TransformOptions",
    "TransformResult",
    "UnsupportedContextError",
    "extract_conditional",
    "is_conditional_declaration",
    "transform_conditional",
    "transform_program",
]
