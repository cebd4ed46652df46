"""
Recursive variant value trees and a visitor to build and read them.

Modules:
    - variant_struct: VariantStruct tagged union, parameterized by scalar kinds
    - serializer: VariantStructSerializer visitor driven by a reflection layer
    - errors: error taxonomy
"""

from variant_struct.errors import (
    VariantStructError,
    TypeMismatch,
    KeyNotFound,
    IndexOutOfRange,
    SchemaMismatch,
    ContractViolation,
)
from variant_struct.variant_struct import Kind, VariantStruct
from variant_struct.serializer import VariantStructSerializer

__all__ = [
    # Tree
    'Kind',
    'VariantStruct',
    # Visitor
    'VariantStructSerializer',
    # Errors
    'VariantStructError',
    'TypeMismatch',
    'KeyNotFound',
    'IndexOutOfRange',
    'SchemaMismatch',
    'ContractViolation',
]
