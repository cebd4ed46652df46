"""
Error taxonomy for variant structs.

Recoverable errors derive from VariantStructError and also from the builtin
exception a Python caller would naturally catch (TypeError, KeyError, ...),
so ``except KeyError`` keeps working around ``node["missing"]``.

ContractViolation is NOT a VariantStructError. It signals a broken
integration (unbalanced visitor calls, a record registered under the wrong
type tag) and must not be caught and continued.
"""


class VariantStructError(Exception):
    """Base class for recoverable variant struct errors."""


class TypeMismatch(VariantStructError, TypeError):
    """An operation needed a specific node kind and got another."""


class KeyNotFound(VariantStructError, KeyError):
    """Direct object access to a key that is not present."""

    def __str__(self) -> str:
        # KeyError repr()s its argument, which mangles the message
        return str(self.args[0]) if self.args else ''


class IndexOutOfRange(VariantStructError, IndexError):
    """Direct array access outside ``0 <= index < len``."""


class SchemaMismatch(VariantStructError, ValueError):
    """A tree's shape does not match what the reader expected."""


class ContractViolation(AssertionError):
    """Fatal: the caller broke the protocol. Not meant to be handled."""
