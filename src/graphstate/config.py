"""
Pluggable configuration for graphstate.

The only setting is the tree type (scalar vocabulary) used when a Graph or a
serialization helper is not given one explicitly:

- set_value_type(): process-wide default
- value_type_context(): scoped override (contextvars, so per thread/task)

A Graph captures the resolved type when it is constructed.
"""

import contextvars
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from variant_struct import VariantStruct
from graphstate.value import GraphValue

logger = logging.getLogger(__name__)

_value_type: type = GraphValue

_scoped_value_type: contextvars.ContextVar[Optional[type]] = contextvars.ContextVar(
    'scoped_value_type', default=None
)


def check_value_type(value_type: type) -> type:
    """Validate that ``value_type`` is a parameterized VariantStruct class."""
    if not (isinstance(value_type, type) and issubclass(value_type, VariantStruct) and value_type.Types):
        raise TypeError(f"Expected a parameterized VariantStruct, got {value_type!r}")
    return value_type


def set_value_type(value_type: type) -> None:
    """Set the default tree type for graphs and serialization helpers."""
    global _value_type
    _value_type = check_value_type(value_type)
    logger.debug(f"Default value type set to {value_type.__name__}")


def reset_value_type() -> None:
    """Restore GraphValue as the default tree type."""
    global _value_type
    _value_type = GraphValue


def get_value_type() -> type:
    """Return the scoped tree type if one is active, else the default."""
    scoped = _scoped_value_type.get()
    return scoped if scoped is not None else _value_type


@contextmanager
def value_type_context(value_type: type) -> Generator[type, None, None]:
    """Use ``value_type`` as the tree type inside the block.

    Example:
        with value_type_context(VariantStruct[bool, str]):
            graph = Graph()    # builds VariantStruct[bool, str] snapshots
    """
    token = _scoped_value_type.set(check_value_type(value_type))
    try:
        yield value_type
    finally:
        _scoped_value_type.reset(token)
