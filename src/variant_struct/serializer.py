"""
Visitor that converts between structured records and a VariantStruct tree.

The visitor knows nothing about record types. A reflection layer walks a
record's fields and drives it:

Write direction (record -> tree):

    serializer = VariantStructSerializer(GraphValue)
    serializer.begin_object()
    serializer.begin_object_entry("name")
    serializer.write_scalar("David")
    serializer.end_object_entry("name")
    serializer.end_object()
    serializer.get_result()            # GraphValue({'name': 'David'})

Read direction (tree -> record):

    serializer = VariantStructSerializer(GraphValue, data)
    serializer.read_object(lambda key: fields.__setitem__(key, serializer.read_scalar()))

Unbalanced begin/end calls mean the reflection layer is broken; they raise
ContractViolation rather than a recoverable error. Shape mismatches while
reading are data problems and raise SchemaMismatch.
"""

from typing import Any, Callable, List, Optional

from variant_struct.errors import ContractViolation, SchemaMismatch
from variant_struct.variant_struct import Kind, VariantStruct


class VariantStructSerializer:
    """Stateful builder/reader for one tree type.

    Holds the "current" node and a stack of composites still being built.
    """

    def __init__(self, value_type: type, data: Optional[VariantStruct] = None):
        """
        Args:
            value_type: Parameterized VariantStruct class to build.
            data: Tree to read from (read direction). Never mutated.
        """
        if not (isinstance(value_type, type) and issubclass(value_type, VariantStruct) and value_type.Types):
            raise TypeError(f"value_type must be a parameterized VariantStruct, got {value_type!r}")
        self.value_type = value_type
        self._current: Optional[VariantStruct] = data
        self._composite_stack: List[VariantStruct] = []

    def is_variant_type(self, scalar_type: type) -> bool:
        """True if ``scalar_type`` is one of the tree's scalar kinds."""
        return scalar_type in self.value_type.Types

    def is_supported_value_type(self, value_type: type) -> bool:
        return self.is_variant_type(value_type) or value_type is self.value_type

    @property
    def depth(self) -> int:
        """Number of composites currently open."""
        return len(self._composite_stack)

    # ========== STACK HELPERS ==========

    def _top(self, kind: Kind, operation: str) -> VariantStruct:
        if not self._composite_stack:
            raise ContractViolation(f"{operation}() called with no open {kind.value}")
        top = self._composite_stack[-1]
        if top.kind is not kind:
            raise ContractViolation(f"{operation}() called while an {top.kind.value} is open")
        return top

    def _pop(self, kind: Kind, operation: str) -> VariantStruct:
        self._top(kind, operation)
        return self._composite_stack.pop()

    def _take(self, operation: str) -> VariantStruct:
        """Hand over the current value; the visitor keeps no reference to it."""
        if self._current is None:
            raise ContractViolation(f"{operation}() called before a value was written")
        value, self._current = self._current, None
        return value

    # ========== SERIALIZATION ==========

    def get_result(self) -> VariantStruct:
        """Return the finished tree and give up ownership of it."""
        if self._composite_stack:
            raise ContractViolation(
                f"get_result() called with {len(self._composite_stack)} composite(s) still open"
            )
        return self._take('get_result')

    def begin_object(self) -> None:
        self._composite_stack.append(self.value_type.empty_object())

    def begin_object_entry(self, name: str) -> None:
        pass

    def end_object_entry(self, name: str) -> None:
        top = self._top(Kind.OBJECT, 'end_object_entry')
        top._adopt_entry(name, self._take('end_object_entry'))

    def end_object(self) -> None:
        self._current = self._pop(Kind.OBJECT, 'end_object')

    def begin_array(self, size_hint: int = 0) -> None:
        self._composite_stack.append(self.value_type.empty_array())

    def begin_array_entry(self, index: int) -> None:
        pass

    def end_array_entry(self, index: int) -> None:
        top = self._top(Kind.ARRAY, 'end_array_entry')
        top._adopt_item(self._take('end_array_entry'))

    def end_array(self) -> None:
        self._current = self._pop(Kind.ARRAY, 'end_array')

    def write_scalar(self, value: Any, consume: bool = False) -> None:
        """Set the current value.

        Args:
            value: A raw scalar of one of the tree's kinds, None, or a tree node.
            consume: For tree nodes only. False (default) treats ``value`` as
                     read-only input and deep-copies it in. True means the
                     caller hands the node over; it is moved in without a copy
                     and must not be used by the caller afterwards.
        """
        if isinstance(value, VariantStruct):
            if consume and type(value) is self.value_type:
                self._current = value
            else:
                self._current = self.value_type(value)
        elif value is None:
            self._current = self.value_type.null()
        else:
            self._current = self.value_type.scalar(value)

    def write_null(self) -> None:
        self._current = self.value_type.null()

    # ========== DESERIALIZATION ==========

    def _reading(self, operation: str) -> VariantStruct:
        if self._current is None:
            raise ContractViolation(f"{operation}() called with no data to read")
        return self._current

    def read_object(self, field_handler: Callable[[str], None]) -> None:
        """Call ``field_handler(key)`` for each entry, with that entry as the current value."""
        current = self._reading('read_object')
        if not current.is_object:
            raise SchemaMismatch(f"Expected object, got {current.kind.value}")
        try:
            for key, value in current.items():
                self._current = value
                field_handler(key)
        finally:
            self._current = current

    def read_array(self, size_callback: Callable[[int], None], entry_callback: Callable[[], None]) -> None:
        """Report the length, then call ``entry_callback()`` once per element."""
        current = self._reading('read_array')
        if not current.is_array:
            raise SchemaMismatch(f"Expected array, got {current.kind.value}")
        try:
            size_callback(len(current))
            for entry in current:
                self._current = entry
                entry_callback()
        finally:
            self._current = current

    def read_scalar(self, expected_type: Optional[type] = None) -> Any:
        """Return the current scalar payload, optionally requiring an exact kind."""
        current = self._reading('read_scalar')
        if not current.is_scalar:
            raise SchemaMismatch(f"Expected scalar, got {current.kind.value}")
        if expected_type is not None and not current.is_type(expected_type):
            raise SchemaMismatch(
                f"Expected {expected_type.__name__}, got {current.scalar_type.__name__}"
            )
        return current.get()

    def read_value(self) -> VariantStruct:
        """Return a copy of the current node, for fields typed as the tree itself."""
        return self._reading('read_value').dup()

    def try_read_null(self) -> bool:
        return self._reading('try_read_null').is_null
