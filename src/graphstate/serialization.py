"""
Dataclass reflection layer for VariantStructSerializer.

Walks a dataclass's fields and drives the visitor: write direction from the
runtime values, read direction from the field type annotations.

Serializable fields are the dataclass fields in declaration order, minus
those declared with ignore():

    @dataclass
    class Person(GraphModel):
        graph_type = "Person"

        first_name: Optional[str] = None
        age: int = 0
        cache: dict = ignore(default_factory=dict)

Null is accepted for any field on read (Python has no non-nullable
references); every other value must match the annotated kind exactly.
"""

import dataclasses
import types
from collections.abc import Mapping
from dataclasses import MISSING, is_dataclass
from typing import Any, Dict, List, Optional, Set, Tuple, Union, get_args, get_origin, get_type_hints

from variant_struct import SchemaMismatch, TypeMismatch, VariantStruct, VariantStructSerializer
from graphstate.config import get_value_type

IGNORE_KEY = 'graph_ignore'

# PEP 604 unions (X | None), 3.10+
_UnionType = getattr(types, 'UnionType', None)


def ignore(**kwargs) -> Any:
    """dataclasses.field() that is never serialized, snapshotted or merged."""
    metadata = dict(kwargs.pop('metadata', None) or {})
    metadata[IGNORE_KEY] = True
    return dataclasses.field(metadata=metadata, **kwargs)


def serializable_fields(obj_or_type: Any) -> List[dataclasses.Field]:
    """Return the serializable dataclass fields of an instance or class."""
    cls = obj_or_type if isinstance(obj_or_type, type) else type(obj_or_type)
    if not is_dataclass(cls):
        raise TypeError(f"{cls.__name__} is not a dataclass")
    return [f for f in dataclasses.fields(cls) if not f.metadata.get(IGNORE_KEY)]


# ==================== WRITE DIRECTION ====================

_BEGIN_ENTRY, _END_ENTRY, _END_OBJECT, _END_ARRAY, _VALUE = range(5)


def _entries(obj: Any) -> Optional[List[Tuple[Any, Any]]]:
    """Child (name or index, value) pairs of a composite, None for a leaf."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return [(f.name, getattr(obj, f.name)) for f in serializable_fields(obj)]
    if isinstance(obj, Mapping):
        for key in obj:
            if not isinstance(key, str):
                raise TypeMismatch(f"Mapping keys must be str, not {type(key).__name__}")
        return list(obj.items())
    if isinstance(obj, (list, tuple)):
        return list(enumerate(obj))
    return None


def serialize(serializer: VariantStructSerializer, obj: Any) -> None:
    """Drive the write protocol for ``obj``; the tree is then in serializer.get_result().

    Raises:
        TypeMismatch: a value is not a scalar kind of the tree, a mapping has
                      non-str keys, or a composite contains itself.
    """
    pending: List[Tuple[int, Any]] = [(_VALUE, obj)]
    on_path: Set[int] = set()
    while pending:
        step, item = pending.pop()
        if step == _BEGIN_ENTRY:
            if isinstance(item, str):
                serializer.begin_object_entry(item)
            else:
                serializer.begin_array_entry(item)
        elif step == _END_ENTRY:
            if isinstance(item, str):
                serializer.end_object_entry(item)
            else:
                serializer.end_array_entry(item)
        elif step in (_END_OBJECT, _END_ARRAY):
            on_path.discard(id(item))
            if step == _END_OBJECT:
                serializer.end_object()
            else:
                serializer.end_array()
        elif isinstance(item, VariantStruct):
            serializer.write_scalar(item)
        elif item is None:
            serializer.write_null()
        else:
            entries = _entries(item)
            if entries is None:
                serializer.write_scalar(item)
                continue
            if id(item) in on_path:
                raise TypeMismatch(f"Cannot serialize a {type(item).__name__} that contains itself")
            on_path.add(id(item))
            if isinstance(item, (list, tuple)):
                serializer.begin_array(len(entries))
                pending.append((_END_ARRAY, item))
            else:
                serializer.begin_object()
                pending.append((_END_OBJECT, item))
            for name, value in reversed(entries):
                pending.append((_END_ENTRY, name))
                pending.append((_VALUE, value))
                pending.append((_BEGIN_ENTRY, name))


def to_graph_value(obj: Any, value_type: Optional[type] = None) -> VariantStruct:
    """Serialize ``obj`` into a new tree of ``value_type`` (default: configured type)."""
    serializer = VariantStructSerializer(value_type or get_value_type())
    serialize(serializer, obj)
    return serializer.get_result()


# ==================== READ DIRECTION ====================

# Typed levels (dataclasses, lists, dicts...) a read may descend. Any-typed
# and tree-typed fields are read iteratively and do not count.
MAX_READ_DEPTH = 100


def deserialize(serializer: VariantStructSerializer, target_type: Any) -> Any:
    """Drive the read protocol and build a value of ``target_type``.

    An int is accepted where float is annotated, as in PEP 484.

    Raises:
        SchemaMismatch: the tree does not have the shape ``target_type`` needs,
                        or nests typed values deeper than MAX_READ_DEPTH.
    """
    return _deserialize(serializer, target_type, 0)


def _deserialize(serializer: VariantStructSerializer, target_type: Any, depth: int) -> Any:
    if serializer.try_read_null():
        return None

    if target_type is Any or target_type is object:
        return serializer.read_value().unwrap()

    if depth >= MAX_READ_DEPTH:
        raise SchemaMismatch(f"Value nests deeper than {MAX_READ_DEPTH} typed levels")
    depth += 1

    origin = get_origin(target_type)
    args = get_args(target_type)

    if origin is Union or (_UnionType is not None and origin is _UnionType):
        members = [arg for arg in args if arg is not type(None)]
        if len(members) == 1:
            return _deserialize(serializer, members[0], depth)
        value = serializer.read_value()
        if value.is_scalar and value.scalar_type in members:
            return value.get()
        if value.is_type(int) and float in members:
            return value.get()
        raise SchemaMismatch(f"Value does not match any member of {target_type!r}")

    if isinstance(target_type, type) and issubclass(target_type, VariantStruct):
        value = serializer.read_value()
        return value if type(value) is target_type else target_type(value)

    if is_dataclass(target_type) and isinstance(target_type, type):
        return _read_dataclass(serializer, target_type, depth)

    if target_type is list or origin is list:
        item_type = args[0] if args else Any
        return _read_items(serializer, [item_type], True, depth)

    if target_type is tuple or origin is tuple:
        if not args or (len(args) == 2 and args[1] is Ellipsis):
            item_type = args[0] if args else Any
            return tuple(_read_items(serializer, [item_type], True, depth))
        return tuple(_read_items(serializer, list(args), False, depth))

    if target_type is dict or origin is dict:
        if args and args[0] is not str:
            raise SchemaMismatch(f"Only str-keyed dicts can be read, not {target_type!r}")
        value_hint = args[1] if args else Any
        result: Dict[str, Any] = {}

        def read_entry(key: str) -> None:
            result[key] = _deserialize(serializer, value_hint, depth)

        serializer.read_object(read_entry)
        return result

    if target_type is float and serializer.read_value().is_type(int):
        return serializer.read_scalar(int)

    if isinstance(target_type, type):
        return serializer.read_scalar(target_type)

    raise SchemaMismatch(f"Unsupported field type {target_type!r}")


def _read_items(serializer: VariantStructSerializer, item_types: List[Any], repeat: bool, depth: int) -> List[Any]:
    items: List[Any] = []

    def check_size(size: int) -> None:
        if not repeat and size != len(item_types):
            raise SchemaMismatch(f"Expected {len(item_types)} elements, got {size}")

    def read_entry() -> None:
        item_type = item_types[0] if repeat else item_types[len(items)]
        items.append(_deserialize(serializer, item_type, depth))

    serializer.read_array(check_size, read_entry)
    return items


def _read_dataclass(serializer: VariantStructSerializer, target_type: type, depth: int) -> Any:
    hints = get_type_hints(target_type)
    by_name = {f.name: f for f in serializable_fields(target_type)}
    values: Dict[str, Any] = {}

    def read_field(key: str) -> None:
        if key not in by_name:
            raise SchemaMismatch(f"{target_type.__name__} has no serializable field {key!r}")
        values[key] = _deserialize(serializer, hints.get(key, Any), depth)

    serializer.read_object(read_field)

    for name, f in by_name.items():
        if name in values or not f.init:
            continue
        if f.default is MISSING and f.default_factory is MISSING:
            raise SchemaMismatch(f"Missing required field {target_type.__name__}.{name}")

    obj = target_type(**{name: value for name, value in values.items() if by_name[name].init})
    for name, value in values.items():
        if not by_name[name].init:
            setattr(obj, name, value)
    return obj


def from_graph_value(target_type: Any, value: Any, value_type: Optional[type] = None) -> Any:
    """Build a ``target_type`` from a tree (or a plain value convertible to one)."""
    value_type = value_type or get_value_type()
    if not isinstance(value, value_type):
        value = value_type(value)
    return deserialize(VariantStructSerializer(value_type, value), target_type)
