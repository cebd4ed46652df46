"""
VariantStruct - a recursive tagged union for graphs of raw values.

A node holds exactly one of:
- null
- a scalar whose exact type is one of the class's ``Types``
- an array (ordered list of nodes)
- an object (str -> node mapping, order not significant)

The scalar vocabulary is a type-level parameter. Subscripting the base class
creates (and caches) a concrete tree type:

    GV = VariantStruct[bool, int, float, str]
    VariantStruct[bool, int, float, str] is GV    # True, same class object

    obj = GV({"a": {"b": 1.0, "c": 2.0}})
    obj.get_path("a", "b") == 1.0       # True
    obj.get_path("a", "x")              # None
    obj["a"]["x"]                       # KeyNotFound

Nodes have value semantics: nested nodes handed in are deep-copied, ``dup()``
shares no list or dict with its source, and ``==`` compares structure.
Every whole-tree walk is iterative, so depth is bounded by memory only.
"""

import enum
from collections.abc import Mapping
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple, Union

from variant_struct.errors import (
    IndexOutOfRange,
    KeyNotFound,
    TypeMismatch,
    VariantStructError,
)


class Kind(enum.Enum):
    """Discriminant of a VariantStruct node."""
    NULL = 'null'
    SCALAR = 'scalar'
    ARRAY = 'array'
    OBJECT = 'object'


# =============================================================================
# TYPE CACHE - same parameterization returns same type object
# =============================================================================

_variant_cache: Dict[Tuple[type, tuple], type] = {}

# Payload types the tree reserves for itself
_RESERVED_TYPES = (list, tuple, dict, type(None))


def _type_name(t: Any) -> str:
    return t.__name__ if hasattr(t, '__name__') else repr(t)


def _make_variant_type(origin: type, types: tuple) -> type:
    """Create (or fetch from cache) the tree type ``origin[types]``."""
    key = (origin, types)
    cached = _variant_cache.get(key)
    if cached is not None:
        return cached

    args_str = ', '.join(_type_name(t) for t in types)
    type_name = f'{origin.__name__}[{args_str}]'
    variant_type = type(origin)(
        type_name,
        (origin,),
        {
            'Types': types,
            '__slots__': (),
            '__module__': origin.__module__,
            '__qualname__': type_name,
        }
    )
    _variant_cache[key] = variant_type
    return variant_type


class VariantStruct:
    """Recursive tagged union over ``Types`` plus null, arrays and objects.

    Use a parameterized subclass (``VariantStruct[bool, str]``); the bare
    class has an empty scalar vocabulary and only holds null/arrays/objects.
    """

    __slots__ = ('_kind', '_value')

    Types: Tuple[type, ...] = ()

    def __class_getitem__(cls, params):
        if cls.Types:
            raise TypeError(f"{cls.__name__} is already parameterized")
        if not isinstance(params, tuple):
            params = (params,)
        if not params:
            raise TypeError("VariantStruct needs at least one scalar type")
        for param in params:
            if not isinstance(param, type):
                raise TypeError(f"Scalar kinds must be types, got {param!r}")
            if param in _RESERVED_TYPES or issubclass(param, VariantStruct):
                raise TypeError(f"{_type_name(param)} cannot be used as a scalar kind")
        if len(set(params)) != len(params):
            raise TypeError(f"Duplicate scalar kinds in {params!r}")
        return _make_variant_type(cls, params)

    def __init__(self, value: Any = None):
        """Build a node from a raw value, a list/tuple, a mapping or another node.

        Nested nodes are deep-copied; nodes of another parameterization are
        converted through their plain form and re-checked against ``Types``.
        """
        self._kind = Kind.NULL
        self._value = None
        self._fill(value)

    # ========== CONSTRUCTORS ==========

    @classmethod
    def _blank(cls) -> 'VariantStruct':
        node = cls.__new__(cls)
        node._kind = Kind.NULL
        node._value = None
        return node

    @classmethod
    def null(cls) -> 'VariantStruct':
        return cls._blank()

    @classmethod
    def scalar(cls, value: Any) -> 'VariantStruct':
        """Wrap a raw scalar; its exact type must be one of ``Types``."""
        if type(value) not in cls.Types:
            raise TypeMismatch(f"{_type_name(type(value))} is not a scalar kind of {cls.__name__}")
        node = cls._blank()
        node._kind = Kind.SCALAR
        node._value = value
        return node

    @classmethod
    def empty_array(cls) -> 'VariantStruct':
        """Returns a node encapsulating a new empty array."""
        node = cls._blank()
        node._kind = Kind.ARRAY
        node._value = []
        return node

    @classmethod
    def empty_object(cls) -> 'VariantStruct':
        """Returns a node encapsulating a new empty object."""
        node = cls._blank()
        node._kind = Kind.OBJECT
        node._value = {}
        return node

    @classmethod
    def _coerce(cls, value: Any) -> 'VariantStruct':
        """Fresh node for ``value``; never aliases a node passed in."""
        node = cls._blank()
        node._fill(value)
        return node

    def _fill(self, value: Any) -> None:
        cls = type(self)
        # entries with node None mark the end of a container's subtree
        pending: List[Tuple[Optional[VariantStruct], Any]] = [(self, value)]
        on_path: Set[int] = set()
        while pending:
            node, raw = pending.pop()
            if node is None:
                on_path.discard(id(raw))
                continue
            if isinstance(raw, VariantStruct):
                if type(raw) is cls:
                    copied = raw.dup()
                    node._kind, node._value = copied._kind, copied._value
                else:
                    pending.append((node, raw.unwrap()))
                continue
            if raw is None:
                node._kind, node._value = Kind.NULL, None
                continue
            if type(raw) in cls.Types:
                node._kind, node._value = Kind.SCALAR, raw
                continue
            if not isinstance(raw, (Mapping, list, tuple)):
                raise TypeMismatch(f"{_type_name(type(raw))} is not a scalar kind of {cls.__name__}")

            if id(raw) in on_path:
                raise TypeMismatch(f"Cannot convert a {_type_name(type(raw))} that contains itself")
            on_path.add(id(raw))
            pending.append((None, raw))
            if isinstance(raw, Mapping):
                entries: Dict[str, VariantStruct] = {}
                for key, item in raw.items():
                    if not isinstance(key, str):
                        raise TypeMismatch(f"Object keys must be str, not {_type_name(type(key))}")
                    child = cls._blank()
                    entries[key] = child
                    pending.append((child, item))
                node._kind, node._value = Kind.OBJECT, entries
            else:
                items: List[VariantStruct] = []
                for item in raw:
                    child = cls._blank()
                    items.append(child)
                    pending.append((child, item))
                node._kind, node._value = Kind.ARRAY, items

    # ========== INSPECTION ==========

    @property
    def kind(self) -> Kind:
        return self._kind

    @property
    def scalar_type(self) -> Optional[type]:
        """Exact type of the scalar payload, None for non-scalars."""
        return type(self._value) if self._kind is Kind.SCALAR else None

    @property
    def is_null(self) -> bool:
        return self._kind is Kind.NULL

    @property
    def is_scalar(self) -> bool:
        return self._kind is Kind.SCALAR

    @property
    def is_array(self) -> bool:
        return self._kind is Kind.ARRAY

    @property
    def is_object(self) -> bool:
        return self._kind is Kind.OBJECT

    def is_type(self, scalar_type: type) -> bool:
        """True if this node is a scalar of exactly ``scalar_type``."""
        return self._kind is Kind.SCALAR and type(self._value) is scalar_type

    def get(self, scalar_type: Optional[type] = None) -> Any:
        """Return the raw scalar payload.

        Args:
            scalar_type: If given, the payload must be exactly this type.

        Raises:
            TypeMismatch: node is not a scalar, or not of ``scalar_type``.
        """
        if self._kind is not Kind.SCALAR:
            raise TypeMismatch(f"Expected a scalar, node is {self._kind.value}")
        if scalar_type is not None and type(self._value) is not scalar_type:
            raise TypeMismatch(
                f"Expected {_type_name(scalar_type)}, node holds {_type_name(type(self._value))}"
            )
        return self._value

    def _require(self, kind: Kind, operation: str) -> Any:
        if self._kind is not kind:
            raise TypeMismatch(f"{operation} requires {kind.value}, node is {self._kind.value}")
        return self._value

    # ========== INDEXING ==========

    def __getitem__(self, key: Union[str, int]) -> 'VariantStruct':
        """Direct access into an object (str key) or array (int index).

        Read access never inserts. The returned node is the owned child, so
        mutations through it are visible to this node.
        """
        if isinstance(key, str):
            entries = self._require(Kind.OBJECT, 'Indexing by key')
            try:
                return entries[key]
            except KeyError:
                raise KeyNotFound(f"No entry {key!r} in object") from None
        if isinstance(key, int) and not isinstance(key, bool):
            items = self._require(Kind.ARRAY, 'Indexing by position')
            if not 0 <= key < len(items):
                raise IndexOutOfRange(f"Index {key} out of range for array of length {len(items)}")
            return items[key]
        raise TypeMismatch(f"Cannot index with {_type_name(type(key))}")

    def __setitem__(self, key: Union[str, int], value: Any) -> None:
        """Insert/replace an object entry, or replace an existing array element."""
        if isinstance(key, str):
            entries = self._require(Kind.OBJECT, 'Setting by key')
            entries[key] = self._coerce(value)
            return
        if isinstance(key, int) and not isinstance(key, bool):
            items = self._require(Kind.ARRAY, 'Setting by position')
            if not 0 <= key < len(items):
                raise IndexOutOfRange(f"Index {key} out of range for array of length {len(items)}")
            items[key] = self._coerce(value)
            return
        raise TypeMismatch(f"Cannot index with {_type_name(type(key))}")

    def __contains__(self, key: Any) -> bool:
        return self._kind is Kind.OBJECT and isinstance(key, str) and key in self._value

    def get_path(self, *path: str) -> Optional['VariantStruct']:
        """Gets a descendant of this node.

        If any node along the path is not an object or has no matching entry,
        None is returned. Never raises, never mutates.
        """
        current = self
        for name in path:
            if current._kind is not Kind.OBJECT or not isinstance(name, str):
                return None
            current = current._value.get(name)
            if current is None:
                return None
        return current

    def append(self, value: Any) -> None:
        """Appends a copy of ``value`` to the array. Arrays are nested, not spliced."""
        items = self._require(Kind.ARRAY, "'append'")
        items.append(self._coerce(value))

    def _adopt_entry(self, key: str, node: 'VariantStruct') -> None:
        """Store ``node`` under ``key`` without copying; caller gives up ownership."""
        self._require(Kind.OBJECT, 'Setting by key')[key] = node

    def _adopt_item(self, node: 'VariantStruct') -> None:
        """Append ``node`` without copying; caller gives up ownership."""
        self._require(Kind.ARRAY, "'append'").append(node)

    # ========== CONTAINER PROTOCOL ==========

    def __len__(self) -> int:
        if self._kind in (Kind.ARRAY, Kind.OBJECT):
            return len(self._value)
        raise TypeMismatch(f"len() requires array or object, node is {self._kind.value}")

    def __bool__(self) -> bool:
        """False only for null. Scalar nodes holding 0, False or "" are true;
        test the payload with ``node.get()`` instead.
        """
        return self._kind is not Kind.NULL

    def __iter__(self) -> Iterator[Any]:
        """Array elements, or object keys."""
        if self._kind is Kind.ARRAY:
            return iter(list(self._value))
        if self._kind is Kind.OBJECT:
            return iter(list(self._value))
        raise TypeMismatch(f"Iteration requires array or object, node is {self._kind.value}")

    def keys(self) -> List[str]:
        return list(self._require(Kind.OBJECT, 'keys()'))

    def values(self) -> List['VariantStruct']:
        return list(self._require(Kind.OBJECT, 'values()').values())

    def items(self) -> List[Tuple[str, 'VariantStruct']]:
        return list(self._require(Kind.OBJECT, 'items()').items())

    # ========== COPY / COMPARE / CONVERT ==========

    def _shallow_copy(self) -> 'VariantStruct':
        node = type(self)._blank()
        node._kind = self._kind
        node._value = self._value
        return node

    def dup(self) -> 'VariantStruct':
        """Creates a recursed duplicate, ensuring arrays and objects are copies and not shared."""
        root = self._shallow_copy()
        pending = [root]
        while pending:
            node = pending.pop()
            if node._kind is Kind.ARRAY:
                node._value = [child._shallow_copy() for child in node._value]
                pending.extend(node._value)
            elif node._kind is Kind.OBJECT:
                node._value = {key: child._shallow_copy() for key, child in node._value.items()}
                pending.extend(node._value.values())
        return root

    def __copy__(self) -> 'VariantStruct':
        return self.dup()

    def __deepcopy__(self, memo: Dict[int, Any]) -> 'VariantStruct':
        return self.dup()

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, VariantStruct):
            try:
                other = type(self)(other)
            except VariantStructError:
                return False

        pending: List[Tuple[VariantStruct, VariantStruct]] = [(self, other)]
        while pending:
            left, right = pending.pop()
            if left._kind is not right._kind:
                return False
            if left._kind is Kind.SCALAR:
                lv, rv = left._value, right._value
                # identity implies equality (NaN included), as in list comparison
                if type(lv) is not type(rv) or not (lv is rv or lv == rv):
                    return False
            elif left._kind is Kind.ARRAY:
                if len(left._value) != len(right._value):
                    return False
                pending.extend(zip(left._value, right._value))
            elif left._kind is Kind.OBJECT:
                if left._value.keys() != right._value.keys():
                    return False
                pending.extend((child, right._value[key]) for key, child in left._value.items())
        return True

    __hash__ = None  # mutable

    def unwrap(self) -> Any:
        """Convert to plain Python: None, scalars, lists and dicts."""
        def shell(node: VariantStruct) -> Any:
            if node._kind is Kind.ARRAY:
                return []
            if node._kind is Kind.OBJECT:
                return {}
            return node._value

        root = shell(self)
        pending = [(self, root)]
        while pending:
            node, out = pending.pop()
            if node._kind is Kind.ARRAY:
                for child in node._value:
                    child_out = shell(child)
                    out.append(child_out)
                    if child._kind in (Kind.ARRAY, Kind.OBJECT):
                        pending.append((child, child_out))
            elif node._kind is Kind.OBJECT:
                for key, child in node._value.items():
                    child_out = shell(child)
                    out[key] = child_out
                    if child._kind in (Kind.ARRAY, Kind.OBJECT):
                        pending.append((child, child_out))
        return root

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.unwrap()!r})"
