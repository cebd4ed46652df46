"""
Graph: in-memory registry of graph models.

Records are partitioned by their declared ``graph_type`` and kept in
registration order. The registry holds weak references only; the caller owns
record lifetime and should remove() a record before dropping it. A record
holds the integer handle of its Graph, never the Graph itself.

Lifecycle per record:
    unregistered --inject()--> registered --remove()--> unregistered

    graph = Graph()
    david = graph.inject(Human(name="David"))   # snapshot taken
    david.title = "Mr"
    graph.revert(david)                          # title back to its injected value
    graph.merge(david, {"title": "Dr"})          # only title changes

Thread safety: Not thread-safe. Use one Graph per worker or guard mutation.
"""

import itertools
import logging
import weakref
from typing import Any, Callable, Dict, List, Optional

from variant_struct import ContractViolation, TypeMismatch, VariantStruct
from graphstate.config import check_value_type, get_value_type
from graphstate.model import GraphModelInterface
from graphstate.serialization import from_graph_value, serializable_fields, to_graph_value
from graphstate.value import merge_values

logger = logging.getLogger(__name__)

_graph_ids = itertools.count(1)

# Handle -> live Graph; entries vanish when a Graph is garbage collected
_live_graphs: 'weakref.WeakValueDictionary[int, Graph]' = weakref.WeakValueDictionary()


def lookup_graph(graph_id: Optional[int]) -> Optional['Graph']:
    """Resolve a graph handle, or None if unset or the Graph is gone."""
    if graph_id is None:
        return None
    return _live_graphs.get(graph_id)


def declared_graph_type(model_type: type) -> str:
    """Return the graph_type declared by ``model_type`` itself.

    Raises:
        ContractViolation: the class relies on an inherited (or missing) tag.
    """
    declared = model_type.__dict__.get('graph_type')
    if not isinstance(declared, str) or not declared:
        raise ContractViolation(f"class {model_type.__name__} does not declare its own graph_type")
    return declared


def _type_key(model: Any, model_type: Optional[type] = None) -> str:
    if not isinstance(model, GraphModelInterface):
        raise TypeError(f"{type(model).__name__} does not implement GraphModelInterface")
    key = declared_graph_type(type(model))
    if model_type is not None and getattr(model_type, 'graph_type', None) != key:
        raise ContractViolation(
            f"class {model_type.__name__}'s graph_type does not match the model's graph_type: {key}"
        )
    return key


class Graph:
    """Main storage class for graph models."""

    def __init__(self, value_type: Optional[type] = None):
        """
        Args:
            value_type: Tree type for snapshots and merges. Defaults to the
                        configured type (see graphstate.config).
        """
        self.value_type = check_value_type(value_type) if value_type is not None else get_value_type()
        self.graph_id = next(_graph_ids)
        self._store: Dict[str, List[weakref.ref]] = {}
        _live_graphs[self.graph_id] = self

    def __repr__(self) -> str:
        counts = {key: len(refs) for key, refs in self._store.items()}
        return f"Graph(id={self.graph_id}, value_type={self.value_type.__name__}, models={counts})"

    def __contains__(self, model: Any) -> bool:
        return isinstance(model, GraphModelInterface) and model.graph_state.graph_id == self.graph_id

    # ========== SERIALIZATION ==========

    def serialize_model(self, model: Any) -> VariantStruct:
        return to_graph_value(model, self.value_type)

    def deserialize_model(self, model_type: type, value: VariantStruct) -> Any:
        return from_graph_value(model_type, value, self.value_type)

    # ========== REGISTRATION ==========

    def inject(self, model: Any, snapshot: bool = True, model_type: Optional[type] = None) -> Any:
        """Register ``model`` and optionally snapshot its current fields.

        Registering a model already in this graph does not add it twice, but
        a requested snapshot still replaces the previous one.

        Args:
            model: Record implementing GraphModelInterface.
            snapshot: Take a snapshot of the current field values.
            model_type: Optional class the caller expects the model to be
                        registered as; its graph_type must match the model's.

        Returns:
            The model, for chaining.

        Raises:
            ContractViolation: type tag problems, or the model is registered
                               in another live Graph.
        """
        key = _type_key(model, model_type)
        state = model.graph_state

        if state.graph_id != self.graph_id:
            owner = lookup_graph(state.graph_id)
            if owner is not None:
                raise ContractViolation(
                    f"{key} model is registered in graph {owner.graph_id}; remove it there first"
                )

        # a failing snapshot must leave the graph unchanged
        taken = self.serialize_model(model) if snapshot else None

        if state.graph_id != self.graph_id:
            state.graph_id = self.graph_id
            self._store.setdefault(key, []).append(weakref.ref(model))
            logger.debug(f"Injected {key} into graph {self.graph_id}")

        if taken is not None:
            model.graph_snapshot = taken
            logger.debug(f"Snapshot taken for {key} in graph {self.graph_id}")

        return model

    def remove(self, model: Any) -> bool:
        """Deregister ``model``. Returns False if it was not in this graph.

        The model keeps its snapshot and flags.
        """
        key = _type_key(model)
        if model not in self:
            return False
        self._store[key] = [ref for ref in self._store.get(key, []) if ref() is not model]
        model.graph_state.graph_id = None
        logger.debug(f"Removed {key} from graph {self.graph_id}")
        return True

    def clear(self) -> None:
        """Deregister every model."""
        for refs in self._store.values():
            for ref in refs:
                model = ref()
                if model is not None:
                    model.graph_state.graph_id = None
        self._store.clear()
        logger.debug(f"Cleared graph {self.graph_id}")

    def model_store(self, model_type: type) -> List[Any]:
        """Live models registered under ``model_type``'s tag, in registration order."""
        key = declared_graph_type(model_type)
        refs = self._store.get(key, [])
        models = []
        live_refs = []
        for ref in refs:
            model = ref()
            if model is not None:
                models.append(model)
                live_refs.append(ref)
        if len(live_refs) != len(refs):
            logger.warning(
                f"Graph {self.graph_id}: {len(refs) - len(live_refs)} {key} model(s) were "
                f"garbage collected without being removed"
            )
            self._store[key] = live_refs
        return models

    def find(self, model_type: type, predicate: Optional[Callable[[Any], bool]] = None) -> List[Any]:
        """Models of ``model_type`` matching ``predicate`` (all if None), in registration order."""
        return [model for model in self.model_store(model_type) if predicate is None or predicate(model)]

    # ========== SNAPSHOTS ==========

    def revert(self, model: Any, model_type: Optional[type] = None) -> None:
        """Reverts the model back to the snapshot state if the snapshot exists.

        No-op for models not in this graph or without a snapshot. Only
        serializable fields are restored; flags and the snapshot are untouched.
        """
        key = _type_key(model, model_type)
        if model not in self:
            return
        if not model.graph_has_snapshot():
            return
        reverted = self.deserialize_model(type(model), model.graph_snapshot)
        copy_graph_attributes(model, reverted)
        logger.debug(f"Reverted {key} in graph {self.graph_id}")

    def merge(self, model: Any, data: Any) -> Any:
        """Merge ``data`` into ``model`` using this graph's tree type. See merge()."""
        merge(model, data, self.value_type)
        logger.debug(f"Merged {len(data)} top-level key(s) into {type(model).__name__} in graph {self.graph_id}")
        return model


def find_in_graph(graph: Graph, model_type: type, predicate: Optional[Callable[[Any], bool]] = None) -> List[Any]:
    return graph.find(model_type, predicate)


def copy_graph_attributes(dest: Any, source: Any) -> Any:
    """Copy the serializable attributes from source to destination."""
    if not isinstance(source, type(dest)):
        raise TypeError(f"Cannot copy {type(source).__name__} attributes onto {type(dest).__name__}")
    for f in serializable_fields(dest):
        setattr(dest, f.name, getattr(source, f.name))
    return dest


def merge(model: Any, data: Any, value_type: Optional[type] = None) -> Any:
    """Merge the tree ``data`` into the given model.

    The model's fields are serialized, ``data`` is merged over them (see
    merge_values), and the result is rebuilt and copied back. Fields absent
    from ``data`` keep their values.

    Args:
        model: Any dataclass record, registered or not.
        data: Object tree, or a plain mapping convertible to one.
        value_type: Tree type; defaults to the model's graph, then config.

    Raises:
        TypeMismatch: ``data`` is not an object.
        SchemaMismatch: the merged tree does not fit the model's fields.
    """
    if value_type is None:
        graph = getattr(model, 'graph_instance', None)
        value_type = graph.value_type if graph is not None else get_value_type()
    if not isinstance(data, value_type):
        data = value_type(data)
    if not data.is_object:
        raise TypeMismatch(f"Merging only works with objects, got {data.kind.value}")

    attributes = to_graph_value(model, value_type)
    merged_model = from_graph_value(type(model), merge_values(attributes, data), value_type)
    copy_graph_attributes(model, merged_model)
    return model
