"""
Graph model capability: what a record needs to live in a Graph.

GraphModelInterface is the abstract surface the registry talks to.
GraphModel implements it by composition: all bookkeeping lives in one
GraphModelState object kept beside (not among) the record's dataclass
fields, so snapshots, reverts and merges never see it.

Every concrete record class declares its own type tag:

    @dataclass
    class Human(Animal):
        graph_type = "Human"

        title: Optional[str] = None

The tag is the registry's collection key. It is not derived from the class
name, and a subclass that forgets to declare one is rejected on injection
instead of silently landing in its parent's collection.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from variant_struct import TypeMismatch, VariantStruct

if TYPE_CHECKING:
    from graphstate.graph import Graph


@dataclass
class GraphModelState:
    """Per-record bookkeeping. Not serialized."""
    graph_id: Optional[int] = None  # handle of the owning Graph
    snapshot: Optional[VariantStruct] = None
    persisted: bool = False
    synced: bool = False
    deleted: bool = False


class GraphModelInterface(ABC):
    """Surface a record exposes to a Graph."""

    graph_type: ClassVar[str]

    @property
    @abstractmethod
    def graph_state(self) -> GraphModelState:
        """Capability object holding the flags, snapshot and graph handle."""
        ...

    @property
    @abstractmethod
    def graph_instance(self) -> Optional['Graph']:
        ...

    @property
    @abstractmethod
    def graph_persisted(self) -> bool:
        ...

    @property
    @abstractmethod
    def graph_synced(self) -> bool:
        ...

    @abstractmethod
    def graph_touch(self) -> None:
        ...

    @abstractmethod
    def graph_untouch(self) -> None:
        ...

    @property
    @abstractmethod
    def graph_deleted(self) -> bool:
        ...

    @abstractmethod
    def graph_delete(self) -> None:
        ...

    @abstractmethod
    def graph_undelete(self) -> None:
        ...

    @property
    @abstractmethod
    def graph_snapshot(self) -> Optional[VariantStruct]:
        ...

    @abstractmethod
    def graph_has_snapshot(self) -> bool:
        ...

    @abstractmethod
    def clear_graph_snapshot(self) -> None:
        ...

    @abstractmethod
    def to_graph_value(self) -> VariantStruct:
        ...


class GraphModel(GraphModelInterface):
    """Mixin implementing GraphModelInterface for dataclass records.

    Records need an instance __dict__ (no slots=True) and must not be frozen,
    since revert and merge assign fields in place.
    """

    @property
    def graph_state(self) -> GraphModelState:
        state = self.__dict__.get('_graph_state')
        if state is None:
            state = self.__dict__['_graph_state'] = GraphModelState()
        return state

    @property
    def graph_instance(self) -> Optional['Graph']:
        """The Graph this record is registered in, or None."""
        from graphstate.graph import lookup_graph
        return lookup_graph(self.graph_state.graph_id)

    @property
    def graph_persisted(self) -> bool:
        return self.graph_state.persisted

    @graph_persisted.setter
    def graph_persisted(self, value: bool) -> None:
        self.graph_state.persisted = value

    @property
    def graph_synced(self) -> bool:
        return self.graph_state.synced

    def graph_touch(self) -> None:
        self.graph_state.synced = False

    def graph_untouch(self) -> None:
        self.graph_state.synced = True

    @property
    def graph_deleted(self) -> bool:
        return self.graph_state.deleted

    def graph_delete(self) -> None:
        self.graph_state.deleted = True

    def graph_undelete(self) -> None:
        self.graph_state.deleted = False

    @property
    def graph_snapshot(self) -> Optional[VariantStruct]:
        return self.graph_state.snapshot

    @graph_snapshot.setter
    def graph_snapshot(self, value: Optional[VariantStruct]) -> None:
        if value is not None and not isinstance(value, VariantStruct):
            raise TypeMismatch(f"Snapshot must be a VariantStruct, got {type(value).__name__}")
        self.graph_state.snapshot = value

    def graph_has_snapshot(self) -> bool:
        return self.graph_state.snapshot is not None

    def clear_graph_snapshot(self) -> None:
        self.graph_state.snapshot = None

    def to_graph_value(self) -> VariantStruct:
        """Serialize the current field values, using the owning graph's tree type if any."""
        from graphstate.serialization import to_graph_value
        graph = self.graph_instance
        return to_graph_value(self, graph.value_type if graph is not None else None)

    def __getstate__(self) -> Any:
        # copies and pickles of a record start unregistered
        state = dict(self.__dict__)
        state.pop('_graph_state', None)
        return state
