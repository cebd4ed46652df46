"""
In-memory graph of dataclass records with snapshots, revert and merge.

Records are serialized into VariantStruct trees (GraphValue by default). The
Graph keeps a per-type list of records, snapshots their fields on injection,
reverts them to the snapshot and merges partial updates into them.

Quick Start:
    >>> from dataclasses import dataclass
    >>> from typing import Optional
    >>> from graphstate import Graph, GraphModel
    >>>
    >>> @dataclass
    ... class Person(GraphModel):
    ...     graph_type = "Person"
    ...     first_name: Optional[str] = None
    ...     surname: Optional[str] = None
    >>>
    >>> graph = Graph()
    >>> person = graph.inject(Person(surname="Monagle"))
    >>> graph.merge(person, {"first_name": "David"})
    Person(first_name='David', surname='Monagle')
    >>> person.surname = "Smith"
    >>> graph.revert(person)
    >>> person.surname
    'Monagle'

Modules:
    - value: GraphValue tree type and tree merge
    - serialization: dataclass reflection layer driving VariantStructSerializer
    - model: GraphModel mixin and GraphModelInterface
    - graph: Graph registry
    - config: pluggable tree type
"""

# Value
from graphstate.value import GraphValue, GraphBasicTypes, merge_values

# Configuration
from graphstate.config import (
    set_value_type,
    get_value_type,
    reset_value_type,
    value_type_context,
)

# Serialization
from graphstate.serialization import (
    ignore,
    serializable_fields,
    serialize,
    deserialize,
    to_graph_value,
    from_graph_value,
)

# Models
from graphstate.model import GraphModel, GraphModelInterface, GraphModelState

# Graph
from graphstate.graph import (
    Graph,
    copy_graph_attributes,
    declared_graph_type,
    find_in_graph,
    lookup_graph,
    merge,
)

__all__ = [
    # Value
    'GraphValue',
    'GraphBasicTypes',
    'merge_values',
    # Configuration
    'set_value_type',
    'get_value_type',
    'reset_value_type',
    'value_type_context',
    # Serialization
    'ignore',
    'serializable_fields',
    'serialize',
    'deserialize',
    'to_graph_value',
    'from_graph_value',
    # Models
    'GraphModel',
    'GraphModelInterface',
    'GraphModelState',
    # Graph
    'Graph',
    'copy_graph_attributes',
    'declared_graph_type',
    'find_in_graph',
    'lookup_graph',
    'merge',
]

__version__ = '1.0.0'
__description__ = 'In-memory graph of dataclass records with snapshot, revert and merge'
