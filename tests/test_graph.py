"""
Tests for the Graph registry.

Tests cover:
- Registration, lookup and removal
- Type tag checks
- Snapshots and revert
- Merging partial data into records
- Record flags
- Weak membership
"""

import copy
import gc
import logging
from dataclasses import dataclass
from typing import Any, Optional

import pytest

from variant_struct import ContractViolation, SchemaMismatch, TypeMismatch
from graphstate import (
    Graph,
    GraphModel,
    GraphValue,
    copy_graph_attributes,
    declared_graph_type,
    find_in_graph,
    merge,
    merge_values,
)

from conftest import Address, Animal, Customer, Human, Person, VStruct


@dataclass
class Dog(Animal):
    """Forgets to declare its own graph_type."""
    breed: Optional[str] = None


@dataclass
class Payload(GraphModel):
    graph_type = "Payload"

    data: Any = None


class TestRegistration:
    """Models are stored per type tag in registration order."""

    def test_model_store_counts(self, graph):
        david = graph.inject(Human())
        david.name = "David"
        david.title = "Mr"
        assert len(graph.model_store(Human)) == 1

        ginny = graph.inject(Human())
        ginny.name = "Ginny"
        ginny.title = "Mrs"
        assert len(graph.model_store(Human)) == 2

        mia = graph.inject(Animal())
        mia.name = "Mia"
        assert len(graph.model_store(Animal)) == 1

        person = graph.model_store(Human)[0]
        assert person.name == "David"
        assert len(find_in_graph(graph, Human, lambda m: m.name == "David")) == 1

    def test_inject_returns_same_object(self, graph):
        david = Human(name="David")
        assert graph.inject(david) is david
        assert graph.model_store(Human)[0] is david

    def test_subclass_has_its_own_collection(self, graph):
        graph.inject(Human(name="David"))
        assert graph.model_store(Animal) == []

    def test_find_order_and_predicate(self, graph):
        names = ["David", "Ginny", "Dan"]
        models = [graph.inject(Human(name=name)) for name in names]
        assert graph.find(Human) == models
        found = graph.find(Human, lambda m: m.name.startswith("D"))
        assert [m.name for m in found] == ["David", "Dan"]
        assert graph.find(Animal) == []

    def test_inject_twice_is_idempotent(self, graph):
        david = graph.inject(Human(name="David"))
        graph.inject(david)
        assert len(graph.model_store(Human)) == 1

    def test_membership(self, graph):
        david = graph.inject(Human(name="David"))
        assert david in graph
        assert david.graph_instance is graph
        assert Human() not in graph
        assert "David" not in graph

    def test_remove(self, graph):
        david = graph.inject(Human(name="David"))
        assert graph.remove(david)
        assert david not in graph
        assert david.graph_instance is None
        assert graph.model_store(Human) == []
        assert david.graph_has_snapshot()
        assert not graph.remove(david)

    def test_clear(self, graph):
        david = graph.inject(Human(name="David"))
        mia = graph.inject(Animal(name="Mia"))
        graph.clear()
        assert graph.model_store(Human) == []
        assert graph.model_store(Animal) == []
        assert david.graph_instance is None
        assert mia.graph_instance is None

    def test_reinject_after_remove(self, graph):
        david = graph.inject(Human(name="David"))
        graph.remove(david)
        graph.inject(david)
        assert graph.model_store(Human) == [david]

    def test_copy_starts_unregistered(self, graph):
        david = graph.inject(Human(name="David"))
        clone = copy.copy(david)
        assert clone == david
        assert clone not in graph
        assert not clone.graph_has_snapshot()

    def test_graphs_get_distinct_ids(self):
        assert Graph().graph_id != Graph().graph_id


class TestTypeTags:
    """Every concrete record declares the tag it is stored under."""

    def test_declared_graph_type(self):
        assert declared_graph_type(Human) == "Human"
        assert declared_graph_type(Animal) == "Animal"

    def test_undeclared_subclass_rejected(self, graph):
        with pytest.raises(ContractViolation):
            graph.inject(Dog(name="Rex"))
        with pytest.raises(ContractViolation):
            graph.model_store(Dog)

    def test_model_type_mismatch(self, graph):
        with pytest.raises(ContractViolation):
            graph.inject(Human(), model_type=Animal)
        assert graph.model_store(Human) == []

    def test_model_type_match(self, graph):
        david = graph.inject(Human(), model_type=Human)
        assert graph.model_store(Human) == [david]

    def test_non_model_rejected(self, graph):
        with pytest.raises(TypeError):
            graph.inject(Address())

    def test_owned_by_another_graph(self, graph):
        david = graph.inject(Human(name="David"))
        other = Graph()
        with pytest.raises(ContractViolation):
            other.inject(david)
        assert other.model_store(Human) == []

    def test_owner_collected(self, graph):
        other = Graph()
        david = other.inject(Human(name="David"))
        del other
        gc.collect()
        assert david.graph_instance is None
        graph.inject(david)
        assert david.graph_instance is graph


class TestSnapshots:
    """Snapshots are taken on injection and restored by revert."""

    def test_snapshots(self, graph):
        david = graph.inject(Human())
        david.name = "David"
        david.title = "Mr"
        assert len(graph.model_store(Human)) == 1

        ginny = graph.inject(Human(), False)
        ginny.name = "Ginny"
        ginny.title = "Miss"
        assert len(graph.model_store(Human)) == 2

        mia = graph.inject(Animal())
        mia.name = "Mia"
        assert len(graph.model_store(Animal)) == 1

        assert david.graph_has_snapshot()
        assert not ginny.graph_has_snapshot()

        graph.inject(ginny, True)
        ginny.title = "Mrs"
        assert ginny.graph_snapshot["title"] == "Miss"
        old_ginny = ginny
        graph.revert(ginny)
        assert ginny.title == "Miss"
        assert old_ginny is ginny
        assert len(graph.model_store(Human)) == 2

    def test_snapshot_is_graph_value(self, graph):
        david = graph.inject(Human(name="David"))
        assert type(david.graph_snapshot) is GraphValue
        assert david.graph_snapshot == {"id": None, "name": "David", "title": None}

    def test_reinject_refreshes_snapshot(self, graph):
        david = graph.inject(Human(name="David"))
        david.name = "Dave"
        graph.inject(david)
        david.name = "D"
        graph.revert(david)
        assert david.name == "Dave"

    def test_inject_without_snapshot_keeps_old_one(self, graph):
        david = graph.inject(Human(name="David"))
        david.name = "Dave"
        graph.inject(david, snapshot=False)
        assert david.graph_snapshot["name"] == "David"

    def test_revert_without_snapshot_is_noop(self, graph):
        david = graph.inject(Human(name="David"), snapshot=False)
        david.name = "Dave"
        graph.revert(david)
        assert david.name == "Dave"

    def test_revert_unregistered_is_noop(self, graph):
        david = Human(name="David")
        david.graph_snapshot = GraphValue({"id": None, "name": "Old", "title": None})
        graph.revert(david)
        assert david.name == "David"

    def test_revert_keeps_flags_and_snapshot(self, graph):
        david = graph.inject(Human(name="David"))
        david.graph_delete()
        david.graph_untouch()
        snapshot = david.graph_snapshot
        david.name = "Dave"
        graph.revert(david)
        assert david.name == "David"
        assert david.graph_deleted
        assert david.graph_synced
        assert david.graph_snapshot is snapshot

    def test_revert_skips_ignored_fields(self, graph, customer):
        graph.inject(customer)
        customer.session_token = "other"
        customer.tags.append("late")
        graph.revert(customer)
        assert customer.tags == ["vip", "early"]
        assert customer.session_token == "other"

    def test_clear_snapshot(self, graph):
        david = graph.inject(Human(name="David"))
        david.clear_graph_snapshot()
        assert not david.graph_has_snapshot()

    def test_snapshot_must_be_tree(self):
        with pytest.raises(TypeMismatch):
            Human().graph_snapshot = {"name": "David"}

    def test_int_in_float_field_reverts(self, graph):
        person = graph.inject(Person(surname="Monagle", wage=50))
        person.wage = 60.5
        graph.revert(person)
        assert person.wage == 50
        graph.merge(person, {"wage": 70})
        assert person.wage == 70

    def test_deep_payload_reverts(self, graph):
        depth = 5000
        plain = []
        current = plain
        for _ in range(depth):
            child = []
            current.append(child)
            current = child

        record = graph.inject(Payload(data=plain))
        record.data = None
        graph.revert(record)
        current = record.data
        for _ in range(depth):
            assert len(current) == 1
            current = current[0]
        assert current == []

    def test_cyclic_payload_not_injected(self, graph):
        loop = []
        loop.append(loop)
        record = Payload(data=loop)
        with pytest.raises(TypeMismatch):
            graph.inject(record)
        assert record not in graph

    def test_failed_snapshot_leaves_graph_unchanged(self, customer):
        graph = Graph(value_type=VStruct)
        with pytest.raises(TypeMismatch):
            graph.inject(customer)
        assert customer not in graph
        assert graph.model_store(Customer) == []


class TestMerge:
    """Partial data is merged over a record's current fields."""

    def test_merge(self):
        person = Person()
        person.surname = "Monagle"
        data = GraphValue.empty_object()
        data["first_name"] = "David"
        merge(person, data)
        assert person.surname == "Monagle"
        assert person.first_name == "David"

    def test_graph_merge(self, graph):
        person = graph.inject(Person(surname="Monagle", age=40))
        assert graph.merge(person, {"first_name": "David"}) is person
        assert person == Person(first_name="David", surname="Monagle", age=40)

    def test_merge_keeps_snapshot(self, graph):
        person = graph.inject(Person(surname="Monagle"))
        graph.merge(person, {"surname": "Smith"})
        assert person.surname == "Smith"
        graph.revert(person)
        assert person.surname == "Monagle"

    def test_merge_requires_object(self):
        with pytest.raises(TypeMismatch):
            merge(Person(), ["David"])
        with pytest.raises(TypeMismatch):
            merge(Person(), "David")

    def test_merge_shape_error_leaves_model(self):
        person = Person(first_name="David", age=40)
        with pytest.raises(SchemaMismatch):
            merge(person, {"age": "forty"})
        with pytest.raises(SchemaMismatch):
            merge(person, {"nickname": "Dave"})
        assert person == Person(first_name="David", age=40)

    def test_nested_objects_merge(self, customer):
        merge(customer, {"address": {"city": "Sydney"}, "scores": {"q3": 5.0}})
        assert customer.address == Address(street="1 Main St", city="Sydney", postcode="3000")
        assert customer.scores == {"q1": 4.5, "q2": 3.0, "q3": 5.0}

    def test_arrays_replaced(self, customer):
        merge(customer, {"tags": ["new"]})
        assert customer.tags == ["new"]

    def test_null_clears_field(self, customer):
        merge(customer, {"joined": None})
        assert customer.joined is None

    def test_ignored_field_untouched(self, customer):
        with pytest.raises(SchemaMismatch):
            merge(customer, {"session_token": "x"})
        merge(customer, {"name": "Gin"})
        assert customer.session_token == "secret"

    def test_merge_uses_graph_value_type(self):
        graph = Graph(value_type=VStruct)
        person = graph.inject(Person(first_name="David"))
        graph.merge(person, VStruct({"age": 41}))
        assert person.age == 41
        assert type(person.to_graph_value()) is VStruct


class TestMergeValues:
    """Tree level merge used by merge()."""

    def test_inputs_unchanged(self):
        base = GraphValue({"a": {"b": 1, "c": 2}, "d": [1]})
        partial = GraphValue({"a": {"b": 5}, "d": [2, 3]})
        merged = merge_values(base, partial)
        assert merged == {"a": {"b": 5, "c": 2}, "d": [2, 3]}
        assert base == {"a": {"b": 1, "c": 2}, "d": [1]}
        assert partial == {"a": {"b": 5}, "d": [2, 3]}

    def test_merged_shares_nothing(self):
        partial = GraphValue({"d": [2]})
        merged = merge_values(GraphValue({}), partial)
        merged["d"].append(3)
        assert partial == {"d": [2]}

    def test_non_object_replaces(self):
        assert merge_values(GraphValue({"a": 1}), [1]) == [1]
        assert merge_values(GraphValue([1]), {"a": 1}) == {"a": 1}

    def test_object_replaces_scalar(self):
        merged = merge_values(GraphValue({"a": 1}), {"a": {"b": 2}})
        assert merged == {"a": {"b": 2}}


class TestCopyGraphAttributes:

    def test_copies_serializable_fields(self, customer):
        dest = Customer()
        copy_graph_attributes(dest, customer)
        assert dest.name == "Ginny"
        assert dest.tags is customer.tags
        assert dest.session_token is None

    def test_rejects_unrelated_source(self):
        with pytest.raises(TypeError):
            copy_graph_attributes(Human(), Person())


class TestFlags:
    """Persisted, synced and deleted flags are plain record state."""

    def test_defaults(self):
        david = Human()
        assert not david.graph_persisted
        assert not david.graph_synced
        assert not david.graph_deleted
        assert not david.graph_has_snapshot()
        assert david.graph_instance is None

    def test_touch(self):
        david = Human()
        david.graph_untouch()
        assert david.graph_synced
        david.graph_touch()
        assert not david.graph_synced

    def test_delete(self):
        david = Human()
        david.graph_delete()
        assert david.graph_deleted
        david.graph_undelete()
        assert not david.graph_deleted

    def test_persisted(self):
        david = Human()
        david.graph_persisted = True
        assert david.graph_persisted

    def test_state_is_not_a_field(self, graph):
        david = graph.inject(Human(name="David"))
        david.graph_delete()
        assert "graph_state" not in david.to_graph_value().keys()
        assert david == Human(name="David")


class TestWeakMembership:
    """The graph does not keep records alive."""

    def test_collected_models_pruned(self, graph, caplog):
        keep = graph.inject(Human(name="David"))
        graph.inject(Human(name="Ginny"))
        gc.collect()

        with caplog.at_level(logging.WARNING, logger="graphstate.graph"):
            assert graph.model_store(Human) == [keep]
        assert "garbage collected" in caplog.text

        caplog.clear()
        with caplog.at_level(logging.WARNING, logger="graphstate.graph"):
            graph.model_store(Human)
        assert caplog.text == ""
