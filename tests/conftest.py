"""Pytest configuration and shared fixtures."""
import pytest
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from variant_struct import VariantStruct
from graphstate import Graph, GraphModel, ignore, reset_value_type


VStruct = VariantStruct[bool, int, str, float]


@dataclass
class GraphTestModel(GraphModel):
    """Base record; declares its own tag like every concrete record."""
    graph_type = "GraphTestModel"

    id: Optional[str] = None


@dataclass
class Animal(GraphTestModel):
    graph_type = "Animal"

    name: Optional[str] = None


@dataclass
class Human(Animal):
    graph_type = "Human"

    title: Optional[str] = None


@dataclass
class Person(GraphModel):
    graph_type = "Person"

    first_name: Optional[str] = None
    surname: Optional[str] = None
    age: int = 0
    wage: float = 0.0


@dataclass
class Address:
    street: str = ""
    city: str = ""
    postcode: Optional[str] = None


@dataclass
class Customer(GraphModel):
    """Record exercising nested, list, dict and ignored fields."""
    graph_type = "Customer"

    name: str = ""
    address: Address = field(default_factory=Address)
    tags: List[str] = field(default_factory=list)
    scores: Dict[str, float] = field(default_factory=dict)
    joined: Optional[date] = None
    session_token: Optional[str] = ignore(default=None)


@pytest.fixture(autouse=True)
def reset_value_type_config():
    """Restore the default tree type after each test."""
    yield
    reset_value_type()


@pytest.fixture
def graph():
    """Provide an empty graph using the default tree type."""
    return Graph()


@pytest.fixture
def customer():
    """Provide a populated customer record."""
    return Customer(
        name="Ginny",
        address=Address(street="1 Main St", city="Melbourne", postcode="3000"),
        tags=["vip", "early"],
        scores={"q1": 4.5, "q2": 3.0},
        joined=date(2015, 6, 1),
        session_token="secret",
    )
