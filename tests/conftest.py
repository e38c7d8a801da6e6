"""Shared fixtures: a hand-built descriptor tree of a small sample assembly."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from asmdoc.index.indexer import Indexer, IndexReport
from asmdoc.index.storage import SQLiteCatalogStore
from asmdoc.metadata.descriptors import (
    EventDescriptor,
    FieldDescriptor,
    MethodDescriptor,
    ModuleImage,
    ParameterDescriptor,
    PropertyDescriptor,
    TypeDescriptor,
    TypeRef,
)

VOID = TypeRef.named("System.Void")
INT = TypeRef.named("System.Int32")
DOUBLE = TypeRef.named("System.Double")
BOOL = TypeRef.named("System.Boolean")
STRING = TypeRef.named("System.String")
OBJECT = TypeRef.named("System.Object")


def param(name: str, type_: TypeRef) -> ParameterDescriptor:
    return ParameterDescriptor(name, type_)


def ctor(owner: TypeRef, *parameters: ParameterDescriptor, **kwargs) -> MethodDescriptor:
    return MethodDescriptor(
        ".ctor",
        owner,
        parameters=parameters,
        is_special_name=True,
        is_constructor=True,
        **kwargs,
    )


def method(
    owner: TypeRef,
    name: str,
    *parameters: ParameterDescriptor,
    returns: TypeRef = VOID,
    **kwargs,
) -> MethodDescriptor:
    return MethodDescriptor(name, owner, parameters=parameters, return_type=returns, **kwargs)


def auto_property(
    owner: TypeRef, name: str, type_: TypeRef, *, writable: bool = True, **kwargs
) -> tuple[PropertyDescriptor, list[MethodDescriptor], FieldDescriptor]:
    """A C# auto-property with its accessor methods and private backing field."""
    accessors = [method(owner, f"get_{name}", returns=type_, is_special_name=True)]
    if writable:
        accessors.append(
            method(owner, f"set_{name}", param("value", type_), is_special_name=True)
        )
    prop = PropertyDescriptor(
        name,
        owner,
        type_,
        accessors=tuple(accessor.name for accessor in accessors),
        can_write=writable,
        **kwargs,
    )
    backing = FieldDescriptor(f"<{name}>k__BackingField", owner, type_, is_public=False)
    return prop, accessors, backing


def _calculator() -> TypeDescriptor:
    ref = TypeRef.named("TestAssembly.Calculator")
    prop, accessors, backing = auto_property(ref, "CurrentValue", INT)
    return TypeDescriptor(
        ref,
        base_type=OBJECT,
        methods=(
            ctor(ref),
            method(ref, "Add", param("a", INT), param("b", INT), returns=INT),
            method(ref, "Subtract", param("a", INT), param("b", INT), returns=INT),
            *accessors,
            method(ref, "Multiply", param("a", INT), param("b", INT), returns=INT),
            method(ref, "Divide", param("dividend", INT), param("divisor", INT), returns=DOUBLE),
            method(ref, "MultiplyInternal", param("x", INT), param("y", INT), returns=INT, is_public=False),
            method(ref, "GetHashCode", returns=INT, inherited=True),
        ),
        properties=(prop,),
        fields=(backing,),
    )


def _string_helper() -> TypeDescriptor:
    ref = TypeRef.named("TestAssembly.StringHelper")
    return TypeDescriptor(
        ref,
        is_abstract=True,
        is_sealed=True,
        base_type=OBJECT,
        methods=(
            method(ref, "Reverse", param("input", STRING), returns=STRING, is_static=True),
            method(ref, "ToUpperCase", param("input", STRING), returns=STRING, is_static=True),
            method(ref, "IsPalindrome", param("input", STRING), returns=BOOL, is_static=True),
        ),
    )


def _person() -> TypeDescriptor:
    ref = TypeRef.named("TestAssembly.Person")
    first, first_accessors, first_field = auto_property(ref, "FirstName", STRING)
    last, last_accessors, last_field = auto_property(ref, "LastName", STRING)
    full = PropertyDescriptor("FullName", ref, STRING, accessors=("get_FullName",))
    age, age_accessors, age_field = auto_property(ref, "Age", INT)
    return TypeDescriptor(
        ref,
        base_type=OBJECT,
        methods=(
            *first_accessors,
            *last_accessors,
            method(ref, "get_FullName", returns=STRING, is_special_name=True),
            *age_accessors,
            ctor(ref),
            ctor(ref, param("firstName", STRING), param("lastName", STRING), param("age", INT)),
            method(ref, "ToString", returns=STRING),
        ),
        properties=(first, last, full, age),
        fields=(first_field, last_field, age_field),
    )


def _repository() -> TypeDescriptor:
    ref = TypeRef.named("TestAssembly.IRepository`1")
    t = TypeRef.generic_parameter("T", 0)
    return TypeDescriptor(
        ref,
        is_interface=True,
        is_abstract=True,
        is_class=False,
        generic_parameters=("T",),
        methods=(
            method(ref, "GetById", param("id", INT), returns=t),
            method(
                ref,
                "GetAll",
                returns=TypeRef.named("System.Collections.Generic.IEnumerable`1", t),
            ),
            method(ref, "Add", param("entity", t)),
            method(ref, "Delete", param("id", INT), returns=BOOL),
        ),
    )


def _day_of_week() -> TypeDescriptor:
    ref = TypeRef.named("TestAssembly.DayOfWeek")
    days = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
    return TypeDescriptor(
        ref,
        is_enum=True,
        is_value_type=True,
        is_sealed=True,
        is_class=False,
        base_type=TypeRef.named("System.Enum"),
        fields=(
            FieldDescriptor("value__", ref, INT, is_special_name=True),
            *(FieldDescriptor(day, ref, ref, is_static=True, is_literal=True) for day in days),
        ),
    )


def _point() -> TypeDescriptor:
    ref = TypeRef.named("TestAssembly.Point")
    x, x_accessors, x_field = auto_property(ref, "X", DOUBLE)
    y, y_accessors, y_field = auto_property(ref, "Y", DOUBLE)
    return TypeDescriptor(
        ref,
        is_value_type=True,
        is_sealed=True,
        is_class=False,
        base_type=TypeRef.named("System.ValueType"),
        methods=(
            *x_accessors,
            *y_accessors,
            ctor(ref, param("x", DOUBLE), param("y", DOUBLE)),
            method(ref, "DistanceTo", param("other", ref), returns=DOUBLE),
        ),
        properties=(x, y),
        fields=(x_field, y_field),
    )


def _event_args() -> TypeDescriptor:
    ref = TypeRef.named("TestAssembly.ValueChangedEventArgs")
    old, old_accessors, old_field = auto_property(ref, "OldValue", INT, writable=False)
    new, new_accessors, new_field = auto_property(ref, "NewValue", INT, writable=False)
    return TypeDescriptor(
        ref,
        base_type=TypeRef.named("System.EventArgs"),
        methods=(
            *old_accessors,
            *new_accessors,
            ctor(ref, param("oldValue", INT), param("newValue", INT)),
        ),
        properties=(old, new),
        fields=(old_field, new_field),
    )


def _counter() -> TypeDescriptor:
    ref = TypeRef.named("TestAssembly.Counter")
    args = TypeRef.named("TestAssembly.ValueChangedEventArgs")
    handler = TypeRef.named("System.EventHandler`1", args)
    value = PropertyDescriptor(
        "Value", ref, INT, accessors=("get_Value", "set_Value"), can_write=True
    )
    return TypeDescriptor(
        ref,
        base_type=OBJECT,
        methods=(
            method(ref, "add_ValueChanged", param("value", handler), is_special_name=True),
            method(ref, "remove_ValueChanged", param("value", handler), is_special_name=True),
            method(ref, "get_Value", returns=INT, is_special_name=True),
            method(ref, "set_Value", param("value", INT), is_special_name=True),
            method(ref, "Increment"),
            method(ref, "Decrement"),
            method(ref, "OnValueChanged", param("e", args), is_public=False),
            ctor(ref),
        ),
        properties=(value,),
        fields=(
            FieldDescriptor("_value", ref, INT, is_public=False),
            FieldDescriptor("ValueChanged", ref, handler, is_public=False),
        ),
        events=(
            EventDescriptor(
                "ValueChanged",
                ref,
                handler,
                accessors=("add_ValueChanged", "remove_ValueChanged"),
            ),
        ),
    )


def build_sample_image(path: Path | None = None) -> ModuleImage:
    return ModuleImage(
        name="TestAssembly",
        types=(
            _calculator(),
            _string_helper(),
            _person(),
            _repository(),
            _day_of_week(),
            _point(),
            _event_args(),
            _counter(),
        ),
        path=path,
    )


SAMPLE_DOCUMENTATION = """<?xml version="1.0"?>
<doc>
    <assembly>
        <name>TestAssembly</name>
    </assembly>
    <members>
        <member name="T:TestAssembly.Calculator">
            <summary>
            A sample calculator class.
            </summary>
        </member>
        <member name="M:TestAssembly.Calculator.Add(System.Int32,System.Int32)">
            <summary>
            Adds two integers and returns the result.
            </summary>
            <param name="a">The first number to add.</param>
            <param name="b">The second number to add.</param>
            <returns>The sum of the two numbers.</returns>
            <example>
            <code>
            var calc = new Calculator();
            int result = calc.Add(5, 3);
            </code>
            </example>
        </member>
        <member name="M:TestAssembly.Calculator.Divide(System.Int32,System.Int32)">
            <summary>
            Divides two numbers.
            </summary>
            <param name="dividend">The number to be divided.</param>
            <param name="divisor">The number to divide by.</param>
            <returns>The quotient of the division.</returns>
            <exception cref="T:System.DivideByZeroException">Thrown when divisor is zero.</exception>
        </member>
        <member name="P:TestAssembly.Calculator.CurrentValue">
            <summary>
            Gets or sets the current value stored in the calculator.
            </summary>
        </member>
        <member name="T:TestAssembly.StringHelper">
            <summary>
            A utility class for string operations.
            </summary>
        </member>
        <member name="M:TestAssembly.StringHelper.Reverse(System.String)">
            <summary>
            Reverses a string.
            </summary>
            <param name="input">The string to reverse.</param>
            <returns>The reversed string.</returns>
        </member>
        <member name="M:TestAssembly.Person.#ctor">
            <summary>
            Initializes a new instance of the Person class.
            </summary>
        </member>
        <member name="M:TestAssembly.Person.#ctor(System.String,System.String,System.Int32)">
            <summary>
            Initializes a new instance of the Person class with specified values.
            </summary>
            <param name="firstName">The first name.</param>
            <param name="lastName">The last name.</param>
            <param name="age">The age.</param>
        </member>
        <member name="T:TestAssembly.IRepository`1">
            <summary>
            Interface for data repository operations.
            </summary>
            <typeparam name="T">The type of entity.</typeparam>
        </member>
        <member name="M:TestAssembly.IRepository`1.GetById(System.Int32)">
            <summary>
            Gets an entity by its ID.
            </summary>
            <param name="id">The entity ID.</param>
        </member>
        <member name="M:TestAssembly.IRepository`1.Add(`0)">
            <summary>
            Adds a new entity.
            </summary>
            <param name="entity">The entity to add.</param>
        </member>
        <member name="F:TestAssembly.DayOfWeek.Sunday">
            <summary>
            Sunday
            </summary>
        </member>
        <member name="M:TestAssembly.Point.DistanceTo(TestAssembly.Point)">
            <summary>
            Calculates the distance from this point to <paramref name="other"/>.
            </summary>
        </member>
        <member name="E:TestAssembly.Counter.ValueChanged">
            <summary>
            Event raised when the counter value changes.
            </summary>
        </member>
        <member name="M:TestAssembly.Counter.OnValueChanged(TestAssembly.ValueChangedEventArgs)">
            <summary>
            Raises the ValueChanged event.
            </summary>
        </member>
    </members>
</doc>
"""


@pytest.fixture
def sample_image() -> ModuleImage:
    return build_sample_image()


@pytest.fixture
def sample_module_path(tmp_path: Path) -> Path:
    path = tmp_path / "TestAssembly.dll"
    path.write_bytes(b"MZ")
    return path


@pytest.fixture
def sample_doc_path(tmp_path: Path) -> Path:
    path = tmp_path / "TestAssembly.xml"
    path.write_text(SAMPLE_DOCUMENTATION, encoding="utf-8")
    return path


@pytest.fixture
def store(tmp_path: Path) -> Iterator[SQLiteCatalogStore]:
    catalog = SQLiteCatalogStore(tmp_path / "catalog.db")
    try:
        yield catalog
    finally:
        catalog.close()


@pytest.fixture
def indexer(store: SQLiteCatalogStore, sample_image: ModuleImage) -> Indexer:
    return Indexer(store, loader=lambda path: sample_image)


@pytest.fixture
def indexed(
    indexer: Indexer, sample_module_path: Path, sample_doc_path: Path
) -> IndexReport:
    return indexer.index_module(sample_module_path, sample_doc_path)
