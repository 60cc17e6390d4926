"""
Typed view over a task's variables.

The engine exchanges variables as {name: {"type", "value", "valueInfo"}}.
Variables keeps that typed form, decodes values on read and infers the
engine type when plain Python values are set.
"""

import json
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from external_task_client.constants import (
    ENGINE_DATE_FORMAT,
    INT32_MAX,
    INT32_MIN,
    VariableType,
)

TypedValue = dict[str, Any]


def infer_type(value: Any) -> VariableType:
    """Map a Python value to the engine variable type."""
    if value is None:
        return VariableType.NULL
    # bool is a subclass of int
    if isinstance(value, bool):
        return VariableType.BOOLEAN
    if isinstance(value, int):
        if INT32_MIN <= value <= INT32_MAX:
            return VariableType.INTEGER
        return VariableType.LONG
    if isinstance(value, float):
        return VariableType.DOUBLE
    if isinstance(value, datetime):
        return VariableType.DATE
    if isinstance(value, (dict, list)):
        return VariableType.JSON
    return VariableType.STRING


def serialize_variable(typed: Mapping[str, Any]) -> TypedValue:
    """Encode a typed value into its wire form."""
    var_type = typed.get("type") or infer_type(typed.get("value"))
    value = typed.get("value")
    if var_type == VariableType.JSON and not isinstance(value, str):
        value = json.dumps(value)
    elif var_type == VariableType.DATE and isinstance(value, datetime):
        value = format_engine_date(value)
    elif var_type == VariableType.STRING and value is not None:
        value = str(value)
    return {
        "type": str(var_type),
        "value": value,
        "valueInfo": dict(typed.get("valueInfo") or {}),
    }


def deserialize_variable(typed: Mapping[str, Any]) -> TypedValue:
    """Decode a wire-form typed value."""
    var_type = typed.get("type")
    value = typed.get("value")
    if var_type == VariableType.JSON and isinstance(value, str):
        value = json.loads(value)
    elif var_type == VariableType.DATE and isinstance(value, str):
        value = parse_engine_date(value)
    return {
        "type": var_type,
        "value": value,
        "valueInfo": dict(typed.get("valueInfo") or {}),
    }


def format_engine_date(value: datetime) -> str:
    """Format a datetime the way the engine expects (millisecond precision)."""
    if value.tzinfo is None:
        value = value.astimezone()
    millis = f"{value.microsecond // 1000:03d}"
    return f"{value.strftime('%Y-%m-%dT%H:%M:%S')}.{millis}{value.strftime('%z')}"


def parse_engine_date(value: str) -> datetime | str:
    try:
        return datetime.strptime(value, ENGINE_DATE_FORMAT)
    except ValueError:
        return value


class Variables:
    """
    Accessor over a task's typed variable bag.

    Values set through the accessor are tracked as dirty so that only they
    are sent back when the task is completed. A read-only accessor is handed
    to handlers in place of the raw bag of a fetched task.
    """

    def __init__(
        self,
        initial: Mapping[str, Mapping[str, Any]] | None = None,
        read_only: bool = False,
    ):
        self._typed: dict[str, TypedValue] = {
            name: deserialize_variable(typed) for name, typed in (initial or {}).items()
        }
        self._dirty: dict[str, TypedValue] = {}
        self._read_only = read_only

    @property
    def read_only(self) -> bool:
        return self._read_only

    def get(self, name: str, default: Any = None) -> Any:
        typed = self._typed.get(name)
        if typed is None:
            return default
        return typed["value"]

    def get_typed(self, name: str) -> TypedValue | None:
        typed = self._typed.get(name)
        return dict(typed) if typed is not None else None

    def get_all(self) -> dict[str, Any]:
        return {name: typed["value"] for name, typed in self._typed.items()}

    def get_all_typed(self) -> dict[str, TypedValue]:
        return {name: dict(typed) for name, typed in self._typed.items()}

    def get_dirty(self) -> dict[str, TypedValue]:
        """Typed values set through this accessor, in wire form."""
        return {name: serialize_variable(typed) for name, typed in self._dirty.items()}

    def set(self, name: str, value: Any) -> "Variables":
        return self.set_typed(name, {"type": infer_type(value), "value": value})

    def set_typed(self, name: str, typed: Mapping[str, Any]) -> "Variables":
        self._check_writable()
        entry = {
            "type": typed.get("type") or infer_type(typed.get("value")),
            "value": typed.get("value"),
            "valueInfo": dict(typed.get("valueInfo") or {}),
        }
        self._typed[name] = entry
        self._dirty[name] = entry
        return self

    def set_all(self, values: Mapping[str, Any]) -> "Variables":
        for name, value in values.items():
            self.set(name, value)
        return self

    def set_all_typed(self, values: Mapping[str, Mapping[str, Any]]) -> "Variables":
        for name, typed in values.items():
            self.set_typed(name, typed)
        return self

    def _check_writable(self) -> None:
        if self._read_only:
            raise TypeError("Task variables are read-only; set values on a new Variables instance")

    def __contains__(self, name: object) -> bool:
        return name in self._typed

    def __len__(self) -> int:
        return len(self._typed)

    def __repr__(self) -> str:
        return f"Variables({self.get_all()!r})"


def to_wire_variables(variables: "Variables | Mapping[str, Any] | None") -> dict[str, TypedValue] | None:
    """
    Normalize handler-supplied variables for a request body.

    A Variables instance contributes its dirty values; a plain mapping is
    treated as name -> Python value and typed by inference.
    """
    if variables is None:
        return None
    if isinstance(variables, Variables):
        return variables.get_dirty()
    return Variables().set_all(variables).get_dirty()
