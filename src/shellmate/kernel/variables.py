"""Session variable store and per-type value formatting."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from ..contracts.v1 import Activity, VariableDef
from ..util.conv import coerce_bool, coerce_float, coerce_int


def format_value(value: Any, definition: Optional[VariableDef]) -> str:
    """Render a variable value as text for command/context substitution."""
    if value is None:
        return ""
    kind = definition.type if definition is not None else "string"
    if kind == "bool":
        return "true" if coerce_bool(value) else "false"
    if kind == "int":
        return str(coerce_int(value))
    if kind == "float":
        return str(coerce_float(value))
    if kind == "list":
        if isinstance(value, (list, tuple)):
            return " ".join(str(x) for x in value)
        return str(value)
    return str(value)


class VariableStore:
    def __init__(self) -> None:
        self._defs: Dict[str, VariableDef] = {}
        self._values: Dict[str, Any] = {}

    def define(self, name: str, definition: VariableDef) -> None:
        self._defs[name] = definition
        if name not in self._values and definition.default is not None:
            self._values[name] = definition.default

    def load_activity(self, activity: Activity) -> None:
        for name, definition in activity.variables.items():
            self.define(name, definition)

    def set(self, name: str, value: Any) -> None:
        definition = self._defs.get(name)
        if definition is not None and definition.type == "choice" and definition.choices:
            if str(value) not in definition.choices:
                raise ValueError(f"{name}: {value!r} is not one of {', '.join(definition.choices)}")
        self._values[name] = value

    def unset(self, name: str) -> None:
        self._values.pop(name, None)

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def has(self, name: str) -> bool:
        return name in self._values

    def get_all(self) -> Dict[str, Any]:
        return dict(self._values)

    def get_all_definitions(self) -> Dict[str, VariableDef]:
        return dict(self._defs)


def format_all(values: Mapping[str, Any], definitions: Mapping[str, VariableDef]) -> Dict[str, str]:
    return {name: format_value(value, definitions.get(name)) for name, value in values.items()}
