# src/mldemo/data/schemas.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Tuple


class FieldType(str, Enum):
    STRING = "string"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"


class FieldRole(str, Enum):
    FEATURE = "feature"
    LABEL = "label"
    META = "meta"


@dataclass(frozen=True)
class Field:
    name: str
    type: FieldType
    column: int
    role: FieldRole = FieldRole.FEATURE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "column": int(self.column),
            "role": self.role.value,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Field":
        return cls(
            name=str(d["name"]),
            type=FieldType(d["type"]),
            column=int(d["column"]),
            role=FieldRole(d.get("role", FieldRole.FEATURE.value)),
        )


@dataclass(frozen=True)
class Schema:
    """
    Ordered, typed layout of one dataset row.

    The same descriptor drives the file parser (column positions, separator,
    header) and the trainer adapters (feature / label names). Keep it stable:
    a persisted model is only reloadable against an identical schema.
    """
    name: str
    fields: Tuple[Field, ...]
    separator: str = ","
    has_header: bool = False

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            raise ValueError(f"Schema {self.name!r} has duplicate field names: {names}")
        cols = [f.column for f in self.fields]
        if len(set(cols)) != len(cols):
            raise ValueError(f"Schema {self.name!r} maps two fields onto one column: {cols}")

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def feature_names(self) -> Tuple[str, ...]:
        return self._names_with(FieldRole.FEATURE)

    @property
    def label_names(self) -> Tuple[str, ...]:
        return self._names_with(FieldRole.LABEL)

    def _names_with(self, role: FieldRole) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.role is role)

    def field(self, name: str) -> Field:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    def select(self, roles: Iterable[FieldRole]) -> Tuple[Field, ...]:
        wanted = set(roles)
        return tuple(f for f in self.fields if f.role in wanted)

    def matches(self, other: "Schema") -> bool:
        return self.name == other.name and self.fields == other.fields

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "separator": self.separator,
            "has_header": bool(self.has_header),
            "fields": [f.to_dict() for f in self.fields],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Schema":
        return cls(
            name=str(d["name"]),
            fields=tuple(Field.from_dict(x) for x in d["fields"]),
            separator=str(d.get("separator", ",")),
            has_header=bool(d.get("has_header", False)),
        )


def numeric(name: str, column: int, role: FieldRole = FieldRole.FEATURE) -> Field:
    return Field(name, FieldType.NUMERIC, column, role)


def string(name: str, column: int, role: FieldRole = FieldRole.FEATURE) -> Field:
    return Field(name, FieldType.STRING, column, role)


def boolean(name: str, column: int, role: FieldRole = FieldRole.FEATURE) -> Field:
    return Field(name, FieldType.BOOLEAN, column, role)
