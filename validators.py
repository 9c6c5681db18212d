"""
Structural validators for MongoDB collections.

A validator is a small tree of rules. Every rule renders to the fragment of a
`$jsonSchema` document it stands for, and can also check a plain Python value
so the rules can be unit tested without a running server.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# bsonType name -> predicate on the Python value pymongo would decode
BSON_TYPES = {
    "string": lambda v: isinstance(v, str),
    "int": _is_int,
    "long": _is_int,
    "double": lambda v: isinstance(v, float),
    "number": lambda v: _is_int(v) or isinstance(v, float),
    "bool": lambda v: isinstance(v, bool),
    "date": lambda v: isinstance(v, datetime),
    "objectId": lambda v: isinstance(v, ObjectId),
    "null": lambda v: v is None,
    "array": lambda v: isinstance(v, (list, tuple)),
    "object": lambda v: isinstance(v, dict),
}


@dataclass(frozen=True)
class TypeRule:
    types: Tuple[str, ...]
    kind: str = field(default="type", init=False)

    def __post_init__(self):
        unknown = [t for t in self.types if t not in BSON_TYPES]
        if unknown:
            raise ValueError(f"Unknown bsonType(s): {unknown}")

    def render(self) -> Dict[str, Any]:
        if len(self.types) == 1:
            return {"bsonType": self.types[0]}
        return {"bsonType": list(self.types)}

    def check(self, value: Any, path: str) -> List[str]:
        if any(BSON_TYPES[t](value) for t in self.types):
            return []
        return [f"{path}: expected {' or '.join(self.types)}, got {type(value).__name__}"]


@dataclass(frozen=True)
class RangeRule:
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    kind: str = field(default="range", init=False)

    def render(self) -> Dict[str, Any]:
        out = {}
        if self.minimum is not None:
            out["minimum"] = self.minimum
        if self.maximum is not None:
            out["maximum"] = self.maximum
        return out

    def check(self, value: Any, path: str) -> List[str]:
        # $jsonSchema keywords only apply to values of the matching type
        if not (_is_int(value) or isinstance(value, float)):
            return []
        if self.minimum is not None and value < self.minimum:
            return [f"{path}: {value} is below minimum {self.minimum}"]
        if self.maximum is not None and value > self.maximum:
            return [f"{path}: {value} is above maximum {self.maximum}"]
        return []


@dataclass(frozen=True)
class LengthRule:
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    kind: str = field(default="length", init=False)

    def render(self) -> Dict[str, Any]:
        out = {}
        if self.min_length is not None:
            out["minLength"] = self.min_length
        if self.max_length is not None:
            out["maxLength"] = self.max_length
        return out

    def check(self, value: Any, path: str) -> List[str]:
        if not isinstance(value, str):
            return []
        if self.min_length is not None and len(value) < self.min_length:
            return [f"{path}: shorter than {self.min_length} characters"]
        if self.max_length is not None and len(value) > self.max_length:
            return [f"{path}: longer than {self.max_length} characters"]
        return []


@dataclass(frozen=True)
class PatternRule:
    pattern: str
    kind: str = field(default="pattern", init=False)

    def render(self) -> Dict[str, Any]:
        return {"pattern": self.pattern}

    def check(self, value: Any, path: str) -> List[str]:
        if not isinstance(value, str):
            return []
        if re.search(self.pattern, value) is None:
            return [f"{path}: does not match {self.pattern}"]
        return []


@dataclass(frozen=True)
class EnumRule:
    values: Tuple[Any, ...]
    kind: str = field(default="enum", init=False)

    def render(self) -> Dict[str, Any]:
        return {"enum": list(self.values)}

    def check(self, value: Any, path: str) -> List[str]:
        if value in self.values:
            return []
        return [f"{path}: {value!r} not one of {list(self.values)}"]


@dataclass(frozen=True)
class Property:
    """A named field's rules, combined with AND semantics."""

    rules: Tuple[Any, ...] = ()
    description: Optional[str] = None

    def render(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for rule in self.rules:
            out.update(rule.render())
        if self.description:
            out["description"] = self.description
        return out

    def check(self, value: Any, path: str) -> List[str]:
        errors = []
        for rule in self.rules:
            errors.extend(rule.check(value, path))
        return errors


@dataclass(frozen=True)
class ObjectRule:
    """Composite rule: required fields plus per-field properties."""

    required: Tuple[str, ...] = ()
    properties: Dict[str, Property] = field(default_factory=dict)
    additional_properties: bool = True
    kind: str = field(default="object", init=False)

    def render(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"bsonType": "object"}
        if self.required:
            out["required"] = list(self.required)
        out["additionalProperties"] = self.additional_properties
        out["properties"] = {name: prop.render() for name, prop in self.properties.items()}
        return out

    def check(self, value: Any, path: str) -> List[str]:
        if not isinstance(value, dict):
            return [f"{path}: expected object, got {type(value).__name__}"]
        errors = [f"{path}.{name}: required" for name in self.required if name not in value]
        for name, prop in self.properties.items():
            if name in value:
                errors.extend(prop.check(value[name], f"{path}.{name}"))
        if not self.additional_properties:
            extra = sorted(set(value) - set(self.properties))
            errors.extend(f"{path}.{name}: additional property not allowed" for name in extra)
        return errors


@dataclass(frozen=True)
class ItemsRule:
    item: Any
    kind: str = field(default="items", init=False)

    def render(self) -> Dict[str, Any]:
        return {"items": self.item.render()}

    def check(self, value: Any, path: str) -> List[str]:
        if not isinstance(value, (list, tuple)):
            return []
        errors = []
        for i, element in enumerate(value):
            errors.extend(self.item.check(element, f"{path}[{i}]"))
        return errors


@dataclass(frozen=True)
class CollectionValidator:
    root: ObjectRule

    def to_document(self) -> Dict[str, Any]:
        return {"$jsonSchema": self.root.render()}

    def validate(self, document: Dict[str, Any]) -> List[str]:
        return self.root.check(document, "$")


def field_of(*types: str, description: Optional[str] = None, **constraints) -> Property:
    """Shorthand for the common case of a typed field with optional constraints.

    Accepted constraints: minimum, maximum, min_length, max_length, pattern, enum.
    """
    rules: List[Any] = [TypeRule(tuple(types))]
    if "minimum" in constraints or "maximum" in constraints:
        rules.append(RangeRule(constraints.pop("minimum", None), constraints.pop("maximum", None)))
    if "min_length" in constraints or "max_length" in constraints:
        rules.append(LengthRule(constraints.pop("min_length", None), constraints.pop("max_length", None)))
    if "pattern" in constraints:
        rules.append(PatternRule(constraints.pop("pattern")))
    if "enum" in constraints:
        rules.append(EnumRule(tuple(constraints.pop("enum"))))
    if constraints:
        raise TypeError(f"Unsupported constraints: {sorted(constraints)}")
    return Property(tuple(rules), description)
