"""Tolerant read-only tree over parsed OpenAPI documents.

Parsed JSON/YAML is wrapped into a small closed set of node types so the
comparator can probe arbitrary paths without type checks at every step:
looking up a field that does not exist (or looking it up on something that is
not an object) yields ``MISSING`` instead of raising.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Tuple, Union

import yaml

ScalarValue = Union[str, int, float, bool]


class DescriptorParseError(ValueError):
    """Raised when a descriptor document cannot be parsed into an object tree."""


class DescriptorNode:
    """Base node. Concrete subclasses override only what they support."""

    is_missing = False
    is_null = False

    def get_field(self, name: str) -> "DescriptorNode":
        return MISSING

    def has(self, name: str) -> bool:
        return False

    def field_names(self) -> Iterator[str]:
        return iter(())

    def path(self, *names: str) -> "DescriptorNode":
        node: DescriptorNode = self
        for name in names:
            node = node.get_field(name)
        return node

    def as_text(self, default: str = "") -> str:
        return default

    def to_python(self) -> Any:
        return None


@dataclass(frozen=True)
class ObjectNode(DescriptorNode):
    fields: Dict[str, DescriptorNode] = field(default_factory=dict)

    def get_field(self, name: str) -> DescriptorNode:
        return self.fields.get(name, MISSING)

    def has(self, name: str) -> bool:
        return name in self.fields

    def field_names(self) -> Iterator[str]:
        return iter(list(self.fields))

    def to_python(self) -> Dict[str, Any]:
        return {key: value.to_python() for key, value in self.fields.items()}


@dataclass(frozen=True)
class ArrayNode(DescriptorNode):
    items: Tuple[DescriptorNode, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def to_python(self) -> list:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True)
class ScalarNode(DescriptorNode):
    value: ScalarValue = ""

    def as_text(self, default: str = "") -> str:
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return str(self.value)

    def to_python(self) -> ScalarValue:
        return self.value


@dataclass(frozen=True)
class NullNode(DescriptorNode):
    is_null = True


@dataclass(frozen=True)
class MissingNode(DescriptorNode):
    is_missing = True


NULL = NullNode()
MISSING = MissingNode()


def from_python(value: Any) -> DescriptorNode:
    """Wrap a decoded JSON/YAML value into descriptor nodes."""
    if value is None:
        return NULL
    if isinstance(value, DescriptorNode):
        return value
    if isinstance(value, dict):
        return ObjectNode({str(key): from_python(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return ArrayNode(tuple(from_python(item) for item in value))
    if isinstance(value, (str, int, float, bool)):
        return ScalarNode(value)
    # YAML may decode dates/timestamps; keep their textual form.
    return ScalarNode(str(value))


def _decode(text: str) -> Any:
    try:
        return json.loads(text)
    except RecursionError as exc:
        raise DescriptorParseError("Descriptor is nested too deeply to decode.") from exc
    except ValueError as json_error:
        try:
            return yaml.safe_load(text)
        except (yaml.YAMLError, ValueError, RecursionError) as yaml_error:
            raise DescriptorParseError(
                f"Descriptor is neither valid JSON ({json_error}) nor YAML ({yaml_error})."
            ) from yaml_error


def parse_descriptor(text: str) -> ObjectNode:
    """Parse raw descriptor text (JSON first, YAML second) into an object tree."""
    stripped = (text or "").strip()
    if not stripped:
        raise DescriptorParseError("Descriptor document is empty.")
    decoded = _decode(stripped)
    if not isinstance(decoded, dict):
        raise DescriptorParseError(
            f"Descriptor root must be an object, got {type(decoded).__name__}."
        )
    try:
        return ObjectNode({str(key): from_python(value) for key, value in decoded.items()})
    except RecursionError as exc:
        raise DescriptorParseError("Descriptor is nested too deeply to traverse.") from exc


__all__ = [
    "ArrayNode",
    "DescriptorNode",
    "DescriptorParseError",
    "MISSING",
    "MissingNode",
    "NULL",
    "NullNode",
    "ObjectNode",
    "ScalarNode",
    "from_python",
    "parse_descriptor",
]
