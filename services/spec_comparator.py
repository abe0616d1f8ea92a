"""Breaking-change detection between two OpenAPI descriptor versions.

The comparator is a pure function over parsed descriptor trees. It walks the
old document and reports what the new one no longer offers:

* endpoints (``paths`` keys) that disappeared,
* HTTP verbs that disappeared from a surviving endpoint,
* schemas (``components.schemas`` keys) that disappeared,
* properties that disappeared from a surviving schema, and
* properties whose top-level ``type`` changed.

Anything the new document adds is ignored. Results follow the old document's
key order, endpoint findings first and schema findings second.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from core.logging import get_logger
from models.breaking_change import ChangeType
from services.descriptor_tree import DescriptorNode

logger = get_logger(__name__)

HTTP_METHODS: Sequence[str] = ("get", "post", "put", "delete", "patch")
SCHEMA_LOCATOR_PREFIX = "/components/schemas/"


@dataclass(frozen=True)
class ParsedDescriptor:
    """A descriptor tree together with the snapshot labels it came from."""

    service_name: str
    version: str
    document: DescriptorNode


@dataclass(frozen=True)
class BreakingChangeCandidate:
    """A detected change before it receives an id and status in the ledger."""

    service_name: str
    change_type: ChangeType
    path: str
    description: str
    old_version: str
    new_version: str


def schema_locator(schema_name: str) -> str:
    return f"{SCHEMA_LOCATOR_PREFIX}{schema_name}"


def _candidate(
    old: ParsedDescriptor,
    new: ParsedDescriptor,
    change_type: ChangeType,
    path: str,
    description: str,
) -> BreakingChangeCandidate:
    return BreakingChangeCandidate(
        service_name=old.service_name,
        change_type=change_type,
        path=path,
        description=description,
        old_version=old.version,
        new_version=new.version,
    )


def compare_methods(
    path: str,
    old_endpoint: DescriptorNode,
    new_endpoint: DescriptorNode,
    old: ParsedDescriptor,
    new: ParsedDescriptor,
) -> List[BreakingChangeCandidate]:
    changes: List[BreakingChangeCandidate] = []
    for method in HTTP_METHODS:
        if old_endpoint.has(method) and not new_endpoint.has(method):
            verb = method.upper()
            changes.append(
                _candidate(
                    old,
                    new,
                    ChangeType.METHOD_REMOVED,
                    path,
                    f"HTTP method '{verb}' removed from '{path}'",
                )
            )
            logger.warning("BREAKING: Method removed: %s %s", verb, path)
    return changes


def compare_paths(old: ParsedDescriptor, new: ParsedDescriptor) -> List[BreakingChangeCandidate]:
    changes: List[BreakingChangeCandidate] = []
    old_paths = old.document.get_field("paths")
    new_paths = new.document.get_field("paths")
    if old_paths.is_missing or new_paths.is_missing:
        return changes

    for path in old_paths.field_names():
        if not new_paths.has(path):
            changes.append(
                _candidate(old, new, ChangeType.ENDPOINT_REMOVED, path, f"Endpoint '{path}' was removed")
            )
            logger.warning("BREAKING: Endpoint removed: %s", path)
            continue
        changes.extend(compare_methods(path, old_paths.get_field(path), new_paths.get_field(path), old, new))
    return changes


def compare_schema_properties(
    schema_name: str,
    old_schema: DescriptorNode,
    new_schema: DescriptorNode,
    old: ParsedDescriptor,
    new: ParsedDescriptor,
) -> List[BreakingChangeCandidate]:
    changes: List[BreakingChangeCandidate] = []
    old_properties = old_schema.get_field("properties")
    new_properties = new_schema.get_field("properties")
    if old_properties.is_missing:
        return changes

    locator = schema_locator(schema_name)
    for property_name in old_properties.field_names():
        if not new_properties.has(property_name):
            changes.append(
                _candidate(
                    old,
                    new,
                    ChangeType.FIELD_REMOVED,
                    locator,
                    f"Field '{property_name}' removed from '{schema_name}' schema",
                )
            )
            logger.warning("BREAKING: Field removed: %s.%s", schema_name, property_name)
            continue

        old_type = old_properties.get_field(property_name).get_field("type").as_text("")
        new_type = new_properties.get_field(property_name).get_field("type").as_text("")
        if old_type and new_type and old_type != new_type:
            changes.append(
                _candidate(
                    old,
                    new,
                    ChangeType.TYPE_CHANGED,
                    locator,
                    f"Field '{property_name}' type changed from '{old_type}' to '{new_type}' "
                    f"in '{schema_name}' schema",
                )
            )
            logger.warning(
                "BREAKING: Type changed: %s.%s from %s to %s",
                schema_name,
                property_name,
                old_type,
                new_type,
            )
    return changes


def compare_schemas(old: ParsedDescriptor, new: ParsedDescriptor) -> List[BreakingChangeCandidate]:
    changes: List[BreakingChangeCandidate] = []
    old_schemas = old.document.path("components", "schemas")
    new_schemas = new.document.path("components", "schemas")
    if old_schemas.is_missing or new_schemas.is_missing:
        return changes

    for schema_name in old_schemas.field_names():
        if not new_schemas.has(schema_name):
            changes.append(
                _candidate(
                    old,
                    new,
                    ChangeType.SCHEMA_REMOVED,
                    schema_locator(schema_name),
                    f"Schema '{schema_name}' was removed",
                )
            )
            logger.warning("BREAKING: Schema removed: %s", schema_name)
            continue
        changes.extend(
            compare_schema_properties(
                schema_name,
                old_schemas.get_field(schema_name),
                new_schemas.get_field(schema_name),
                old,
                new,
            )
        )
    return changes


def compare(old: ParsedDescriptor, new: ParsedDescriptor) -> List[BreakingChangeCandidate]:
    """Return every breaking change between ``old`` and ``new``, endpoints first."""
    changes = compare_paths(old, new)
    changes.extend(compare_schemas(old, new))
    return changes


__all__ = [
    "BreakingChangeCandidate",
    "HTTP_METHODS",
    "ParsedDescriptor",
    "compare",
    "compare_methods",
    "compare_paths",
    "compare_schema_properties",
    "compare_schemas",
    "schema_locator",
]
