import copy

from models.breaking_change import ChangeType
from services.descriptor_tree import from_python
from services.spec_comparator import ParsedDescriptor, compare, schema_locator

BASE_DOCUMENT = {
    "openapi": "3.0.1",
    "paths": {
        "/api/users": {"get": {}, "post": {}},
        "/api/users/{id}": {"get": {}, "put": {}, "delete": {}},
    },
    "components": {
        "schemas": {
            "User": {
                "type": "object",
                "properties": {
                    "id": {"type": "integer"},
                    "email": {"type": "string"},
                    "age": {"type": "integer"},
                },
            },
            "Address": {"type": "object", "properties": {"city": {"type": "string"}}},
        }
    },
}


def _descriptor(document, version):
    return ParsedDescriptor(service_name="user-service", version=version, document=from_python(document))


def _pair(mutate):
    new_document = copy.deepcopy(BASE_DOCUMENT)
    mutate(new_document)
    return _descriptor(BASE_DOCUMENT, "v1"), _descriptor(new_document, "v2")


def test_identical_documents_yield_no_changes():
    old = _descriptor(BASE_DOCUMENT, "v1")
    assert compare(old, old) == []
    assert compare(old, _descriptor(copy.deepcopy(BASE_DOCUMENT), "v2")) == []


def test_compare_is_deterministic():
    def mutate(document):
        del document["paths"]["/api/users"]
        del document["components"]["schemas"]["User"]["properties"]["email"]

    old, new = _pair(mutate)
    assert compare(old, new) == compare(old, new)


def test_endpoint_removal_does_not_report_its_methods():
    old, new = _pair(lambda document: document["paths"].pop("/api/users/{id}"))

    changes = compare(old, new)

    assert [(c.change_type, c.path) for c in changes] == [(ChangeType.ENDPOINT_REMOVED, "/api/users/{id}")]
    assert changes[0].description == "Endpoint '/api/users/{id}' was removed"
    assert changes[0].old_version == "v1"
    assert changes[0].new_version == "v2"
    assert changes[0].service_name == "user-service"


def test_method_removal_names_the_verb():
    old, new = _pair(lambda document: document["paths"]["/api/users/{id}"].pop("delete"))

    changes = compare(old, new)

    assert len(changes) == 1
    assert changes[0].change_type is ChangeType.METHOD_REMOVED
    assert changes[0].path == "/api/users/{id}"
    assert changes[0].description == "HTTP method 'DELETE' removed from '/api/users/{id}'"


def test_additions_are_never_breaking():
    def mutate(document):
        document["paths"]["/api/users"]["patch"] = {}
        document["paths"]["/api/health"] = {"get": {}}
        document["components"]["schemas"]["User"]["properties"]["name"] = {"type": "string"}
        document["components"]["schemas"]["Order"] = {"properties": {}}

    old, new = _pair(mutate)
    assert compare(old, new) == []


def test_absence_is_symmetric_for_paths():
    old, new = _pair(lambda document: document.pop("paths"))

    assert compare(old, new) == []
    assert compare(new, old) == []


def test_absence_is_symmetric_for_schemas():
    old, new = _pair(lambda document: document["components"].pop("schemas"))

    assert compare(old, new) == []
    assert compare(new, old) == []


def test_schema_removal_uses_schema_locator():
    old, new = _pair(lambda document: document["components"]["schemas"].pop("Address"))

    changes = compare(old, new)

    assert len(changes) == 1
    assert changes[0].change_type is ChangeType.SCHEMA_REMOVED
    assert changes[0].path == schema_locator("Address") == "/components/schemas/Address"
    assert changes[0].description == "Schema 'Address' was removed"


def test_field_removal_and_type_change_coexist():
    def mutate(document):
        properties = document["components"]["schemas"]["User"]["properties"]
        del properties["email"]
        properties["age"] = {"type": "string"}

    old, new = _pair(mutate)
    changes = compare(old, new)

    assert [c.change_type for c in changes] == [ChangeType.FIELD_REMOVED, ChangeType.TYPE_CHANGED]
    assert changes[0].description == "Field 'email' removed from 'User' schema"
    assert changes[1].description == "Field 'age' type changed from 'integer' to 'string' in 'User' schema"
    assert all(c.path == "/components/schemas/User" for c in changes)


def test_type_change_requires_type_on_both_sides():
    def mutate(document):
        document["components"]["schemas"]["User"]["properties"]["age"] = {"$ref": "#/components/schemas/Age"}

    old, new = _pair(mutate)
    assert compare(old, new) == []


def test_old_schema_without_properties_is_skipped():
    old_document = copy.deepcopy(BASE_DOCUMENT)
    old_document["components"]["schemas"]["User"].pop("properties")
    new_document = copy.deepcopy(BASE_DOCUMENT)
    new_document["components"]["schemas"]["User"]["properties"] = {}

    assert compare(_descriptor(old_document, "v1"), _descriptor(new_document, "v2")) == []


def test_endpoint_changes_precede_schema_changes_in_document_order():
    def mutate(document):
        document["components"]["schemas"].pop("Address")
        document["paths"]["/api/users"].pop("post")
        document["paths"].pop("/api/users/{id}")

    old, new = _pair(mutate)
    changes = compare(old, new)

    assert [(c.change_type, c.path) for c in changes] == [
        (ChangeType.METHOD_REMOVED, "/api/users"),
        (ChangeType.ENDPOINT_REMOVED, "/api/users/{id}"),
        (ChangeType.SCHEMA_REMOVED, "/components/schemas/Address"),
    ]


def test_compare_does_not_mutate_inputs():
    old, new = _pair(lambda document: document["paths"].pop("/api/users"))
    before = (old.document.to_python(), new.document.to_python())

    compare(old, new)

    assert (old.document.to_python(), new.document.to_python()) == before
