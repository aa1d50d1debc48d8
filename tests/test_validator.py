import copy

import pytest

from openapi_synth.generator.validator import iter_nodes, repair, validate


def _doc(paths=None, schemas=None):
    return {
        "openapi": "3.0.3",
        "info": {"title": "T", "version": "1"},
        "paths": paths or {},
        "components": {"schemas": schemas or {}},
    }


def _ok_response(schema=None):
    response = {"description": "ok"}
    if schema is not None:
        response["content"] = {"application/json": {"schema": schema}}
    return {"200": response}


def _malformed_doc():
    return _doc(
        paths={
            "/things": {
                "get": {
                    "operationId": "list",
                    "responses": _ok_response({"$ref": "#/components/schemas/object"}),
                }
            }
        },
        schemas={
            "Thing": {
                "type": "object",
                "properties": {
                    "name": {"$ref": "#/components/schemas/string", "description": "Name"},
                    "count": {"$ref": "#/components/schemas/Number"},
                    "flag": {"$ref": "#/components/schemas/boolean"},
                    "tags": {"$ref": "#/components/schemas/array"},
                    "extra": {"$ref": "#/components/schemas/any"},
                },
            }
        },
    )


class TestIterNodes:
    def test_pointers(self):
        doc = {"a": {"b/c": [{"x": 1}]}}
        pointers = [p for p, _ in iter_nodes(doc)]
        assert pointers == ["", "/a", "/a/b~1c/0"]


class TestValidateReferences:
    def test_clean_document(self):
        doc = _doc(
            paths={"/things": {"get": {"responses": _ok_response({"$ref": "#/components/schemas/Thing"})}}},
            schemas={"Thing": {"type": "object", "properties": {}}},
        )
        assert validate(doc).ok

    def test_dangling_reference(self):
        doc = _doc(paths={"/things": {"get": {"responses": _ok_response({"$ref": "#/components/schemas/Missing"})}}})
        report = validate(doc)
        assert report.counts() == {"dangling-ref": 1}
        issue = report.issues[0]
        assert issue.location == "/paths/~1things/get/responses/200/content/application~1json/schema"
        assert issue.repairable is False

    def test_malformed_references(self):
        report = validate(_malformed_doc())
        assert report.counts() == {"malformed-ref": 6}
        assert all(issue.repairable for issue in report.issues)

    def test_non_local_reference(self):
        doc = _doc(schemas={"A": {"$ref": "other.yaml#/A"}})
        assert validate(doc).counts() == {"invalid-ref": 1}

    def test_local_pointer_outside_schemas(self):
        doc = _doc(schemas={"A": {"type": "object", "properties": {"b": {"$ref": "#/components/schemas/A"}}}})
        doc["components"]["parameters"] = {"P": {"name": "p", "in": "query", "schema": {"type": "string"}}}
        doc["paths"] = {
            "/x": {
                "get": {
                    "responses": _ok_response(),
                    "parameters": [{"$ref": "#/components/parameters/P"}, {"$ref": "#/components/parameters/Q"}],
                }
            }
        }
        assert validate(doc).counts() == {"dangling-ref": 1}


class TestValidateOperations:
    def test_get_with_body(self):
        doc = _doc(paths={"/things": {"get": {"requestBody": {"content": {}}, "responses": _ok_response()}}})
        report = validate(doc)
        assert report.counts() == {"get-with-body": 1}
        assert report.issues[0].repairable is True

    def test_get_with_body_not_repairable_when_post_taken(self):
        doc = _doc(
            paths={
                "/things": {
                    "get": {"requestBody": {"content": {}}, "responses": _ok_response()},
                    "post": {"responses": _ok_response()},
                }
            }
        )
        assert validate(doc).issues[0].repairable is False

    def test_missing_path_parameter(self):
        doc = _doc(paths={"/things/{id}": {"get": {"responses": _ok_response()}}})
        report = validate(doc)
        assert report.counts() == {"path-parameter": 1}
        assert "{id}" in report.issues[0].detail

    def test_path_parameter_not_required(self):
        doc = _doc(
            paths={
                "/things/{id}": {
                    "get": {
                        "parameters": [{"name": "id", "in": "path", "required": False, "schema": {"type": "string"}}],
                        "responses": _ok_response(),
                    }
                }
            }
        )
        counts = validate(doc).counts()
        assert counts["path-parameter"] == 1
        assert "schema" in counts

    def test_path_level_parameter_covers_placeholder(self):
        doc = _doc(
            paths={
                "/things/{id}": {
                    "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}],
                    "get": {"responses": _ok_response()},
                }
            }
        )
        assert validate(doc).ok

    def test_orphan_path_parameter_is_manual(self):
        doc = _doc(
            paths={
                "/things": {
                    "get": {
                        "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}],
                        "responses": _ok_response(),
                    }
                }
            }
        )
        report = validate(doc)
        assert report.counts() == {"path-parameter": 1}
        assert report.issues[0].repairable is False

    def test_duplicate_parameter(self):
        doc = _doc(
            paths={
                "/things": {
                    "get": {
                        "parameters": [
                            {"name": "shopCipher", "in": "query", "required": False, "schema": {"type": "string"}},
                            {"name": "shop_cipher", "in": "query", "required": True, "schema": {"type": "string"}},
                        ],
                        "responses": _ok_response(),
                    }
                }
            }
        )
        assert validate(doc).counts() == {"duplicate-parameter": 1}

    def test_missing_responses(self):
        doc = _doc(paths={"/things": {"get": {"operationId": "x"}}})
        counts = validate(doc).counts()
        assert counts["missing-field"] == 1
        assert "schema" in counts

    def test_unnamed_parameter(self):
        doc = _doc(paths={"/things": {"get": {"parameters": [{"name": {"x": 1}, "in": "query"}], "responses": _ok_response()}}})
        assert validate(doc).counts()["missing-field"] == 1

    def test_required_field_not_defined(self):
        doc = _doc(schemas={"Thing": {"type": "object", "properties": {"id": {"type": "string"}}, "required": ["id", "name"]}})
        report = validate(doc)
        assert report.counts() == {"required-field": 1}
        assert report.issues[0].location == "/components/schemas/Thing/required"

    def test_non_string_required_entry(self):
        doc = _doc(schemas={"A": {"type": "object", "properties": {}, "required": [{"x": 1}]}})
        report = validate(doc)
        assert report.counts()["required-field"] == 1
        issue = next(i for i in report.issues if i.kind == "required-field")
        assert issue.location == "/components/schemas/A/required"
        assert issue.repairable is True


class TestValidateSchema:
    def test_structural_defects(self):
        doc = _doc(
            paths={"/things": {"get": {"responses": {"200": "ok"}}}},
            schemas={"Thing": {"type": "object", "propertys": {}}},
        )
        del doc["info"]
        report = validate(doc)
        locations = {i.location for i in report.issues if i.kind == "schema"}
        assert locations == {"", "/paths/~1things/get/responses/200", "/components/schemas/Thing"}
        assert all(not i.repairable for i in report.issues if i.kind == "schema")

    def test_missing_info_reported(self):
        doc = _doc()
        del doc["info"]
        report = validate(doc)
        assert report.counts() == {"schema": 1}
        assert "info" in report.issues[0].detail

    @pytest.mark.parametrize("version", [None, "2.0", 3.0, "4.0.0"])
    def test_unsupported_version(self, version):
        doc = _doc()
        doc["openapi"] = version
        report = validate(doc)
        assert report.counts() == {"schema": 1}
        assert report.issues[0].location == "/openapi"

    def test_openapi_31_document(self):
        doc = _doc(paths={"/things": {"get": {"responses": _ok_response({"type": "string"})}}})
        doc["openapi"] = "3.1.0"
        assert validate(doc).ok


class TestRepair:
    def test_rewrites_malformed_references(self):
        fixed = repair(_malformed_doc())
        props = fixed["components"]["schemas"]["Thing"]["properties"]
        assert props["name"] == {"type": "string", "description": "Name"}
        assert props["count"] == {"type": "number"}
        assert props["flag"] == {"type": "boolean"}
        assert props["tags"] == {"type": "array", "items": {"type": "object"}}
        assert props["extra"] == {"type": "object", "additionalProperties": True}
        schema = fixed["paths"]["/things"]["get"]["responses"]["200"]["content"]["application/json"]["schema"]
        assert schema == {"type": "object", "additionalProperties": True}

    def test_repaired_document_validates(self):
        assert validate(repair(_malformed_doc())).issues == []

    def test_idempotent(self):
        once = repair(_malformed_doc())
        assert repair(once) == once

    def test_input_not_mutated(self):
        doc = _malformed_doc()
        before = copy.deepcopy(doc)
        repair(doc)
        assert doc == before

    def test_dangling_reference_left_for_manual_follow_up(self):
        doc = _doc(schemas={"A": {"type": "object", "properties": {"b": {"$ref": "#/components/schemas/Missing"}}}})
        fixed = repair(doc)
        assert validate(fixed).counts() == {"dangling-ref": 1}

    def test_stub_missing(self):
        doc = _doc(schemas={"A": {"type": "object", "properties": {"b": {"$ref": "#/components/schemas/Missing"}}}})
        fixed = repair(doc, stub_missing=True)
        stub = fixed["components"]["schemas"]["Missing"]
        assert stub["type"] == "object"
        assert stub["additionalProperties"] is True
        assert validate(fixed).ok
        assert repair(fixed, stub_missing=True) == fixed

    def test_get_with_body_moved_to_post(self):
        operation = {"operationId": "search", "requestBody": {"content": {}}, "responses": _ok_response()}
        fixed = repair(_doc(paths={"/things": {"get": operation}}))
        assert fixed["paths"]["/things"] == {"post": operation}

    def test_get_with_body_kept_when_post_taken(self):
        doc = _doc(
            paths={
                "/things": {
                    "get": {"requestBody": {"content": {}}, "responses": _ok_response()},
                    "post": {"responses": _ok_response()},
                }
            }
        )
        fixed = repair(doc)
        assert set(fixed["paths"]["/things"]) == {"get", "post"}
        assert validate(fixed).counts() == {"get-with-body": 1}

    def test_operation_defects(self):
        doc = _doc(
            paths={
                "/things/{id}/{sub}": {
                    "get": {
                        "parameters": [
                            {"name": "id", "in": "path", "required": False, "schema": {"type": "string"}},
                            {"name": "pageSize", "in": "query", "required": False, "schema": {"type": "integer"}},
                            {"name": "page_size", "in": "query", "required": True, "schema": {"type": "integer"}, "description": "Size"},
                        ]
                    }
                }
            },
            schemas={"Thing": {"type": "object", "properties": {}, "required": ["ghost"]}},
        )
        fixed = repair(doc)
        operation = fixed["paths"]["/things/{id}/{sub}"]["get"]
        assert operation["responses"] == {"200": {"description": "Successful response"}}
        params = operation["parameters"]
        assert [(p["name"], p["in"]) for p in params] == [("id", "path"), ("pageSize", "query"), ("sub", "path")]
        assert params[0]["required"] is True
        assert params[1]["required"] is True
        assert params[1]["description"] == "Size"
        assert "required" not in fixed["components"]["schemas"]["Thing"]
        assert validate(fixed).ok
        assert repair(fixed) == fixed

    def test_path_level_parameter_not_duplicated(self):
        doc = _doc(
            paths={
                "/things/{id}": {
                    "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}],
                    "get": {"responses": _ok_response()},
                }
            }
        )
        fixed = repair(doc)
        assert "parameters" not in fixed["paths"]["/things/{id}"]["get"]
        assert fixed == doc

    def test_non_string_required_entry_pruned(self):
        doc = _doc(schemas={"A": {"type": "object", "properties": {"id": {"type": "string"}}, "required": [{"x": 1}, "id"]}})
        fixed = repair(doc)
        assert fixed["components"]["schemas"]["A"]["required"] == ["id"]
        assert validate(fixed).ok
