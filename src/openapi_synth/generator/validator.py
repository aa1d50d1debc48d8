"""Validates assembled OpenAPI documents and repairs the defects that have a
safe rewrite.

Works on the serialized (plain dict) document, so it can be pointed at any
OpenAPI file, not only freshly synthesized ones.
"""

import copy
from collections.abc import Iterator

from jsonschema.validators import validator_for
from openapi_spec_validator.schemas import schema_v30, schema_v31
from pydantic import BaseModel

from openapi_synth.parser.base import HTTP_METHODS, SCHEMA_REF_PREFIX, parameter_key
from openapi_synth.parser.operation import path_placeholders

# Rewrites for references that name a primitive type instead of a schema.
PRIMITIVE_REFS = {
    "object": {"type": "object", "additionalProperties": True},
    "string": {"type": "string"},
    "number": {"type": "number"},
    "integer": {"type": "integer"},
    "boolean": {"type": "boolean"},
    "array": {"type": "array", "items": {"type": "object"}},
    "any": {"type": "object", "additionalProperties": True},
}

DEFAULT_RESPONSES = {"200": {"description": "Successful response"}}

# Metaschemas keyed by the "major.minor" of the document's openapi field.
METASCHEMAS = {"3.0": schema_v30, "3.1": schema_v31}
MAX_DETAIL = 200

_SCHEMA_VALIDATORS: dict = {}


class Issue(BaseModel):
    kind: str  # dangling-ref / malformed-ref / invalid-ref / get-with-body / ...
    location: str  # JSON pointer
    detail: str
    repairable: bool = False


class ValidationReport(BaseModel):
    issues: list[Issue] = []

    @property
    def ok(self) -> bool:
        return not self.issues

    def counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for issue in self.issues:
            counts[issue.kind] = counts.get(issue.kind, 0) + 1
        return counts


# -- traversal ------------------------------------------------------------------


def _escape(segment) -> str:
    return str(segment).replace("~", "~0").replace("/", "~1")


def iter_nodes(node, pointer: str = "") -> Iterator[tuple[str, dict]]:
    """Depth-first walk yielding (JSON pointer, dict) for every mapping node."""
    if isinstance(node, dict):
        yield pointer, node
        for key, value in node.items():
            yield from iter_nodes(value, f"{pointer}/{_escape(key)}")
    elif isinstance(node, list):
        for idx, value in enumerate(node):
            yield from iter_nodes(value, f"{pointer}/{idx}")


def _resolve_pointer(doc: dict, ref: str) -> bool:
    node = doc
    for raw in ref[2:].split("/") if ref != "#" else []:
        segment = raw.replace("~1", "/").replace("~0", "~")
        if isinstance(node, dict) and segment in node:
            node = node[segment]
        elif isinstance(node, list) and segment.isdigit() and int(segment) < len(node):
            node = node[int(segment)]
        else:
            return False
    return True


def _schemas(doc: dict) -> dict:
    components = doc.get("components")
    if not isinstance(components, dict):
        return {}
    schemas = components.get("schemas")
    return schemas if isinstance(schemas, dict) else {}


def _operations(doc: dict) -> Iterator[tuple[str, dict, str, dict]]:
    paths = doc.get("paths")
    if not isinstance(paths, dict):
        return
    for path, item in paths.items():
        if not isinstance(item, dict):
            continue
        for method, operation in list(item.items()):
            if method in HTTP_METHODS and isinstance(operation, dict):
                yield path, item, method, operation


def _op_pointer(path: str, method: str) -> str:
    return f"/paths/{_escape(path)}/{method}"


def _path_level_names(item: dict) -> set[str]:
    """Names of path parameters declared on the path item itself."""
    params = item.get("parameters")
    if not isinstance(params, list):
        return set()
    return {
        p["name"]
        for p in params
        if isinstance(p, dict) and p.get("in") == "path" and isinstance(p.get("name"), str)
    }


def _named(param: dict) -> bool:
    return isinstance(param.get("name"), str) and bool(param["name"]) and isinstance(param.get("in"), str)


def _metaschema_validator(version: str):
    validator = _SCHEMA_VALIDATORS.get(version)
    if validator is None:
        schema = dict(METASCHEMAS[version])
        validator = validator_for(schema)(schema)
        _SCHEMA_VALIDATORS[version] = validator
    return validator


def _error_sort_key(error) -> tuple[str, ...]:
    return tuple(str(part) for part in error.absolute_path)


# -- checks ---------------------------------------------------------------------


def check_schema(doc: dict) -> list[Issue]:
    """Conformance to the OpenAPI metaschema of the declared version."""
    version = doc.get("openapi")
    major_minor = ".".join(version.split(".")[:2]) if isinstance(version, str) else None
    if major_minor not in METASCHEMAS:
        return [Issue(kind="schema", location="/openapi", detail=f"Unsupported OpenAPI version {version!r}")]

    validator = _metaschema_validator(major_minor)
    issues = []
    for error in sorted(validator.iter_errors(doc), key=_error_sort_key):
        pointer = "".join(f"/{_escape(part)}" for part in error.absolute_path)
        detail = error.message
        if len(detail) > MAX_DETAIL:
            detail = detail[: MAX_DETAIL - 3] + "..."
        issues.append(Issue(kind="schema", location=pointer, detail=detail))
    return issues


def check_references(doc: dict) -> list[Issue]:
    """Dangling, malformed (primitive-named) and non-local schema references."""
    issues = []
    schemas = _schemas(doc)
    for pointer, node in iter_nodes(doc):
        if "$ref" not in node:
            continue
        ref = node["$ref"]
        if not isinstance(ref, str) or not ref.startswith("#"):
            issues.append(Issue(kind="invalid-ref", location=pointer, detail=f"Unsupported reference {ref!r}"))
            continue
        if not ref.startswith(SCHEMA_REF_PREFIX):
            if not _resolve_pointer(doc, ref):
                issues.append(Issue(kind="dangling-ref", location=pointer, detail=f"Unresolved reference {ref}"))
            continue
        name = ref[len(SCHEMA_REF_PREFIX):]
        if name in schemas:
            continue
        if name.lower() in PRIMITIVE_REFS:
            issues.append(
                Issue(
                    kind="malformed-ref",
                    location=pointer,
                    detail=f"Reference to primitive type name {name!r}",
                    repairable=True,
                )
            )
        else:
            issues.append(Issue(kind="dangling-ref", location=pointer, detail=f"Missing schema {name}"))
    return issues


def check_operations(doc: dict) -> list[Issue]:
    """Method, parameter and response defects of every operation."""
    issues = []
    for path, item, method, operation in _operations(doc):
        pointer = _op_pointer(path, method)

        if not operation.get("responses"):
            issues.append(Issue(kind="missing-field", location=pointer, detail="Operation has no responses", repairable=True))

        if method == "get" and operation.get("requestBody"):
            issues.append(
                Issue(
                    kind="get-with-body",
                    location=pointer,
                    detail="GET operation declares a request body",
                    repairable="post" not in item,
                )
            )

        seen: set[tuple[str, str]] = set()
        path_params: set[str] = set()
        for idx, param in enumerate(operation.get("parameters") or []):
            param_pointer = f"{pointer}/parameters/{idx}"
            if not isinstance(param, dict) or "$ref" in param:
                continue
            if not _named(param) or param["in"] not in ("query", "path", "header", "cookie"):
                issues.append(Issue(kind="missing-field", location=param_pointer, detail="Parameter lacks name or location"))
                continue
            key = parameter_key(param["name"], param["in"])
            if key in seen:
                issues.append(
                    Issue(
                        kind="duplicate-parameter",
                        location=param_pointer,
                        detail=f"Duplicate parameter {param['name']} in {param['in']}",
                        repairable=True,
                    )
                )
            seen.add(key)
            if param["in"] == "path":
                path_params.add(param["name"])
                if param.get("required") is not True:
                    issues.append(
                        Issue(
                            kind="path-parameter",
                            location=param_pointer,
                            detail=f"Path parameter {param['name']} is not required",
                            repairable=True,
                        )
                    )

        placeholders = set(path_placeholders(path))
        for name in sorted(placeholders - path_params - _path_level_names(item)):
            issues.append(
                Issue(
                    kind="path-parameter",
                    location=pointer,
                    detail=f"Placeholder {{{name}}} has no path parameter",
                    repairable=True,
                )
            )
        for name in sorted(path_params - placeholders):
            issues.append(
                Issue(kind="path-parameter", location=pointer, detail=f"Path parameter {name} has no placeholder")
            )
    return issues


def check_required_fields(doc: dict) -> list[Issue]:
    """Object schemas whose ``required`` names properties they do not define."""
    issues = []
    for pointer, node in iter_nodes(doc):
        required = node.get("required")
        properties = node.get("properties")
        if not isinstance(required, list) or not isinstance(properties, dict):
            continue
        for name in required:
            if not isinstance(name, str) or name not in properties:
                issues.append(
                    Issue(
                        kind="required-field",
                        location=f"{pointer}/required",
                        detail=f"Required property {name!r} is not defined",
                        repairable=True,
                    )
                )
    return issues


def validate(doc: dict) -> ValidationReport:
    """Run all checks and return the combined report.

    Metaschema conformance comes first, then the reference, operation and
    ``required`` checks.
    """
    issues: list[Issue] = []
    issues.extend(check_schema(doc))
    issues.extend(check_references(doc))
    issues.extend(check_operations(doc))
    issues.extend(check_required_fields(doc))
    return ValidationReport(issues=issues)


# -- repair -----------------------------------------------------------------------


def repair(doc: dict, stub_missing: bool = False) -> dict:
    """Return a repaired deep copy of ``doc``.

    Primitive-named references become inline schemas, GET-with-body moves to
    POST when that slot is free, duplicate parameters are merged, path
    parameters are made required and completed from the template, and
    ``required`` lists are pruned to defined properties. With
    ``stub_missing`` every dangling schema reference gets an open object
    stub. Repairing twice changes nothing further.
    """
    doc = copy.deepcopy(doc)
    _repair_references(doc, stub_missing)
    _repair_operations(doc)
    _repair_required_fields(doc)
    return doc


def _repair_references(doc: dict, stub_missing: bool) -> None:
    schemas = _schemas(doc)
    missing: list[str] = []
    nodes = [node for _, node in iter_nodes(doc) if isinstance(node.get("$ref"), str)]

    for node in nodes:
        ref = node["$ref"]
        if not ref.startswith(SCHEMA_REF_PREFIX):
            continue
        name = ref[len(SCHEMA_REF_PREFIX):]
        if name in schemas:
            continue
        replacement = PRIMITIVE_REFS.get(name.lower())
        if replacement is None:
            if name not in missing:
                missing.append(name)
            continue
        siblings = {k: v for k, v in node.items() if k != "$ref"}
        node.clear()
        node.update(copy.deepcopy(replacement))
        node.update(siblings)

    if stub_missing and missing:
        components = doc.setdefault("components", {})
        target = components.setdefault("schemas", {})
        for name in missing:
            target[name] = {
                "type": "object",
                "additionalProperties": True,
                "description": f"Placeholder for unresolved schema {name}",
            }


def _repair_operations(doc: dict) -> None:
    for path, item, method, operation in list(_operations(doc)):
        if not operation.get("responses"):
            operation["responses"] = copy.deepcopy(DEFAULT_RESPONSES)

        params = operation.get("parameters")
        if isinstance(params, list):
            operation["parameters"] = _merge_parameters(params)

        declared = _path_level_names(item) | {
            p["name"]
            for p in operation.get("parameters") or []
            if isinstance(p, dict) and _named(p) and p["in"] == "path"
        }
        for name in path_placeholders(path):
            if name not in declared:
                operation.setdefault("parameters", []).append(
                    {"name": name, "in": "path", "required": True, "schema": {"type": "string"}}
                )

        if method == "get" and operation.get("requestBody") and "post" not in item:
            item["post"] = item.pop("get")


def _merge_parameters(params: list) -> list:
    merged: list = []
    index: dict[tuple[str, str], dict] = {}
    for param in params:
        if not isinstance(param, dict) or "$ref" in param or not _named(param):
            merged.append(param)
            continue
        if param["in"] == "path":
            param["required"] = True
        key = parameter_key(param["name"], param["in"])
        existing = index.get(key)
        if existing is None:
            index[key] = param
            merged.append(param)
            continue
        if param.get("required"):
            existing["required"] = True
        if not existing.get("description") and param.get("description"):
            existing["description"] = param["description"]
    return merged


def _repair_required_fields(doc: dict) -> None:
    for _, node in iter_nodes(doc):
        required = node.get("required")
        properties = node.get("properties")
        if not isinstance(required, list) or not isinstance(properties, dict):
            continue
        pruned = []
        for name in required:
            if isinstance(name, str) and name in properties and name not in pruned:
                pruned.append(name)
        if pruned:
            node["required"] = pruned
        else:
            del node["required"]
