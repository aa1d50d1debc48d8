"""Unified data models for extracted SDK sources.

The extractors turn TypeScript SDK units into these records, the
assembler folds them into a Document, and ``to_openapi`` renders the
OpenAPI 3.0 dictionaries consumed downstream.
"""

from __future__ import annotations

import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

SCHEMA_REF_PREFIX = "#/components/schemas/"

HTTP_METHODS = ("get", "post", "put", "delete", "patch")

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")


def snake_case(name: str) -> str:
    """Convert a camelCase identifier to snake_case (``productId`` -> ``product_id``)."""
    name = _ACRONYM_BOUNDARY.sub(r"\1_\2", name)
    name = _CAMEL_BOUNDARY.sub(r"\1_\2", name)
    return name.replace("-", "_").lower()


# -- schema types -------------------------------------------------------------


class Primitive(BaseModel):
    kind: Literal["primitive"] = "primitive"
    type: Literal["string", "number", "integer", "boolean"]
    format: str | None = None
    enum: list[str | int] | None = None

    def to_openapi(self) -> dict:
        schema: dict = {"type": self.type}
        if self.format:
            schema["format"] = self.format
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


class DateTime(BaseModel):
    kind: Literal["datetime"] = "datetime"

    def to_openapi(self) -> dict:
        return {"type": "string", "format": "date-time"}


class ArrayType(BaseModel):
    kind: Literal["array"] = "array"
    items: SchemaType

    def to_openapi(self) -> dict:
        return {"type": "array", "items": self.items.to_openapi()}


class Reference(BaseModel):
    kind: Literal["ref"] = "ref"
    name: str

    def to_openapi(self) -> dict:
        return {"$ref": f"{SCHEMA_REF_PREFIX}{self.name}"}


class ObjectType(BaseModel):
    kind: Literal["object"] = "object"
    properties: dict[str, SchemaType] = {}
    required: list[str] = []
    additional_properties: bool | None = None

    def to_openapi(self) -> dict:
        schema: dict = {"type": "object"}
        if self.properties:
            schema["properties"] = {k: v.to_openapi() for k, v in self.properties.items()}
        if self.required:
            schema["required"] = list(self.required)
        if self.additional_properties is not None:
            schema["additionalProperties"] = self.additional_properties
        return schema


class AnyType(BaseModel):
    kind: Literal["any"] = "any"

    def to_openapi(self) -> dict:
        return {}


SchemaType = Annotated[
    Union[Primitive, DateTime, ArrayType, Reference, ObjectType, AnyType],
    Field(discriminator="kind"),
]

ArrayType.model_rebuild()
ObjectType.model_rebuild()


def with_description(schema: dict, description: str | None) -> dict:
    if description:
        schema = dict(schema)
        schema["description"] = description
    return schema


# -- models -------------------------------------------------------------------


class Property(BaseModel):
    """A single model field: its schema and optional description."""

    schema_: SchemaType = Field(alias="schema")
    description: str | None = None

    model_config = {"populate_by_name": True}

    def to_openapi(self) -> dict:
        return with_description(self.schema_.to_openapi(), self.description)


class ModelSchema(BaseModel):
    """A named object schema extracted from one model unit."""

    name: str
    properties: dict[str, Property] = {}
    required: list[str] = []
    description: str | None = None

    def to_openapi(self) -> dict:
        schema: dict = {"type": "object"}
        if self.description:
            schema["description"] = self.description
        schema["properties"] = {k: v.to_openapi() for k, v in self.properties.items()}
        if self.required:
            schema["required"] = list(self.required)
        return schema


# -- operations ---------------------------------------------------------------


class Parameter(BaseModel):
    """A single operation parameter (query, path or header)."""

    name: str
    location: Literal["query", "path", "header"]
    required: bool
    schema_: SchemaType = Field(alias="schema")
    description: str | None = None

    model_config = {"populate_by_name": True}

    @property
    def key(self) -> tuple[str, str]:
        return parameter_key(self.name, self.location)

    def to_openapi(self) -> dict:
        param: dict = {"name": self.name, "in": self.location, "required": self.required}
        param["schema"] = self.schema_.to_openapi()
        if self.description:
            param["description"] = self.description
        return param


def parameter_key(name: str, location: str) -> tuple[str, str]:
    """Identity of a parameter for deduplication: (normalized name, location)."""
    name = name.strip().rstrip("?")
    if location == "header":
        return name.lower(), location
    return snake_case(name), location


class RequestBody(BaseModel):
    required: bool
    schema_: SchemaType = Field(alias="schema")
    description: str | None = None

    model_config = {"populate_by_name": True}

    def to_openapi(self) -> dict:
        body: dict = {}
        if self.description:
            body["description"] = self.description
        body["required"] = self.required
        body["content"] = {"application/json": {"schema": self.schema_.to_openapi()}}
        return body


class Response(BaseModel):
    description: str
    schema_: SchemaType | None = Field(default=None, alias="schema")

    model_config = {"populate_by_name": True}

    def to_openapi(self) -> dict:
        resp: dict = {"description": self.description}
        if self.schema_ is not None:
            resp["content"] = {"application/json": {"schema": self.schema_.to_openapi()}}
        return resp


class Operation(BaseModel):
    """A single endpoint: one HTTP verb on one path template."""

    path: str  # /product/202309/products/{product_id}
    method: Literal["get", "post", "put", "delete", "patch"]
    operation_id: str
    summary: str
    description: str
    tags: list[str] = []
    parameters: list[Parameter] = []
    request_body: RequestBody | None = None
    responses: dict[str, Response] = {}
    security: list[dict[str, list[str]]] = []

    def to_openapi(self) -> dict:
        op: dict = {
            "summary": self.summary,
            "description": self.description,
            "operationId": self.operation_id,
        }
        if self.tags:
            op["tags"] = list(self.tags)
        if self.security:
            op["security"] = [dict(s) for s in self.security]
        if self.parameters:
            op["parameters"] = [p.to_openapi() for p in self.parameters]
        if self.request_body is not None:
            op["requestBody"] = self.request_body.to_openapi()
        op["responses"] = {code: r.to_openapi() for code, r in self.responses.items()}
        return op


# -- document -----------------------------------------------------------------


class Document(BaseModel):
    """Root aggregate: operations keyed by path and method, schemas by name."""

    paths: dict[str, dict[str, Operation]] = {}
    schemas: dict[str, ModelSchema] = {}

    def operations(self) -> list[Operation]:
        return [op for methods in self.paths.values() for op in methods.values()]

    def to_openapi(
        self,
        info: dict | None = None,
        servers: list[dict] | None = None,
        security_schemes: dict | None = None,
        openapi_version: str = "3.0.3",
    ) -> dict:
        doc: dict = {"openapi": openapi_version, "info": info or {"title": "API", "version": "1.0.0"}}
        if servers:
            doc["servers"] = servers
        if security_schemes:
            doc["security"] = [{name: []} for name in security_schemes]
        doc["paths"] = {
            path: {method: op.to_openapi() for method, op in methods.items()}
            for path, methods in self.paths.items()
        }
        components: dict = {"schemas": {name: m.to_openapi() for name, m in self.schemas.items()}}
        if security_schemes:
            components["securitySchemes"] = security_schemes
        doc["components"] = components
        return doc
