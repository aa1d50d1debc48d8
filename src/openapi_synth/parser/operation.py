"""API source parser.

Turns each public ``Promise``-returning method of a generated API class
into an Operation: HTTP verb and path from the method body, parameters
from the signature, response schema from the declared result type.
"""

import logging
import re

from openapi_synth.config import SynthConfig
from .base import (
    HTTP_METHODS,
    ObjectType,
    Operation,
    Parameter,
    Primitive,
    RequestBody,
    Response,
    snake_case,
)
from .syntax import ClassDecl, Member, parse_parameter, parse_unit
from .tokens import Token, find_matching, render, split_top_level
from .types import map_type

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{([^{}]+)\}")

ERROR_ENVELOPE = ObjectType(
    properties={
        "code": Primitive(type="number"),
        "message": Primitive(type="string"),
        "request_id": Primitive(type="string"),
    }
)


def extract_operations(text: str, config: SynthConfig | None = None) -> list[Operation]:
    """Parse every operation declared by the exported classes of one API unit."""
    config = config or SynthConfig()
    unit = parse_unit(text)
    operations: list[Operation] = []

    for decl in unit.classes:
        for member in decl.methods():
            if not member.is_public or member.name == "constructor":
                continue
            result_type = promise_result(member.return_type)
            if result_type is None:
                continue
            operation = _build_operation(decl, member, result_type, config)
            if operation is not None:
                operations.append(operation)

    return operations


def api_tag(class_name: str) -> str:
    """Group name for an API class: ``ProductV202309Api`` -> ``Product``."""
    tag = re.sub(r"V\d+Api$", "", class_name)
    tag = re.sub(r"Api$", "", tag)
    return tag or class_name


def path_placeholders(path: str) -> list[str]:
    """``{name}`` placeholders in template order, without duplicates."""
    seen: list[str] = []
    for name in PLACEHOLDER.findall(path):
        if name not in seen:
            seen.append(name)
    return seen


def humanize(identifier: str) -> str:
    """Turn a method name into a sentence: ``getProductDetail`` -> ``Get product detail``."""
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", identifier)
    spaced = spaced.replace("_", " ").strip()
    if not spaced:
        return identifier
    return spaced[0].upper() + spaced[1:].lower()


def promise_result(return_type: list[Token]) -> str | None:
    """Success type of ``Promise<T>`` or ``Promise<{ response: ...; body: T }>``.

    None when the member does not return a Promise.
    """
    if len(return_type) < 2 or not return_type[0].is_ident("Promise") or not return_type[1].is_punct("<"):
        return None
    close = find_matching(return_type, 1)
    inner = return_type[2:close]
    if not inner:
        return "any"
    if inner[0].is_punct("{"):
        end = find_matching(inner, 0)
        for entry in _type_members(inner[1:end]):
            if len(entry) > 2 and entry[0].is_ident("body") and entry[1].is_punct(":"):
                return render(entry[2:])
    return render(inner)


def _type_members(tokens: list[Token]) -> list[list[Token]]:
    members = []
    for part in split_top_level(tokens, ";"):
        members.extend(split_top_level(part, ","))
    return members


def _http_method(body: list[Token]) -> str | None:
    for i in range(len(body) - 2):
        if body[i].is_ident("method") and body[i + 1].is_punct(":") and body[i + 2].kind == "string":
            verb = body[i + 2].value.lower()
            if verb in HTTP_METHODS:
                return verb
    return None


def _path_template(body: list[Token], variables: list[str]) -> str | None:
    for i in range(len(body) - 1):
        tok = body[i]
        if tok.kind != "ident" or tok.text not in variables:
            continue
        if not body[i + 1].is_punct("=") or (i + 2 < len(body) and body[i + 2].is_punct("=")):
            continue
        for tok in body[i + 2:]:
            if tok.is_punct(";"):
                break
            if tok.kind == "string" and tok.value.startswith("/"):
                return tok.value
    return None


def _matches_any(patterns: list[str], name: str) -> bool:
    return any(re.search(p, name) for p in patterns)


def _build_operation(decl: ClassDecl, member: Member, result_type: str, config: SynthConfig) -> Operation | None:
    where = f"{decl.name}.{member.name}"

    path = _path_template(member.body, config.path_variables)
    if path is None:
        logger.warning("No path assignment in %s, skipped", where)
        return None

    method = _http_method(member.body)
    if method is None:
        logger.debug("No HTTP method literal in %s, defaulting to GET", where)
        method = "get"

    placeholders = path_placeholders(path)
    doc = member.doc
    parameters: dict[tuple[str, str], Parameter] = {}
    request_body: RequestBody | None = None

    for segment in split_top_level(member.params):
        decl_param = parse_parameter(segment)
        if decl_param is None:
            logger.debug("Unparseable parameter %r in %s", render(segment), where)
            continue
        name = decl_param.name
        if name == config.options_parameter:
            continue
        description = doc.param(name) if doc else None

        if _matches_any(config.body_patterns, name):
            if request_body is not None:
                logger.warning("Multiple body parameters in %s, keeping %s", where, name)
            request_body = RequestBody(
                required=not decl_param.optional,
                schema=map_type(decl_param.type_text),
                description=description or "Request body",
            )
            continue

        if name in config.content_type_names:
            param = Parameter(
                name="Content-Type",
                location="header",
                required=not decl_param.optional,
                schema=Primitive(type="string", enum=list(config.content_types) or None),
                description=description or None,
            )
        elif _matches_any(config.access_token_patterns, name):
            param = Parameter(
                name=config.access_token_header,
                location="header",
                required=True,
                schema=Primitive(type="string"),
                description=description or None,
            )
        elif snake_case(name) in placeholders or name in placeholders:
            param = Parameter(
                name=name if name in placeholders else snake_case(name),
                location="path",
                required=True,
                schema=map_type(decl_param.type_text),
                description=description or None,
            )
        else:
            param = Parameter(
                name=snake_case(name),
                location="query",
                required=not decl_param.optional,
                schema=map_type(decl_param.type_text),
                description=description or None,
            )

        if param.key in parameters:
            logger.warning("Duplicate parameter %s (%s) in %s, keeping the first", param.name, param.location, where)
            continue
        parameters[param.key] = param

    declared_path = {p.name for p in parameters.values() if p.location == "path"}
    for placeholder in placeholders:
        if placeholder not in declared_path:
            logger.warning("Placeholder {%s} in %s has no parameter, synthesized", placeholder, where)
            param = Parameter(name=placeholder, location="path", required=True, schema=Primitive(type="string"))
            parameters[param.key] = param

    first_line = doc.first_line if doc else ""
    tagged_summary = doc.tag("summary") if doc else None
    description = first_line or tagged_summary or humanize(member.name)

    return Operation(
        path=path,
        method=method,
        operation_id=f"{decl.name}_{member.name}",
        summary=tagged_summary or description,
        description=description,
        tags=[api_tag(decl.name)],
        parameters=list(parameters.values()),
        request_body=request_body,
        responses={
            "200": Response(description="Successful response", schema=map_type(result_type)),
            "400": Response(description="Bad Request", schema=ERROR_ENVELOPE),
            "401": Response(description="Unauthorized - Invalid or missing access token"),
            "500": Response(description="Internal Server Error"),
        },
        security=config.security,
    )
