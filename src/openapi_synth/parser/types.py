"""Maps SDK type tokens onto schema types.

``map_type`` is total: any token, however malformed, yields a schema type.
Unknown shapes degrade to ``AnyType``.
"""

import re

from .base import AnyType, ArrayType, DateTime, Primitive, Reference, SchemaType

PRIMITIVES = {"string", "number", "integer", "boolean"}
DATE_TIME = "Date"
ARRAY_WRAPPERS = ("Array", "ReadonlyArray")
GENERIC_WRAPPERS = {"Promise", "Array", "ReadonlyArray", "Record", "Map", "Set", "Partial", "Required", "Readonly", "Pick", "Omit"}
NULLISH = {"null", "undefined"}

_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")


def map_type(token: str) -> SchemaType:
    """Translate one type token into a SchemaType. Never raises.

    Parentheses and array layers are peeled in a loop, so nesting depth is
    unbounded.
    """
    token = token or ""
    depth = 0
    while True:
        token = _strip_nullish(token.strip())
        if token.startswith("(") and token.endswith(")"):
            token = token[1:-1]
            continue
        inner = _array_element(token)
        if inner is None:
            break
        depth += 1
        token = inner

    schema = _map_element(token)
    for _ in range(depth):
        schema = ArrayType(items=schema)
    return schema


def _array_element(token: str) -> str | None:
    if token.endswith("[]"):
        return token[:-2]
    for wrapper in ARRAY_WRAPPERS:
        if token.startswith(f"{wrapper}<") and token.endswith(">"):
            return token[len(wrapper) + 1:-1]
    return None


def _map_element(token: str) -> SchemaType:
    if token in PRIMITIVES:
        return Primitive(type=token)
    if token == DATE_TIME:
        return DateTime()

    if _IDENTIFIER.match(token) and token[0].isupper() and token not in GENERIC_WRAPPERS:
        return Reference(name=token)

    return AnyType()


def _strip_nullish(token: str) -> str:
    """Drop ``| null`` / ``| undefined`` members; multi-member unions become ``any``."""
    if "|" not in token:
        return token
    members = [m.strip() for m in _split_union(token)]
    members = [m for m in members if m and m not in NULLISH]
    if len(members) == 1:
        return members[0]
    return "any"


def _split_union(token: str) -> list[str]:
    parts = []
    depth = 0
    current = []
    for ch in token:
        if ch in "<([{":
            depth += 1
        elif ch in ">)]}":
            depth -= 1
        if ch == "|" and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts
