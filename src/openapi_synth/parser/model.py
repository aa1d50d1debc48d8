"""Model source parser.

Reads one generated model class and turns its static field map plus the
quoted property declarations into a ModelSchema.
"""

import logging
import re

from openapi_synth.config import SynthConfig
from .base import ModelSchema, Property
from .syntax import ClassDecl, DocComment, parse_unit, evaluate_literal
from .types import map_type

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 4


def extract_model(text: str, config: SynthConfig | None = None) -> ModelSchema | None:
    """Parse a model unit; None if it declares no class or no field map."""
    config = config or SynthConfig()
    unit = parse_unit(text)

    for decl in unit.classes:
        entries = _field_map(decl, config.field_map_name)
        if entries is None:
            continue
        return _build_model(decl, entries, config)

    if unit.classes:
        logger.debug("No %s found in class %s", config.field_map_name, unit.classes[0].name)
    return None


def _field_map(decl: ClassDecl, name: str) -> list[dict] | None:
    member = decl.member(name)
    if member is None or member.kind != "property" or not member.initializer:
        return None
    value = evaluate_literal(member.initializer)
    if not isinstance(value, list):
        return None
    return [entry for entry in value if isinstance(entry, dict)]


def _build_model(decl: ClassDecl, entries: list[dict], config: SynthConfig) -> ModelSchema:
    boilerplate = [re.compile(p) for p in config.boilerplate_patterns]
    properties: dict[str, Property] = {}
    required: list[str] = []

    for entry in entries:
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            continue
        wire_name = entry.get("baseName") if isinstance(entry.get("baseName"), str) else name
        type_token = entry.get("type") if isinstance(entry.get("type"), str) else ""

        declaration = decl.member(name)
        description = None
        if declaration is not None and declaration.doc is not None:
            description = _field_description(declaration.doc, name, boilerplate)

        properties[wire_name] = Property(schema=map_type(type_token), description=description)
        optional = declaration is not None and declaration.optional
        if not optional and wire_name not in required:
            required.append(wire_name)

    return ModelSchema(
        name=decl.name,
        properties=properties,
        required=required,
        description=_model_description(decl.doc, boilerplate),
    )


def _field_description(doc: DocComment, name: str, boilerplate: list[re.Pattern]) -> str | None:
    text = doc.text.strip()
    if len(text) < MIN_DESCRIPTION_LENGTH or text == name:
        return None
    if any(p.search(text) for p in boilerplate):
        return None
    return text


def _model_description(doc: DocComment | None, boilerplate: list[re.Pattern]) -> str | None:
    """Class doc comment with generator notices removed."""
    if doc is None:
        return None
    kept = []
    for line in doc.lines:
        if not line:
            continue
        if any(p.search(line) for p in boilerplate):
            continue
        kept.append(line)
    text = " ".join(kept).strip()
    return text or None
