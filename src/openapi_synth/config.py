"""Synthesis settings: document metadata, SDK naming conventions and the
table of cross-cutting parameter injections.

Defaults live in the bundled ``conventions.yaml``; a user file is merged
over them key by key.
"""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from openapi_synth.errors import ConfigError
from openapi_synth.parser.base import Document, Parameter, Primitive, parameter_key
from openapi_synth.parser.types import map_type

DEFAULTS_PATH = Path(__file__).parent / "conventions.yaml"


class ParameterSpec(BaseModel):
    """Declarative form of an injected parameter."""

    name: str
    location: Literal["query", "path", "header"] = Field(default="query", alias="in")
    required: bool = False
    type: str = "string"
    format: str | None = None
    enum: list[str | int] | None = None
    description: str | None = None

    model_config = {"populate_by_name": True}

    def to_parameter(self) -> Parameter:
        schema = map_type(self.type)
        if isinstance(schema, Primitive) and (self.format or self.enum):
            schema = schema.model_copy(update={"format": self.format, "enum": self.enum})
        return Parameter(
            name=self.name,
            location=self.location,
            required=self.required,
            schema=schema,
            description=self.description,
        )


class Convention(BaseModel):
    """Injects ``parameters`` into operations whose path matches.

    A convention with neither ``include`` nor ``trigger_parameters`` applies
    to every path not listed in ``exclude``. Matching is by substring.
    """

    name: str
    include: list[str] = []
    exclude: list[str] = []
    trigger_parameters: list[str] = []
    upgrade_required: bool = True
    parameters: list[ParameterSpec] = []

    def matches(self, path: str, parameters: list[Parameter]) -> bool:
        if any(pattern in path for pattern in self.exclude):
            return False
        if not self.include and not self.trigger_parameters:
            return True
        if any(pattern in path for pattern in self.include):
            return True
        keys = {p.key for p in parameters}
        return any(parameter_key(name, "query") in keys for name in self.trigger_parameters)


class SecurityScheme(BaseModel):
    name: str = "AccessToken"
    header: str = "x-tts-access-token"
    description: str | None = None

    def to_openapi(self) -> dict:
        scheme = {"type": "apiKey", "in": "header", "name": self.header}
        if self.description:
            scheme["description"] = self.description
        return {self.name: scheme}


class SynthConfig(BaseModel):
    info: dict = {"title": "API", "version": "1.0.0"}
    servers: list[dict] = []
    security_scheme: SecurityScheme | None = SecurityScheme()

    api_dir: str = "api"
    model_dir: str = "model"
    api_glob: str = "*Api.ts"
    model_glob: str = "*.ts"
    model_exclude: list[str] = ["models.ts"]

    field_map_name: str = "attributeTypeMap"
    path_variables: list[str] = ["localVarPath"]
    options_parameter: str = "options"

    body_patterns: list[str] = ["Body"]
    access_token_patterns: list[str] = ["(?i)accesstoken$"]
    access_token_header: str = "x-tts-access-token"
    content_type_names: list[str] = ["contentType"]
    content_types: list[str] = ["application/json"]

    boilerplate_patterns: list[str] = []
    source_syntax_markers: list[str] = ["import ", "export ", "class ", "constructor"]
    default_description: str = "API endpoint"

    conventions: list[Convention] = []

    model_config = {"protected_namespaces": ()}

    @property
    def security(self) -> list[dict[str, list[str]]]:
        if self.security_scheme is None:
            return []
        return [{self.security_scheme.name: []}]

    def render(self, document: Document) -> dict:
        """Serialize a Document with this config's info, servers and security."""
        schemes = self.security_scheme.to_openapi() if self.security_scheme else None
        return document.to_openapi(info=self.info, servers=self.servers, security_schemes=schemes)


def _read_yaml(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Path | None = None) -> SynthConfig:
    """Load the bundled defaults, merging ``path`` over them when given."""
    data = _read_yaml(DEFAULTS_PATH)
    if path is not None:
        user = _read_yaml(path)
        if isinstance(user.get("info"), dict):
            user["info"] = {**data.get("info", {}), **user["info"]}
        data.update(user)
    try:
        return SynthConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config: {e}") from e
