"""End-to-end synthesis: SDK sources -> models/operations -> document -> report."""

import json
import logging
from pathlib import Path

import yaml
from pydantic import BaseModel

from openapi_synth.config import SynthConfig, load_config
from openapi_synth.errors import DocumentError
from openapi_synth.generator.assembler import AuditEntry, DocumentAssembler
from openapi_synth.generator.validator import ValidationReport, repair, validate
from openapi_synth.loader import load_units
from openapi_synth.parser.base import Document, ModelSchema, Operation
from openapi_synth.parser.model import extract_model
from openapi_synth.parser.operation import extract_operations

logger = logging.getLogger(__name__)


class BuildResult(BaseModel):
    """Everything one synthesis run produces."""

    document: Document
    openapi: dict
    audit: list[AuditEntry] = []
    report: ValidationReport = ValidationReport()


def extract_models(model_root: Path, config: SynthConfig) -> list[ModelSchema]:
    models = []
    for path, text in load_units(model_root, config.model_glob, config.model_exclude):
        model = extract_model(text, config)
        if model is None:
            logger.warning("No model with an %s declared in %s, skipped", config.field_map_name, path)
            continue
        models.append(model)
    return models


def extract_api_units(api_root: Path, config: SynthConfig) -> list[list[Operation]]:
    operations_by_source = []
    for path, text in load_units(api_root, config.api_glob):
        operations = extract_operations(text, config)
        if not operations:
            logger.warning("No operations found in %s", path)
        logger.debug("%s: %d operations", path.name, len(operations))
        operations_by_source.append(operations)
    return operations_by_source


def build_document(
    sdk_root: Path,
    config: SynthConfig | None = None,
    api_dir: Path | None = None,
    model_dir: Path | None = None,
    repair_document: bool = True,
    stub_missing: bool = False,
) -> BuildResult:
    """Synthesize an OpenAPI document from the SDK under ``sdk_root``.

    Models are folded before operations, each in sorted path order. The
    document is always produced; remaining defects are in ``report``.
    """
    config = config or load_config()
    model_root = model_dir or sdk_root / config.model_dir
    api_root = api_dir or sdk_root / config.api_dir

    models = extract_models(model_root, config)
    operations_by_source = extract_api_units(api_root, config)

    assembler = DocumentAssembler(config)
    document = assembler.assemble(models, operations_by_source)
    openapi = config.render(document)
    if repair_document:
        openapi = repair(openapi, stub_missing=stub_missing)

    return BuildResult(document=document, openapi=openapi, audit=assembler.audit, report=validate(openapi))


def read_document(path: Path) -> dict:
    """Load a JSON or YAML OpenAPI document."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise DocumentError(f"Cannot read document {path}: {e}") from e
    if not isinstance(data, dict):
        raise DocumentError(f"Document {path} is not a mapping")
    return data


def dump_document(doc: dict, fmt: str = "json") -> str:
    if fmt == "yaml":
        return yaml.safe_dump(doc, sort_keys=False, allow_unicode=True)
    return json.dumps(doc, indent=2, ensure_ascii=False) + "\n"


def format_for(path: Path) -> str:
    """Output format implied by a file suffix."""
    return "yaml" if path.suffix.lower() in (".yaml", ".yml") else "json"
