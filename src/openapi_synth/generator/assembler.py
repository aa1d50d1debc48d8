"""Document assembler: folds extracted models and operations into one
Document, applying convention injection and global fix-ups."""

import logging
from typing import Literal

from pydantic import BaseModel

from openapi_synth.config import SynthConfig
from openapi_synth.generator.reconcile import apply_conventions
from openapi_synth.parser.base import Document, ModelSchema, Operation

logger = logging.getLogger(__name__)


class AuditEntry(BaseModel):
    """One overwritten key or applied fix-up."""

    kind: Literal[
        "overwrite-schema",
        "overwrite-operation",
        "get-with-body",
        "description-rederived",
        "required-normalized",
    ]
    key: str
    detail: str = ""


class DocumentAssembler:
    """Builds a Document by an explicit left fold over its inputs.

    Inputs are folded in the order given; on a repeated schema name or
    ``(path, method)`` the later record wins and the overwrite is recorded
    in ``audit``.
    """

    def __init__(self, config: SynthConfig | None = None):
        self.config = config or SynthConfig()
        self.audit: list[AuditEntry] = []

    def assemble(self, models: list[ModelSchema], operations_by_source: list[list[Operation]]) -> Document:
        self.audit = []
        doc = Document()

        for model in models:
            self._add_schema(doc, self._normalize_required(model))

        for operations in operations_by_source:
            for operation in operations:
                parameters = apply_conventions(operation.path, operation.parameters, self.config.conventions)
                operation = operation.model_copy(update={"parameters": parameters})
                self._add_operation(doc, self._fix_method(operation))

        return doc

    # -- fold steps -----------------------------------------------------------

    def _add_schema(self, doc: Document, model: ModelSchema) -> None:
        if model.name in doc.schemas:
            self._record("overwrite-schema", model.name, "later model replaces earlier declaration")
        doc.schemas[model.name] = model

    def _add_operation(self, doc: Document, operation: Operation) -> None:
        methods = doc.paths.setdefault(operation.path, {})
        if operation.method in methods:
            previous = methods[operation.method].operation_id
            self._record(
                "overwrite-operation",
                f"{operation.method.upper()} {operation.path}",
                f"{operation.operation_id} replaces {previous}",
            )
        methods[operation.method] = operation

    # -- fix-ups ----------------------------------------------------------------

    def _normalize_required(self, model: ModelSchema) -> ModelSchema:
        required: list[str] = []
        for name in model.required:
            if name in model.properties and name not in required:
                required.append(name)
        if required == model.required:
            return model
        self._record("required-normalized", model.name, f"{model.required} -> {required}")
        return model.model_copy(update={"required": required})

    def _fix_method(self, operation: Operation) -> Operation:
        """Reclassify GET-with-body as POST and clean leaked source text."""
        if operation.method != "get" or operation.request_body is None:
            return operation

        key = f"GET {operation.path}"
        self._record("get-with-body", key, f"{operation.operation_id} moved to POST")
        update: dict = {"method": "post"}

        description = self.rederive_description(operation.description)
        if description != operation.description:
            self._record("description-rederived", key, description)
            update["description"] = description
        return operation.model_copy(update=update)

    def rederive_description(self, description: str) -> str:
        """First prose line of a description that leaked source syntax."""
        markers = self.config.source_syntax_markers
        if not any(marker in description for marker in markers):
            return description
        for line in description.splitlines():
            line = line.strip()
            if line and not any(marker in line for marker in markers):
                return line
        return self.config.default_description

    def _record(self, kind: str, key: str, detail: str) -> None:
        entry = AuditEntry(kind=kind, key=key, detail=detail)
        if kind.startswith("overwrite"):
            logger.warning("%s: %s (%s)", kind, key, detail)
        else:
            logger.info("%s: %s (%s)", kind, key, detail)
        self.audit.append(entry)
