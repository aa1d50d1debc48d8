"""Parameter reconciliation: merges signature parameters with injected
cross-cutting ones (authentication, pagination) without duplicates."""

from openapi_synth.config import Convention
from openapi_synth.parser.base import Parameter


def reconcile(
    intrinsic: list[Parameter],
    injected: list[Parameter],
    upgrade_required: bool = True,
) -> list[Parameter]:
    """Merge ``injected`` into ``intrinsic`` keyed by (normalized name, location).

    Intrinsic parameters are inserted first and keep their schema and any
    non-empty description. An injected parameter with an existing key only
    raises ``required`` (when ``upgrade_required``) and fills a missing
    description; a new key is appended as-is. Inputs are not mutated.
    """
    table: dict[tuple[str, str], Parameter] = {}

    for param in intrinsic:
        if param.key not in table:
            table[param.key] = param.model_copy(deep=True)

    for param in injected:
        existing = table.get(param.key)
        if existing is None:
            table[param.key] = param.model_copy(deep=True)
            continue
        if upgrade_required and param.required:
            existing.required = True
        if not existing.description and param.description:
            existing.description = param.description

    return list(table.values())


def apply_conventions(path: str, parameters: list[Parameter], conventions: list[Convention]) -> list[Parameter]:
    """Reconcile ``parameters`` with every convention matching ``path``, in table order."""
    result = list(parameters)
    for convention in conventions:
        if not convention.matches(path, result):
            continue
        injected = [spec.to_parameter() for spec in convention.parameters]
        result = reconcile(result, injected, upgrade_required=convention.upgrade_required)
    return result
