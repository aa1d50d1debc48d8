"""CLI entry point for openapi-synth."""

import json
import logging
from pathlib import Path

import click

from openapi_synth.config import load_config
from openapi_synth.errors import OpenApiSynthError
from openapi_synth.generator.validator import ValidationReport, repair, validate
from openapi_synth.pipeline import build_document, dump_document, format_for, read_document


def _echo_report(report: ValidationReport, limit: int | None = None) -> None:
    if report.ok:
        click.echo("No validation issues found.")
        return
    click.echo(f"{len(report.issues)} validation issues:")
    for kind, count in sorted(report.counts().items()):
        click.echo(f"  {kind}: {count}")
    shown = report.issues if limit is None else report.issues[:limit]
    for issue in shown:
        marker = "fixable" if issue.repairable else "manual"
        click.echo(f"  [{marker}] {issue.kind} at {issue.location}: {issue.detail}")
    if limit is not None and len(report.issues) > limit:
        click.echo(f"  ... {len(report.issues) - limit} more")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Show extraction diagnostics.")
def main(verbose: bool):
    """OpenAPI Synth: build OpenAPI documents from generated TypeScript SDKs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("sdk_root", type=click.Path(file_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file for the OpenAPI document.")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML file merged over the default conventions.")
@click.option("--api-dir", default=None, type=click.Path(file_okay=False, path_type=Path), help="API sources (default: SDK_ROOT/api).")
@click.option("--model-dir", default=None, type=click.Path(file_okay=False, path_type=Path), help="Model sources (default: SDK_ROOT/model).")
@click.option("--format", "fmt", default="auto", type=click.Choice(["auto", "json", "yaml"]), help="Output format.")
@click.option("--repair/--no-repair", "repair_document", default=True, help="Repair malformed references before writing.")
@click.option("--stub-missing", is_flag=True, help="Add open object stubs for unresolved schemas.")
@click.option("--report", "report_path", default=None, type=click.Path(path_type=Path), help="Write the validation report and audit log as JSON.")
def generate(
    sdk_root: Path,
    output: Path,
    config_path: Path | None,
    api_dir: Path | None,
    model_dir: Path | None,
    fmt: str,
    repair_document: bool,
    stub_missing: bool,
    report_path: Path | None,
):
    """Generate an OpenAPI document from an SDK source tree."""
    try:
        config = load_config(config_path)
        click.echo(f"Scanning {sdk_root}...")
        result = build_document(
            sdk_root,
            config=config,
            api_dir=api_dir,
            model_dir=model_dir,
            repair_document=repair_document,
            stub_missing=stub_missing,
        )
    except OpenApiSynthError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Found {len(result.document.schemas)} schemas.")
    click.echo(f"Found {len(result.document.operations())} operations on {len(result.document.paths)} paths.")
    for entry in result.audit:
        click.echo(f"  {entry.kind}: {entry.key} ({entry.detail})")

    if fmt == "auto":
        fmt = format_for(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(dump_document(result.openapi, fmt), encoding="utf-8")
    click.echo(f"OpenAPI document saved to {output}")

    if report_path is not None:
        payload = {
            "issues": [i.model_dump() for i in result.report.issues],
            "audit": [a.model_dump() for a in result.audit],
        }
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        click.echo(f"Report saved to {report_path}")

    _echo_report(result.report, limit=20)


@main.command(name="validate")
@click.argument("doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--strict", is_flag=True, help="Exit with status 1 when issues are found.")
def validate_cmd(doc_path: Path, strict: bool):
    """Report dangling references and other structural defects."""
    try:
        doc = read_document(doc_path)
    except OpenApiSynthError as e:
        raise click.ClickException(str(e)) from e

    report = validate(doc)
    _echo_report(report)
    if strict and not report.ok:
        click.get_current_context().exit(1)


@main.command(name="repair")
@click.argument("doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file for the repaired document.")
@click.option("--stub-missing", is_flag=True, help="Add open object stubs for unresolved schemas.")
def repair_cmd(doc_path: Path, output: Path, stub_missing: bool):
    """Rewrite malformed references and other fixable defects."""
    try:
        doc = read_document(doc_path)
    except OpenApiSynthError as e:
        raise click.ClickException(str(e)) from e

    before = validate(doc)
    fixed = repair(doc, stub_missing=stub_missing)
    after = validate(fixed)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(dump_document(fixed, format_for(output)), encoding="utf-8")
    click.echo(f"Fixed {len(before.issues) - len(after.issues)} of {len(before.issues)} issues.")
    click.echo(f"Repaired document saved to {output}")
    _echo_report(after)
