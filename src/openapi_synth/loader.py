"""Reads SDK source units from disk in a fixed, documented order."""

import logging
from pathlib import Path

from openapi_synth.errors import SourceError

logger = logging.getLogger(__name__)


def load_units(root: Path, pattern: str, exclude: list[str] | None = None) -> list[tuple[Path, str]]:
    """Read every file under ``root`` matching ``pattern``, recursively.

    Files are returned sorted by their POSIX path relative to ``root`` so
    that last-write-wins merges downstream are reproducible. A missing or
    unreadable root is fatal; a single undecodable file is skipped.
    """
    if not root.is_dir():
        raise SourceError(f"Source directory not found: {root}")

    exclude = set(exclude or [])
    try:
        files = sorted(
            (p for p in root.rglob(pattern) if p.is_file() and p.name not in exclude),
            key=lambda p: p.relative_to(root).as_posix(),
        )
    except OSError as e:
        raise SourceError(f"Cannot read source directory {root}: {e}") from e

    units = []
    for path in files:
        try:
            units.append((path, path.read_text(encoding="utf-8")))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Skipping unreadable source %s: %s", path, e)
    logger.debug("Loaded %d units from %s", len(units), root)
    return units
