"""
Request file reader.

One identifier per line. For CSV-style lines only the first
comma-delimited field is used. Blank lines and ``#`` comments are ignored.
"""

from pathlib import Path
from typing import List
import logging

from portal_approver.exceptions import InputFileError

logger = logging.getLogger(__name__)


def parse_request_ids(lines: List[str]) -> List[str]:
    """Extract identifiers from raw lines, keeping the first occurrence."""
    ids: List[str] = []
    seen = set()
    for number, line in enumerate(lines, start=1):
        value = line.split(",", 1)[0].strip().strip('"').strip()
        if not value or value.startswith("#"):
            continue
        if value in seen:
            logger.warning(f"Line {number}: duplicate request ID {value} ignored")
            continue
        seen.add(value)
        ids.append(value)
    return ids


def read_request_ids(path: str | Path) -> List[str]:
    """
    Read request identifiers from a file.

    Args:
        path: Identifier file

    Returns:
        Identifiers in file order, without duplicates

    Raises:
        InputFileError: If the file is missing, unreadable or has no IDs
    """
    path = Path(path)
    if not path.is_file():
        raise InputFileError(f"Request file not found: {path}", path=str(path))

    try:
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise InputFileError(f"Cannot read request file {path}: {e}", path=str(path))

    ids = parse_request_ids(text.splitlines())
    if not ids:
        raise InputFileError(f"No request IDs in {path}", path=str(path))

    logger.info(f"Loaded {len(ids)} request ID(s) from {path}")
    return ids
