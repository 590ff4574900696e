"""Interactive duplicate purging: choosing records to drop and rewriting files."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, MutableMapping, Sequence
from dataclasses import dataclass

from .report import LocationInfo

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_DIR = "deleted_records"
_MAX_TOKEN = 64 * 1024


@dataclass
class PurgeResult:
    """Outcome of a purge: files rewritten, records removed, or the error that stopped it."""

    files_modified: int = 0
    records_deleted: int = 0
    error: Exception | None = None


class _ScanError(Exception):
    pass


def select_records_to_delete(
    locations: Sequence[LocationInfo],
    keep_index: int,
    records_to_delete: MutableMapping[str, set[int]] | None = None,
) -> MutableMapping[str, set[int]]:
    """Mark every location except the one at ``keep_index`` for deletion."""
    if records_to_delete is None:
        records_to_delete = {}
    for index, loc in enumerate(locations):
        if index != keep_index:
            records_to_delete.setdefault(loc.file_path, set()).add(loc.line_number)
    return records_to_delete


def _lines(path: str) -> Iterator[bytes]:
    with open(path, "rb") as fh:
        for raw in fh:
            if len(raw) > _MAX_TOKEN:
                raise _ScanError("token too long")
            line = raw[:-1] if raw.endswith(b"\n") else raw
            if line.endswith(b"\r"):
                line = line[:-1]
            yield line


def purge_records(
    records_to_delete: MutableMapping[str, set[int]],
    backup_dir: str = DEFAULT_BACKUP_DIR,
) -> PurgeResult:
    """Remove the marked lines from each file, backing the removed lines up first."""
    try:
        os.makedirs(backup_dir, exist_ok=True)
    except OSError as exc:
        return PurgeResult(error=OSError(f"could not create backup dir: {exc}"))

    result = PurgeResult()
    for file_path, line_numbers in records_to_delete.items():
        kept: list[bytes] = []
        removed: list[bytes] = []
        try:
            for line_number, line in enumerate(_lines(file_path), start=1):
                if line_number in line_numbers:
                    removed.append(line + b"\n")
                    result.records_deleted += 1
                else:
                    kept.append(line + b"\n")
        except FileNotFoundError as exc:
            logger.error("Purge: Could not open %s: %s", file_path, exc)
            continue
        except (OSError, _ScanError) as exc:
            logger.error("Purge: Error scanning %s: %s", file_path, exc)
            continue

        if removed:
            backup_path = os.path.join(
                backup_dir, f"deleted_records_{os.path.basename(file_path)}"
            )
            try:
                with open(backup_path, "wb") as fh:
                    fh.writelines(removed)
            except OSError as exc:
                logger.error("Purge: Could not write backup for %s: %s", file_path, exc)
                continue
        try:
            with open(file_path, "wb") as fh:
                fh.writelines(kept)
        except OSError as exc:
            logger.error("Purge: Could not overwrite original file %s: %s", file_path, exc)
            continue
        result.files_modified += 1
    return result