"""Analysis report data structures, text rendering and persistence."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)

_UNIT = 1024
_PREFIXES = "KMGTPE"


def human_size(num_bytes: int) -> str:
    """Return a human-readable binary size such as ``'1.5 KiB'``."""
    if num_bytes < _UNIT:
        return f"{num_bytes} B"
    div, exp = _UNIT, 0
    n = num_bytes // _UNIT
    while n >= _UNIT:
        div *= _UNIT
        exp += 1
        n //= _UNIT
    return f"{num_bytes / div:.1f} {_PREFIXES[exp]}iB"


@dataclass(frozen=True)
class LocationInfo:
    """Where a record was found: file path and 1-based line number."""

    file_path: str
    line_number: int

    def to_dict(self) -> dict[str, Any]:
        return {"filePath": self.file_path, "lineNumber": self.line_number}


@dataclass
class FolderDetail:
    """Aggregated metrics for a single folder or object prefix."""

    processed_size_bytes: int = 0
    total_size_bytes: int = 0
    files_processed: int = 0
    total_files: int = 0
    keys_found: int = 0
    rows_processed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "processedSizeBytes": self.processed_size_bytes,
            "totalSizeBytes": self.total_size_bytes,
            "filesProcessed": self.files_processed,
            "totalFiles": self.total_files,
            "keysFound": self.keys_found,
            "rowsProcessed": self.rows_processed,
        }


@dataclass
class SummaryReport:
    """Aggregated metrics from an analysis run."""

    is_validation_report: bool = False
    is_partial_report: bool = False
    files_processed: int = 0
    total_files: int = 0
    processed_data_size_bytes: int = 0
    total_data_size_overall_bytes: int = 0
    processed_data_size_human: str = ""
    total_data_size_overall_human: str = ""
    total_elapsed_time: str = ""
    total_rows_processed: int = 0
    unique_key: str = ""
    total_key_occurrences: int = 0
    unique_keys_duplicated: int = 0
    duplicate_row_instances: int = 0
    average_rows_per_file: float = 0.0
    average_files_per_folder: float = 0.0
    duplicate_ids_per_folder: dict[str, int] = field(default_factory=dict)
    duplicate_rows_per_folder: dict[str, int] = field(default_factory=dict)
    folder_details: dict[str, FolderDetail] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValidationReport": self.is_validation_report,
            "isPartialReport": self.is_partial_report,
            "filesProcessed": self.files_processed,
            "totalFiles": self.total_files,
            "processedDataSizeBytes": self.processed_data_size_bytes,
            "totalDataSizeOverallBytes": self.total_data_size_overall_bytes,
            "processedDataSizeHuman": self.processed_data_size_human,
            "totalDataSizeOverallHuman": self.total_data_size_overall_human,
            "totalElapsedTime": self.total_elapsed_time,
            "totalRowsProcessed": self.total_rows_processed,
            "uniqueKey": self.unique_key,
            "totalKeyOccurrences": self.total_key_occurrences,
            "uniqueKeysDuplicated": self.unique_keys_duplicated,
            "duplicateRowInstances": self.duplicate_row_instances,
            "averageRowsPerFile": self.average_rows_per_file,
            "averageFilesPerFolder": self.average_files_per_folder,
            "duplicateIDsPerFolder": dict(sorted(self.duplicate_ids_per_folder.items())),
            "duplicateRowsPerFolder": dict(sorted(self.duplicate_rows_per_folder.items())),
            "folderDetails": {
                path: detail.to_dict() for path, detail in sorted(self.folder_details.items())
            },
        }


def _header(title: str) -> str:
    # A header is followed by one blank line of margin.
    return title + "\n"


def _box(content: str) -> str:
    lines = content.split("\n")
    width = max(len(line) for line in lines)
    top = "╭" + "─" * (width + 2) + "╮"
    bottom = "╰" + "─" * (width + 2) + "╯"
    body = [f"│ {line.ljust(width)} │" for line in lines]
    return "\n".join([top, *body, bottom])


def _table(headers: list[str], rows: list[list[str]]) -> str:
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    def fmt(cells: list[str]) -> str:
        return " | ".join(cell.ljust(w) for cell, w in zip(cells, widths))

    return "\n".join([fmt(headers), *(fmt(row) for row in rows)])


def _details_block(title: str, entries: dict[str, list[LocationInfo]], heading) -> str:
    parts = ["\n\n" + _header(title)]
    for name in sorted(entries):
        locs = entries[name]
        parts.append(heading(name, len(locs)))
        parts.extend(f"  - File: {loc.file_path}, Row: {loc.line_number}\n" for loc in locs)
    return "".join(parts)


@dataclass
class AnalysisReport:
    """The complete result of an analysis run."""

    summary: SummaryReport = field(default_factory=SummaryReport)
    duplicate_ids: dict[str, list[LocationInfo]] = field(default_factory=dict)
    duplicate_rows: dict[str, list[LocationInfo]] = field(default_factory=dict)

    def render(self, full_report: bool, check_key: bool, check_row: bool,
               show_folder_breakdown: bool) -> str:
        """Format the report as text for display or saving."""
        if self.summary.is_validation_report:
            return self._render_validation(show_folder_breakdown)
        return self._render_analysis(full_report, check_key, check_row, show_folder_breakdown)

    __str__ = lambda self: self.render(True, True, True, True)  # noqa: E731

    def _render_validation(self, show_folder_breakdown: bool) -> str:
        s = self.summary
        out = [_header("--- Key Validation Summary ---") + "\n"]
        files = str(s.files_processed)
        if s.is_partial_report:
            files = f"{s.files_processed} of {s.total_files}"
        content = (
            f"Key to Find:                  '{s.unique_key}'\n"
            f"Total Files Analysed:           {files}\n"
            f"Total Rows Processed:           {s.total_rows_processed}\n"
            f"Total Keys Found:             {s.total_key_occurrences}\n"
            f"Total Elapsed Time:           {s.total_elapsed_time}"
        )
        out.append(_box(content))

        if show_folder_breakdown and s.folder_details:
            headers = ["Path", "Files Checked", "Rows Processed", "Keys Found"]
            rows = []
            for folder in sorted(s.folder_details):
                d = s.folder_details[folder]
                files_str = (f"{d.files_processed} / {d.total_files}"
                             if s.is_partial_report else str(d.total_files))
                rows.append([folder, files_str, str(d.rows_processed), str(d.keys_found)])
            out.append("\n\n" + _header("--- Per-Folder Breakdown ---") + "\n")
            out.append(_box(_table(headers, rows)))
        return "".join(out)

    def _render_analysis(self, full_report: bool, check_key: bool, check_row: bool,
                         show_folder_breakdown: bool) -> str:
        s = self.summary
        out = [_header("--- Analysis Summary ---") + "\n"]
        files = str(s.files_processed)
        data = s.processed_data_size_human
        if s.is_partial_report:
            files = f"{s.files_processed} of {s.total_files}"
            data = f"{s.processed_data_size_human} of {s.total_data_size_overall_human}"
        content = (
            f"Total Elapsed Time:           {s.total_elapsed_time}\n"
            f"Total Files Analysed:         {files}\n"
            f"Total Data Analysed:          {data}\n"
            f"Average Rows Per File (Global): {s.average_rows_per_file:.2f}\n"
            f"Average Files Per Folder:     {s.average_files_per_folder:.2f}"
        )
        if check_key:
            content += (
                f"\nTotal Occurrences of '{s.unique_key}':  {s.total_key_occurrences}"
                f"\nUnique '{s.unique_key}'s with Duplicates: {s.unique_keys_duplicated}"
            )
        if check_row:
            content += f"\nTotal Duplicate Row Instances:  {s.duplicate_row_instances}"
        out.append(_box(content))

        if show_folder_breakdown and s.folder_details:
            headers = ["Path", "Data Analysed", "Files Analysed", "Avg Rows/File",
                       "Rows Processed", "Keys Found", "Duplicate IDs", "Duplicate Rows"]
            rows = []
            for folder in sorted(s.folder_details):
                d = s.folder_details[folder]
                if s.is_partial_report:
                    data_str = (f"{human_size(d.processed_size_bytes)} / "
                                f"{human_size(d.total_size_bytes)}")
                    files_str = f"{d.files_processed} / {d.total_files}"
                else:
                    data_str = human_size(d.total_size_bytes)
                    files_str = str(d.total_files)
                avg = d.rows_processed / d.files_processed if d.files_processed > 0 else 0.0
                rows.append([
                    folder, data_str, files_str, f"{avg:.2f}",
                    str(d.rows_processed), str(d.keys_found),
                    str(s.duplicate_ids_per_folder.get(folder, 0)),
                    str(s.duplicate_rows_per_folder.get(folder, 0)),
                ])
            out.append("\n\n" + _header("--- Per-Folder Breakdown ---") + "\n")
            out.append(_box(_table(headers, rows)))

        if full_report:
            if check_key and self.duplicate_ids:
                out.append(_details_block(
                    "--- Full Duplicate ID Details ---", self.duplicate_ids,
                    lambda name, n: f"\nID '{s.unique_key}': {name} (appears {n} times)\n",
                ))
            if check_row and self.duplicate_rows:
                out.append(_details_block(
                    "--- Full Duplicate Row Details ---", self.duplicate_rows,
                    lambda name, n: f"\nRow (Hash: {name}) found {n} times:\n",
                ))
        return "".join(out)

    def to_dict(self) -> dict[str, Any]:
        """Return the report as JSON-compatible data with the wire field names."""
        return {
            "summary": self.summary.to_dict(),
            "duplicateIds": {
                key: [loc.to_dict() for loc in locs]
                for key, locs in sorted(self.duplicate_ids.items())
            },
            "duplicateRows": {
                key: [loc.to_dict() for loc in locs]
                for key, locs in sorted(self.duplicate_rows.items())
            },
        }

    def to_json(self) -> str:
        """Serialise the report as indented JSON."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    def save(self, base_filename: str, enable_txt: bool, enable_json: bool,
             check_key: bool, check_row: bool, show_folder_breakdown: bool) -> None:
        """Write the enabled report files next to ``base_filename``; failures are logged."""
        if enable_txt:
            outputs = [
                (base_filename + "_summary.txt", False, "summary"),
                (base_filename + "_details.txt", True, "details"),
            ]
            for path, full, label in outputs:
                text = self.render(full, check_key, check_row, show_folder_breakdown)
                try:
                    with open(path, "w", encoding="utf-8") as fh:
                        fh.write(text)
                except OSError as exc:
                    logger.error("Failed to save TXT %s report to %s: %s", label, path, exc)
        if enable_json:
            path = base_filename + ".json"
            try:
                with open(path, "w", encoding="utf-8") as fh:
                    fh.write(self.to_json())
            except OSError as exc:
                logger.error("Failed to save JSON report to %s: %s", path, exc)


def save_and_log(report: AnalysisReport, log_path: str, enable_txt: bool, enable_json: bool,
                 check_key: bool, check_row: bool, show_folder_breakdown: bool) -> str:
    """Save the report under a timestamped name inside ``log_path``; return the base name."""
    base_name = "report-" + datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    full_base = os.path.join(log_path, base_name)
    report.save(full_base, enable_txt, enable_json, check_key, check_row, show_folder_breakdown)
    return full_base