"""Concurrent duplicate-key and duplicate-row analysis of NDJSON sources."""

from __future__ import annotations

import json
import logging
import math
import os
import queue
import re
import threading
from collections import Counter, defaultdict
from decimal import Decimal
from typing import Any, Iterable

from .report import AnalysisReport, FolderDetail, LocationInfo, SummaryReport, human_size
from .source import InputSource

logger = logging.getLogger(__name__)

_MAX_LINE = 4 * 1024 * 1024
_CANCEL_CHECK_INTERVAL = 1000

_FNV_OFFSET = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3
_MASK64 = 0xFFFFFFFFFFFFFFFF

_SURROGATES = re.compile("[\ud800-\udfff]")
_JSON_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
}


def _fnv1a64(data: bytes) -> int:
    h = _FNV_OFFSET
    for byte in data:
        h ^= byte
        h = (h * _FNV_PRIME) & _MASK64
    return h


def _clean(text: str) -> str:
    return _SURROGATES.sub("\ufffd", text)


def _shortest_digits(value: float) -> tuple[str, int]:
    """Shortest round-trip digits and decimal-point position of a non-zero float."""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(map(str, digit_tuple))
    stripped = digits.rstrip("0")
    exponent += len(digits) - len(stripped)
    digits = stripped.lstrip("0")
    return digits, len(digits) + exponent


def _fmt_exponent(neg: bool, digits: str, dp: int) -> str:
    mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
    exp = dp - 1
    sign = "-" if exp < 0 else "+"
    return f"{'-' if neg else ''}{mantissa}e{sign}{abs(exp):02d}"


def _fmt_fixed(neg: bool, digits: str, dp: int) -> str:
    if dp <= 0:
        body = "0." + "0" * (-dp) + digits
    elif dp >= len(digits):
        body = digits + "0" * (dp - len(digits))
    else:
        body = digits[:dp] + "." + digits[dp:]
    return ("-" if neg else "") + body


def _format_float_plain(value: float) -> str:
    """Shortest %g-style formatting with an exponent threshold of six digits."""
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    digits, dp = _shortest_digits(value)
    exp = dp - 1
    if exp < -4 or exp >= 6:
        return _fmt_exponent(value < 0, digits, dp)
    return _fmt_fixed(value < 0, digits, dp)


def _format_float_json(value: float) -> str:
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    digits, dp = _shortest_digits(value)
    magnitude = abs(value)
    if magnitude < 1e-6 or magnitude >= 1e21:
        text = _fmt_exponent(value < 0, digits, dp)
        if len(text) >= 4 and text[-4] == "e" and text[-3] == "-" and text[-2] == "0":
            text = text[:-2] + text[-1]
        return text
    return _fmt_fixed(value < 0, digits, dp)


def _format_value(value: Any) -> str:
    """Render a decoded JSON value the way the identifier index keys it."""
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float_plain(value)
    if isinstance(value, str):
        return _clean(value)
    if isinstance(value, dict):
        items = " ".join(f"{_clean(k)}:{_format_value(value[k])}" for k in sorted(value))
        return f"map[{items}]"
    if isinstance(value, list):
        return "[" + " ".join(_format_value(v) for v in value) + "]"
    return str(value)


def _json_string(text: str) -> str:
    out = ['"']
    for ch in _clean(text):
        escaped = _JSON_ESCAPES.get(ch)
        if escaped is not None:
            out.append(escaped)
        elif ch < " " or ch in "<>&\u2028\u2029":
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def _canonical_json(value: Any) -> str:
    """Compact JSON with sorted keys and HTML-safe escaping."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float_json(value)
    if isinstance(value, str):
        return _json_string(value)
    if isinstance(value, dict):
        cleaned = {_clean(k): v for k, v in value.items()}
        members = ",".join(
            f"{_json_string(k)}:{_canonical_json(cleaned[k])}" for k in sorted(cleaned)
        )
        return "{" + members + "}"
    if isinstance(value, list):
        return "[" + ",".join(_canonical_json(v) for v in value) + "]"
    raise TypeError(f"unsupported JSON value: {value!r}")


def _parse_number(text: str) -> float:
    number = float(text)
    if math.isinf(number):
        raise ValueError(f"number {text} out of range")
    return number


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON literal {name}")


def _decode_row(line: bytes) -> dict[str, Any] | None:
    data = json.loads(
        line.decode("utf-8", errors="replace"),
        parse_int=_parse_number,
        parse_float=_parse_number,
        parse_constant=_reject_constant,
    )
    if data is not None and not isinstance(data, dict):
        raise ValueError(f"cannot decode {type(data).__name__} into a JSON object")
    return data


class Analyser:
    """Holds the state of one analysis, possibly resumed over several runs."""

    def __init__(self, unique_key: str, num_workers: int, check_key: bool,
                 check_row: bool, validate_only: bool = False) -> None:
        self.unique_key = unique_key
        self.num_workers = num_workers
        self.check_key = check_key
        self.check_row = check_row
        self.validate_only = validate_only
        self.processed_files = 0
        self.total_rows = 0
        self.current_folder = ""
        self._lock = threading.Lock()
        self._id_locations: dict[str, list[LocationInfo]] = defaultdict(list)
        self._row_hashes: dict[str, list[LocationInfo]] = defaultdict(list)
        self._keys_found_per_folder: Counter[str] = Counter()
        self._rows_processed_per_folder: Counter[str] = Counter()
        self._processed_paths: set[str] = set()

    def unprocessed_sources(self, sources: Iterable[InputSource]) -> list[InputSource]:
        """Return the sources this analyser has not yet processed to completion."""
        with self._lock:
            return [s for s in sources if s.path not in self._processed_paths]

    def run(self, sources: Iterable[InputSource],
            cancel: threading.Event | None = None) -> AnalysisReport:
        """Analyse ``sources`` with the configured number of worker threads."""
        sources = list(sources)
        if cancel is None:
            cancel = threading.Event()
        pending: queue.SimpleQueue[InputSource] = queue.SimpleQueue()
        for src in sources:
            pending.put(src)
        workers = [
            threading.Thread(target=self._worker, args=(pending, cancel), daemon=True)
            for _ in range(self.num_workers)
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()
        return self._generate_report(sources, cancel.is_set(), self.validate_only)

    def _worker(self, pending: queue.SimpleQueue, cancel: threading.Event) -> None:
        while not cancel.is_set():
            try:
                src = pending.get_nowait()
            except queue.Empty:
                return
            self._process_source(src, cancel)

    def _process_source(self, src: InputSource, cancel: threading.Event) -> None:
        folder = src.dir
        self.current_folder = folder
        try:
            stream = src.open()
        except OSError as exc:
            logger.error("Error opening source %r: %s", src.path, exc)
            return
        with stream:
            try:
                for line_number, raw in enumerate(stream, start=1):
                    if (line_number - 1) % _CANCEL_CHECK_INTERVAL == 0 and cancel.is_set():
                        return
                    if len(raw) > _MAX_LINE:
                        logger.error("Scanner error in source %r: token too long", src.path)
                        return
                    line = raw[:-1] if raw.endswith(b"\n") else raw
                    if line.endswith(b"\r"):
                        line = line[:-1]
                    if not line:
                        continue
                    with self._lock:
                        self.total_rows += 1
                        self._rows_processed_per_folder[folder] += 1
                    try:
                        data = _decode_row(line)
                    except ValueError as exc:
                        logger.error("Error decoding JSON on line %d in source %r: %s",
                                     line_number, src.path, exc)
                        continue
                    self._process_row(data, src.path, line_number)
            except OSError as exc:
                logger.error("Scanner error in source %r: %s", src.path, exc)
                return
        with self._lock:
            self._processed_paths.add(src.path)
            self.processed_files += 1

    def _process_row(self, data: dict[str, Any] | None, file_path: str,
                     line_number: int) -> None:
        if not self.check_key:
            return
        if data is not None and self.unique_key in data:
            with self._lock:
                self._keys_found_per_folder[os.path.dirname(file_path)] += 1
            if self.validate_only:
                return
            id_str = _format_value(data[self.unique_key])
            with self._lock:
                self._id_locations[id_str].append(LocationInfo(file_path, line_number))
        if self.check_row and not self.validate_only:
            digest = str(_fnv1a64(_canonical_json(data).encode("utf-8")))
            with self._lock:
                self._row_hashes[digest].append(LocationInfo(file_path, line_number))

    def _generate_report(self, sources: list[InputSource], was_cancelled: bool,
                         is_validation: bool) -> AnalysisReport:
        report = AnalysisReport()
        total_ids = 0
        unique_duplicated = 0
        dupe_ids_per_folder: Counter[str] = Counter()
        dupe_rows_per_folder: Counter[str] = Counter()
        duplicate_row_instances = 0
        folder_details: dict[str, FolderDetail] = {}
        total_bytes = 0

        with self._lock:
            if self.check_key and not is_validation:
                for id_str, locations in self._id_locations.items():
                    total_ids += len(locations)
                    if len(locations) > 1:
                        unique_duplicated += 1
                        report.duplicate_ids[id_str] = list(locations)
                        dupe_ids_per_folder.update(
                            os.path.dirname(loc.file_path) for loc in locations
                        )
            if self.check_row and not is_validation:
                for digest, locations in self._row_hashes.items():
                    if len(locations) > 1:
                        duplicate_row_instances += len(locations)
                        report.duplicate_rows[digest] = list(locations)
                        dupe_rows_per_folder.update(
                            os.path.dirname(loc.file_path) for loc in locations
                        )
            for src in sources:
                folder = src.dir
                detail = folder_details.setdefault(folder, FolderDetail())
                size = src.size
                detail.total_files += 1
                detail.total_size_bytes += size
                total_bytes += size
                if src.path in self._processed_paths:
                    detail.files_processed += 1
                    detail.processed_size_bytes += size
                detail.keys_found = self._keys_found_per_folder[folder]
                detail.rows_processed = self._rows_processed_per_folder[folder]
            processed_count = self.processed_files
            row_count = self.total_rows

        processed_bytes = sum(d.processed_size_bytes for d in folder_details.values())
        if is_validation:
            total_ids = sum(d.keys_found for d in folder_details.values())
        avg_rows = row_count / processed_count if processed_count > 0 else 0.0
        avg_files = len(sources) / len(folder_details) if folder_details else 0.0

        report.summary = SummaryReport(
            is_validation_report=is_validation,
            is_partial_report=was_cancelled,
            files_processed=processed_count,
            total_files=len(sources),
            processed_data_size_bytes=processed_bytes,
            total_data_size_overall_bytes=total_bytes,
            processed_data_size_human=human_size(processed_bytes),
            total_data_size_overall_human=human_size(total_bytes),
            total_rows_processed=row_count,
            unique_key=self.unique_key,
            total_key_occurrences=total_ids,
            unique_keys_duplicated=unique_duplicated,
            duplicate_row_instances=duplicate_row_instances,
            average_rows_per_file=avg_rows,
            average_files_per_folder=avg_files,
            duplicate_ids_per_folder=dict(dupe_ids_per_folder),
            duplicate_rows_per_folder=dict(dupe_rows_per_folder),
            folder_details=folder_details,
        )
        return report