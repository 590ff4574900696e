"""Background analysis jobs with progress and time-remaining estimates."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import timedelta

from .analyser import Analyser
from .report import AnalysisReport, save_and_log
from .source import InputSource

_DISCOVERING = "Discovering..."


def _format_duration(elapsed: timedelta) -> str:
    """Round to whole seconds and format as e.g. ``1h2m3s``, ``4m5s`` or ``6s``."""
    micros = elapsed // timedelta(microseconds=1)
    sign = "-" if micros < 0 else ""
    seconds = (abs(micros) + 500_000) // 1_000_000
    if seconds == 0:
        return "0s"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"


def estimate_eta(processed: int, total: int, elapsed: timedelta) -> timedelta | None:
    """Estimate remaining time, or ``None`` when there is no basis for a new estimate."""
    if total <= 0:
        return None
    if processed > 10 and processed / total < 1.0:
        per_file = elapsed // processed
        return per_file * (total - processed)
    return None


@dataclass(frozen=True)
class Progress:
    """A snapshot of a running job's progress."""

    processed: int
    total: int
    percent: float
    current_folder: str
    eta: timedelta | None

    @property
    def status(self) -> str:
        return f"Folder: {self.current_folder} | File {self.processed} of {self.total}"


class AnalysisJob:
    """Runs an analyser over sources in a background thread and saves the report."""

    def __init__(self, analyser: Analyser, sources: Iterable[InputSource], log_path: str,
                 output_txt: bool, output_json: bool, check_key: bool, check_row: bool,
                 show_folder_breakdown: bool) -> None:
        self.analyser = analyser
        self.sources = list(sources)
        self.log_path = log_path
        self.output_txt = output_txt
        self.output_json = output_json
        self.check_key = check_key
        self.check_row = check_row
        self.show_folder_breakdown = show_folder_breakdown
        self.report: AnalysisReport | None = None
        self.saved_filename_base: str | None = None
        self._already_processed = analyser.processed_files
        self._cancel = threading.Event()
        self._thread: threading.Thread | None = None
        self._error: BaseException | None = None

    @property
    def total(self) -> int:
        """Files in the whole job, counting those finished by earlier runs."""
        return self._already_processed + len(self.sources)

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def done(self) -> bool:
        return self._thread is not None and not self._thread.is_alive()

    def start(self) -> None:
        """Begin the analysis in a background thread."""
        if self._thread is not None:
            raise RuntimeError("job already started")
        self._thread = threading.Thread(target=self._execute, daemon=True)
        self._thread.start()

    def _execute(self) -> None:
        try:
            report = self.analyser.run(self.sources, self._cancel)
            if self._cancel.is_set() and self.analyser.processed_files == 0:
                return
            base = save_and_log(report, self.log_path, self.output_txt, self.output_json,
                                self.check_key, self.check_row, self.show_folder_breakdown)
            self.report, self.saved_filename_base = report, base
        except Exception as exc:  # surfaced to the caller by wait()
            self._error = exc

    def cancel(self) -> None:
        """Ask the workers to stop; a partial report follows if any file completed."""
        self._cancel.set()

    def wait(self, timeout: float | None = None) -> AnalysisReport | None:
        """Block until the job ends and return its report (``None`` if nothing was done)."""
        if self._thread is None:
            raise RuntimeError("job not started")
        self._thread.join(timeout)
        if self._thread.is_alive():
            raise TimeoutError("analysis job still running")
        if self._error is not None:
            raise self._error
        return self.report

    def progress(self, elapsed: timedelta) -> Progress:
        """Return the current progress given the time spent on the job so far."""
        processed = self.analyser.processed_files
        total = self.total
        percent = processed / total if total > 0 else 0.0
        folder = self.analyser.current_folder or _DISCOVERING
        return Progress(
            processed=processed,
            total=total,
            percent=percent,
            current_folder=folder,
            eta=estimate_eta(processed, total, elapsed),
        )