"""State machine behind the interactive front end: menus, inputs, jobs and purging."""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum, auto

from .analyser import Analyser
from .jobs import AnalysisJob, _format_duration
from .purge import PurgeResult, purge_records, select_records_to_delete
from .report import AnalysisReport, LocationInfo
from .source import GCS_SCHEME, DiscoveryError, InputSource, discover_all

MENU_CHOICES = ("Start Validator", "Start Full Analysis", "Options", "Quit")
OPTION_COUNT = 10
_GCS_UNAVAILABLE = "cannot process GCS path: GCS credentials not available"


class View(Enum):
    """Screens the interactive front end can show."""

    MENU = auto()
    OPTIONS = auto()
    HELP = auto()
    INPUT_PATH = auto()
    INPUT_KEY = auto()
    INPUT_LOG_PATH = auto()
    PROCESSING = auto()
    CANCELLING = auto()
    REPORT = auto()
    PURGE_SELECTION = auto()
    PURGING = auto()


_INPUT_VIEWS = (View.INPUT_PATH, View.INPUT_KEY, View.INPUT_LOG_PATH)


@dataclass
class Settings:
    """User-adjustable settings for an interactive session."""

    path: str = ""
    key: str = "id"
    workers: int = 8
    log_path: str = "logs"
    check_key: bool = True
    check_row: bool = True
    show_folder_breakdown: bool = True
    output_txt: bool = False
    output_json: bool = False
    purge_ids: bool = False
    purge_rows: bool = False
    gcs_available: bool = False


def _split_paths(path: str) -> list[str]:
    return [p.strip() for p in path.split(",")]


class App:
    """Interactive session state, driven by key presses and job events."""

    def __init__(self, settings: Settings) -> None:
        self.path = settings.path
        self.key = settings.key
        self.workers = settings.workers
        self.log_path = settings.log_path
        self.check_key = settings.check_key
        self.check_row = settings.check_row
        self.show_folder_breakdown = settings.show_folder_breakdown
        self.output_txt = settings.output_txt
        self.output_json = settings.output_json
        self.purge_ids = settings.purge_ids
        self.purge_rows = settings.purge_rows
        self.gcs_available = settings.gcs_available

        self.inputs: dict[View, str] = {
            View.INPUT_PATH: settings.path,
            View.INPUT_KEY: settings.key,
            View.INPUT_LOG_PATH: settings.log_path,
        }
        self.view = View.MENU
        self.menu_cursor = 0
        self.options_cursor = 0
        self.error: Exception | None = None
        self.status = ""
        self.quitting = False
        self.exited = False
        self.wants_to_restart = False
        self.wants_to_start_new = False

        self.is_validation_run = False
        self.was_cancelled = False
        self.processing = False
        self.analyser: Analyser | None = None
        self.original_sources: list[InputSource] = []
        self.job: AnalysisJob | None = None
        self.final_report: AnalysisReport | None = None
        self.saved_filename: str | None = None
        self.total_elapsed = timedelta(0)
        self._started: float | None = None

        self.purge_id_keys: list[str] = []
        self.purge_row_hashes: list[str] = []
        self.purge_cursor = 0
        self.purge_selection_cursor = 0
        self.records_to_delete: dict[str, set[int]] = {}
        self.purge_stats = PurgeResult()

        if self.path:
            self.view = View.PROCESSING
            paths = self.path.split(",")
            if any(p.strip().startswith(GCS_SCHEME) for p in paths) and not self.gcs_available:
                self.view = View.INPUT_PATH
                self.error = ValueError(_GCS_UNAVAILABLE)
            else:
                self._discover(paths)

    # ----- public helpers -------------------------------------------------

    @property
    def elapsed(self) -> timedelta:
        """Time spent on the current job, including earlier runs of it."""
        if self._started is None:
            return self.total_elapsed
        return self.total_elapsed + timedelta(seconds=time.monotonic() - self._started)

    @property
    def purge_locations(self) -> list[LocationInfo]:
        """Locations of the duplicate set currently being resolved."""
        if self.final_report is None:
            return []
        if self.purge_cursor < len(self.purge_id_keys):
            return self.final_report.duplicate_ids[self.purge_id_keys[self.purge_cursor]]
        index = self.purge_cursor - len(self.purge_id_keys)
        if index < len(self.purge_row_hashes):
            return self.final_report.duplicate_rows[self.purge_row_hashes[index]]
        return []

    @property
    def can_purge(self) -> bool:
        """Whether purging may be started from the report screen."""
        report = self.final_report
        if report is None or report.summary.is_validation_report:
            return False
        has_ids = self.purge_ids and bool(report.duplicate_ids)
        has_rows = self.purge_rows and bool(report.duplicate_rows)
        return ((has_ids or has_rows) and GCS_SCHEME not in self.path
                and self.purge_stats.files_modified == 0)

    def build_settings(self) -> Settings:
        """Return the session's current settings."""
        return Settings(
            path=self.path,
            key=self.key,
            workers=self.workers,
            log_path=self.log_path,
            check_key=self.check_key,
            check_row=self.check_row,
            show_folder_breakdown=self.show_folder_breakdown,
            output_txt=self.output_txt,
            output_json=self.output_json,
            purge_ids=self.purge_ids,
            purge_rows=self.purge_rows,
            gcs_available=self.gcs_available,
        )

    # ----- input ----------------------------------------------------------

    def handle_key(self, key: str) -> None:
        """React to a key press such as ``"enter"``, ``"up"``, ``"esc"`` or ``"q"``."""
        if self.quitting:
            self.exited = True
            return
        if self.error is not None:
            self.error = None
            self.view = View.MENU
            return
        if key in ("ctrl+c", "q"):
            self._handle_quit()
            return
        if key == "esc" and self._handle_escape():
            return

        handler = {
            View.MENU: self._update_menu,
            View.OPTIONS: self._update_options,
            View.HELP: self._update_help,
            View.INPUT_PATH: self._update_input_path,
            View.INPUT_KEY: self._update_input_key,
            View.INPUT_LOG_PATH: self._update_input_log_path,
            View.REPORT: self._update_report,
            View.PURGE_SELECTION: self._update_purge_selection,
        }.get(self.view)
        if handler is not None:
            handler(key)

    def handle_text(self, text: str) -> None:
        """Replace the contents of the text field on the current input screen."""
        if self.view in _INPUT_VIEWS:
            self.inputs[self.view] = text

    # ----- events ---------------------------------------------------------

    def on_sources_found(self, sources: Iterable[InputSource]) -> None:
        """Start analysing freshly discovered sources."""
        self.original_sources = list(sources)
        self.processing = True
        self.total_elapsed = timedelta(0)
        self._started = time.monotonic()
        self.analyser = Analyser(self.key, self.workers, self.check_key, self.check_row,
                                 self.is_validation_run)
        count = len(self.original_sources)
        if self.is_validation_run:
            self.status = f"Found {count} files. Validating key '{self.key}'..."
        else:
            self.status = f"Found {count} files. Analysing..."
        self._start_job(self.original_sources)

    def on_analysis_complete(self, report: AnalysisReport | None,
                             saved_filename_base: str | None) -> None:
        """Show the finished (or partial) report."""
        self._stop_clock()
        if report is None:
            # Cancelled before any file finished: nothing to report.
            self.processing = False
            self.view = View.MENU
            return
        report.summary.total_elapsed_time = _format_duration(self.total_elapsed)
        self.final_report = report
        self.saved_filename = saved_filename_base
        self.view = View.REPORT

    def on_purge_result(self, result: PurgeResult) -> None:
        """Record the outcome of a purge and return to the report."""
        self.purge_stats = result
        self.view = View.REPORT

    def on_error(self, error: Exception) -> None:
        """Show an error; a failed job returns to the menu."""
        self.error = error
        if self.view is View.PROCESSING:
            self.view = View.MENU

    # ----- internals ------------------------------------------------------

    def _stop_clock(self) -> None:
        if self._started is not None:
            self.total_elapsed += timedelta(seconds=time.monotonic() - self._started)
            self._started = None

    def _start_job(self, sources: list[InputSource]) -> None:
        assert self.analyser is not None
        self.job = AnalysisJob(self.analyser, sources, self.log_path, self.output_txt,
                               self.output_json, self.check_key, self.check_row,
                               self.show_folder_breakdown)
        self.job.start()

    def _discover(self, paths: list[str]) -> None:
        try:
            sources = discover_all(paths)
        except DiscoveryError as exc:
            self.on_error(exc)
            return
        self.on_sources_found(sources)

    def _handle_quit(self) -> None:
        if self.view is View.PROCESSING:
            self.status = "Cancelling... generating partial report."
            self.view = View.CANCELLING
            self.was_cancelled = True
            self._stop_clock()
            if self.job is not None:
                self.job.cancel()
            return
        if self.view in (View.CANCELLING, View.PURGING):
            return
        self.quitting = True
        self.exited = True
        if self.job is not None:
            self.job.cancel()

    def _handle_escape(self) -> bool:
        if self.view in (View.HELP, View.OPTIONS, View.INPUT_PATH, View.REPORT):
            self.view = View.MENU
        elif self.view is View.INPUT_KEY:
            self.view = View.INPUT_PATH
        elif self.view is View.INPUT_LOG_PATH:
            self.view = View.OPTIONS
        elif self.view is View.PURGE_SELECTION:
            self.view = View.REPORT
            self.purge_cursor = 0
            self.purge_selection_cursor = 0
            self.records_to_delete = {}
            self.purge_id_keys = []
            self.purge_row_hashes = []
        else:
            return False
        return True

    def _update_menu(self, key: str) -> None:
        if key in ("up", "k"):
            self.menu_cursor = max(self.menu_cursor - 1, 0)
        elif key in ("down", "j"):
            self.menu_cursor = min(self.menu_cursor + 1, len(MENU_CHOICES) - 1)
        elif key == "?":
            self.view = View.HELP
        elif key == "enter":
            self.analyser = None
            self.final_report = None
            self.original_sources = []
            self.error = None
            if self.menu_cursor in (0, 1):
                self.is_validation_run = self.menu_cursor == 0
                self.view = View.INPUT_PATH
            elif self.menu_cursor == 2:
                self.view = View.OPTIONS
            else:
                self.quitting = True
                self.exited = True

    def _update_options(self, key: str) -> None:
        if key in ("up", "k"):
            self.options_cursor = max(self.options_cursor - 1, 0)
        elif key in ("down", "j"):
            self.options_cursor = min(self.options_cursor + 1, OPTION_COUNT - 1)
        elif key == "left":
            if self.options_cursor == 0 and self.workers > 1:
                self.workers -= 1
        elif key == "right":
            if self.options_cursor == 0:
                self.workers += 1
        elif key == "enter":
            toggles = {
                1: "check_key",
                2: "check_row",
                3: "show_folder_breakdown",
                4: "output_txt",
                5: "output_json",
                6: "purge_ids",
                7: "purge_rows",
            }
            name = toggles.get(self.options_cursor)
            if name is not None:
                setattr(self, name, not getattr(self, name))
            elif self.options_cursor == 8:
                self.view = View.INPUT_LOG_PATH
            elif self.options_cursor == 9:
                self.view = View.MENU

    def _update_help(self, key: str) -> None:
        self.view = View.MENU

    def _edit_input(self, key: str) -> None:
        if key == "backspace":
            self.inputs[self.view] = self.inputs[self.view][:-1]
        elif len(key) == 1 and key.isprintable():
            self.inputs[self.view] += key

    def _update_input_path(self, key: str) -> None:
        if key != "enter":
            self._edit_input(key)
            return
        self.path = self.inputs[View.INPUT_PATH]
        if not self.path:
            self.error = ValueError("path cannot be empty")
            return
        paths = _split_paths(self.path)
        if any(p.startswith(GCS_SCHEME) for p in paths) and not self.gcs_available:
            self.error = ValueError(_GCS_UNAVAILABLE)
            return
        if self.is_validation_run or self.check_key:
            self.view = View.INPUT_KEY
            return
        self.view = View.PROCESSING
        self._discover(paths)

    def _update_input_key(self, key: str) -> None:
        if key != "enter":
            self._edit_input(key)
            return
        self.key = self.inputs[View.INPUT_KEY]
        if not self.key:
            self.error = ValueError("unique key cannot be empty")
            return
        self.view = View.PROCESSING
        self._discover(_split_paths(self.path))

    def _update_input_log_path(self, key: str) -> None:
        if key != "enter":
            self._edit_input(key)
            return
        self.log_path = self.inputs[View.INPUT_LOG_PATH]
        if not self.log_path:
            self.error = ValueError("log path cannot be empty")
            return
        self.view = View.OPTIONS

    def _update_report(self, key: str) -> None:
        if key == "r":
            self.wants_to_restart = True
            self.exited = True
        elif key == "n":
            self.wants_to_restart = True
            self.wants_to_start_new = True
            self.exited = True
        elif key == "a":
            if self.final_report is not None and self.final_report.summary.is_validation_report:
                self.is_validation_run = False
                self.view = View.PROCESSING
                self.total_elapsed = timedelta(0)
                self.was_cancelled = False
                self._discover(self.path.split(","))
        elif key == "c":
            if self.was_cancelled and self.analyser is not None:
                remaining = self.analyser.unprocessed_sources(self.original_sources)
                if remaining:
                    self.status = f"Continuing analysis on {len(remaining)} remaining files..."
                    self.view = View.PROCESSING
                    self.was_cancelled = False
                    self._started = time.monotonic()
                    self._start_job(remaining)
        elif key == "p":
            if self.can_purge:
                report = self.final_report
                assert report is not None
                if self.purge_ids and report.duplicate_ids:
                    self.purge_id_keys = sorted(report.duplicate_ids)
                if self.purge_rows and report.duplicate_rows:
                    self.purge_row_hashes = sorted(report.duplicate_rows)
                self.view = View.PURGE_SELECTION

    def _update_purge_selection(self, key: str) -> None:
        locations = self.purge_locations
        if key in ("up", "k"):
            self.purge_selection_cursor = max(self.purge_selection_cursor - 1, 0)
        elif key in ("down", "j"):
            if self.purge_selection_cursor < len(locations) - 1:
                self.purge_selection_cursor += 1
        elif key == "enter":
            select_records_to_delete(locations, self.purge_selection_cursor,
                                     self.records_to_delete)
            self.purge_cursor += 1
            self.purge_selection_cursor = 0
            if self.purge_cursor >= len(self.purge_id_keys) + len(self.purge_row_hashes):
                self.view = View.PURGING
                self.status = "Purging records..."
                self.on_purge_result(purge_records(self.records_to_delete))