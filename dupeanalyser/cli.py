"""Command-line entry point: flag parsing, headless runs and the interactive loop."""

from __future__ import annotations

import argparse
import logging
import os
import sys

from .app import App, Settings, View
from .headless import HeadlessConfig
from .headless import run as run_headless
from .views import render

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}
_TEXT_VIEWS = (View.INPUT_PATH, View.INPUT_KEY, View.INPUT_LOG_PATH)
_JOB_VIEWS = (View.PROCESSING, View.CANCELLING)
_POLL_SECONDS = 0.5
_LOG_FORMAT = "%(asctime)s %(message)s"
_LOG_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def build_parser() -> argparse.ArgumentParser:
    """Build the parser for the command-line flags."""
    defaults = Settings()
    parser = argparse.ArgumentParser(
        prog="dupe-analyser",
        allow_abbrev=False,
        description="Find duplicate keys and duplicate rows in JSON / NDJSON files.",
    )

    def add(name: str, help_text: str, **kwargs) -> None:
        dest = name.replace(".", "_").replace("-", "_")
        parser.add_argument(f"-{name}", f"--{name}", dest=dest, help=help_text, **kwargs)

    def add_bool(name: str, default: bool, help_text: str) -> None:
        add(name, help_text, nargs="?", const=True, default=default,
            type=_parse_bool, metavar="BOOL")

    add("path", "Comma-separated list of paths to analyse (local or GCS)",
        default=defaults.path)
    add("key", "JSON key for uniqueness check", default=None)
    add("workers", "Number of concurrent workers", type=int, default=defaults.workers)
    add("log-path", "Directory to save logs and reports", default=defaults.log_path)
    add_bool("check.key", defaults.check_key, "Enable duplicate key check")
    add_bool("check.row", defaults.check_row, "Enable duplicate row check (hashing)")
    add_bool("show.folders", defaults.show_folder_breakdown,
             "Show per-folder breakdown table in summary report")
    add_bool("output.txt", defaults.output_txt, "Enable .txt report output")
    add_bool("output.json", defaults.output_json, "Enable .json report output")
    add_bool("purge-ids", defaults.purge_ids,
             "Enable interactive purging of duplicate IDs (local files only)")
    add_bool("purge-rows", defaults.purge_rows,
             "Enable interactive purging of duplicate rows (local files only)")
    add_bool("headless", False, "Run without TUI and print report to stdout")
    add_bool("validate", False, "Run a key validation test and exit (headless only)")
    add("output", "Output format for headless mode (txt or json)", default="txt")
    parser.add_argument("paths", nargs="*", help="Paths to analyse (interactive mode)")
    return parser


def _show(text: str) -> None:
    sys.stdout.write(text + "\n")
    sys.stdout.flush()


def _wait_for_job(app: App) -> None:
    """Follow running jobs until the application leaves the progress screens."""
    while app.view in _JOB_VIEWS and app.job is not None:
        job = app.job
        try:
            try:
                report = job.wait(_POLL_SECONDS)
            except TimeoutError:
                if app.view is View.PROCESSING:
                    _show(render(app))
                continue
        except KeyboardInterrupt:
            app.handle_key("ctrl+c")
            _show(render(app))
            continue
        except Exception as exc:
            app.on_error(exc)
            return
        app.on_analysis_complete(report, job.saved_filename_base)


def _keys_for(app: App, line: str) -> list[str]:
    """Turn one line of input into key presses for the current screen."""
    text = line.strip()
    if app.view in _TEXT_VIEWS and app.error is None:
        if text in ("q", "ctrl+c", "esc"):
            return [text]
        if text:
            app.handle_text(text)
        return ["enter"]
    if not text:
        return ["enter"]
    return text.split()


def run_interactive(settings: Settings) -> tuple[Settings, bool, bool]:
    """Run an interactive session on the terminal.

    Returns the final settings, whether to restart and whether to start a new job.
    """
    app = App(settings)
    while not app.exited:
        _wait_for_job(app)
        _show(render(app))
        try:
            line = sys.stdin.readline()
        except KeyboardInterrupt:
            line = "ctrl+c\n"
        if not line:
            if app.job is not None:
                app.job.cancel()
            break
        for key in _keys_for(app, line):
            app.handle_key(key)
            if app.exited or app.view in _JOB_VIEWS:
                break
    return app.build_settings(), app.wants_to_restart, app.wants_to_start_new


def _run_headless_mode(args: argparse.Namespace, settings: Settings, key_is_set: bool) -> int:
    if not settings.path:
        print("Error: -path flag is required for headless/validation mode.")
        return 1
    if not settings.key:
        print("Error: -key flag is required for validation mode.")
        return 1
    if args.headless and not args.validate and not settings.check_key \
            and not settings.check_row:
        print("Error: At least one check (-check.key or -check.row) must be enabled "
              "for a full analysis.")
        return 1
    if settings.check_key and not key_is_set:
        print("Warning: -key flag not set, defaulting to 'id'.")

    config = HeadlessConfig(
        paths=settings.path,
        key=settings.key,
        workers=settings.workers,
        log_path=settings.log_path,
        output_format=args.output,
        validate_only=args.validate,
        check_key=settings.check_key,
        check_row=settings.check_row,
        show_folder_breakdown=settings.show_folder_breakdown,
        enable_txt_output=settings.output_txt,
        enable_json_output=settings.output_json,
    )
    run_headless(config)
    return 0


def _run_session(settings: Settings) -> int:
    if not settings.check_key and not settings.check_row:
        print("Error: At least one check (-check.key or -check.row) must be enabled.")
        return 1
    log_path = settings.log_path
    current = settings
    while True:
        final, restart, start_new = run_interactive(current)
        if not restart:
            return 0
        current = Settings(log_path=log_path) if start_new else final


def main(argv: list[str] | None = None) -> int:
    """Parse flags and run the analysis headless or interactively; return the exit code."""
    args = build_parser().parse_args(argv)
    key_is_set = args.key is not None
    settings = Settings(
        path=args.path,
        key=args.key if key_is_set else Settings().key,
        workers=args.workers,
        log_path=args.log_path,
        check_key=args.check_key,
        check_row=args.check_row,
        show_folder_breakdown=args.show_folders,
        output_txt=args.output_txt,
        output_json=args.output_json,
        purge_ids=args.purge_ids,
        purge_rows=args.purge_rows,
    )

    if "gs://" in settings.path and (settings.purge_ids or settings.purge_rows):
        print("Error: Purge functionality is only available for local files, "
              "not for GCS paths.")
        return 1
    if not args.headless and not settings.path and args.paths:
        settings.path = ",".join(args.paths)

    try:
        os.makedirs(settings.log_path, exist_ok=True)
    except OSError as exc:
        print(f"failed to create log directory at {settings.log_path}: {exc}", file=sys.stderr)
        return 1
    log_file = os.path.join(settings.log_path, "analyser.log")
    try:
        handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
    except OSError as exc:
        print(f"failed to open log file at {log_file}: {exc}", file=sys.stderr)
        return 1
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _LOG_DATE_FORMAT))

    root = logging.getLogger()
    previous_level = root.level
    root.addHandler(handler)
    root.setLevel(logging.INFO)
    try:
        if args.headless or args.validate:
            return _run_headless_mode(args, settings, key_is_set)
        return _run_session(settings)
    finally:
        root.removeHandler(handler)
        handler.close()
        root.setLevel(previous_level)