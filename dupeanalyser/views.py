"""Text rendering of every screen of the interactive front end."""

from __future__ import annotations

import textwrap
import time
from datetime import timedelta

from .app import MENU_CHOICES, App, View
from .jobs import _format_duration
from .report import _box, _header

_SPINNER_FRAMES = "⣾⣽⣻⢿⡿⣟⣯⣷"
_PAD = "  "
_BAR_WIDTH = 40
_ERROR_WIDTH = 80
_INPUT_HELP = "Press Enter to submit, 'q' or 'ctrl+c' to quit, 'esc' to go back."


def _help(text: str) -> str:
    # Help text carries one line of margin above and below.
    return "\n" + text + "\n"


def _spinner() -> str:
    return _SPINNER_FRAMES[int(time.monotonic() * 10) % len(_SPINNER_FRAMES)]


def _text_input(value: str, placeholder: str = "") -> str:
    return "> " + (value or placeholder)


def _progress_bar(percent: float) -> str:
    percent = min(max(percent, 0.0), 1.0)
    filled = round(percent * _BAR_WIDTH)
    return "█" * filled + "░" * (_BAR_WIDTH - filled) + f" {percent * 100:3.0f}%"


def _cursor_lines(choices: list[str] | tuple[str, ...], selected: int) -> str:
    return "".join(
        f"{'>' if index == selected else ' '} {choice}\n"
        for index, choice in enumerate(choices)
    )


def render(app: App) -> str:
    """Render whichever screen the application is currently showing."""
    if app.quitting:
        return "Exiting...\n"
    if app.error is not None:
        return _render_error(app.error)
    renderer = {
        View.MENU: render_menu,
        View.OPTIONS: render_options,
        View.HELP: render_help,
        View.INPUT_PATH: _render_input_path,
        View.INPUT_KEY: _render_input_key,
        View.INPUT_LOG_PATH: _render_input_log_path,
        View.PROCESSING: render_processing,
        View.CANCELLING: render_processing,
        View.REPORT: render_report,
        View.PURGE_SELECTION: render_purge_selection,
        View.PURGING: _render_purging,
    }.get(app.view)
    return renderer(app) if renderer is not None else ""


def _render_error(error: Exception) -> str:
    body = textwrap.fill(str(error), _ERROR_WIDTH) or str(error)
    content = "\n".join([
        "An Error Occurred",
        "",
        body,
        "",
        "Press any key to return to the main menu.",
    ])
    return _box(content)


def render_menu(app: App) -> str:
    """The main menu."""
    text = "What would you like to do?\n\n" + _cursor_lines(MENU_CHOICES, app.menu_cursor)
    return text + _help("\nUse up/down arrows, Enter to select, ? for help, q to quit.")


def render_options(app: App) -> str:
    """The options screen."""
    options = [
        f"Number of Workers: {app.workers}",
        f"Duplicate Key Check: {str(app.check_key).lower()}",
        f"Duplicate Row Check: {str(app.check_row).lower()}",
        f"Show Folder Breakdown: {str(app.show_folder_breakdown).lower()}",
        f"Enable TXT Report:   {str(app.output_txt).lower()}",
        f"Enable JSON Report:  {str(app.output_json).lower()}",
        f"Purge Duplicate IDs: {str(app.purge_ids).lower()}",
        f"Purge Duplicate Rows:{str(app.purge_rows).lower()}",
        f"Log/Report Path:     {app.log_path}",
        "Back to Main Menu",
    ]
    text = "Configure Options:\n\n" + _cursor_lines(options, app.options_cursor)
    return text + _help(
        "\nUse up/down arrows, left/right or enter to toggle/change values."
        "\nPress Enter on Log/Report Path to edit."
    )


def render_help(app: App) -> str:
    """The help screen listing controls and command-line flags."""
    if app.gcs_available:
        path_help = ("-path <p1,p2>      Comma-separated list of paths to analyse "
                     "(local or GCS).")
    else:
        path_help = "-path <p1,p2>      Comma-separated list of local paths to analyse."
    return f"""
  Help & Command-Line Flags

  This tool analyses a directory of JSON/NDJSON files for duplicate data.
  It can process local files and, if you are authenticated, Google Cloud Storage objects.

  --- Interactive Controls ---
  - Arrows:         Navigate menus
  - Enter:          Select menu item or submit input
  - q / ctrl+c:     Quit the application
  - esc:            Go back to the previous menu.
  - ?:              Show this help screen (from main menu)
  - r:              Restart the last job (from report screen)
  - c:              Continue a cancelled job (from report screen)
  - n:              Start a new job (from report screen)
  - a:              Run full analysis (after a validation report)
  - p:              Proceed to purge duplicates (from report screen, local files only)

  --- Headless Mode Flags ---
  {path_help}
  -key <name>         Key for uniqueness check (default "id").
  -workers <int>      Number of concurrent workers (default 8).
  -log-path <path>    Directory to save logs and reports (default "logs").
  -validate           Run a key validation test and exit (headless only).
  -check.key <bool>   Enable duplicate key check (default true).
  -check.row <bool>   Enable duplicate row check (default true).
  -output.txt <bool>  Enable .txt report output (default false).
  -output.json <bool> Enable .json report output (default false).
  -show.folders <bool> Show per-folder breakdown table in summary (default true).
  -purge-ids <bool>   Enable interactive purging (default false, interactive & local only).
  -purge-rows <bool>  Enable interactive purging (default false, interactive & local only).
  -headless           Run without TUI and print report to stdout.
  -output <txt|json>  Output format for headless mode (default "txt").
  """


def _render_input_path(app: App) -> str:
    if app.gcs_available:
        prompt = "Please enter one or more comma-separated paths to analyse:"
        placeholder = "/path/a,/path/b,gs://bucket/c"
    else:
        prompt = "Please enter one or more comma-separated local paths to analyse:"
        placeholder = "/path/a,/path/b (GCS unavailable)"
    field = _text_input(app.inputs[View.INPUT_PATH], placeholder)
    return f"\n{_PAD}{prompt}\n\n{_PAD}{field}\n\n{_help(_INPUT_HELP)}"


def _render_input_key(app: App) -> str:
    field = _text_input(app.inputs[View.INPUT_KEY], "id")
    return (
        f"\n{_PAD}Paths: {app.path}\n\n"
        f"{_PAD}Please enter the JSON key to check for uniqueness (e.g., id, product_sku):\n\n"
        f"{_PAD}{field}\n\n{_help(_INPUT_HELP)}"
    )


def _render_input_log_path(app: App) -> str:
    field = _text_input(app.inputs[View.INPUT_LOG_PATH])
    return (
        f"\n{_PAD}Please enter the path for logs and reports:\n\n"
        f"{_PAD}{field}\n\n{_help(_INPUT_HELP)}"
    )


def render_processing(app: App) -> str:
    """The progress screen shown while a job runs or is being cancelled."""
    if app.view is View.CANCELLING:
        return f"\n{_PAD}{_spinner()} {app.status}\n"

    status = app.status
    progress_view = timing_view = ""
    if app.processing:
        elapsed = app.elapsed
        progress = app.job.progress(elapsed) if app.job is not None else None
        percent = progress.percent if progress is not None else 0.0
        eta = progress.eta if progress is not None and progress.eta is not None else timedelta(0)
        if progress is not None:
            status = progress.status
        progress_view = "\n" + _progress_bar(percent)
        timing_view = (f" (Elapsed: {_format_duration(elapsed)}, "
                       f"ETA: {_format_duration(eta)})")
    return (f"\n{_PAD}{_spinner()} {status}{timing_view}\n{progress_view}"
            + _help("\nPress 'q' or 'ctrl+c' to cancel."))


def render_report(app: App) -> str:
    """The report screen with the available follow-up actions."""
    report = app.final_report
    if report is None:
        return "Generating report..."
    out = ["\n" + report.render(False, app.check_key, app.check_row,
                                app.show_folder_breakdown)]

    stats = app.purge_stats
    if stats.files_modified > 0 or stats.records_deleted > 0:
        out.append("\n\n" + _box(
            f"Files Modified: {stats.files_modified}\n"
            f"Records Deleted: {stats.records_deleted} (and backed up)"
        ))
    elif stats.error is not None:
        out.append(f"\n\nPurge failed: {stats.error}")

    is_validation = report.summary.is_validation_report
    if not is_validation and (app.output_txt or app.output_json):
        out.append(f"\n\nReports saved to files with extension(s): {app.saved_filename}")

    actions = []
    if is_validation:
        actions.append("(a)nalyse now")
    if app.was_cancelled:
        actions.append("(c)ontinue")
    actions += ["(r)estart", "(n)ew job"]
    if app.can_purge:
        actions.append("(p)urge")
    actions.append("(q)uit")
    out.append("\n" + _help("Press " + ", ".join(actions) + "."))
    return "".join(out)


def render_purge_selection(app: App) -> str:
    """The screen for choosing which record of a duplicate set to keep."""
    total = len(app.purge_id_keys) + len(app.purge_row_hashes)
    if app.purge_cursor < len(app.purge_id_keys):
        title = f"Duplicate ID '{app.purge_id_keys[app.purge_cursor]}'"
    else:
        index = app.purge_cursor - len(app.purge_id_keys)
        digest = app.purge_row_hashes[index] if index < len(app.purge_row_hashes) else ""
        title = f"Duplicate Row (hash {digest[:8]}...)"

    out = [
        f"Resolving {app.purge_cursor + 1} of {total} duplicate sets...\n",
        _header(title) + "\n\n",
        "Select the one record to KEEP:\n",
    ]
    for index, loc in enumerate(app.purge_locations):
        cursor = "> " if index == app.purge_selection_cursor else "  "
        out.append(f"{cursor}File: {loc.file_path}\n  Line: {loc.line_number}\n")
    out.append(_help("\nUse up/down arrows to select. Enter to confirm and move to next set."))
    return "".join(out)


def _render_purging(app: App) -> str:
    return f"\n{_spinner()} {app.status}\n"