import pytest

from dupeanalyser.app import App, Settings, View
from dupeanalyser.purge import PurgeResult
from dupeanalyser.report import AnalysisReport, LocationInfo, SummaryReport
from dupeanalyser.views import (
    render,
    render_help,
    render_menu,
    render_options,
    render_processing,
    render_purge_selection,
    render_report,
)


@pytest.fixture
def app():
    return App(Settings())


def _report(validation=False):
    return AnalysisReport(
        summary=SummaryReport(is_validation_report=validation, unique_key="id"),
        duplicate_ids={
            "a": [LocationInfo("/d/a.json", 1), LocationInfo("/d/b.json", 4)],
        },
        duplicate_rows={
            "1234567890123": [LocationInfo("/d/a.json", 2), LocationInfo("/d/a.json", 3)],
        },
    )


def _report_app(app, report):
    app.final_report = report
    app.view = View.REPORT
    return app


def test_menu_cursor_moves(app):
    text = render_menu(app)
    assert "> Start Validator\n" in text
    app.handle_key("down")
    text = render_menu(app)
    assert "> Start Full Analysis\n" in text
    assert "  Start Validator\n" in text
    assert text.startswith("What would you like to do?")


def test_options_reflect_changes(app):
    app.view = View.OPTIONS
    assert "Number of Workers: 8" in render_options(app)
    app.handle_key("right")
    assert "Number of Workers: 9" in render_options(app)
    app.handle_key("down")
    app.handle_key("enter")
    assert "Duplicate Key Check: false" in render_options(app)
    assert "> Duplicate Key Check" in render_options(app)


def test_help_without_gcs(app):
    text = render_help(app)
    assert "Comma-separated list of local paths to analyse." in text
    assert "Help & Command-Line Flags" in text


def test_render_quitting(app):
    app.handle_key("q")
    assert render(app) == "Exiting...\n"


def test_render_error_box(app):
    app.on_error(ValueError("boom"))
    text = render(app)
    assert "An Error Occurred" in text
    assert "boom" in text
    assert "Press any key to return to the main menu." in text


def test_render_dispatches_to_input_key(app):
    app.path = "/data/x"
    app.view = View.INPUT_KEY
    text = render(app)
    assert "Paths: /data/x" in text
    assert "> id" in text


def test_render_input_path_uses_typed_text(app):
    app.view = View.INPUT_PATH
    app.handle_text("/tmp/somewhere")
    assert "> /tmp/somewhere" in render(app)


def test_report_actions_without_purge(app):
    _report_app(app, _report())
    text = render_report(app)
    assert "(r)estart" in text
    assert "(q)uit" in text
    assert "(p)urge" not in text
    assert "--- Analysis Summary ---" in text


def test_report_offers_purge_when_enabled(app):
    _report_app(app, _report())
    app.purge_ids = True
    assert "(p)urge" in render_report(app)


def test_validation_report_offers_analysis(app):
    _report_app(app, _report(validation=True))
    app.purge_ids = True
    text = render_report(app)
    assert "(a)nalyse now" in text
    assert "(p)urge" not in text


def test_report_purge_stats(app):
    _report_app(app, _report())
    app.purge_stats = PurgeResult(files_modified=1, records_deleted=2)
    text = render_report(app)
    assert "Files Modified: 1" in text
    assert "Records Deleted: 2 (and backed up)" in text


def test_report_purge_error(app):
    _report_app(app, _report())
    app.purge_stats = PurgeResult(error=OSError("disk full"))
    assert "Purge failed: disk full" in render_report(app)


def test_report_saved_filename(app):
    _report_app(app, _report())
    app.output_txt = True
    app.saved_filename = "logs/report-x"
    assert "Reports saved to files with extension(s): logs/report-x" in render_report(app)


def test_report_pending(app):
    app.view = View.REPORT
    assert render_report(app) == "Generating report..."


def test_purge_selection_rendering(app):
    _report_app(app, _report())
    app.purge_ids = True
    app.purge_rows = True
    app.handle_key("p")
    assert app.view is View.PURGE_SELECTION
    text = render_purge_selection(app)
    assert "Resolving 1 of 2 duplicate sets..." in text
    assert "Duplicate ID 'a'" in text
    assert "> File: /d/a.json\n  Line: 1" in text
    app.handle_key("down")
    text = render_purge_selection(app)
    assert "> File: /d/b.json" in text
    assert "  File: /d/a.json" in text


def test_purge_selection_row_title(app):
    _report_app(app, _report())
    app.purge_rows = True
    app.handle_key("p")
    text = render(app)
    assert "Duplicate Row (hash 12345678...)" in text


def test_processing_shows_progress(tmp_path):
    data = tmp_path / "data"
    data.mkdir()
    (data / "a.ndjson").write_text('{"id": 1}\n{"id": 2}\n')
    app = App(Settings(path=str(data), log_path=str(tmp_path / "logs")))
    assert app.view is View.PROCESSING
    app.job.wait(10)
    text = render_processing(app)
    assert "File 1 of 1" in text
    assert "100%" in text
    assert "Press 'q' or 'ctrl+c' to cancel." in text


def test_cancelling_view(app):
    app.view = View.CANCELLING
    app.status = "Cancelling... generating partial report."
    text = render_processing(app)
    assert "Cancelling... generating partial report." in text
    assert "to cancel" not in text