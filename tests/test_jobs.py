from datetime import timedelta
from pathlib import Path

import pytest

from dupeanalyser.analyser import Analyser
from dupeanalyser.jobs import AnalysisJob, _format_duration, estimate_eta
from dupeanalyser.source import discover


@pytest.fixture
def data_dir(tmp_path):
    folder = tmp_path / "data"
    folder.mkdir()
    (folder / "a.json").write_text('{"id":1}\n{"id":2}\n')
    (folder / "b.json").write_text('{"id":1}\n')
    return folder


def _job(analyser, sources, log_dir, txt=False):
    return AnalysisJob(analyser, sources, str(log_dir), txt, False, True, True, True)


def test_estimate_eta_worked_example():
    assert estimate_eta(20, 100, timedelta(seconds=20)) == timedelta(seconds=80)


def test_estimate_eta_needs_enough_files():
    assert estimate_eta(10, 100, timedelta(seconds=10)) is None
    assert estimate_eta(50, 50, timedelta(seconds=10)) is None
    assert estimate_eta(0, 0, timedelta(seconds=10)) is None


def test_eta_shrinks_as_work_progresses():
    elapsed = timedelta(seconds=60)
    early = estimate_eta(20, 100, elapsed)
    late = estimate_eta(80, 100, elapsed)
    assert late < early


def test_format_duration():
    assert _format_duration(timedelta(0)) == "0s"
    assert _format_duration(timedelta(seconds=65)) == "1m5s"


def test_job_runs_and_saves(data_dir, tmp_path):
    logs = tmp_path / "logs"
    logs.mkdir()
    sources = discover(str(data_dir))
    job = _job(Analyser("id", 2, True, True), sources, logs, txt=True)
    job.start()
    report = job.wait(10)
    assert report.summary.files_processed == len(sources)
    assert report.summary.unique_keys_duplicated == 1
    assert job.done
    assert Path(job.saved_filename_base + "_summary.txt").exists()


def test_progress_after_completion(data_dir, tmp_path):
    sources = discover(str(data_dir))
    job = _job(Analyser("id", 1, True, False), sources, tmp_path)
    job.start()
    job.wait(10)
    progress = job.progress(timedelta(seconds=1))
    assert progress.percent == 1.0
    assert progress.processed == progress.total == len(sources)
    assert progress.status == f"Folder: {data_dir} | File 2 of 2"


def test_progress_before_start_shows_discovering(data_dir, tmp_path):
    job = _job(Analyser("id", 1, True, False), discover(str(data_dir)), tmp_path)
    progress = job.progress(timedelta(0))
    assert progress.current_folder == "Discovering..."
    assert progress.percent == 0.0


def test_cancel_before_start_gives_no_report(data_dir, tmp_path):
    job = _job(Analyser("id", 1, True, True), discover(str(data_dir)), tmp_path)
    job.cancel()
    job.start()
    assert job.wait(10) is None
    assert job.cancelled


def test_continuation_counts_previous_files(data_dir, tmp_path):
    sources = discover(str(data_dir))
    analyser = Analyser("id", 1, True, True)
    analyser.run(sources[:1])
    remaining = analyser.unprocessed_sources(sources)
    job = _job(analyser, remaining, tmp_path)
    assert job.total == len(sources)
    job.start()
    job.wait(10)
    assert job.progress(timedelta(seconds=1)).processed == len(sources)


def test_wait_without_start_raises(data_dir, tmp_path):
    job = _job(Analyser("id", 1, True, True), discover(str(data_dir)), tmp_path)
    with pytest.raises(RuntimeError):
        job.wait(1)


def test_start_twice_raises(data_dir, tmp_path):
    job = _job(Analyser("id", 1, True, True), discover(str(data_dir)), tmp_path)
    job.start()
    job.wait(10)
    with pytest.raises(RuntimeError):
        job.start()