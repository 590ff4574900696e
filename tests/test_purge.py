from pathlib import Path

from dupeanalyser.purge import PurgeResult, purge_records, select_records_to_delete
from dupeanalyser.report import LocationInfo


def _write(path: Path, lines: list[str]) -> str:
    path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
    return str(path)


def test_select_skips_kept_location():
    locs = [LocationInfo("a.json", 1), LocationInfo("a.json", 4), LocationInfo("b.json", 2)]
    marked = select_records_to_delete(locs, 1)
    assert marked == {"a.json": {1}, "b.json": {2}}


def test_select_accumulates_into_existing_mapping():
    existing = {"a.json": {7}}
    locs = [LocationInfo("a.json", 1), LocationInfo("a.json", 2)]
    result = select_records_to_delete(locs, 0, existing)
    assert result is existing
    assert existing == {"a.json": {7, 2}}


def test_purge_rewrites_file_and_backs_up(tmp_path):
    data = _write(tmp_path / "data.json", ['{"id":1}', '{"id":1}', '{"id":2}', '{"id":1}'])
    backup = tmp_path / "backup"
    marked = select_records_to_delete(
        [LocationInfo(data, 1), LocationInfo(data, 2), LocationInfo(data, 4)], 0
    )
    result = purge_records(marked, str(backup))
    assert result == PurgeResult(files_modified=1, records_deleted=2)
    assert Path(data).read_text() == '{"id":1}\n{"id":2}\n'
    backup_file = backup / "deleted_records_data.json"
    assert backup_file.read_text() == '{"id":1}\n{"id":1}\n'


def test_purge_normalises_crlf(tmp_path):
    data = tmp_path / "crlf.json"
    data.write_bytes(b'{"a":1}\r\n{"a":2}\r\n')
    result = purge_records({str(data): {2}}, str(tmp_path / "bk"))
    assert result.records_deleted == 1
    assert data.read_bytes() == b'{"a":1}\n'


def test_purge_missing_file_is_skipped(tmp_path):
    result = purge_records({str(tmp_path / "missing.json"): {1}}, str(tmp_path / "bk"))
    assert result.files_modified == 0
    assert result.records_deleted == 0
    assert result.error is None


def test_purge_backup_dir_failure_reports_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    data = _write(tmp_path / "d.json", ["a", "b"])
    result = purge_records({data: {1}}, str(blocker))
    assert isinstance(result.error, OSError)
    assert str(result.error).startswith("could not create backup dir")
    assert Path(data).read_text() == "a\nb\n"


def test_purge_without_matches_still_rewrites(tmp_path):
    data = _write(tmp_path / "d.json", ["x", "y"])
    backup = tmp_path / "bk"
    result = purge_records({data: {9}}, str(backup))
    assert result.files_modified == 1
    assert result.records_deleted == 0
    assert list(backup.iterdir()) == []