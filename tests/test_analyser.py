import threading

import pytest

from dupeanalyser.analyser import Analyser
from dupeanalyser.report import LocationInfo
from dupeanalyser.source import InputSource, LocalFileSource


def _write(directory, name, lines):
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
    return LocalFileSource(str(path), path.stat().st_size)


class _BrokenSource(InputSource):
    @property
    def path(self):
        return "/nowhere/broken.json"

    @property
    def dir(self):
        return "/nowhere"

    @property
    def size(self):
        return 10

    def open(self):
        raise OSError("unreadable")


def test_duplicate_ids_across_files(tmp_path):
    a = _write(tmp_path, "a.json", ['{"id": "x", "v": "a"}', '{"id": "y"}'])
    b = _write(tmp_path, "b.json", ['{"id": "x", "v": "b"}'])
    report = Analyser("id", 1, True, False).run([a, b])
    assert report.duplicate_ids == {
        "x": [LocationInfo(a.path, 1), LocationInfo(b.path, 1)]
    }
    assert report.summary.total_key_occurrences == 3
    assert report.summary.unique_keys_duplicated == 1
    assert report.summary.duplicate_ids_per_folder == {str(tmp_path): 2}
    assert report.duplicate_rows == {}


def test_duplicate_rows_ignore_key_order_and_whitespace(tmp_path):
    src = _write(tmp_path, "r.json", ['{"id":1,"a":[2,"<b>"]}', '{ "a": [2, "<b>"], "id": 1 }',
                                      '{"id":1,"a":[3]}'])
    report = Analyser("id", 2, True, True).run([src])
    assert len(report.duplicate_rows) == 1
    (digest, locs), = report.duplicate_rows.items()
    assert digest.isdigit()
    assert locs == [LocationInfo(src.path, 1), LocationInfo(src.path, 2)]
    assert report.summary.duplicate_row_instances == len(locs)


def test_row_check_requires_key_check(tmp_path):
    src = _write(tmp_path, "r.json", ['{"id": 1}', '{"id": 1}'])
    report = Analyser("id", 1, False, True).run([src])
    assert report.duplicate_rows == {}
    assert report.duplicate_ids == {}
    assert report.summary.total_rows_processed == 2


def test_validation_counts_keys_only(tmp_path):
    src = _write(tmp_path, "v.json", ['{"id": 1}', '{"id": 1}', '{"other": 2}'])
    report = Analyser("id", 1, True, True, True).run([src])
    assert report.summary.is_validation_report
    assert report.duplicate_ids == {}
    assert report.duplicate_rows == {}
    assert report.summary.total_key_occurrences == report.summary.folder_details[src.dir].keys_found
    assert report.summary.folder_details[src.dir].keys_found == 2


def test_blank_and_malformed_lines(tmp_path):
    src = _write(tmp_path, "m.json", ['{"id": "x"}', "", "not json", "[1, 2]", '{"id": "x"}'])
    report = Analyser("id", 1, True, False).run([src])
    assert report.summary.total_rows_processed == 4
    assert report.duplicate_ids["x"] == [LocationInfo(src.path, 1), LocationInfo(src.path, 5)]
    assert report.summary.files_processed == 1


@pytest.mark.parametrize(
    "lines, expected_key",
    [
        (['{"id": 1000000}', '{"id": "1e+06"}'], "1e+06"),
        (['{"id": 1}', '{"id": 1.0}', '{"id": "1"}'], "1"),
        (['{"id": {"b": 1, "a": true}}', '{"id": "map[a:true b:1]"}'], "map[a:true b:1]"),
    ],
)
def test_identifier_values_are_formatted_consistently(tmp_path, lines, expected_key):
    src = _write(tmp_path, "f.json", lines)
    report = Analyser("id", 1, True, False).run([src])
    assert list(report.duplicate_ids) == [expected_key]
    assert len(report.duplicate_ids[expected_key]) == len(lines)


def test_cancelled_run_is_partial_and_resumable(tmp_path):
    src = _write(tmp_path, "c.json", ['{"id": 1}'])
    analyser = Analyser("id", 2, True, True)
    cancel = threading.Event()
    cancel.set()
    report = analyser.run([src], cancel)
    assert report.summary.is_partial_report
    assert report.summary.files_processed == 0
    assert analyser.unprocessed_sources([src]) == [src]

    resumed = analyser.run(analyser.unprocessed_sources([src]))
    assert not resumed.summary.is_partial_report
    assert analyser.unprocessed_sources([src]) == []


def test_unopenable_source_stays_unprocessed(tmp_path):
    good = _write(tmp_path, "g.json", ['{"id": 1}'])
    broken = _BrokenSource()
    analyser = Analyser("id", 2, True, True)
    report = analyser.run([broken, good])
    assert analyser.unprocessed_sources([broken, good]) == [broken]
    assert report.summary.files_processed == 1
    assert report.summary.total_files == 2
    assert report.summary.processed_data_size_bytes == good.size
    assert report.summary.total_data_size_overall_bytes == good.size + broken.size


def test_folder_details_and_averages(tmp_path):
    one, two = tmp_path / "one", tmp_path / "two"
    lines_a = ['{"id": 1}', '{"id": 2}']
    lines_b = ['{"id": 3}']
    lines_c = ['{"id": 4}', '{"id": 5}', '{"nokey": 6}']
    sources = [
        _write(one, "a.json", lines_a),
        _write(one, "b.json", lines_b),
        _write(two, "c.json", lines_c),
    ]
    report = Analyser("id", 3, True, True).run(sources)
    details = report.summary.folder_details
    assert set(details) == {str(one), str(two)}
    assert details[str(one)].total_files == 2
    assert details[str(one)].rows_processed == len(lines_a) + len(lines_b)
    assert details[str(two)].rows_processed == len(lines_c)
    assert details[str(two)].keys_found == len(lines_c) - 1
    assert report.summary.total_rows_processed == sum(d.rows_processed for d in details.values())
    assert report.summary.total_data_size_overall_bytes == sum(s.size for s in sources)
    assert report.summary.average_files_per_folder == len(sources) / len(details)
    assert report.summary.average_rows_per_file == (
        report.summary.total_rows_processed / report.summary.files_processed
    )


def test_empty_source_list_gives_empty_report():
    report = Analyser("id", 4, True, True).run([])
    assert report.summary.total_files == 0
    assert report.summary.average_rows_per_file == 0.0
    assert report.summary.average_files_per_folder == 0.0
    assert report.summary.folder_details == {}