# dupeanalyser

`dupeanalyser` scans one or more local directories of newline-delimited JSON
files (`.json`, `.ndjson`, `.jsonl`) and reports:

- **duplicate keys**: records that share the same value for a chosen field
  (for example `id` or `product_sku`), with every file and line they occur on;
- **duplicate rows**: records whose content is identical, found by hashing a
  canonical form of each row;
- **key validation**: a quick pass that only counts how often the chosen key
  is present, per folder.

Results are shown as a summary, an optional per-folder breakdown table and,
for full analyses, a detailed list of every duplicate. Reports can also be
written to disk as `.txt` (summary and details) and `.json` files.

## Installation

```
pip install .
```

## Command line

The package installs one command:

```
dupe-analyser --help
```

Flags may be written with one or two dashes (`-path` or `--path`):

| Flag | Default | Meaning |
| --- | --- | --- |
| `-path` | | Comma-separated list of directories to analyse |
| `-key` | `id` | JSON key for the uniqueness check |
| `-workers` | `8` | Number of worker threads |
| `-log-path` | `logs` | Directory for the log file and report files |
| `-check.key [BOOL]` | `true` | Duplicate key check |
| `-check.row [BOOL]` | `true` | Duplicate row check |
| `-show.folders [BOOL]` | `true` | Per-folder breakdown table |
| `-output.txt [BOOL]` | `false` | Write `.txt` reports |
| `-output.json [BOOL]` | `false` | Write a `.json` report |
| `-purge-ids [BOOL]` | `false` | Allow purging duplicate IDs (interactive) |
| `-purge-rows [BOOL]` | `false` | Allow purging duplicate rows (interactive) |
| `-headless` | | Run without the interactive screens |
| `-validate` | | Run key validation only, headless |
| `-output` | `txt` | Headless output format: `txt` or `json` |

A boolean flag given alone means `true`; it also takes a value such as
`false`, `0`, `t` or `TRUE`. In interactive mode, paths may also be given as
plain arguments.

### Headless mode

```
dupe-analyser -headless -path data/2024,data/2025 -key id
dupe-analyser -validate -path data -key product_sku
dupe-analyser -headless -path data -output json
```

Discovers the files, analyses them, saves any enabled report files, and prints
the report (full text with duplicate details, or JSON) to standard output.

### Interactive mode

Without `-headless` or `-validate`, the command runs a menu-driven session in
the terminal. It is line-based: each screen is printed and one line of input
is read.

- On menus, type key names separated by spaces and press Enter: `up`/`k`,
  `down`/`j`, `left`, `right`, `enter`, `?` (help), `esc` (back), `q` (quit).
  An empty line is `enter`.
- On text fields (paths, key, log path), the line typed replaces the field and
  is submitted; an empty line submits the current value.
- While a job runs, progress, elapsed time and an estimate of the time left
  are printed; Ctrl+C cancels it and produces a partial report.
- On the report screen: `r` restarts the job, `n` starts a new one, `a` runs a
  full analysis after a validation report, `c` continues a cancelled job on
  the files not yet processed, and `p` starts purging.

The log file `analyser.log` and any report files
(`report-YYYY-MM-DD_HH-MM-SS_summary.txt`, `..._details.txt`, `....json`) are
written to the log directory.

### Purging duplicates

After a full analysis with `-purge-ids` or `-purge-rows` enabled, you step
through each set of duplicates and pick the one record to keep. The other
lines are removed from their files. Each removed line is first copied to
`deleted_records/deleted_records_<file name>`, so nothing is lost.

## Using it from Python

```python
import threading

from dupeanalyser.analyser import Analyser
from dupeanalyser.report import human_size, save_and_log
from dupeanalyser.source import discover_all

cancel = threading.Event()
sources = discover_all(["data/2024", "data/2025"], cancel)

analyser = Analyser("id", 8, True, True, False)
report = analyser.run(sources, cancel)

print(report.render(True, True, True, True))
print(human_size(report.summary.total_data_size_overall_bytes))

save_and_log(report, "logs", True, True, True, True, True)
```

- `report.to_json()` gives the report as indented JSON, and `report.to_dict()`
  as plain Python data.
- If a run is cancelled, the report is marked as partial, and
  `analyser.unprocessed_sources(sources)` returns the files still to do. The
  same analyser can then be run on just those to complete the results.
- `dupeanalyser.jobs.AnalysisJob` runs an analysis in a background thread and
  reports `progress(elapsed)`.
- `dupeanalyser.headless.run(HeadlessConfig(paths="data"))` does a headless
  run.
- `dupeanalyser.purge.select_records_to_delete` and
  `dupeanalyser.purge.purge_records` mark and remove duplicate lines.
- `discover_all` raises `DiscoveryError` when a path is missing, is not a
  directory, or holds no matching files.

## Notes

- Empty lines are skipped. Lines that are not valid JSON are logged and
  skipped, but still count as processed rows.
- Line numbers in reports are 1-based and refer to the physical line in the
  file.
- Each path must be a directory. The whole tree below it is searched, without
  following symbolic links. Files reachable from more than one path are
  analysed once.

## Limitations

- Only the local filesystem is supported. A `gs://` path is rejected with a
  `DiscoveryError` (and with an error at the command line when purging is
  enabled); there is no cloud storage access.
- The interactive mode is a plain line-by-line prompt, not a full-screen
  terminal interface.
- Settings changed on the options screen last only for the session and are not
  saved to a configuration file.