"""Non-interactive analysis that prints its report to standard output."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import timedelta

from .analyser import Analyser
from .jobs import _format_duration
from .report import AnalysisReport, save_and_log
from .source import DiscoveryError, discover_all


@dataclass
class HeadlessConfig:
    """Settings for a headless run."""

    paths: str
    key: str = "id"
    workers: int = 8
    log_path: str = "logs"
    output_format: str = "txt"
    validate_only: bool = False
    check_key: bool = True
    check_row: bool = True
    show_folder_breakdown: bool = True
    enable_txt_output: bool = False
    enable_json_output: bool = False


def run(config: HeadlessConfig, cancel: threading.Event | None = None) -> AnalysisReport | None:
    """Run the whole analysis, print the report and return it (``None`` if discovery failed)."""
    if config.validate_only:
        print("Running in Key Validation Mode...")
    else:
        print("Running in headless mode...")
    started = time.monotonic()

    paths = [p.strip() for p in config.paths.split(",")]
    try:
        sources = discover_all(paths, cancel)
    except DiscoveryError as exc:
        print(f"Error discovering sources: {exc}")
        return None
    print(f"Discovered {len(sources)} files to analyse across {len(paths)} path(s).")

    engine = Analyser(config.key, config.workers, config.check_key, config.check_row,
                      config.validate_only)
    report = engine.run(sources, cancel)

    report.summary.total_elapsed_time = _format_duration(
        timedelta(seconds=time.monotonic() - started)
    )
    base = save_and_log(report, config.log_path, config.enable_txt_output,
                        config.enable_json_output, config.check_key, config.check_row,
                        config.show_folder_breakdown)

    if not config.validate_only:
        extensions = [ext for ext, enabled in ((".txt", config.enable_txt_output),
                                               (".json", config.enable_json_output)) if enabled]
        if extensions:
            print(f"Analysis complete. Reports saved with base name '{base}' "
                  f"and extension(s): {', '.join(extensions)}")
        else:
            print("Analysis complete. No report files were generated as per configuration.")

    if config.output_format == "json":
        print(report.to_json())
    else:
        print("\n" + report.render(True, config.check_key, config.check_row,
                                   config.show_folder_breakdown))
    return report