[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dupeanalyser"
version = "0.1.0"
description = "Find duplicate keys and duplicate rows across directories of JSON / NDJSON files"
requires-python = ">=3.10"
dependencies = []
keywords = ["json", "ndjson", "jsonl", "duplicates", "deduplication", "data-quality"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
dupe-analyser = "dupeanalyser.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["dupeanalyser"]

[tool.pytest.ini_options]
addopts = "-ra"
