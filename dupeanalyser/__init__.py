"""Find duplicate keys and duplicate rows in local directories of JSON / NDJSON files."""

__version__ = "0.1.0"