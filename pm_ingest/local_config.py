# local_config.py
import os
import logging
from dataclasses import dataclass, field
from typing import Optional

from pm_ingest.errors import InvalidInput

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
OUTPUT_FORMATS = {"pickle": "pkl", "csv": "csv"}

# Settings - use functions to read at runtime, not at import time
def get_input_dir():
    return os.getenv("PM_INPUT_DIR", "data")

def get_output_dir():
    return os.getenv("PM_OUTPUT_DIR", "results")

def get_log_dir():
    return os.getenv("PM_LOG_DIR", "pipeline_logs")

def get_chunk_size():
    raw = os.getenv("PM_CHUNK_SIZE", "1000")
    try:
        return int(raw)
    except ValueError:
        raise InvalidInput(f"PM_CHUNK_SIZE must be an integer, got {raw!r}")

def get_delimiter():
    # Empty means auto-detect
    return os.getenv("PM_DELIMITER") or None

def get_id_column():
    return os.getenv("PM_ID_COLUMN", "id")

def get_pollutant_marker():
    return os.getenv("PM_POLLUTANT_MARKER", "PM")

def get_file_pattern():
    return os.getenv("PM_FILE_PATTERN", "*")

def get_output_format():
    return os.getenv("PM_OUTPUT_FORMAT", "pickle")


@dataclass
class PipelineConfig:
    input_dir: str = field(default_factory=get_input_dir)
    output_dir: str = field(default_factory=get_output_dir)
    chunk_size: int = field(default_factory=get_chunk_size)
    delimiter: Optional[str] = field(default_factory=get_delimiter)
    id_column: str = field(default_factory=get_id_column)
    pollutant_marker: str = field(default_factory=get_pollutant_marker)
    file_pattern: str = field(default_factory=get_file_pattern)
    output_format: str = field(default_factory=get_output_format)
    log_dir: str = field(default_factory=get_log_dir)

    def validate(self):
        """Raise InvalidInput before any chunk is processed."""
        if isinstance(self.chunk_size, bool) or not isinstance(self.chunk_size, int) or self.chunk_size <= 0:
            raise InvalidInput(f"chunk_size must be a positive integer, got {self.chunk_size!r}")
        if self.output_format not in OUTPUT_FORMATS:
            raise InvalidInput(
                f"output_format must be one of {sorted(OUTPUT_FORMATS)}, got {self.output_format!r}"
            )
        if self.delimiter is not None and len(self.delimiter) != 1:
            raise InvalidInput(f"delimiter must be a single character, got {self.delimiter!r}")
        if not self.id_column:
            raise InvalidInput("id_column must not be empty")
        if not self.pollutant_marker:
            raise InvalidInput("pollutant_marker must not be empty")
        return self


def setup_logging(log_dir=None, level=logging.INFO):
    """Log to log_dir/pipeline.log and the console. Safe to call twice."""
    log_dir = log_dir or get_log_dir()
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "pipeline.log")

    root = logging.getLogger()
    root.setLevel(level)
    for h in [h for h in root.handlers if getattr(h, "pm_ingest", False)]:
        root.removeHandler(h)
        h.close()

    file_handler = logging.FileHandler(log_file, mode='a')
    console = logging.StreamHandler()
    for h in (file_handler, console):
        h.setLevel(level)
        h.setFormatter(logging.Formatter(LOG_FORMAT))
        h.pm_ingest = True
        root.addHandler(h)
    return log_file
