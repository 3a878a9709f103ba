# stage.py
import os
import logging
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional

import pandas as pd

from pm_ingest.errors import ParseError, SchemaMismatch, TimestampColumnError
from pm_ingest.local_config import OUTPUT_FORMATS
from pm_ingest.transform import DATE_COLUMN, clean_table
from pm_ingest.validate import read_table

logger = logging.getLogger(__name__)

KEPT = "kept"
PARSE_ERROR = "parse_error"
MISSING_ID = "missing_id"
TIMESTAMP_ERROR = "timestamp_error"


@dataclass
class ChunkReport:
    index: int
    files_seen: int = 0
    files_kept: int = 0
    parse_errors: int = 0
    missing_id: int = 0
    timestamp_errors: int = 0
    rows: int = 0
    output_path: Optional[str] = None
    skipped: List[str] = field(default_factory=list)

    def record(self, path, outcome):
        self.files_seen += 1
        if outcome == KEPT:
            self.files_kept += 1
            return
        if outcome == PARSE_ERROR:
            self.parse_errors += 1
        elif outcome == MISSING_ID:
            self.missing_id += 1
        elif outcome == TIMESTAMP_ERROR:
            self.timestamp_errors += 1
        self.skipped.append(os.path.basename(path))


def process_file(path, config):
    """Read and clean one file. Returns (table or None, outcome)."""
    name = os.path.basename(path)
    try:
        raw = read_table(path, delimiter=config.delimiter, id_column=config.id_column)
    except ParseError as e:
        logger.error(f"PARSE_ERROR: {e} - file skipped")
        return None, PARSE_ERROR

    try:
        cleaned = clean_table(raw, id_column=config.id_column,
                              marker=config.pollutant_marker, source=name)
    except TimestampColumnError as e:
        logger.error(f"SCHEMA_MISMATCH: {e} - file skipped")
        return None, TIMESTAMP_ERROR

    if cleaned is None:
        return None, MISSING_ID
    return cleaned, KEPT


def check_schema(tables, labels=None):
    """All tables must share the column set of the first one."""
    if not tables:
        return []
    expected = list(tables[0].columns)
    for i, df in enumerate(tables[1:], start=1):
        current = list(df.columns)
        if set(current) != set(expected) or len(current) != len(expected):
            label = labels[i] if labels else f"table {i}"
            raise SchemaMismatch(f"Schema mismatch in {label}. Expected: {expected}, Got: {current}")
    return expected


def accumulate(tables, id_column="id", labels=None):
    if not tables:
        return pd.DataFrame(columns=[id_column, DATE_COLUMN])
    columns = check_schema(tables, labels)
    return pd.concat([df[columns] for df in tables], ignore_index=True)


def process_chunk(window, files, config):
    """Run every file of one window through read + clean and concatenate the results."""
    report = ChunkReport(index=window.index)
    tables, labels = [], []
    for path in files:
        cleaned, outcome = process_file(path, config)
        report.record(path, outcome)
        if cleaned is not None:
            tables.append(cleaned)
            labels.append(os.path.basename(path))
    result = accumulate(tables, id_column=config.id_column, labels=labels)
    report.rows = len(result)
    return result, report


def chunk_path(output_dir, index, fmt="pickle"):
    return os.path.join(output_dir, f"{index}_data.{OUTPUT_FORMATS[fmt]}")


def write_table(df, path, fmt="pickle"):
    """Write via a temporary file and rename, so readers never see a partial file."""
    out_dir = os.path.dirname(path) or "."
    os.makedirs(out_dir, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=out_dir, prefix=".partial_", suffix=".tmp")
    os.close(fd)
    try:
        if fmt == "pickle":
            df.to_pickle(tmp)
        elif fmt == "csv":
            df.to_csv(tmp, index=False)
        else:
            raise ValueError(f"Unsupported output format: {fmt}")
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise
    return path


def write_chunk(df, output_dir, index, fmt="pickle"):
    path = chunk_path(output_dir, index, fmt)
    write_table(df, path, fmt)
    logger.info(f"Wrote chunk {index}: {len(df)} rows -> {path}")
    return path


def remove_chunk(output_dir, index):
    """Delete any earlier result of chunk ``index``, whatever its format. Returns the count removed."""
    removed = 0
    for fmt in OUTPUT_FORMATS:
        path = chunk_path(output_dir, index, fmt)
        if os.path.exists(path):
            os.remove(path)
            logger.info(f"Removed stale chunk file {path}")
            removed += 1
    return removed
