# validate.py
import os
import csv
import logging
from collections import namedtuple

import pandas as pd

from pm_ingest.errors import ParseError

logger = logging.getLogger(__name__)

NUMERIC = "numeric"
TIMESTAMP = "timestamp"
STRING = "string"

CANDIDATE_DELIMITERS = ",;\t|"
SNIFF_BYTES = 64 * 1024

# A timestamp must carry both a date and a time of day; bare dates and bare times stay strings
TIME_OF_DAY_PATTERN = r"\d{1,2}:\d{2}"
DATE_PART_PATTERN = r"\d{4}-\d{1,2}-\d{1,2}|\d{1,2}/\d{1,2}/\d{2,4}"
DATE_ONLY_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

ColumnSchema = namedtuple("ColumnSchema", ["name", "kind"])


def detect_delimiter(path):
    """Guess the field delimiter from the head of the file."""
    try:
        with open(path, newline="", encoding="utf-8") as f:
            sample = f.read(SNIFF_BYTES)
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(path, f"unreadable: {e}")
    if not sample.strip():
        raise ParseError(path, "file is empty")
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=CANDIDATE_DELIMITERS)
    except csv.Error:
        raise ParseError(path, "could not detect the field delimiter; set the delimiter option explicitly")
    return dialect.delimiter


def _parse_timestamps(values):
    try:
        parsed = pd.to_datetime(values, errors="coerce", format="mixed")
    except (ValueError, TypeError, OverflowError):
        return None
    if not pd.api.types.is_datetime64_any_dtype(parsed):
        # mixed UTC offsets come back as plain objects
        return None
    return parsed


def _looks_like_timestamp(text):
    if text.str.match(DATE_ONLY_PATTERN).all():
        return False
    if not text.str.contains(TIME_OF_DAY_PATTERN).all():
        return False
    if not text.str.contains(DATE_PART_PATTERN).all():
        return False
    parsed = _parse_timestamps(text)
    return parsed is not None and bool(parsed.notna().all())


def infer_column_kind(series):
    """
    Infer numeric / timestamp / string for one column.
    Object columns are numeric when the majority of their values are numbers.
    """
    if pd.api.types.is_datetime64_any_dtype(series):
        return TIMESTAMP
    if pd.api.types.is_bool_dtype(series):
        return STRING
    if pd.api.types.is_numeric_dtype(series):
        return NUMERIC

    series_clean = series.dropna()
    if len(series_clean) == 0:
        return STRING
    text = series_clean.astype(str).str.strip()

    if _looks_like_timestamp(text):
        return TIMESTAMP

    numeric = pd.to_numeric(text, errors="coerce")
    if numeric.notna().sum() / len(text) > 0.5:
        return NUMERIC
    return STRING


def coerce_columns(df, keep=()):
    """Convert every column to the dtype of its inferred kind, except those named in keep."""
    df = df.copy()
    for col in df.columns:
        if col in keep:
            continue
        kind = infer_column_kind(df[col])
        if kind == TIMESTAMP and not pd.api.types.is_datetime64_any_dtype(df[col]):
            df[col] = _parse_timestamps(df[col].astype(str).str.strip())
        elif kind == NUMERIC and not pd.api.types.is_numeric_dtype(df[col]):
            df[col] = pd.to_numeric(df[col].astype(str).str.strip(), errors="coerce")
    return df


def describe_columns(df):
    """Ordered (name, kind) pairs for an already coerced table."""
    schema = []
    for col in df.columns:
        series = df[col]
        if pd.api.types.is_datetime64_any_dtype(series):
            kind = TIMESTAMP
        elif pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
            kind = NUMERIC
        else:
            kind = STRING
        schema.append(ColumnSchema(col, kind))
    return schema


def _read_csv(path, delimiter, **kwargs):
    if not os.path.isfile(path):
        raise ParseError(path, "file does not exist")
    if os.path.getsize(path) == 0:
        raise ParseError(path, "file is empty")
    sep = delimiter or detect_delimiter(path)
    try:
        return pd.read_csv(path, sep=sep, low_memory=False, **kwargs)
    except pd.errors.EmptyDataError:
        raise ParseError(path, "file is empty")
    except (pd.errors.ParserError, UnicodeDecodeError, OSError, ValueError) as e:
        raise ParseError(path, f"could not parse with delimiter {sep!r}: {e}")


def read_table(path, delimiter=None, id_column=None):
    """
    Parse one delimited file into a typed DataFrame.
    The identifier column, when given, is left exactly as read so that
    mixed ids such as ``A7`` among numbers survive.

    Raises ParseError when the file is missing, empty, has no data rows or
    cannot be tokenized with the given (or detected) delimiter.
    """
    df = _read_csv(path, delimiter)
    if len(df.columns) == 0 or len(df) == 0:
        raise ParseError(path, "file has no data rows")
    df = coerce_columns(df, keep=(id_column,) if id_column else ())
    logger.debug(f"Read {os.path.basename(path)}: {len(df)} rows, {len(df.columns)} columns")
    return df


def validate_file(path, delimiter=None):
    try:
        # Just read a few rows to validate
        _read_csv(path, delimiter, nrows=3)
        logger.info(f"Validated: {os.path.basename(path)}")
        return True
    except ParseError as e:
        logger.warning(f"Invalid: {e}")
        return False
