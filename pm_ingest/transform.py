# transform.py
import logging

import pandas as pd

from pm_ingest.errors import TimestampColumnError
from pm_ingest.validate import NUMERIC, TIMESTAMP, describe_columns

logger = logging.getLogger(__name__)

DATE_COLUMN = "Date"
DATE_SUFFIX = "_Date"


def has_identifier(columns, id_column="id"):
    return any(name == id_column for name in columns)


def pollutant_columns(schema, marker="PM", exclude=()):
    return [c.name for c in schema if marker in str(c.name) and c.name not in exclude]


def timestamp_columns(schema):
    return [c.name for c in schema if c.kind == TIMESTAMP]


def derive_date_columns(df, schema):
    """
    Add a calendar-day column for every timestamp column.
    A single timestamp column yields ``Date``; several yield ``<name>_Date`` each.
    """
    stamps = timestamp_columns(schema)
    if not stamps:
        return df
    df = df.copy()
    if len(stamps) == 1:
        df[DATE_COLUMN] = df[stamps[0]].dt.date
    else:
        for col in stamps:
            df[f"{col}{DATE_SUFFIX}"] = df[col].dt.date
    return df


def clean_table(df, id_column="id", marker="PM", source=None):
    """
    Reduce a raw table to one row per (id, Date) with the mean of every
    pollutant column.

    Returns None when the table has no identifier column. Raises
    TimestampColumnError unless exactly one timestamp column exists.
    Missing pollutant values are skipped by the mean; rows with a missing
    id or date belong to no group.
    """
    label = source or "table"
    if not has_identifier(df.columns, id_column):
        logger.warning(f"MISSING_IDENTIFIER: no '{id_column}' column in {label} - dropped")
        return None

    schema = describe_columns(df)
    stamps = timestamp_columns(schema)
    if len(stamps) != 1:
        raise TimestampColumnError(
            f"{label}: expected exactly one timestamp column, found {len(stamps)} {stamps}"
        )
    df = derive_date_columns(df, schema)

    keys = [id_column, DATE_COLUMN]
    pm_cols = pollutant_columns(schema, marker, exclude=keys)
    kinds = dict(schema)

    work = df[keys + pm_cols].copy()
    for col in pm_cols:
        if kinds[col] != NUMERIC:
            work[col] = pd.to_numeric(work[col], errors="coerce")

    if pm_cols:
        out = work.groupby(keys, sort=True)[pm_cols].mean().reset_index()
    else:
        out = work.dropna(subset=keys).drop_duplicates().sort_values(keys)
    out = out.reset_index(drop=True)

    logger.debug(f"Cleaned {label}: {len(df)} rows -> {len(out)} daily rows, {len(pm_cols)} PM columns")
    return out
