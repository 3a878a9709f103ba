# combine.py - merge all chunk files into one table
import os
import re
import logging

import pandas as pd

from pm_ingest.errors import InvalidInput
from pm_ingest.local_config import OUTPUT_FORMATS
from pm_ingest.stage import check_schema, write_table
from pm_ingest.transform import DATE_COLUMN

logger = logging.getLogger(__name__)

CHUNK_FILE_RE = re.compile(r"^(\d+)_data\.(pkl|csv)$")


def _chunk_entries(output_dir):
    for name in os.listdir(output_dir):
        m = CHUNK_FILE_RE.match(name)
        if m:
            yield int(m.group(1)), m.group(2), os.path.join(output_dir, name)


def list_chunk_files(output_dir, fmt=None):
    """Chunk files ordered by chunk index (not lexically)."""
    ext = OUTPUT_FORMATS[fmt] if fmt else None
    found = [(index, path) for index, found_ext, path in _chunk_entries(output_dir)
             if ext is None or found_ext == ext]
    return [path for _, path in sorted(found)]


def prune_chunk_files(output_dir, chunk_count):
    """Remove chunk files numbered above chunk_count, left over from a run with more chunks."""
    removed = []
    for index, _, path in sorted(_chunk_entries(output_dir)):
        if index > chunk_count:
            os.remove(path)
            removed.append(path)
    if removed:
        logger.info(f"Removed {len(removed)} stale chunk files above chunk {chunk_count}")
    return removed


def read_chunk(path):
    if path.endswith(".pkl"):
        return pd.read_pickle(path)
    df = pd.read_csv(path)
    if DATE_COLUMN in df.columns:
        df[DATE_COLUMN] = pd.to_datetime(df[DATE_COLUMN]).dt.date
    return df


def combine_chunks(output_dir, fmt=None):
    if not os.path.isdir(output_dir):
        raise InvalidInput(f"Output directory does not exist: {output_dir}")
    paths = list_chunk_files(output_dir, fmt)
    if not paths:
        raise InvalidInput(f"No chunk files found in {output_dir}")

    frames, labels = [], []
    for p in paths:
        df = read_chunk(p)
        logger.info(f"Loaded {os.path.basename(p)} rows={len(df)} cols={len(df.columns)}")
        if len(df) == 0:
            continue
        frames.append(df)
        labels.append(os.path.basename(p))

    if not frames:
        return read_chunk(paths[0])
    columns = check_schema(frames, labels)
    return pd.concat([df[columns] for df in frames], ignore_index=True)


def write_combined(df, output_dir, fmt="pickle"):
    path = os.path.join(output_dir, f"combined_data.{OUTPUT_FORMATS[fmt]}")
    write_table(df, path, fmt)
    logger.info(f"Wrote {len(df)} combined rows -> {path}")
    return path
