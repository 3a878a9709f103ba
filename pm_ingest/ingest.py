# ingest.py
import os
import glob
import logging

from pm_ingest.errors import InvalidInput

logger = logging.getLogger(__name__)

def list_input_files(input_dir, pattern="*"):
    """Return every regular file in ``input_dir`` matching ``pattern``, sorted by name.

    The order returned here is the order used for chunking and processing.
    """
    if not os.path.isdir(input_dir):
        raise InvalidInput(f"Input directory does not exist: {input_dir}")
    files = sorted(
        f for f in glob.glob(os.path.join(input_dir, pattern))
        if os.path.isfile(f)
    )
    logger.info(f"Found {len(files)} input files in {input_dir}")
    return files

def ingest(input_dir, pattern="*"):
    files = list_input_files(input_dir, pattern)
    if not files:
        raise InvalidInput(f"No input files found in {input_dir} (pattern {pattern!r})")
    return files
