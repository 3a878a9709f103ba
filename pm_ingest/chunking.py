# chunking.py
"""
Chunk boundary arithmetic.

File positions are 1-based. For ``L`` files and chunk size ``S`` the
boundaries are ``ext = [1, 1+S, 1+2S, ...]`` (every value <= L) followed by
the sentinel ``L + 1``. Window ``n`` (n >= 1) is the half-open range
``[ext[n-1], ext[n])`` over the boundary list, so for L = 20484 and S = 1000
window 4 holds files 3001..4000.
"""
import numbers
from dataclasses import dataclass

import numpy as np

from pm_ingest.errors import InvalidInput

DEFAULT_CHUNK_SIZE = 1000


@dataclass(frozen=True)
class ChunkWindow:
    index: int   # window number n, also used in the output file name
    start: int   # ext[n-1]
    stop: int    # ext[n], exclusive

    @property
    def first(self):
        return self.start

    @property
    def last(self):
        return self.stop - 1

    def __len__(self):
        return self.stop - self.start

    def positions(self):
        return range(self.start, self.stop)

    def select(self, files):
        """Files of this window out of the full, ordered file list."""
        return list(files[self.start - 1:self.stop - 1])


def _check_positive_int(value, name):
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value <= 0:
        raise InvalidInput(f"{name} must be a positive integer, got {value!r}")


def chunk_boundaries(file_count, chunk_size=DEFAULT_CHUNK_SIZE):
    _check_positive_int(file_count, "file_count")
    _check_positive_int(chunk_size, "chunk_size")
    return list(range(1, int(file_count) + 1, int(chunk_size))) + [int(file_count) + 1]


def window(boundaries, n):
    if not 1 <= n < len(boundaries):
        raise InvalidInput(f"window {n} out of range for {len(boundaries)} boundaries")
    return ChunkWindow(index=n, start=int(boundaries[n - 1]), stop=int(boundaries[n]))


def chunk_windows(boundaries):
    if len(boundaries) < 2:
        raise InvalidInput(f"need at least two boundaries, got {list(boundaries)}")
    steps = np.diff(np.asarray(boundaries, dtype=np.int64))
    if (steps <= 0).any():
        raise InvalidInput(f"boundaries must be strictly increasing: {list(boundaries)}")
    return [window(boundaries, n) for n in range(1, len(boundaries))]


def partition(files, chunk_size=DEFAULT_CHUNK_SIZE):
    """Pair every window with its slice of ``files``."""
    if not files:
        raise InvalidInput("no input files to partition")
    windows = chunk_windows(chunk_boundaries(len(files), chunk_size))
    return [(w, w.select(files)) for w in windows]
