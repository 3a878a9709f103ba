# errors.py


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""


class ParseError(PipelineError):
    """A single input file could not be read or tokenized."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class SchemaMismatch(PipelineError):
    """Cleaned tables disagree on their columns."""


class TimestampColumnError(SchemaMismatch):
    """A table does not have exactly one timestamp column to derive ``Date`` from."""


class InvalidInput(PipelineError):
    """Run-level precondition failed (no input files, bad chunk size, ...)."""
