# pipeline_local.py
import os
import sys
import time
import logging
import argparse
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from pm_ingest.chunking import partition
from pm_ingest.combine import combine_chunks, prune_chunk_files, write_combined
from pm_ingest.errors import InvalidInput, SchemaMismatch
from pm_ingest.ingest import ingest
from pm_ingest.local_config import OUTPUT_FORMATS, PipelineConfig, setup_logging
from pm_ingest.stage import process_chunk, remove_chunk, write_chunk
from pm_ingest.validate import validate_file

logger = logging.getLogger(__name__)


def log_step(message, level="INFO"):
    """Print and log a message with timestamp"""
    timestamp = datetime.now().strftime("%H:%M:%S")
    symbol = {
        "INFO": "[INFO]",
        "SUCCESS": "[OK]  ",
        "ERROR": "[ERR] ",
        "WARN": "[WARN]",
        "START": "[>>>] ",
        "PROCESS": "[CHNK]"
    }.get(level, "      ")

    formatted = f"[{timestamp}] {symbol} {message}"
    print(formatted)

    if level == "ERROR":
        logger.error(message)
    elif level == "WARN":
        logger.warning(message)
    else:
        logger.info(message)


@dataclass
class RunSummary:
    file_count: int = 0
    reports: List = field(default_factory=list)
    failed_chunks: List[int] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def ok(self):
        return not self.failed_chunks

    @property
    def rows_written(self):
        return sum(r.rows for r in self.reports if r.output_path)


def run_pipeline(config):
    """List, partition, then clean and write every chunk in order."""
    start_time = time.time()
    config.validate()

    files = ingest(config.input_dir, config.file_pattern)
    chunks = partition(files, config.chunk_size)
    summary = RunSummary(file_count=len(files))
    log_step(f"Found {len(files)} files in {config.input_dir} -> {len(chunks)} chunks of up to {config.chunk_size}", "INFO")

    os.makedirs(config.output_dir, exist_ok=True)
    stale = prune_chunk_files(config.output_dir, len(chunks))
    if stale:
        log_step(f"Removed {len(stale)} chunk files left over from an earlier run", "WARN")
    for window, chunk_files in chunks:
        log_step(f"Chunk {window.index}/{len(chunks)}: files {window.first}-{window.last}", "PROCESS")
        try:
            result, report = process_chunk(window, chunk_files, config)
        except SchemaMismatch as e:
            remove_chunk(config.output_dir, window.index)
            log_step(f"Chunk {window.index} failed, nothing written: {e}", "ERROR")
            summary.failed_chunks.append(window.index)
            continue

        report.output_path = write_chunk(result, config.output_dir, window.index, config.output_format)
        summary.reports.append(report)
        if report.skipped:
            log_step(
                f"Chunk {window.index}: skipped {len(report.skipped)} files "
                f"({report.parse_errors} unparsable, {report.missing_id} without '{config.id_column}', "
                f"{report.timestamp_errors} without a single timestamp column)", "WARN")
        log_step(f"Chunk {window.index}: {report.files_kept}/{report.files_seen} files, {report.rows} rows "
                 f"-> {os.path.basename(report.output_path)}", "SUCCESS")

    summary.elapsed = time.time() - start_time
    return summary


def build_parser():
    defaults = PipelineConfig()
    parser = argparse.ArgumentParser(prog="pm-ingest",
                                     description="Chunked daily PM aggregation of sensor CSV files")
    parser.add_argument("--log-dir", default=defaults.log_dir)
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="process every chunk and write its results")
    run.add_argument("--input-dir", default=defaults.input_dir)
    run.add_argument("--output-dir", default=defaults.output_dir)
    run.add_argument("--chunk-size", type=int, default=defaults.chunk_size)
    run.add_argument("--delimiter", default=defaults.delimiter,
                     help="explicit field delimiter; auto-detected when omitted")
    run.add_argument("--id-column", default=defaults.id_column)
    run.add_argument("--pollutant-marker", default=defaults.pollutant_marker)
    run.add_argument("--pattern", dest="file_pattern", default=defaults.file_pattern)
    run.add_argument("--format", dest="output_format", choices=sorted(OUTPUT_FORMATS),
                     default=defaults.output_format)

    combine = sub.add_parser("combine", help="merge the chunk files of a finished run")
    combine.add_argument("--output-dir", default=defaults.output_dir)
    combine.add_argument("--format", dest="output_format", choices=sorted(OUTPUT_FORMATS),
                         default=defaults.output_format)

    check = sub.add_parser("validate", help="check that every input file parses")
    check.add_argument("--input-dir", default=defaults.input_dir)
    check.add_argument("--delimiter", default=defaults.delimiter)
    check.add_argument("--pattern", dest="file_pattern", default=defaults.file_pattern)
    return parser


def _run(args):
    config = PipelineConfig(
        input_dir=args.input_dir,
        output_dir=args.output_dir,
        chunk_size=args.chunk_size,
        delimiter=args.delimiter,
        id_column=args.id_column,
        pollutant_marker=args.pollutant_marker,
        file_pattern=args.file_pattern,
        output_format=args.output_format,
        log_dir=args.log_dir,
    )

    print("\n" + "=" * 70)
    log_step("PM CHUNK PIPELINE STARTED", "START")
    print("=" * 70 + "\n")

    summary = run_pipeline(config)

    print("\n" + "=" * 70)
    log_step(f"Total runtime: {summary.elapsed:.2f} seconds", "INFO")
    log_step(f"Chunks written: {len(summary.reports)}, rows: {summary.rows_written}", "SUCCESS")
    if summary.failed_chunks:
        log_step(f"Chunks failed with schema mismatch: {summary.failed_chunks}", "ERROR")
    print("=" * 70 + "\n")
    return 0 if summary.ok else 1


def _combine(args):
    df = combine_chunks(args.output_dir, args.output_format)
    path = write_combined(df, args.output_dir, args.output_format)
    log_step(f"Combined {len(df)} rows -> {path}", "SUCCESS")
    return 0


def _validate(args):
    files = ingest(args.input_dir, args.file_pattern)
    invalid = [f for f in files if not validate_file(f, args.delimiter)]
    for f in invalid:
        log_step(f"Invalid: {os.path.basename(f)}", "WARN")
    log_step(f"Validated {len(files) - len(invalid)}/{len(files)} files", "SUCCESS" if not invalid else "WARN")
    return 0 if not invalid else 1


def main(argv=None):
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
    except InvalidInput as e:
        print(f"[ERR]  {e}", file=sys.stderr)
        return 2
    setup_logging(args.log_dir)

    handlers = {"run": _run, "combine": _combine, "validate": _validate}
    try:
        return handlers[args.command](args)
    except InvalidInput as e:
        log_step(f"Pipeline failed: {e}", "ERROR")
        return 1


if __name__ == "__main__":
    sys.exit(main())
