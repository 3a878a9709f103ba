import os
from dataclasses import replace
from datetime import date

import pandas as pd
import pytest

from pm_ingest.combine import combine_chunks
from pm_ingest.errors import InvalidInput
from pm_ingest.ingest import ingest, list_input_files
from pm_ingest.pipeline_local import main, run_pipeline
from pm_ingest.stage import process_file


def rows_of(df):
    return sorted(
        tuple(None if pd.isna(v) else v for v in row)
        for row in df.itertuples(index=False)
    )


def test_list_input_files_sorted_and_filtered(sensor_dir, tmp_path):
    os.mkdir(os.path.join(sensor_dir, "subdir"))
    files = list_input_files(sensor_dir)
    assert [os.path.basename(f) for f in files] == [
        "a_sensor_1.csv", "b_sensor_2.csv", "c_no_id.csv", "d_sensor_4.csv", "e_sensor_5.csv",
    ]
    assert len(list_input_files(sensor_dir, "a_*.csv")) == 1


def test_ingest_rejects_empty_or_missing_directory(tmp_path):
    (tmp_path / "empty").mkdir()
    with pytest.raises(InvalidInput):
        ingest(str(tmp_path / "empty"))
    with pytest.raises(InvalidInput):
        ingest(str(tmp_path / "missing"))


def test_run_writes_one_file_per_chunk(config):
    summary = run_pipeline(config)
    assert summary.ok
    assert summary.file_count == 5
    assert sorted(os.listdir(config.output_dir)) == ["1_data.pkl", "2_data.pkl", "3_data.pkl"]
    assert [r.rows for r in summary.reports] == [3, 1, 2]
    assert summary.rows_written == 6

    second = pd.read_pickle(os.path.join(config.output_dir, "2_data.pkl"))
    # c_no_id.csv contributes nothing
    assert list(second["id"]) == [4]
    assert second["Date"].iloc[0] == date(2019, 1, 3)
    assert second["PM10"].iloc[0] == 8.0


def test_daily_means(config):
    run_pipeline(config)
    first = pd.read_pickle(os.path.join(config.output_dir, "1_data.pkl"))
    assert list(first.columns) == ["id", "Date", "PM10", "PM2.5"]
    assert rows_of(first) == [
        (1, date(2019, 1, 1), 15.0, 6.0),
        (1, date(2019, 1, 2), 30.0, 9.0),
        (2, date(2019, 1, 1), 5.0, 2.0),
    ]


def test_rerun_is_idempotent(config):
    run_pipeline(config)
    before = {n: pd.read_pickle(os.path.join(config.output_dir, n))
              for n in os.listdir(config.output_dir)}
    run_pipeline(config)
    after = {n: pd.read_pickle(os.path.join(config.output_dir, n))
             for n in os.listdir(config.output_dir)}
    assert before.keys() == after.keys()
    for name in before:
        pd.testing.assert_frame_equal(before[name], after[name])


@pytest.mark.parametrize("chunk_size", [1, 2, 3, 1000])
def test_chunking_does_not_change_results(config, chunk_size):
    config = replace(config, chunk_size=chunk_size)
    run_pipeline(config)
    chunked = combine_chunks(config.output_dir)

    direct = [process_file(f, config)[0] for f in list_input_files(config.input_dir, config.file_pattern)]
    unchunked = pd.concat([t for t in direct if t is not None], ignore_index=True)
    assert rows_of(chunked) == rows_of(unchunked)


def test_schema_mismatch_fails_only_that_chunk(config, write_file):
    write_file("f_other.csv", [
        "id,timestamp,PM1",
        "6,2019-01-05T10:00:00,4",
    ])
    summary = run_pipeline(replace(config, chunk_size=3))
    # chunk 2 holds d_sensor_4.csv, e_sensor_5.csv and f_other.csv
    assert summary.failed_chunks == [2]
    assert not summary.ok
    assert os.listdir(config.output_dir) == ["1_data.pkl"]


def test_run_rejects_bad_chunk_size_before_processing(config):
    with pytest.raises(InvalidInput):
        run_pipeline(replace(config, chunk_size=0))
    assert not os.path.exists(config.output_dir)


def test_cli_run_and_combine(config):
    common = ["--log-dir", config.log_dir]
    assert main(common + ["run", "--input-dir", config.input_dir, "--output-dir", config.output_dir,
                          "--chunk-size", "2", "--pattern", "*.csv"]) == 0
    assert main(common + ["combine", "--output-dir", config.output_dir]) == 0
    combined = pd.read_pickle(os.path.join(config.output_dir, "combined_data.pkl"))
    assert len(combined) == 6
    assert os.path.exists(os.path.join(config.log_dir, "pipeline.log"))


def test_cli_run_with_no_files_fails(tmp_path):
    (tmp_path / "empty").mkdir()
    code = main(["--log-dir", str(tmp_path / "logs"), "run",
                 "--input-dir", str(tmp_path / "empty"), "--output-dir", str(tmp_path / "out")])
    assert code == 1


def test_cli_validate(config, write_file):
    common = ["--log-dir", config.log_dir]
    assert main(common + ["validate", "--input-dir", config.input_dir]) == 0
    write_file("z_empty.csv", [])
    assert main(common + ["validate", "--input-dir", config.input_dir]) == 1


def test_rerun_with_larger_chunks_removes_leftover_files(config):
    run_pipeline(replace(config, chunk_size=1))
    assert len(os.listdir(config.output_dir)) == 5

    run_pipeline(config)
    assert sorted(os.listdir(config.output_dir)) == ["1_data.pkl", "2_data.pkl", "3_data.pkl"]
    assert len(combine_chunks(config.output_dir)) == 6


def test_failed_chunk_removes_its_earlier_result(config, write_file):
    config = replace(config, chunk_size=3)
    run_pipeline(config)
    assert sorted(os.listdir(config.output_dir)) == ["1_data.pkl", "2_data.pkl"]

    write_file("f_other.csv", [
        "id,timestamp,PM1",
        "6,2019-01-05T10:00:00,4",
    ])
    summary = run_pipeline(config)
    assert summary.failed_chunks == [2]
    assert os.listdir(config.output_dir) == ["1_data.pkl"]
    assert len(combine_chunks(config.output_dir)) == 3


def test_cli_run_prints_start_banner(config, capsys):
    main(["--log-dir", config.log_dir, "run", "--input-dir", config.input_dir,
          "--output-dir", config.output_dir, "--chunk-size", "2", "--pattern", "*.csv"])
    out = capsys.readouterr().out
    assert "[>>>]  PM CHUNK PIPELINE STARTED" in out
