"""
Shared fixtures: small directories of sensor exports written into tmp_path.
"""
import logging

import pytest

from pm_ingest.local_config import PipelineConfig

HEADER = "id,timestamp,PM10,PM2.5,temperature"


def sensor_rows(sensor_id, day, values):
    """One row per (hour, pm10, pm25) for the given sensor and day."""
    return [
        f"{sensor_id},{day}T{hour:02d}:15:00,{pm10},{pm25},20.5"
        for hour, pm10, pm25 in values
    ]


@pytest.fixture
def write_file(tmp_path):
    def _write(name, lines, directory="data"):
        d = tmp_path / directory
        d.mkdir(exist_ok=True)
        path = d / name
        path.write_text("\n".join(lines) + "\n" if lines else "")
        return str(path)
    return _write


@pytest.fixture
def sensor_dir(tmp_path, write_file):
    """Five files: four usable sensor files and one without an id column."""
    write_file("a_sensor_1.csv", [HEADER]
               + sensor_rows(1, "2019-01-01", [(0, 10, 5), (12, 20, 7)])
               + sensor_rows(1, "2019-01-02", [(1, 30, 9)]))
    write_file("b_sensor_2.csv", [HEADER]
               + sensor_rows(2, "2019-01-01", [(3, 4, 2), (4, 6, "")]))
    write_file("c_no_id.csv", ["sensor,timestamp,PM10",
                               "3,2019-01-01T00:00:00,99"])
    write_file("d_sensor_4.csv", [HEADER.replace(",", ";")]
               + [r.replace(",", ";") for r in sensor_rows(4, "2019-01-03", [(5, 8, 3)])])
    write_file("e_sensor_5.csv", [HEADER]
               + sensor_rows(5, "2019-01-03", [(6, 1, 1), (7, 3, 3)])
               + sensor_rows(5, "2019-01-04", [(8, 5, 5)]))
    return str(tmp_path / "data")


@pytest.fixture
def config(tmp_path, sensor_dir):
    return PipelineConfig(
        input_dir=sensor_dir,
        output_dir=str(tmp_path / "results"),
        chunk_size=2,
        delimiter=None,
        id_column="id",
        pollutant_marker="PM",
        file_pattern="*.csv",
        output_format="pickle",
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture(autouse=True)
def drop_pipeline_handlers():
    """The CLI attaches handlers to the root logger; detach them after each test."""
    yield
    root = logging.getLogger()
    for h in [h for h in root.handlers if getattr(h, "pm_ingest", False)]:
        root.removeHandler(h)
        h.close()
