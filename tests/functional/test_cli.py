import json
import os
import re
import subprocess
import sys

import pytest

from trail_guardian import __version_date__

SRC_DIR = os.path.join(os.path.dirname(__file__), "..", "..", "src")


def _trkpt(i: int) -> str:
    # ~111 m apart heading north, climbing 20 m per fix
    return (
        f'<trkpt lat="{39.0 + i * 0.001:.4f}" lon="-105.0">'
        f"<ele>{2000 + i * 20}</ele>"
        f"<time>2024-06-15T08:{i:02d}:00Z</time></trkpt>"
    )


@pytest.fixture
def gpx_file(tmp_path):
    path = tmp_path / "trail.gpx"
    path.write_text(
        '<?xml version="1.0"?>\n'
        '<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">'
        "<trk><trkseg>" + "".join(_trkpt(i) for i in range(10)) + "</trkseg></trk></gpx>"
    )
    return str(path)


@pytest.fixture
def sensor_log(tmp_path):
    records = []
    for i in range(10):
        t = f"2024-06-15T08:{i:02d}:00Z"
        records.append({"time": t, "type": "baro", "relative_altitude": 5.0 + i * 20})
        records.append({"time": t, "type": "attitude", "pitch": 0.3, "roll": -0.1})
        records.append({"time": t, "type": "user_accel", "x": 0.0, "y": 0.0, "z": 1.5})
        records.append({"time": t, "type": "accel", "x": 0.0, "y": 0.0, "z": 0.4})
    records.append({"time": "2024-06-15T08:00:00Z", "type": "weather", "precipitation": 0.5})
    path = tmp_path / "sensors.jsonl"
    path.write_text("\n".join(json.dumps(r) for r in records))
    return str(path)


def run_cli(args, tmp_path):
    env = dict(os.environ)
    env["PYTHONPATH"] = SRC_DIR + os.pathsep + env.get("PYTHONPATH", "")
    env["HOME"] = str(tmp_path)
    return subprocess.run(
        [sys.executable, "-m", "trail_guardian", *args],
        capture_output=True,
        text=True,
        cwd=str(tmp_path),
        env=env,
    )


def parse_value(output, label):
    match = re.search(rf"{re.escape(label)}\s+([\d.]+)", output)
    assert match, f"Could not find '{label}' in output"
    return float(match.group(1))


class TestCli:
    def test_gpx_only(self, gpx_file, tmp_path):
        result = run_cli([gpx_file], tmp_path)
        assert result.returncode == 0, result.stderr
        output = result.stdout
        assert "Trail Difficulty Report" in output
        assert f"(trail-guardian {__version_date__})" in output
        assert "Points:         10 of 10 fixes accepted" in output
        assert "Duration:       0h 09m 00s" in output
        assert parse_value(output, "Distance:") == pytest.approx(1.0, abs=0.05)
        # No motion data: roughness 0 halves the score
        assert parse_value(output, "Sutton Score:") < 10
        assert "Green Circle" in output

    def test_with_sensor_log(self, gpx_file, sensor_log, tmp_path):
        result = run_cli([gpx_file, "--sensors", sensor_log], tmp_path)
        assert result.returncode == 0, result.stderr
        output = result.stdout
        assert parse_value(output, "Avg Roughness:") == pytest.approx(0.4)
        assert parse_value(output, "Max G-Force:") == pytest.approx(1.5)
        assert parse_value(output, "Max Pitch:") == pytest.approx(17.2, abs=0.1)
        assert parse_value(output, "Sutton Score:") > 30

    def test_vehicle_flags_raise_score(self, gpx_file, sensor_log, tmp_path):
        base = run_cli([gpx_file, "--sensors", sensor_log], tmp_path)
        boosted = run_cli(
            [gpx_file, "--sensors", sensor_log, "--terrain-mode", "rock_crawl", "--winch", "--locker"],
            tmp_path,
        )
        assert boosted.returncode == 0, boosted.stderr
        assert parse_value(boosted.stdout, "Sutton Score:") == parse_value(base.stdout, "Sutton Score:") + 12

    def test_accuracy_threshold(self, tmp_path):
        path = tmp_path / "noisy.gpx"
        path.write_text(
            '<?xml version="1.0"?>\n'
            '<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1"><trk><trkseg>'
            '<trkpt lat="39.0" lon="-105.0"><ele>2000</ele><time>2024-06-15T08:00:00Z</time><hdop>1</hdop></trkpt>'
            '<trkpt lat="39.001" lon="-105.0"><ele>2000</ele><time>2024-06-15T08:01:00Z</time><hdop>30</hdop></trkpt>'
            '<trkpt lat="39.002" lon="-105.0"><ele>2000</ele><time>2024-06-15T08:02:00Z</time><hdop>1</hdop></trkpt>'
            "</trkseg></trk></gpx>"
        )
        result = run_cli([str(path)], tmp_path)
        assert result.returncode == 0, result.stderr
        assert "Points:         2 of 3 fixes accepted" in result.stdout

    def test_config_file_sets_defaults(self, gpx_file, tmp_path):
        (tmp_path / "trail-guardian.json").write_text('{"max_accuracy_m": -1}')
        result = run_cli([gpx_file], tmp_path)
        assert result.returncode == 0, result.stderr
        assert "Points:         0 of 10 fixes accepted" in result.stdout

    def test_nonexistent_file(self, tmp_path):
        result = run_cli(["/nonexistent/file.gpx"], tmp_path)
        assert result.returncode != 0
        assert "Error" in result.stderr

    def test_bad_sensor_log(self, gpx_file, tmp_path):
        bad = tmp_path / "bad.jsonl"
        bad.write_text('{"time": "2024-06-15T08:00:00Z", "type": "sonar"}')
        result = run_cli([gpx_file, "--sensors", str(bad)], tmp_path)
        assert result.returncode == 1
        assert "line 1" in result.stderr

    def test_sensor_log_with_null_value(self, gpx_file, tmp_path):
        bad = tmp_path / "null.jsonl"
        bad.write_text('{"time": "2024-06-15T08:00:00Z", "type": "baro", "relative_altitude": null}')
        result = run_cli([gpx_file, "--sensors", str(bad)], tmp_path)
        assert result.returncode == 1
        assert "line 1" in result.stderr
        assert "Traceback" not in result.stderr

    def test_missing_first_elevation(self, tmp_path):
        path = tmp_path / "no_ele.gpx"
        path.write_text(
            '<?xml version="1.0"?>\n'
            '<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1"><trk><trkseg>'
            '<trkpt lat="39.0" lon="-105.0"><time>2024-06-15T08:00:00Z</time></trkpt>'
            '<trkpt lat="39.001" lon="-105.0"><ele>2000</ele><time>2024-06-15T08:01:00Z</time></trkpt>'
            '<trkpt lat="39.002" lon="-105.0"><ele>2000</ele><time>2024-06-15T08:02:00Z</time></trkpt>'
            "</trkseg></trk></gpx>"
        )
        result = run_cli([str(path)], tmp_path)
        assert result.returncode == 0, result.stderr
        assert "Points:         2 of 3 fixes accepted" in result.stdout
        assert parse_value(result.stdout, "Max Grade:") == pytest.approx(0.0)

    def test_invalid_window(self, gpx_file, tmp_path):
        result = run_cli([gpx_file, "--window", "0"], tmp_path)
        assert result.returncode == 1
        assert "Invalid configuration" in result.stderr

    def test_no_arguments(self, tmp_path):
        result = run_cli([], tmp_path)
        assert result.returncode != 0
