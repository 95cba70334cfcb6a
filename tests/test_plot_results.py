"""Tests for the run plotting script."""

import logging

import matplotlib.pyplot as plt
import pytest

from conftest import make_scan
from obstacle_follower.data_collector import DataCollector
from obstacle_follower.plot_results import find_latest_run, main


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


@pytest.fixture
def results_dir(tmp_path):
    for name in ("run_20250101_120000", "run_20250102_120000"):
        with DataCollector(run_dir=str(tmp_path / name)) as collector:
            collector.save_scan(make_scan([2.0, 1.0, 3.0]))
    (tmp_path / "notes").mkdir()
    return tmp_path


def test_find_latest_run(results_dir):
    assert find_latest_run(results_dir).name == "run_20250102_120000"


def test_find_latest_run_without_runs(tmp_path):
    with pytest.raises(FileNotFoundError):
        find_latest_run(tmp_path)


def test_saves_plots_for_latest_run(results_dir):
    main(["--results-dir", str(results_dir), "--save", "--no-show"])

    latest = results_dir / "run_20250102_120000"
    assert (latest / "cycle_history.png").exists()
    assert (latest / "last_scan.png").exists()
    assert not (results_dir / "run_20250101_120000" / "cycle_history.png").exists()


def test_named_run(results_dir):
    main(["--results-dir", str(results_dir), "--run", "run_20250101_120000", "--save", "--no-show"])

    assert (results_dir / "run_20250101_120000" / "last_scan.png").exists()


def test_unknown_run_exits(results_dir):
    with pytest.raises(SystemExit) as excinfo:
        main(["--results-dir", str(results_dir), "--run", "run_missing", "--no-show"])

    assert excinfo.value.code == 1


def test_list_runs(results_dir, caplog):
    with caplog.at_level(logging.INFO):
        main(["--results-dir", str(results_dir), "--list"])

    assert "run_20250101_120000" in caplog.text
    assert "notes" not in caplog.text
