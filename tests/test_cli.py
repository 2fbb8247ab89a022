import io
import time

import pytest
from rich.console import Console

from wppa.aggregator.schema import PersistedSample
from wppa.cli import main
from wppa.database.sample_store import SampleStore

DAY = 86400.0


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=140)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("WPPA_DATA_DIR", "WPPA_SAMPLE_RATE", "WPPA_DATA_RETENTION"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def data_dir(tmp_path):
    store = SampleStore(data_dir=str(tmp_path))
    now = time.time()
    store.insert(PersistedSample("/old", "page load", 1.0, 1, 1, 0.1), timestamp=now - 60 * DAY)
    store.insert(PersistedSample("/", "page load", 0.25, 1, 3, 0.1), timestamp=now)
    return tmp_path


class TestCli:
    def test_report(self, data_dir, console):
        assert main(["report", "--data-dir", str(data_dir)], console=console) == 0
        assert "Performance History" in console.file.getvalue()

    def test_report_uses_env_data_dir(self, data_dir, console, monkeypatch):
        monkeypatch.setenv("WPPA_DATA_DIR", str(data_dir))
        assert main(["report"], console=console) == 0

    def test_report_without_data_dir_exits(self, console):
        with pytest.raises(SystemExit):
            main(["report"], console=console)

    def test_cleanup(self, data_dir, console):
        assert main(["cleanup", "--data-dir", str(data_dir), "--retention-days", "30"], console=console) == 0
        assert "Removed 1 sample(s)" in console.file.getvalue()
        assert len(SampleStore.load(str(data_dir))) == 1

    def test_cleanup_uses_configured_retention(self, data_dir, console, monkeypatch):
        monkeypatch.setenv("WPPA_DATA_RETENTION", "90")
        main(["cleanup", "--data-dir", str(data_dir)], console=console)
        assert len(SampleStore.load(str(data_dir))) == 2

    def test_clear(self, data_dir, console):
        assert main(["clear", "--data-dir", str(data_dir)], console=console) == 0
        assert len(SampleStore.load(str(data_dir))) == 0

    def test_settings(self, console, monkeypatch):
        monkeypatch.setenv("WPPA_SAMPLE_RATE", "40")
        assert main(["settings"], console=console) == 0
        out = console.file.getvalue()
        assert "sample_rate" in out
        assert "40" in out

    def test_invalid_env_is_reported(self, console, monkeypatch):
        monkeypatch.setenv("WPPA_SAMPLE_RATE", "lots")
        assert main(["settings"], console=console) == 1

    def test_report_hourly(self, data_dir, console):
        assert main(["report", "--data-dir", str(data_dir), "--hourly", "--hours", "12"], console=console) == 0
        out = console.file.getvalue()
        assert "Hourly Timeline (12h)" in out
        assert "Performance History" not in out

    def test_report_component(self, data_dir, console):
        assert main(["report", "--data-dir", str(data_dir), "--component", "page load"], console=console) == 0
        out = console.file.getvalue()
        assert "Component Details: page load" in out
        assert "250.00 ms" in out

    def test_cleanup_rejects_zero_retention(self, data_dir, console):
        assert main(["cleanup", "--data-dir", str(data_dir), "--retention-days", "0"], console=console) == 1
        assert len(SampleStore.load(str(data_dir))) == 2
