import os

import pytest

from wppa.utils.clock import EventClock
from wppa.utils.formatting import fmt_bytes, fmt_percent, fmt_seconds_ms, truncate_text
from wppa.utils.paths import is_under, top_level_dir


class TestEventClock:
    def test_now_uses_time_source(self):
        clock = EventClock(time_fn=iter([1.0, 2.5]).__next__, memory_fn=None)
        assert clock.now() == 1.0
        assert clock.now() == 2.5

    def test_peak_memory_is_running_max(self):
        readings = iter([100, 300, 200])
        clock = EventClock(memory_fn=readings.__next__)
        assert [clock.peak_memory() for _ in range(3)] == [100, 300, 300]

    def test_failing_reader_keeps_last_peak(self):
        calls = iter([512])

        def read_memory():
            return next(calls)

        clock = EventClock(memory_fn=read_memory)
        assert clock.peak_memory() == 512
        # StopIteration from the exhausted reader is swallowed
        assert clock.peak_memory() == 512

    def test_default_reader_reads_process(self):
        assert EventClock().peak_memory() > 0


class TestPaths:
    def test_is_under(self, tmp_path):
        assert is_under(str(tmp_path / "a" / "b.py"), str(tmp_path))
        assert not is_under(str(tmp_path), str(tmp_path / "a"))

    def test_prefix_is_not_containment(self, tmp_path):
        assert not is_under(str(tmp_path / "plugins-old" / "x.py"), str(tmp_path / "plugins"))

    def test_top_level_dir(self, tmp_path):
        root = str(tmp_path / "plugins")
        assert top_level_dir(os.path.join(root, "woo", "inc", "x.py"), root) == "woo"
        assert top_level_dir(os.path.join(root, "hello.php"), root) == "hello"
        assert top_level_dir(root, root) is None
        assert top_level_dir(str(tmp_path / "x.py"), root) is None


class TestFormatting:
    @pytest.mark.parametrize(
        "value,expected",
        [(0, "0 B"), (2048, "2.00 KB"), (15 * 1024 * 1024, "15.0 MB"), ("x", "N/A")],
    )
    def test_fmt_bytes(self, value, expected):
        assert fmt_bytes(value) == expected

    def test_fmt_seconds_ms(self):
        assert fmt_seconds_ms(0.01234) == "12.34 ms"
        assert fmt_seconds_ms(None) == "N/A"

    def test_fmt_percent(self):
        assert fmt_percent(12.345) == "12.3%"

    def test_truncate_text(self):
        assert truncate_text("SELECT   *\n FROM t") == "SELECT * FROM t"
        long = "x" * 100
        out = truncate_text(long, max_len=10)
        assert len(out) == 10
        assert out.endswith("…")
