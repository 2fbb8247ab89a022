import json
from datetime import datetime

import pytest

from wppa.aggregator.schema import PersistedSample
from wppa.database.database import Database
from wppa.database.sample_store import SampleStore

NOW = 1_700_000_000.0
DAY = 86400.0


def _sample(time=1.0, label="page load", queries=10, memory=1000, url="/"):
    return PersistedSample(
        page_url=url,
        component_label=label,
        execution_time=time,
        memory_usage=memory,
        query_count=queries,
        query_time=0.1,
    )


class TestDatabase:
    def test_create_table_twice(self):
        db = Database("t")
        db.create_table("rows")
        with pytest.raises(ValueError):
            db.create_table("rows")

    def test_add_record_requires_table(self):
        with pytest.raises(ValueError):
            Database("t").add_record("missing", {})

    def test_delete_where_in_place(self):
        db = Database("t")
        rows = db.create_or_get_table("rows")
        for i in range(5):
            db.add_record("rows", {"i": i})
        assert db.delete_where("rows", lambda r: r["i"] % 2 == 0) == 3
        assert rows == [{"i": 1}, {"i": 3}]


class TestInsert:
    def test_ids_and_timestamps(self):
        store = SampleStore(time_fn=lambda: NOW)
        assert store.insert(_sample()) == 1
        assert store.insert(_sample(), timestamp=NOW - 5) == 2
        rows = store.rows()
        assert [r["id"] for r in rows] == [1, 2]
        assert rows[0]["timestamp"] == NOW
        assert rows[1]["timestamp"] == NOW - 5
        assert store.samples()[0] == _sample()

    def test_flushes_jsonl(self, tmp_path):
        store = SampleStore(data_dir=str(tmp_path))
        store.insert(_sample(url="/a"), timestamp=NOW)
        store.insert(_sample(url="/b"), timestamp=NOW)
        lines = (tmp_path / "performance_logs.jsonl").read_text().splitlines()
        assert [json.loads(line)["page_url"] for line in lines] == ["/a", "/b"]

    def test_load_round_trip(self, tmp_path):
        store = SampleStore(data_dir=str(tmp_path))
        store.insert(_sample(url="/a"), timestamp=NOW)
        store.insert(_sample(url="/b"), timestamp=NOW)

        reloaded = SampleStore.load(str(tmp_path))
        assert len(reloaded) == 2
        assert reloaded.insert(_sample(url="/c"), timestamp=NOW) == 3
        lines = (tmp_path / "performance_logs.jsonl").read_text().splitlines()
        assert len(lines) == 3

    def test_load_skips_malformed_lines(self, tmp_path):
        path = tmp_path / "performance_logs.jsonl"
        good = dict(_sample().to_wire(), id=7, timestamp=NOW)
        path.write_text(json.dumps(good) + "\n{not json\n\n")
        store = SampleStore.load(str(tmp_path))
        assert len(store) == 1
        assert store.insert(_sample(), timestamp=NOW) == 8

    def test_load_missing_dir_is_empty(self, tmp_path):
        assert len(SampleStore.load(str(tmp_path / "nothing"))) == 0


class TestCleanup:
    def test_retention(self, tmp_path):
        store = SampleStore(data_dir=str(tmp_path))
        store.insert(_sample(url="/old"), timestamp=NOW - 31 * DAY)
        store.insert(_sample(url="/recent"), timestamp=NOW - 29 * DAY)
        store.insert(_sample(url="/now"), timestamp=NOW)

        assert store.cleanup(30, now=NOW) == 1
        assert [r["page_url"] for r in store.rows()] == ["/recent", "/now"]
        # file is rewritten, not appended
        assert len(SampleStore.load(str(tmp_path))) == 2

    def test_nothing_to_remove(self):
        store = SampleStore()
        store.insert(_sample(), timestamp=NOW)
        assert store.cleanup(30, now=NOW) == 0

    def test_clear(self, tmp_path):
        store = SampleStore(data_dir=str(tmp_path))
        store.insert(_sample(), timestamp=NOW)
        store.clear()
        assert len(store) == 0
        assert (tmp_path / "performance_logs.jsonl").read_text() == ""


class TestHistoryViews:
    @pytest.fixture
    def store(self):
        store = SampleStore()
        store.insert(_sample(time=1.0, queries=10, memory=100), timestamp=NOW - 60)
        store.insert(_sample(time=3.0, queries=20, memory=300), timestamp=NOW - 120)
        store.insert(_sample(time=5.0, label="checkout", queries=4), timestamp=NOW - 2 * DAY)
        store.insert(_sample(time=9.0), timestamp=NOW - 30 * DAY)
        return store

    def test_daily_history(self, store):
        history = store.daily_history(days=7, now=NOW)
        dates = [d["date"] for d in history]
        assert dates == sorted(dates, reverse=True)
        today = datetime.fromtimestamp(NOW - 60).strftime("%Y-%m-%d")
        row = next(d for d in history if d["date"] == today)
        assert row["avg_queries"] == pytest.approx(15.0)
        assert sum(1 for _ in history) >= 2

    def test_component_performance(self, store):
        rows = store.component_performance(days=7, now=NOW)
        assert [r["component"] for r in rows] == ["checkout", "page load"]
        page = rows[1]
        assert page["avg_time"] == 2.0
        assert page["max_time"] == 3.0
        assert page["sample_count"] == 2
        assert store.component_performance(days=7, limit=1, now=NOW)[0]["component"] == "checkout"

    def test_realtime_stats(self, store):
        stats = store.realtime_stats(now=NOW)
        assert stats == {"avg_time": 2.0, "avg_queries": 15.0, "avg_memory": 200.0}

    def test_realtime_stats_empty(self):
        assert SampleStore().realtime_stats(now=NOW) == {
            "avg_time": 0.0,
            "avg_queries": 0.0,
            "avg_memory": 0.0,
        }

    def test_hourly_timeline_ascending(self, store):
        hours = [h["hour"] for h in store.hourly_timeline(hours=72, now=NOW)]
        assert hours == sorted(hours)
        assert len(hours) >= 2

    def test_recent_for_component(self, store):
        rows = store.recent_for_component("page load", hours=24, now=NOW)
        assert [r["execution_time"] for r in rows] == [1.0, 3.0]
