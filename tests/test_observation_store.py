"""
Tests for the day-sharded observation cache.
"""

import json
import warnings
from datetime import datetime, timedelta, timezone

import pytest

from transloader.exceptions import SchemaVersionWarning
from transloader.models import Observation
from transloader.observation_store import ObservationStore, to_pandas


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


class TestObservationStore:
    """Test ObservationStore persistence and queries."""

    @pytest.fixture
    def store(self, tmp_path):
        return ObservationStore(tmp_path, "campbell_scientific", "000001")

    def test_shard_layout(self, store, tmp_path):
        """Observations land in <provider>/<station>/YYYY/MM/DD.json."""
        store.store([Observation(_ts("2020-01-01T00:00:00"), 1, "temp", "C")])

        path = tmp_path / "campbell_scientific" / "000001" / "2020" / "01" / "01.json"
        assert path.exists()
        document = json.loads(path.read_text())
        assert document["schema_version"] == 2
        assert list(document["data"]) == ["2020-01-01T00:00:00.000Z-temp"]

    def test_file_url_prefix_is_stripped(self, tmp_path):
        store = ObservationStore(f"file://{tmp_path}", "p", "s")
        assert store.path == tmp_path / "p" / "s"

    def test_store_is_idempotent(self, store):
        """Storing the same observations twice leaves the shard byte-identical."""
        observations = [
            Observation(_ts("2020-01-01T00:00:00"), 1.5, "temp", "C"),
            Observation(_ts("2020-01-01T01:00:00"), 80, "rh", "%"),
        ]
        store.store(observations)
        path = store.shard_path(_ts("2020-01-01T00:00:00"))
        first = path.read_bytes()

        store.store(observations)
        assert path.read_bytes() == first

    def test_last_write_wins(self, store):
        """Same timestamp and property keeps only the later result."""
        store.store([Observation(_ts("2020-01-01T00:00:00"), 1, "temp", "C")])
        store.store([Observation(_ts("2020-01-01T00:00:00"), 2, "temp", "C")])

        result = store.get_all_in_range(_ts("2020-01-01T00:00:00"), _ts("2020-01-01T23:59:59"))
        assert len(result) == 1
        assert result[0].result == 2

    def test_overlapping_store_only_touches_overlap(self, store):
        store.store(
            [
                Observation(_ts("2020-01-01T00:00:00"), 1, "temp", "C"),
                Observation(_ts("2020-01-01T00:00:00"), 10, "rh", "%"),
            ]
        )
        store.store([Observation(_ts("2020-01-01T00:00:00"), 3, "temp", "C")])

        result = store.get_all_in_range(_ts("2020-01-01T00:00:00"), _ts("2020-01-01T00:00:00"))
        assert {(obs.property, obs.result) for obs in result} == {("temp", 3), ("rh", 10)}

    def test_range_spans_days(self, store):
        """Range queries cross shard boundaries and respect both ends."""
        start = _ts("2020-01-30T22:00:00")
        observations = [
            Observation(start + timedelta(hours=hour), hour, "temp", "C") for hour in range(60)
        ]
        store.store(observations)

        a = _ts("2020-01-31T05:00:00")
        b = _ts("2020-02-01T03:00:00")
        result = store.get_all_in_range(a, b)

        expected = [obs for obs in observations if a <= obs.timestamp <= b]
        assert [obs.timestamp for obs in result] == [obs.timestamp for obs in expected]
        assert result[0].timestamp == a
        assert result[-1].timestamp == b

    def test_missing_shards_are_empty(self, store):
        assert store.get_all_in_range(_ts("2019-01-01T00:00:00"), _ts("2019-01-10T00:00:00")) == []

    def test_non_utc_timestamps_are_sharded_by_utc_day(self, store):
        local = datetime(2020, 1, 1, 20, 0, tzinfo=timezone(timedelta(hours=-7)))
        store.store([Observation(local, 4, "temp", "C")])

        assert store.shard_path(_ts("2020-01-02T00:00:00")).exists()
        assert not store.shard_path(_ts("2020-01-01T00:00:00")).exists()

    def test_schema_mismatch_warns_but_reads(self, store):
        path = store.shard_path(_ts("2020-01-01T00:00:00"))
        path.parent.mkdir(parents=True)
        path.write_text(
            json.dumps(
                {
                    "schema_version": 1,
                    "data": {
                        "2020-01-01T00:00:00.000Z-temp": {
                            "timestamp": "2020-01-01T00:00:00.000Z",
                            "result": 7,
                            "property": "temp",
                            "unit": "C",
                        }
                    },
                }
            )
        )

        with pytest.warns(SchemaVersionWarning):
            result = store.get_all_in_range(
                _ts("2020-01-01T00:00:00"), _ts("2020-01-01T12:00:00")
            )
        assert [obs.result for obs in result] == [7]

    def test_current_schema_does_not_warn(self, store):
        store.store([Observation(_ts("2020-01-01T00:00:00"), 1, "temp", "C")])
        with warnings.catch_warnings():
            warnings.simplefilter("error", SchemaVersionWarning)
            store.get_all_in_range(_ts("2020-01-01T00:00:00"), _ts("2020-01-01T00:00:00"))


def test_to_pandas():
    pd = pytest.importorskip("pandas")
    df = to_pandas(
        [
            Observation(_ts("2020-01-01T00:00:00"), 1.0, "temp", "C"),
            Observation(_ts("2020-01-01T01:00:00"), 2.0, "temp", "C"),
        ]
    )
    assert isinstance(df, pd.DataFrame)
    assert list(df.columns) == ["property", "result", "unit"]
    assert len(df) == 2
