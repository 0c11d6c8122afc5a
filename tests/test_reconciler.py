"""
Tests for idempotent entity reconciliation against a SensorThings store.
"""

import json
from typing import Any, Dict, List

import httpx
import pytest

from transloader.exceptions import EntityStoreError
from transloader.sensorthings import (
    EntityReconciler,
    Outcome,
    build_filter,
    join_uris,
    new_datastream,
    new_location,
    new_observation,
    new_observed_property,
    new_thing,
)
from transloader.sensorthings.kinds import KINDS, OBSERVATION, THING

SERVER = "http://sta.example.com/v1.0/"


def store_handler(
    existing: List[Dict[str, Any]],
    post_status: int = 201,
    patch_status: int = 200,
    empty_post_body: bool = False,
):
    """Answer filter queries with ``existing`` and accept creates and updates."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and "$filter" in request.url.params:
            return httpx.Response(200, json={"value": existing, "@iot.count": len(existing)})
        if request.method == "GET":
            return httpx.Response(
                200, json={"@iot.id": 99, "@iot.selfLink": str(request.url)}
            )
        if request.method == "POST":
            link = f"{str(request.url).rstrip('/')}(99)"
            if post_status != 201:
                return httpx.Response(post_status, text="rejected")
            if empty_post_body:
                return httpx.Response(201, headers={"Location": link})
            return httpx.Response(201, json={"@iot.id": 99, "@iot.selfLink": link})
        if request.method == "PATCH":
            return httpx.Response(patch_status)
        return httpx.Response(405)

    return handler


def mutating(transport) -> List[str]:
    return [r.method for r in transport.requests if r.method in ("POST", "PATCH", "PUT")]


class TestEntityReconciler:
    """Test create/reuse/update outcomes."""

    def test_create_when_no_match(self, make_client):
        client, transport = make_client(store_handler([]))
        thing = new_thing("Station 1", "Weather station 1", {"provider": "test"})

        result = EntityReconciler(client).reconcile(thing, server_url=SERVER)

        assert result.outcome is Outcome.CREATED
        assert result.remote_id == 99
        assert result.remote_link == "http://sta.example.com/v1.0/Things(99)"
        assert thing.remote_id == 99
        assert mutating(transport) == ["POST"]
        assert json.loads(transport.requests[1].content) == {
            "name": "Station 1",
            "description": "Weather station 1",
            "properties": {"provider": "test"},
        }

    def test_create_recovers_id_from_location_header(self, make_client):
        client, transport = make_client(store_handler([], empty_post_body=True))
        thing = new_thing("Station 1", "Weather station 1")

        result = EntityReconciler(client).reconcile(thing, server_url=SERVER)

        assert result.outcome is Outcome.CREATED
        assert result.remote_id == 99
        assert transport.methods() == ["GET", "POST", "GET"]
        assert str(transport.requests[2].url) == "http://sta.example.com/v1.0/Things(99)"

    def test_reuse_when_canonical_attributes_equal(self, make_client):
        """Key order and extra remote fields do not cause a mismatch."""
        existing = {
            "@iot.id": 7,
            "@iot.selfLink": "http://sta.example.com/v1.0/Things(7)",
            "properties": {"b": 2, "a": 1},
            "description": "Weather station 1",
            "name": "Station 1",
            "Locations@iot.navigationLink": "http://sta.example.com/v1.0/Things(7)/Locations",
        }
        client, transport = make_client(store_handler([existing]))
        thing = new_thing("Station 1", "Weather station 1", {"a": 1, "b": 2})

        result = EntityReconciler(client).reconcile(thing, server_url=SERVER)

        assert result.outcome is Outcome.REUSED
        assert result.remote_id == 7
        assert result.remote_link == existing["@iot.selfLink"]
        assert mutating(transport) == []

    def test_reuse_when_remote_thing_has_no_properties(self, make_client):
        existing = {
            "@iot.id": 7,
            "@iot.selfLink": "http://sta.example.com/v1.0/Things(7)",
            "name": "Station 1",
            "description": "Weather station 1",
        }
        client, transport = make_client(store_handler([existing]))

        result = EntityReconciler(client).reconcile(
            new_thing("Station 1", "Weather station 1"), server_url=SERVER
        )

        assert result.outcome is Outcome.REUSED
        assert transport.methods() == ["GET"]

    def test_reuse_when_remote_properties_are_empty(self, make_client):
        existing = {
            "@iot.id": 7,
            "@iot.selfLink": "http://sta.example.com/v1.0/Things(7)",
            "name": "Station 1",
            "description": "Weather station 1",
            "properties": {},
        }
        client, transport = make_client(store_handler([existing]))

        result = EntityReconciler(client).reconcile(
            new_thing("Station 1", "Weather station 1"), server_url=SERVER
        )
        assert result.outcome is Outcome.REUSED

    def test_update_when_attributes_differ(self, make_client):
        existing = {
            "@iot.id": 7,
            "@iot.selfLink": "http://sta.example.com/v1.0/Things(7)",
            "name": "Station 1",
            "description": "Weather station 1",
            "properties": {"a": 1},
        }
        client, transport = make_client(store_handler([existing]))
        thing = new_thing("Station 1", "Weather station 1", {"a": 2})

        result = EntityReconciler(client).reconcile(thing, server_url=SERVER)

        assert result.outcome is Outcome.UPDATED
        assert mutating(transport) == ["PATCH"]
        assert str(transport.requests[-1].url) == existing["@iot.selfLink"]
        assert result.remote_id == 7

    def test_location_mismatch_creates_instead_of_patching(self, make_client):
        existing = {
            "@iot.id": 3,
            "@iot.selfLink": "http://sta.example.com/v1.0/Locations(3)",
            "name": "Station 1",
            "description": "Weather station 1",
            "encodingType": "application/vnd.geo+json",
            "location": {"type": "Point", "coordinates": [-110.0, 60.0]},
        }
        client, transport = make_client(store_handler([existing]))
        location = new_location("Station 1", "Weather station 1", latitude=61.0, longitude=-110.0)

        result = EntityReconciler(client).reconcile(
            location, parent_link="http://sta.example.com/v1.0/Things(7)"
        )

        assert result.outcome is Outcome.CREATED
        assert mutating(transport) == ["POST"]
        assert str(transport.requests[1].url) == "http://sta.example.com/v1.0/Things(7)/Locations"
        assert result.remote_link == "http://sta.example.com/v1.0/Things(7)/Locations(99)"

    def test_location_match_is_reused(self, make_client):
        existing = {
            "@iot.id": 3,
            "@iot.selfLink": "http://sta.example.com/v1.0/Locations(3)",
            "name": "Station 1",
            "description": "Weather station 1",
            "encodingType": "application/vnd.geo+json",
            "location": {"type": "Point", "coordinates": [-110, 61]},
        }
        client, transport = make_client(store_handler([existing]))
        location = new_location("Station 1", "Weather station 1", latitude=61.0, longitude=-110.0)

        result = EntityReconciler(client).reconcile(
            location, parent_link="http://sta.example.com/v1.0/Things(7)"
        )
        assert result.outcome is Outcome.REUSED

    def test_observation_reuse_ignores_timestamp_formatting(self, make_client):
        existing = {
            "@iot.id": 5,
            "@iot.selfLink": "http://sta.example.com/v1.0/Observations(5)",
            "phenomenonTime": "2020-01-01T00:00:00Z",
            "resultTime": "2020-01-01T00:00:00.000Z",
            "result": 1,
        }
        client, transport = make_client(store_handler([existing]))
        from datetime import datetime, timezone

        observation = new_observation(datetime(2020, 1, 1, tzinfo=timezone.utc), 1.0)
        result = EntityReconciler(client).reconcile(
            observation, parent_link="http://sta.example.com/v1.0/Datastreams(4)"
        )

        assert result.outcome is Outcome.REUSED
        query = transport.requests[0].url.params["$filter"]
        assert query == "phenomenonTime eq 2020-01-01T00:00:00.000Z"
        assert transport.requests[0].url.path == "/v1.0/Datastreams(4)/Observations"

    def test_datastream_body_links_sensor_and_property(self, make_client):
        client, transport = make_client(store_handler([]))
        datastream = new_datastream(
            "Station 1 TEMP",
            "Station 1 TEMP",
            {"name": "degree Celsius", "symbol": "°C", "definition": "http://qudt.org/vocab/unit/DEG_C"},
            sensor_id=11,
            observed_property_id=12,
        )

        EntityReconciler(client).reconcile(
            datastream, parent_link="http://sta.example.com/v1.0/Things(7)"
        )

        body = json.loads(transport.requests[1].content)
        assert body["Sensor"] == {"@iot.id": 11}
        assert body["ObservedProperty"] == {"@iot.id": 12}

    def test_create_failure_is_fatal(self, make_client):
        client, _ = make_client(store_handler([], post_status=400))

        with pytest.raises(EntityStoreError) as excinfo:
            EntityReconciler(client).reconcile(new_thing("a", "b"), server_url=SERVER)
        assert excinfo.value.status_code == 400

    def test_update_failure_is_fatal(self, make_client):
        existing = {
            "@iot.id": 7,
            "@iot.selfLink": "http://sta.example.com/v1.0/ObservedProperties(7)",
            "name": "x",
            "description": "y",
            "definition": "old",
        }
        client, _ = make_client(store_handler([existing], patch_status=500))

        with pytest.raises(EntityStoreError):
            EntityReconciler(client).reconcile(
                new_observed_property("x", "y", "new"), server_url=SERVER
            )

    def test_query_failure_is_fatal(self, make_client):
        client, _ = make_client(lambda request: httpx.Response(503))
        with pytest.raises(EntityStoreError):
            EntityReconciler(client).reconcile(new_thing("a", "b"), server_url=SERVER)

    def test_nested_kind_requires_parent(self, make_client):
        client, _ = make_client(store_handler([]))
        with pytest.raises(ValueError):
            EntityReconciler(client).reconcile(
                new_location("a", "b", latitude=1, longitude=2), server_url=SERVER
            )


class TestFilters:
    def test_quotes_are_escaped(self):
        expression = build_filter(THING, {"name": "O'Brien Creek", "description": "it's"})
        assert expression == "name eq 'O''Brien Creek' and description eq 'it''s'"

    def test_observed_property_filters_on_name_only(self):
        assert build_filter(KINDS["ObservedProperty"], {"name": "TEMP", "description": "x"}) == (
            "name eq 'TEMP'"
        )

    def test_observation_time_is_unquoted(self):
        assert build_filter(OBSERVATION, {"phenomenonTime": "2020-01-01T00:00:00.000Z"}) == (
            "phenomenonTime eq 2020-01-01T00:00:00.000Z"
        )


class TestJoinUris:
    @pytest.mark.parametrize(
        "base, expected",
        [
            ("http://sta.example.com/v1.0/", "http://sta.example.com/v1.0/Things"),
            ("http://sta.example.com/v1.0", "http://sta.example.com/v1.0/Things"),
            ("http://sta.example.com/v1.0/Things(7)", "http://sta.example.com/v1.0/Things(7)/Things"),
        ],
    )
    def test_join(self, base, expected):
        assert join_uris(base, "Things") == expected


def test_all_six_kinds_are_described():
    assert set(KINDS) == {
        "Thing",
        "Location",
        "Sensor",
        "ObservedProperty",
        "Datastream",
        "Observation",
    }
    assert [k.name for k in KINDS.values() if not k.update_allowed] == ["Location"]
