"""Integration tests for DocRepository with real MongoDB.

These tests require a running MongoDB instance (via Docker/testcontainers).
"""

import itertools
from typing import List, Optional
from unittest.mock import patch

import pytest
from bson import ObjectId

from mdb_docs import (
    Contains,
    DocRepository,
    Equals,
    FilterBuilder,
    InvalidInputError,
    NotFoundError,
    Payload,
)


class WeatherReport(Payload):
    station: str
    temperature: float
    tags: List[str] = []
    note: Optional[str] = None


@pytest.fixture
def reports(real_connection):
    return DocRepository(WeatherReport, connection=real_connection)


@pytest.fixture
def ticking_clock():
    with patch(
        "mdb_docs.documents.repository.now_ms", side_effect=itertools.count(1_700_000_000_000)
    ):
        yield


@pytest.mark.integration
@pytest.mark.asyncio
class TestRepositoryIntegration:
    """DocRepository against a real server."""

    async def test_save_and_load_round_trip(self, reports, real_connection):
        doc = reports.create(WeatherReport(station="oslo", temperature=-3.5, tags=["snow"]))
        await doc.save()

        loaded = await reports.load(str(doc.id))

        assert loaded.id == doc.id
        assert loaded.created_at == doc.created_at
        assert loaded.data == doc.data
        assert loaded.is_committed

        raw = await real_connection.database["weather_reports"].find_one({"_id": doc.id})
        assert set(raw) == {"_id", "created_at", "updated_at", "data"}
        assert "state" not in raw

    async def test_update_keeps_identity(self, reports):
        doc = reports.create(WeatherReport(station="bergen", temperature=8.0))
        await doc.save()
        created_at = doc.created_at

        doc.data.note = "rain again"
        await doc.save()

        loaded = await reports.load(doc.id)
        assert loaded.created_at == created_at
        assert loaded.updated_at >= created_at
        assert loaded.data.note == "rain again"
        assert await reports.count() == 1

    async def test_pagination(self, reports, ticking_clock):
        for i in range(45):
            await reports.create(WeatherReport(station=f"s{i}", temperature=float(i))).save()

        pages = [await reports.list(n) for n in (1, 2, 3, 4)]

        assert [len(p) for p in pages] == [20, 20, 5, 0]
        assert pages[0][0].data.station == "s44"
        assert pages[2][-1].data.station == "s0"
        stations = {d.data.station for page in pages for d in page}
        assert len(stations) == 45

    async def test_insert_many_then_count(self, reports):
        docs = await reports.insert_many(
            WeatherReport(station="tromso", temperature=float(t)) for t in range(5)
        )

        assert len(docs) == 5
        assert await reports.count() == 5
        assert await reports.count(Equals("station", "tromso")) == 5
        assert await reports.count(Equals("station", "oslo")) == 0

    async def test_filters(self, reports):
        await reports.insert_many(
            [
                WeatherReport(station="oslo-north", temperature=1.0),
                WeatherReport(station="oslo-south", temperature=2.0),
                WeatherReport(station="bergen", temperature=2.0),
            ]
        )

        found = await reports.find_many(
            FilterBuilder(Contains("station", "^oslo"), Equals("temperature", 2.0))
        )

        assert [d.data.station for d in found] == ["oslo-south"]

    async def test_invalid_and_absent_ids(self, reports):
        with pytest.raises(InvalidInputError):
            await reports.load("not-an-object-id")
        with pytest.raises(NotFoundError):
            await reports.load(ObjectId())

    async def test_delete(self, reports):
        doc = reports.create(WeatherReport(station="narvik", temperature=0.0))
        await doc.save()

        assert await doc.delete() is True
        assert await doc.delete() is False
        assert await reports.count() == 0

    async def test_update_many_and_delete_many(self, reports):
        await reports.insert_many(
            [
                WeatherReport(station="a", temperature=1.0),
                WeatherReport(station="a", temperature=2.0),
                WeatherReport(station="b", temperature=3.0),
            ]
        )

        assert await reports.update_many(Equals("station", "a"), {"note": "checked"}) == 2
        assert await reports.count(Equals("note", "checked")) == 2
        assert await reports.delete_many(Equals("station", "a")) == 2
        assert await reports.delete_all() == 1

    async def test_aggregate(self, reports):
        await reports.insert_many(
            [
                WeatherReport(station="a", temperature=1.0),
                WeatherReport(station="a", temperature=3.0),
                WeatherReport(station="b", temperature=10.0),
            ]
        )

        results = await reports.aggregate(
            [
                {"$group": {"_id": "$data.station", "avg": {"$avg": "$data.temperature"}}},
                {"$sort": {"_id": 1}},
            ]
        )

        assert results == [{"_id": "a", "avg": 2.0}, {"_id": "b", "avg": 10.0}]
