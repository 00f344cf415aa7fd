import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from snapybara.core.exceptions import UpstreamError, ValidationError
from snapybara.models import PointCategory, PointSource, PointStatus
from snapybara.schemas.place import Place
from snapybara.schemas.point import PointCreateRequest
from snapybara.services.cache_invalidation import CacheInvalidator
from snapybara.services.hybrid_search import HybridSearchEngine
from snapybara.services.points import PointService

PARIS = (48.8566, 2.3522)


def _place(place_id, lat, lng, *, name=None, source=PointSource.places_provider, category=None):
    return Place(
        place_id=place_id,
        name=name or place_id,
        latitude=lat,
        longitude=lng,
        category=category or PointCategory.landscape,
        source=source,
    )


class FakePlaces:
    def __init__(self, results=(), *, error=None, delay=0.0):
        self.enabled = True
        self.results = list(results)
        self.error = error
        self.delay = delay
        self.calls = []

    async def _answer(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.results)

    async def nearby_search(self, lat, lng, radius_m, category=None):
        self.calls.append(("nearby", lat, lng, radius_m))
        return await self._answer()

    async def text_search(self, query, lat=None, lng=None, radius_m=None):
        self.calls.append(("text", query))
        return await self._answer()


class FakeOpenMap:
    def __init__(self, results=()):
        self.enabled = True
        self.results = list(results)

    async def nearby(self, lat, lng, radius_m):
        return list(self.results)


class DisabledPlaces:
    enabled = False


class BrokenUnitOfWork:
    def __init__(self):
        self.points = self

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def within_radius(self, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is down"))


@pytest.fixture
def invalidator(cache_store):
    return CacheInvalidator(cache_store)


def _engine(db, cache_store, invalidator, places=None, open_map=None, **kwargs):
    return HybridSearchEngine(
        db.uow, cache_store, invalidator, places or DisabledPlaces(), open_map, **kwargs
    )


@pytest.mark.asyncio
async def test_second_identical_search_is_served_from_cache(db, cache_store, invalidator):
    db.add_point(name="Notre-Dame", latitude=48.8530, longitude=2.3499)
    places = FakePlaces([_place("gp-1", 48.8600, 2.3500)])
    engine = _engine(db, cache_store, invalidator, places)

    first = await engine.search(*PARIS, 1000)
    second = await engine.search(*PARIS, 1000)

    assert first.cached is False
    assert second.cached is True
    assert second.total == first.total == 2
    assert second.sources.local == 1
    assert second.sources.external == 1
    assert len(places.calls) == 1


@pytest.mark.asyncio
async def test_bypass_cache_recomputes(db, cache_store, invalidator):
    places = FakePlaces()
    engine = _engine(db, cache_store, invalidator, places)

    await engine.search(*PARIS, 1000)
    result = await engine.search(*PARIS, 1000, bypass_cache=True)

    assert result.cached is False
    assert len(places.calls) == 2


@pytest.mark.asyncio
async def test_approved_point_shows_up_in_a_previously_cached_search(
    db, cache_store, invalidator
):
    engine = _engine(db, cache_store, invalidator)
    points = PointService(db.uow, cache_store, invalidator)

    before = await engine.search(*PARIS, 1000)
    assert before.total == 0
    assert (await engine.search(*PARIS, 1000)).cached is True

    created = await points.create(
        PointCreateRequest(name="Café terrace", latitude=48.8567, longitude=2.3523),
        "user-1",
    )
    await points.set_status(created.id, PointStatus.approved)

    after = await engine.search(*PARIS, 1000)
    assert after.cached is False
    assert [item.id for item in after.data] == [created.id]


@pytest.mark.asyncio
async def test_owner_sees_their_pending_point_but_others_do_not(db, cache_store, invalidator):
    db.add_point(name="Draft", user_id="user-1", status=PointStatus.pending.value)
    engine = _engine(db, cache_store, invalidator)

    anonymous = await engine.search(*PARIS, 1000)
    owner = await engine.search(*PARIS, 1000, viewer_id="user-1")
    stranger = await engine.search(*PARIS, 1000, viewer_id="user-2")

    assert anonymous.total == 0
    assert owner.total == 1
    assert owner.cached is False
    assert stranger.total == 0


@pytest.mark.asyncio
async def test_external_results_near_local_points_are_deduplicated(
    db, cache_store, invalidator
):
    db.add_point(name="Tour Saint-Jacques", latitude=48.8580, longitude=2.3488)
    db.add_point(
        name="Imported", latitude=48.8540, longitude=2.3600, external_place_id="gp-imported"
    )
    places = FakePlaces(
        [
            _place("gp-near", 48.8581, 2.3489),
            _place("gp-imported", 48.8000, 2.3000),
            _place("gp-far-enough", 48.8600, 2.3450),
            _place("gp-outside", 48.9500, 2.3522),
        ]
    )
    engine = _engine(db, cache_store, invalidator, places)

    result = await engine.search(*PARIS, 1000)

    external_ids = [item.external_id for item in result.data if item.source != PointSource.local]
    assert external_ids == ["gp-far-enough"]
    assert result.sources.local == 2


@pytest.mark.asyncio
async def test_same_site_from_two_providers_is_kept_once(db, cache_store, invalidator):
    places = FakePlaces([_place("gp-1", 48.8600, 2.3500, name="Fontaine")])
    open_map = FakeOpenMap(
        [_place("osm:node/1", 48.8601, 2.3501, name="Fontaine", source=PointSource.open_map)]
    )
    engine = _engine(db, cache_store, invalidator, places, open_map)

    result = await engine.search(*PARIS, 1000)

    assert [item.external_id for item in result.data] == ["gp-1"]


@pytest.mark.asyncio
async def test_results_are_sorted_by_distance_and_paginated(db, cache_store, invalidator):
    for i in range(5):
        db.add_point(name=f"P{i}", latitude=48.8566 + 0.001 * i, longitude=2.3522)
    engine = _engine(db, cache_store, invalidator)

    first = await engine.search(*PARIS, 1000, page=1, limit=2)
    third = await engine.search(*PARIS, 1000, page=3, limit=2)

    assert [item.name for item in first.data] == ["P0", "P1"]
    assert [item.name for item in third.data] == ["P4"]
    assert third.total == 5
    distances = [item.distance_m for item in first.data]
    assert distances == sorted(distances)


@pytest.mark.asyncio
async def test_category_filter_applies_to_local_and_external(db, cache_store, invalidator):
    db.add_point(name="Sainte-Chapelle", category=PointCategory.religious.value)
    db.add_point(name="Square", latitude=48.8570, category=PointCategory.urban.value)
    places = FakePlaces(
        [
            _place("gp-church", 48.8600, 2.3450, category=PointCategory.religious),
            _place("gp-park", 48.8500, 2.3500, category=PointCategory.landscape),
        ]
    )
    engine = _engine(db, cache_store, invalidator, places)

    result = await engine.search(*PARIS, 1000, categories=["religious"])

    assert {item.name for item in result.data} == {"Sainte-Chapelle", "gp-church"}


@pytest.mark.asyncio
async def test_keyword_uses_text_search_and_filters_local_points(db, cache_store, invalidator):
    db.add_point(name="Jardin des Tuileries", latitude=48.8634, longitude=2.3275)
    db.add_point(name="Gare du Nord", latitude=48.8570, longitude=2.3530)
    places = FakePlaces([_place("gp-jardin", 48.8462, 2.3372, name="Jardin du Luxembourg")])
    engine = _engine(db, cache_store, invalidator, places)

    result = await engine.search(*PARIS, 5000, keyword="jardin")

    assert places.calls == [("text", "jardin")]
    assert {item.name for item in result.data} == {"Jardin des Tuileries", "Jardin du Luxembourg"}


@pytest.mark.asyncio
async def test_local_failure_propagates(cache_store, invalidator):
    engine = HybridSearchEngine(BrokenUnitOfWork, cache_store, invalidator, FakePlaces())

    with pytest.raises(OperationalError):
        await engine.search(*PARIS, 1000)


@pytest.mark.asyncio
async def test_external_failure_degrades_to_local_and_is_not_cached(
    db, cache_store, invalidator
):
    db.add_point(name="Local")
    places = FakePlaces(error=UpstreamError("boom", status=502))
    engine = _engine(db, cache_store, invalidator, places)

    first = await engine.search(*PARIS, 1000)
    second = await engine.search(*PARIS, 1000)

    assert [item.name for item in first.data] == ["Local"]
    assert second.cached is False
    assert len(places.calls) == 2


@pytest.mark.asyncio
async def test_slow_external_provider_times_out(db, cache_store, invalidator):
    db.add_point(name="Local")
    places = FakePlaces([_place("gp-late", 48.8600, 2.3400)], delay=1.0)
    engine = _engine(db, cache_store, invalidator, places, external_timeout=0.05)

    result = await engine.search(*PARIS, 1000)

    assert result.total == 1
    assert result.sources.external == 0
    assert result.cached is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"lat": 91.0},
        {"lng": -181.0},
        {"radius_m": 0},
        {"page": 0},
        {"limit": 51},
        {"categories": ["volcano"]},
    ],
)
@pytest.mark.asyncio
async def test_invalid_input_is_rejected_before_any_lookup(
    kwargs, db, cache_store, invalidator
):
    places = FakePlaces()
    engine = _engine(db, cache_store, invalidator, places)
    params = {"lat": PARIS[0], "lng": PARIS[1], "radius_m": 1000, **kwargs}

    with pytest.raises(ValidationError):
        await engine.search(**params)
    assert places.calls == []


@pytest.mark.asyncio
async def test_concurrent_creations_are_all_visible_after_approval(
    db, cache_store, invalidator
):
    engine = _engine(db, cache_store, invalidator)
    points = PointService(db.uow, cache_store, invalidator)
    await engine.search(*PARIS, 2000)

    payloads = [
        PointCreateRequest(name=f"Spot {i}", latitude=48.8566 + i * 0.0005, longitude=2.3522)
        for i in range(5)
    ]
    created = await asyncio.gather(
        *(points.create(payload, f"user-{i}") for i, payload in enumerate(payloads))
    )
    await asyncio.gather(*(points.set_status(p.id, PointStatus.approved) for p in created))

    result = await engine.search(*PARIS, 2000)
    assert result.cached is False
    assert {item.id for item in result.data} == {p.id for p in created}


@pytest.mark.asyncio
async def test_cache_stats_expose_hit_rate(db, cache_store, invalidator):
    engine = _engine(db, cache_store, invalidator)
    await engine.search(*PARIS, 1000)
    await engine.search(*PARIS, 1000)

    stats = engine.get_cache_stats()
    assert stats["hits"] >= 1
    assert 0 < stats["hit_rate"] <= 1
