from decimal import Decimal

import pytest

from camny.exceptions import InvalidStopPair, NotFound
from camny.services.fares import FareResolver

pytestmark = pytest.mark.anyio


async def _route_with_stops(seed):
    route = await seed.route(fare_base=1000)
    s1 = await seed.stop(route, "Nyabugogo", 1, 0, 0)
    s2 = await seed.stop(route, "Muhanga", 2, 500, 45)
    s3 = await seed.stop(route, "Huye", 3, 1200, 120)
    return route, s1, s2, s3


async def test_segment_fare_is_difference_of_cumulative_values(seed, session_factory):
    route, s1, s2, s3 = await _route_with_stops(seed)
    async with session_factory() as session:
        resolver = FareResolver(session)
        assert (await resolver.segment(route.id, s1.id, s2.id)).fare == Decimal("500")
        assert (await resolver.segment(route.id, s2.id, s3.id)).fare == Decimal("700")
        whole = await resolver.segment(route.id, s1.id, s3.id)
    assert whole.fare == Decimal("1200")
    assert whole.distance_km == Decimal("120")
    assert whole.used_stops


async def test_segment_is_symmetric_and_keeps_direction_of_travel(seed, session_factory):
    route, s1, _, s3 = await _route_with_stops(seed)
    async with session_factory() as session:
        resolver = FareResolver(session)
        forward = await resolver.segment(route.id, s1.id, s3.id)
        backward = await resolver.segment(route.id, s3.id, s1.id)
    assert forward.fare == backward.fare == Decimal("1200")
    assert backward.fare >= 0
    assert (forward.start_location, forward.end_location) == ("Nyabugogo", "Huye")
    assert (backward.start_location, backward.end_location) == ("Huye", "Nyabugogo")
    assert (backward.start_stop_id, backward.end_stop_id) == (s3.id, s1.id)


async def test_segment_rejects_equal_or_foreign_stops(seed, session_factory):
    route, s1, s2, _ = await _route_with_stops(seed)
    other = await seed.route(name="Kigali - Musanze", end="Musanze")
    foreign = await seed.stop(other, "Musanze", 1, 0)
    async with session_factory() as session:
        resolver = FareResolver(session)
        with pytest.raises(InvalidStopPair):
            await resolver.segment(route.id, s1.id, s1.id)
        with pytest.raises(InvalidStopPair):
            await resolver.segment(route.id, s2.id, foreign.id)
        with pytest.raises(InvalidStopPair):
            await resolver.segment(route.id, s1.id, 9999)


async def test_missing_route_is_not_found(session_factory):
    async with session_factory() as session:
        with pytest.raises(NotFound):
            await FareResolver(session).resolve(404)


async def test_resolve_uses_stops_when_both_resolve(seed, session_factory):
    route, _, s2, s3 = await _route_with_stops(seed)
    async with session_factory() as session:
        quote = await FareResolver(session).resolve(route.id, start_stop_id=s3.id, end_stop_id=s2.id)
    assert quote.fare == Decimal("700")
    assert quote.used_stops
    assert (quote.start_location, quote.end_location) == ("Huye", "Muhanga")


async def test_resolve_falls_back_to_base_fare(seed, session_factory):
    route, s1, _, _ = await _route_with_stops(seed)
    other = await seed.route(name="Kigali - Rubavu", end="Rubavu")
    foreign = await seed.stop(other, "Rubavu", 1, 0)
    async with session_factory() as session:
        resolver = FareResolver(session)
        no_stops = await resolver.resolve(route.id, start_location="Gitarama", end_location="Nyanza")
        one_stop = await resolver.resolve(route.id, start_stop_id=s1.id)
        same_stop = await resolver.resolve(route.id, start_stop_id=s1.id, end_stop_id=s1.id)
        wrong_route = await resolver.resolve(route.id, start_stop_id=s1.id, end_stop_id=foreign.id)

    for quote in (no_stops, one_stop, same_stop, wrong_route):
        assert quote.fare == Decimal("1000")
        assert not quote.used_stops
    assert (no_stops.start_location, no_stops.end_location) == ("Gitarama", "Nyanza")
    assert (one_stop.start_location, one_stop.end_location) == ("Kigali", "Huye")
