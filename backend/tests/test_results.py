import asyncio

from listings_finder.results import ResultAggregator


async def test_first_record_per_id_wins():
    results = ResultAggregator(key=lambda item: item["id"])
    assert await results.add({"id": "1", "v": "a"}) is True
    assert await results.add({"id": "1", "v": "b"}) is False
    assert results.snapshot() == [{"id": "1", "v": "a"}]
    assert results.has("1")


async def test_limit_caps_accepted_records():
    results = ResultAggregator(key=lambda item: item, limit=3)
    added = await results.extend(["1", "2", "3", "4", "5"])
    assert added == 3
    assert results.is_full
    assert len(results) == 3


async def test_concurrent_adds_do_not_exceed_limit():
    results = ResultAggregator(key=lambda item: item, limit=5)
    await asyncio.gather(*(results.add(str(i)) for i in range(20)))
    assert len(results) == 5
