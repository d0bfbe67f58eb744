import pytest

from napbot.dedup import DedupCache


def test_records_and_reports_seen_ids():
    cache = DedupCache(capacity=10)

    assert not cache.seen(1)
    cache.record(1)
    assert cache.seen(1)
    assert len(cache) == 1


def test_missing_ids_are_never_recorded():
    cache = DedupCache(capacity=10)

    cache.record(None)
    cache.record(0)
    cache.record(-5)

    assert len(cache) == 0
    assert not cache.seen(None)
    assert not cache.seen(0)


def test_exceeding_capacity_clears_everything():
    cache = DedupCache(capacity=3)
    for event_id in (1, 2, 3):
        cache.record(event_id)
    assert len(cache) == 3

    cache.record(4)

    assert len(cache) == 0
    assert not cache.seen(1)
    assert not cache.seen(4)


def test_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        DedupCache(capacity=0)
