import pytest

from src.shule_system.shule_system.hostel.model import HostelStats
from src.shule_system.shule_system.hostel.stats_cache import HostelStatsCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class Loader:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return HostelStats(total_hostels=self.calls)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pending():
    return []


@pytest.fixture
def cache(clock, pending):
    return HostelStatsCache(fresh_seconds=300, stale_seconds=600, clock=clock, runner=pending.append)


def test_first_read_loads_synchronously(cache):
    loader = Loader()
    assert cache.get(1, loader).total_hostels == 1
    assert loader.calls == 1


def test_fresh_entry_is_served_from_cache(cache, clock):
    loader = Loader()
    cache.get(1, loader)
    clock.now += 299
    assert cache.get(1, loader).total_hostels == 1
    assert loader.calls == 1


def test_stale_entry_is_served_while_one_refresh_runs(cache, clock, pending):
    loader = Loader()
    cache.get(1, loader)
    clock.now += 400

    assert cache.get(1, loader).total_hostels == 1
    assert cache.get(1, loader).total_hostels == 1
    assert len(pending) == 1

    pending.pop()()
    assert cache.peek(1).total_hostels == 2
    assert cache.get(1, loader).total_hostels == 2


def test_expired_entry_reloads_synchronously(cache, clock, pending):
    loader = Loader()
    cache.get(1, loader)
    clock.now += 601
    assert cache.get(1, loader).total_hostels == 2
    assert pending == []


def test_tenants_are_cached_separately(cache):
    loader = Loader()
    cache.get(1, loader)
    cache.get(2, loader)
    assert loader.calls == 2
    assert cache.peek(1) != cache.peek(2)


def test_invalidate_forces_reload(cache):
    loader = Loader()
    cache.get(1, loader)
    cache.invalidate(1)
    assert cache.peek(1) is None
    assert cache.get(1, loader).total_hostels == 2


def test_invalidation_during_refresh_discards_result(cache, clock, pending):
    loader = Loader()
    cache.get(1, loader)
    clock.now += 400
    cache.get(1, loader)
    cache.invalidate(1)
    pending.pop()()
    assert cache.peek(1) is None


def test_refresh_started_before_invalidation_does_not_replace_newer_stats(cache, clock, pending):
    loader = Loader()
    cache.get(1, loader)
    clock.now += 400
    cache.get(1, loader)
    cache.invalidate(1)
    assert cache.get(1, loader).total_hostels == 2

    pending.pop()()
    assert cache.peek(1).total_hostels == 2


def test_failed_reload_serves_cached_value(cache, clock):
    cache.get(1, Loader())
    clock.now += 601

    def broken():
        raise RuntimeError("database down")

    assert cache.get(1, broken).total_hostels == 1


def test_failed_first_load_propagates(cache):
    def broken():
        raise RuntimeError("database down")

    with pytest.raises(RuntimeError):
        cache.get(1, broken)


def test_failed_background_refresh_allows_retry(cache, clock, pending):
    cache.get(1, Loader())
    clock.now += 400

    def broken():
        raise RuntimeError("database down")

    cache.get(1, broken)
    pending.pop()()
    cache.get(1, broken)
    assert len(pending) == 1


def test_stale_window_must_cover_fresh_window():
    with pytest.raises(ValueError):
        HostelStatsCache(fresh_seconds=10, stale_seconds=5)


def test_occupancy_rate():
    assert HostelStats(total_rooms=8, occupied_rooms=3).occupancy_rate == 37.5
    assert HostelStats(total_rooms=3, occupied_rooms=2).occupancy_rate == 66.67
    assert HostelStats(total_rooms=8000, occupied_rooms=1).occupancy_rate == 0.01
    assert HostelStats().as_dict()["occupancy_rate"] == 0.0
