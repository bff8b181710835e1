"""Tests for the reference metrics registry."""
import math

import numpy as np
import pytest

from promexport.registry import (
    ALL,
    Counter,
    Histogram,
    Meter,
    MetricRegistry,
    Snapshot,
    Timer,
    UniformReservoir,
    clear_shared_registries,
    contains,
    get_shared_registry,
    shared_registry,
    starts_with,
)


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_snapshot_statistics():
    """Snapshots interpolate quantiles and compute sample statistics."""
    snapshot = Snapshot(list(range(10, 0, -1)))

    assert snapshot.size == 10
    assert snapshot.min == 1.0
    assert snapshot.max == 10.0
    assert snapshot.mean == 5.5
    assert snapshot.median == 5.5
    assert snapshot.p75 == pytest.approx(8.25)
    assert snapshot.p999 == 10.0
    assert snapshot.stddev == pytest.approx(np.std(np.arange(1, 11), ddof=1))


def test_snapshot_empty_and_single():
    """Empty snapshots report zeros and a single value has no spread."""
    empty = Snapshot([])
    assert (empty.min, empty.max, empty.mean, empty.stddev, empty.median) == (0.0, 0.0, 0.0, 0.0, 0.0)

    single = Snapshot([4])
    assert single.median == 4.0
    assert single.stddev == 0.0


def test_snapshot_is_read_only():
    """Snapshot values cannot be modified."""
    snapshot = Snapshot([1, 2, 3])
    with pytest.raises(ValueError):
        snapshot.values[0] = 99


def test_snapshot_rejects_bad_quantile():
    with pytest.raises(ValueError):
        Snapshot([1]).value(1.5)


def test_reservoir_keeps_bounded_sample():
    """A full reservoir keeps its size while counting every update."""
    reservoir = UniformReservoir(size=10, seed=42)
    for i in range(1000):
        reservoir.update(i)

    snapshot = reservoir.snapshot()
    assert snapshot.size == 10
    assert 0 <= snapshot.min and snapshot.max < 1000


def test_counter_inc_dec():
    counter = Counter()
    counter.inc()
    counter.inc(4)
    counter.dec(2)
    assert counter.count == 3


def test_histogram_counts_updates():
    histogram = Histogram()
    for v in (1, 2, 3):
        histogram.update(v)
    assert histogram.count == 3
    assert histogram.snapshot().mean == 2.0


def test_meter_rates_decay():
    """Meter rates start at the first interval's rate and decay over time."""
    clock = FakeClock()
    meter = Meter(clock=clock)
    meter.mark(60)

    clock.now = 5.5
    assert meter.one_minute_rate == pytest.approx(12.0)
    assert meter.five_minute_rate == pytest.approx(12.0)

    clock.now = 65.5
    assert meter.one_minute_rate == pytest.approx(12.0 * math.exp(-1))
    assert meter.count == 60
    assert meter.mean_rate == pytest.approx(60 / 65.5)


def test_meter_without_events():
    meter = Meter(clock=FakeClock())
    assert meter.mean_rate == 0.0
    assert meter.fifteen_minute_rate == 0.0


def test_timer_records_durations():
    """Timers count durations, ignore negative ones and time blocks."""
    timer = Timer(clock=FakeClock())
    timer.update(1_000_000)
    timer.update(-5)
    with timer.time():
        pass

    assert timer.count == 2
    assert timer.snapshot().max >= 1_000_000
    assert timer.meter.count == 2


def test_registry_get_or_create():
    """Get-or-create returns the same metric and rejects type clashes."""
    registry = MetricRegistry()
    assert registry.counter("c") is registry.counter("c")
    with pytest.raises(ValueError):
        registry.meter("c")


def test_registry_register_and_remove():
    registry = MetricRegistry()
    counter = registry.register("c", Counter())
    assert registry.register("c", counter) is counter
    with pytest.raises(ValueError):
        registry.register("c", Counter())

    assert registry.remove("c")
    assert not registry.remove("c")
    assert registry.names() == []


def test_registry_accessors_by_kind():
    """Per-kind accessors return name-sorted metrics of that kind only."""
    registry = MetricRegistry()
    registry.counter("b")
    registry.counter("a")
    registry.timer("t")
    registry.meter("m")
    registry.histogram("h")
    registry.gauge("g", lambda: 1)

    assert list(registry.get_counters()) == ["a", "b"]
    assert list(registry.get_timers()) == ["t"]
    assert list(registry.get_meters()) == ["m"]
    assert list(registry.get_histograms()) == ["h"]
    assert list(registry.get_gauges(ALL)) == ["g"]


def test_metric_filters():
    registry = MetricRegistry()
    for name in ("app.requests", "app.errors", "jvm.threads"):
        registry.counter(name)

    assert list(registry.get_counters(starts_with("app."))) == ["app.errors", "app.requests"]
    assert list(registry.get_counters(starts_with("jvm.", "app.e"))) == ["app.errors", "jvm.threads"]
    assert list(registry.get_counters(contains("thread"))) == ["jvm.threads"]


def test_shared_registries():
    """Shared registries are created once and can be looked up by name."""
    clear_shared_registries()
    assert get_shared_registry("svc") is None

    registry = shared_registry("svc")
    assert shared_registry("svc") is registry
    assert get_shared_registry("svc") is registry

    clear_shared_registries()
    assert get_shared_registry("svc") is None
