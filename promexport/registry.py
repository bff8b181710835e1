"""In-process metrics registry with Dropwizard-style metric types."""
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional
import math
import threading
import time

import numpy as np

MetricFilter = Callable[[str, Any], bool]

TICK_INTERVAL_S = 5.0
DEFAULT_RESERVOIR_SIZE = 1028


def ALL(name: str, metric: Any) -> bool:
    """Filter matching every metric."""
    return True


def starts_with(*prefixes: str) -> MetricFilter:
    """Filter matching metrics whose name starts with any of the prefixes."""
    def matches(name: str, metric: Any) -> bool:
        return name.startswith(prefixes)
    return matches


def contains(text: str) -> MetricFilter:
    """Filter matching metrics whose name contains `text`."""
    def matches(name: str, metric: Any) -> bool:
        return text in name
    return matches


class Snapshot:
    """Immutable statistical summary of a set of observed values."""

    def __init__(self, values):
        values = np.sort(np.asarray(values, dtype=np.float64))
        values.setflags(write=False)
        self._values = values

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def size(self) -> int:
        return int(self._values.size)

    def value(self, quantile: float) -> float:
        """Value at `quantile`, linearly interpolated at position q * (n + 1)."""
        if not 0.0 <= quantile <= 1.0:
            raise ValueError(f"{quantile} is not in [0..1]")
        n = self._values.size
        if n == 0:
            return 0.0

        pos = quantile * (n + 1)
        index = int(pos)
        if index < 1:
            return float(self._values[0])
        if index >= n:
            return float(self._values[-1])

        lower = self._values[index - 1]
        upper = self._values[index]
        return float(lower + (pos - math.floor(pos)) * (upper - lower))

    @property
    def median(self) -> float:
        return self.value(0.5)

    @property
    def p75(self) -> float:
        return self.value(0.75)

    @property
    def p95(self) -> float:
        return self.value(0.95)

    @property
    def p98(self) -> float:
        return self.value(0.98)

    @property
    def p99(self) -> float:
        return self.value(0.99)

    @property
    def p999(self) -> float:
        return self.value(0.999)

    @property
    def min(self) -> float:
        return float(self._values[0]) if self._values.size else 0.0

    @property
    def max(self) -> float:
        return float(self._values[-1]) if self._values.size else 0.0

    @property
    def mean(self) -> float:
        return float(np.mean(self._values)) if self._values.size else 0.0

    @property
    def stddev(self) -> float:
        # Sample standard deviation
        if self._values.size <= 1:
            return 0.0
        return float(np.std(self._values, ddof=1))


class UniformReservoir:
    """Fixed-size uniform sample of a stream (Vitter's algorithm R)."""

    def __init__(self, size: int = DEFAULT_RESERVOIR_SIZE, seed: Optional[int] = None):
        self.size = size
        self.rng = np.random.default_rng(seed)
        self._values = np.zeros(size, dtype=np.float64)
        self._count = 0
        self._lock = threading.Lock()

    def update(self, value: float):
        with self._lock:
            self._count += 1
            if self._count <= self.size:
                self._values[self._count - 1] = value
            else:
                index = int(self.rng.integers(0, self._count))
                if index < self.size:
                    self._values[index] = value

    def snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(self._values[:min(self._count, self.size)].copy())


class EWMA:
    """Exponentially weighted moving average of events per second."""

    def __init__(self, minutes: int, interval_s: float = TICK_INTERVAL_S):
        self.interval_s = interval_s
        self.alpha = 1.0 - math.exp(-interval_s / 60.0 / minutes)
        self.rate = 0.0
        self._uncounted = 0
        self._initialized = False

    def update(self, n: int):
        self._uncounted += n

    def tick(self):
        count = self._uncounted
        self._uncounted = 0
        instant_rate = count / self.interval_s
        if self._initialized:
            self.rate += self.alpha * (instant_rate - self.rate)
        else:
            self.rate = instant_rate
            self._initialized = True


class Counter:
    """Incrementing and decrementing count."""

    def __init__(self):
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1):
        with self._lock:
            self._count += n

    def dec(self, n: int = 1):
        with self._lock:
            self._count -= n

    @property
    def count(self) -> int:
        return self._count


class Gauge:
    """Instantaneous value read from a callable."""

    def __init__(self, fn: Callable[[], Any]):
        self.fn = fn

    @property
    def value(self) -> Any:
        return self.fn()


class Histogram:
    """Distribution of values backed by a reservoir."""

    def __init__(self, reservoir: Optional[UniformReservoir] = None):
        self.reservoir = reservoir or UniformReservoir()
        self._count = 0
        self._lock = threading.Lock()

    def update(self, value: float):
        with self._lock:
            self._count += 1
        self.reservoir.update(value)

    @property
    def count(self) -> int:
        return self._count

    def snapshot(self) -> Snapshot:
        return self.reservoir.snapshot()


class Meter:
    """Event count with 1, 5 and 15 minute moving average rates."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._count = 0
        self._start_time = clock()
        self._last_tick = self._start_time
        self._m1 = EWMA(1)
        self._m5 = EWMA(5)
        self._m15 = EWMA(15)
        self._lock = threading.Lock()

    def mark(self, n: int = 1):
        with self._lock:
            self._tick_if_necessary()
            self._count += n
            self._m1.update(n)
            self._m5.update(n)
            self._m15.update(n)

    def _tick_if_necessary(self):
        now = self.clock()
        age = now - self._last_tick
        if age > TICK_INTERVAL_S:
            self._last_tick = now - age % TICK_INTERVAL_S
            for _ in range(int(age // TICK_INTERVAL_S)):
                self._m1.tick()
                self._m5.tick()
                self._m15.tick()

    def _rate(self, ewma: EWMA) -> float:
        with self._lock:
            self._tick_if_necessary()
            return ewma.rate

    @property
    def count(self) -> int:
        return self._count

    @property
    def one_minute_rate(self) -> float:
        return self._rate(self._m1)

    @property
    def five_minute_rate(self) -> float:
        return self._rate(self._m5)

    @property
    def fifteen_minute_rate(self) -> float:
        return self._rate(self._m15)

    @property
    def mean_rate(self) -> float:
        if self._count == 0:
            return 0.0
        elapsed = self.clock() - self._start_time
        if elapsed <= 0:
            return 0.0
        return self._count / elapsed


class Timer:
    """Histogram of durations in nanoseconds plus a meter of their rate."""

    def __init__(
        self,
        reservoir: Optional[UniformReservoir] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.histogram = Histogram(reservoir)
        self.meter = Meter(clock)

    def update(self, duration_ns: int):
        if duration_ns >= 0:
            self.histogram.update(duration_ns)
            self.meter.mark()

    @contextmanager
    def time(self) -> Iterator[None]:
        """Time the enclosed block."""
        start = time.perf_counter_ns()
        try:
            yield
        finally:
            self.update(time.perf_counter_ns() - start)

    @property
    def count(self) -> int:
        return self.histogram.count

    def snapshot(self) -> Snapshot:
        return self.histogram.snapshot()

    @property
    def one_minute_rate(self) -> float:
        return self.meter.one_minute_rate

    @property
    def five_minute_rate(self) -> float:
        return self.meter.five_minute_rate

    @property
    def fifteen_minute_rate(self) -> float:
        return self.meter.fifteen_minute_rate

    @property
    def mean_rate(self) -> float:
        return self.meter.mean_rate


class MetricRegistry:
    """Thread-safe mapping from metric name to metric."""

    def __init__(self):
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, name: str, metric: Any) -> Any:
        """Register `metric` under `name`; a taken name raises ValueError."""
        with self._lock:
            existing = self._metrics.get(name)
            if existing is not None and existing is not metric:
                raise ValueError(f"A metric named {name} already exists")
            self._metrics[name] = metric
        return metric

    def remove(self, name: str) -> bool:
        with self._lock:
            return self._metrics.pop(name, None) is not None

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._metrics)

    def _get_or_add(self, name: str, metric_cls, factory):
        with self._lock:
            existing = self._metrics.get(name)
            if existing is None:
                existing = factory()
                self._metrics[name] = existing
            elif not isinstance(existing, metric_cls):
                raise ValueError(f"{name} is already used for a different type of metric")
            return existing

    def counter(self, name: str) -> Counter:
        return self._get_or_add(name, Counter, Counter)

    def histogram(self, name: str) -> Histogram:
        return self._get_or_add(name, Histogram, Histogram)

    def meter(self, name: str) -> Meter:
        return self._get_or_add(name, Meter, Meter)

    def timer(self, name: str) -> Timer:
        return self._get_or_add(name, Timer, Timer)

    def gauge(self, name: str, fn: Callable[[], Any]) -> Gauge:
        return self._get_or_add(name, Gauge, lambda: Gauge(fn))

    def _get_metrics(self, metric_cls, metric_filter: Optional[MetricFilter]) -> Dict[str, Any]:
        metric_filter = metric_filter or ALL
        with self._lock:
            items = sorted(self._metrics.items())
        return {
            name: metric for name, metric in items
            if isinstance(metric, metric_cls) and metric_filter(name, metric)
        }

    def get_gauges(self, metric_filter: Optional[MetricFilter] = None) -> Dict[str, Gauge]:
        return self._get_metrics(Gauge, metric_filter)

    def get_counters(self, metric_filter: Optional[MetricFilter] = None) -> Dict[str, Counter]:
        return self._get_metrics(Counter, metric_filter)

    def get_histograms(self, metric_filter: Optional[MetricFilter] = None) -> Dict[str, Histogram]:
        return self._get_metrics(Histogram, metric_filter)

    def get_meters(self, metric_filter: Optional[MetricFilter] = None) -> Dict[str, Meter]:
        return self._get_metrics(Meter, metric_filter)

    def get_timers(self, metric_filter: Optional[MetricFilter] = None) -> Dict[str, Timer]:
        return self._get_metrics(Timer, metric_filter)


_shared_registries: Dict[str, MetricRegistry] = {}
_shared_lock = threading.Lock()


def shared_registry(name: str) -> MetricRegistry:
    """Get the process-wide registry called `name`, creating it if needed."""
    with _shared_lock:
        registry = _shared_registries.get(name)
        if registry is None:
            registry = _shared_registries[name] = MetricRegistry()
        return registry


def get_shared_registry(name: str) -> Optional[MetricRegistry]:
    with _shared_lock:
        return _shared_registries.get(name)


def clear_shared_registries():
    with _shared_lock:
        _shared_registries.clear()
