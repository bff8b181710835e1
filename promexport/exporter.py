"""Translation of registry metrics into Prometheus metric families."""
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Collection, Dict, Iterable, List, Optional
import logging
import numbers

import numpy as np
from prometheus_client.registry import Collector

from promexport.formatters import add_rate_samples, add_snapshot_samples
from promexport.naming import extract_labels, sanitize_metric_name
from promexport.registry import MetricFilter
from promexport.series import MetricFamily
from promexport.text_writer import PrometheusTextWriter, series_name

logger = logging.getLogger(__name__)

NANOS_TO_SECONDS = 1.0 / 1e9


class MetricKind(str, Enum):
    """Kinds of registry metrics, in export order."""
    GAUGE = "gauge"
    COUNTER = "counter"
    HISTOGRAM = "histogram"
    METER = "meter"
    TIMER = "timer"


# kind -> (registry accessor, family builder)
_DISPATCH = {
    MetricKind.GAUGE: ("get_gauges", "gauge_family"),
    MetricKind.COUNTER: ("get_counters", "counter_family"),
    MetricKind.HISTOGRAM: ("get_histograms", "histogram_family"),
    MetricKind.METER: ("get_meters", "meter_family"),
    MetricKind.TIMER: ("get_timers", "timer_family"),
}

if set(_DISPATCH) != set(MetricKind):
    raise RuntimeError(f"No exporter for metric kinds {set(MetricKind) - set(_DISPATCH)}")


def _gauge_number(value: Any) -> Optional[float]:
    if isinstance(value, (bool, np.bool_)):
        return 1.0 if value else 0.0
    if isinstance(value, (numbers.Real, Decimal)):
        return float(value)
    return None


class RegistryExporter:
    """Builds Prometheus families for every metric of a registry."""

    def __init__(self, source: str = "Dropwizard"):
        self.source = source

    def help_message(self, identifier: str, metric: Any) -> str:
        cls = type(metric)
        return (
            f"Generated from {self.source} metric import "
            f"(metric={identifier}, type={cls.__module__}.{cls.__qualname__})"
        )

    def gauge_family(self, name: str, identifier: str, gauge, labels: Dict[str, str]) -> Optional[MetricFamily]:
        """Gauge as a GAUGE; values that are neither numbers nor booleans are skipped."""
        raw = gauge.value
        value = _gauge_number(raw)
        if value is None:
            logger.debug(f"Invalid type for Gauge {identifier}: {type(raw).__name__}")
            return None

        family = MetricFamily(name, self.help_message(identifier, gauge), "gauge")
        family.add_sample(name, dict(labels), value)
        return family

    def counter_family(self, name: str, identifier: str, counter, labels: Dict[str, str]) -> MetricFamily:
        """Counter as a GAUGE, since it may be decremented."""
        family = MetricFamily(name, self.help_message(identifier, counter), "gauge")
        family.add_sample(name, dict(labels), counter.count)
        return family

    def histogram_family(self, name: str, identifier: str, histogram, labels: Dict[str, str]) -> MetricFamily:
        """Histogram snapshot as a SUMMARY."""
        family = MetricFamily(name, self.help_message(identifier, histogram), "summary")
        add_snapshot_samples(family, name, histogram.snapshot(), histogram.count, 1.0, labels)
        return family

    def meter_family(self, name: str, identifier: str, meter, labels: Dict[str, str]) -> MetricFamily:
        """Meter count as a `_total` COUNTER followed by its rates."""
        family = MetricFamily(name, self.help_message(identifier, meter), "counter")
        family.add_sample(f"{name}_total", dict(labels), meter.count)
        add_rate_samples(family, name, meter, labels)
        return family

    def timer_family(self, name: str, identifier: str, timer, labels: Dict[str, str]) -> MetricFamily:
        """Timer as a SUMMARY with quantiles in seconds, followed by its rates."""
        family = MetricFamily(name, self.help_message(identifier, timer), "summary")
        add_snapshot_samples(family, name, timer.snapshot(), timer.count, NANOS_TO_SECONDS, labels)
        add_rate_samples(family, name, timer, labels)
        return family

    def families(
        self,
        registry,
        metric_filter: Optional[MetricFilter] = None,
        wanted: Optional[Collection[str]] = None
    ) -> List[MetricFamily]:
        """
        Build one family per series name from the registry.

        Args:
            registry: Registry exposing get_gauges ... get_timers
            metric_filter: Predicate on (identifier, metric); None visits all
            wanted: Sanitized, label-stripped names to keep; empty keeps all

        Returns:
            Families in kind order, then registry order
        """
        merged: Dict[str, MetricFamily] = {}

        for kind in MetricKind:
            accessor, builder_name = _DISPATCH[kind]
            builder: Callable[..., Optional[MetricFamily]] = getattr(self, builder_name)

            for identifier, metric in getattr(registry, accessor)(metric_filter).items():
                parsed = extract_labels(identifier)
                name = sanitize_metric_name(parsed.name)
                if wanted and name not in wanted:
                    continue

                try:
                    family = builder(name, identifier, metric, parsed.labels)
                except Exception:
                    logger.warning(f"Failed to export {kind.value} {identifier}, skipping it", exc_info=True)
                    continue

                if family is not None:
                    self._merge(merged, family, identifier)

        return list(merged.values())

    def _merge(self, merged: Dict[str, MetricFamily], family: MetricFamily, identifier: str):
        key = series_name(family)
        existing = merged.get(key)
        if existing is None:
            merged[key] = family
        elif existing.type != family.type:
            logger.warning(
                f"Metric {identifier} exports {key} as {family.type} but it is "
                f"already exported as {existing.type}, skipping it"
            )
        else:
            existing.samples.extend(family.samples)

    def write(
        self,
        writer: PrometheusTextWriter,
        registry,
        metric_filter: Optional[MetricFilter] = None,
        wanted: Optional[Collection[str]] = None
    ):
        """Stream every family of the registry through `writer`."""
        for family in self.families(registry, metric_filter, wanted):
            writer.write_metric(family)


class RegistryCollector(Collector):
    """prometheus_client collector serving a registry's families."""

    def __init__(self, registry, metric_filter: Optional[MetricFilter] = None, source: str = "Dropwizard"):
        self.registry = registry
        self.metric_filter = metric_filter
        self.exporter = RegistryExporter(source)

    def collect(self) -> Iterable[MetricFamily]:
        return self.exporter.families(self.registry, self.metric_filter)
