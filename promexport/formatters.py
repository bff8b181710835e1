"""Sample builders for snapshot statistics and metered rates."""
from typing import Dict

from promexport.series import MetricFamily

QUANTILES = (
    ("0.5", "median"),
    ("0.75", "p75"),
    ("0.95", "p95"),
    ("0.98", "p98"),
    ("0.99", "p99"),
    ("0.999", "p999"),
)

STATISTICS = ("min", "max", "median", "mean", "stddev")

RATES = (
    ("m1", "one_minute_rate"),
    ("m5", "five_minute_rate"),
    ("m15", "fifteen_minute_rate"),
    ("mean", "mean_rate"),
)


def add_snapshot_samples(
    family: MetricFamily,
    name: str,
    snapshot,
    count: int,
    factor: float,
    labels: Dict[str, str]
):
    """
    Add quantile, statistic and count samples for a snapshot.

    Only the quantile samples are multiplied by `factor`; min, max, median,
    mean, stddev and count keep the snapshot's native unit.

    Args:
        family: Family receiving the samples
        name: Sanitized base name
        snapshot: Object exposing median, p75 ... p999 and min/max/mean/stddev
        count: Number of observations
        factor: Multiplier applied to quantile values
        labels: Labels extracted from the metric name
    """
    quantile_name = f"{name}_quantile"
    for quantile, attr in QUANTILES:
        family.add_sample(
            quantile_name,
            {**labels, "quantile": quantile},
            getattr(snapshot, attr) * factor
        )

    for stat in STATISTICS:
        family.add_sample(f"{name}_{stat}", dict(labels), getattr(snapshot, stat))

    family.add_sample(f"{name}_count", dict(labels), count)


def add_rate_samples(family: MetricFamily, name: str, metered, labels: Dict[str, str]):
    """Add the m1/m5/m15/mean `_rate` samples of a metered metric."""
    rate_name = f"{name}_rate"
    for rate, attr in RATES:
        family.add_sample(rate_name, {**labels, "rate": rate}, getattr(metered, attr))
