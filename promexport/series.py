"""Data structures for exported metric families."""
from dataclasses import dataclass, field
from typing import Dict, List

from prometheus_client.samples import Sample


@dataclass
class MetricFamily:
    """
    A HELP/TYPE block and its samples.

    Carries the same attributes as `prometheus_client.Metric` so it can be
    yielded from a collector, but leaves the name as given: the sanitized
    name is exported whatever the installed client would accept.
    """
    name: str
    documentation: str
    type: str
    unit: str = ""
    samples: List[Sample] = field(default_factory=list)

    def add_sample(self, name: str, labels: Dict[str, str], value: float):
        self.samples.append(Sample(name, labels, value))
