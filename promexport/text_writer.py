"""Line emitter for the Prometheus text exposition format (version 0.0.4)."""
from typing import Dict, TextIO

from prometheus_client.utils import floatToGoString

from promexport.series import MetricFamily

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def _escape_help(text: str) -> str:
    return text.replace("\\", r"\\").replace("\n", r"\n")


def _escape_label_value(value: str) -> str:
    return value.replace("\\", r"\\").replace("\n", r"\n").replace('"', r"\"")


def series_name(metric: MetricFamily) -> str:
    """Name used on the HELP/TYPE lines of a family."""
    if metric.type == "counter":
        return f"{metric.name}_total"
    return metric.name


class PrometheusTextWriter:
    """Writes HELP, TYPE and sample lines to a text sink."""

    def __init__(self, sink: TextIO):
        self.sink = sink

    def write_help(self, name: str, text: str):
        self.sink.write(f"# HELP {name} {_escape_help(text)}\n")

    def write_type(self, name: str, metric_type: str):
        self.sink.write(f"# TYPE {name} {metric_type}\n")

    def write_sample(self, name: str, labels: Dict[str, str], value: float):
        """Write one sample line; an empty label set is written without braces."""
        if labels:
            label_str = ",".join(
                f'{k}="{_escape_label_value(str(v))}"'
                for k, v in sorted(labels.items())
            )
            self.sink.write(f"{name}{{{label_str}}} {floatToGoString(value)}\n")
        else:
            self.sink.write(f"{name} {floatToGoString(value)}\n")

    def write_metric(self, metric: MetricFamily):
        """Write a whole family: HELP, TYPE, then every sample in order."""
        name = series_name(metric)
        self.write_help(name, metric.documentation)
        self.write_type(name, metric.type)
        for sample in metric.samples:
            self.write_sample(sample.name, sample.labels, sample.value)

    def flush(self):
        self.sink.flush()

    def close(self):
        self.sink.close()
