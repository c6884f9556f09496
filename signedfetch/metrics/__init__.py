import logging

from prometheus_client import Counter, Histogram, start_http_server

log = logging.getLogger(__name__)

start_prometheus = start_http_server


__all__ = [
    "Counter",
    "Histogram",
    "start_prometheus",
]


def inc_counter(counter: Counter, labels: dict | None = None) -> None:
    try:
        if labels:
            counter.labels(**labels).inc()
        else:
            counter.inc()
    except Exception as e:
        log.warning(f"Error incrementing counter {counter._name}: {e}")


def observe_histogram(
    histogram: Histogram, value: float, labels: dict | None = None
) -> None:
    try:
        if labels:
            histogram.labels(**labels).observe(value)
        else:
            histogram.observe(value)
    except Exception as e:
        log.warning(f"Error observing histogram {histogram._name}: {e}")
