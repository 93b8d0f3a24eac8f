from dataclasses import dataclass

from prometheus_client import Counter, Histogram, Summary


MEMO_HITS = Counter(
    name="batchload_memo_hits",
    documentation="Keys resolved from loader memoization table",
    labelnames=["name", "loader"],
)
MEMO_MISSES = Counter(
    name="batchload_memo_misses",
    documentation="Keys which were not memoized at the time of request",
    labelnames=["name", "loader"],
)
BATCH_SIZE = Histogram(
    name="batchload_batch_size",
    documentation="Number of keys passed to batch function in one dispatch",
    labelnames=["name", "loader"],
    buckets=(1, 2, 5, 10, 25, 50, 100, 250, 500, 1000),
)
FETCH_TIME = Summary(
    name="batchload_fetch_time",
    documentation="Batch function time (seconds)",
    labelnames=["name", "loader"],
)


@dataclass
class LoaderMetrics:
    name: str
    hits_counter: Counter = MEMO_HITS
    misses_counter: Counter = MEMO_MISSES
    batch_size_histogram: Histogram = BATCH_SIZE
    fetch_time_summary: Summary = FETCH_TIME

    def track_lookup(self, loader: str, hits: int, misses: int) -> None:
        if hits:
            self.hits_counter.labels(self.name, loader).inc(hits)
        if misses:
            self.misses_counter.labels(self.name, loader).inc(misses)

    def track_batch(self, loader: str, size: int) -> None:
        self.batch_size_histogram.labels(self.name, loader).observe(size)

    def track_fetch(self, loader: str, duration: float) -> None:
        self.fetch_time_summary.labels(self.name, loader).observe(duration)
