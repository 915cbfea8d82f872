# bench.py
"""
Row-wise vs. vectorized read benchmarks.

Each benchmark drains one freshly opened reader and hands everything it
produces to a Blackhole, so no work can be skipped. Opening and closing the
reader is setup/teardown and is not timed.
"""

import logging
import statistics
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from benchmark_files import (
    DEFAULT_PROJECTION, READ_ALL_PRIMITIVES, READ_ONE_PRIMITIVE, READ_FOUR_PRIMITIVES, FLBA_READ,
    BINARY_FIELD, INT32_FIELD, INT64_FIELD, BOOLEAN_FIELD, FLOAT_FIELD, DOUBLE_FIELD,
    FLBA_FIELD, INT96_FIELD,
)
from projection import Projection
from reader import DEFAULT_BATCH_SIZE, ProjectedReader

logger = logging.getLogger(__name__)


class Blackhole:
    """Sink for benchmark output. Folds every consumed object into a token."""

    __slots__ = ('consumed', '_token')

    def __init__(self):
        self.consumed = 0
        self._token = 0

    def consume(self, obj: Any) -> None:
        self.consumed += 1
        self._token ^= id(obj)

    @property
    def token(self) -> int:
        return self._token


# ---- row-wise benchmarks ----
def read_all_objects(reader: ProjectedReader, bh: Blackhole) -> int:
    rows = 0
    for row in reader.iter_rows():
        bh.consume(row.get_binary(BINARY_FIELD))
        bh.consume(row.get_integer(INT32_FIELD))
        bh.consume(row.get_long(INT64_FIELD))
        bh.consume(row.get_boolean(BOOLEAN_FIELD))
        bh.consume(row.get_float(FLOAT_FIELD))
        bh.consume(row.get_double(DOUBLE_FIELD))
        bh.consume(row.get_binary(FLBA_FIELD))
        bh.consume(row.get_int96(INT96_FIELD))
        rows += 1
    return rows


def read_all_primitives(reader: ProjectedReader, bh: Blackhole) -> int:
    rows = 0
    for row in reader.iter_rows():
        bh.consume(row.get_integer(INT32_FIELD))
        bh.consume(row.get_long(INT64_FIELD))
        bh.consume(row.get_boolean(BOOLEAN_FIELD))
        bh.consume(row.get_float(FLOAT_FIELD))
        bh.consume(row.get_double(DOUBLE_FIELD))
        bh.consume(row.get_binary(FLBA_FIELD))
        bh.consume(row.get_int96(INT96_FIELD))
        rows += 1
    return rows


def read_one_primitive(reader: ProjectedReader, bh: Blackhole) -> int:
    rows = 0
    for row in reader.iter_rows():
        bh.consume(row.get_integer(INT32_FIELD))
        rows += 1
    return rows


def read_four_primitives(reader: ProjectedReader, bh: Blackhole) -> int:
    rows = 0
    for row in reader.iter_rows():
        bh.consume(row.get_integer(INT32_FIELD))
        bh.consume(row.get_long(INT64_FIELD))
        bh.consume(row.get_boolean(BOOLEAN_FIELD))
        bh.consume(row.get_float(FLOAT_FIELD))
        rows += 1
    return rows


def read_fixed_len_byte_array(reader: ProjectedReader, bh: Blackhole) -> int:
    rows = 0
    for row in reader.iter_rows():
        bh.consume(row.get_binary(FLBA_FIELD))
        rows += 1
    return rows


# ---- vectorized benchmarks ----
def vectorized_read_all_objects(reader: ProjectedReader, bh: Blackhole) -> int:
    """Whole rows delivered in batches: full row materialization, batched."""
    rows = 0
    batch = reader.next_batch(None, as_rows=True)
    while batch is not None:
        objects = batch.columns()[0]
        for i in range(objects.size()):
            row = objects.values[i]
            bh.consume(row.get_binary(BINARY_FIELD))
            bh.consume(row.get_integer(INT32_FIELD))
            bh.consume(row.get_long(INT64_FIELD))
            bh.consume(row.get_boolean(BOOLEAN_FIELD))
            bh.consume(row.get_float(FLOAT_FIELD))
            bh.consume(row.get_double(DOUBLE_FIELD))
            bh.consume(row.get_binary(FLBA_FIELD))
            bh.consume(row.get_int96(INT96_FIELD))
        rows += batch.row_count()
        batch = reader.next_batch(batch, as_rows=True)
    return rows


def _consume_batches(reader: ProjectedReader, bh: Blackhole) -> int:
    rows = 0
    batch = reader.next_batch(None)
    while batch is not None:
        for vector in batch.columns():
            bh.consume(vector)
        rows += batch.row_count()
        batch = reader.next_batch(batch)
    return rows


vectorized_read_all_primitives = _consume_batches
vectorized_read_one_primitive = _consume_batches
vectorized_read_four_primitives = _consume_batches
vectorized_read_fixed_len_byte_array = _consume_batches


@dataclass(frozen=True)
class Benchmark:
    name: str
    projection: Projection
    run: Callable[[ProjectedReader, Blackhole], int]


BENCHMARKS: Dict[str, Benchmark] = {b.name: b for b in (
    Benchmark('read_all_objects', DEFAULT_PROJECTION, read_all_objects),
    Benchmark('vectorized_read_all_objects', DEFAULT_PROJECTION, vectorized_read_all_objects),
    Benchmark('read_all_primitives', READ_ALL_PRIMITIVES, read_all_primitives),
    Benchmark('vectorized_read_all_primitives', READ_ALL_PRIMITIVES, vectorized_read_all_primitives),
    Benchmark('read_one_primitive', READ_ONE_PRIMITIVE, read_one_primitive),
    Benchmark('vectorized_read_one_primitive', READ_ONE_PRIMITIVE, vectorized_read_one_primitive),
    Benchmark('read_four_primitives', READ_FOUR_PRIMITIVES, read_four_primitives),
    Benchmark('vectorized_read_four_primitives', READ_FOUR_PRIMITIVES, vectorized_read_four_primitives),
    Benchmark('read_fixed_len_byte_array', FLBA_READ, read_fixed_len_byte_array),
    Benchmark('vectorized_read_fixed_len_byte_array', FLBA_READ, vectorized_read_fixed_len_byte_array),
)}


@dataclass
class BenchmarkResult:
    name: str
    projection: str
    iterations: int
    rows: int
    consumed: int
    timings: List[float]

    @property
    def best(self) -> float:
        return min(self.timings)

    @property
    def mean(self) -> float:
        return statistics.fmean(self.timings)

    @property
    def rows_per_second(self) -> float:
        return self.rows / self.best if self.best > 0 else float('inf')


def run_once(path: str, bench: Benchmark, batch_size: int = DEFAULT_BATCH_SIZE,
             bh: Optional[Blackhole] = None):
    """
    One invocation: open a reader (untimed), drain it, close it even if the
    benchmark body raises. Returns (seconds, rows, blackhole).
    """
    bh = bh if bh is not None else Blackhole()
    reader = ProjectedReader(path, bench.projection, batch_size)
    try:
        start = time.perf_counter()
        rows = bench.run(reader, bh)
        elapsed = time.perf_counter() - start
    finally:
        reader.close()
    return elapsed, rows, bh


def run_benchmarks(path: str,
                   names: Optional[Sequence[str]] = None,
                   iterations: int = 5,
                   warmup: int = 1,
                   batch_size: int = DEFAULT_BATCH_SIZE) -> List[BenchmarkResult]:
    if iterations <= 0:
        raise ValueError(f"iterations must be positive, got {iterations}")
    if names is None:
        names = list(BENCHMARKS)
    unknown = [n for n in names if n not in BENCHMARKS]
    if unknown:
        raise KeyError(f"Unknown benchmark(s) {unknown}; available: {sorted(BENCHMARKS)}")

    results = []
    for name in names:
        bench = BENCHMARKS[name]
        for _ in range(warmup):
            run_once(path, bench, batch_size)
        bh = Blackhole()
        timings = []
        rows = 0
        for _ in range(iterations):
            elapsed, rows, _ = run_once(path, bench, batch_size, bh)
            timings.append(elapsed)
        result = BenchmarkResult(name, bench.projection.name, iterations, rows, bh.consumed, timings)
        logger.info("%-40s best %.4fs  mean %.4fs  %.0f rows/s",
                    name, result.best, result.mean, result.rows_per_second)
        results.append(result)
    return results
