#!/usr/bin/env python3
"""
columnar_cli.py

Command line front end for PVC files and the read benchmarks.

Usage:
  python columnar_cli.py generate out.pvc [--rows N] [--codec gzip] [--flba-length L] [--row-group-size G]
  python columnar_cli.py bench    in.pvc  [--only NAME ...] [--iterations N] [--warmup N] [--batch-size C]
  python columnar_cli.py to_csv   in.pvc  out.csv [--cols col1,col2,...] [--vectorized] [--batch-size C]
  python columnar_cli.py inspect  in.pvc

Exit codes:
  0 = success
  1 = runtime error (IO, format error, etc.)
  2 = incorrect usage (arg parsing)
"""
import sys
import csv
import argparse
import logging
from typing import Any, List, Optional

from bench import BENCHMARKS, run_benchmarks
from benchmark_files import DEFAULT_ROWS, DEFAULT_FLBA_LENGTH, generate_benchmark_file
from byte_utils import CODEC_IDS, CODEC_NAMES
from errors import ColumnarError
from projection import Projection
from reader import DEFAULT_BATCH_SIZE, ProjectedReader
from writer import DEFAULT_CODEC, DEFAULT_ROW_GROUP_SIZE


def _csv_value(v: Any) -> str:
    if v is None:
        return ''
    if isinstance(v, bytes):
        return v.hex()
    return str(v)


def to_csv_cli(in_pvc: str, out_csv: str, cols: Optional[List[str]] = None,
               vectorized: bool = False, batch_size: int = DEFAULT_BATCH_SIZE) -> int:
    """
    Read a PVC file (optionally projected) and write CSV. Bytes are written as hex,
    nulls as empty fields. Returns the number of rows written.
    """
    projection = Projection(cols) if cols else Projection.ALL
    rows = 0
    with ProjectedReader(in_pvc, projection, batch_size) as reader, \
            open(out_csv, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow([c.name for c in reader.columns])
        if vectorized:
            for batch in reader.iter_batches():
                values = [vector.to_list() for vector in batch.columns()]
                for i in range(batch.row_count()):
                    writer.writerow([_csv_value(col[i]) for col in values])
                rows += batch.row_count()
        else:
            for row in reader.iter_rows():
                writer.writerow([_csv_value(v) for v in row.values()])
                rows += 1
    print(f"Wrote CSV {out_csv} ({rows} rows)")
    return rows


def inspect_cli(in_pvc: str) -> None:
    """Print the schema and per row group chunk sizes."""
    with ProjectedReader(in_pvc) as reader:
        header = reader.header
        print(f"file: {in_pvc}")
        print(f"codec: {CODEC_NAMES[reader.codec_id]}")
        print(f"rows: {header.total_rows}  row groups: {len(header.row_groups)}  "
              f"schema signature: {header.schema_signature:#010x}")
        for col in header.columns:
            extra = f"({col.type_length})" if col.type_length else ''
            null = ' nullable' if col.nullable else ''
            print(f"  {col.name}: {col.type_name}{extra}{null}")
        for g, rg in enumerate(header.row_groups):
            print(f"row group {g}: {rg.num_rows} rows")
            for col, chunk in zip(header.columns, rg.chunks):
                print(f"  {col.name}: offset={chunk.offset} comp_size={chunk.comp_size} "
                      f"uncomp_size={chunk.uncomp_size}")


def bench_cli(in_pvc: str, names: Optional[List[str]], iterations: int, warmup: int, batch_size: int) -> None:
    results = run_benchmarks(in_pvc, names, iterations=iterations, warmup=warmup, batch_size=batch_size)
    print(f"{'benchmark':<40} {'projection':<16} {'best s':>10} {'mean s':>10} {'rows/s':>14}")
    for r in results:
        print(f"{r.name:<40} {r.projection:<16} {r.best:>10.4f} {r.mean:>10.4f} {r.rows_per_second:>14.0f}")


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(prog='columnar_cli.py',
                                     description='PVC columnar files: generate, inspect, export, benchmark')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    sub = parser.add_subparsers(dest='cmd', required=True)

    p_gen = sub.add_parser('generate', help='Write the benchmark data set')
    p_gen.add_argument('out_pvc', help='Output .pvc file path')
    p_gen.add_argument('--rows', type=int, default=DEFAULT_ROWS)
    p_gen.add_argument('--codec', choices=sorted(CODEC_IDS), default=DEFAULT_CODEC)
    p_gen.add_argument('--flba-length', type=int, default=DEFAULT_FLBA_LENGTH)
    p_gen.add_argument('--row-group-size', type=int, default=DEFAULT_ROW_GROUP_SIZE)

    p_bench = sub.add_parser('bench', help='Run row-wise and vectorized read benchmarks')
    p_bench.add_argument('in_pvc', help='Benchmark .pvc file (see generate)')
    p_bench.add_argument('--only', nargs='+', choices=list(BENCHMARKS), help='Benchmarks to run')
    p_bench.add_argument('--iterations', type=int, default=5)
    p_bench.add_argument('--warmup', type=int, default=1)
    p_bench.add_argument('--batch-size', type=int, default=DEFAULT_BATCH_SIZE)

    p_csv = sub.add_parser('to_csv', help='Convert PVC to CSV')
    p_csv.add_argument('in_pvc', help='Input .pvc file path')
    p_csv.add_argument('out_csv', help='Output CSV file path')
    p_csv.add_argument('--cols', help='Comma-separated list of columns to extract (optional)', default='')
    p_csv.add_argument('--vectorized', action='store_true', help='Read with batches instead of rows')
    p_csv.add_argument('--batch-size', type=int, default=DEFAULT_BATCH_SIZE)

    p_inspect = sub.add_parser('inspect', help='Print schema and chunk layout')
    p_inspect.add_argument('in_pvc', help='Input .pvc file path')

    try:
        args = parser.parse_args(argv)
    except SystemExit:
        return 2

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    # basicConfig is a no-op once the root logger has handlers
    logging.getLogger().setLevel(level)

    try:
        if args.cmd == 'generate':
            generate_benchmark_file(args.out_pvc, rows=args.rows, codec=args.codec,
                                    flba_length=args.flba_length, row_group_size=args.row_group_size)
            print(f"Wrote {args.out_pvc} with {args.rows} rows")
        elif args.cmd == 'bench':
            bench_cli(args.in_pvc, args.only, args.iterations, args.warmup, args.batch_size)
        elif args.cmd == 'to_csv':
            cols = [c for c in args.cols.split(',') if c] if args.cols else None
            to_csv_cli(args.in_pvc, args.out_csv, cols, args.vectorized, args.batch_size)
        elif args.cmd == 'inspect':
            inspect_cli(args.in_pvc)
        else:
            print("Unknown command", file=sys.stderr)
            return 2
        return 0
    except (ColumnarError, OSError, ValueError) as e:
        print("Error:", e, file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
