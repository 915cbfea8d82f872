# benchmark_files.py
"""
The benchmark data set: a fixed eight-column schema, a deterministic data
generator, and the named projections the benchmarks read it with.
"""

import logging
from typing import Any, Dict, List

from byte_utils import (
    TYPE_INT32, TYPE_INT64, TYPE_BOOLEAN, TYPE_FLOAT, TYPE_DOUBLE,
    TYPE_BINARY, TYPE_FIXED_LEN_BYTE_ARRAY, TYPE_INT96,
)
from header_utils import ColumnSchema
from projection import Projection
from writer import DEFAULT_CODEC, DEFAULT_ROW_GROUP_SIZE, write_pvc

logger = logging.getLogger(__name__)

DEFAULT_ROWS = 1_000_000
DEFAULT_FLBA_LENGTH = 1024

BINARY_FIELD = 'binary_field'
INT32_FIELD = 'int32_field'
INT64_FIELD = 'int64_field'
BOOLEAN_FIELD = 'boolean_field'
FLOAT_FIELD = 'float_field'
DOUBLE_FIELD = 'double_field'
FLBA_FIELD = 'flba_field'
INT96_FIELD = 'int96_field'


def benchmark_schema(flba_length: int = DEFAULT_FLBA_LENGTH) -> List[ColumnSchema]:
    return [
        ColumnSchema(BINARY_FIELD, TYPE_BINARY),
        ColumnSchema(INT32_FIELD, TYPE_INT32),
        ColumnSchema(INT64_FIELD, TYPE_INT64),
        ColumnSchema(BOOLEAN_FIELD, TYPE_BOOLEAN),
        ColumnSchema(FLOAT_FIELD, TYPE_FLOAT),
        ColumnSchema(DOUBLE_FIELD, TYPE_DOUBLE),
        ColumnSchema(FLBA_FIELD, TYPE_FIXED_LEN_BYTE_ARRAY, type_length=flba_length),
        ColumnSchema(INT96_FIELD, TYPE_INT96),
    ]


# ---- Projections used by the benchmarks ----
DEFAULT_PROJECTION = Projection(None, 'default')
READ_ONE_PRIMITIVE = Projection([INT32_FIELD], 'one_primitive')
READ_FOUR_PRIMITIVES = Projection([INT32_FIELD, INT64_FIELD, BOOLEAN_FIELD, FLOAT_FIELD], 'four_primitives')
FLBA_READ = Projection([FLBA_FIELD], 'flba')
READ_ALL_PRIMITIVES = Projection(
    [INT32_FIELD, INT64_FIELD, BOOLEAN_FIELD, FLOAT_FIELD, DOUBLE_FIELD, FLBA_FIELD, INT96_FIELD],
    'all_primitives')

PROJECTIONS: Dict[str, Projection] = {
    p.name: p for p in (DEFAULT_PROJECTION, READ_ONE_PRIMITIVE, READ_FOUR_PRIMITIVES,
                        FLBA_READ, READ_ALL_PRIMITIVES)
}


def generate_columns(rows: int, flba_length: int = DEFAULT_FLBA_LENGTH) -> List[List[Any]]:
    """
    Column-major values for `rows` rows. Row i is fully determined by i, so
    readers can be checked against expected_row().
    """
    # 256 shared byte strings instead of one buffer per row
    flba_patterns = [bytes([k]) * flba_length for k in range(256)]
    return [
        [b'binary-%d' % i for i in range(rows)],
        [i for i in range(rows)],
        [i * 1_000_003 for i in range(rows)],
        [i % 2 == 0 for i in range(rows)],
        [i * 0.5 for i in range(rows)],
        [i / 3.0 for i in range(rows)],
        [flba_patterns[i % 256] for i in range(rows)],
        [i for i in range(rows)],
    ]


def expected_row(i: int, flba_length: int = DEFAULT_FLBA_LENGTH) -> Dict[str, Any]:
    """Values generate_columns() writes for row i, as the reader returns them."""
    return {
        BINARY_FIELD: b'binary-%d' % i,
        INT32_FIELD: i,
        INT64_FIELD: i * 1_000_003,
        BOOLEAN_FIELD: i % 2 == 0,
        FLOAT_FIELD: i * 0.5,
        DOUBLE_FIELD: i / 3.0,
        FLBA_FIELD: bytes([i % 256]) * flba_length,
        INT96_FIELD: i.to_bytes(12, 'little', signed=True),
    }


def generate_benchmark_file(path: str,
                            rows: int = DEFAULT_ROWS,
                            codec: str = DEFAULT_CODEC,
                            flba_length: int = DEFAULT_FLBA_LENGTH,
                            row_group_size: int = DEFAULT_ROW_GROUP_SIZE) -> None:
    if rows < 0:
        raise ValueError(f"rows must be >= 0, got {rows}")
    logger.info("generating %s: %d rows, codec=%s, flba_length=%d", path, rows, codec, flba_length)
    write_pvc(path, benchmark_schema(flba_length), generate_columns(rows, flba_length),
              codec=codec, row_group_size=row_group_size)
