# writer.py
import logging
import math
from typing import Any, List, Sequence

from byte_utils import (
    MAGIC, VERSION, HEADER_PREFIX_LEN, CODEC_IDS, TYPE_FIXED_LEN_BYTE_ARRAY,
    pack_u8, pack_u64, compress,
)
from column_serializers import serialize_chunk
from errors import EncodeError
from header_utils import (
    ColumnSchema, ChunkEntry, RowGroupEntry, build_header, schema_signature,
)

logger = logging.getLogger(__name__)

DEFAULT_ROW_GROUP_SIZE = 10000
DEFAULT_CODEC = 'gzip'


def write_pvc(out_path: str,
              columns: Sequence[ColumnSchema],
              data: Sequence[Sequence[Any]],
              codec: str = DEFAULT_CODEC,
              row_group_size: int = DEFAULT_ROW_GROUP_SIZE) -> None:
    """
    Write table data to a .pvc file.

    - columns: list of N ColumnSchema
    - data: list of N value lists, each with total_rows elements (column-major);
      None marks a null in nullable columns
    - codec: 'uncompressed', 'zlib' or 'gzip'
    - row_group_size: rows per row group; each row group holds one
      compressed chunk per column

    Raises EncodeError on validation failures.
    """
    # --- Validation ---
    if len(columns) != len(data):
        raise EncodeError("columns and data must have same length")
    if not columns:
        raise EncodeError("At least one column is required")
    names = [c.name for c in columns]
    if len(set(names)) != len(names):
        raise EncodeError(f"Duplicate column names in {names}")
    if codec not in CODEC_IDS:
        raise EncodeError(f"Unknown codec {codec!r}; expected one of {sorted(CODEC_IDS)}")
    if row_group_size <= 0:
        raise EncodeError(f"row_group_size must be positive, got {row_group_size}")
    codec_id = CODEC_IDS[codec]
    for col in columns:
        if col.type_id == TYPE_FIXED_LEN_BYTE_ARRAY and col.type_length <= 0:
            raise EncodeError(f"Fixed length column '{col.name}' needs a positive type_length")

    total_rows = len(data[0])
    for col, values in zip(columns, data):
        if len(values) != total_rows:
            raise EncodeError(f"Column '{col.name}' length {len(values)} != expected {total_rows}")

    # --- Placeholder row groups ---
    num_groups = math.ceil(total_rows / row_group_size)
    row_groups = []
    for g in range(num_groups):
        num_rows = min(row_group_size, total_rows - g * row_group_size)
        row_groups.append(RowGroupEntry(num_rows, [ChunkEntry() for _ in columns]))

    sig = schema_signature(list(columns))
    initial_header = build_header(sig, total_rows, list(columns), row_groups)
    header_len = len(initial_header)

    # File layout: MAGIC(4) + VERSION(1) + CODEC(1) + reserved(6) + header_len(u64) + header_bytes
    with open(out_path, 'wb') as f:
        f.write(MAGIC)
        f.write(pack_u8(VERSION))
        f.write(pack_u8(codec_id))
        f.write(b'\x00' * 6)
        f.write(pack_u64(header_len))
        f.write(initial_header)

        for g, rg in enumerate(row_groups):
            start = g * row_group_size
            stop = start + rg.num_rows
            for col, values, chunk in zip(columns, data, rg.chunks):
                try:
                    uncompressed = serialize_chunk(col, list(values[start:stop]))
                except ValueError as e:
                    raise EncodeError(f"Column '{col.name}', rows {start}-{stop}: {e}") from e
                compressed = compress(codec_id, uncompressed)

                chunk.offset = f.tell()
                chunk.comp_size = len(compressed)
                chunk.uncomp_size = len(uncompressed)
                f.write(compressed)
            logger.debug("wrote row group %d (%d rows) to %s", g, rg.num_rows, out_path)

        final_header = build_header(sig, total_rows, list(columns), row_groups)
        if len(final_header) != header_len:
            raise RuntimeError("Header length changed between initial and final serialization.")

        f.seek(HEADER_PREFIX_LEN)
        f.write(final_header)
        f.flush()

    logger.debug("wrote %s: %d rows, %d columns, %d row groups, codec=%s",
                 out_path, total_rows, len(columns), num_groups, codec)


def write_rows(out_path: str, columns: Sequence[ColumnSchema], rows: List[Sequence[Any]], **kwargs) -> None:
    """Row-major convenience wrapper around write_pvc."""
    data = [[row[i] for row in rows] for i in range(len(columns))]
    write_pvc(out_path, columns, data, **kwargs)
