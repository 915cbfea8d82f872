# header_utils.py
"""
Header builder & parser for the PVC format.

Functions:
- build_header(schema_signature, total_rows, columns, row_groups) -> bytes
- parse_header(header_bytes) -> FileHeader
- schema_signature(columns) -> int

Header layout (all little-endian):
  schema_signature u32, total_rows u64, num_columns u32
  per column: name_length u16, name bytes, type u8, flags u8, type_length u32
  num_row_groups u32
  per row group: num_rows u64, then per column: offset u64, comp_size u64, uncomp_size u64

Only fixed-size numeric fields change between the placeholder header and the
final header, so the writer can overwrite the header in place.
"""

import io
import zlib
from dataclasses import dataclass, field
from typing import Dict, List

from byte_utils import (
    pack_u8, pack_u16, pack_u32, pack_u64,
    unpack_u8, unpack_u16, unpack_u32, unpack_u64,
    SIZE_U8, SIZE_U16, SIZE_U32, SIZE_U64,
    FLAG_NULLABLE, TYPE_NAMES, TYPE_FIXED_LEN_BYTE_ARRAY,
)


@dataclass(frozen=True)
class ColumnSchema:
    name: str
    type_id: int
    nullable: bool = False
    type_length: int = 0    # only meaningful for fixed_len_byte_array

    @property
    def type_name(self) -> str:
        return TYPE_NAMES[self.type_id]


@dataclass
class ChunkEntry:
    offset: int = 0
    comp_size: int = 0
    uncomp_size: int = 0


@dataclass
class RowGroupEntry:
    num_rows: int
    chunks: List[ChunkEntry] = field(default_factory=list)


@dataclass
class FileHeader:
    schema_signature: int
    total_rows: int
    columns: List[ColumnSchema]
    row_groups: List[RowGroupEntry]

    def column_index(self) -> Dict[str, int]:
        return {col.name: i for i, col in enumerate(self.columns)}


def schema_signature(columns: List[ColumnSchema]) -> int:
    """CRC32 of a textual description of the schema."""
    desc = ';'.join(f"{c.name}:{c.type_name}:{int(c.nullable)}:{c.type_length}" for c in columns)
    return zlib.crc32(desc.encode('utf-8')) & 0xFFFFFFFF


def build_header(schema_sig: int, total_rows: int,
                 columns: List[ColumnSchema], row_groups: List[RowGroupEntry]) -> bytes:
    """
    Build header bytes deterministically.

    Each row group must carry exactly one ChunkEntry per column.
    """
    buf = io.BytesIO()

    buf.write(pack_u32(int(schema_sig) & 0xFFFFFFFF))
    buf.write(pack_u64(int(total_rows)))
    buf.write(pack_u32(len(columns)))

    for col in columns:
        name_b = col.name.encode('utf-8')
        if len(name_b) >= (1 << 16):
            raise ValueError("Column name too long (>65535 bytes)")
        if col.type_id not in TYPE_NAMES:
            raise ValueError(f"Unknown column type id {col.type_id} for column {col.name}")

        buf.write(pack_u16(len(name_b)))
        buf.write(name_b)
        buf.write(pack_u8(col.type_id))
        buf.write(pack_u8(FLAG_NULLABLE if col.nullable else 0))
        buf.write(pack_u32(col.type_length))

    buf.write(pack_u32(len(row_groups)))
    for rg in row_groups:
        if len(rg.chunks) != len(columns):
            raise ValueError(f"Row group has {len(rg.chunks)} chunks but schema has {len(columns)} columns")
        buf.write(pack_u64(rg.num_rows))
        for chunk in rg.chunks:
            buf.write(pack_u64(chunk.offset))
            buf.write(pack_u64(chunk.comp_size))
            buf.write(pack_u64(chunk.uncomp_size))

    return buf.getvalue()


def _read(buf: io.BytesIO, size: int, what: str) -> bytes:
    raw = buf.read(size)
    if len(raw) < size:
        raise ValueError(f"Header truncated reading {what}")
    return raw


def parse_header(header_bytes: bytes, verify_signature: bool = True) -> FileHeader:
    """
    Parse header bytes produced by build_header.

    Raises ValueError on truncated or inconsistent headers.
    """
    buf = io.BytesIO(header_bytes)

    schema_sig = unpack_u32(_read(buf, SIZE_U32, "schema_signature"))
    total_rows = unpack_u64(_read(buf, SIZE_U64, "total_rows"))
    num_columns = unpack_u32(_read(buf, SIZE_U32, "num_columns"))

    columns = []
    for i in range(num_columns):
        name_len = unpack_u16(_read(buf, SIZE_U16, f"name_length for column {i}"))
        name = _read(buf, name_len, f"name bytes for column {i}").decode('utf-8')
        type_id = unpack_u8(_read(buf, SIZE_U8, f"type for column {name}"))
        if type_id not in TYPE_NAMES:
            raise ValueError(f"Unknown column type id {type_id} for column {name}")
        flags = unpack_u8(_read(buf, SIZE_U8, f"flags for column {name}"))
        type_length = unpack_u32(_read(buf, SIZE_U32, f"type_length for column {name}"))
        if type_id == TYPE_FIXED_LEN_BYTE_ARRAY and type_length == 0:
            raise ValueError(f"Fixed length column {name} declares zero length")
        columns.append(ColumnSchema(name, type_id, bool(flags & FLAG_NULLABLE), type_length))

    if verify_signature and schema_sig != schema_signature(columns):
        raise ValueError(f"Schema signature mismatch: header says {schema_sig:#x}, "
                         f"schema hashes to {schema_signature(columns):#x}")

    num_row_groups = unpack_u32(_read(buf, SIZE_U32, "num_row_groups"))
    row_groups = []
    for g in range(num_row_groups):
        num_rows = unpack_u64(_read(buf, SIZE_U64, f"num_rows for row group {g}"))
        chunks = []
        for col in columns:
            offset = unpack_u64(_read(buf, SIZE_U64, f"offset for {col.name} in row group {g}"))
            comp_size = unpack_u64(_read(buf, SIZE_U64, f"comp_size for {col.name} in row group {g}"))
            uncomp_size = unpack_u64(_read(buf, SIZE_U64, f"uncomp_size for {col.name} in row group {g}"))
            chunks.append(ChunkEntry(offset, comp_size, uncomp_size))
        row_groups.append(RowGroupEntry(num_rows, chunks))

    if sum(rg.num_rows for rg in row_groups) != total_rows:
        raise ValueError("Row group row counts do not add up to total_rows")

    return FileHeader(schema_sig, total_rows, columns, row_groups)
