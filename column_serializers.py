# column_serializers.py
"""
Column chunk serializers and parsers for the PVC format.

Provides:
- serialize_chunk(column, values) -> bytes
- parse_chunk(column, data, num_rows) -> DecodedChunk

Chunk layout (uncompressed):
- nullable columns start with one validity byte per row (1 = value present, 0 = null)
- then a value for every row, nulls stored as zero placeholders:
    int32 <i4, int64 <i8, boolean u8, float <f4, double <f8,
    int96 12 raw bytes, fixed_len_byte_array type_length raw bytes,
    binary as (num_rows+1) u32 offsets followed by the concatenated payloads

Edge cases:
- Empty chunk -> valid representation (binary keeps its single zero offset)
- Binary offsets are 32-bit (max 4 GiB per chunk). If exceeded, raise ValueError.
- Non-nullable columns reject None.
"""

import io
from typing import Any, List, Optional

import numpy as np

from byte_utils import (
    pack_u32, SIZE_U32, INT96_LENGTH, NUMERIC_DTYPES, value_width,
    TYPE_INT32, TYPE_INT64, TYPE_BOOLEAN, TYPE_FLOAT, TYPE_DOUBLE,
    TYPE_BINARY, TYPE_FIXED_LEN_BYTE_ARRAY, TYPE_INT96,
)
from header_utils import ColumnSchema

# Integer limits
I32_MIN = -2**31
I32_MAX = 2**31 - 1
I64_MIN = -2**63
I64_MAX = 2**63 - 1
UINT32_MAX = 0xFFFFFFFF


class DecodedChunk:
    """
    One column chunk decoded into typed arrays.

    values is a numpy array for numeric columns, a (num_rows, width) uint8
    array for int96 and fixed-length columns, and a list of bytes for binary.
    nulls is a boolean array (True = null) or None for non-nullable columns.
    """

    __slots__ = ('column', 'num_rows', 'values', 'nulls')

    def __init__(self, column: ColumnSchema, num_rows: int, values, nulls: Optional[np.ndarray]):
        self.column = column
        self.num_rows = num_rows
        self.values = values
        self.nulls = nulls

    def value(self, index: int) -> Any:
        """Single value as a Python object, None for nulls."""
        if self.nulls is not None and self.nulls[index]:
            return None
        return _SCALAR_GETTERS[self.column.type_id](self.values, index)


def _numeric_scalar(values, index):
    return values[index].item()

def _bytes_row_scalar(values, index):
    return values[index].tobytes()

def _binary_scalar(values, index):
    return values[index]


_SCALAR_GETTERS = {
    TYPE_INT32: _numeric_scalar,
    TYPE_INT64: _numeric_scalar,
    TYPE_BOOLEAN: _numeric_scalar,
    TYPE_FLOAT: _numeric_scalar,
    TYPE_DOUBLE: _numeric_scalar,
    TYPE_INT96: _bytes_row_scalar,
    TYPE_FIXED_LEN_BYTE_ARRAY: _bytes_row_scalar,
    TYPE_BINARY: _binary_scalar,
}


# ---- Serializers ----
def _serialize_validity(values: List[Any]) -> bytes:
    return bytes(0 if v is None else 1 for v in values)

def _check_not_null(column: ColumnSchema, values: List[Any]) -> None:
    if not column.nullable and any(v is None for v in values):
        raise ValueError(f"Null value in non-nullable column '{column.name}'")

def _to_int(v: Any, lo: int, hi: int) -> int:
    iv = int(v)
    if iv < lo or iv > hi:
        raise ValueError(f"Value {iv} out of range [{lo}, {hi}]")
    return iv

def _to_bytes(v: Any) -> bytes:
    if isinstance(v, str):
        return v.encode('utf-8')
    return bytes(v)

def _to_int96(v: Any) -> bytes:
    if isinstance(v, int):
        return v.to_bytes(INT96_LENGTH, 'little', signed=True)
    return bytes(v)

def serialize_numeric_values(type_id: int, values: List[Any]) -> bytes:
    """
    Pack numeric values (None already replaced by placeholders) with numpy.
    Raises ValueError if an integer overflows its declared width.
    """
    if type_id == TYPE_INT32:
        converted = [_to_int(v, I32_MIN, I32_MAX) for v in values]
    elif type_id == TYPE_INT64:
        converted = [_to_int(v, I64_MIN, I64_MAX) for v in values]
    elif type_id == TYPE_BOOLEAN:
        converted = [bool(v) for v in values]
    else:
        converted = [float(v) for v in values]
    return np.asarray(converted, dtype=NUMERIC_DTYPES[type_id]).tobytes()

def serialize_fixed_values(values: List[bytes], width: int, name: str) -> bytes:
    buf = io.BytesIO()
    for v in values:
        if len(v) != width:
            raise ValueError(f"Column '{name}' expects {width}-byte values, got {len(v)} bytes")
        buf.write(v)
    return buf.getvalue()

def serialize_binary_values(values: List[bytes]) -> bytes:
    """
    Build offsets array (num_values+1 uint32 little-endian) followed by concatenated bytes.
    """
    offsets = [0]
    cur = 0
    for v in values:
        cur += len(v)
        offsets.append(cur)
    if cur > UINT32_MAX:
        raise ValueError("Total binary data exceeds 4GiB; 32-bit offsets cannot represent this.")

    buf = io.BytesIO()
    for off in offsets:
        buf.write(pack_u32(off))
    for v in values:
        buf.write(v)
    return buf.getvalue()

def serialize_chunk(column: ColumnSchema, values: List[Any]) -> bytes:
    """
    Serialize one column chunk (uncompressed) for the given rows.
    """
    _check_not_null(column, values)
    prefix = _serialize_validity(values) if column.nullable else b''
    type_id = column.type_id

    if type_id in NUMERIC_DTYPES:
        placeholder = False if type_id == TYPE_BOOLEAN else 0
        body = serialize_numeric_values(type_id, [placeholder if v is None else v for v in values])
    elif type_id == TYPE_INT96:
        zero = bytes(INT96_LENGTH)
        body = serialize_fixed_values([zero if v is None else _to_int96(v) for v in values],
                                      INT96_LENGTH, column.name)
    elif type_id == TYPE_FIXED_LEN_BYTE_ARRAY:
        zero = bytes(column.type_length)
        body = serialize_fixed_values([zero if v is None else _to_bytes(v) for v in values],
                                      column.type_length, column.name)
    elif type_id == TYPE_BINARY:
        body = serialize_binary_values([b'' if v is None else _to_bytes(v) for v in values])
    else:
        raise ValueError(f"Unknown column type id {type_id} for column '{column.name}'")

    return prefix + body


# ---- Parsers ----
def _parse_validity(data: bytes, num_rows: int, name: str) -> np.ndarray:
    if len(data) < num_rows:
        raise ValueError(f"Chunk for '{name}' too small for validity section: "
                         f"need {num_rows} bytes, got {len(data)}")
    if num_rows == 0:
        return np.zeros(0, dtype=np.bool_)
    raw = np.frombuffer(data, dtype=np.uint8, count=num_rows)
    if raw.size and raw.max() > 1:
        raise ValueError(f"Invalid validity byte in chunk for '{name}'")
    return raw == 0

def parse_numeric_block(data: bytes, offset: int, num_rows: int, type_id: int, name: str) -> np.ndarray:
    width = value_width(type_id)
    expected = num_rows * width
    if len(data) - offset != expected:
        raise ValueError(f"{name} block size mismatch: expected {expected} bytes, got {len(data) - offset}")
    if num_rows == 0:
        return np.empty(0, dtype=NUMERIC_DTYPES[type_id])
    if type_id == TYPE_BOOLEAN:
        raw = np.frombuffer(data, dtype=np.uint8, count=num_rows, offset=offset)
        if raw.size and raw.max() > 1:
            raise ValueError(f"Invalid boolean byte in chunk for '{name}'")
        return raw.astype(np.bool_)
    return np.frombuffer(data, dtype=NUMERIC_DTYPES[type_id], count=num_rows, offset=offset)

def parse_fixed_block(data: bytes, offset: int, num_rows: int, width: int, name: str) -> np.ndarray:
    expected = num_rows * width
    if len(data) - offset != expected:
        raise ValueError(f"{name} block size mismatch: expected {expected} bytes, got {len(data) - offset}")
    if num_rows == 0:
        return np.empty((0, width), dtype=np.uint8)
    return np.frombuffer(data, dtype=np.uint8, count=expected, offset=offset).reshape(num_rows, width)

def parse_binary_block(data: bytes, offset: int, num_rows: int, name: str) -> List[bytes]:
    """
    Parse offsets array then data bytes.
    Offsets array is (num_rows+1) uint32 entries (little-endian).
    Data section immediately follows offsets.
    """
    offsets_byte_len = (num_rows + 1) * SIZE_U32
    if len(data) - offset < offsets_byte_len:
        raise ValueError(f"BINARY block for '{name}' too small for offsets: "
                         f"need {offsets_byte_len} bytes, got {len(data) - offset}")
    offsets = np.frombuffer(data, dtype='<u4', count=num_rows + 1, offset=offset).tolist()

    data_section = memoryview(data)[offset + offsets_byte_len:]
    if offsets[0] != 0 or offsets[-1] != len(data_section):
        raise ValueError(f"Offsets for '{name}' do not span data section of {len(data_section)} bytes")

    out = []
    for i in range(num_rows):
        s_off = offsets[i]
        s_end = offsets[i + 1]
        if s_off > s_end:
            raise ValueError(f"Invalid offsets for '{name}': offsets[{i}] > offsets[{i + 1}]")
        out.append(bytes(data_section[s_off:s_end]))
    return out

def parse_chunk(column: ColumnSchema, data: bytes, num_rows: int) -> DecodedChunk:
    """
    Parse an uncompressed chunk. Raises ValueError on malformed data.
    """
    nulls = None
    offset = 0
    if column.nullable:
        nulls = _parse_validity(data, num_rows, column.name)
        offset = num_rows

    type_id = column.type_id
    if type_id in NUMERIC_DTYPES:
        values = parse_numeric_block(data, offset, num_rows, type_id, column.name)
    elif type_id in (TYPE_INT96, TYPE_FIXED_LEN_BYTE_ARRAY):
        values = parse_fixed_block(data, offset, num_rows, value_width(type_id, column.type_length), column.name)
    elif type_id == TYPE_BINARY:
        values = parse_binary_block(data, offset, num_rows, column.name)
    else:
        raise ValueError(f"Unknown column type id {type_id} for column '{column.name}'")

    return DecodedChunk(column, num_rows, values, nulls)
