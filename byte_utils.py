# byte_utils.py
"""
Binary packing/unpacking helpers for the PVC columnar format.

Endianness: all multi-byte values are **little-endian** (struct format prefix '<').

This module centralizes:
- format constants (magic, version, type IDs, codec IDs)
- pack/unpack helpers for header integers
- compress/decompress for the supported codecs
- safe file read helpers (read_exact)
"""

from typing import BinaryIO, Dict, Optional
import gzip
import struct
import zlib

# ---- Format constants ----
MAGIC = b'PVCF'         # 4 bytes
VERSION = 1             # uint8

# Column type IDs used in the header
TYPE_INT32 = 0
TYPE_INT64 = 1
TYPE_BOOLEAN = 2
TYPE_FLOAT = 3
TYPE_DOUBLE = 4
TYPE_BINARY = 5
TYPE_FIXED_LEN_BYTE_ARRAY = 6
TYPE_INT96 = 7

TYPE_NAMES: Dict[int, str] = {
    TYPE_INT32: 'int32',
    TYPE_INT64: 'int64',
    TYPE_BOOLEAN: 'boolean',
    TYPE_FLOAT: 'float',
    TYPE_DOUBLE: 'double',
    TYPE_BINARY: 'binary',
    TYPE_FIXED_LEN_BYTE_ARRAY: 'fixed_len_byte_array',
    TYPE_INT96: 'int96',
}

# numpy dtype strings for the fixed-width numeric types
NUMERIC_DTYPES: Dict[int, str] = {
    TYPE_INT32: '<i4',
    TYPE_INT64: '<i8',
    TYPE_BOOLEAN: '?',
    TYPE_FLOAT: '<f4',
    TYPE_DOUBLE: '<f8',
}

_NUMERIC_WIDTHS: Dict[int, int] = {
    TYPE_INT32: struct.calcsize('<i'),
    TYPE_INT64: struct.calcsize('<q'),
    TYPE_BOOLEAN: struct.calcsize('<?'),
    TYPE_FLOAT: struct.calcsize('<f'),
    TYPE_DOUBLE: struct.calcsize('<d'),
}

INT96_LENGTH = 12

# Column flags
FLAG_NULLABLE = 0x01

# Codec IDs stored in the file prefix
CODEC_UNCOMPRESSED = 0
CODEC_ZLIB = 1
CODEC_GZIP = 2

CODEC_NAMES: Dict[int, str] = {
    CODEC_UNCOMPRESSED: 'uncompressed',
    CODEC_ZLIB: 'zlib',
    CODEC_GZIP: 'gzip',
}
CODEC_IDS: Dict[str, int] = {name: codec_id for codec_id, name in CODEC_NAMES.items()}

# MAGIC(4) + VERSION(1) + CODEC(1) + reserved(6) + header_len(8)
HEADER_PREFIX_LEN = 0x14

# ---- Struct helpers (little-endian) ----
def pack_u8(x: int) -> bytes:
    return struct.pack('<B', x)

def unpack_u8(b: bytes) -> int:
    return struct.unpack('<B', b)[0]

def pack_u16(x: int) -> bytes:
    return struct.pack('<H', x)

def unpack_u16(b: bytes) -> int:
    return struct.unpack('<H', b)[0]

def pack_u32(x: int) -> bytes:
    return struct.pack('<I', x)

def unpack_u32(b: bytes) -> int:
    return struct.unpack('<I', b)[0]

def pack_u64(x: int) -> bytes:
    return struct.pack('<Q', x)

def unpack_u64(b: bytes) -> int:
    return struct.unpack('<Q', b)[0]

# ---- Convenience / IO helpers ----
def read_exact(f: BinaryIO, n: int) -> bytes:
    """
    Read exactly n bytes from file-like object f.
    Raises EOFError if fewer than n bytes available.
    """
    data = f.read(n)
    if len(data) != n:
        raise EOFError(f"Expected {n} bytes, got {len(data)} bytes")
    return data

def value_width(type_id: int, type_length: int = 0) -> int:
    """
    Width in bytes of one stored value, or 0 for variable-length binary.
    """
    if type_id in _NUMERIC_WIDTHS:
        return _NUMERIC_WIDTHS[type_id]
    if type_id == TYPE_INT96:
        return INT96_LENGTH
    if type_id == TYPE_FIXED_LEN_BYTE_ARRAY:
        return type_length
    if type_id == TYPE_BINARY:
        return 0
    raise ValueError(f"Unknown column type id {type_id}")

# ---- Codecs ----
# Deflate cannot expand data by more than this factor
MAX_DEFLATE_RATIO = 1032

def compress(codec_id: int, data: bytes) -> bytes:
    if codec_id == CODEC_UNCOMPRESSED:
        return data
    if codec_id == CODEC_ZLIB:
        return zlib.compress(data)
    if codec_id == CODEC_GZIP:
        # mtime=0 keeps output deterministic
        return gzip.compress(data, mtime=0)
    raise ValueError(f"Unknown codec id {codec_id}")

def max_uncompressed_size(codec_id: int, comp_size: int) -> int:
    """Largest payload that comp_size bytes of this codec can inflate to."""
    if codec_id == CODEC_UNCOMPRESSED:
        return comp_size
    return comp_size * MAX_DEFLATE_RATIO

def decompress(codec_id: int, data: bytes, max_size: Optional[int] = None) -> bytes:
    """
    Raises ValueError (zlib.error, gzip.BadGzipFile, EOFError are translated)
    when the payload is not valid for the codec, or inflates past max_size.
    """
    if codec_id not in CODEC_NAMES:
        raise ValueError(f"Unknown codec id {codec_id}")
    if codec_id == CODEC_UNCOMPRESSED:
        out = data
    elif max_size is None:
        try:
            out = zlib.decompress(data) if codec_id == CODEC_ZLIB else gzip.decompress(data)
        except (zlib.error, OSError, EOFError) as e:
            raise ValueError(f"{CODEC_NAMES[codec_id]} decompression failed: {e}") from e
    else:
        wbits = zlib.MAX_WBITS if codec_id == CODEC_ZLIB else 16 + zlib.MAX_WBITS
        d = zlib.decompressobj(wbits)
        try:
            # one byte of slack so an oversized stream shows up as too long
            out = d.decompress(data, max_size + 1)
        except zlib.error as e:
            raise ValueError(f"{CODEC_NAMES[codec_id]} decompression failed: {e}") from e
        if len(out) > max_size:
            raise ValueError(f"{CODEC_NAMES[codec_id]} payload inflates past {max_size} bytes")
        if not d.eof:
            raise ValueError(f"{CODEC_NAMES[codec_id]} stream is truncated")
    if max_size is not None and len(out) > max_size:
        raise ValueError(f"payload of {len(out)} bytes exceeds {max_size} bytes")
    return out

# ---- Utility: size constants (for reading) ----
SIZE_U8 = struct.calcsize('<B')
SIZE_U16 = struct.calcsize('<H')
SIZE_U32 = struct.calcsize('<I')
SIZE_U64 = struct.calcsize('<Q')
