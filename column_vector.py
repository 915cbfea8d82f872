# column_vector.py
"""
Typed column buffers used by vectorized reads.

A ColumnVector holds up to `capacity` values of one column for one batch.
Buffers are allocated once and refilled in place by every batch fill; only
indices below size() are defined. Reading an index at or past size() raises
IndexError.

Each subclass implements fill() for its own storage layout, so a batch fill
selects the copy routine once per column and then copies a whole slice.
"""

from typing import Any, List, Optional

import numpy as np

from byte_utils import (
    NUMERIC_DTYPES, INT96_LENGTH,
    TYPE_INT32, TYPE_INT64, TYPE_BOOLEAN, TYPE_FLOAT, TYPE_DOUBLE,
    TYPE_BINARY, TYPE_FIXED_LEN_BYTE_ARRAY, TYPE_INT96,
)
from column_serializers import DecodedChunk
from header_utils import ColumnSchema


class ColumnVector:
    type_id: Optional[int] = None

    def __init__(self, capacity: int, nullable: bool = False, name: Optional[str] = None):
        if capacity <= 0:
            raise ValueError(f"Vector capacity must be positive, got {capacity}")
        self.name = name
        self.capacity = capacity
        self.nullable = nullable
        self.nulls = np.zeros(capacity, dtype=np.bool_) if nullable else None
        self._size = 0

    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return self._size

    def reset(self) -> None:
        """Forget the current contents without releasing the buffers."""
        self._size = 0

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= self._size:
            raise IndexError(f"Index {index} out of range for vector of size {self._size}")

    def is_null(self, index: int) -> bool:
        self._check_index(index)
        return self.nulls is not None and bool(self.nulls[index])

    def get(self, index: int) -> Any:
        self._check_index(index)
        if self.nulls is not None and self.nulls[index]:
            return None
        return self._get_value(index)

    def set(self, index: int, value: Any) -> None:
        """
        Store a value at index. Writing at size() appends; anything past it
        or past capacity is rejected.
        """
        if index < 0 or index > self._size or index >= self.capacity:
            raise IndexError(f"Cannot set index {index} on vector of size {self._size}, "
                             f"capacity {self.capacity}")
        if value is None:
            if self.nulls is None:
                raise ValueError(f"Null value for non-nullable vector {self.name!r}")
            self.nulls[index] = True
        else:
            if self.nulls is not None:
                self.nulls[index] = False
            self._set_value(index, value)
        if index == self._size:
            self._size += 1

    def append(self, value: Any) -> None:
        self.set(self._size, value)

    def fill(self, chunk: DecodedChunk, start: int, count: int, dest: int = 0) -> None:
        """
        Copy rows [start, start + count) of a decoded chunk into slots
        [dest, dest + count) and set size() to dest + count.
        """
        if dest + count > self.capacity:
            raise IndexError(f"Fill of {count} rows at {dest} exceeds capacity {self.capacity}")
        self._fill_values(chunk, start, count, dest)
        if self.nulls is not None:
            if chunk.nulls is None:
                self.nulls[dest:dest + count] = False
            else:
                self.nulls[dest:dest + count] = chunk.nulls[start:start + count]
        self._size = dest + count

    def to_list(self) -> List[Any]:
        """Snapshot of the defined values, nulls as None."""
        return [self.get(i) for i in range(self._size)]

    def _get_value(self, index: int) -> Any:
        raise NotImplementedError

    def _set_value(self, index: int, value: Any) -> None:
        raise NotImplementedError

    def _fill_values(self, chunk: DecodedChunk, start: int, count: int, dest: int) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, size={self._size}, capacity={self.capacity})"


class _NumericColumnVector(ColumnVector):

    def __init__(self, capacity: int, nullable: bool = False, name: Optional[str] = None):
        super().__init__(capacity, nullable, name)
        self.values = np.zeros(capacity, dtype=NUMERIC_DTYPES[self.type_id])

    def _get_value(self, index):
        return self.values[index].item()

    def _set_value(self, index, value):
        self.values[index] = value

    def _fill_values(self, chunk, start, count, dest):
        self.values[dest:dest + count] = chunk.values[start:start + count]


class IntColumnVector(_NumericColumnVector):
    type_id = TYPE_INT32


class LongColumnVector(_NumericColumnVector):
    type_id = TYPE_INT64


class BooleanColumnVector(_NumericColumnVector):
    type_id = TYPE_BOOLEAN


class FloatColumnVector(_NumericColumnVector):
    type_id = TYPE_FLOAT


class DoubleColumnVector(_NumericColumnVector):
    type_id = TYPE_DOUBLE


class FixedLenByteArrayColumnVector(ColumnVector):
    """Values live in one (capacity, width) uint8 matrix."""

    type_id = TYPE_FIXED_LEN_BYTE_ARRAY

    def __init__(self, capacity: int, width: int, nullable: bool = False, name: Optional[str] = None):
        super().__init__(capacity, nullable, name)
        if width <= 0:
            raise ValueError(f"Fixed length width must be positive, got {width}")
        self.width = width
        self.values = np.zeros((capacity, width), dtype=np.uint8)

    def _get_value(self, index):
        return self.values[index].tobytes()

    def _set_value(self, index, value):
        if len(value) != self.width:
            raise ValueError(f"Expected {self.width} bytes, got {len(value)}")
        self.values[index] = np.frombuffer(bytes(value), dtype=np.uint8)

    def _fill_values(self, chunk, start, count, dest):
        self.values[dest:dest + count] = chunk.values[start:start + count]


class Int96ColumnVector(FixedLenByteArrayColumnVector):
    type_id = TYPE_INT96

    def __init__(self, capacity: int, nullable: bool = False, name: Optional[str] = None):
        super().__init__(capacity, INT96_LENGTH, nullable, name)


class BinaryColumnVector(ColumnVector):
    type_id = TYPE_BINARY

    def __init__(self, capacity: int, nullable: bool = False, name: Optional[str] = None):
        super().__init__(capacity, nullable, name)
        self.values: List[bytes] = [b''] * capacity

    def _get_value(self, index):
        return self.values[index]

    def _set_value(self, index, value):
        self.values[index] = bytes(value)

    def _fill_values(self, chunk, start, count, dest):
        self.values[dest:dest + count] = chunk.values[start:start + count]


class ObjectColumnVector(ColumnVector):
    """
    Holds whole structured rows (see row.Row). Filled one row at a time by
    the reader's object mode, never from a decoded chunk.
    """

    def __init__(self, capacity: int, name: Optional[str] = None):
        super().__init__(capacity, False, name)
        self.values: List[Any] = [None] * capacity

    def _get_value(self, index):
        return self.values[index]

    def _set_value(self, index, value):
        self.values[index] = value

    def _fill_values(self, chunk, start, count, dest):
        raise TypeError("ObjectColumnVector is filled row by row, not from column chunks")


_VECTOR_TYPES = {
    TYPE_INT32: IntColumnVector,
    TYPE_INT64: LongColumnVector,
    TYPE_BOOLEAN: BooleanColumnVector,
    TYPE_FLOAT: FloatColumnVector,
    TYPE_DOUBLE: DoubleColumnVector,
    TYPE_BINARY: BinaryColumnVector,
    TYPE_INT96: Int96ColumnVector,
}


def create_vector(column: ColumnSchema, capacity: int) -> ColumnVector:
    """Allocate the vector class matching a column's declared type."""
    if column.type_id == TYPE_FIXED_LEN_BYTE_ARRAY:
        return FixedLenByteArrayColumnVector(capacity, column.type_length, column.nullable, column.name)
    vector_cls = _VECTOR_TYPES.get(column.type_id)
    if vector_cls is None:
        raise ValueError(f"Unknown column type id {column.type_id} for column '{column.name}'")
    return vector_cls(capacity, column.nullable, column.name)
