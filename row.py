# row.py
"""
Row: the structured record returned by row-wise reads.

Every accessor looks the field up by name and checks its declared type on
each call, which is exactly the per-value cost the vectorized path avoids.
Null fields read as None.
"""

from typing import Any, Dict, FrozenSet, Iterator, Sequence, Tuple

from byte_utils import (
    TYPE_INT32, TYPE_INT64, TYPE_BOOLEAN, TYPE_FLOAT, TYPE_DOUBLE,
    TYPE_BINARY, TYPE_FIXED_LEN_BYTE_ARRAY, TYPE_INT96, TYPE_NAMES,
)
from header_utils import ColumnSchema

_BINARY_TYPES: FrozenSet[int] = frozenset({TYPE_BINARY, TYPE_FIXED_LEN_BYTE_ARRAY})


class RowLayout:
    """Field order and name lookup shared by every row of one reader."""

    __slots__ = ('fields', 'positions')

    def __init__(self, fields: Sequence[ColumnSchema]):
        self.fields: Tuple[ColumnSchema, ...] = tuple(fields)
        self.positions: Dict[str, int] = {f.name: i for i, f in enumerate(self.fields)}

    def names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)


class Row:

    __slots__ = ('_layout', '_values')

    def __init__(self, layout: RowLayout, values: Sequence[Any]):
        if len(values) != len(layout.fields):
            raise ValueError(f"Row has {len(values)} values but layout has {len(layout.fields)} fields")
        self._layout = layout
        self._values = tuple(values)

    def _field(self, name: str, allowed: FrozenSet[int]) -> Any:
        try:
            pos = self._layout.positions[name]
        except KeyError:
            raise KeyError(f"Field {name!r} not in row (fields: {list(self._layout.positions)})") from None
        type_id = self._layout.fields[pos].type_id
        if type_id not in allowed:
            raise TypeError(f"Field {name!r} is {TYPE_NAMES[type_id]}, "
                            f"not {' or '.join(TYPE_NAMES[t] for t in sorted(allowed))}")
        return self._values[pos]

    def get_integer(self, name: str):
        return self._field(name, frozenset({TYPE_INT32}))

    def get_long(self, name: str):
        return self._field(name, frozenset({TYPE_INT64}))

    def get_boolean(self, name: str):
        return self._field(name, frozenset({TYPE_BOOLEAN}))

    def get_float(self, name: str):
        return self._field(name, frozenset({TYPE_FLOAT}))

    def get_double(self, name: str):
        return self._field(name, frozenset({TYPE_DOUBLE}))

    def get_binary(self, name: str):
        return self._field(name, _BINARY_TYPES)

    def get_int96(self, name: str):
        return self._field(name, frozenset({TYPE_INT96}))

    def __getitem__(self, name: str) -> Any:
        return self._values[self._layout.positions[name]]

    def __contains__(self, name: str) -> bool:
        return name in self._layout.positions

    def __iter__(self) -> Iterator[str]:
        return iter(self._layout.names())

    def __len__(self) -> int:
        return len(self._values)

    def keys(self) -> Tuple[str, ...]:
        return self._layout.names()

    def values(self) -> Tuple[Any, ...]:
        return self._values

    def to_dict(self) -> Dict[str, Any]:
        return dict(zip(self._layout.names(), self._values))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return self.keys() == other.keys() and self._values == other._values

    def __repr__(self) -> str:
        return f"Row({self.to_dict()!r})"
