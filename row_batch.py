# row_batch.py
"""
RowBatch: a fixed set of ColumnVectors aligned by row index.

A batch is recycled: passing it back to ProjectedReader.next_batch()
overwrites its vectors in place and returns the same instance. Any reference
to a batch (or to one of its vectors) therefore sees the data of the latest
fill only. Copy values out with to_pydict() before the next fill if they
have to survive it. `generation` is bumped on every fill, so a caller holding
an older handle can compare generations to detect that it went stale.
"""

from typing import Any, Dict, List, Sequence, Tuple

from column_vector import ColumnVector


class RowBatch:

    def __init__(self, columns: Sequence[ColumnVector]):
        if not columns:
            raise ValueError("A row batch needs at least one column")
        capacities = {c.capacity for c in columns}
        if len(capacities) != 1:
            raise ValueError(f"Column vectors have differing capacities: {sorted(capacities)}")
        self._columns: Tuple[ColumnVector, ...] = tuple(columns)
        self._row_count = 0
        self.capacity = capacities.pop()
        self.generation = 0

    def columns(self) -> Tuple[ColumnVector, ...]:
        return self._columns

    def column(self, name: str) -> ColumnVector:
        for vector in self._columns:
            if vector.name == name:
                return vector
        raise KeyError(f"No column named {name!r} in batch")

    def column_names(self) -> List[str]:
        return [c.name for c in self._columns]

    def row_count(self) -> int:
        return self._row_count

    def __len__(self) -> int:
        return self._row_count

    def seal(self) -> None:
        """
        Mark the end of a fill: check alignment, publish the row count and
        bump the generation.
        """
        sizes = {c.size() for c in self._columns}
        if len(sizes) != 1:
            raise RuntimeError(f"Column vectors disagree on size after fill: {sorted(sizes)}")
        self._row_count = sizes.pop()
        self.generation += 1

    def to_pydict(self) -> Dict[str, List[Any]]:
        """Copy of the current fill, keyed by column name."""
        return {c.name: c.to_list() for c in self._columns}

    def __repr__(self) -> str:
        return (f"RowBatch(columns={self.column_names()}, rows={self._row_count}, "
                f"capacity={self.capacity}, generation={self.generation})")
