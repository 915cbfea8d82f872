# projection.py
"""
Column projections: which columns a reader materializes, and in what order.

A projection is fixed for the lifetime of a reader. `Projection.ALL` (or
None wherever a projection is accepted) selects every column in file order.
"""

from typing import Iterable, List, Optional, Sequence, Tuple, Union

from errors import ProjectionError
from header_utils import ColumnSchema


class Projection:

    __slots__ = ('_columns', 'name')

    ALL: 'Projection'

    def __init__(self, columns: Optional[Iterable[str]] = None, name: Optional[str] = None):
        self._columns: Optional[Tuple[str, ...]] = None if columns is None else tuple(columns)
        self.name = name
        if self._columns is not None:
            if not self._columns:
                raise ProjectionError("A projection must name at least one column (use Projection.ALL for all)")
            seen = set()
            for col in self._columns:
                if col in seen:
                    raise ProjectionError(f"Column {col!r} projected twice")
                seen.add(col)

    @property
    def columns(self) -> Optional[Tuple[str, ...]]:
        return self._columns

    @classmethod
    def parse(cls, text: str, name: Optional[str] = None) -> 'Projection':
        """
        Parse 'a,b,c'. An empty string or '*' selects all columns.
        """
        text = text.strip()
        if text in ('', '*'):
            return cls(None, name)
        return cls([c.strip() for c in text.split(',') if c.strip()], name)

    def resolve(self, schema: Sequence[ColumnSchema]) -> List[ColumnSchema]:
        """Map the projection onto a file schema. Raises ProjectionError for unknown columns."""
        if self._columns is None:
            return list(schema)
        by_name = {c.name: c for c in schema}
        missing = [c for c in self._columns if c not in by_name]
        if missing:
            raise ProjectionError(f"Requested column(s) {missing} not found in file "
                                  f"(available: {[c.name for c in schema]})")
        return [by_name[c] for c in self._columns]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Projection):
            return NotImplemented
        return self._columns == other._columns

    def __hash__(self) -> int:
        return hash(self._columns)

    def __repr__(self) -> str:
        label = '*' if self._columns is None else ','.join(self._columns)
        return f"Projection({label!r})" if self.name is None else f"Projection({self.name}: {label!r})"


Projection.ALL = Projection(None, 'all')

ProjectionLike = Union[None, Projection, Sequence[str], str]


def as_projection(value: ProjectionLike) -> Projection:
    if value is None:
        return Projection.ALL
    if isinstance(value, Projection):
        return value
    if isinstance(value, str):
        return Projection.parse(value)
    return Projection(value)
