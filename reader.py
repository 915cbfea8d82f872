# reader.py
"""
ProjectedReader: a single-pass cursor over a .pvc file with two read modes.

- read() returns one Row per call (every field decoded into a Python object
  and looked up by name on access).
- next_batch(batch) fills a RowBatch of up to batch_size rows per call, one
  slice copy per projected column.

Only the projected columns are ever read from disk, decompressed or decoded.
Both modes share the same cursor. The reader owns its file handle from
construction until close(); closing twice is a no-op, any read after close
raises ReaderClosedError. Any failure while reading leaves the reader unusable:
every later read raises DecodeError. End of stream is sticky.

Not thread safe; a reader and its batches belong to one thread.
"""

import logging
import os
from typing import BinaryIO, Iterator, List, Optional, Tuple

from byte_utils import (
    MAGIC, VERSION, HEADER_PREFIX_LEN, CODEC_NAMES, SIZE_U64, TYPE_FIXED_LEN_BYTE_ARRAY,
    read_exact, unpack_u64, decompress, max_uncompressed_size,
)
from column_serializers import DecodedChunk, parse_chunk
from column_vector import ColumnVector, ObjectColumnVector, create_vector
from errors import DecodeError, OpenError, ReaderClosedError
from header_utils import ColumnSchema, FileHeader, RowGroupEntry, parse_header
from projection import ProjectionLike, as_projection
from row import Row, RowLayout
from row_batch import RowBatch

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1024
ROW_OBJECT_COLUMN = '__row__'


class _ColumnCursor:
    """
    Position of one projected column: the decoded chunk of the current row
    group and the next row inside it. Chunks are loaded lazily.
    """

    def __init__(self, f: BinaryIO, path: str, codec_id: int, column: ColumnSchema,
                 column_index: int, row_groups: List[RowGroupEntry], file_size: int):
        self._f = f
        self._file_size = file_size
        self._path = path
        self._codec_id = codec_id
        self.column = column
        self._column_index = column_index
        self._row_groups = row_groups
        self._group = -1
        self._chunk: Optional[DecodedChunk] = None
        self._pos = 0

    def _load_next_chunk(self) -> None:
        group = self._group + 1
        while group < len(self._row_groups) and not self._row_groups[group].num_rows:
            group += 1
        if group >= len(self._row_groups):
            raise DecodeError(f"Column '{self.column.name}' ran out of row groups in {self._path}")
        rg = self._row_groups[group]
        entry = rg.chunks[self._column_index]
        name = self.column.name
        try:
            if entry.offset + entry.comp_size > self._file_size:
                raise ValueError(f"chunk at offset {entry.offset} with {entry.comp_size} bytes "
                                 f"runs past end of file ({self._file_size} bytes)")
            if entry.uncomp_size > max_uncompressed_size(self._codec_id, entry.comp_size):
                raise ValueError(f"uncompressed size {entry.uncomp_size} is impossible "
                                 f"for {entry.comp_size} compressed bytes")
            self._f.seek(entry.offset)
            comp_bytes = read_exact(self._f, entry.comp_size)
            uncompressed = decompress(self._codec_id, comp_bytes, entry.uncomp_size)
            if len(uncompressed) != entry.uncomp_size:
                raise ValueError(f"uncompressed size mismatch: header says {entry.uncomp_size}, "
                                 f"got {len(uncompressed)}")
            chunk = parse_chunk(self.column, uncompressed, rg.num_rows)
        except (ValueError, EOFError) as e:
            raise DecodeError(f"Column '{name}', row group {group} of {self._path}: {e}") from e
        except OSError as e:
            raise DecodeError(f"I/O error reading column '{name}', row group {group} "
                              f"of {self._path}: {e}") from e
        self._group = group
        self._chunk = chunk
        self._pos = 0
        logger.debug("loaded chunk %s[%d]: %d rows, %d bytes compressed",
                     name, group, rg.num_rows, entry.comp_size)

    def _ensure_rows(self) -> DecodedChunk:
        if self._chunk is None or self._pos >= self._chunk.num_rows:
            self._load_next_chunk()
        return self._chunk

    def next_value(self):
        chunk = self._ensure_rows()
        value = chunk.value(self._pos)
        self._pos += 1
        return value

    def fill(self, vector: ColumnVector, count: int) -> None:
        """Copy the next `count` rows into vector slots [0, count)."""
        vector.reset()
        dest = 0
        while dest < count:
            chunk = self._ensure_rows()
            take = min(count - dest, chunk.num_rows - self._pos)
            vector.fill(chunk, self._pos, take, dest)
            self._pos += take
            dest += take


class ProjectedReader:

    def __init__(self, path: str, projection: ProjectionLike = None,
                 batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.path = str(path)
        self.batch_size = batch_size
        self.projection = as_projection(projection)
        self._closed = False
        self._failed = False
        self._exhausted = False
        self._rows_read = 0

        try:
            self._f = open(self.path, 'rb')
        except OSError as e:
            raise OpenError(f"Cannot open {self.path}: {e}") from e

        try:
            self.codec_id, self.header = self._read_header()
            self._projected = self.projection.resolve(self.header.columns)
            self._check_fixed_widths()
        except BaseException:
            self._f.close()
            raise

        positions = self.header.column_index()
        self._cursors = [
            _ColumnCursor(self._f, self.path, self.codec_id, col, positions[col.name],
                          self.header.row_groups, self._file_size)
            for col in self._projected
        ]
        self._layout = RowLayout(self._projected)
        logger.debug("opened %s: %d rows, codec=%s, projection=%s, batch_size=%d",
                     self.path, self.header.total_rows, CODEC_NAMES[self.codec_id],
                     [c.name for c in self._projected], batch_size)

    def _read_header(self) -> Tuple[int, FileHeader]:
        try:
            self._file_size = os.fstat(self._f.fileno()).st_size
            magic = read_exact(self._f, 4)
            if magic != MAGIC:
                raise OpenError(f"Bad magic in {self.path}: not a PVC file")
            prefix = read_exact(self._f, HEADER_PREFIX_LEN - 4 - SIZE_U64)
            version, codec_id = prefix[0], prefix[1]
            if version != VERSION:
                raise OpenError(f"Unsupported PVC version {version} in {self.path}")
            if codec_id not in CODEC_NAMES:
                raise OpenError(f"Unknown codec id {codec_id} in {self.path}")
            header_len = unpack_u64(read_exact(self._f, SIZE_U64))
            if header_len > self._file_size - HEADER_PREFIX_LEN:
                raise OpenError(f"Corrupt header in {self.path}: header length {header_len} "
                                f"exceeds file size {self._file_size}")
            header = parse_header(read_exact(self._f, header_len))
        except (ValueError, EOFError, OSError) as e:
            raise OpenError(f"Corrupt header in {self.path}: {e}") from e
        return codec_id, header

    def _check_fixed_widths(self) -> None:
        # batch vectors allocate batch_size * type_length bytes up front
        limit = max_uncompressed_size(self.codec_id, self._file_size)
        for col in self._projected:
            if col.type_id == TYPE_FIXED_LEN_BYTE_ARRAY and col.type_length > limit:
                raise OpenError(f"Corrupt header in {self.path}: column '{col.name}' "
                                f"width {col.type_length} cannot fit in the file")

    # ---- state ----
    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def columns(self) -> Tuple[ColumnSchema, ...]:
        """Projected columns, in projection order."""
        return tuple(self._projected)

    @property
    def total_rows(self) -> int:
        return self.header.total_rows

    @property
    def rows_read(self) -> int:
        return self._rows_read

    def _check_usable(self) -> None:
        if self._closed:
            raise ReaderClosedError(f"Reader for {self.path} is closed")
        if self._failed:
            raise DecodeError(f"Reader for {self.path} failed earlier and cannot be used")

    def _remaining(self) -> int:
        return self.header.total_rows - self._rows_read

    # ---- row-wise mode ----
    def _decode_row(self) -> Row:
        row = Row(self._layout, [cursor.next_value() for cursor in self._cursors])
        self._rows_read += 1
        return row

    def read(self) -> Optional[Row]:
        """Next row, or None once every row has been read."""
        self._check_usable()
        if self._exhausted or self._remaining() == 0:
            self._exhausted = True
            return None
        try:
            return self._decode_row()
        except Exception:
            self._failed = True
            raise

    # ---- vectorized mode ----
    def new_batch(self, as_rows: bool = False) -> RowBatch:
        """
        Allocate an empty batch for this reader's projection. With as_rows the
        batch has a single object column holding whole Row objects.
        """
        if as_rows:
            return RowBatch([ObjectColumnVector(self.batch_size, ROW_OBJECT_COLUMN)])
        return RowBatch([create_vector(col, self.batch_size) for col in self._projected])

    def _check_batch(self, batch: RowBatch, as_rows: bool) -> None:
        if batch.capacity != self.batch_size:
            raise ValueError(f"Batch capacity {batch.capacity} != reader batch_size {self.batch_size}")
        expected = [ROW_OBJECT_COLUMN] if as_rows else [c.name for c in self._projected]
        if batch.column_names() != expected:
            raise ValueError(f"Batch columns {batch.column_names()} do not match projection {expected}")

    def next_batch(self, batch: Optional[RowBatch] = None, as_rows: bool = False) -> Optional[RowBatch]:
        """
        Fill the next batch of up to batch_size rows.

        Without a batch a new one is allocated; with one, its vectors are
        overwritten in place and the same instance is returned, so data from
        the previous fill is gone. Returns None once no rows remain.
        """
        self._check_usable()
        if self._exhausted or self._remaining() == 0:
            self._exhausted = True
            return None

        if batch is None:
            batch = self.new_batch(as_rows)
        else:
            self._check_batch(batch, as_rows)

        count = min(self.batch_size, self._remaining())
        try:
            if as_rows:
                vector = batch.columns()[0]
                vector.reset()
                for i in range(count):
                    vector.set(i, self._decode_row())
            else:
                for cursor, vector in zip(self._cursors, batch.columns()):
                    cursor.fill(vector, count)
                self._rows_read += count
        except Exception:
            self._failed = True
            raise
        batch.seal()
        return batch

    # ---- iteration helpers ----
    def iter_rows(self) -> Iterator[Row]:
        while True:
            row = self.read()
            if row is None:
                return
            yield row

    def iter_batches(self, as_rows: bool = False) -> Iterator[RowBatch]:
        """Yields the same recycled batch on every step."""
        batch = None
        while True:
            batch = self.next_batch(batch, as_rows)
            if batch is None:
                return
            yield batch

    # ---- lifecycle ----
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._f.close()
        logger.debug("closed %s after %d rows", self.path, self._rows_read)

    def __enter__(self) -> 'ProjectedReader':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = 'closed' if self._closed else 'failed' if self._failed else \
            'exhausted' if self._exhausted else 'open'
        return (f"ProjectedReader({self.path!r}, columns={[c.name for c in self._projected]}, "
                f"batch_size={self.batch_size}, {state})")
