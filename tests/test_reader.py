import dataclasses
import math

import pytest

from benchmark_files import (
    INT32_FIELD, READ_ALL_PRIMITIVES, READ_FOUR_PRIMITIVES, FLBA_READ, expected_row,
)
from byte_utils import HEADER_PREFIX_LEN, SIZE_U64, TYPE_BINARY, TYPE_DOUBLE, TYPE_INT32, pack_u64
from errors import DecodeError, OpenError, ProjectionError, ReaderClosedError
from header_utils import ColumnSchema, build_header, schema_signature
from projection import Projection
import reader as reader_module
from reader import ROW_OBJECT_COLUMN, ProjectedReader
from row import Row
from writer import write_pvc


def rows_by_column(path, projection):
    with ProjectedReader(path, projection) as reader:
        names = [c.name for c in reader.columns]
        out = {name: [] for name in names}
        for row in reader.iter_rows():
            for name in names:
                out[name].append(row[name])
        return out


def batches_by_column(path, projection, batch_size):
    sizes = []
    with ProjectedReader(path, projection, batch_size) as reader:
        out = {c.name: [] for c in reader.columns}
        for batch in reader.iter_batches():
            sizes.append(batch.row_count())
            for name, values in batch.to_pydict().items():
                out[name].extend(values)
    return out, sizes


def test_one_primitive_2500_rows(bench_file):
    path = bench_file(2500)

    with ProjectedReader(path, [INT32_FIELD]) as reader:
        row_values = [row.get_integer(INT32_FIELD) for row in reader.iter_rows()]
    assert row_values == list(range(2500))

    by_column, sizes = batches_by_column(path, [INT32_FIELD], 1024)
    assert sizes == [1024, 1024, 452]
    assert by_column[INT32_FIELD] == row_values


@pytest.mark.parametrize('projection', [None, READ_ALL_PRIMITIVES, READ_FOUR_PRIMITIVES, FLBA_READ])
@pytest.mark.parametrize('batch_size', [1, 7, 64, 5000])
def test_row_and_batch_modes_agree(bench_file, projection, batch_size):
    path = bench_file(300, row_group_size=100)

    by_column, _ = batches_by_column(path, projection, batch_size)

    assert by_column == rows_by_column(path, projection)


def test_values_match_generator(bench_file):
    path = bench_file(150, row_group_size=40)

    with ProjectedReader(path) as reader:
        rows = [row.to_dict() for row in reader.iter_rows()]

    assert rows == [expected_row(i, flba_length=8) for i in range(150)]


def test_row_and_batch_modes_agree_on_nulls(tmp_path):
    schema = [
        ColumnSchema('n', TYPE_INT32, nullable=True),
        ColumnSchema('s', TYPE_BINARY, nullable=True),
        ColumnSchema('d', TYPE_DOUBLE, nullable=True),
    ]
    data = [
        [None if i % 3 == 0 else i for i in range(40)],
        [None if i % 5 == 0 else b'v%d' % i for i in range(40)],
        [None if i % 2 else i / 7 for i in range(40)],
    ]
    path = str(tmp_path / 'nulls.pvc')
    write_pvc(path, schema, data, row_group_size=15)

    by_column, _ = batches_by_column(path, None, 16)

    assert by_column == rows_by_column(path, None)
    assert by_column == {'n': data[0], 's': data[1], 'd': data[2]}


@pytest.mark.parametrize('rows, capacity', [(10, 4), (12, 4), (1, 4), (4, 4), (2500, 1024)])
def test_batch_sizing(bench_file, rows, capacity):
    path = bench_file(rows, row_group_size=3)

    _, sizes = batches_by_column(path, [INT32_FIELD], capacity)

    assert len(sizes) == math.ceil(rows / capacity)
    assert sizes[:-1] == [capacity] * (len(sizes) - 1)
    assert sizes[-1] == (rows % capacity or capacity)


def test_recycled_batch_is_refilled_in_place(bench_file):
    path = bench_file(10, row_group_size=3)

    with ProjectedReader(path, [INT32_FIELD, 'binary_field'], batch_size=4) as reader:
        first = reader.next_batch()
        snapshots = [first.to_pydict()]
        generations = [first.generation]
        batch = first
        while True:
            batch = reader.next_batch(batch)
            if batch is None:
                break
            assert batch is first
            snapshots.append(batch.to_pydict())
            generations.append(batch.generation)

    assert [s[INT32_FIELD] for s in snapshots] == [[0, 1, 2, 3], [4, 5, 6, 7], [8, 9]]
    assert snapshots[2]['binary_field'] == [b'binary-8', b'binary-9']
    assert generations == [1, 2, 3]
    # slots 2 and 3 still hold the previous fill but are out of range
    with pytest.raises(IndexError):
        first.columns()[0].get(2)


def test_recycled_nullable_batch_has_no_stale_values(tmp_path):
    path = str(tmp_path / 'n.pvc')
    write_pvc(path, [ColumnSchema('n', TYPE_INT32, nullable=True)], [[1, 2, 3, None, None, 6]])

    with ProjectedReader(path, batch_size=3) as reader:
        batch = reader.next_batch()
        assert batch.to_pydict() == {'n': [1, 2, 3]}
        batch = reader.next_batch(batch)
        assert batch.to_pydict() == {'n': [None, None, 6]}


def test_batch_from_another_projection_is_rejected(bench_file):
    path = bench_file(10)
    with ProjectedReader(path, [INT32_FIELD], batch_size=4) as one, \
            ProjectedReader(path, READ_FOUR_PRIMITIVES, batch_size=4) as four:
        batch = four.next_batch()
        with pytest.raises(ValueError):
            one.next_batch(batch)


def test_object_mode_batches_hold_rows(bench_file):
    path = bench_file(10)

    with ProjectedReader(path, batch_size=4) as reader:
        rows = []
        sizes = []
        for batch in reader.iter_batches(as_rows=True):
            assert batch.column_names() == [ROW_OBJECT_COLUMN]
            sizes.append(batch.row_count())
            rows.extend(r.to_dict() for r in batch.columns()[0].to_list())

    assert sizes == [4, 4, 2]
    assert rows == [expected_row(i, flba_length=8) for i in range(10)]


def test_projection_order_is_respected(bench_file):
    path = bench_file(5)

    with ProjectedReader(path, ['double_field', INT32_FIELD]) as reader:
        assert [c.name for c in reader.columns] == ['double_field', INT32_FIELD]
        assert reader.read().keys() == ('double_field', INT32_FIELD)
        assert reader.next_batch().column_names() == ['double_field', INT32_FIELD]


def test_projection_accepts_comma_separated_text(bench_file):
    path = bench_file(5)
    with ProjectedReader(path, 'int64_field, int32_field') as reader:
        assert [c.name for c in reader.columns] == ['int64_field', INT32_FIELD]


def _corrupt_column(path, column):
    with ProjectedReader(path) as reader:
        position = reader.header.column_index()[column]
        chunks = [rg.chunks[position] for rg in reader.header.row_groups]
    with open(path, 'r+b') as f:
        for chunk in chunks:
            f.seek(chunk.offset)
            f.write(b'\xff' * chunk.comp_size)


def test_unprojected_corrupt_column_is_never_read(bench_file):
    path = bench_file(50, row_group_size=20)
    _corrupt_column(path, 'double_field')

    with ProjectedReader(path, [INT32_FIELD]) as reader:
        assert [r.get_integer(INT32_FIELD) for r in reader.iter_rows()] == list(range(50))
    by_column, _ = batches_by_column(path, [INT32_FIELD, 'flba_field'], 16)
    assert by_column[INT32_FIELD] == list(range(50))


def test_corrupt_projected_column_fails_and_poisons_reader(bench_file):
    path = bench_file(50, row_group_size=20)
    _corrupt_column(path, 'double_field')

    reader = ProjectedReader(path, ['double_field'])
    try:
        with pytest.raises(DecodeError, match='double_field'):
            reader.read()
        with pytest.raises(DecodeError):
            reader.read()
        with pytest.raises(DecodeError):
            reader.next_batch()
    finally:
        reader.close()


def test_corrupt_column_fails_batch_fill(bench_file):
    path = bench_file(50, row_group_size=20)
    _corrupt_column(path, 'flba_field')

    with ProjectedReader(path, FLBA_READ) as reader:
        with pytest.raises(DecodeError):
            reader.next_batch()


def _rewrite_header(path, edit):
    with ProjectedReader(path) as reader:
        header = reader.header
    edit(header)
    new_header = build_header(schema_signature(header.columns), header.total_rows,
                              header.columns, header.row_groups)
    with open(path, 'r+b') as f:
        f.seek(HEADER_PREFIX_LEN)
        f.write(new_header)


def test_oversized_header_length_is_an_open_error(bench_file):
    path = bench_file(3)
    with open(path, 'r+b') as f:
        f.seek(HEADER_PREFIX_LEN - SIZE_U64)
        f.write(pack_u64(2**62))

    with pytest.raises(OpenError, match='header length'):
        ProjectedReader(path)


def test_chunk_past_end_of_file_is_a_decode_error(bench_file):
    path = bench_file(20, row_group_size=10)

    def grow_int64_chunk(header):
        position = header.column_index()['int64_field']
        header.row_groups[0].chunks[position].comp_size = 2**62

    _rewrite_header(path, grow_int64_chunk)

    with ProjectedReader(path, [INT32_FIELD, 'int64_field']) as reader:
        with pytest.raises(DecodeError, match='past end of file'):
            reader.read()
        with pytest.raises(DecodeError):
            reader.read()
    with ProjectedReader(path, [INT32_FIELD]) as reader:
        assert [r.get_integer(INT32_FIELD) for r in reader.iter_rows()] == list(range(20))


def test_impossible_uncompressed_size_is_a_decode_error(bench_file):
    path = bench_file(20, row_group_size=10)

    def grow_uncompressed(header):
        position = header.column_index()['double_field']
        header.row_groups[1].chunks[position].uncomp_size = 2**62

    _rewrite_header(path, grow_uncompressed)

    with ProjectedReader(path, ['double_field'], batch_size=8) as reader:
        assert reader.next_batch().row_count() == 8
        with pytest.raises(DecodeError, match='impossible'):
            reader.next_batch()


def test_huge_fixed_width_is_an_open_error(bench_file):
    path = bench_file(3)

    def widen_flba(header):
        header.columns = [
            dataclasses.replace(c, type_length=2**32 - 1) if c.name == 'flba_field' else c
            for c in header.columns
        ]

    _rewrite_header(path, widen_flba)

    with pytest.raises(OpenError, match='flba_field'):
        ProjectedReader(path, FLBA_READ)
    with ProjectedReader(path, [INT32_FIELD]) as reader:
        assert reader.read().get_integer(INT32_FIELD) == 0


@pytest.mark.parametrize('as_batches', [False, True])
def test_any_failure_poisons_reader(bench_file, monkeypatch, as_batches):
    path = bench_file(20, row_group_size=10)
    real_parse_chunk = reader_module.parse_chunk

    def parse_chunk(column, data, num_rows):
        if column.name == 'int64_field':
            raise TypeError("unexpected buffer")
        return real_parse_chunk(column, data, num_rows)

    monkeypatch.setattr(reader_module, 'parse_chunk', parse_chunk)

    with ProjectedReader(path, [INT32_FIELD, 'int64_field'], batch_size=4) as reader:
        step = reader.next_batch if as_batches else reader.read
        with pytest.raises(TypeError):
            step()
        monkeypatch.setattr(reader_module, 'parse_chunk', real_parse_chunk)
        with pytest.raises(DecodeError, match='failed earlier'):
            reader.read()
        with pytest.raises(DecodeError, match='failed earlier'):
            reader.next_batch()



def test_truncated_file_is_a_decode_error(bench_file):
    path = bench_file(50, row_group_size=20)
    with open(path, 'rb') as f:
        content = f.read()
    with open(path, 'wb') as f:
        f.write(content[:-10])

    with ProjectedReader(path, ['int96_field']) as reader:
        with pytest.raises(DecodeError):
            for _ in reader.iter_batches():
                pass


def test_end_of_stream_is_sticky(bench_file):
    path = bench_file(3)

    with ProjectedReader(path, [INT32_FIELD]) as reader:
        assert len(list(reader.iter_rows())) == 3
        assert reader.exhausted
        assert reader.read() is None
        assert reader.read() is None
        assert reader.next_batch() is None
        assert reader.rows_read == 3

    with ProjectedReader(path, [INT32_FIELD]) as reader:
        assert reader.next_batch().row_count() == 3
        assert reader.next_batch() is None
        assert reader.next_batch() is None
        assert reader.read() is None


def test_modes_share_one_cursor(bench_file):
    path = bench_file(10)
    with ProjectedReader(path, [INT32_FIELD], batch_size=4) as reader:
        assert reader.read().get_integer(INT32_FIELD) == 0
        assert reader.next_batch().to_pydict() == {INT32_FIELD: [1, 2, 3, 4]}
        assert reader.read().get_integer(INT32_FIELD) == 5


def test_closed_reader_fails(bench_file):
    path = bench_file(3)
    reader = ProjectedReader(path)
    reader.close()
    reader.close()

    assert reader.closed
    with pytest.raises(ReaderClosedError):
        reader.read()
    with pytest.raises(ReaderClosedError):
        reader.next_batch()


def test_context_manager_closes_on_error(bench_file):
    path = bench_file(3)
    with pytest.raises(RuntimeError):
        with ProjectedReader(path) as reader:
            raise RuntimeError("boom")
    assert reader.closed


def test_missing_file_is_an_open_error(tmp_path):
    with pytest.raises(OpenError):
        ProjectedReader(str(tmp_path / 'missing.pvc'))


def test_bad_magic_is_an_open_error(tmp_path):
    path = tmp_path / 'bad.pvc'
    path.write_bytes(b'NOPE' + bytes(40))
    with pytest.raises(OpenError, match='magic'):
        ProjectedReader(str(path))


def test_truncated_header_is_an_open_error(bench_file):
    path = bench_file(3)
    with open(path, 'rb') as f:
        prefix = f.read(30)
    with open(path, 'wb') as f:
        f.write(prefix)

    with pytest.raises(OpenError):
        ProjectedReader(path)


def test_unknown_column_is_a_projection_error(bench_file):
    path = bench_file(3)
    with pytest.raises(ProjectionError, match='nope'):
        ProjectedReader(path, [INT32_FIELD, 'nope'])


def test_empty_or_duplicate_projection_is_rejected():
    with pytest.raises(ProjectionError):
        Projection([])
    with pytest.raises(ProjectionError):
        Projection([INT32_FIELD, INT32_FIELD])


def test_batch_size_must_be_positive(bench_file):
    path = bench_file(3)
    with pytest.raises(ValueError):
        ProjectedReader(path, batch_size=0)


def test_row_accessors_check_types(bench_file):
    path = bench_file(3)
    with ProjectedReader(path) as reader:
        row = reader.read()

    assert isinstance(row, Row)
    assert row.get_binary('flba_field') == bytes(8)
    assert row.get_binary('binary_field') == b'binary-0'
    assert row.get_boolean('boolean_field') is True
    with pytest.raises(TypeError):
        row.get_long(INT32_FIELD)
    with pytest.raises(TypeError):
        row.get_binary('int96_field')
    assert INT32_FIELD in row
    assert 'nope' not in row
    with pytest.raises(KeyError):
        row.get_integer('nope')
