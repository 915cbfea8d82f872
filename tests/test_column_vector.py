import pytest

from byte_utils import (
    TYPE_INT32, TYPE_INT64, TYPE_BOOLEAN, TYPE_FLOAT, TYPE_DOUBLE,
    TYPE_BINARY, TYPE_FIXED_LEN_BYTE_ARRAY, TYPE_INT96,
)
from column_serializers import parse_chunk, serialize_chunk
from column_vector import (
    BinaryColumnVector, BooleanColumnVector, DoubleColumnVector, FixedLenByteArrayColumnVector,
    FloatColumnVector, Int96ColumnVector, IntColumnVector, LongColumnVector, ObjectColumnVector,
    create_vector,
)
from header_utils import ColumnSchema
from row_batch import RowBatch


def decoded(column, values):
    return parse_chunk(column, serialize_chunk(column, values), len(values))


def test_append_and_get():
    vec = IntColumnVector(4)
    vec.append(7)
    vec.append(-1)

    assert vec.size() == 2
    assert vec.get(0) == 7
    assert vec.get(1) == -1
    assert isinstance(vec.get(0), int)


def test_get_past_size_fails_fast():
    vec = LongColumnVector(4)
    vec.append(1)

    with pytest.raises(IndexError):
        vec.get(1)
    with pytest.raises(IndexError):
        vec.get(-1)


def test_set_cannot_leave_gaps():
    vec = DoubleColumnVector(4)
    with pytest.raises(IndexError):
        vec.set(1, 1.0)
    vec.set(0, 1.0)
    vec.set(0, 2.0)
    assert vec.to_list() == [2.0]


def test_set_past_capacity_fails():
    vec = BooleanColumnVector(1)
    vec.append(True)
    with pytest.raises(IndexError):
        vec.append(False)


def test_nulls():
    vec = FloatColumnVector(3, nullable=True)
    vec.append(1.5)
    vec.append(None)

    assert vec.is_null(1)
    assert not vec.is_null(0)
    assert vec.to_list() == [1.5, None]


def test_null_rejected_when_not_nullable():
    vec = IntColumnVector(2)
    with pytest.raises(ValueError):
        vec.append(None)


def test_reset_keeps_buffers():
    vec = IntColumnVector(4)
    buffer = vec.values
    vec.append(1)
    vec.reset()

    assert vec.size() == 0
    assert vec.values is buffer
    with pytest.raises(IndexError):
        vec.get(0)


def test_fixed_length_vector_checks_width():
    vec = FixedLenByteArrayColumnVector(2, width=3)
    vec.append(b'abc')
    assert vec.get(0) == b'abc'
    with pytest.raises(ValueError):
        vec.append(b'ab')


def test_int96_vector_is_twelve_bytes_wide():
    vec = Int96ColumnVector(2)
    assert vec.width == 12
    vec.append(bytes(range(12)))
    assert vec.get(0) == bytes(range(12))


def test_fill_copies_a_slice_of_a_chunk():
    column = ColumnSchema('x', TYPE_INT32, nullable=True)
    chunk = decoded(column, [10, None, 30, 40])
    vec = create_vector(column, 4)

    vec.fill(chunk, 1, 3)

    assert vec.size() == 3
    assert vec.to_list() == [None, 30, 40]


def test_fill_at_offset_extends_size():
    column = ColumnSchema('s', TYPE_BINARY)
    vec = create_vector(column, 4)
    vec.fill(decoded(column, [b'a', b'b']), 0, 2)
    vec.fill(decoded(column, [b'c', b'd']), 0, 2, dest=2)

    assert vec.to_list() == [b'a', b'b', b'c', b'd']


def test_fill_beyond_capacity_fails():
    column = ColumnSchema('x', TYPE_INT64)
    vec = create_vector(column, 2)
    with pytest.raises(IndexError):
        vec.fill(decoded(column, [1, 2, 3]), 0, 3)


def test_object_vector_is_not_filled_from_chunks():
    column = ColumnSchema('x', TYPE_INT32)
    vec = ObjectColumnVector(2)
    with pytest.raises(TypeError):
        vec.fill(decoded(column, [1]), 0, 1)


@pytest.mark.parametrize('column, cls', [
    (ColumnSchema('a', TYPE_INT32), IntColumnVector),
    (ColumnSchema('a', TYPE_INT64), LongColumnVector),
    (ColumnSchema('a', TYPE_BOOLEAN), BooleanColumnVector),
    (ColumnSchema('a', TYPE_FLOAT), FloatColumnVector),
    (ColumnSchema('a', TYPE_DOUBLE), DoubleColumnVector),
    (ColumnSchema('a', TYPE_BINARY), BinaryColumnVector),
    (ColumnSchema('a', TYPE_INT96), Int96ColumnVector),
    (ColumnSchema('a', TYPE_FIXED_LEN_BYTE_ARRAY, type_length=5), FixedLenByteArrayColumnVector),
])
def test_create_vector_matches_declared_type(column, cls):
    vec = create_vector(column, 8)
    assert type(vec) is cls
    assert vec.capacity == 8
    assert vec.name == 'a'


def test_batch_requires_equal_capacities():
    with pytest.raises(ValueError):
        RowBatch([IntColumnVector(2), IntColumnVector(3)])
    with pytest.raises(ValueError):
        RowBatch([])


def test_batch_seal_checks_alignment():
    a = IntColumnVector(4, name='a')
    b = IntColumnVector(4, name='b')
    batch = RowBatch([a, b])
    a.append(1)

    with pytest.raises(RuntimeError):
        batch.seal()

    b.append(2)
    batch.seal()
    assert batch.row_count() == 1
    assert batch.generation == 1
    assert batch.to_pydict() == {'a': [1], 'b': [2]}


def test_batch_column_lookup():
    batch = RowBatch([IntColumnVector(2, name='a'), BinaryColumnVector(2, name='b')])

    assert batch.column_names() == ['a', 'b']
    assert batch.column('b') is batch.columns()[1]
    with pytest.raises(KeyError):
        batch.column('c')
