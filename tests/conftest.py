import pytest

from benchmark_files import generate_benchmark_file


@pytest.fixture
def bench_file(tmp_path):
    """Factory for small benchmark data sets (8-byte flba values)."""
    def make(rows, row_group_size=1000, codec='gzip', flba_length=8, name='bench.pvc'):
        path = tmp_path / name
        generate_benchmark_file(str(path), rows=rows, codec=codec,
                                flba_length=flba_length, row_group_size=row_group_size)
        return str(path)
    return make
