# errors.py
"""
Exception hierarchy for reading and writing PVC files.

- OpenError:         file missing, bad magic or corrupt header (raised at reader construction)
- ProjectionError:   requested column absent from the file schema (raised at reader construction)
- DecodeError:       malformed or truncated column data (raised by the failing read;
                     the reader is unusable afterwards)
- ReaderClosedError: any read on a reader after close()
- EncodeError:       writer input validation failures
"""


class ColumnarError(Exception):
    """Base class for all PVC reader/writer errors."""


class OpenError(ColumnarError):
    pass


class ProjectionError(ColumnarError):
    pass


class DecodeError(ColumnarError):
    pass


class ReaderClosedError(ColumnarError):
    pass


class EncodeError(ColumnarError, ValueError):
    pass
