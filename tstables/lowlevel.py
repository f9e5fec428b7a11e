# MIT License
#
# Copyright (c) 2018-2024 Tskit Developers
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
"""
Column storage for tables.

This module owns every column buffer. It plays the part of a native storage
engine: tables are created empty, grow by appending rows or whole columns, can
be cleared or truncated, and are freed explicitly. The high-level classes in
:mod:`tstables.tables` never touch the buffers directly.

Every mutation increments ``Table.version``; borrowed views compare this
value to detect that the storage changed underneath them.
"""
from __future__ import annotations

import dataclasses
import logging
import numbers
from collections.abc import Mapping
from typing import Any

import kastore
import numpy as np

import tstables.exceptions as exceptions
import tstables.util as util
from tstables.flags import TableIntegrityCheckFlags

logger = logging.getLogger(__name__)

NULL = -1
NODE_IS_SAMPLE = 1
# A specific NaN bit pattern, distinguishable from other NaNs.
UNKNOWN_TIME = float(np.array([0x7FF80000000001A2], dtype=np.uint64).view(np.float64)[0])

#: Row ids are stored as int32, which bounds the size of a table.
MAX_ROWS = int(np.iinfo(np.int32).max)

FILE_FORMAT_NAME = "tstables"
FILE_FORMAT_VERSION = (1, 0)

SCALAR = "scalar"
RAGGED = "ragged"
TEXT = "text"
BYTES = "bytes"


@dataclasses.dataclass(frozen=True)
class Column:
    """
    Description of a single column. Non-scalar columns hold a variable number
    of values per row; they are stored flattened, with a ``<name>_offset``
    column of ``num_rows + 1`` offsets.
    """

    name: str
    dtype: Any
    kind: str = SCALAR
    default: Any = 0
    required: bool = False

    @property
    def is_ragged(self):
        return self.kind != SCALAR


METADATA_COLUMN = Column("metadata", np.int8, kind=BYTES, default=None)


@dataclasses.dataclass(frozen=True)
class TableSchema:
    name: str
    columns: tuple
    has_metadata: bool = True

    @property
    def all_columns(self):
        if self.has_metadata:
            return self.columns + (METADATA_COLUMN,)
        return self.columns

    @property
    def column_names(self):
        names = []
        for col in self.all_columns:
            names.append(col.name)
            if col.is_ragged:
                names.append(f"{col.name}_offset")
        if self.has_metadata:
            names.append("metadata_present")
        return names


INDIVIDUAL_SCHEMA = TableSchema(
    "individuals",
    (
        Column("flags", np.uint32, required=True),
        Column("location", np.float64, kind=RAGGED, default=None),
        Column("parents", np.int32, kind=RAGGED, default=None),
    ),
)
NODE_SCHEMA = TableSchema(
    "nodes",
    (
        Column("flags", np.uint32, required=True),
        Column("time", np.float64, required=True),
        Column("population", np.int32, default=NULL),
        Column("individual", np.int32, default=NULL),
    ),
)
EDGE_SCHEMA = TableSchema(
    "edges",
    (
        Column("left", np.float64, required=True),
        Column("right", np.float64, required=True),
        Column("parent", np.int32, required=True),
        Column("child", np.int32, required=True),
    ),
)
MIGRATION_SCHEMA = TableSchema(
    "migrations",
    (
        Column("left", np.float64, required=True),
        Column("right", np.float64, required=True),
        Column("node", np.int32, required=True),
        Column("source", np.int32, required=True),
        Column("dest", np.int32, required=True),
        Column("time", np.float64, required=True),
    ),
)
SITE_SCHEMA = TableSchema(
    "sites",
    (
        Column("position", np.float64, required=True),
        Column("ancestral_state", np.int8, kind=TEXT, default="", required=True),
    ),
)
MUTATION_SCHEMA = TableSchema(
    "mutations",
    (
        Column("site", np.int32, required=True),
        Column("node", np.int32, required=True),
        Column("derived_state", np.int8, kind=TEXT, default="", required=True),
        Column("parent", np.int32, default=NULL),
        Column("time", np.float64, default=UNKNOWN_TIME),
    ),
)
POPULATION_SCHEMA = TableSchema("populations", ())
PROVENANCE_SCHEMA = TableSchema(
    "provenances",
    (
        Column("timestamp", np.int8, kind=TEXT, default="", required=True),
        Column("record", np.int8, kind=TEXT, default="", required=True),
    ),
    has_metadata=False,
)


class _Buffer:
    """
    A growable one-dimensional array.
    """

    def __init__(self, dtype, increment=0):
        self.dtype = np.dtype(dtype)
        self.increment = increment
        self.data = np.zeros(1, dtype=self.dtype)
        self.size = 0

    def reserve(self, additional):
        required = self.size + additional
        capacity = self.data.shape[0]
        if required > capacity:
            if self.increment == 0:
                new_capacity = max(required, 2 * capacity)
            else:
                new_capacity = max(required, capacity + self.increment)
            try:
                data = np.zeros(new_capacity, dtype=self.dtype)
            except MemoryError as e:
                raise exceptions.LibraryError("Out of memory") from e
            data[: self.size] = self.data[: self.size]
            self.data = data

    def append(self, value):
        self.reserve(1)
        self.data[self.size] = value
        self.size += 1

    def extend(self, values):
        n = values.shape[0]
        self.reserve(n)
        self.data[self.size : self.size + n] = values
        self.size += n

    def values(self):
        return self.data[: self.size]


def _coerce_scalar(col, value):
    if value is None or isinstance(value, (str, bytes)):
        raise TypeError(f"{col.name} must be a number, not {type(value).__name__}")
    arr = np.asarray(value)
    if arr.ndim != 0:
        raise ValueError(f"{col.name} must be a single value")
    if arr.dtype.kind not in "biuf":
        raise TypeError(f"{col.name} must be a number, not {type(value).__name__}")
    if np.dtype(col.dtype).kind in "iu":
        try:
            return util.safe_np_int_cast(arr.reshape(1), col.dtype)[0]
        except OverflowError as e:
            raise ValueError(f"{col.name} out of range: {value}") from e
    return arr.astype(col.dtype)


def _coerce_ragged(col, value):
    if col.kind == TEXT:
        if isinstance(value, str):
            value = value.encode("utf8")
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"{col.name} must be a string, not {type(value).__name__}")
        return np.frombuffer(bytes(value), dtype=np.int8)
    if col.kind == BYTES:
        if value is None:
            return np.zeros(0, dtype=np.int8)
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"{col.name} must be bytes, not {type(value).__name__}")
        return np.frombuffer(bytes(value), dtype=np.int8)
    if value is None:
        return np.zeros(0, dtype=col.dtype)
    arr = np.asarray(value)
    if arr.ndim == 0:
        arr = arr.reshape(1)
    if arr.ndim != 1:
        raise ValueError(f"{col.name} must be one dimensional")
    if arr.size == 0:
        return arr.astype(col.dtype)
    if arr.dtype.kind not in "biuf":
        raise TypeError(f"{col.name} values must be numbers")
    if np.dtype(col.dtype).kind in "iu":
        try:
            return util.safe_np_int_cast(arr, col.dtype)
        except OverflowError as e:
            raise ValueError(f"{col.name} values out of range") from e
    return arr.astype(col.dtype)


def _column_array(name, value, dtype):
    arr = np.asarray(value)
    if arr.ndim != 1:
        raise ValueError(f"Column {name} must be a one dimensional array")
    if arr.size == 0:
        return arr.astype(dtype)
    if arr.dtype.kind not in "biuf":
        raise ValueError(f"Column {name} must be numeric, found dtype {arr.dtype}")
    if np.dtype(dtype) == np.int8 and arr.dtype.itemsize == 1:
        # Byte columns may be given as int8 or uint8.
        return arr.astype(np.int8, casting="unsafe")
    if np.dtype(dtype).kind in "iu":
        try:
            return util.safe_np_int_cast(arr, dtype, copy=True)
        except (TypeError, OverflowError) as e:
            raise ValueError(f"Column {name}: {e}") from e
    return arr.astype(dtype)


def _columns_equal(a, b):
    # Bitwise comparison, so that identical NaN values compare equal.
    return a.dtype == b.dtype and a.shape == b.shape and a.tobytes() == b.tobytes()


class Table:
    """
    Column storage for a single table, described by a :class:`TableSchema`.
    """

    def __init__(self, schema, max_rows_increment=0):
        if isinstance(max_rows_increment, bool) or not isinstance(
            max_rows_increment, numbers.Integral
        ):
            raise TypeError("max_rows_increment must be an integer")
        if max_rows_increment < 0:
            raise ValueError("max_rows_increment must be >= 0")
        self.schema = schema
        self.max_rows_increment = int(max_rows_increment)
        self.metadata_schema = ""
        self.version = 0
        self._freed = False
        self._init_buffers()

    def _init_buffers(self):
        self._buffers = {}
        for col in self.schema.all_columns:
            if col.is_ragged:
                self._buffers[col.name] = _Buffer(col.dtype)
                offset = _Buffer(np.uint64, self.max_rows_increment)
                offset.append(0)
                self._buffers[f"{col.name}_offset"] = offset
            else:
                self._buffers[col.name] = _Buffer(col.dtype, self.max_rows_increment)
        if self.schema.has_metadata:
            self._buffers["metadata_present"] = _Buffer(bool, self.max_rows_increment)
        self._num_rows = 0

    def _check_live(self):
        if self._freed:
            raise exceptions.LibraryError(f"The {self.schema.name} table has been freed")

    def _check_index(self, index):
        self._check_live()
        if isinstance(index, bool) or not isinstance(index, numbers.Integral):
            raise TypeError("Row index must be an integer")
        if index < 0 or index >= self._num_rows:
            raise exceptions.LibraryError("Index out of bounds")
        return int(index)

    def _modified(self):
        self.version += 1

    @property
    def column_names(self):
        return self.schema.column_names

    @property
    def num_rows(self) -> int:
        self._check_live()
        return self._num_rows

    @property
    def max_rows(self) -> int:
        self._check_live()
        capacities = []
        for name, buf in self._buffers.items():
            if name.endswith("_offset"):
                capacities.append(buf.data.shape[0] - 1)
            elif not any(c.name == name and c.is_ragged for c in self.schema.all_columns):
                capacities.append(buf.data.shape[0])
        return max(1, min(capacities))

    @property
    def is_freed(self) -> bool:
        return self._freed

    def add_row(self, **kwargs):
        """
        Appends a row and returns its index. All values are converted before
        anything is written, so a failed call leaves the table unchanged.
        """
        self._check_live()
        names = {col.name for col in self.schema.all_columns}
        unknown = set(kwargs) - names
        if len(unknown) > 0:
            raise TypeError(
                f"Unknown columns for the {self.schema.name} table: {sorted(unknown)}"
            )
        if self._num_rows >= MAX_ROWS:
            raise exceptions.LibraryError("Table too large: cannot add more rows")
        values = {}
        for col in self.schema.all_columns:
            value = kwargs.get(col.name, col.default)
            if col.is_ragged:
                values[col.name] = _coerce_ragged(col, value)
            else:
                values[col.name] = _coerce_scalar(col, value)

        for col in self.schema.all_columns:
            if col.is_ragged:
                data = self._buffers[col.name]
                data.extend(values[col.name])
                self._buffers[f"{col.name}_offset"].append(data.size)
            else:
                self._buffers[col.name].append(values[col.name])
        if self.schema.has_metadata:
            self._buffers["metadata_present"].append(kwargs.get("metadata") is not None)
        self._num_rows += 1
        self._modified()
        return self._num_rows - 1

    def _ragged_range(self, name, index):
        offset = self._buffers[f"{name}_offset"].data
        return int(offset[index]), int(offset[index + 1])

    def _get_value(self, col, index):
        if not col.is_ragged:
            return self._buffers[col.name].data[index].item()
        start, stop = self._ragged_range(col.name, index)
        values = self._buffers[col.name].data[start:stop]
        if col.kind == TEXT:
            return values.tobytes().decode("utf8")
        return values.copy()

    def get_row(self, index):
        """
        Returns the payload values of the specified row as a tuple in schema
        column order, followed by the metadata (bytes or None) if the table
        has a metadata column.
        """
        index = self._check_index(index)
        row = [self._get_value(col, index) for col in self.schema.columns]
        if self.schema.has_metadata:
            row.append(self.get_metadata(index))
        return tuple(row)

    def metadata_range(self, index):
        """
        Returns the (start, stop) byte range of the metadata for the specified
        row, or None if no metadata was stored.
        """
        index = self._check_index(index)
        if not self.schema.has_metadata:
            raise exceptions.LibraryError(f"The {self.schema.name} table has no metadata")
        if not self._buffers["metadata_present"].data[index]:
            return None
        return self._ragged_range("metadata", index)

    def get_metadata(self, index):
        byte_range = self.metadata_range(index)
        if byte_range is None:
            return None
        start, stop = byte_range
        return self._buffers["metadata"].data[start:stop].tobytes()

    def column(self, name, copy=True):
        """
        Returns the values of the specified column. If ``copy`` is False a
        read-only array aliasing the storage is returned; it is only valid
        until the table is next modified.
        """
        self._check_live()
        if name not in self._buffers:
            raise KeyError(name)
        values = self._buffers[name].values()
        if copy:
            return values.copy()
        values = values.view()
        values.flags.writeable = False
        return values

    def clear(self):
        self._check_live()
        for name, buf in self._buffers.items():
            buf.size = 1 if name.endswith("_offset") else 0
        logger.debug("Cleared %d rows from %s table", self._num_rows, self.schema.name)
        self._num_rows = 0
        self._modified()

    def truncate(self, num_rows):
        self._check_live()
        if isinstance(num_rows, bool) or not isinstance(num_rows, numbers.Integral):
            raise TypeError("num_rows must be an integer")
        if num_rows < 0 or num_rows > self._num_rows:
            raise ValueError(f"Cannot truncate a table of {self._num_rows} rows to {num_rows}")
        num_rows = int(num_rows)
        for col in self.schema.all_columns:
            if col.is_ragged:
                offset = self._buffers[f"{col.name}_offset"]
                self._buffers[col.name].size = int(offset.data[num_rows])
                offset.size = num_rows + 1
            else:
                self._buffers[col.name].size = num_rows
        if self.schema.has_metadata:
            self._buffers["metadata_present"].size = num_rows
        self._num_rows = num_rows
        self._modified()

    def _prepare_columns(self, columns):
        if not isinstance(columns, Mapping):
            raise TypeError("Columns must be a mapping of column names to arrays")
        allowed = set(self.column_names) | {"metadata_schema"}
        unknown = set(columns) - allowed
        if len(unknown) > 0:
            raise TypeError(
                f"Unknown columns for the {self.schema.name} table: {sorted(unknown)}"
            )
        num_rows = None
        prepared = {}

        def check_length(name, n):
            nonlocal num_rows
            if num_rows is None:
                num_rows = n
            elif num_rows != n:
                raise ValueError(f"Column {name} has {n} rows, expected {num_rows}")

        for col in self.schema.all_columns:
            if not col.is_ragged:
                value = columns.get(col.name)
                if value is None:
                    if col.required:
                        raise TypeError(f"{col.name} is required")
                    continue
                prepared[col.name] = _column_array(col.name, value, col.dtype)
                check_length(col.name, prepared[col.name].shape[0])
            else:
                offset_name = f"{col.name}_offset"
                data = columns.get(col.name)
                offset = columns.get(offset_name)
                if (data is None) != (offset is None):
                    raise TypeError(
                        f"{col.name} and {offset_name} must be specified together"
                    )
                if data is None:
                    if col.required:
                        raise TypeError(f"{col.name} is required")
                    continue
                data = _column_array(col.name, data, col.dtype)
                offset = _column_array(offset_name, offset, np.uint64)
                if offset.shape[0] == 0:
                    raise ValueError(f"{offset_name} must have at least one entry")
                if offset[0] != 0 or np.any(np.diff(offset.astype(np.int64)) < 0):
                    raise ValueError(f"{offset_name} must start at 0 and be non-decreasing")
                if int(offset[-1]) != data.shape[0]:
                    raise ValueError(
                        f"The last value of {offset_name} must equal the length of {col.name}"
                    )
                prepared[col.name] = data
                prepared[offset_name] = offset
                check_length(offset_name, offset.shape[0] - 1)

        if num_rows is None:
            num_rows = 0
        for col in self.schema.all_columns:
            if col.name in prepared:
                continue
            if col.is_ragged:
                prepared[col.name] = np.zeros(0, dtype=col.dtype)
                prepared[f"{col.name}_offset"] = np.zeros(num_rows + 1, dtype=np.uint64)
            else:
                prepared[col.name] = np.full(num_rows, col.default, dtype=col.dtype)
        if self.schema.has_metadata:
            present = columns.get("metadata_present")
            if present is None:
                present = np.full(num_rows, columns.get("metadata") is not None)
            present = np.asarray(present, dtype=bool)
            if present.shape != (num_rows,):
                raise ValueError(f"metadata_present must have {num_rows} entries")
            prepared["metadata_present"] = present
        if self._num_rows + num_rows > MAX_ROWS:
            raise exceptions.LibraryError("Table too large: cannot add more rows")
        return num_rows, prepared

    def _commit_columns(self, num_rows, prepared):
        for col in self.schema.all_columns:
            if col.is_ragged:
                data = self._buffers[col.name]
                base = data.size
                data.extend(prepared[col.name])
                offset = prepared[f"{col.name}_offset"][1:] + np.uint64(base)
                self._buffers[f"{col.name}_offset"].extend(offset)
            else:
                self._buffers[col.name].extend(prepared[col.name])
        if self.schema.has_metadata:
            self._buffers["metadata_present"].extend(prepared["metadata_present"])
        self._num_rows += num_rows
        self._modified()

    def append_columns(self, columns):
        self._check_live()
        num_rows, prepared = self._prepare_columns(columns)
        self._commit_columns(num_rows, prepared)

    def set_columns(self, columns):
        self._check_live()
        num_rows, prepared = self._prepare_columns(columns)
        self.clear()
        self._commit_columns(num_rows, prepared)
        metadata_schema = columns.get("metadata_schema")
        if metadata_schema is not None:
            self.metadata_schema = str(metadata_schema)

    def asdict(self):
        self._check_live()
        ret = {name: self.column(name) for name in self.column_names}
        if self.schema.has_metadata:
            ret["metadata_schema"] = self.metadata_schema
        return ret

    def equals(self, other, ignore_metadata=False, ignore_timestamps=False):
        if not isinstance(other, Table):
            raise TypeError("Can only compare with another Table")
        self._check_live()
        other._check_live()
        if self.schema != other.schema or self._num_rows != other._num_rows:
            return False
        for name in self.column_names:
            if ignore_metadata and name.startswith("metadata"):
                continue
            if ignore_timestamps and name.startswith("timestamp"):
                continue
            if not _columns_equal(self.column(name, copy=False), other.column(name, copy=False)):
                return False
        if self.schema.has_metadata and not ignore_metadata:
            return self.metadata_schema == other.metadata_schema
        return True

    def copy(self):
        self._check_live()
        copy = Table(self.schema, self.max_rows_increment)
        copy.set_columns(self.asdict())
        return copy

    def free(self):
        """
        Releases the column buffers. Any further use of this table raises
        :class:`LibraryError`.
        """
        if not self._freed:
            logger.debug("Freeing %s table (%d rows)", self.schema.name, self._num_rows)
            self._buffers = {}
            self._num_rows = 0
            self._freed = True
            self._modified()


def _encode_text(value):
    return np.frombuffer(value.encode("utf8"), dtype=np.int8)


def _decode_text(array):
    return np.asarray(array, dtype=np.int8).tobytes().decode("utf8")


class TableCollection:
    """
    Storage for a full set of tables plus the collection-level metadata and
    the edge indexes.
    """

    table_schemas = (
        INDIVIDUAL_SCHEMA,
        NODE_SCHEMA,
        EDGE_SCHEMA,
        MIGRATION_SCHEMA,
        SITE_SCHEMA,
        MUTATION_SCHEMA,
        POPULATION_SCHEMA,
        PROVENANCE_SCHEMA,
    )

    def __init__(self, sequence_length=0):
        self.sequence_length = float(sequence_length)
        self.tables = {schema.name: Table(schema) for schema in self.table_schemas}
        self.metadata = b""
        self.metadata_schema = ""
        self.time_units = "unknown"
        self.edge_insertion_order = None
        self.edge_removal_order = None

    def __getattr__(self, name):
        tables = self.__dict__.get("tables")
        if tables is not None and name in tables:
            return tables[name]
        raise AttributeError(name)

    def clear(
        self,
        clear_provenance=False,
        clear_metadata_schemas=False,
        clear_ts_metadata_and_schema=False,
    ):
        for name, table in self.tables.items():
            if name == "provenances" and not clear_provenance:
                continue
            table.clear()
            if clear_metadata_schemas:
                table.metadata_schema = ""
        if clear_ts_metadata_and_schema:
            self.metadata = b""
            self.metadata_schema = ""
        self.drop_index()

    def equals(
        self,
        other,
        ignore_metadata=False,
        ignore_ts_metadata=False,
        ignore_provenance=False,
        ignore_timestamps=False,
    ):
        if not isinstance(other, TableCollection):
            raise TypeError("Can only compare with another TableCollection")
        if self.sequence_length != other.sequence_length:
            return False
        if self.time_units != other.time_units:
            return False
        if not (ignore_metadata or ignore_ts_metadata):
            if self.metadata_schema != other.metadata_schema:
                return False
            if self.metadata != other.metadata:
                return False
        for name, table in self.tables.items():
            if name == "provenances":
                if ignore_provenance:
                    continue
                if not table.equals(other.tables[name], ignore_timestamps=ignore_timestamps):
                    return False
            elif not table.equals(other.tables[name], ignore_metadata=ignore_metadata):
                return False
        return True

    def has_index(self):
        return (
            self.edge_insertion_order is not None
            and self.edge_insertion_order.shape[0] == self.edges.num_rows
        )

    def drop_index(self):
        self.edge_insertion_order = None
        self.edge_removal_order = None

    def build_index(self):
        edges = self.edges
        parent = edges.column("parent", copy=False)
        child = edges.column("child", copy=False)
        num_nodes = self.nodes.num_rows
        if np.any(parent < 0) or np.any(parent >= num_nodes):
            raise exceptions.LibraryError("Edge parent out of bounds")
        if np.any(child < 0) or np.any(child >= num_nodes):
            raise exceptions.LibraryError("Edge child out of bounds")
        time = self.nodes.column("time", copy=False)
        parent_time = time[parent]
        left = edges.column("left", copy=False)
        right = edges.column("right", copy=False)
        self.edge_insertion_order = np.lexsort((child, parent, parent_time, left)).astype(
            np.int32
        )
        self.edge_removal_order = np.lexsort(
            (-child.astype(np.int64), -parent.astype(np.int64), -parent_time, right)
        ).astype(np.int32)
        logger.debug("Built edge indexes for %d edges", edges.num_rows)

    def set_indexes(self, edge_insertion_order, edge_removal_order):
        if (edge_insertion_order is None) != (edge_removal_order is None):
            raise TypeError("Both edge indexes must be specified together")
        if edge_insertion_order is None:
            self.drop_index()
            return
        insertion = util.safe_np_int_cast(edge_insertion_order, np.int32, copy=True)
        removal = util.safe_np_int_cast(edge_removal_order, np.int32, copy=True)
        if insertion.shape != (self.edges.num_rows,) or removal.shape != insertion.shape:
            raise ValueError("Edge indexes must have one entry per edge")
        self.edge_insertion_order = insertion
        self.edge_removal_order = removal

    def check_integrity(self, flags=0):
        """
        Runs the basic integrity checks plus those selected by ``flags``
        (a raw TableIntegrityCheckFlags value). Raises TableIntegrityError
        describing the first problem found.
        """
        flags = TableIntegrityCheckFlags.from_bits(flags).expanded()
        _IntegrityChecker(self).run(flags)

    def copy(self):
        copy = TableCollection(self.sequence_length)
        for name, table in self.tables.items():
            copy.tables[name].set_columns(table.asdict())
        copy.metadata = self.metadata
        copy.metadata_schema = self.metadata_schema
        copy.time_units = self.time_units
        if self.edge_insertion_order is not None:
            copy.edge_insertion_order = self.edge_insertion_order.copy()
            copy.edge_removal_order = self.edge_removal_order.copy()
        return copy

    def asdict(self):
        """
        Returns a flat dictionary of numpy arrays suitable for storing with
        kastore, using the tskit key layout.
        """
        data = {
            "format/name": _encode_text(FILE_FORMAT_NAME),
            "format/version": np.array(FILE_FORMAT_VERSION, dtype=np.uint32),
            "sequence_length": np.array([self.sequence_length], dtype=np.float64),
            "time_units": _encode_text(self.time_units),
            "metadata": np.frombuffer(self.metadata, dtype=np.int8),
            "metadata_schema": _encode_text(self.metadata_schema),
        }
        for name, table in self.tables.items():
            for col, values in table.asdict().items():
                if col == "metadata_schema":
                    values = _encode_text(values)
                elif col == "metadata_present":
                    values = values.astype(np.uint8)
                data[f"{name}/{col}"] = values
        if self.has_index():
            data["indexes/edge_insertion_order"] = self.edge_insertion_order
            data["indexes/edge_removal_order"] = self.edge_removal_order
        return data

    @classmethod
    def fromdict(cls, data):
        try:
            if _decode_text(data["format/name"]) != FILE_FORMAT_NAME:
                raise exceptions.FileFormatError("File is not a tstables file")
            version = tuple(int(v) for v in data["format/version"])
            if version[0] != FILE_FORMAT_VERSION[0]:
                raise exceptions.FileFormatError(f"Unsupported file format version {version}")
            tables = cls(float(data["sequence_length"][0]))
            tables.time_units = _decode_text(data["time_units"])
            tables.metadata = np.asarray(data["metadata"], dtype=np.int8).tobytes()
            tables.metadata_schema = _decode_text(data["metadata_schema"])
            for name, table in tables.tables.items():
                columns = {col: data[f"{name}/{col}"] for col in table.column_names}
                if table.schema.has_metadata:
                    columns["metadata_schema"] = _decode_text(data[f"{name}/metadata_schema"])
                table.set_columns(columns)
        except KeyError as e:
            raise exceptions.FileFormatError(f"Required key {e} missing from file") from e
        except (TypeError, ValueError) as e:
            raise exceptions.FileFormatError(f"Malformed column in file: {e}") from e
        if "indexes/edge_insertion_order" in data:
            tables.set_indexes(
                data["indexes/edge_insertion_order"], data["indexes/edge_removal_order"]
            )
        return tables

    def dump(self, file):
        kastore.dump(self.asdict(), file)
        logger.debug("Wrote table collection to %s", getattr(file, "name", file))

    @classmethod
    def load(cls, file):
        try:
            with kastore.load(file, read_all=True) as store:
                data = {key: np.array(value) for key, value in store.items()}
        except (kastore.FileFormatError, EOFError) as e:
            raise exceptions.FileFormatError(str(e)) from e
        logger.debug("Read %d arrays from %s", len(data), getattr(file, "name", file))
        return cls.fromdict(data)


class _IntegrityChecker:
    def __init__(self, tables):
        self.tables = tables
        self.num_nodes = tables.nodes.num_rows
        self.num_populations = tables.populations.num_rows
        self.num_individuals = tables.individuals.num_rows
        self.num_sites = tables.sites.num_rows
        self.num_mutations = tables.mutations.num_rows

    @staticmethod
    def fail(message):
        raise exceptions.TableIntegrityError(message)

    def check_bounds(self, values, lower, upper, message):
        if values.shape[0] > 0 and (np.any(values < lower) or np.any(values >= upper)):
            self.fail(message)

    def check_finite(self, values, message):
        if not np.all(np.isfinite(values)):
            self.fail(message)

    def check_intervals(self, table, name):
        left = table.column("left", copy=False)
        right = table.column("right", copy=False)
        self.check_finite(left, f"Non-finite {name} coordinate")
        self.check_finite(right, f"Non-finite {name} coordinate")
        if np.any(left < 0) or np.any(right > self.tables.sequence_length):
            self.fail(f"{name.capitalize()} interval outside the sequence")
        if np.any(left >= right):
            self.fail(f"Bad {name} interval: left must be less than right")

    def run(self, flags):
        F = TableIntegrityCheckFlags
        if not self.tables.sequence_length > 0:
            self.fail("Sequence length must be greater than zero")
        self.check_individuals(flags.contains(F.CHECK_INDIVIDUAL_ORDERING))
        self.check_nodes()
        self.check_edges(flags.contains(F.CHECK_EDGE_ORDERING))
        self.check_sites(
            flags.contains(F.CHECK_SITE_ORDERING), flags.contains(F.CHECK_SITE_DUPLICATES)
        )
        self.check_mutations(flags.contains(F.CHECK_MUTATION_ORDERING))
        self.check_migrations(flags.contains(F.CHECK_MIGRATION_ORDERING))
        if flags.contains(F.CHECK_INDEXES):
            self.check_indexes()

    def check_individuals(self, check_ordering):
        individuals = self.tables.individuals
        parents = individuals.column("parents", copy=False)
        self.check_bounds(
            parents, NULL, self.num_individuals, "Individual parent out of bounds"
        )
        offset = individuals.column("parents_offset", copy=False).astype(np.int64)
        owner = np.repeat(np.arange(self.num_individuals), np.diff(offset))
        if np.any(parents == owner):
            self.fail("Individuals cannot be their own parents")
        if check_ordering and np.any(parents > owner):
            self.fail("Individuals must be listed after their parents")

    def check_nodes(self):
        nodes = self.tables.nodes
        self.check_finite(nodes.column("time", copy=False), "Node times must be finite")
        self.check_bounds(
            nodes.column("population", copy=False),
            NULL,
            self.num_populations,
            "Node population out of bounds",
        )
        self.check_bounds(
            nodes.column("individual", copy=False),
            NULL,
            self.num_individuals,
            "Node individual out of bounds",
        )

    def check_edges(self, check_ordering):
        edges = self.tables.edges
        parent = edges.column("parent", copy=False)
        child = edges.column("child", copy=False)
        self.check_bounds(parent, 0, self.num_nodes, "Edge parent out of bounds")
        self.check_bounds(child, 0, self.num_nodes, "Edge child out of bounds")
        self.check_intervals(edges, "edge")
        time = self.tables.nodes.column("time", copy=False)
        if np.any(time[parent] <= time[child]):
            self.fail("A parent node must be older than its child")
        if check_ordering and edges.num_rows > 1:
            left = edges.column("left", copy=False)
            parent_time = time[parent]
            if np.any(np.diff(parent_time) < 0):
                self.fail("Edges must be listed in (time[parent], child, left) order")
            same_parent = parent[1:] == parent[:-1]
            if np.any(same_parent & (child[1:] < child[:-1])):
                self.fail("Edges must be listed in (time[parent], child, left) order")
            same_child = same_parent & (child[1:] == child[:-1])
            if np.any(same_child & (left[1:] <= left[:-1])):
                self.fail("Edges must be listed in (time[parent], child, left) order")
            # Each parent's edges must form one contiguous block
            starts = parent[np.concatenate([[True], ~same_parent])]
            if np.unique(starts).shape[0] != starts.shape[0]:
                self.fail("Edges for a given parent must be contiguous")

    def check_sites(self, check_ordering, check_duplicates):
        position = self.tables.sites.column("position", copy=False)
        self.check_finite(position, "Site positions must be finite")
        if np.any(position < 0) or np.any(position >= self.tables.sequence_length):
            self.fail("Site position outside the sequence")
        diff = np.diff(position)
        if check_ordering and np.any(diff < 0):
            self.fail("Sites must be provided in strictly increasing position order")
        if check_duplicates and np.any(diff == 0):
            self.fail("Duplicate site positions")

    def check_mutations(self, check_ordering):
        mutations = self.tables.mutations
        site = mutations.column("site", copy=False)
        parent = mutations.column("parent", copy=False)
        time = mutations.column("time", copy=False)
        self.check_bounds(site, 0, self.num_sites, "Mutation site out of bounds")
        self.check_bounds(
            mutations.column("node", copy=False), 0, self.num_nodes, "Mutation node out of bounds"
        )
        self.check_bounds(parent, NULL, self.num_mutations, "Mutation parent out of bounds")
        ids = np.arange(self.num_mutations)
        if np.any(parent == ids):
            self.fail("A mutation cannot be its own parent")
        unknown = util.is_unknown_time(time)
        if np.any(unknown) and not np.all(unknown):
            self.fail("Mutation times must be all known or all unknown")
        if not np.all(unknown):
            self.check_finite(time, "Mutation times must be finite")
        if check_ordering and self.num_mutations > 1:
            if np.any(np.diff(site) < 0):
                self.fail("Mutations must be provided in non-decreasing site order")
            if np.any(parent > ids):
                self.fail("Parent mutations must be listed before their children")
            if not np.all(unknown):
                same_site = site[1:] == site[:-1]
                if np.any(same_site & (time[1:] > time[:-1])):
                    self.fail("Mutations at a site must be in non-increasing time order")

    def check_migrations(self, check_ordering):
        migrations = self.tables.migrations
        self.check_bounds(
            migrations.column("node", copy=False), 0, self.num_nodes, "Migration node out of bounds"
        )
        for col in ["source", "dest"]:
            self.check_bounds(
                migrations.column(col, copy=False),
                0,
                self.num_populations,
                "Migration population out of bounds",
            )
        self.check_intervals(migrations, "migration")
        time = migrations.column("time", copy=False)
        self.check_finite(time, "Migration times must be finite")
        if check_ordering and np.any(np.diff(time) < 0):
            self.fail("Migrations must be sorted by time")

    def check_indexes(self):
        if not self.tables.has_index():
            self.fail("Table collection must be indexed")
        expected = np.arange(self.tables.edges.num_rows)
        for index in [self.tables.edge_insertion_order, self.tables.edge_removal_order]:
            if not np.array_equal(np.sort(index), expected):
                self.fail("Edge index is not a permutation of the edge ids")
