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
Tables API: typed rows, borrowed table views, owned tables and the table
collection.
"""
from __future__ import annotations

import dataclasses
import datetime
import logging
import numbers
import weakref
from dataclasses import dataclass
from typing import Any
from typing import Callable
from typing import Dict
from typing import Optional

import numpy as np

import tstables
import tstables.exceptions as exceptions
import tstables.ids as ids
import tstables.lowlevel as lowlevel
import tstables.metadata as metadata
import tstables.util as util
from tstables.flags import IndividualFlags
from tstables.flags import NodeFlags
from tstables.flags import TableClearOptions
from tstables.flags import TableEqualityOptions
from tstables.flags import TableIntegrityCheckFlags
from tstables.flags import TableOutputOptions

logger = logging.getLogger(__name__)

#: Attribute name of the packed metadata column. ``metadata`` itself is the
#: per-row accessor :meth:`BaseTable.metadata`.
METADATA_COLUMN_ATTRIBUTE = "metadata_column"


def column_attribute(column_name):
    """
    Returns the attribute name under which a table exposes the named column.
    """
    if column_name == "metadata":
        return METADATA_COLUMN_ATTRIBUTE
    return column_name

dataclass_options = {"frozen": True}


@dataclass(**dataclass_options)
class IndividualTableRow(util.Dataclass):
    """
    A row in an :class:`IndividualTable`.
    """

    __slots__ = ["id", "flags", "location", "parents", "metadata"]
    id: ids.IndividualId
    flags: int
    location: np.ndarray
    parents: np.ndarray
    metadata: Optional[bytes]

    # We need a custom eq for the numpy arrays
    def __eq__(self, other):
        return (
            isinstance(other, IndividualTableRow)
            and self.id == other.id
            and self.flags == other.flags
            and np.array_equal(self.location, other.location)
            and np.array_equal(self.parents, other.parents)
            and self.metadata == other.metadata
        )


@dataclass(**dataclass_options)
class NodeTableRow(util.Dataclass):
    """
    A row in a :class:`NodeTable`.
    """

    __slots__ = ["id", "flags", "time", "population", "individual", "metadata"]
    id: ids.NodeId
    flags: int
    time: float
    population: ids.PopulationId
    individual: ids.IndividualId
    metadata: Optional[bytes]


@dataclass(**dataclass_options)
class EdgeTableRow(util.Dataclass):
    """
    A row in an :class:`EdgeTable`.
    """

    __slots__ = ["id", "left", "right", "parent", "child", "metadata"]
    id: ids.EdgeId
    left: float
    right: float
    parent: ids.NodeId
    child: ids.NodeId
    metadata: Optional[bytes]


@dataclass(**dataclass_options)
class MigrationTableRow(util.Dataclass):
    """
    A row in a :class:`MigrationTable`.
    """

    __slots__ = ["id", "left", "right", "node", "source", "dest", "time", "metadata"]
    id: ids.MigrationId
    left: float
    right: float
    node: ids.NodeId
    source: ids.PopulationId
    dest: ids.PopulationId
    time: float
    metadata: Optional[bytes]


@dataclass(**dataclass_options)
class SiteTableRow(util.Dataclass):
    """
    A row in a :class:`SiteTable`.
    """

    __slots__ = ["id", "position", "ancestral_state", "metadata"]
    id: ids.SiteId
    position: float
    ancestral_state: str
    metadata: Optional[bytes]


@dataclass(**dataclass_options)
class MutationTableRow(util.Dataclass):
    """
    A row in a :class:`MutationTable`.
    """

    __slots__ = ["id", "site", "node", "derived_state", "parent", "time", "metadata"]
    id: ids.MutationId
    site: ids.SiteId
    node: ids.NodeId
    derived_state: str
    parent: ids.MutationId
    time: float
    metadata: Optional[bytes]

    # We need a custom eq here as we have unknown times (nans) to check
    def __eq__(self, other):
        return (
            isinstance(other, MutationTableRow)
            and self.id == other.id
            and self.site == other.site
            and self.node == other.node
            and self.derived_state == other.derived_state
            and self.parent == other.parent
            and self.metadata == other.metadata
            and (
                self.time == other.time
                or (
                    util.is_unknown_time(self.time) and util.is_unknown_time(other.time)
                )
            )
        )


@dataclass(**dataclass_options)
class PopulationTableRow(util.Dataclass):
    """
    A row in a :class:`PopulationTable`.
    """

    __slots__ = ["id", "metadata"]
    id: ids.PopulationId
    metadata: Optional[bytes]


@dataclass(**dataclass_options)
class ProvenanceTableRow(util.Dataclass):
    """
    A row in a :class:`ProvenanceTable`. Provenance rows carry no metadata.
    """

    __slots__ = ["id", "timestamp", "record"]
    id: ids.ProvenanceId
    timestamp: str
    record: str


@dataclass(**dataclass_options)
class TableCollectionIndexes(util.Dataclass):
    """
    A class encapsulating the indexes of a :class:`TableCollection`
    """

    edge_insertion_order: np.ndarray = None
    edge_removal_order: np.ndarray = None

    def asdict(self):
        return {k: v for k, v in dataclasses.asdict(self).items() if v is not None}

    @property
    def nbytes(self) -> int:
        """
        The number of bytes taken by the indexes
        """
        total = 0
        if self.edge_removal_order is not None:
            total += self.edge_removal_order.nbytes
        if self.edge_insertion_order is not None:
            total += self.edge_insertion_order.nbytes
        return total


@dataclass(frozen=True, eq=False)
class TableKind:
    """
    Everything that distinguishes one kind of table from another: its column
    storage layout, its row and id types, and how stored payload values are
    converted into row fields.
    """

    name: str
    schema: lowlevel.TableSchema
    row_class: type
    id_class: type
    converters: Dict[str, Callable[[Any], Any]] = dataclasses.field(default_factory=dict)

    @property
    def table_name(self) -> str:
        return self.schema.name

    @property
    def has_metadata(self) -> bool:
        return self.schema.has_metadata

    @property
    def payload_names(self):
        return [col.name for col in self.schema.columns]

    def make_row(self, index, values):
        fields = {}
        for col, value in zip(self.schema.columns, values):
            convert = self.converters.get(col.name)
            fields[col.name] = value if convert is None else convert(value)
        if self.has_metadata:
            fields["metadata"] = values[-1]
        return self.row_class(id=self.id_class(index), **fields)


INDIVIDUAL = TableKind(
    "individual",
    lowlevel.INDIVIDUAL_SCHEMA,
    IndividualTableRow,
    ids.IndividualId,
    {"flags": IndividualFlags.from_bits},
)
NODE = TableKind(
    "node",
    lowlevel.NODE_SCHEMA,
    NodeTableRow,
    ids.NodeId,
    {
        "flags": NodeFlags.from_bits,
        "population": ids.PopulationId,
        "individual": ids.IndividualId,
    },
)
EDGE = TableKind(
    "edge",
    lowlevel.EDGE_SCHEMA,
    EdgeTableRow,
    ids.EdgeId,
    {"parent": ids.NodeId, "child": ids.NodeId},
)
MIGRATION = TableKind(
    "migration",
    lowlevel.MIGRATION_SCHEMA,
    MigrationTableRow,
    ids.MigrationId,
    {"node": ids.NodeId, "source": ids.PopulationId, "dest": ids.PopulationId},
)
SITE = TableKind("site", lowlevel.SITE_SCHEMA, SiteTableRow, ids.SiteId)
MUTATION = TableKind(
    "mutation",
    lowlevel.MUTATION_SCHEMA,
    MutationTableRow,
    ids.MutationId,
    {"site": ids.SiteId, "node": ids.NodeId, "parent": ids.MutationId},
)
POPULATION = TableKind(
    "population", lowlevel.POPULATION_SCHEMA, PopulationTableRow, ids.PopulationId
)
PROVENANCE = TableKind(
    "provenance", lowlevel.PROVENANCE_SCHEMA, ProvenanceTableRow, ids.ProvenanceId
)

TABLE_KINDS = [
    INDIVIDUAL,
    NODE,
    EDGE,
    MIGRATION,
    SITE,
    MUTATION,
    POPULATION,
    PROVENANCE,
]


def _row_index(kind, row_id):
    # Returns the integer position for row_id, rejecting ids of other kinds.
    if isinstance(row_id, ids.RowId) and not isinstance(row_id, kind.id_class):
        raise TypeError(
            f"Cannot use a {type(row_id).__name__} to access the {kind.table_name} table"
        )
    if isinstance(row_id, bool) or not isinstance(row_id, numbers.Integral):
        raise TypeError(f"Row ids must be integers, not {type(row_id).__name__}")
    return int(row_id)


def make_row(table, position):
    """
    Returns the row at the specified zero-based position in the table, or None
    if the position is not in ``0 <= position < table.num_rows``.

    :param table: A :class:`TableView` or :class:`OwnedTable`.
    :param int position: The position (that is, the id) of the row.
    :rtype: A row dataclass, or None.
    """
    index = _row_index(table.kind, position)
    ll_table = table.ll_table
    if index < 0 or index >= ll_table.num_rows:
        return None
    return table.kind.make_row(index, ll_table.get_row(index))


class TableIterator:
    """
    Iterates over the rows of a table in ascending id order. The iterator
    borrows the table's storage: modifying the table between two calls to
    ``next`` raises :class:`BorrowError`.
    """

    def __init__(self, table):
        self.table = table
        self._ll_table = table.ll_table
        self._version = self._ll_table.version
        self.position = 0

    def __iter__(self):
        return self

    def __next__(self):
        if self._ll_table.is_freed or self._ll_table.version != self._version:
            raise exceptions.BorrowError(
                f"The {self.table.kind.table_name} table was modified during iteration"
            )
        row = make_row(self.table, self.position)
        if row is None:
            raise StopIteration
        self.position += 1
        return row


class BaseTable:
    """
    Superclass of high-level tables. Not intended for direct instantiation.
    Borrowed views and owned tables share this read interface.
    """

    # The TableKind describing this table. Must be set by subclasses.
    kind = None

    @property
    def ll_table(self):
        raise NotImplementedError()

    @property
    def column_names(self):
        return self.kind.schema.column_names

    @property
    def num_rows(self) -> int:
        return self.ll_table.num_rows

    @property
    def max_rows(self) -> int:
        return self.ll_table.max_rows

    @property
    def max_rows_increment(self) -> int:
        return self.ll_table.max_rows_increment

    @property
    def nbytes(self) -> int:
        """
        Returns the total number of bytes required to store the data
        in this table. Note that this may not be equal to
        the actual memory footprint.
        """
        d = self.asdict()
        nbytes = 0
        # Some tables don't have a metadata_schema
        metadata_schema = d.pop("metadata_schema", None)
        if metadata_schema is not None:
            nbytes += len(metadata_schema.encode())
        nbytes += sum(col.nbytes for col in d.values())
        return nbytes

    def __len__(self):
        return self.num_rows

    def row(self, id):  # noqa: A002
        """
        Returns the row with the specified id, or None if there is no such
        row. Ids of another table kind are rejected with a TypeError.
        """
        return make_row(self, id)

    def metadata(self, id, decoder=None):  # noqa: A002
        """
        Returns the decoded metadata for the row with the specified id, or None
        if there is no such row or the row has no metadata.

        :param int id: The row id.
        :param decoder: A :class:`MetadataRoundtrip` subclass, a
            :class:`MetadataSchema` or a callable taking bytes. Defaults to the
            table's metadata schema.
        :raises MetadataDecodingError: If the decoder fails.
        """
        index = _row_index(self.kind, id)
        ll_table = self.ll_table
        if not self.kind.has_metadata or index < 0 or index >= ll_table.num_rows:
            return None
        encoded = ll_table.get_metadata(index)
        if encoded is None:
            return None
        if decoder is None:
            decoder = self.metadata_schema
        return metadata.decode_metadata(
            encoded, decoder, row_id=self.kind.id_class(index)
        )

    def iter(self):
        return TableIterator(self)

    def __iter__(self):
        return self.iter()

    def equals(self, other, options=TableEqualityOptions.NONE):
        """
        Returns True if `self` and `other` are tables of the same kind whose
        columns (and metadata schemas) are byte-for-byte identical.

        :param other: Another table instance
        :param TableEqualityOptions options: IGNORE_METADATA excludes metadata
            and metadata schemas from the comparison; IGNORE_TIMESTAMPS excludes
            provenance timestamps.
        :return: True if other is equal to this table; False otherwise.
        :rtype: bool
        """
        options = TableEqualityOptions.from_bits(options)
        if not isinstance(other, BaseTable) or other.kind is not self.kind:
            return False
        return self.ll_table.equals(
            other.ll_table,
            ignore_metadata=options.contains(TableEqualityOptions.IGNORE_METADATA),
            ignore_timestamps=options.contains(TableEqualityOptions.IGNORE_TIMESTAMPS),
        )

    def assert_equals(self, other, options=TableEqualityOptions.NONE):
        """
        Raise an AssertionError for the first found difference between
        this and another table of the same kind.

        :param other: Another table instance
        :param TableEqualityOptions options: As for :meth:`equals`.
        """
        options = TableEqualityOptions.from_bits(options)
        if not isinstance(other, BaseTable) or other.kind is not self.kind:
            raise AssertionError(f"Types differ: self={type(self)} other={type(other)}")

        # Check using the low-level method to avoid slowly going through everything
        if self.equals(other, options):
            return

        ignore_metadata = options.contains(TableEqualityOptions.IGNORE_METADATA)
        ignore_timestamps = options.contains(TableEqualityOptions.IGNORE_TIMESTAMPS)
        if (
            self.kind.has_metadata
            and not ignore_metadata
            and self.metadata_schema != other.metadata_schema
        ):
            raise AssertionError(
                f"{type(self).__name__} metadata schemas differ: "
                f"self={self.metadata_schema} "
                f"other={other.metadata_schema}"
            )

        for n, (row_self, row_other) in enumerate(zip(self, other)):
            if ignore_metadata and self.kind.has_metadata:
                row_self = dataclasses.replace(row_self, metadata=None)
                row_other = dataclasses.replace(row_other, metadata=None)
            if ignore_timestamps and self.kind is PROVENANCE:
                row_self = dataclasses.replace(row_self, timestamp="")
                row_other = dataclasses.replace(row_other, timestamp="")
            if row_self != row_other:
                self_dict = dataclasses.asdict(row_self)
                other_dict = dataclasses.asdict(row_other)
                diff_string = []
                for col in self_dict.keys():
                    if isinstance(self_dict[col], np.ndarray):
                        equal = np.array_equal(self_dict[col], other_dict[col])
                    else:
                        equal = self_dict[col] == other_dict[col]
                    if not equal:
                        diff_string.append(
                            f"self.{col}={self_dict[col]} other.{col}={other_dict[col]}"
                        )
                diff_string = "\n".join(diff_string)
                raise AssertionError(
                    f"{type(self).__name__} row {n} differs:\n{diff_string}"
                )

        if self.num_rows != other.num_rows:
            raise AssertionError(
                f"{type(self).__name__} number of rows differ: self={self.num_rows} "
                f"other={other.num_rows}"
            )

        raise AssertionError(
            "Tables differ in an undetected way - "
            "this is a bug, please report an issue"
        )  # pragma: no cover

    def __eq__(self, other):
        return self.equals(other)

    __hash__ = None

    @classmethod
    def _attribute_column(cls, name):
        if cls.kind is None or name == "metadata":
            return None
        if name == METADATA_COLUMN_ATTRIBUTE:
            name = "metadata"
        return name if name in cls.kind.schema.column_names else None

    def __getattr__(self, name):
        column = self._attribute_column(name)
        if column is not None:
            return self.ll_table.column(column)
        raise AttributeError(f"{self.__class__.__name__} object has no attribute {name}")

    def asdict(self):
        """
        Returns a dictionary mapping the names of the columns in this table
        to the corresponding numpy arrays.
        """
        return self.ll_table.asdict()

    def copy(self):
        """
        Returns a deep copy of this table as a new owned table.
        """
        copy = OWNED_TABLE_CLASSES[self.kind.name]()
        copy.set_columns(**self.asdict())
        return copy

    def _columns_all_integer(self, *colnames):
        # For displaying floating point values without loads of decimal places
        return all(
            np.all(getattr(self, col) == np.floor(getattr(self, col)))
            for col in colnames
        )

    def _text_header_and_rows(self, limit=None):
        columns = self.kind.schema.columns
        headers = ["id"] + [col.name for col in columns]
        if self.kind.has_metadata:
            headers.append("metadata")
        float_columns = [
            col.name
            for col in columns
            if col.kind == lowlevel.SCALAR and col.dtype == np.float64
        ]
        dp = 0 if self._columns_all_integer(*float_columns) else 8
        rows = []
        for j in util.truncate_rows(self.num_rows, limit):
            if j == -1:
                rows.append([f"__skipped__{self.num_rows - limit}"])
                continue
            row = self.row(j)
            cells = [str(j)]
            for col in columns:
                value = getattr(row, col.name)
                if col.kind == lowlevel.RAGGED:
                    cells.append(", ".join(str(v) for v in value))
                elif col.kind == lowlevel.TEXT:
                    cells.append(value)
                elif col.dtype == np.float64:
                    if util.is_unknown_time(value):
                        cells.append("unknown")
                    else:
                        cells.append(f"{value:.{dp}f}")
                else:
                    cells.append(str(int(value)))
            if self.kind.has_metadata:
                cells.append(util.render_metadata(row.metadata))
            rows.append(cells)
        return headers, rows

    def __str__(self):
        headers, rows = self._text_header_and_rows(
            limit=tstables._print_options["max_lines"]
        )
        return util.unicode_table(rows, header=headers, row_separator=False)


class TableView(BaseTable):
    """
    A read-only view of table storage owned by an :class:`OwnedTable` or a
    :class:`TableCollection`. Views are cheap: they hold a reference to the
    storage, a weak reference to its owner and the storage version seen when
    the view was created. Once the owner is garbage collected, or the storage
    is modified, cleared or freed, every access through the view raises
    :class:`BorrowError`; obtain a fresh view instead.
    """

    def __init__(self, ll_table, owner):
        self._ll_table = ll_table
        self._owner = weakref.ref(owner)
        self._version = ll_table.version

    @property
    def ll_table(self):
        if self._owner() is None:
            raise exceptions.BorrowError(
                f"The owner of this {self.kind.table_name} table view no longer exists"
            )
        if self._ll_table.is_freed or self._ll_table.version != self._version:
            raise exceptions.BorrowError(
                f"The {self.kind.table_name} table has been modified since this "
                "view was created"
            )
        return self._ll_table

    def is_valid(self) -> bool:
        """
        Returns True if this view can still be used.
        """
        try:
            self.ll_table
        except exceptions.BorrowError:
            return False
        return True

    def __setattr__(self, name, value):
        if name == "metadata" or self._attribute_column(name) is not None:
            raise exceptions.ImmutableTableError(
                f"Cannot set column {name}: {type(self).__name__} is a read-only view"
            )
        object.__setattr__(self, name, value)


class OwnedTable(BaseTable):
    """
    A table that exclusively owns its column storage. Owned tables are the
    only writers: rows are appended with ``add_row``, and the table can be
    cleared, truncated or have its columns replaced wholesale.

    Storage is released deterministically by :meth:`close` (or on leaving a
    ``with`` block); any use after that raises :class:`LibraryError`.
    """

    def __init__(self, max_rows_increment=0, ll_table=None):
        if ll_table is None:
            ll_table = lowlevel.Table(self.kind.schema, max_rows_increment)
        self._ll_table = ll_table

    @property
    def ll_table(self):
        return self._ll_table

    def __setattr__(self, name, value):
        column = self._attribute_column(name)
        if column is not None:
            d = self.asdict()
            d[column] = value
            self.set_columns(**d)
        elif name == "metadata":
            raise AttributeError(
                f"Cannot assign to metadata: set the {METADATA_COLUMN_ATTRIBUTE} "
                "column or call set_columns"
            )
        else:
            object.__setattr__(self, name, value)

    def _encode_metadata(self, value):
        return metadata.encode_metadata(value, self.metadata_schema)

    def _add_row(self, metadata=None, **payload):
        if self.kind.has_metadata:
            if metadata is not None:
                metadata = self._encode_metadata(metadata)
            payload["metadata"] = metadata
        return self.kind.id_class(self.ll_table.add_row(**payload))

    def add_row_with_metadata(self, *args, metadata, **kwargs):
        """
        Adds a new row, encoding ``metadata`` with its own ``encode`` method
        if it is a :class:`MetadataRoundtrip`, or else with the table's
        metadata schema. If encoding fails the row is not inserted.

        Accepts the same payload arguments as ``add_row``.

        :raises MetadataEncodingError: If the metadata cannot be encoded.
        """
        if not self.kind.has_metadata:
            raise TypeError(f"{type(self).__name__} rows do not have metadata")
        if metadata is None:
            raise TypeError("metadata is required; use add_row for rows without it")
        return self.add_row(*args, metadata=metadata, **kwargs)

    def clear(self, options=TableClearOptions.NONE):
        """
        Deletes all rows in this table. With CLEAR_METADATA_SCHEMAS the
        metadata schema is also reset to the null schema; other options have
        no effect on a single table.
        """
        options = TableClearOptions.from_bits(options)
        self.ll_table.clear()
        if self.kind.has_metadata and options.contains(
            TableClearOptions.CLEAR_METADATA_SCHEMAS
        ):
            self.ll_table.metadata_schema = repr(metadata.MetadataSchema.null())

    def truncate(self, num_rows):
        """
        Truncates this table so that the only the first ``num_rows`` are retained.

        :param int num_rows: The number of rows to retain in this table.
        """
        return self.ll_table.truncate(num_rows)

    def set_columns(self, **kwargs):
        """
        Sets the values for each column in this table using values provided
        in numpy arrays. Overwrites existing data in all the table columns.
        Ragged columns must be given together with their ``_offset`` column.
        """
        self.ll_table.set_columns(kwargs)

    def append_columns(self, **kwargs):
        """
        Appends the specified arrays to the end of the columns in this table.
        """
        self.ll_table.append_columns(kwargs)

    def view(self):
        """
        Returns a read-only :class:`TableView` of this table, valid until the
        table is next modified.
        """
        return VIEW_TABLE_CLASSES[self.kind.name](self.ll_table, self)

    def close(self):
        """
        Frees the storage held by this table.
        """
        self.ll_table.free()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # Pickle support
    def __getstate__(self):
        return self.asdict()

    # Unpickle support
    def __setstate__(self, state):
        self.__init__()
        self.set_columns(**state)


#
# Borrowed views
#


class IndividualTable(metadata.TableMetadataReader, TableView):
    """
    A read-only view of an individual table.

    :ivar flags: The array of flags values.
    :vartype flags: numpy.ndarray, dtype=np.uint32
    :ivar location: The flattened array of floating point location values.
    :vartype location: numpy.ndarray, dtype=np.float64
    :ivar location_offset: The offsets into the location column.
    :vartype location_offset: numpy.ndarray, dtype=np.uint64
    :ivar parents: The flattened array of parent individual ids.
    :vartype parents: numpy.ndarray, dtype=np.int32
    :ivar parents_offset: The offsets into the parents column.
    :vartype parents_offset: numpy.ndarray, dtype=np.uint64
    """

    kind = INDIVIDUAL


class NodeTable(metadata.TableMetadataReader, TableView):
    """
    A read-only view of a node table.

    :ivar time: The array of time values.
    :vartype time: numpy.ndarray, dtype=np.float64
    :ivar flags: The array of flags values.
    :vartype flags: numpy.ndarray, dtype=np.uint32
    :ivar population: The array of population IDs.
    :vartype population: numpy.ndarray, dtype=np.int32
    :ivar individual: The array of individual IDs that each node belongs to.
    :vartype individual: numpy.ndarray, dtype=np.int32
    """

    kind = NODE


class EdgeTable(metadata.TableMetadataReader, TableView):
    """
    A read-only view of an edge table.
    """

    kind = EDGE


class MigrationTable(metadata.TableMetadataReader, TableView):
    """
    A read-only view of a migration table.
    """

    kind = MIGRATION


class SiteTable(metadata.TableMetadataReader, TableView):
    """
    A read-only view of a site table.
    """

    kind = SITE


class MutationTable(metadata.TableMetadataReader, TableView):
    """
    A read-only view of a mutation table.
    """

    kind = MUTATION


class PopulationTable(metadata.TableMetadataReader, TableView):
    """
    A read-only view of a population table. Populations have no columns
    besides metadata.
    """

    kind = POPULATION


class ProvenanceTable(TableView):
    """
    A read-only view of a provenance table.
    """

    kind = PROVENANCE


#
# Owned tables
#


class OwnedIndividualTable(metadata.TableMetadataWriter, OwnedTable):
    """
    An owned table of individuals.
    """

    kind = INDIVIDUAL

    def add_row(self, flags=0, location=None, parents=None, metadata=None):
        """
        Adds a new row to this table and returns the ID of the corresponding
        individual.

        :param int flags: The bitwise flags for the new individual.
        :param array-like location: A list of numeric values or None denoting
            the location of this individual.
        :param array-like parents: A list of integers or None denoting the
            parent individual IDs of this individual.
        :param object metadata: Metadata for the new row; None stores none.
        :return: The ID of the newly added individual.
        :rtype: IndividualId
        """
        return self._add_row(
            flags=flags, location=location, parents=parents, metadata=metadata
        )

    def packset_location(self, locations):
        """
        Packs the specified list of location values and updates the
        ``location`` and ``location_offset`` columns.
        """
        packed, offset = util.pack_arrays(locations)
        d = self.asdict()
        d["location"] = packed
        d["location_offset"] = offset
        self.set_columns(**d)

    def packset_parents(self, parents):
        """
        Packs the specified list of parent values and updates the
        ``parents`` and ``parents_offset`` columns.
        """
        packed, offset = util.pack_arrays(parents, np.int32)
        d = self.asdict()
        d["parents"] = packed
        d["parents_offset"] = offset
        self.set_columns(**d)


class OwnedNodeTable(metadata.TableMetadataWriter, OwnedTable):
    """
    An owned table of nodes.
    """

    kind = NODE

    def add_row(self, flags=0, time=0, population=-1, individual=-1, metadata=None):
        """
        Adds a new row to this table and returns the ID of the corresponding
        node.

        :param int flags: The bitwise flags for the new node.
        :param float time: The birth time for the new node.
        :param int population: The ID of the population in which the new node was born.
            Defaults to :data:`tstables.NULL`.
        :param int individual: The ID of the individual in which the new node was born.
            Defaults to :data:`tstables.NULL`.
        :param object metadata: Metadata for the new row; None stores none.
        :return: The ID of the newly added node.
        :rtype: NodeId
        """
        return self._add_row(
            flags=flags,
            time=time,
            population=population,
            individual=individual,
            metadata=metadata,
        )


class OwnedEdgeTable(metadata.TableMetadataWriter, OwnedTable):
    """
    An owned table of edges.
    """

    kind = EDGE

    def add_row(self, left, right, parent, child, metadata=None):
        """
        Adds a new row to this table and returns the ID of the corresponding
        edge.

        :param float left: The left coordinate (inclusive).
        :param float right: The right coordinate (exclusive).
        :param int parent: The ID of parent node.
        :param int child: The ID of child node.
        :param object metadata: Metadata for the new row; None stores none.
        :return: The ID of the newly added edge.
        :rtype: EdgeId
        """
        return self._add_row(
            left=left, right=right, parent=parent, child=child, metadata=metadata
        )


class OwnedMigrationTable(metadata.TableMetadataWriter, OwnedTable):
    """
    An owned table of migrations.
    """

    kind = MIGRATION

    def add_row(self, left, right, node, source, dest, time, metadata=None):
        """
        Adds a new row to this table and returns the ID of the corresponding
        migration.

        :param float left: The left coordinate (inclusive).
        :param float right: The right coordinate (exclusive).
        :param int node: The node ID.
        :param int source: The ID of the source population.
        :param int dest: The ID of the destination population.
        :param float time: The time of the migration event.
        :param object metadata: Metadata for the new row; None stores none.
        :return: The ID of the newly added migration.
        :rtype: MigrationId
        """
        return self._add_row(
            left=left,
            right=right,
            node=node,
            source=source,
            dest=dest,
            time=time,
            metadata=metadata,
        )


class OwnedSiteTable(metadata.TableMetadataWriter, OwnedTable):
    """
    An owned table of sites.
    """

    kind = SITE

    def add_row(self, position, ancestral_state, metadata=None):
        """
        Adds a new row to this table and returns the ID of the corresponding
        site.

        :param float position: The position of this site in genome coordinates.
        :param str ancestral_state: The state of this site at the root of the tree.
        :param object metadata: Metadata for the new row; None stores none.
        :return: The ID of the newly added site.
        :rtype: SiteId
        """
        return self._add_row(
            position=position, ancestral_state=ancestral_state, metadata=metadata
        )

    def packset_ancestral_state(self, ancestral_states):
        packed, offset = util.pack_strings(ancestral_states)
        d = self.asdict()
        d["ancestral_state"] = packed
        d["ancestral_state_offset"] = offset
        self.set_columns(**d)


class OwnedMutationTable(metadata.TableMetadataWriter, OwnedTable):
    """
    An owned table of mutations.
    """

    kind = MUTATION

    def add_row(self, site, node, derived_state, parent=-1, metadata=None, time=None):
        """
        Adds a new row to this table and returns the ID of the corresponding
        mutation.

        :param int site: The ID of the site that this mutation occurs at.
        :param int node: The ID of the first node inheriting this mutation.
        :param str derived_state: The state of the site at this mutation's node.
        :param int parent: The ID of the parent mutation. If not specified,
            defaults to :attr:`NULL`.
        :param object metadata: Metadata for the new row; None stores none.
        :param float time: The occurrence time for the new mutation. If not
            specified, defaults to ``UNKNOWN_TIME``.
        :return: The ID of the newly added mutation.
        :rtype: MutationId
        """
        return self._add_row(
            site=site,
            node=node,
            derived_state=derived_state,
            parent=parent,
            time=tstables.UNKNOWN_TIME if time is None else time,
            metadata=metadata,
        )

    def packset_derived_state(self, derived_states):
        packed, offset = util.pack_strings(derived_states)
        d = self.asdict()
        d["derived_state"] = packed
        d["derived_state_offset"] = offset
        self.set_columns(**d)


class OwnedPopulationTable(metadata.TableMetadataWriter, OwnedTable):
    """
    An owned table of populations.
    """

    kind = POPULATION

    def add_row(self, metadata=None):
        """
        Adds a new row to this table and returns the ID of the corresponding
        population.

        :param object metadata: Metadata for the new row; None stores none.
        :return: The ID of the newly added population.
        :rtype: PopulationId
        """
        return self._add_row(metadata=metadata)


class OwnedProvenanceTable(OwnedTable):
    """
    An owned table of provenance records.
    """

    kind = PROVENANCE

    def add_row(self, record, timestamp=None):
        """
        Adds a new row to this table and returns the ID of the corresponding
        provenance record.

        :param str record: A provenance record, describing the software
            and parameters used to create the tables.
        :param str timestamp: An ISO format timestamp; defaults to the
            current time.
        :return: The ID of the newly added record.
        :rtype: ProvenanceId
        """
        if timestamp is None:
            timestamp = datetime.datetime.now().isoformat()
        return self._add_row(timestamp=timestamp, record=record)

    def packset_record(self, records):
        packed, offset = util.pack_strings(records)
        d = self.asdict()
        d["record"] = packed
        d["record_offset"] = offset
        self.set_columns(**d)

    def packset_timestamp(self, timestamps):
        packed, offset = util.pack_strings(timestamps)
        d = self.asdict()
        d["timestamp"] = packed
        d["timestamp_offset"] = offset
        self.set_columns(**d)


VIEW_TABLE_CLASSES = {
    cls.kind.name: cls
    for cls in [
        IndividualTable,
        NodeTable,
        EdgeTable,
        MigrationTable,
        SiteTable,
        MutationTable,
        PopulationTable,
        ProvenanceTable,
    ]
}

OWNED_TABLE_CLASSES = {
    cls.kind.name: cls
    for cls in [
        OwnedIndividualTable,
        OwnedNodeTable,
        OwnedEdgeTable,
        OwnedMigrationTable,
        OwnedSiteTable,
        OwnedMutationTable,
        OwnedPopulationTable,
        OwnedProvenanceTable,
    ]
}


class TableCollection(metadata.MetadataProvider):
    """
    A collection of mutable tables defining a tree sequence. The tables are
    owned by the collection: the table properties (``tables.nodes`` and so
    on) return fresh borrowed views, and rows are added through the
    ``add_<kind>`` methods. Assigning a table to one of the properties
    replaces the collection's table with a copy of it.

    :param float sequence_length: The sequence length of the tables.
    """

    def __init__(self, sequence_length=0, *, ll_tables=None):
        if ll_tables is None:
            ll_tables = lowlevel.TableCollection(sequence_length)
        self._ll_tables = ll_tables
        super().__init__(ll_tables)

    def _view(self, kind):
        return VIEW_TABLE_CLASSES[kind.name](self._ll_tables.tables[kind.table_name], self)

    def _writer(self, kind):
        return OWNED_TABLE_CLASSES[kind.name](ll_table=self._ll_tables.tables[kind.table_name])

    def _replace(self, kind, table):
        if not isinstance(table, BaseTable) or table.kind is not kind:
            raise TypeError(f"Can only assign a {kind.name} table, not {type(table)}")
        logger.debug("Replacing %s table with %d rows", kind.table_name, table.num_rows)
        self._ll_tables.tables[kind.table_name].set_columns(table.asdict())

    @property
    def individuals(self) -> IndividualTable:
        """
        A view of the individual table in this collection.
        """
        return self._view(INDIVIDUAL)

    @individuals.setter
    def individuals(self, table):
        self._replace(INDIVIDUAL, table)

    @property
    def nodes(self) -> NodeTable:
        """
        A view of the node table in this collection.
        """
        return self._view(NODE)

    @nodes.setter
    def nodes(self, table):
        self._replace(NODE, table)

    @property
    def edges(self) -> EdgeTable:
        """
        A view of the edge table in this collection.
        """
        return self._view(EDGE)

    @edges.setter
    def edges(self, table):
        self._replace(EDGE, table)

    @property
    def migrations(self) -> MigrationTable:
        """
        A view of the migration table in this collection.
        """
        return self._view(MIGRATION)

    @migrations.setter
    def migrations(self, table):
        self._replace(MIGRATION, table)

    @property
    def sites(self) -> SiteTable:
        """
        A view of the site table in this collection.
        """
        return self._view(SITE)

    @sites.setter
    def sites(self, table):
        self._replace(SITE, table)

    @property
    def mutations(self) -> MutationTable:
        """
        A view of the mutation table in this collection.
        """
        return self._view(MUTATION)

    @mutations.setter
    def mutations(self, table):
        self._replace(MUTATION, table)

    @property
    def populations(self) -> PopulationTable:
        """
        A view of the population table in this collection.
        """
        return self._view(POPULATION)

    @populations.setter
    def populations(self, table):
        self._replace(POPULATION, table)

    @property
    def provenances(self) -> ProvenanceTable:
        """
        A view of the provenance table in this collection.
        """
        return self._view(PROVENANCE)

    @provenances.setter
    def provenances(self, table):
        self._replace(PROVENANCE, table)

    def add_individual(self, *args, **kwargs):
        return self._writer(INDIVIDUAL).add_row(*args, **kwargs)

    def add_individual_with_metadata(self, *args, **kwargs):
        return self._writer(INDIVIDUAL).add_row_with_metadata(*args, **kwargs)

    def add_node(self, *args, **kwargs):
        return self._writer(NODE).add_row(*args, **kwargs)

    def add_node_with_metadata(self, *args, **kwargs):
        return self._writer(NODE).add_row_with_metadata(*args, **kwargs)

    def add_edge(self, *args, **kwargs):
        return self._writer(EDGE).add_row(*args, **kwargs)

    def add_edge_with_metadata(self, *args, **kwargs):
        return self._writer(EDGE).add_row_with_metadata(*args, **kwargs)

    def add_migration(self, *args, **kwargs):
        return self._writer(MIGRATION).add_row(*args, **kwargs)

    def add_migration_with_metadata(self, *args, **kwargs):
        return self._writer(MIGRATION).add_row_with_metadata(*args, **kwargs)

    def add_site(self, *args, **kwargs):
        return self._writer(SITE).add_row(*args, **kwargs)

    def add_site_with_metadata(self, *args, **kwargs):
        return self._writer(SITE).add_row_with_metadata(*args, **kwargs)

    def add_mutation(self, *args, **kwargs):
        return self._writer(MUTATION).add_row(*args, **kwargs)

    def add_mutation_with_metadata(self, *args, **kwargs):
        return self._writer(MUTATION).add_row_with_metadata(*args, **kwargs)

    def add_population(self, *args, **kwargs):
        return self._writer(POPULATION).add_row(*args, **kwargs)

    def add_population_with_metadata(self, *args, **kwargs):
        return self._writer(POPULATION).add_row_with_metadata(*args, **kwargs)

    def add_provenance(self, *args, **kwargs):
        return self._writer(PROVENANCE).add_row(*args, **kwargs)

    def set_metadata_schema(self, table_name, schema):
        """
        Sets the metadata schema of the named table (e.g. ``"nodes"``).
        """
        if not isinstance(schema, metadata.MetadataSchema):
            raise TypeError(
                "Only instances of tstables.MetadataSchema can be assigned to "
                f"metadata_schema, not {type(schema)}"
            )
        if table_name not in self.table_name_map or table_name == "provenances":
            raise ValueError(f"No table with metadata called {table_name}")
        self._ll_tables.tables[table_name].metadata_schema = repr(schema)

    @property
    def nbytes(self) -> int:
        """
        Returns the total number of bytes required to store the data
        in this table collection. Note that this may not be equal to
        the actual memory footprint.
        """
        return sum(
            (
                8,  # sequence_length takes 8 bytes
                len(self.metadata_bytes),
                len(repr(self.metadata_schema).encode()),
                len(self.time_units.encode()),
                self.indexes.nbytes,
                sum(table.nbytes for table in self.table_name_map.values()),
            )
        )

    @property
    def table_name_map(self) -> Dict:
        """
        Returns a dictionary mapping table names to views of the
        corresponding tables.
        """
        return {kind.table_name: self._view(kind) for kind in TABLE_KINDS}

    @property
    def sequence_length(self) -> float:
        """
        The sequence length defining the coordinate space.
        """
        return self._ll_tables.sequence_length

    @sequence_length.setter
    def sequence_length(self, sequence_length):
        self._ll_tables.sequence_length = float(sequence_length)

    @property
    def time_units(self) -> str:
        """
        The units used for the time dimension.
        """
        return self._ll_tables.time_units

    @time_units.setter
    def time_units(self, time_units: str):
        if not isinstance(time_units, str):
            raise TypeError("time_units must be a string")
        self._ll_tables.time_units = time_units

    @property
    def indexes(self) -> TableCollectionIndexes:
        """
        The edge insertion and removal indexes.
        """
        if not self.has_index():
            return TableCollectionIndexes()
        return TableCollectionIndexes(
            edge_insertion_order=self._ll_tables.edge_insertion_order,
            edge_removal_order=self._ll_tables.edge_removal_order,
        )

    @indexes.setter
    def indexes(self, indexes):
        self._ll_tables.set_indexes(
            indexes.edge_insertion_order, indexes.edge_removal_order
        )

    def has_index(self) -> bool:
        """
        Returns True if this TableCollection is indexed.
        """
        return self._ll_tables.has_index()

    def build_index(self):
        """
        Builds an index on this TableCollection. Any existing indexes are
        automatically dropped.
        """
        self._ll_tables.build_index()

    def drop_index(self):
        """
        Drops any indexes present on this table collection. If the tables
        are not currently indexed this method has no effect.
        """
        self._ll_tables.drop_index()

    def clear(self, options=TableClearOptions.NONE):
        """
        Remove all rows of the data tables, and drop the indexes. Provenance
        rows, metadata schemas and the top-level metadata are kept unless the
        corresponding option is given.

        :param TableClearOptions options: CLEAR_PROVENANCE,
            CLEAR_METADATA_SCHEMAS and/or CLEAR_TS_METADATA_SCHEMAS.
        """
        options = TableClearOptions.from_bits(options)
        self._ll_tables.clear(
            clear_provenance=options.contains(TableClearOptions.CLEAR_PROVENANCE),
            clear_metadata_schemas=options.contains(
                TableClearOptions.CLEAR_METADATA_SCHEMAS
            ),
            clear_ts_metadata_and_schema=options.contains(
                TableClearOptions.CLEAR_TS_METADATA_SCHEMAS
            ),
        )

    def equals(self, other, options=TableEqualityOptions.NONE):
        """
        Returns True if `self` and `other` are equal. By default, two table
        collections are considered equal if their tables, sequence lengths,
        time units, metadata and metadata schemas are byte-for-byte
        identical. Indexes are not considered.

        :param TableEqualityOptions options: IGNORE_METADATA,
            IGNORE_TS_METADATA, IGNORE_PROVENANCE and IGNORE_TIMESTAMPS each
            exclude what they name from the comparison.
        :rtype: bool
        """
        if not isinstance(other, TableCollection):
            return False
        options = TableEqualityOptions.from_bits(options)
        return self._ll_tables.equals(
            other._ll_tables,
            ignore_metadata=options.contains(TableEqualityOptions.IGNORE_METADATA),
            ignore_ts_metadata=options.contains(TableEqualityOptions.IGNORE_TS_METADATA),
            ignore_provenance=options.contains(TableEqualityOptions.IGNORE_PROVENANCE),
            ignore_timestamps=options.contains(TableEqualityOptions.IGNORE_TIMESTAMPS),
        )

    def assert_equals(self, other, options=TableEqualityOptions.NONE):
        """
        Raise an AssertionError for the first found difference between
        this and another TableCollection.
        """
        if type(self) is not type(other):
            raise AssertionError(f"Types differ: self={type(self)} other={type(other)}")

        # Check using the low-level method to avoid slowly going through everything
        if self.equals(other, options):
            return

        options = TableEqualityOptions.from_bits(options)
        ignore_metadata = options.contains(TableEqualityOptions.IGNORE_METADATA)
        if not (
            ignore_metadata or options.contains(TableEqualityOptions.IGNORE_TS_METADATA)
        ):
            super().assert_equals(other)

        if self.sequence_length != other.sequence_length:
            raise AssertionError(
                f"Sequence Length Differs: self={self.sequence_length} "
                f"other={other.sequence_length}"
            )
        if self.time_units != other.time_units:
            raise AssertionError(
                f"Time units differs: self={self.time_units} "
                f"other={other.time_units}"
            )

        table_options = options & (
            TableEqualityOptions.IGNORE_METADATA | TableEqualityOptions.IGNORE_TIMESTAMPS
        )
        for kind in TABLE_KINDS:
            if kind is PROVENANCE and options.contains(
                TableEqualityOptions.IGNORE_PROVENANCE
            ):
                continue
            self._view(kind).assert_equals(other._view(kind), table_options)

    def __eq__(self, other):
        return self.equals(other)

    __hash__ = None

    def check_integrity(self, flags=TableIntegrityCheckFlags.NONE):
        """
        Checks the integrity of this table collection: references between
        tables must be in bounds, coordinates must lie within the sequence,
        and parents must be older than their children. The ordering,
        duplicate-site and index checks are run when requested by ``flags``;
        CHECK_TREES implies all of them except individual ordering.

        :param TableIntegrityCheckFlags flags: Additional checks to run.
        :raises TableIntegrityError: describing the first problem found.
        """
        flags = TableIntegrityCheckFlags.from_bits(flags)
        self._ll_tables.check_integrity(flags.bits)

    def dump(self, file_or_path, options=TableOutputOptions.NONE):
        """
        Writes the table collection to the specified path or file object.

        :param str file_or_path: The file object or path to write to.
        :param TableOutputOptions options: Output options; none are currently
            defined.
        """
        options = TableOutputOptions.from_bits(options)
        if not options.is_valid():
            raise ValueError(f"Unknown output options: {options.bits:#x}")
        file, local_file = util.convert_file_like_to_open_file(file_or_path, "wb")
        try:
            self._ll_tables.dump(file)
        finally:
            if local_file:
                file.close()

    @classmethod
    def load(cls, file_or_path):
        """
        Reads a table collection from the specified path or file object.

        :raises FileFormatError: If the file is not a readable table collection.
        """
        file, local_file = util.convert_file_like_to_open_file(file_or_path, "rb")
        try:
            ll_tables = lowlevel.TableCollection.load(file)
        finally:
            if local_file:
                file.close()
        return cls(ll_tables=ll_tables)

    def copy(self):
        """
        Returns a deep copy of this TableCollection.

        :return: A deep copy of this TableCollection.
        :rtype: tstables.TableCollection
        """
        return TableCollection(ll_tables=self._ll_tables.copy())

    def asdict(self):
        """
        Returns the nested dictionary representation of this TableCollection.
        """
        ret = {
            "sequence_length": self.sequence_length,
            "time_units": self.time_units,
            "metadata_schema": repr(self.metadata_schema),
            "metadata": self.metadata_bytes,
        }
        for kind in TABLE_KINDS:
            ret[kind.table_name] = self._view(kind).asdict()
        ret["indexes"] = self.indexes.asdict()
        return ret

    def __str__(self):
        out = [f"Sequence length: {self.sequence_length}", f"Time units: {self.time_units}"]
        for kind in TABLE_KINDS:
            out.append(f"{kind.table_name.capitalize()}")
            out.append(str(self._view(kind)))
        return "\n".join(out)
