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
Tests for the column storage layer.
"""
import numpy as np
import pytest

import tstables
import tstables.exceptions as exceptions
import tstables.lowlevel as lowlevel


def node_table(num_rows=0, **kwargs):
    table = lowlevel.Table(lowlevel.NODE_SCHEMA, **kwargs)
    for j in range(num_rows):
        table.add_row(flags=0, time=j, metadata=None if j % 2 else b"x" * j)
    return table


class TestConstants:
    def test_unknown_time(self):
        assert np.isnan(lowlevel.UNKNOWN_TIME)
        bits = np.array([lowlevel.UNKNOWN_TIME]).view(np.uint64)[0]
        assert bits == 0x7FF80000000001A2
        assert tstables.is_unknown_time(lowlevel.UNKNOWN_TIME)
        assert not tstables.is_unknown_time(np.nan)

    def test_exported(self):
        assert tstables.NULL == -1
        assert tstables.NODE_IS_SAMPLE == 1
        assert tstables.UNKNOWN_TIME is lowlevel.UNKNOWN_TIME


class TestSchemas:
    def test_column_names(self):
        assert lowlevel.SITE_SCHEMA.column_names == [
            "position",
            "ancestral_state",
            "ancestral_state_offset",
            "metadata",
            "metadata_offset",
            "metadata_present",
        ]
        assert lowlevel.PROVENANCE_SCHEMA.column_names == [
            "timestamp",
            "timestamp_offset",
            "record",
            "record_offset",
        ]

    def test_population_schema(self):
        assert lowlevel.POPULATION_SCHEMA.column_names == [
            "metadata",
            "metadata_offset",
            "metadata_present",
        ]


class TestTableConstruction:
    @pytest.mark.parametrize("bad", [1.5, "1", None, True])
    def test_bad_increment_type(self, bad):
        with pytest.raises(TypeError):
            lowlevel.Table(lowlevel.NODE_SCHEMA, max_rows_increment=bad)

    def test_negative_increment(self):
        with pytest.raises(ValueError):
            lowlevel.Table(lowlevel.NODE_SCHEMA, max_rows_increment=-1)

    def test_empty(self):
        table = node_table()
        assert table.num_rows == 0
        assert table.max_rows >= 1
        assert table.metadata_schema == ""
        assert table.version == 0
        assert not table.is_freed

    @pytest.mark.parametrize("increment", [0, 1, 3, 1024])
    def test_growth(self, increment):
        table = node_table(100, max_rows_increment=increment)
        assert table.num_rows == 100
        assert table.max_rows >= 100
        assert np.array_equal(table.column("time"), np.arange(100))


class TestAddRow:
    def test_defaults(self):
        table = node_table()
        assert table.add_row(flags=1, time=2.5) == 0
        assert table.get_row(0) == (1, 2.5, -1, -1, None)

    def test_metadata_absent_and_empty(self):
        table = node_table()
        table.add_row(flags=0, time=0)
        table.add_row(flags=0, time=0, metadata=b"")
        table.add_row(flags=0, time=0, metadata=b"abc")
        assert table.get_metadata(0) is None
        assert table.get_metadata(1) == b""
        assert table.get_metadata(2) == b"abc"
        assert table.metadata_range(0) is None
        assert table.metadata_range(1) == (0, 0)
        assert table.metadata_range(2) == (0, 3)
        assert list(table.column("metadata_present")) == [False, True, True]

    def test_ragged_columns(self):
        table = lowlevel.Table(lowlevel.INDIVIDUAL_SCHEMA)
        table.add_row(flags=0, location=[1.0, 2.0], parents=[])
        table.add_row(flags=0, location=None, parents=[0])
        assert list(table.column("location_offset")) == [0, 2, 2]
        assert list(table.column("parents_offset")) == [0, 0, 1]
        flags, location, parents, md = table.get_row(0)
        assert list(location) == [1.0, 2.0]
        assert len(parents) == 0

    def test_text_columns(self):
        table = lowlevel.Table(lowlevel.SITE_SCHEMA)
        table.add_row(position=0, ancestral_state="Aé")
        assert table.get_row(0) == (0.0, "Aé", None)
        assert table.column("ancestral_state").dtype == np.int8
        assert table.column("ancestral_state_offset")[-1] == 3

    def test_unknown_column(self):
        table = node_table()
        with pytest.raises(TypeError, match="Unknown columns"):
            table.add_row(flags=0, time=0, colour="red")

    @pytest.mark.parametrize(
        "kwargs",
        [
            dict(flags="1", time=0),
            dict(flags=0, time=None),
            dict(flags=0, time=[1, 2]),
            dict(flags=-1, time=0),
            dict(flags=0, time=0, population=2**40),
            dict(flags=0, time=0, metadata="not bytes"),
        ],
    )
    def test_bad_values_leave_table_unchanged(self, kwargs):
        table = node_table(3)
        version = table.version
        before = table.asdict()
        with pytest.raises((TypeError, ValueError)):
            table.add_row(**kwargs)
        assert table.num_rows == 3
        assert table.version == version
        after = table.asdict()
        for name, value in before.items():
            if name == "metadata_schema":
                assert after[name] == value
            else:
                assert np.array_equal(after[name], value)

    def test_version_increments(self):
        table = node_table()
        table.add_row(flags=0, time=0)
        assert table.version == 1
        table.add_row(flags=0, time=0)
        assert table.version == 2


class TestRowAccess:
    @pytest.mark.parametrize("index", [-1, 5, 100])
    def test_out_of_bounds(self, index):
        table = node_table(5)
        with pytest.raises(exceptions.LibraryError, match="out of bounds"):
            table.get_row(index)
        with pytest.raises(exceptions.LibraryError):
            table.metadata_range(index)

    @pytest.mark.parametrize("index", [0.5, "0", True, None])
    def test_bad_index_type(self, index):
        table = node_table(5)
        with pytest.raises(TypeError):
            table.get_row(index)

    def test_numpy_index(self):
        table = node_table(5)
        assert table.get_row(np.int64(3))[1] == 3

    def test_no_metadata_column(self):
        table = lowlevel.Table(lowlevel.PROVENANCE_SCHEMA)
        table.add_row(timestamp="t", record="r")
        assert table.get_row(0) == ("t", "r")
        with pytest.raises(exceptions.LibraryError):
            table.metadata_range(0)


class TestColumnAccess:
    def test_copy(self):
        table = node_table(3)
        time = table.column("time")
        time[:] = 100
        assert list(table.column("time")) == [0, 1, 2]

    def test_view_is_read_only(self):
        table = node_table(3)
        time = table.column("time", copy=False)
        assert not time.flags.writeable
        with pytest.raises(ValueError):
            time[0] = 100

    def test_unknown_column(self):
        with pytest.raises(KeyError):
            node_table().column("colour")


class TestSetColumns:
    def test_replace(self):
        table = node_table(5)
        table.set_columns({"flags": [1, 2], "time": [0.5, 1.5]})
        assert table.num_rows == 2
        assert list(table.column("population")) == [-1, -1]
        assert table.get_metadata(0) is None

    def test_metadata_columns(self):
        table = node_table()
        table.set_columns(
            {
                "flags": [0, 0],
                "time": [0, 0],
                "metadata": np.array([97, 98], dtype=np.int8),
                "metadata_offset": [0, 2, 2],
            }
        )
        assert table.get_metadata(0) == b"ab"
        assert table.get_metadata(1) == b""
        table.set_columns(
            {
                "flags": [0, 0],
                "time": [0, 0],
                "metadata": np.array([97, 98], dtype=np.int8),
                "metadata_offset": [0, 2, 2],
                "metadata_present": [True, False],
            }
        )
        assert table.get_metadata(1) is None

    def test_metadata_schema(self):
        table = node_table()
        table.set_columns({"flags": [], "time": [], "metadata_schema": '{"codec":"json"}'})
        assert table.metadata_schema == '{"codec":"json"}'

    @pytest.mark.parametrize("columns", [None, [1, 2], "flags"])
    def test_not_a_mapping(self, columns):
        with pytest.raises(TypeError):
            node_table().set_columns(columns)

    def test_missing_required(self):
        with pytest.raises(TypeError, match="time is required"):
            node_table().set_columns({"flags": [0]})

    def test_unknown_column(self):
        with pytest.raises(TypeError, match="Unknown columns"):
            node_table().set_columns({"flags": [0], "time": [0], "colour": [0]})

    def test_ragged_pair_required(self):
        table = lowlevel.Table(lowlevel.SITE_SCHEMA)
        with pytest.raises(TypeError, match="together"):
            table.set_columns({"position": [0], "ancestral_state": [65]})

    @pytest.mark.parametrize(
        "offset",
        [[], [1, 1], [0, 2, 1], [0, 1, 5]],
    )
    def test_bad_offsets(self, offset):
        table = lowlevel.Table(lowlevel.SITE_SCHEMA)
        with pytest.raises(ValueError):
            table.set_columns(
                {
                    "position": [0, 1],
                    "ancestral_state": np.array([65, 66], dtype=np.int8),
                    "ancestral_state_offset": offset,
                }
            )

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="rows"):
            node_table().set_columns({"flags": [0, 0], "time": [0]})

    def test_two_dimensional(self):
        with pytest.raises(ValueError):
            node_table().set_columns({"flags": [[0]], "time": [[0]]})

    def test_failure_leaves_table_unchanged(self):
        table = node_table(4)
        before = table.column("time")
        with pytest.raises(ValueError):
            table.set_columns({"flags": [0, 0], "time": [0]})
        assert table.num_rows == 4
        assert np.array_equal(table.column("time"), before)

    def test_append(self):
        table = lowlevel.Table(lowlevel.SITE_SCHEMA)
        table.add_row(position=0, ancestral_state="A", metadata=b"m")
        table.append_columns(
            {
                "position": [1, 2],
                "ancestral_state": np.array([66, 67, 67], dtype=np.int8),
                "ancestral_state_offset": [0, 1, 3],
            }
        )
        assert table.num_rows == 3
        assert table.get_row(0) == (0.0, "A", b"m")
        assert table.get_row(2) == (2.0, "CC", None)
        assert list(table.column("ancestral_state_offset")) == [0, 1, 2, 4]


class TestClearTruncate:
    def test_clear(self):
        table = node_table(5)
        table.metadata_schema = '{"codec":"json"}'
        version = table.version
        table.clear()
        assert table.num_rows == 0
        assert table.version == version + 1
        assert table.metadata_schema == '{"codec":"json"}'
        assert list(table.column("metadata_offset")) == [0]

    def test_truncate(self):
        table = node_table(5)
        table.truncate(2)
        assert table.num_rows == 2
        assert table.get_row(1) == (0, 1.0, -1, -1, None)
        assert list(table.column("metadata_offset")) == [0, 0, 0]

    @pytest.mark.parametrize("num_rows", [-1, 6])
    def test_truncate_bad_value(self, num_rows):
        with pytest.raises(ValueError):
            node_table(5).truncate(num_rows)

    @pytest.mark.parametrize("num_rows", [1.0, "1", None])
    def test_truncate_bad_type(self, num_rows):
        with pytest.raises(TypeError):
            node_table(5).truncate(num_rows)


class TestEqualsCopy:
    def test_copy_equal(self):
        table = node_table(5)
        copy = table.copy()
        assert copy is not table
        assert table.equals(copy)
        copy.add_row(flags=0, time=0)
        assert not table.equals(copy)

    def test_metadata_presence_compared(self):
        t1 = node_table()
        t2 = node_table()
        t1.add_row(flags=0, time=0)
        t2.add_row(flags=0, time=0, metadata=b"")
        assert not t1.equals(t2)
        assert t1.equals(t2, ignore_metadata=True)

    def test_metadata_schema_compared(self):
        t1 = node_table(2)
        t2 = node_table(2)
        t2.metadata_schema = '{"codec":"json"}'
        assert not t1.equals(t2)
        assert t1.equals(t2, ignore_metadata=True)

    def test_unknown_times_equal(self):
        t1 = lowlevel.Table(lowlevel.MUTATION_SCHEMA)
        t2 = lowlevel.Table(lowlevel.MUTATION_SCHEMA)
        for t in [t1, t2]:
            t.add_row(site=0, node=0, derived_state="A")
        assert t1.equals(t2)

    def test_different_schemas(self):
        assert not node_table().equals(lowlevel.Table(lowlevel.EDGE_SCHEMA))

    def test_bad_type(self):
        with pytest.raises(TypeError):
            node_table().equals(None)


class TestFree:
    def test_free(self):
        table = node_table(5)
        version = table.version
        table.free()
        assert table.is_freed
        assert table.version == version + 1
        # Freeing twice is harmless
        table.free()

    @pytest.mark.parametrize(
        "func",
        [
            lambda t: t.num_rows,
            lambda t: t.max_rows,
            lambda t: t.get_row(0),
            lambda t: t.column("time"),
            lambda t: t.add_row(flags=0, time=0),
            lambda t: t.clear(),
            lambda t: t.truncate(0),
            lambda t: t.asdict(),
            lambda t: t.copy(),
        ],
    )
    def test_use_after_free(self, func):
        table = node_table(5)
        table.free()
        with pytest.raises(exceptions.LibraryError, match="freed"):
            func(table)


class TestCollection:
    def test_defaults(self):
        tables = lowlevel.TableCollection(5)
        assert tables.sequence_length == 5.0
        assert tables.time_units == "unknown"
        assert tables.metadata == b""
        assert tables.metadata_schema == ""
        assert not tables.has_index()
        assert set(tables.tables) == {
            schema.name for schema in lowlevel.TableCollection.table_schemas
        }
        assert tables.nodes is tables.tables["nodes"]
        with pytest.raises(AttributeError):
            tables.trees

    def test_set_indexes(self):
        tables = lowlevel.TableCollection(5)
        tables.nodes.add_row(flags=0, time=0)
        tables.nodes.add_row(flags=0, time=1)
        tables.edges.add_row(left=0, right=5, parent=1, child=0)
        with pytest.raises(TypeError):
            tables.set_indexes([0], None)
        with pytest.raises(ValueError):
            tables.set_indexes([0, 1], [0, 1])
        tables.set_indexes([0], [0])
        assert tables.has_index()
        # Adding an edge invalidates the index
        tables.edges.add_row(left=0, right=5, parent=1, child=0)
        assert not tables.has_index()
        tables.set_indexes(None, None)
        assert tables.edge_insertion_order is None

    def test_build_index_bad_edges(self):
        tables = lowlevel.TableCollection(5)
        tables.edges.add_row(left=0, right=5, parent=1, child=0)
        with pytest.raises(exceptions.LibraryError):
            tables.build_index()

    def test_asdict_keys(self):
        tables = lowlevel.TableCollection(5)
        data = tables.asdict()
        assert "format/name" in data
        assert "nodes/metadata_present" in data
        assert "nodes/metadata_schema" in data
        assert "provenances/metadata_schema" not in data
        assert "indexes/edge_insertion_order" not in data
        assert data["nodes/metadata_present"].dtype == np.uint8

    def test_fromdict_roundtrip(self):
        tables = lowlevel.TableCollection(5)
        tables.nodes.add_row(flags=1, time=0, metadata=b"")
        tables.sites.add_row(position=1, ancestral_state="A")
        tables.metadata = b"abc"
        other = lowlevel.TableCollection.fromdict(tables.asdict())
        assert tables.equals(other)
        assert other.nodes.get_metadata(0) == b""

    def test_fromdict_bad_format_name(self):
        data = lowlevel.TableCollection(1).asdict()
        data["format/name"] = np.frombuffer(b"other", dtype=np.int8)
        with pytest.raises(exceptions.FileFormatError, match="not a tstables file"):
            lowlevel.TableCollection.fromdict(data)

    def test_fromdict_bad_version(self):
        data = lowlevel.TableCollection(1).asdict()
        data["format/version"] = np.array([2, 0], dtype=np.uint32)
        with pytest.raises(exceptions.FileFormatError, match="version"):
            lowlevel.TableCollection.fromdict(data)

    def test_fromdict_malformed(self):
        data = lowlevel.TableCollection(1).asdict()
        data["nodes/time"] = np.zeros(3)
        with pytest.raises(exceptions.FileFormatError, match="Malformed"):
            lowlevel.TableCollection.fromdict(data)
