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
Tests for the typed row identifiers.
"""
import pickle

import pytest

import tstables
import tstables.ids as ids


ID_CLASSES = [
    ids.IndividualId,
    ids.NodeId,
    ids.EdgeId,
    ids.MigrationId,
    ids.SiteId,
    ids.MutationId,
    ids.PopulationId,
    ids.ProvenanceId,
]


@pytest.mark.parametrize("cls", ID_CLASSES)
class TestRowIds:
    def test_int_behaviour(self, cls):
        row_id = cls(5)
        assert isinstance(row_id, int)
        assert isinstance(row_id, ids.RowId)
        assert row_id == 5
        assert hash(row_id) == hash(5)
        assert row_id + 1 == 6
        assert list(range(10))[row_id] == 5

    def test_repr(self, cls):
        assert repr(cls(3)) == f"{cls.__name__}(3)"

    def test_is_null(self, cls):
        assert cls(tstables.NULL).is_null()
        assert not cls(0).is_null()

    def test_no_instance_dict(self, cls):
        with pytest.raises(AttributeError):
            cls(0).label = "x"

    def test_pickle(self, cls):
        row_id = pickle.loads(pickle.dumps(cls(7)))
        assert type(row_id) is cls
        assert row_id == 7


class TestIdsFromTables:
    def test_row_field_types(self, tables_fixture):
        node = tables_fixture.nodes.row(0)
        assert type(node.id) is ids.NodeId
        assert type(node.population) is ids.PopulationId
        assert type(node.individual) is ids.IndividualId
        edge = tables_fixture.edges.row(0)
        assert type(edge.parent) is ids.NodeId
        mutation = tables_fixture.mutations.row(0)
        assert type(mutation.site) is ids.SiteId
        assert mutation.parent.is_null()

    def test_ids_select_tables(self, tables_fixture):
        edge = tables_fixture.edges.row(ids.EdgeId(0))
        assert tables_fixture.nodes.row(edge.parent).time == 1
        with pytest.raises(TypeError):
            tables_fixture.nodes.row(ids.EdgeId(0))
        with pytest.raises(TypeError):
            tables_fixture.populations.metadata(edge.child)
