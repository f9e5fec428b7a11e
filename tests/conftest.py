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
Configuration and fixtures for pytest. Only put test-suite wide fixtures in here. Module
specific fixtures should live in their modules.

To use a fixture in a test simply refer to it by name as an argument. Note that all
fixtures should have the suffix "_fixture" to make it clear in test code.

For example to use the `tables` fixture (a table collection with data in all tables):

class TestClass:
    def test_something(self, tables_fixture):
        assert tables_fixture.some_method() == expected
"""
import pytest
from pytest import fixture

import tstables
from . import tsutil


@fixture
def tables_fixture():
    """
    A table collection with data in all tables. Tables are mutable, so a
    fresh copy is made for each test.
    """
    return tsutil.example_tables()


@fixture
def indexed_tables_fixture(tables_fixture):
    tables_fixture.build_index()
    return tables_fixture


@fixture
def print_options_fixture():
    """
    Restores the default print options after the test.
    """
    yield tstables._print_options
    tstables.set_print_options(max_lines=40)


@fixture(params=[kind.name for kind in tstables.tables.TABLE_KINDS])
def owned_table_fixture(request):
    """
    An owned table of each kind holding its example rows.
    """
    table = tstables.tables.OWNED_TABLE_CLASSES[request.param]()
    tsutil.add_example_rows(table)
    return table


@pytest.fixture
def json_schema_fixture():
    return tstables.MetadataSchema(
        {
            "codec": "json",
            "type": "object",
            "properties": {"x": {"type": "integer"}},
            "required": ["x"],
        }
    )
