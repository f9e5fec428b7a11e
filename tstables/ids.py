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
Strongly typed row identifiers. Each table kind has its own id type so that,
for example, an edge id cannot be used to look up a node.
"""

#: Special reserved value representing a null ID.
NULL = -1


class RowId(int):
    """
    Superclass of row identifiers. Ids are plain signed integers and compare
    equal to them; the subclass records which table the id refers to.
    """

    __slots__ = ()

    def __repr__(self):
        return f"{type(self).__name__}({int(self)})"

    def is_null(self) -> bool:
        """
        Returns True if this id is the :data:`NULL` id.
        """
        return int(self) == NULL


class IndividualId(RowId):
    __slots__ = ()


class NodeId(RowId):
    __slots__ = ()


class EdgeId(RowId):
    __slots__ = ()


class MigrationId(RowId):
    __slots__ = ()


class SiteId(RowId):
    __slots__ = ()


class MutationId(RowId):
    __slots__ = ()


class PopulationId(RowId):
    __slots__ = ()


class ProvenanceId(RowId):
    __slots__ = ()
