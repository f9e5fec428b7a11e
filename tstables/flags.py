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
Option flags controlling the behaviour of table and tree sequence operations.

Every governed operation has its own flag type. Flags are combined with ``|``
and tested with :meth:`contains` (or ``in``)::

    flags = SimplificationOptions.FILTER_SITES | SimplificationOptions.KEEP_UNARY
    assert flags.contains(SimplificationOptions.KEEP_UNARY)
    assert not flags.contains(SimplificationOptions.FILTER_POPULATIONS)

The flags are declarative: nothing in this module acts on them. The bit
values match the tskit C library so that raw values can be exchanged with it.
"""
import enum
import functools
import logging
import operator

logger = logging.getLogger(__name__)


class TableFlags(enum.IntFlag):
    """
    Superclass of all flag types. Flags are 32 bit values.
    """

    @classmethod
    def from_bits(cls, bits):
        """
        Returns a flags value holding exactly ``bits``. No validation is
        performed; see :meth:`is_valid`.
        """
        return cls(int(bits))

    @classmethod
    def all(cls):
        """
        Returns the union of every named flag of this type.
        """
        return cls(functools.reduce(operator.or_, map(int, cls.__members__.values()), 0))

    @property
    def bits(self) -> int:
        return int(self)

    def contains(self, other) -> bool:
        """
        Returns True if every bit set in ``other`` is also set in this value.
        """
        other = int(other)
        return int(self) & other == other

    def is_valid(self) -> bool:
        """
        Returns True if no bits outside the named flags are set.
        """
        return int(self) & ~int(type(self).all()) == 0


class SimplificationOptions(TableFlags):
    """
    Control the behaviour of simplification. The default (``NONE``) is to
    run the algorithm as described in Kelleher et al. (2018).

    ``KEEP_UNARY`` and ``KEEP_UNARY_IN_INDIVIDUALS`` cannot be specified at
    the same time; rejecting that combination is left to the simplify
    implementation. See :func:`describe_conflicts`.
    """

    NONE = 0
    #: Remove sites that are not referenced by mutations after simplification;
    #: new site IDs are allocated sequentially from zero.
    FILTER_SITES = 1 << 0
    #: Remove populations that are not referenced by nodes after
    #: simplification; new population IDs are allocated sequentially from zero.
    FILTER_POPULATIONS = 1 << 1
    #: Remove individuals that are not referenced by nodes after
    #: simplification; new individual IDs are allocated sequentially from zero.
    FILTER_INDIVIDUALS = 1 << 2
    #: Reduce the topology down to the trees that are present at sites.
    REDUCE_TO_SITE_TOPOLOGY = 1 << 3
    #: Preserve unary nodes on the path from samples to root.
    KEEP_UNARY = 1 << 4
    #: Retain history ancestral to the MRCA of the samples.
    KEEP_INPUT_ROOTS = 1 << 5
    #: Preserve unary nodes on the path from samples to root, but only if
    #: they are associated with an individual.
    KEEP_UNARY_IN_INDIVIDUALS = 1 << 6


class TableClearOptions(TableFlags):
    """
    Modify the behaviour of clearing tables. Row data is always cleared.
    """

    NONE = 0
    CLEAR_METADATA_SCHEMAS = 1 << 0
    CLEAR_TS_METADATA_SCHEMAS = 1 << 1
    CLEAR_PROVENANCE = 1 << 2


class TableEqualityOptions(TableFlags):
    """
    Modify the behaviour of comparing tables and table collections.
    """

    NONE = 0
    IGNORE_TS_METADATA = 1 << 0
    IGNORE_PROVENANCE = 1 << 1
    IGNORE_METADATA = 1 << 2
    IGNORE_TIMESTAMPS = 1 << 3


class TableSortOptions(TableFlags):
    NONE = 0
    #: Do not validate the contents of the edge table before sorting.
    NO_CHECK_INTEGRITY = 1 << 30


class IndividualTableSortOptions(TableFlags):
    NONE = 0


class TreeFlags(TableFlags):
    """
    Specify the behaviour of iterating over trees.
    """

    NONE = 0
    #: Update sample lists.
    SAMPLE_LISTS = 1 << 1
    #: Do *not* update the number of samples descending from each node.
    NO_SAMPLE_COUNTS = 1 << 2


class TableOutputOptions(TableFlags):
    """
    Modify the behaviour of writing a table collection to file. No options
    are currently defined; indexes are written if they are present.
    """

    NONE = 0


class TreeSequenceFlags(TableFlags):
    NONE = 0
    #: Build table indexes if they are not present.
    BUILD_INDEXES = 1 << 0


class TableIntegrityCheckFlags(TableFlags):
    """
    Select the integrity checks to run on a table collection. With ``NONE``
    only basic checks (reference bounds, finite values) are made.
    """

    NONE = 0
    CHECK_EDGE_ORDERING = 1 << 0
    CHECK_SITE_ORDERING = 1 << 1
    CHECK_SITE_DUPLICATES = 1 << 2
    CHECK_MUTATION_ORDERING = 1 << 3
    CHECK_INDIVIDUAL_ORDERING = 1 << 4
    CHECK_MIGRATION_ORDERING = 1 << 5
    CHECK_INDEXES = 1 << 6
    #: Check tree integrity. Implies all the checks above except
    #: ``CHECK_INDIVIDUAL_ORDERING``.
    CHECK_TREES = 1 << 7

    def expanded(self):
        """
        Returns these flags with every check implied by ``CHECK_TREES`` set.
        """
        cls = type(self)
        if not self.contains(cls.CHECK_TREES):
            return self
        return (
            self
            | cls.CHECK_EDGE_ORDERING
            | cls.CHECK_SITE_ORDERING
            | cls.CHECK_SITE_DUPLICATES
            | cls.CHECK_MUTATION_ORDERING
            | cls.CHECK_MIGRATION_ORDERING
            | cls.CHECK_INDEXES
        )


class NodeFlags(TableFlags):
    """
    Node flags. The lower 16 bits are reserved for the library, the upper 16
    bits may be used freely by callers. Bits set by callers are never
    validated.
    """

    NONE = 0
    #: Node is a sample.
    IS_SAMPLE = 1 << 0

    @classmethod
    def new_sample(cls):
        """
        Returns flags with ``IS_SAMPLE`` set.
        """
        return cls.IS_SAMPLE

    def is_sample(self) -> bool:
        return self.contains(NodeFlags.IS_SAMPLE)

    def is_valid(self) -> bool:
        """
        Always True: user-defined bits are the caller's responsibility.
        """
        return True


class IndividualFlags(TableFlags):
    """
    Individual flags. As for :class:`NodeFlags`, callers may set arbitrary
    bits in the upper 16 bits.
    """

    NONE = 0

    def is_valid(self) -> bool:
        """
        Always True: user-defined bits are the caller's responsibility.
        """
        return True


def describe_conflicts(options):
    """
    Returns a list of messages describing mutually exclusive simplification
    options that are set together. The combination is reported, not rejected:
    the simplify implementation decides what to do with it.

    :param SimplificationOptions options: The options to inspect.
    :rtype: list[str]
    """
    options = SimplificationOptions.from_bits(options)
    conflicts = []
    if options.contains(
        SimplificationOptions.KEEP_UNARY | SimplificationOptions.KEEP_UNARY_IN_INDIVIDUALS
    ):
        conflicts.append("KEEP_UNARY cannot be combined with KEEP_UNARY_IN_INDIVIDUALS")
    for message in conflicts:
        logger.warning("Conflicting simplification options: %s", message)
    return conflicts
