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
Exceptions defined in tstables.
"""


class TablesException(Exception):
    """
    Superclass of all exceptions raised by tstables.
    """


class LibraryError(TablesException):
    """
    Generic error raised by the column storage layer.
    """


class TableIntegrityError(LibraryError):
    """
    A table collection failed an integrity check.
    """


class FileFormatError(TablesException):
    """
    The file does not hold a table collection, or is malformed.
    """


class BorrowError(TablesException):
    """
    A table view or iterator was used after the storage it borrows from was
    modified, freed, or its owner released.
    """


class MetadataError(TablesException):
    """
    Superclass of all errors raised while encoding or decoding metadata.
    """


class MetadataEncodingError(MetadataError):
    """
    A metadata object was of a type that could not be encoded
    """


class MetadataValidationError(MetadataEncodingError):
    """
    A metadata object did not validate against the metadata schema.
    """


class MetadataDecodingError(MetadataError):
    """
    Stored metadata bytes could not be decoded. The codec's own exception
    is available as ``__cause__``.
    """

    def __init__(self, message, row_id=None):
        super().__init__(message)
        self.row_id = row_id


class MetadataSchemaValidationError(MetadataError):
    """
    A metadata schema object did not validate against the metaschema.
    """


class ImmutableTableError(ValueError):
    """
    Raised when attempting to modify a borrowed table view.

    Use the owning table, or ``view.copy()`` to get a mutable copy.
    """
