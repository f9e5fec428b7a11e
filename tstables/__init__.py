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
import tstables.lowlevel as _lowlevel

#: Special reserved value representing a null ID.
NULL = _lowlevel.NULL

#: Node flag value indicating that it is a sample.
NODE_IS_SAMPLE = _lowlevel.NODE_IS_SAMPLE

#: Special NAN value used to indicate unknown mutation times
UNKNOWN_TIME = _lowlevel.UNKNOWN_TIME

_print_options = {"max_lines": 40}

from tstables._version import tstables_version as __version__  # NOQA
from tstables.exceptions import *  # NOQA
from tstables.flags import *  # NOQA
from tstables.ids import *  # NOQA
from tstables.tables import *  # NOQA
from tstables.util import *  # NOQA
from tstables.metadata import *  # NOQA
