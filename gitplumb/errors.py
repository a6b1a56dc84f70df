# errors.py -- errors for gitplumb
# Copyright (C) 2007 James Westby <jw+debian@jameswestby.net>
# Copyright (C) 2009-2012 Jelmer Vernooij <jelmer@jelmer.uk>
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# gitplumb is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""gitplumb-related exception classes."""

# Please do not add more errors here, but instead add them close to the code
# that raises the error.

import binascii
from collections.abc import Sequence


class ChecksumMismatch(Exception):
    """A checksum didn't match the expected contents."""

    def __init__(
        self,
        expected: bytes | str,
        got: bytes | str,
        extra: str | None = None,
    ) -> None:
        """Initialize a ChecksumMismatch exception.

        Args:
            expected: The expected checksum value (raw or hex).
            got: The actual checksum value (raw or hex).
            extra: Optional additional error information.
        """
        if isinstance(expected, bytes) and len(expected) == 20:
            expected = binascii.hexlify(expected)
        if isinstance(got, bytes) and len(got) == 20:
            got = binascii.hexlify(got)
        if isinstance(expected, bytes):
            expected = expected.decode("ascii")
        if isinstance(got, bytes):
            got = got.decode("ascii")
        self.expected = expected
        self.got = got
        self.extra = extra
        message = f"Checksum mismatch: Expected {expected}, got {got}"
        if extra is not None:
            message += f"; {extra}"
        Exception.__init__(self, message)


class WrongObjectException(Exception):
    """Baseclass for all the _ is not a _ exceptions on objects.

    Do not instantiate directly.

    Subclasses should define a type_name attribute that indicates what
    was expected if they were raised.
    """

    type_name: str

    def __init__(self, sha: bytes) -> None:
        """Initialize a WrongObjectException.

        Args:
            sha: The SHA of the object that was not of the expected type.
        """
        self.sha = sha
        Exception.__init__(self, f"{sha.decode('ascii')} is not a {self.type_name}")


class NotCommitError(WrongObjectException):
    """Indicates that the sha requested does not point to a commit."""

    type_name = "commit"


class NotTreeError(WrongObjectException):
    """Indicates that the sha requested does not point to a tree."""

    type_name = "tree"


class ObjectMissing(KeyError):
    """Indicates that a requested object is not in the object store."""

    def __init__(self, sha: bytes) -> None:
        """Initialize an ObjectMissing exception.

        Args:
            sha: The SHA of the missing object.
        """
        self.sha = sha
        KeyError.__init__(self, sha)

    def __str__(self) -> str:
        return f"{self.sha.decode('ascii')} is not in the object store"


class DeltaResolutionError(Exception):
    """Base class for failures to reconstruct an object from a delta."""


class ApplyDeltaError(DeltaResolutionError):
    """Indicates that applying a delta failed."""


class NotGitRepository(Exception):
    """Indicates that no Git repository was found."""


class GitProtocolError(Exception):
    """Git protocol exception."""

    def __eq__(self, other: object) -> bool:
        """Check equality between GitProtocolError instances."""
        return isinstance(other, GitProtocolError) and self.args == other.args

    def __hash__(self) -> int:
        return hash(self.args)


class HangupException(GitProtocolError):
    """Hangup exception."""

    def __init__(self, stderr_lines: Sequence[bytes] | None = None) -> None:
        """Initialize a HangupException.

        Args:
            stderr_lines: Optional error lines reported by the remote server.
        """
        if stderr_lines:
            super().__init__(
                "\n".join(
                    line.decode("utf-8", "surrogateescape") for line in stderr_lines
                )
            )
        else:
            super().__init__("The remote server unexpectedly closed the connection.")
        self.stderr_lines = stderr_lines


class FileFormatException(Exception):
    """Base class for exceptions relating to reading git file formats."""


class ObjectFormatException(FileFormatException):
    """Indicates an error parsing an object."""


class PackFormatException(FileFormatException):
    """Indicates an error parsing a pack file."""


class RefFormatError(Exception):
    """Indicates an invalid ref name."""
