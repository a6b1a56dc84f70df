# refs.py -- For dealing with git refs
# Copyright (C) 2008-2013 Jelmer Vernooij <jelmer@jelmer.uk>
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

"""Ref handling.

Only loose refs are supported: each ref is a file below ``.git`` holding
either a hex object id or ``ref: <other ref>``.
"""

__all__ = [
    "HEADREF",
    "LOCAL_BRANCH_PREFIX",
    "LOCAL_REMOTE_PREFIX",
    "LOCAL_TAG_PREFIX",
    "SYMREF",
    "DiskRefsContainer",
    "SymrefLoop",
    "check_ref_format",
]

import logging
import os

from .errors import RefFormatError
from .file import GitFile, ensure_dir_exists
from .objects import ObjectID, valid_hexsha

logger = logging.getLogger(__name__)

Ref = bytes

HEADREF = b"HEAD"
SYMREF = b"ref: "
LOCAL_BRANCH_PREFIX = b"refs/heads/"
LOCAL_TAG_PREFIX = b"refs/tags/"
LOCAL_REMOTE_PREFIX = b"refs/remotes/"
BAD_REF_CHARS = set(b"\177 ~^:?*[")

MAX_SYMREF_DEPTH = 5


class SymrefLoop(Exception):
    """There is a loop between one or more symrefs."""

    def __init__(self, ref: bytes, depth: int) -> None:
        self.ref = ref
        self.depth = depth
        super().__init__(f"symref loop at {ref!r} (depth {depth})")


def check_ref_format(refname: Ref) -> bool:
    """Check if a refname is correctly formatted.

    Implements all the same rules as git-check-ref-format[1].

    [1]
    http://www.kernel.org/pub/software/scm/git/docs/git-check-ref-format.html

    Args:
      refname: The refname to check
    Returns: True if refname is valid, False otherwise
    """
    if b"/." in refname or refname.startswith(b"."):
        return False
    if b"/" not in refname:
        return False
    if b".." in refname:
        return False
    for c in refname:
        if c < 0o40 or c in BAD_REF_CHARS:
            return False
    if refname[-1:] in (b"/", b"."):
        return False
    if refname.endswith(b".lock"):
        return False
    if b"@{" in refname or b"\\" in refname:
        return False
    return True


class DiskRefsContainer:
    """Refs stored as loose files in a git control directory."""

    def __init__(self, path: str | bytes) -> None:
        self.path = os.fsencode(path)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.path!r})"

    def refpath(self, name: Ref) -> bytes:
        """Return the disk path of a ref."""
        if os.path.sep != "/":
            name = name.replace(b"/", os.fsencode(os.path.sep))
        return os.path.join(self.path, name)

    def _check_refname(self, name: Ref) -> None:
        """Ensure a refname is valid and lives in refs or is HEAD.

        Raises:
          RefFormatError: if a refname is not HEAD or is otherwise not valid.
        """
        if name == HEADREF:
            return
        if not name.startswith(b"refs/") or not check_ref_format(name[5:]):
            raise RefFormatError(name)

    def read_ref(self, name: Ref) -> bytes | None:
        """Read a reference without following any references.

        Args:
          name: The name of the reference
        Returns: The contents of the ref file (an id or ``ref: <name>``),
            or None if it does not exist.
        """
        filename = self.refpath(name)
        try:
            with GitFile(filename, "rb") as f:
                contents = f.readline()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None
        return contents.rstrip(b"\r\n")

    def follow(self, name: Ref) -> tuple[list[Ref], bytes | None]:
        """Follow a reference name.

        Returns: a tuple of (refnames, sha), where refnames are the names of
            references in the chain
        Raises:
          SymrefLoop: if more than five symbolic refs are chained
        """
        contents: bytes | None = SYMREF + name
        depth = 0
        refnames = []
        while contents and contents.startswith(SYMREF):
            refname = contents[len(SYMREF) :]
            refnames.append(refname)
            contents = self.read_ref(refname)
            if not contents:
                break
            depth += 1
            if depth > MAX_SYMREF_DEPTH:
                raise SymrefLoop(name, depth)
        return refnames, contents

    def __contains__(self, refname: Ref) -> bool:
        _, sha = self.follow(refname)
        return sha is not None

    def __getitem__(self, name: Ref) -> ObjectID:
        """Get the SHA1 for a reference name.

        This method follows all symbolic references.
        """
        _, sha = self.follow(name)
        if sha is None:
            raise KeyError(name)
        return ObjectID(sha)

    def _write(self, name: Ref, contents: bytes) -> None:
        self._check_refname(name)
        filename = self.refpath(name)
        ensure_dir_exists(os.path.dirname(filename))
        with GitFile(filename, "wb") as f:
            f.write(contents + b"\n")

    def set_ref(self, name: Ref, sha: ObjectID) -> None:
        """Point a ref at an object, without following symbolic refs.

        Args:
          name: Name of the ref to set
          sha: Hex id to store
        """
        if not valid_hexsha(sha):
            raise ValueError(f"{sha!r} must be a valid sha (40 chars)")
        self._write(name, sha)
        logger.debug("set %s to %s", name.decode("utf-8", "replace"), sha.decode("ascii"))

    def set_symbolic_ref(self, name: Ref, other: Ref) -> None:
        """Make a ref point at another ref.

        Args:
          name: Name of the ref to set
          other: Name of the ref to point at
        """
        self._check_refname(other)
        self._write(name, SYMREF + other)
