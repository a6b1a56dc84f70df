# objects.py -- Access to base git objects
# Copyright (C) 2007 James Westby <jw+debian@jameswestby.net>
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

"""Encoding and decoding of the base git objects.

Objects are handled as ``(type_num, payload)`` pairs. The numeric types are
the ones used in pack files; the header that is hashed and stored uses the
type names.
"""

__all__ = [
    "BLOB",
    "COMMIT",
    "DEFAULT_IDENTITY",
    "TAG",
    "TREE",
    "Commit",
    "Identity",
    "ObjectID",
    "RawObjectID",
    "TreeEntry",
    "hash_object",
    "hex_to_filename",
    "hex_to_sha",
    "object_header",
    "parse_commit",
    "parse_commit_tree",
    "parse_tree",
    "pretty_format_tree_entry",
    "serialize_commit",
    "serialize_tree",
    "sha_to_hex",
    "sorted_tree_items",
    "type_name_to_num",
    "type_num_to_name",
    "valid_hexsha",
]

import binascii
import os
import stat
from collections.abc import Iterable
from hashlib import sha1
from typing import NamedTuple, NewType

from .errors import ObjectFormatException

ObjectID = NewType("ObjectID", bytes)
RawObjectID = NewType("RawObjectID", bytes)

COMMIT = 1
TREE = 2
BLOB = 3
TAG = 4

_TYPE_NAMES = {
    COMMIT: b"commit",
    TREE: b"tree",
    BLOB: b"blob",
    TAG: b"tag",
}
_TYPE_NUMS = {name: num for num, name in _TYPE_NAMES.items()}

# Header fields for commits
_TREE_HEADER = b"tree"
_PARENT_HEADER = b"parent"
_AUTHOR_HEADER = b"author"
_COMMITTER_HEADER = b"committer"

S_IFGITLINK = 0o160000


def S_ISGITLINK(m: int) -> bool:
    """Check if a mode indicates a submodule.

    Args:
      m: Mode to check
    Returns: a ``boolean``
    """
    return stat.S_IFMT(m) == S_IFGITLINK


def type_num_to_name(type_num: int) -> bytes:
    """Return the header name for a numeric object type."""
    try:
        return _TYPE_NAMES[type_num]
    except KeyError as exc:
        raise ObjectFormatException(f"unknown object type {type_num}") from exc


def type_name_to_num(type_name: bytes) -> int:
    """Return the numeric object type for a header name."""
    try:
        return _TYPE_NUMS[type_name]
    except KeyError as exc:
        raise ObjectFormatException(f"unknown object type {type_name!r}") from exc


def sha_to_hex(sha: RawObjectID | bytes) -> ObjectID:
    """Takes a string and returns the hex of the sha within."""
    hexsha = binascii.hexlify(sha)
    assert len(hexsha) == 40, f"Incorrect length of sha1 string: {hexsha!r}"
    return ObjectID(hexsha)


def hex_to_sha(hex: ObjectID | bytes | str) -> RawObjectID:
    """Takes a hex sha and returns a binary sha."""
    assert len(hex) == 40, f"Incorrect length of hexsha: {hex!r}"
    try:
        return RawObjectID(binascii.unhexlify(hex))
    except (TypeError, binascii.Error) as exc:
        if not isinstance(hex, bytes):
            raise
        raise ValueError(exc.args[0]) from exc


def valid_hexsha(hex: bytes | str) -> bool:
    """Check if a string is a valid hex sha."""
    if len(hex) != 40:
        return False
    try:
        binascii.unhexlify(hex)
    except (TypeError, binascii.Error):
        return False
    return True


def hex_to_filename(path: str, hex: ObjectID | bytes) -> str:
    """Takes a hex sha and returns its filename relative to the given path."""
    hex_str = hex.decode("ascii") if isinstance(hex, bytes) else hex
    return os.path.join(path, hex_str[:2], hex_str[2:])


def object_header(type_num: int, length: int) -> bytes:
    """Return an object header for the given numeric type and content length."""
    return type_num_to_name(type_num) + b" " + str(length).encode("ascii") + b"\0"


def hash_object(type_num: int, payload: bytes) -> ObjectID:
    """Compute the hex id of an object without storing it."""
    sha = sha1(object_header(type_num, len(payload)))
    sha.update(payload)
    return ObjectID(sha.hexdigest().encode("ascii"))


class TreeEntry(NamedTuple):
    """Named tuple encapsulating a single tree entry."""

    name: bytes
    mode: int
    sha: ObjectID


def _tree_sort_key(entry: TreeEntry) -> bytes:
    # Directories sort as if their name ended in a slash.
    if stat.S_ISDIR(entry.mode):
        return entry.name + b"/"
    return entry.name


def sorted_tree_items(entries: Iterable[TreeEntry]) -> list[TreeEntry]:
    """Sort tree entries in the order git stores them."""
    return sorted(entries, key=_tree_sort_key)


def serialize_tree(entries: Iterable[TreeEntry]) -> bytes:
    """Serialize tree entries to a tree payload.

    Entries are written in the order given; use sorted_tree_items first when
    building a new tree.

    Args:
      entries: Iterable of TreeEntry
    Returns: Serialized tree payload
    """
    chunks = []
    for name, mode, hexsha in entries:
        chunks.append(f"{mode:o}".encode("ascii") + b" " + name + b"\0")
        chunks.append(hex_to_sha(hexsha))
    return b"".join(chunks)


def parse_tree(payload: bytes) -> list[TreeEntry]:
    """Parse a tree payload.

    Args:
      payload: Tree payload to parse
    Returns: List of TreeEntry, in stored order
    Raises:
      ObjectFormatException: if the payload is truncated or malformed
    """
    entries = []
    pos = 0
    length = len(payload)
    while pos < length:
        mode_end = payload.find(b" ", pos)
        if mode_end == -1:
            raise ObjectFormatException("tree entry without mode separator")
        mode_text = payload[pos:mode_end]
        try:
            mode = int(mode_text, 8)
        except ValueError as exc:
            raise ObjectFormatException(f"invalid mode {mode_text!r}") from exc
        name_end = payload.find(b"\0", mode_end)
        if name_end == -1:
            raise ObjectFormatException("tree entry without name terminator")
        name = payload[mode_end + 1 : name_end]
        pos = name_end + 21
        if pos > length:
            raise ObjectFormatException(f"truncated tree entry {name!r}")
        entries.append(TreeEntry(name, mode, sha_to_hex(payload[name_end + 1 : pos])))
    return entries


def pretty_format_tree_entry(name: bytes, mode: int, hexsha: bytes) -> str:
    """Pretty format tree entry, as ``git ls-tree`` does.

    Args:
      name: Name of the directory entry
      mode: Mode of entry
      hexsha: Hexsha of the referenced object
    Returns: string describing the tree entry
    """
    if stat.S_ISDIR(mode):
        kind = "tree"
    elif S_ISGITLINK(mode):
        kind = "commit"
    else:
        kind = "blob"
    return "{:06o} {} {}\t{}\n".format(
        mode,
        kind,
        hexsha.decode("ascii"),
        name.decode("utf-8", "replace"),
    )


class Identity(NamedTuple):
    """Author or committer identity used when creating commits.

    There is no lookup of the user's real identity; callers pass one of
    these explicitly, falling back to DEFAULT_IDENTITY.
    """

    name: bytes
    email: bytes
    timestamp: int
    timezone: bytes

    def format(self) -> bytes:
        """Return the identity as it appears in a commit header."""
        return b"%s <%s> %d %s" % (self.name, self.email, self.timestamp, self.timezone)


DEFAULT_IDENTITY = Identity(b"John Doe", b"john@example.com", 1234567890, b"+0000")


def _parse_identity(value: bytes) -> Identity:
    try:
        person, rest = value.rsplit(b"> ", 1)
        name, email = person.split(b" <", 1)
        timestamp, timezone = rest.split(b" ", 1)
        return Identity(name, email, int(timestamp), timezone)
    except ValueError as exc:
        raise ObjectFormatException(f"invalid identity {value!r}") from exc


class Commit(NamedTuple):
    """Parsed commit fields."""

    tree: ObjectID
    parent: ObjectID | None
    author: Identity
    committer: Identity
    message: bytes


def serialize_commit(
    tree: ObjectID,
    parent: ObjectID | None,
    message: bytes,
    author: Identity = DEFAULT_IDENTITY,
    committer: Identity | None = None,
) -> bytes:
    """Serialize a commit payload.

    Args:
      tree: Hex id of the commit's tree
      parent: Hex id of the parent commit, or None for a root commit
      message: Commit message; a trailing newline is appended
      author: Author identity
      committer: Committer identity (defaults to the author)
    Returns: Commit payload
    """
    if committer is None:
        committer = author
    lines = [_TREE_HEADER + b" " + tree + b"\n"]
    if parent is not None:
        lines.append(_PARENT_HEADER + b" " + parent + b"\n")
    lines.append(_AUTHOR_HEADER + b" " + author.format() + b"\n")
    lines.append(_COMMITTER_HEADER + b" " + committer.format() + b"\n")
    lines.append(b"\n")
    lines.append(message + b"\n")
    return b"".join(lines)


def parse_commit(payload: bytes) -> Commit:
    """Parse a commit payload.

    Raises:
      ObjectFormatException: if a required header is missing or the commit
        has more than one parent
    """
    headers, sep, message = payload.partition(b"\n\n")
    if not sep:
        raise ObjectFormatException("commit without message separator")
    fields: dict[bytes, list[bytes]] = {}
    for line in headers.split(b"\n"):
        if line.startswith(b" "):
            # Continuation of a multi-line header such as gpgsig.
            continue
        key, _, value = line.partition(b" ")
        fields.setdefault(key, []).append(value)
    try:
        [tree] = fields[_TREE_HEADER]
        [author] = fields[_AUTHOR_HEADER]
        [committer] = fields[_COMMITTER_HEADER]
    except (KeyError, ValueError) as exc:
        raise ObjectFormatException(f"malformed commit headers: {exc}") from exc
    parents = fields.get(_PARENT_HEADER, [])
    if len(parents) > 1:
        raise ObjectFormatException("merge commits are not supported")
    return Commit(
        tree=ObjectID(tree),
        parent=ObjectID(parents[0]) if parents else None,
        author=_parse_identity(author),
        committer=_parse_identity(committer),
        message=message,
    )


def parse_commit_tree(payload: bytes) -> ObjectID:
    """Return the tree id named by a commit payload.

    Raises:
      ObjectFormatException: if the commit has no tree line
    """
    for line in payload.split(b"\n"):
        if line == b"":
            break
        if line.startswith(_TREE_HEADER + b" "):
            tree = line[len(_TREE_HEADER) + 1 :]
            if not valid_hexsha(tree):
                raise ObjectFormatException(f"invalid tree id {tree!r}")
            return ObjectID(tree)
    raise ObjectFormatException("commit has no tree line")
