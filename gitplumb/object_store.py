# object_store.py -- Object store for git objects
# Copyright (C) 2008-2013 Jelmer Vernooij <jelmer@jelmer.uk>
#                         and others
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

"""Git object store interfaces and implementation."""

__all__ = [
    "BaseObjectStore",
    "DiskObjectStore",
    "MemoryObjectStore",
    "commit_tree",
]

import logging
import os
import zlib
from collections.abc import Iterator

from .errors import ObjectFormatException, ObjectMissing
from .file import GitFile
from .objects import (
    COMMIT,
    DEFAULT_IDENTITY,
    Identity,
    ObjectID,
    RawObjectID,
    hash_object,
    hex_to_filename,
    object_header,
    serialize_commit,
    sha_to_hex,
    type_name_to_num,
    valid_hexsha,
)

logger = logging.getLogger(__name__)

PACK_MODE = 0o444


def _to_hexsha(sha: ObjectID | RawObjectID | bytes) -> ObjectID:
    if len(sha) == 40:
        return ObjectID(sha)
    elif len(sha) == 20:
        return sha_to_hex(sha)
    raise ValueError(f"Invalid sha {sha!r}")


def _parse_legacy_object(data: bytes) -> tuple[int, bytes]:
    """Split a decompressed loose object into type number and payload."""
    header, sep, payload = data.partition(b"\0")
    if not sep:
        raise ObjectFormatException("object header has no NUL separator")
    type_name, sep, size = header.partition(b" ")
    if not sep:
        raise ObjectFormatException(f"malformed object header {header!r}")
    type_num = type_name_to_num(type_name)
    try:
        declared = int(size)
    except ValueError as exc:
        raise ObjectFormatException(f"invalid object size {size!r}") from exc
    if declared != len(payload):
        raise ObjectFormatException(
            f"object size mismatch: header says {declared}, got {len(payload)}"
        )
    return type_num, payload


class BaseObjectStore:
    """Object store interface.

    Stores are write-once: objects are keyed by the SHA-1 of their header and
    payload, and an id is never rebound to different content.
    """

    def add_raw(self, type_num: int, payload: bytes) -> ObjectID:
        """Add an object to this store.

        Args:
          type_num: Numeric object type
          payload: Object contents, without header
        Returns: Hex id of the object
        """
        raise NotImplementedError(self.add_raw)

    def get_raw(self, name: ObjectID | RawObjectID) -> tuple[int, bytes]:
        """Obtain the raw text for an object.

        Args:
          name: sha for the object.
        Returns: tuple with numeric type and object contents.
        Raises:
          ObjectMissing: if the object is not present
          ObjectFormatException: if the stored object is malformed
        """
        raise NotImplementedError(self.get_raw)

    def __contains__(self, sha: ObjectID | RawObjectID) -> bool:
        """Check if a particular object is present by SHA1."""
        raise NotImplementedError(self.__contains__)

    def __iter__(self) -> Iterator[ObjectID]:
        """Iterate over the SHAs that are present in this store."""
        raise NotImplementedError(self.__iter__)

    def __len__(self) -> int:
        return sum(1 for _ in self)


class DiskObjectStore(BaseObjectStore):
    """Git-style object store that exists on disk as loose objects."""

    def __init__(self, path: str, loose_compression_level: int = -1) -> None:
        """Open an object store.

        Args:
          path: Path of the object store (the ``objects`` directory)
          loose_compression_level: zlib compression level for loose objects
        """
        self.path = path
        self.loose_compression_level = loose_compression_level

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.path!r})>"

    @classmethod
    def init(cls, path: str) -> "DiskObjectStore":
        """Create the directory structure of an object store."""
        os.mkdir(path)
        os.mkdir(os.path.join(path, "info"))
        os.mkdir(os.path.join(path, "pack"))
        return cls(path)

    def _get_shafile_path(self, sha: ObjectID | RawObjectID) -> str:
        return hex_to_filename(self.path, _to_hexsha(sha))

    def __contains__(self, sha: ObjectID | RawObjectID) -> bool:
        return os.path.exists(self._get_shafile_path(sha))

    def __iter__(self) -> Iterator[ObjectID]:
        for base in sorted(os.listdir(self.path)):
            if len(base) != 2:
                continue
            for rest in sorted(os.listdir(os.path.join(self.path, base))):
                sha = os.fsencode(base + rest)
                if valid_hexsha(sha):
                    yield ObjectID(sha)

    def get_raw(self, name: ObjectID | RawObjectID) -> tuple[int, bytes]:
        hexsha = _to_hexsha(name)
        try:
            with GitFile(self._get_shafile_path(hexsha), "rb") as f:
                compressed = f.read()
        except FileNotFoundError as exc:
            raise ObjectMissing(hexsha) from exc
        try:
            data = zlib.decompress(compressed)
        except zlib.error as exc:
            raise ObjectFormatException(f"corrupt loose object {hexsha!r}") from exc
        return _parse_legacy_object(data)

    def add_raw(self, type_num: int, payload: bytes) -> ObjectID:
        header = object_header(type_num, len(payload))
        sha = hash_object(type_num, payload)
        path = self._get_shafile_path(sha)
        if os.path.exists(path):
            return sha  # Already there, no need to write again
        try:
            os.mkdir(os.path.dirname(path))
        except FileExistsError:
            pass
        compobj = zlib.compressobj(self.loose_compression_level)
        with GitFile(path, "wb", mask=PACK_MODE) as f:
            f.write(compobj.compress(header))
            f.write(compobj.compress(payload))
            f.write(compobj.flush())
        logger.debug("wrote loose object %s", sha.decode("ascii"))
        return sha


class MemoryObjectStore(BaseObjectStore):
    """Object store that keeps all objects in memory."""

    def __init__(self) -> None:
        self._data: dict[ObjectID, tuple[int, bytes]] = {}

    def __contains__(self, sha: ObjectID | RawObjectID) -> bool:
        return _to_hexsha(sha) in self._data

    def __iter__(self) -> Iterator[ObjectID]:
        return iter(self._data.keys())

    def get_raw(self, name: ObjectID | RawObjectID) -> tuple[int, bytes]:
        hexsha = _to_hexsha(name)
        try:
            return self._data[hexsha]
        except KeyError as exc:
            raise ObjectMissing(hexsha) from exc

    def add_raw(self, type_num: int, payload: bytes) -> ObjectID:
        # Validates the type before anything is stored.
        object_header(type_num, len(payload))
        sha = hash_object(type_num, payload)
        self._data.setdefault(sha, (type_num, bytes(payload)))
        return sha


def commit_tree(
    object_store: BaseObjectStore,
    tree: ObjectID,
    parent: ObjectID | None,
    message: bytes,
    author: Identity = DEFAULT_IDENTITY,
    committer: Identity | None = None,
) -> ObjectID:
    """Create a commit object for a tree and add it to the store.

    Args:
      object_store: Object store to add the commit to
      tree: Hex id of the tree
      parent: Hex id of the single parent, or None
      message: Commit message
      author: Author identity
      committer: Committer identity, defaults to the author
    Returns: Hex id of the new commit
    """
    payload = serialize_commit(tree, parent, message, author, committer)
    return object_store.add_raw(COMMIT, payload)
