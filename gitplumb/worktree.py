# worktree.py -- Working tree operations for Git repositories
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

"""Converting between working directories and tree objects.

There is no index: trees are built straight from the files on disk, and
checkout writes the files of a commit's tree straight to disk.
"""

__all__ = [
    "INVALID_DOTNAMES",
    "build_file_from_blob",
    "build_tree_from_path",
    "checkout",
    "cleanup_mode",
    "validate_path_element",
]

import logging
import os
import stat

from .errors import NotCommitError, NotTreeError, ObjectFormatException
from .object_store import BaseObjectStore
from .objects import (
    BLOB,
    COMMIT,
    TREE,
    ObjectID,
    S_ISGITLINK,
    TreeEntry,
    parse_commit_tree,
    parse_tree,
    serialize_tree,
    sorted_tree_items,
)

logger = logging.getLogger(__name__)

CONTROL_DIR = ".git"

INVALID_DOTNAMES = (b".git", b".", b"..", b"")


def cleanup_mode(mode: int) -> int:
    """Cleanup a mode value.

    This will return a mode that can be stored in a tree object.

    Args:
      mode: Mode to clean up.
    Returns:
      mode
    """
    if stat.S_ISLNK(mode):
        return stat.S_IFLNK
    elif stat.S_ISDIR(mode):
        return stat.S_IFDIR
    ret = stat.S_IFREG | 0o644
    if mode & 0o111:
        ret |= 0o111
    return ret


def validate_path_element(element: bytes) -> bool:
    """Check whether a tree entry name is safe to create on disk."""
    return element.lower() not in INVALID_DOTNAMES and b"/" not in element


def build_tree_from_path(object_store: BaseObjectStore, path: str | bytes) -> ObjectID:
    """Store the contents of a directory as a tree.

    Regular files and symlinks become blobs, subdirectories become trees.
    The ``.git`` control directory is skipped. An empty subdirectory is
    recorded as the empty tree.

    Args:
      object_store: Object store to add the blobs and trees to
      path: Directory to read
    Returns: Hex id of the tree
    """
    entries = []
    with os.scandir(os.fsencode(path)) as it:
        for entry in it:
            if entry.name == os.fsencode(CONTROL_DIR):
                continue
            st = entry.stat(follow_symlinks=False)
            if stat.S_ISLNK(st.st_mode):
                sha = object_store.add_raw(BLOB, os.readlink(entry.path))
            elif stat.S_ISDIR(st.st_mode):
                sha = build_tree_from_path(object_store, entry.path)
            elif stat.S_ISREG(st.st_mode):
                with open(entry.path, "rb") as f:
                    sha = object_store.add_raw(BLOB, f.read())
            else:
                logger.warning("skipping special file %r", entry.path)
                continue
            entries.append(TreeEntry(entry.name, cleanup_mode(st.st_mode), sha))
    return object_store.add_raw(TREE, serialize_tree(sorted_tree_items(entries)))


def build_file_from_blob(contents: bytes, mode: int, target_path: bytes) -> None:
    """Build a file or symlink on disk based on a blob.

    Args:
      contents: Blob contents
      mode: Tree entry mode
      target_path: Path to write to
    """
    if stat.S_ISLNK(mode):
        if os.path.lexists(target_path):
            os.unlink(target_path)
        os.symlink(contents, target_path)
        return
    if os.path.islink(target_path):
        # Replace the link itself rather than writing through it.
        os.unlink(target_path)
    with open(target_path, "wb") as f:
        f.write(contents)
    os.chmod(target_path, 0o755 if mode & 0o111 else 0o644)


def _read_typed(object_store: BaseObjectStore, sha: ObjectID, type_num: int) -> bytes:
    actual_type, payload = object_store.get_raw(sha)
    if actual_type != type_num:
        if type_num == COMMIT:
            raise NotCommitError(sha)
        if type_num == TREE:
            raise NotTreeError(sha)
        raise ObjectFormatException(f"{sha!r} is not a blob")
    return payload


def _checkout_tree(object_store: BaseObjectStore, tree_id: ObjectID, root: bytes) -> int:
    count = 0
    seen: set[bytes] = set()
    for entry in parse_tree(_read_typed(object_store, tree_id, TREE)):
        if not validate_path_element(entry.name):
            raise ObjectFormatException(f"invalid path element {entry.name!r}")
        if entry.name in seen:
            raise ObjectFormatException(f"duplicate tree entry {entry.name!r}")
        seen.add(entry.name)
        full_path = os.path.join(root, entry.name)
        if stat.S_ISDIR(entry.mode) or S_ISGITLINK(entry.mode):
            # Never create or descend through a symlink already on disk.
            if os.path.islink(full_path):
                raise ObjectFormatException(f"refusing to follow symlink {full_path!r}")
            os.makedirs(full_path, mode=0o755, exist_ok=True)
            if stat.S_ISDIR(entry.mode):
                count += _checkout_tree(object_store, entry.sha, full_path)
            # Submodules are not fetched; a gitlink leaves an empty directory.
        else:
            contents = _read_typed(object_store, entry.sha, BLOB)
            build_file_from_blob(contents, entry.mode, full_path)
            count += 1
    return count


def checkout(
    object_store: BaseObjectStore, working_dir: str | bytes, commit_id: ObjectID
) -> None:
    """Write the tree of a commit to a working directory.

    Existing files with the same names are overwritten; nothing is removed.

    Args:
      object_store: Object store to read from
      working_dir: Directory to write to; created if it does not exist
      commit_id: Hex id of the commit to check out
    Raises:
      NotCommitError: if commit_id does not name a commit
      ObjectMissing: if the commit or any object it references is missing
      ObjectFormatException: if a tree is malformed or names an unsafe path
    """
    root = os.fsencode(working_dir)
    os.makedirs(root, exist_ok=True)
    tree_id = parse_commit_tree(_read_typed(object_store, commit_id, COMMIT))
    count = _checkout_tree(object_store, tree_id, root)
    logger.info("checked out %d files", count)
