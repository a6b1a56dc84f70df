# porcelain.py -- Porcelain-like layer on top of gitplumb
# Copyright (C) 2013 Jelmer Vernooij <jelmer@jelmer.uk>
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

"""Simple wrapper that provides porcelain-like functions on top of gitplumb.

Currently implemented:
 * cat_file
 * clone
 * commit_tree
 * hash_object
 * init
 * ls_tree
 * object_type
 * write_tree

These functions are meant to behave similarly to the git subcommands.
Differences in behaviour are considered bugs.

Functions should generally accept both unicode strings and bytestrings
"""

__all__ = [
    "Error",
    "cat_file",
    "clone",
    "commit_tree",
    "hash_object",
    "init",
    "ls_tree",
    "object_type",
    "open_repo_closing",
    "write_tree",
]

import logging
import os
import posixpath
import stat
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import BinaryIO

from . import objects
from .client import HttpGitClient, select_branch
from .config import ConfigDict
from .errors import NotCommitError, NotTreeError
from .object_store import commit_tree as _commit_tree
from .objects import (
    BLOB,
    COMMIT,
    DEFAULT_IDENTITY,
    TREE,
    Identity,
    ObjectID,
    parse_commit_tree,
    parse_tree,
    pretty_format_tree_entry,
    type_num_to_name,
    valid_hexsha,
)
from .pack import unpack_pack_data
from .refs import (
    HEADREF,
    LOCAL_BRANCH_PREFIX,
    LOCAL_REMOTE_PREFIX,
    LOCAL_TAG_PREFIX,
)
from .repo import Repo
from .worktree import build_tree_from_path
from .worktree import checkout as checkout_tree

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"

RepoPath = str | os.PathLike[str] | Repo

# Default output stream for commands that write object data
default_bytes_out_stream: BinaryIO = getattr(sys.stdout, "buffer", None) or sys.stdout  # type: ignore[assignment]


class Error(Exception):
    """Porcelain-based error."""


@contextmanager
def _noop_context_manager(obj: Repo) -> Iterator[Repo]:
    """Context manager that has the same api as closing but does nothing."""
    yield obj


def open_repo_closing(path_or_repo: RepoPath):
    """Open an argument that can be a repository or a path for a repository."""
    if isinstance(path_or_repo, Repo):
        return _noop_context_manager(path_or_repo)
    return Repo(path_or_repo)


def _to_bytes(value: str | bytes) -> bytes:
    if isinstance(value, str):
        return value.encode(DEFAULT_ENCODING)
    return value


def parse_object(r: Repo, name: str | bytes) -> ObjectID:
    """Resolve a hex id or ref name to an object id.

    Refs are looked up as given, then below ``refs/heads/`` and
    ``refs/tags/``.

    Raises:
      KeyError: if the name can not be resolved
    """
    name = _to_bytes(name)
    if valid_hexsha(name):
        return ObjectID(name.lower())
    for candidate in (name, LOCAL_BRANCH_PREFIX + name, LOCAL_TAG_PREFIX + name):
        if candidate in r.refs:
            return r.refs[candidate]
    raise KeyError(name)


def _resolve_tree(r: Repo, sha: ObjectID) -> ObjectID:
    type_num, payload = r.object_store.get_raw(sha)
    if type_num == COMMIT:
        return parse_commit_tree(payload)
    if type_num != TREE:
        raise NotTreeError(sha)
    return sha


def init(path: str | os.PathLike[str] = ".") -> Repo:
    """Create a new git repository.

    Args:
      path: Path to repository.
    Returns: A Repo instance
    """
    if not os.path.exists(path):
        os.mkdir(path)
    return Repo.init(path)


def object_type(repo: RepoPath, sha: str | bytes) -> bytes:
    """Return the type name of an object, e.g. ``b"blob"``."""
    with open_repo_closing(repo) as r:
        type_num, _ = r.object_store.get_raw(parse_object(r, sha))
        return type_num_to_name(type_num)


def cat_file(
    repo: RepoPath,
    sha: str | bytes,
    outstream: BinaryIO = default_bytes_out_stream,
    pretty: bool = True,
) -> None:
    """Write the contents of an object.

    Args:
      repo: Path to the repository
      sha: Object id or ref name
      outstream: Stream to write to
      pretty: Format trees the way ``git cat-file -p`` does; other objects
        are written verbatim
    """
    with open_repo_closing(repo) as r:
        type_num, payload = r.object_store.get_raw(parse_object(r, sha))
        if type_num == TREE and pretty:
            for entry in parse_tree(payload):
                outstream.write(
                    pretty_format_tree_entry(entry.name, entry.mode, entry.sha).encode(
                        DEFAULT_ENCODING
                    )
                )
        else:
            outstream.write(payload)


def hash_object(
    repo: RepoPath | None, path: str | os.PathLike[str], write: bool = True
) -> ObjectID:
    """Compute the id of a file as a blob, optionally storing it.

    Args:
      repo: Repository to store the blob in; only needed when writing
      path: Path of the file
      write: Whether to add the blob to the object store
    Returns: Hex id of the blob
    """
    with open(path, "rb") as f:
        contents = f.read()
    if not write:
        return objects.hash_object(BLOB, contents)
    if repo is None:
        raise Error("a repository is required to write objects")
    with open_repo_closing(repo) as r:
        return r.object_store.add_raw(BLOB, contents)


def ls_tree(
    repo: RepoPath,
    treeish: str | bytes = HEADREF,
    outstream: BinaryIO = default_bytes_out_stream,
    recursive: bool = False,
    name_only: bool = False,
) -> None:
    """List contents of a tree.

    Args:
      repo: Path to the repository
      treeish: Tree or commit id, or ref name
      outstream: Output stream
      recursive: Whether to recursively list files
      name_only: Only print item name
    """

    def list_tree(r: Repo, treeid: ObjectID, base: bytes) -> None:
        type_num, payload = r.object_store.get_raw(treeid)
        if type_num != TREE:
            raise NotTreeError(treeid)
        for name, mode, sha in parse_tree(payload):
            if base:
                name = posixpath.join(base, name)
            if name_only:
                outstream.write(name + b"\n")
            else:
                outstream.write(
                    pretty_format_tree_entry(name, mode, sha).encode(DEFAULT_ENCODING)
                )
            if stat.S_ISDIR(mode) and recursive:
                list_tree(r, sha, name)

    with open_repo_closing(repo) as r:
        list_tree(r, _resolve_tree(r, parse_object(r, treeish)), b"")


def write_tree(repo: RepoPath) -> ObjectID:
    """Store the contents of the working directory as a tree.

    Args:
      repo: Repository for which to write tree
    Returns: Hex id of the tree
    """
    with open_repo_closing(repo) as r:
        return build_tree_from_path(r.object_store, r.path)


def commit_tree(
    repo: RepoPath,
    tree: str | bytes,
    parent: str | bytes | None = None,
    message: str | bytes = b"",
    identity: Identity = DEFAULT_IDENTITY,
) -> ObjectID:
    """Create a new commit object.

    Args:
      repo: Path to repository
      tree: An existing tree object
      parent: Optional parent commit
      message: Commit message
      identity: Author and committer identity
    Returns: Hex id of the commit
    """
    with open_repo_closing(repo) as r:
        tree_id = parse_object(r, tree)
        if r.object_store.get_raw(tree_id)[0] != TREE:
            raise NotTreeError(tree_id)
        parent_id = None
        if parent is not None:
            parent_id = parse_object(r, parent)
            if r.object_store.get_raw(parent_id)[0] != COMMIT:
                raise NotCommitError(parent_id)
        return _commit_tree(
            r.object_store, tree_id, parent_id, _to_bytes(message), identity
        )


def _default_clone_target(source: str) -> str:
    target = source.rstrip("/").split("/")[-1]
    if target.endswith(".git"):
        target = target[: -len(".git")]
    if not target:
        raise Error(f"unable to derive a directory name from {source}")
    return target


def clone(
    source: str,
    target: str | os.PathLike[str] | None = None,
    branch: str | bytes | None = None,
    origin: str = "origin",
    checkout: bool = True,
    errstream: BinaryIO | None = None,
    config: ConfigDict | None = None,
    **kwargs,
) -> Repo:
    """Clone a remote git repository over smart HTTP.

    Only the history of the cloned branch is fetched. Remote branches and
    tags are recorded only when their objects came along.

    Args:
      source: URL of the source repository
      target: Path to target repository (optional)
      branch: Branch to check out, instead of main, master or the first
        branch the remote advertises
      origin: Name of remote from the repository used to clone
      checkout: Whether or not to check out the branch after cloning
      errstream: Optional stream to write progress to
      config: Configuration to read ``http.*`` settings from
      **kwargs: Passed on to HttpGitClient, e.g. ``pool_manager``
    Returns: The new repository
    Raises:
      Error: if the target is not empty or the branch does not exist
    """
    if target is None:
        target = _default_clone_target(source)
    if os.path.exists(target) and os.listdir(target):
        raise Error(f"destination path {target} already exists and is not empty")
    mkdir = not os.path.exists(target)

    progress = errstream.write if errstream is not None else None
    client = HttpGitClient(source, config=config, progress=progress, **kwargs)

    repo = Repo.init(target, mkdir=mkdir)
    logger.info("Cloning into '%s'...", target)
    refs = client.discover_refs()
    if branch is not None:
        head_ref = LOCAL_BRANCH_PREFIX + _to_bytes(branch)
        if head_ref not in refs:
            raise Error(f"Remote branch {_to_bytes(branch).decode()} not found")
    else:
        head_ref = select_branch(refs)
    head = refs[head_ref]

    pack_data = client.fetch_pack([head])
    unpack_pack_data(repo.object_store, pack_data)

    origin_b = _to_bytes(origin)
    remote_prefix = LOCAL_REMOTE_PREFIX + origin_b + b"/"
    for name, sha in refs.items():
        if sha not in repo.object_store:
            continue
        if name.startswith(LOCAL_BRANCH_PREFIX):
            repo.refs.set_ref(remote_prefix + name[len(LOCAL_BRANCH_PREFIX) :], sha)
        elif name.startswith(LOCAL_TAG_PREFIX):
            repo.refs.set_ref(name, sha)

    branch_name = head_ref[len(LOCAL_BRANCH_PREFIX) :]
    repo.refs.set_ref(head_ref, head)
    repo.refs.set_symbolic_ref(HEADREF, head_ref)
    repo.refs.set_symbolic_ref(remote_prefix + HEADREF, remote_prefix + branch_name)

    cf = repo.get_config()
    cf.set((b"remote", origin_b), b"url", _to_bytes(client.get_url()))
    cf.set(
        (b"remote", origin_b),
        b"fetch",
        b"+" + LOCAL_BRANCH_PREFIX + b"*:" + remote_prefix + b"*",
    )
    cf.set((b"branch", branch_name), b"remote", origin_b)
    cf.set((b"branch", branch_name), b"merge", head_ref)
    cf.write_to_path()

    if checkout:
        checkout_tree(repo.object_store, repo.path, head)
    return repo
