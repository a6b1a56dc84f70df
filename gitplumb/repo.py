# repo.py -- For dealing with git repositories.
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

"""Repository access.

A repository is a working directory with a ``.git`` control directory
holding the loose object store, the refs, ``HEAD`` and the config file.
"""

__all__ = [
    "CONTROLDIR",
    "DEFAULT_BRANCH",
    "OBJECTDIR",
    "Repo",
]

import logging
import os

from .config import ConfigFile
from .errors import NotGitRepository
from .object_store import DiskObjectStore
from .objects import ObjectID
from .refs import HEADREF, LOCAL_BRANCH_PREFIX, DiskRefsContainer

logger = logging.getLogger(__name__)

CONTROLDIR = ".git"
OBJECTDIR = "objects"
REFSDIR = "refs"
REFSDIR_TAGS = "tags"
REFSDIR_HEADS = "heads"
CONFIG_FILENAME = "config"

BASE_DIRECTORIES = [
    [REFSDIR],
    [REFSDIR, REFSDIR_TAGS],
    [REFSDIR, REFSDIR_HEADS],
]

DEFAULT_BRANCH = b"main"


class Repo:
    """A git repository backed by local disk.

    To open an existing repository, call the constructor with
    the path of the working directory. To create a new repository,
    use the Repo.init class method.

    Attributes:
      path: Path to the working copy
      object_store: Dictionary-like object for accessing the objects
      refs: Dictionary-like object with the refs in this repository
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        """Open a repository on disk.

        Args:
          root: Path to the repository's working directory.
        Raises:
          NotGitRepository: if there is no ``.git`` directory with an
            object store below root
        """
        root = os.fspath(root)
        controldir = os.path.join(root, CONTROLDIR)
        if not os.path.isdir(os.path.join(controldir, OBJECTDIR)):
            raise NotGitRepository(f"No git repository was found at {root}")
        self.path = root
        self._controldir = controldir
        self.object_store = DiskObjectStore(os.path.join(controldir, OBJECTDIR))
        self.refs = DiskRefsContainer(controldir)

    def __repr__(self) -> str:
        return f"<Repo at {self.path!r}>"

    def __enter__(self) -> "Repo":
        return self

    def __exit__(self, *args: object) -> None:
        pass

    def controldir(self) -> str:
        """Return the path of the control directory."""
        return self._controldir

    def get_config(self) -> ConfigFile:
        """Retrieve the config object.

        Returns: `ConfigFile` object for the ``.git/config`` file.
        """
        path = os.path.join(self._controldir, CONFIG_FILENAME)
        try:
            return ConfigFile.from_path(path)
        except FileNotFoundError:
            ret = ConfigFile()
            ret.path = path
            return ret

    def head(self) -> ObjectID:
        """Return the SHA1 pointed at by HEAD.

        Raises:
          KeyError: if HEAD points at a branch that does not exist yet
        """
        return self.refs[HEADREF]

    @classmethod
    def init(
        cls,
        path: str | os.PathLike[str],
        mkdir: bool = False,
        default_branch: bytes = DEFAULT_BRANCH,
    ) -> "Repo":
        """Create a new repository.

        Args:
          path: Path in which to create the repository
          mkdir: Whether to create the directory
          default_branch: Branch that HEAD points at
        Returns: `Repo` instance
        """
        path = os.fspath(path)
        if mkdir:
            os.mkdir(path)
        controldir = os.path.join(path, CONTROLDIR)
        os.mkdir(controldir)
        for d in BASE_DIRECTORIES:
            os.mkdir(os.path.join(controldir, *d))
        DiskObjectStore.init(os.path.join(controldir, OBJECTDIR))
        ret = cls(path)
        ret.refs.set_symbolic_ref(HEADREF, LOCAL_BRANCH_PREFIX + default_branch)

        cf = ConfigFile()
        cf.set("core", "repositoryformatversion", "0")
        cf.set("core", "filemode", True)
        cf.set("core", "bare", False)
        cf.write_to_path(os.path.join(controldir, CONFIG_FILENAME))
        logger.debug("initialized empty repository in %s", controldir)
        return ret
