#
# gitplumb - Simple command-line interface to gitplumb
# Copyright (C) 2008-2011 Jelmer Vernooij <jelmer@jelmer.uk>
# vim: expandtab
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

"""Simple command-line interface to gitplumb.

Every subcommand parses its own arguments and calls into
:mod:`gitplumb.porcelain`. Commands operate on the repository in the
current working directory.
"""

__all__ = [
    "Command",
    "UsageError",
    "commands",
    "main",
]

import argparse
import logging
import os
import signal
import sys
import types
from collections.abc import Sequence
from typing import BinaryIO, ClassVar, NoReturn

from gitplumb import porcelain

from .log_utils import default_logging_config

logger = logging.getLogger(__name__)


def signal_int(signal: int, frame: types.FrameType | None) -> None:
    """Handle interrupt signal by exiting.

    Args:
        signal: Signal number
        frame: Current stack frame
    """
    sys.exit(1)


def _stdout_buffer() -> BinaryIO:
    return getattr(sys.stdout, "buffer", sys.stdout)


class UsageError(Exception):
    """A command was invoked with malformed arguments."""


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser that raises instead of exiting on malformed input."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        raise UsageError(message)


class Command:
    """A gitplumb subcommand."""

    name: ClassVar[str]

    def _parser(self) -> argparse.ArgumentParser:
        return _ArgumentParser(prog=f"gitplumb {self.name}")

    def run(self, args: Sequence[str]) -> int | None:
        """Run the command."""
        raise NotImplementedError(self.run)


class cmd_init(Command):
    """Create an empty Git repository."""

    name = "init"

    def run(self, args: Sequence[str]) -> None:
        """Execute the init command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.add_argument(
            "path", nargs="?", default=os.getcwd(), help="Repository path"
        )
        parsed_args = parser.parse_args(args)
        repo = porcelain.init(parsed_args.path)
        logger.info("Initialized empty Git repository in %s", repo.controldir())


class cmd_cat_file(Command):
    """Provide content or type information for repository objects."""

    name = "cat-file"

    def run(self, args: Sequence[str]) -> None:
        """Execute the cat-file command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        group = parser.add_mutually_exclusive_group(required=True)
        group.add_argument(
            "-p", dest="pretty", action="store_true", help="Pretty-print the object"
        )
        group.add_argument(
            "-t", dest="type", action="store_true", help="Show the object type"
        )
        parser.add_argument("object", help="Object id or ref name")
        parsed_args = parser.parse_args(args)
        outstream = _stdout_buffer()
        if parsed_args.type:
            outstream.write(porcelain.object_type(".", parsed_args.object) + b"\n")
        else:
            porcelain.cat_file(".", parsed_args.object, outstream=outstream)
        outstream.flush()


class cmd_hash_object(Command):
    """Compute object ID and optionally create a blob from a file."""

    name = "hash-object"

    def run(self, args: Sequence[str]) -> None:
        """Execute the hash-object command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.add_argument(
            "-w",
            dest="write",
            action="store_true",
            help="Write the object into the object database",
        )
        parser.add_argument("path", help="File to hash")
        parsed_args = parser.parse_args(args)
        sha = porcelain.hash_object(
            "." if parsed_args.write else None,
            parsed_args.path,
            write=parsed_args.write,
        )
        sys.stdout.write(f"{sha.decode('ascii')}\n")


class cmd_ls_tree(Command):
    """List the contents of a tree object."""

    name = "ls-tree"

    def run(self, args: Sequence[str]) -> None:
        """Execute the ls-tree command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.add_argument(
            "-r",
            "--recursive",
            action="store_true",
            help="Recursively list tree contents.",
        )
        parser.add_argument(
            "--name-only", action="store_true", help="Only display name."
        )
        parser.add_argument("treeish", help="Tree-ish to list")
        parsed_args = parser.parse_args(args)
        outstream = _stdout_buffer()
        porcelain.ls_tree(
            ".",
            parsed_args.treeish,
            outstream=outstream,
            recursive=parsed_args.recursive,
            name_only=parsed_args.name_only,
        )
        outstream.flush()


class cmd_write_tree(Command):
    """Create a tree object from the working directory."""

    name = "write-tree"

    def run(self, args: Sequence[str]) -> None:
        """Execute the write-tree command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.parse_args(args)
        sys.stdout.write("{}\n".format(porcelain.write_tree(".").decode()))


class cmd_commit_tree(Command):
    """Create a new commit object from a tree."""

    name = "commit-tree"

    def run(self, args: Sequence[str]) -> None:
        """Execute the commit-tree command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.add_argument("--message", "-m", required=True, help="Commit message")
        parser.add_argument("--parent", "-p", help="Parent commit")
        parser.add_argument("tree", help="Tree SHA to commit")
        parsed_args = parser.parse_args(args)
        sha = porcelain.commit_tree(
            ".",
            tree=parsed_args.tree,
            parent=parsed_args.parent,
            message=parsed_args.message,
        )
        sys.stdout.write(f"{sha.decode('ascii')}\n")


class cmd_clone(Command):
    """Clone a repository into a new directory."""

    name = "clone"

    def run(self, args: Sequence[str]) -> None:
        """Execute the clone command.

        Args:
            args: Command line arguments
        """
        parser = self._parser()
        parser.add_argument(
            "-b",
            "--branch",
            type=str,
            help="Check out branch instead of main, master or the first branch",
        )
        parser.add_argument("source", help="Repository to clone from")
        parser.add_argument("target", nargs="?", help="Directory to clone into")
        parsed_args = parser.parse_args(args)
        errstream = getattr(sys.stderr, "buffer", None)
        porcelain.clone(
            parsed_args.source,
            parsed_args.target,
            branch=parsed_args.branch,
            errstream=errstream,
        )


commands: dict[str, type[Command]] = {
    cls.name: cls
    for cls in (
        cmd_cat_file,
        cmd_clone,
        cmd_commit_tree,
        cmd_hash_object,
        cmd_init,
        cmd_ls_tree,
        cmd_write_tree,
    )
}


def main(argv: Sequence[str] | None = None) -> int | None:
    """Main entry point for the gitplumb CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code or None
    """
    if argv is None:
        argv = sys.argv[1:]

    if not argv or argv[0] in ("-h", "--help"):
        parser = argparse.ArgumentParser(
            prog="gitplumb", description="Simple command-line interface to gitplumb"
        )
        parser.add_argument(
            "command",
            nargs="?",
            help=f"Command to run. Available: {', '.join(sorted(commands.keys()))}",
        )
        parser.print_help()
        return 1

    default_logging_config()

    cmd = argv[0]
    cmd_args = argv[1:]

    try:
        cmd_kls = commands[cmd]
    except KeyError:
        logging.fatal("No such subcommand: %s", cmd)
        return 1
    try:
        return cmd_kls().run(cmd_args)
    except UsageError as e:
        sys.stderr.write(f"gitplumb {cmd}: error: {e}\n")
        return 2


def _main() -> None:
    signal.signal(signal.SIGINT, signal_int)
    sys.exit(main())


if __name__ == "__main__":
    _main()
