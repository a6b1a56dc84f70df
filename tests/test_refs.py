# test_refs.py -- tests for refs.py
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

"""Tests for gitplumb.refs."""

import os

from gitplumb.errors import RefFormatError
from gitplumb.refs import DiskRefsContainer, SymrefLoop, check_ref_format

from . import TestCase

ONE = b"42d06bd4b77fed026b154d16493e5deab78f02ec"
TWO = b"3ec9c43c84ff242e3ef4a9fc5bc111fd780a76a8"


class CheckRefFormatTests(TestCase):
    """Tests for the check_ref_format function.

    These are the same tests as in the git test suite.
    """

    def test_valid(self) -> None:
        self.assertTrue(check_ref_format(b"heads/foo"))
        self.assertTrue(check_ref_format(b"foo/bar/baz"))
        self.assertTrue(check_ref_format(b"refs///heads/foo"))
        self.assertTrue(check_ref_format(b"foo./bar"))
        self.assertTrue(check_ref_format(b"heads/foo@bar"))
        self.assertTrue(check_ref_format(b"heads/fix.lock.error"))

    def test_invalid(self) -> None:
        self.assertFalse(check_ref_format(b"foo"))
        self.assertFalse(check_ref_format(b"heads/foo/"))
        self.assertFalse(check_ref_format(b"./foo"))
        self.assertFalse(check_ref_format(b".refs/foo"))
        self.assertFalse(check_ref_format(b"heads/foo..bar"))
        self.assertFalse(check_ref_format(b"heads/foo?bar"))
        self.assertFalse(check_ref_format(b"heads/foo.lock"))
        self.assertFalse(check_ref_format(b"heads/v@{ation"))
        self.assertFalse(check_ref_format(b"heads/foo\bar"))
        self.assertFalse(check_ref_format(b"heads/foo bar"))


class DiskRefsContainerTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.controldir = self.make_temp_dir()
        self.refs = DiskRefsContainer(self.controldir)

    def write_file(self, name: str, contents: bytes) -> None:
        path = os.path.join(self.controldir, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(contents)

    def test_set_and_get(self) -> None:
        self.refs.set_ref(b"refs/heads/main", ONE)
        self.assertEqual(ONE, self.refs[b"refs/heads/main"])
        self.assertIn(b"refs/heads/main", self.refs)
        with open(os.path.join(self.controldir, "refs", "heads", "main"), "rb") as f:
            self.assertEqual(ONE + b"\n", f.read())

    def test_overwrite(self) -> None:
        self.refs.set_ref(b"refs/heads/main", ONE)
        self.refs.set_ref(b"refs/heads/main", TWO)
        self.assertEqual(TWO, self.refs[b"refs/heads/main"])

    def test_missing(self) -> None:
        self.assertRaises(KeyError, self.refs.__getitem__, b"refs/heads/main")
        self.assertNotIn(b"refs/heads/main", self.refs)
        self.assertIsNone(self.refs.read_ref(b"refs/heads/main"))

    def test_set_invalid_sha(self) -> None:
        self.assertRaises(ValueError, self.refs.set_ref, b"refs/heads/main", b"abc")

    def test_set_invalid_name(self) -> None:
        self.assertRaises(RefFormatError, self.refs.set_ref, b"refs/heads/foo..bar", ONE)
        self.assertRaises(RefFormatError, self.refs.set_ref, b"heads/main", ONE)
        self.assertRaises(RefFormatError, self.refs.set_ref, b"refs/heads/a b", ONE)

    def test_symbolic_ref(self) -> None:
        self.refs.set_symbolic_ref(b"HEAD", b"refs/heads/main")
        self.assertEqual(b"ref: refs/heads/main", self.refs.read_ref(b"HEAD"))
        self.assertNotIn(b"HEAD", self.refs)
        self.refs.set_ref(b"refs/heads/main", ONE)
        self.assertEqual(ONE, self.refs[b"HEAD"])
        self.assertEqual(
            ([b"HEAD", b"refs/heads/main"], ONE), self.refs.follow(b"HEAD")
        )

    def test_set_ref_does_not_follow_symrefs(self) -> None:
        self.refs.set_symbolic_ref(b"HEAD", b"refs/heads/main")
        self.refs.set_ref(b"HEAD", ONE)
        self.assertEqual(ONE, self.refs.read_ref(b"HEAD"))
        self.assertIsNone(self.refs.read_ref(b"refs/heads/main"))

    def test_symbolic_ref_invalid_target(self) -> None:
        self.assertRaises(
            RefFormatError, self.refs.set_symbolic_ref, b"HEAD", b"refs/heads/a..b"
        )

    def test_symref_loop(self) -> None:
        self.refs.set_symbolic_ref(b"refs/heads/loop", b"refs/heads/loop")
        self.assertRaises(SymrefLoop, self.refs.__getitem__, b"refs/heads/loop")

    def test_reads_crlf(self) -> None:
        self.write_file("refs/heads/main", ONE + b"\r\n")
        self.assertEqual(ONE, self.refs[b"refs/heads/main"])

    def test_no_lock_left_behind(self) -> None:
        self.refs.set_ref(b"refs/heads/main", ONE)
        self.assertEqual(
            ["main"], os.listdir(os.path.join(self.controldir, "refs", "heads"))
        )
