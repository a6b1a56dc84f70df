# test_objects.py -- tests for objects.py
# Copyright (C) 2007 James Westby <jw+debian@jameswestby.net>
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

"""Tests for git base objects."""

import os

from gitplumb.errors import ObjectFormatException
from gitplumb.objects import (
    BLOB,
    COMMIT,
    DEFAULT_IDENTITY,
    TREE,
    Identity,
    TreeEntry,
    hash_object,
    hex_to_filename,
    hex_to_sha,
    object_header,
    parse_commit,
    parse_commit_tree,
    parse_tree,
    pretty_format_tree_entry,
    serialize_commit,
    serialize_tree,
    sha_to_hex,
    sorted_tree_items,
    type_name_to_num,
    type_num_to_name,
    valid_hexsha,
)

from . import TestCase

a_sha = b"6f670c0fb53f9463760b7295fbb814e965fb20c8"
b_sha = b"2969be3e8ee1c0222396a5611407e4769f14e54b"
c_sha = b"954a536f7819d40e6f637f849ee187dd10066349"
empty_tree_sha = b"4b825dc642cb6eb9a060e54bf8d69288fbee4904"


class HexShaTests(TestCase):
    def test_hex_to_sha(self) -> None:
        self.assertEqual(b"\xab\xcd" * 10, hex_to_sha(b"abcd" * 10))

    def test_sha_to_hex(self) -> None:
        self.assertEqual(b"abcd" * 10, sha_to_hex(b"\xab\xcd" * 10))

    def test_hex_to_sha_invalid(self) -> None:
        self.assertRaises(ValueError, hex_to_sha, b"x" * 40)

    def test_valid_hexsha(self) -> None:
        self.assertTrue(valid_hexsha(a_sha))
        self.assertFalse(valid_hexsha(a_sha[:-1]))
        self.assertFalse(valid_hexsha(b"z" * 40))

    def test_hex_to_filename(self) -> None:
        self.assertEqual(
            os.path.join("objects", "6f", "670c0fb53f9463760b7295fbb814e965fb20c8"),
            hex_to_filename("objects", a_sha),
        )


class ObjectHeaderTests(TestCase):
    def test_object_header(self) -> None:
        self.assertEqual(b"blob 5\0", object_header(BLOB, 5))
        self.assertEqual(b"tree 0\0", object_header(TREE, 0))

    def test_unknown_type(self) -> None:
        self.assertRaises(ObjectFormatException, object_header, 6, 1)

    def test_type_names(self) -> None:
        self.assertEqual(b"commit", type_num_to_name(COMMIT))
        self.assertEqual(TREE, type_name_to_num(b"tree"))
        self.assertRaises(ObjectFormatException, type_name_to_num, b"blub")


class HashObjectTests(TestCase):
    def test_empty_blob(self) -> None:
        self.assertEqual(
            b"e69de29bb2d1d6434b8b29ae775ad8c2e48c5391", hash_object(BLOB, b"")
        )

    def test_blob(self) -> None:
        self.assertEqual(
            b"3b18e512dba79e4c8300dd08aeb37f8e728b8dad",
            hash_object(BLOB, b"hello world\n"),
        )

    def test_empty_tree(self) -> None:
        self.assertEqual(empty_tree_sha, hash_object(TREE, b""))

    def test_type_is_part_of_the_id(self) -> None:
        self.assertNotEqual(hash_object(BLOB, b""), hash_object(TREE, b""))


class TreeTests(TestCase):
    def test_serialize_tree(self) -> None:
        entries = [TreeEntry(b"myname", 0o100755, a_sha)]
        self.assertEqual(
            b"100755 myname\0" + hex_to_sha(a_sha), serialize_tree(entries)
        )

    def test_directory_mode_has_no_leading_zero(self) -> None:
        entries = [TreeEntry(b"dir", 0o040000, a_sha)]
        self.assertTrue(serialize_tree(entries).startswith(b"40000 dir\0"))

    def test_parse_tree(self) -> None:
        entries = [
            TreeEntry(b"a", 0o100644, a_sha),
            TreeEntry(b"b", 0o040000, b_sha),
            TreeEntry(b"c", 0o120000, c_sha),
        ]
        self.assertEqual(entries, parse_tree(serialize_tree(entries)))

    def test_parse_empty_tree(self) -> None:
        self.assertEqual([], parse_tree(b""))

    def test_parse_truncated(self) -> None:
        data = serialize_tree([TreeEntry(b"a", 0o100644, a_sha)])
        self.assertRaises(ObjectFormatException, parse_tree, data[:-1])

    def test_parse_invalid_mode(self) -> None:
        self.assertRaises(
            ObjectFormatException, parse_tree, b"10x644 a\0" + hex_to_sha(a_sha)
        )

    def test_parse_missing_name_terminator(self) -> None:
        self.assertRaises(ObjectFormatException, parse_tree, b"100644 a")

    def test_sorted_tree_items_directory_order(self) -> None:
        # "foo" as a directory sorts as "foo/", which is after "foo.c".
        entries = [
            TreeEntry(b"foo", 0o040000, a_sha),
            TreeEntry(b"foo.c", 0o100644, b_sha),
            TreeEntry(b"a", 0o100644, c_sha),
        ]
        self.assertEqual(
            [b"a", b"foo.c", b"foo"], [e.name for e in sorted_tree_items(entries)]
        )

    def test_sorted_tree_items_file_order(self) -> None:
        entries = [
            TreeEntry(b"foo", 0o100644, a_sha),
            TreeEntry(b"foo.c", 0o100644, b_sha),
        ]
        self.assertEqual(
            [b"foo", b"foo.c"], [e.name for e in sorted_tree_items(entries)]
        )

    def test_pretty_format_tree_entry(self) -> None:
        self.assertEqual(
            "100644 blob 6f670c0fb53f9463760b7295fbb814e965fb20c8\tfoo\n",
            pretty_format_tree_entry(b"foo", 0o100644, a_sha),
        )
        self.assertEqual(
            "040000 tree 6f670c0fb53f9463760b7295fbb814e965fb20c8\tdir\n",
            pretty_format_tree_entry(b"dir", 0o040000, a_sha),
        )
        self.assertEqual(
            "160000 commit 6f670c0fb53f9463760b7295fbb814e965fb20c8\tsub\n",
            pretty_format_tree_entry(b"sub", 0o160000, a_sha),
        )


class CommitTests(TestCase):
    identity = Identity(b"Jane Doe", b"jane@example.com", 1700000000, b"+0100")

    def test_serialize_root_commit(self) -> None:
        self.assertEqual(
            b"tree " + empty_tree_sha + b"\n"
            b"author John Doe <john@example.com> 1234567890 +0000\n"
            b"committer John Doe <john@example.com> 1234567890 +0000\n"
            b"\n"
            b"initial\n",
            serialize_commit(empty_tree_sha, None, b"initial"),
        )

    def test_serialize_with_parent(self) -> None:
        payload = serialize_commit(empty_tree_sha, a_sha, b"second", self.identity)
        self.assertEqual(
            [
                b"tree " + empty_tree_sha,
                b"parent " + a_sha,
                b"author Jane Doe <jane@example.com> 1700000000 +0100",
                b"committer Jane Doe <jane@example.com> 1700000000 +0100",
                b"",
                b"second",
                b"",
            ],
            payload.split(b"\n"),
        )

    def test_parse_commit(self) -> None:
        payload = serialize_commit(
            empty_tree_sha, a_sha, b"msg", DEFAULT_IDENTITY, self.identity
        )
        commit = parse_commit(payload)
        self.assertEqual(empty_tree_sha, commit.tree)
        self.assertEqual(a_sha, commit.parent)
        self.assertEqual(DEFAULT_IDENTITY, commit.author)
        self.assertEqual(self.identity, commit.committer)
        self.assertEqual(b"msg\n", commit.message)

    def test_parse_root_commit(self) -> None:
        commit = parse_commit(serialize_commit(empty_tree_sha, None, b"msg"))
        self.assertIsNone(commit.parent)

    def test_parse_merge_commit(self) -> None:
        payload = (
            b"tree " + empty_tree_sha + b"\n"
            b"parent " + a_sha + b"\n"
            b"parent " + b_sha + b"\n"
            b"author A <a@example.com> 1 +0000\n"
            b"committer A <a@example.com> 1 +0000\n"
            b"\nmerge\n"
        )
        self.assertRaises(ObjectFormatException, parse_commit, payload)

    def test_parse_missing_tree(self) -> None:
        payload = b"author A <a@example.com> 1 +0000\n\nmsg\n"
        self.assertRaises(ObjectFormatException, parse_commit, payload)

    def test_parse_commit_tree(self) -> None:
        payload = serialize_commit(empty_tree_sha, a_sha, b"msg")
        self.assertEqual(empty_tree_sha, parse_commit_tree(payload))

    def test_parse_commit_tree_missing(self) -> None:
        self.assertRaises(
            ObjectFormatException, parse_commit_tree, b"parent " + a_sha + b"\n\nmsg\n"
        )

    def test_parse_commit_tree_invalid(self) -> None:
        self.assertRaises(
            ObjectFormatException, parse_commit_tree, b"tree nothex\n\nmsg\n"
        )

    def test_identity_format(self) -> None:
        self.assertEqual(
            b"Jane Doe <jane@example.com> 1700000000 +0100", self.identity.format()
        )
