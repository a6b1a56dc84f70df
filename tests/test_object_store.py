# test_object_store.py -- tests for object_store.py
# Copyright (C) 2008 Jelmer Vernooij <jelmer@jelmer.uk>
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

"""Tests for the object store interface."""

import os
import zlib

from gitplumb.errors import ObjectFormatException, ObjectMissing
from gitplumb.object_store import DiskObjectStore, MemoryObjectStore, commit_tree
from gitplumb.objects import (
    BLOB,
    COMMIT,
    TREE,
    Identity,
    hash_object,
    hex_to_filename,
    hex_to_sha,
    parse_commit,
)

from . import TestCase

testobject_payload = b"yummy data"
testobject_sha = hash_object(BLOB, testobject_payload)
missing_sha = b"a" * 40


class ObjectStoreTests:
    def test_empty(self) -> None:
        self.assertNotIn(testobject_sha, self.store)
        self.assertEqual([], list(self.store))
        self.assertEqual(0, len(self.store))

    def test_add_raw(self) -> None:
        sha = self.store.add_raw(BLOB, testobject_payload)
        self.assertEqual(testobject_sha, sha)
        self.assertIn(sha, self.store)
        self.assertEqual((BLOB, testobject_payload), self.store.get_raw(sha))

    def test_add_twice(self) -> None:
        self.store.add_raw(BLOB, testobject_payload)
        self.store.add_raw(BLOB, testobject_payload)
        self.assertEqual([testobject_sha], list(self.store))

    def test_get_raw_binary_sha(self) -> None:
        self.store.add_raw(BLOB, testobject_payload)
        self.assertEqual(
            (BLOB, testobject_payload), self.store.get_raw(hex_to_sha(testobject_sha))
        )
        self.assertIn(hex_to_sha(testobject_sha), self.store)

    def test_get_missing(self) -> None:
        self.assertRaises(ObjectMissing, self.store.get_raw, missing_sha)

    def test_missing_is_key_error(self) -> None:
        self.assertRaises(KeyError, self.store.get_raw, missing_sha)

    def test_invalid_sha(self) -> None:
        self.assertRaises(ValueError, self.store.get_raw, b"abc")

    def test_invalid_type(self) -> None:
        self.assertRaises(ObjectFormatException, self.store.add_raw, 7, b"data")

    def test_iter(self) -> None:
        shas = {
            self.store.add_raw(BLOB, b"one"),
            self.store.add_raw(BLOB, b"two"),
            self.store.add_raw(TREE, b""),
        }
        self.assertEqual(shas, set(self.store))
        self.assertEqual(3, len(self.store))

    def test_commit_tree(self) -> None:
        tree = self.store.add_raw(TREE, b"")
        identity = Identity(b"A U Thor", b"author@example.com", 1, b"+0000")
        first = commit_tree(self.store, tree, None, b"first", identity)
        second = commit_tree(self.store, tree, first, b"second", identity)
        type_num, payload = self.store.get_raw(second)
        self.assertEqual(COMMIT, type_num)
        commit = parse_commit(payload)
        self.assertEqual(tree, commit.tree)
        self.assertEqual(first, commit.parent)
        self.assertEqual(identity, commit.author)
        self.assertEqual(identity, commit.committer)

    def test_commit_tree_is_deterministic(self) -> None:
        tree = self.store.add_raw(TREE, b"")
        self.assertEqual(
            commit_tree(self.store, tree, None, b"msg"),
            commit_tree(self.store, tree, None, b"msg"),
        )


class MemoryObjectStoreTests(ObjectStoreTests, TestCase):
    def setUp(self) -> None:
        TestCase.setUp(self)
        self.store = MemoryObjectStore()


class DiskObjectStoreTests(ObjectStoreTests, TestCase):
    def setUp(self) -> None:
        TestCase.setUp(self)
        self.store_dir = os.path.join(self.make_temp_dir(), "objects")
        self.store = DiskObjectStore.init(self.store_dir)

    def test_init_layout(self) -> None:
        self.assertTrue(os.path.isdir(os.path.join(self.store_dir, "info")))
        self.assertTrue(os.path.isdir(os.path.join(self.store_dir, "pack")))

    def test_loose_object_format(self) -> None:
        sha = self.store.add_raw(BLOB, testobject_payload)
        path = hex_to_filename(self.store_dir, sha)
        with open(path, "rb") as f:
            self.assertEqual(
                b"blob 10\0" + testobject_payload, zlib.decompress(f.read())
            )
        self.assertEqual(0, os.stat(path).st_mode & 0o222)
        self.assertFalse(os.path.exists(path + ".lock"))

    def test_reads_objects_written_elsewhere(self) -> None:
        sha = hash_object(BLOB, b"hello\n")
        path = hex_to_filename(self.store_dir, sha)
        os.mkdir(os.path.dirname(path))
        with open(path, "wb") as f:
            f.write(zlib.compress(b"blob 6\0hello\n"))
        self.assertEqual((BLOB, b"hello\n"), self.store.get_raw(sha))

    def _write_loose(self, sha: bytes, data: bytes) -> None:
        path = hex_to_filename(self.store_dir, sha)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    def test_corrupt_compression(self) -> None:
        self._write_loose(missing_sha, b"not zlib at all")
        self.assertRaises(ObjectFormatException, self.store.get_raw, missing_sha)

    def test_size_mismatch(self) -> None:
        self._write_loose(missing_sha, zlib.compress(b"blob 3\0hello"))
        self.assertRaises(ObjectFormatException, self.store.get_raw, missing_sha)

    def test_missing_header_separator(self) -> None:
        self._write_loose(missing_sha, zlib.compress(b"blob 5 hello"))
        self.assertRaises(ObjectFormatException, self.store.get_raw, missing_sha)

    def test_unknown_type(self) -> None:
        self._write_loose(missing_sha, zlib.compress(b"blub 5\0hello"))
        self.assertRaises(ObjectFormatException, self.store.get_raw, missing_sha)

    def test_reopen(self) -> None:
        sha = self.store.add_raw(BLOB, testobject_payload)
        other = DiskObjectStore(self.store_dir)
        self.assertEqual((BLOB, testobject_payload), other.get_raw(sha))

    def test_compression_level(self) -> None:
        store = DiskObjectStore(self.store_dir, loose_compression_level=0)
        sha = store.add_raw(BLOB, b"x" * 100)
        with open(hex_to_filename(self.store_dir, sha), "rb") as f:
            self.assertGreater(len(f.read()), 100)
