# pack.py -- For dealing with packed git objects.
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

"""Classes for dealing with packed git objects.

A pack is a (compressed) archive of git objects, as sent by a server in
response to a fetch. It starts with a 12-byte header, followed by the entries
and a trailing SHA-1 of everything before it.

Each entry is a whole object or a delta against another object. A delta
names its base either by a backward distance in the pack (``OFS_DELTA``) or
by object id (``REF_DELTA``). Packs received over the wire are never stored
as such; their entries are resolved and written to the object store as loose
objects.
"""

__all__ = [
    "DELTA_TYPES",
    "OFS_DELTA",
    "REF_DELTA",
    "DeltaResolver",
    "PackStreamReader",
    "SHA1Writer",
    "UnpackedObject",
    "UnresolvedDeltas",
    "apply_delta",
    "create_delta",
    "pack_object_header",
    "read_pack_header",
    "read_zlib_chunks",
    "take_msb_bytes",
    "unpack_object",
    "unpack_pack_data",
    "write_pack_header",
    "write_pack_object",
    "write_pack_objects",
]

import binascii
import logging
import struct
import zlib
from collections import defaultdict
from collections.abc import Callable, Iterable, Iterator, Sequence
from difflib import SequenceMatcher
from hashlib import sha1
from io import BytesIO
from itertools import chain
from typing import TYPE_CHECKING

from .errors import (
    ApplyDeltaError,
    ChecksumMismatch,
    DeltaResolutionError,
    PackFormatException,
)
from .objects import BLOB, COMMIT, TAG, TREE, ObjectID, hash_object, sha_to_hex

if TYPE_CHECKING:
    from .object_store import BaseObjectStore

logger = logging.getLogger(__name__)

OFS_DELTA = 6
REF_DELTA = 7

DELTA_TYPES = (OFS_DELTA, REF_DELTA)

PACK_MAGIC = b"PACK"
PACK_HEADER_SIZE = 12
PACK_CHECKSUM_SIZE = 20

_ZLIB_BUFSIZE = 65536


class UnresolvedDeltas(DeltaResolutionError):
    """Delta objects could not be resolved."""

    def __init__(self, shas: Sequence[bytes], offsets: Sequence[int] = ()) -> None:
        """Initialize UnresolvedDeltas exception.

        Args:
          shas: Hex ids of missing bases of reference deltas
          offsets: Pack offsets of missing bases of offset deltas
        """
        self.shas = list(shas)
        self.offsets = list(offsets)
        missing = [sha.decode("ascii") for sha in self.shas]
        missing.extend(f"offset {offset}" for offset in self.offsets)
        super().__init__("unresolved delta bases: " + ", ".join(missing))


def take_msb_bytes(read: Callable[[int], bytes]) -> list[int]:
    """Read bytes marked with most significant bit.

    Args:
      read: Read function
    Returns: List of the bytes read, the last one without its high bit set
    """
    ret: list[int] = []
    while len(ret) == 0 or ret[-1] & 0x80:
        b = read(1)
        if not b:
            raise PackFormatException("unexpected end of pack data")
        ret.append(b[0])
    return ret


class UnpackedObject:
    """An entry read from a pack, possibly still a delta.

    For whole objects ``obj_type_num`` and ``obj_chunks`` are set straight
    away. For deltas they are filled in once the base has been resolved.
    """

    __slots__ = [
        "_sha",
        "decomp_chunks",
        "decomp_len",
        "delta_base",
        "obj_chunks",
        "obj_type_num",
        "offset",
        "pack_type_num",
    ]

    def __init__(
        self,
        pack_type_num: int,
        *,
        delta_base: int | bytes | None = None,
        decomp_len: int | None = None,
        decomp_chunks: list[bytes] | None = None,
        offset: int | None = None,
    ) -> None:
        self.offset = offset
        self._sha: ObjectID | None = None
        self.pack_type_num = pack_type_num
        self.delta_base = delta_base
        self.decomp_chunks: list[bytes] = decomp_chunks or []
        self.decomp_len = decomp_len
        self.obj_type_num: int | None
        self.obj_chunks: list[bytes] | None
        if pack_type_num in DELTA_TYPES:
            self.obj_type_num = None
            self.obj_chunks = None
        else:
            self.obj_type_num = pack_type_num
            self.obj_chunks = self.decomp_chunks

    def sha(self) -> ObjectID:
        """Return the hex id of this (resolved) object."""
        if self._sha is None:
            assert self.obj_type_num is not None and self.obj_chunks is not None
            self._sha = hash_object(self.obj_type_num, b"".join(self.obj_chunks))
        return self._sha

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnpackedObject):
            return False
        for slot in self.__slots__:
            if getattr(self, slot) != getattr(other, slot):
                return False
        return True

    def __repr__(self) -> str:
        data = [f"{s}={getattr(self, s)!r}" for s in self.__slots__ if s != "_sha"]
        return "{}({})".format(self.__class__.__name__, ", ".join(data))


def read_zlib_chunks(
    read_some: Callable[[int], bytes],
    unpacked: UnpackedObject,
    buffer_size: int = _ZLIB_BUFSIZE,
) -> bytes:
    """Decompress one zlib stream from a buffer.

    Reads until the decompressor reports the end of the stream. Anything
    read past that point belongs to the next entry and is returned.

    Args:
      read_some: Read function that returns at least one byte, but may
        return less than the requested size.
      unpacked: An UnpackedObject to write result data to. After this
        function its ``decomp_chunks`` hold the decompressed data.
      buffer_size: Size of the read buffer.
    Returns: Leftover unused data from the decompression.
    Raises:
      PackFormatException: if the data ends early or is not valid zlib
    """
    decomp_obj = zlib.decompressobj()
    decomp_chunks = unpacked.decomp_chunks
    decomp_len = 0
    while not decomp_obj.eof:
        add = read_some(buffer_size)
        if not add:
            raise PackFormatException("EOF before end of zlib stream")
        try:
            decomp = decomp_obj.decompress(add)
        except zlib.error as exc:
            raise PackFormatException(f"invalid compressed data: {exc}") from exc
        decomp_len += len(decomp)
        decomp_chunks.append(decomp)
    if unpacked.decomp_len is not None and decomp_len != unpacked.decomp_len:
        logger.warning(
            "pack entry at offset %s: declared size %d, inflated to %d bytes",
            unpacked.offset,
            unpacked.decomp_len,
            decomp_len,
        )
    unpacked.decomp_len = decomp_len
    return decomp_obj.unused_data


def read_pack_header(read: Callable[[int], bytes]) -> tuple[int, int]:
    """Read the header of a pack file.

    Args:
      read: Read function
    Returns: Tuple of (pack version, number of objects).
    Raises:
      PackFormatException: if the header is short or invalid
    """
    header = read(PACK_HEADER_SIZE)
    if len(header) < PACK_HEADER_SIZE:
        raise PackFormatException("file too short to contain pack")
    if header[:4] != PACK_MAGIC:
        raise PackFormatException(f"Invalid pack header {header!r}")
    (version,) = struct.unpack_from(">L", header, 4)
    if version not in (2, 3):
        raise PackFormatException(f"Version was {version}")
    (num_objects,) = struct.unpack_from(">L", header, 8)
    return (version, num_objects)


def unpack_object(
    read_all: Callable[[int], bytes],
    read_some: Callable[[int], bytes] | None = None,
    zlib_bufsize: int = _ZLIB_BUFSIZE,
) -> tuple[UnpackedObject, bytes]:
    """Unpack a Git object.

    Args:
      read_all: Read function that blocks until the number of requested
        bytes are read.
      read_some: Read function that returns at least one byte, but may not
        return the number of bytes requested.
      zlib_bufsize: An optional buffer size for zlib operations.
    Returns: A tuple of (unpacked, unused), where unused is the unused data
        leftover from decompression, and unpacked an UnpackedObject with
        ``pack_type_num``, ``delta_base`` (for deltas), ``decomp_chunks``
        and ``decomp_len`` set.
    """
    if read_some is None:
        read_some = read_all
    raw = take_msb_bytes(read_all)
    type_num = (raw[0] >> 4) & 0x07
    size = raw[0] & 0x0F
    for i, byte in enumerate(raw[1:]):
        size += (byte & 0x7F) << ((i * 7) + 4)

    delta_base: int | bytes | None
    if type_num == OFS_DELTA:
        raw = take_msb_bytes(read_all)
        delta_base_offset = raw[0] & 0x7F
        for byte in raw[1:]:
            delta_base_offset += 1
            delta_base_offset <<= 7
            delta_base_offset += byte & 0x7F
        delta_base = delta_base_offset
    elif type_num == REF_DELTA:
        delta_base = read_all(20)
        if len(delta_base) != 20:
            raise PackFormatException("truncated delta base id")
    elif type_num in (COMMIT, TREE, BLOB, TAG):
        delta_base = None
    else:
        raise PackFormatException(f"invalid pack entry type {type_num}")

    unpacked = UnpackedObject(type_num, delta_base=delta_base, decomp_len=size)
    unused = read_zlib_chunks(read_some, unpacked, buffer_size=zlib_bufsize)
    return unpacked, unused


class PackStreamReader:
    """Class to read a pack stream.

    Bytes over-read by the decompressor are pushed back and consumed first
    by the next entry header. The SHA-1 of everything but the last 20 bytes
    read is accumulated and checked against the trailer.
    """

    def __init__(
        self,
        read_all: Callable[[int], bytes],
        read_some: Callable[[int], bytes] | None = None,
        zlib_bufsize: int = _ZLIB_BUFSIZE,
    ) -> None:
        self.read_all = read_all
        if read_some is None:
            self.read_some = read_all
        else:
            self.read_some = read_some
        self.sha = sha1()
        self._offset = 0
        self._rbuf = b""
        self._trailer = b""
        self._zlib_bufsize = zlib_bufsize
        self._num_objects = 0

    def _read(self, read: Callable[[int], bytes], size: int) -> bytes:
        """Read up to size bytes using the given callback.

        As a side effect, update the verifier's hash (excluding the last
        20 bytes read, which may be the pack checksum).
        """
        data = read(size)
        self._offset += len(data)
        pending = self._trailer + data
        self.sha.update(pending[:-PACK_CHECKSUM_SIZE])
        self._trailer = pending[-PACK_CHECKSUM_SIZE:]
        return data

    @property
    def offset(self) -> int:
        """Return current offset in the stream."""
        return self._offset - len(self._rbuf)

    def read(self, size: int) -> bytes:
        """Read exactly size bytes.

        Raises:
          PackFormatException: if the stream ends first
        """
        if len(self._rbuf) >= size:
            ret, self._rbuf = self._rbuf[:size], self._rbuf[size:]
            return ret
        buf_data, self._rbuf = self._rbuf, b""
        ret = buf_data + self._read(self.read_all, size - len(buf_data))
        if len(ret) < size:
            raise PackFormatException("unexpected end of pack data")
        return ret

    def recv(self, size: int) -> bytes:
        """Read up to size bytes, blocking until one byte is read."""
        if self._rbuf:
            ret, self._rbuf = self._rbuf[:size], self._rbuf[size:]
            return ret
        return self._read(self.read_some, size)

    def __len__(self) -> int:
        """Return the number of objects in this pack."""
        return self._num_objects

    def read_objects(self) -> Iterator[UnpackedObject]:
        """Read the objects in this pack file.

        Returns: Iterator over UnpackedObjects with their offset set
        Raises:
          PackFormatException: if the stream is truncated, malformed or has
            data after the trailer
          ChecksumMismatch: if the checksum of the pack contents does not
            match the checksum in the pack trailer.
        """
        _pack_version, self._num_objects = read_pack_header(self.read)
        for _ in range(self._num_objects):
            offset = self.offset
            unpacked, unused = unpack_object(
                self.read, read_some=self.recv, zlib_bufsize=self._zlib_bufsize
            )
            unpacked.offset = offset
            # prepend any unused data to current read buffer
            self._rbuf = unused + self._rbuf
            yield unpacked

        if len(self._rbuf) < PACK_CHECKSUM_SIZE:
            # The trailer is still (partly) on the wire.
            self.read(PACK_CHECKSUM_SIZE)
        elif len(self._rbuf) > PACK_CHECKSUM_SIZE:
            raise PackFormatException(
                f"{len(self._rbuf) - PACK_CHECKSUM_SIZE} bytes of trailing data "
                "after pack"
            )
        else:
            self._rbuf = b""
        if self.read_some(1):
            raise PackFormatException("trailing data after pack")

        if self._trailer != self.sha.digest():
            raise ChecksumMismatch(self._trailer, self.sha.digest())


class DeltaResolver:
    """Resolve the entries of a pack into objects in an object store.

    Entries are recorded first, indexed by their offset. Resolution then
    starts from every whole object and follows the deltas that name it as
    a base, by offset or by id. Bases of reference deltas that are not in
    the pack are looked up in the object store. Each object is inflated and
    written exactly once, independent of the order of the entries in the
    pack.
    """

    def __init__(self, object_store: "BaseObjectStore") -> None:
        self.object_store = object_store
        self._entries: dict[int, UnpackedObject] = {}
        self._pending_ofs: dict[int, list[int]] = defaultdict(list)
        self._pending_ref: dict[ObjectID, list[int]] = defaultdict(list)
        self._full_ofs: list[int] = []
        self._ext_refs: list[ObjectID] = []

    def record(self, unpacked: UnpackedObject) -> None:
        """Record an unpacked object for later processing."""
        offset = unpacked.offset
        assert offset is not None
        self._entries[offset] = unpacked
        if unpacked.pack_type_num == OFS_DELTA:
            assert isinstance(unpacked.delta_base, int)
            base_offset = offset - unpacked.delta_base
            self._pending_ofs[base_offset].append(offset)
        elif unpacked.pack_type_num == REF_DELTA:
            assert isinstance(unpacked.delta_base, bytes)
            self._pending_ref[sha_to_hex(unpacked.delta_base)].append(offset)
        else:
            self._full_ofs.append(offset)

    def _result(self, unpacked: UnpackedObject) -> ObjectID:
        assert unpacked.obj_type_num is not None and unpacked.obj_chunks is not None
        sha = self.object_store.add_raw(
            unpacked.obj_type_num, b"".join(unpacked.obj_chunks)
        )
        unpacked._sha = sha
        return sha

    def _resolve_object(
        self, offset: int, obj_type_num: int, base_chunks: list[bytes] | None
    ) -> UnpackedObject:
        unpacked = self._entries.pop(offset)
        if base_chunks is not None:
            unpacked.obj_type_num = obj_type_num
            unpacked.obj_chunks = apply_delta(base_chunks, unpacked.decomp_chunks)
        return unpacked

    def _follow_chain(
        self, offset: int, obj_type_num: int, base_chunks: list[bytes] | None
    ) -> Iterator[ObjectID]:
        todo = [(offset, obj_type_num, base_chunks)]
        while todo:
            (offset, obj_type_num, base_chunks) = todo.pop()
            unpacked = self._resolve_object(offset, obj_type_num, base_chunks)
            yield self._result(unpacked)

            unblocked = chain(
                self._pending_ofs.pop(offset, []),
                self._pending_ref.pop(unpacked.sha(), []),
            )
            todo.extend(
                (new_offset, unpacked.obj_type_num, unpacked.obj_chunks)
                for new_offset in unblocked
            )

    def _walk_ref_chains(self) -> Iterator[ObjectID]:
        for base_sha in sorted(self._pending_ref):
            if base_sha not in self._pending_ref:
                # Resolved while following an earlier external base.
                continue
            if base_sha not in self.object_store:
                continue
            type_num, payload = self.object_store.get_raw(base_sha)
            self._ext_refs.append(base_sha)
            pending = self._pending_ref.pop(base_sha)
            for new_offset in pending:
                yield from self._follow_chain(new_offset, type_num, [payload])

    def _ensure_no_pending(self) -> None:
        if self._pending_ref or self._pending_ofs:
            raise UnresolvedDeltas(
                sorted(self._pending_ref), sorted(self._pending_ofs)
            )

    def __iter__(self) -> Iterator[ObjectID]:
        for offset in self._full_ofs:
            type_num = self._entries[offset].pack_type_num
            yield from self._follow_chain(offset, type_num, None)
        yield from self._walk_ref_chains()
        self._ensure_no_pending()

    def resolve(self) -> list[ObjectID]:
        """Resolve all recorded entries.

        Returns: Ids of the objects written, in resolution order
        Raises:
          UnresolvedDeltas: if some delta bases are neither in the pack nor
            in the object store
          ApplyDeltaError: if a delta does not apply to its base
        """
        return list(self)

    def ext_refs(self) -> list[ObjectID]:
        """Return the bases that were taken from the object store."""
        return self._ext_refs


def unpack_pack_data(object_store: "BaseObjectStore", data: bytes) -> list[ObjectID]:
    """Parse a complete pack and add all of its objects to an object store.

    The pack is checked completely, including its checksum, before any
    object is written.

    Args:
      object_store: Store to add the objects to
      data: Pack data, starting with the ``PACK`` magic
    Returns: Ids of the objects written, in resolution order
    """
    read = BytesIO(data).read
    reader = PackStreamReader(read)
    resolver = DeltaResolver(object_store)
    for unpacked in reader.read_objects():
        resolver.record(unpacked)
    logger.debug("read %d pack entries, resolving deltas", len(reader))
    shas = resolver.resolve()
    ext_refs = resolver.ext_refs()
    if ext_refs:
        logger.info(
            "unpacked %d objects, %d delta bases taken from the object store",
            len(shas),
            len(ext_refs),
        )
    else:
        logger.info("unpacked %d objects", len(shas))
    return shas


def _get_delta_header_size(delta: bytes, index: int) -> tuple[int, int]:
    size = 0
    i = 0
    while True:
        if index >= len(delta):
            raise ApplyDeltaError("truncated delta header")
        cmd = delta[index]
        index += 1
        size |= (cmd & ~0x80) << i
        i += 7
        if not cmd & 0x80:
            break
    return size, index


def apply_delta(src_buf: bytes | list[bytes], delta: bytes | list[bytes]) -> list[bytes]:
    """Based on the similar function in git's patch-delta.c.

    Args:
      src_buf: Source buffer
      delta: Delta instructions
    Returns: Target contents, as a list of chunks
    Raises:
      ApplyDeltaError: if the delta is malformed or does not match the source
    """
    if not isinstance(src_buf, bytes):
        src_buf = b"".join(src_buf)
    if not isinstance(delta, bytes):
        delta = b"".join(delta)
    out = []
    out_len = 0
    index = 0
    delta_length = len(delta)

    src_size, index = _get_delta_header_size(delta, index)
    dest_size, index = _get_delta_header_size(delta, index)
    if src_size != len(src_buf):
        raise ApplyDeltaError(
            f"Unexpected source buffer size: {src_size} vs {len(src_buf)}"
        )
    while index < delta_length:
        cmd = delta[index]
        index += 1
        if cmd & 0x80:
            cp_off = 0
            for i in range(4):
                if cmd & (1 << i):
                    if index >= delta_length:
                        raise ApplyDeltaError("truncated copy command")
                    cp_off |= delta[index] << (i * 8)
                    index += 1
            cp_size = 0
            for i in range(3):
                if cmd & (1 << (4 + i)):
                    if index >= delta_length:
                        raise ApplyDeltaError("truncated copy command")
                    cp_size |= delta[index] << (i * 8)
                    index += 1
            if cp_size == 0:
                cp_size = 0x10000
            if cp_off + cp_size > src_size or out_len + cp_size > dest_size:
                raise ApplyDeltaError(
                    f"copy of {cp_size} bytes at {cp_off} is out of bounds"
                )
            out.append(src_buf[cp_off : cp_off + cp_size])
            out_len += cp_size
        elif cmd != 0:
            if index + cmd > delta_length:
                raise ApplyDeltaError("truncated insert command")
            out.append(delta[index : index + cmd])
            out_len += cmd
            index += cmd
        else:
            raise ApplyDeltaError("Invalid opcode 0")

    if dest_size != out_len:
        raise ApplyDeltaError(f"dest size incorrect: {out_len} vs {dest_size}")

    return out


def _delta_encode_size(size: int) -> bytes:
    ret = bytearray()
    c = size & 0x7F
    size >>= 7
    while size:
        ret.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    ret.append(c)
    return bytes(ret)


# Copies in version 2 packs are limited to 64K.
_MAX_COPY_LEN = 0xFFFF


def _encode_copy_operation(start: int, length: int) -> bytes:
    scratch = bytearray([0x80])
    for i in range(4):
        if start & 0xFF << i * 8:
            scratch.append((start >> i * 8) & 0xFF)
            scratch[0] |= 1 << i
    for i in range(2):
        if length & 0xFF << i * 8:
            scratch.append((length >> i * 8) & 0xFF)
            scratch[0] |= 1 << (4 + i)
    return bytes(scratch)


def _create_delta_chunks(base_buf: bytes, target_buf: bytes) -> Iterator[bytes]:
    yield _delta_encode_size(len(base_buf))
    yield _delta_encode_size(len(target_buf))
    seq = SequenceMatcher(isjunk=None, a=base_buf, b=target_buf, autojunk=False)
    for opcode, i1, i2, j1, j2 in seq.get_opcodes():
        # Deletions need no instruction: the data is simply not copied.
        if opcode == "equal":
            copy_start = i1
            copy_len = i2 - i1
            while copy_len > 0:
                to_copy = min(copy_len, _MAX_COPY_LEN)
                yield _encode_copy_operation(copy_start, to_copy)
                copy_start += to_copy
                copy_len -= to_copy
        if opcode in ("replace", "insert"):
            s = j2 - j1
            o = j1
            while s > 127:
                yield bytes([127])
                yield target_buf[o : o + 127]
                s -= 127
                o += 127
            if s:
                yield bytes([s])
                yield target_buf[o : o + s]


def create_delta(base_buf: bytes, target_buf: bytes) -> bytes:
    """Compute a delta that turns base_buf into target_buf.

    Uses difflib to find the common parts of both buffers.
    """
    return b"".join(_create_delta_chunks(base_buf, target_buf))


def write_pack_header(write: Callable[[bytes], object], num_objects: int) -> None:
    """Write a pack header for the given number of objects."""
    write(PACK_MAGIC)
    write(struct.pack(">L", 2))
    write(struct.pack(">L", num_objects))


def pack_object_header(type_num: int, delta_base: bytes | int | None, size: int) -> bytearray:
    """Create a pack object header for the given object info.

    Args:
      type_num: Numeric type of the object.
      delta_base: Delta base offset or raw id, or None for whole objects.
      size: Uncompressed object size.
    Returns: A header for a packed object.
    """
    header = []
    c = (type_num << 4) | (size & 15)
    size >>= 4
    while size:
        header.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    header.append(c)
    if type_num == OFS_DELTA:
        assert isinstance(delta_base, int)
        ret = [delta_base & 0x7F]
        delta_base >>= 7
        while delta_base:
            delta_base -= 1
            ret.insert(0, 0x80 | (delta_base & 0x7F))
            delta_base >>= 7
        header.extend(ret)
    elif type_num == REF_DELTA:
        assert isinstance(delta_base, bytes) and len(delta_base) == 20
        header += delta_base
    return bytearray(header)


def write_pack_object(
    write: Callable[[bytes], object],
    type_num: int,
    payload: bytes,
    delta_base: bytes | int | None = None,
    compression_level: int = -1,
) -> int:
    """Write pack object to a file.

    Args:
      write: Write function to use
      type_num: Numeric type of the entry
      payload: Object contents, or delta instructions for delta types
      delta_base: Base offset distance or raw base id for delta types
      compression_level: the zlib compression level
    Returns: CRC32 checksum of the written object
    """
    crc32 = 0
    compressor = zlib.compressobj(level=compression_level)
    for chunk in (
        bytes(pack_object_header(type_num, delta_base, len(payload))),
        compressor.compress(payload),
        compressor.flush(),
    ):
        write(chunk)
        crc32 = binascii.crc32(chunk, crc32)
    return crc32 & 0xFFFFFFFF


class SHA1Writer:
    """Wrapper around a write function that also computes the SHA-1."""

    def __init__(self, write: Callable[[bytes], object]) -> None:
        self._write = write
        self.sha1 = sha1()
        self.offset = 0

    def write(self, data: bytes) -> None:
        self.sha1.update(data)
        self._write(data)
        self.offset += len(data)

    def write_sha(self) -> bytes:
        sha = self.sha1.digest()
        self._write(sha)
        self.offset += len(sha)
        return sha


def write_pack_objects(
    write: Callable[[bytes], object],
    objects: Iterable[tuple[int, bytes]],
    deltify: bool = False,
    compression_level: int = -1,
) -> tuple[dict[ObjectID, int], bytes]:
    """Write a complete pack.

    Args:
      write: Write function to use
      objects: Sequence of (type_num, payload) tuples
      deltify: Whether to store objects as offset deltas against the
        previous object of the same type, where that is smaller
      compression_level: the zlib compression level
    Returns: Tuple of (dict mapping hex ids to entry offsets, pack checksum)
    """
    objects = list(objects)
    f = SHA1Writer(write)
    write_pack_header(f.write, len(objects))
    entries: dict[ObjectID, int] = {}
    previous: dict[int, tuple[int, bytes]] = {}
    for type_num, payload in objects:
        offset = f.offset
        entries[hash_object(type_num, payload)] = offset
        base = previous.get(type_num) if deltify else None
        if base is not None:
            base_offset, base_payload = base
            delta = create_delta(base_payload, payload)
            if len(delta) < len(payload):
                write_pack_object(
                    f.write, OFS_DELTA, delta, offset - base_offset, compression_level
                )
                previous[type_num] = (offset, payload)
                continue
        write_pack_object(f.write, type_num, payload, None, compression_level)
        previous[type_num] = (offset, payload)
    return entries, f.write_sha()
