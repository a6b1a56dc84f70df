# protocol.py -- Shared parts of the git protocols
# Copyright (C) 2008 John Carr <john.carr@unrouted.co.uk>
# Copyright (C) 2008-2012 Jelmer Vernooij <jelmer@jelmer.uk>
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

"""Generic functions for talking the git smart server protocol."""

__all__ = [
    "CAPABILITIES_REF",
    "COMMAND_DONE",
    "COMMAND_WANT",
    "PEELED_TAG_SUFFIX",
    "SIDE_BAND_CHANNEL_DATA",
    "SIDE_BAND_CHANNEL_FATAL",
    "SIDE_BAND_CHANNEL_PROGRESS",
    "ZERO_SHA",
    "Protocol",
    "extract_capabilities",
    "extract_pack_data",
    "pkt_line",
    "read_pkt_refs",
    "split_peeled_refs",
]

import logging
from collections.abc import Callable, Iterable, Iterator
from io import BytesIO

from .errors import GitProtocolError, HangupException

logger = logging.getLogger(__name__)

ZERO_SHA = b"0" * 40

PACK_MAGIC = b"PACK"

# Channel numbers of the side-band multiplexing.
SIDE_BAND_CHANNEL_DATA = 1
SIDE_BAND_CHANNEL_PROGRESS = 2
SIDE_BAND_CHANNEL_FATAL = 3

COMMAND_WANT = b"want"
COMMAND_DONE = b"done"

CAPABILITIES_REF = b"capabilities^{}"
PEELED_TAG_SUFFIX = b"^{}"

SERVICE_ANNOUNCEMENT = b"# service="


def pkt_line(data: bytes | None) -> bytes:
    """Wrap data in a pkt-line.

    Args:
      data: The data to wrap, as a str or None.
    Returns: The data prefixed with its length in pkt-line format; if data was
        None, returns the flush-pkt ('0000').
    """
    if data is None:
        return b"0000"
    return f"{len(data) + 4:04x}".encode("ascii") + data


class Protocol:
    """Class for interacting with a remote git process over the wire.

    Parts of the git wire protocol use 'pkt-lines' to communicate. A pkt-line
    consists of the length of the line as a 4-byte hex string, followed by the
    payload data. The length includes the 4-byte header. The special line
    '0000' indicates the end of a section of input and is called a 'flush-pkt'.

    For details on the pkt-line format, see the cgit distribution:
        Documentation/technical/protocol-common.txt
    """

    def __init__(self, read: Callable[[int], bytes]) -> None:
        self.read = read

    def read_pkt_line(self) -> bytes | None:
        """Reads a pkt-line from the remote git process.

        Returns: The next string from the stream, without the length prefix,
            or None for a flush-pkt ('0000').
        Raises:
          HangupException: if the stream ended before a complete pkt-line
          GitProtocolError: if the length prefix is not valid
        """
        sizestr = self.read(4)
        if len(sizestr) < 4:
            raise HangupException()
        try:
            size = int(sizestr, 16)
        except ValueError as exc:
            raise GitProtocolError(f"Invalid pkt-line length {sizestr!r}") from exc
        if size == 0:
            return None
        if size < 4:
            raise GitProtocolError(f"Invalid pkt-line length {size}")
        pkt_contents = self.read(size - 4)
        if len(pkt_contents) + 4 != size:
            raise HangupException()
        return pkt_contents

    def read_pkt_seq(self) -> Iterator[bytes]:
        """Read a sequence of pkt-lines from the remote git process.

        Returns: Yields each line of data up to but not including the next
            flush-pkt or empty pkt-line.
        """
        pkt = self.read_pkt_line()
        while pkt:
            yield pkt
            pkt = self.read_pkt_line()


def extract_capabilities(text: bytes) -> tuple[bytes, list[bytes]]:
    """Extract a capabilities list from a string, if present.

    Args:
      text: String to extract from
    Returns: Tuple with text with capabilities removed and list of capabilities
    """
    if b"\0" not in text:
        return text, []
    text, capabilities = text.rstrip().split(b"\0", 1)
    return (text, capabilities.strip().split(b" "))


def read_pkt_refs(pkt_seq: Iterable[bytes]) -> tuple[dict[bytes, bytes], set[bytes]]:
    """Read the ref advertisement of a smart server.

    The ``# service=`` announcement sent over HTTP is skipped, as is the
    capability list that follows the first ref.

    Args:
      pkt_seq: Sequence of pkt-line payloads (flush-pkts already removed)
    Returns: Tuple of (refs, server capabilities)
    """
    server_capabilities: set[bytes] = set()
    refs: dict[bytes, bytes] = {}
    for pkt in pkt_seq:
        if pkt.startswith(SERVICE_ANNOUNCEMENT):
            continue
        line, capabilities = extract_capabilities(pkt.rstrip(b"\n"))
        server_capabilities.update(capabilities)
        if not line:
            continue
        try:
            (sha, ref) = line.split(None, 1)
        except ValueError as exc:
            raise GitProtocolError(f"invalid ref line {line!r}") from exc
        if sha == b"ERR":
            raise GitProtocolError(ref.decode("utf-8", "replace"))
        refs[ref] = sha
    if refs == {CAPABILITIES_REF: ZERO_SHA}:
        refs = {}
    return refs, server_capabilities


def read_info_refs_response(data: bytes) -> tuple[dict[bytes, bytes], set[bytes]]:
    """Parse a complete ``info/refs`` response body.

    Flush-pkts are no-ops; the announcement section and the ref section are
    read as one stream.

    Raises:
      GitProtocolError: if the body ends inside a pkt-line
    """
    f = BytesIO(data)
    proto = Protocol(f.read)
    pkts: list[bytes] = []
    while f.tell() < len(data):
        try:
            pkts.extend(proto.read_pkt_seq())
        except HangupException as exc:
            raise GitProtocolError(
                f"truncated pkt-line at offset {f.tell()} of info/refs response"
            ) from exc
    return read_pkt_refs(pkts)


def split_peeled_refs(refs: dict[bytes, bytes]) -> tuple[dict[bytes, bytes], dict[bytes, bytes]]:
    """Split peeled refs from regular refs."""
    peeled = {
        ref[: -len(PEELED_TAG_SUFFIX)]: sha
        for ref, sha in refs.items()
        if ref.endswith(PEELED_TAG_SUFFIX)
    }
    regular = {k: v for k, v in refs.items() if not k.endswith(PEELED_TAG_SUFFIX)}
    return regular, peeled


def _default_progress(data: bytes) -> None:
    logger.info("remote: %s", data.decode("utf-8", "replace").rstrip())


def extract_pack_data(
    body: bytes, progress: Callable[[bytes], None] | None = None
) -> bytes:
    """Recover the pack file from an upload-pack response body.

    The response either carries the pack in side-band channel 1 of a
    pkt-line stream, or sends a few pkt-lines (such as ``NAK``) followed by
    the bare pack. Lines that are neither side-band data nor progress are
    ignored.

    Args:
      body: Complete response body
      progress: Callback for side-band progress messages
    Returns: The pack data, starting with the ``PACK`` magic
    Raises:
      GitProtocolError: if no pack data could be found
    """
    if progress is None:
        progress = _default_progress
    pack_chunks: list[bytes] = []
    errors: list[bytes] = []
    pos = 0
    length = len(body)
    while pos < length:
        if body.startswith(PACK_MAGIC, pos):
            pack_chunks.append(body[pos:])
            break
        sizestr = body[pos : pos + 4]
        try:
            size = int(sizestr, 16)
        except ValueError:
            size = -1
        if size in (0, 4):
            # flush-pkt or empty pkt-line
            pos += 4
            continue
        if size < 5 or pos + size > length:
            logger.debug("unframed data at offset %d, scanning for pack magic", pos)
            start = body.find(PACK_MAGIC, pos)
            if start != -1:
                pack_chunks.append(body[start:])
            break
        pkt = body[pos + 4 : pos + size]
        pos += size
        channel = pkt[0]
        if channel == SIDE_BAND_CHANNEL_DATA:
            pack_chunks.append(pkt[1:])
        elif channel == SIDE_BAND_CHANNEL_PROGRESS:
            progress(pkt[1:])
        elif channel == SIDE_BAND_CHANNEL_FATAL:
            errors.append(pkt[1:])
            logger.error("remote error: %s", pkt[1:].decode("utf-8", "replace").rstrip())
        else:
            logger.debug("ignoring protocol message %r", pkt.rstrip(b"\n"))
    data = b"".join(pack_chunks)
    if not data:
        if errors:
            raise GitProtocolError(
                b"".join(errors).decode("utf-8", "replace").strip()
            )
        raise GitProtocolError("no pack data in server response")
    return data
