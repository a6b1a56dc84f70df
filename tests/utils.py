# utils.py -- Test utilities for gitplumb.
# Copyright (C) 2010 Google, Inc.
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

"""Utility functions common to gitplumb tests."""

from io import BytesIO

from urllib3.response import HTTPResponse

from gitplumb.objects import hash_object, hex_to_sha
from gitplumb.pack import (
    DELTA_TYPES,
    OFS_DELTA,
    REF_DELTA,
    SHA1Writer,
    create_delta,
    write_pack_header,
    write_pack_object,
)
from gitplumb.protocol import pkt_line

ADVERTISEMENT_CONTENT_TYPE = "application/x-git-upload-pack-advertisement"
RESULT_CONTENT_TYPE = "application/x-git-upload-pack-result"


def build_pack(f, objects_spec, store=None):
    """Write test pack data from a concise description.

    :param f: A file-like object to write the pack to.
    :param objects_spec: A list of (type_num, obj). For non-delta types, obj
        is the string of that object's data.
        For delta types, obj is a tuple of (base, data), where:

        * base can be either an index in objects_spec of the base for that
        * delta; or for a ref delta, a hex id, in which case the base is
        * looked up in store and the resulting pack is thin.
        * data is a string of the full, non-deltified data for that object.

        Offset deltas must name an earlier entry. Reference deltas may name
        a later one.
    :param store: An optional object store for looking up external refs.
    :return: A list of tuples in the order specified by objects_spec:
        (offset, type num, data, hex sha)
    """
    sf = SHA1Writer(f.write)
    num_objects = len(objects_spec)
    write_pack_header(sf.write, num_objects)

    full_objects = {}
    offsets = {}

    while len(full_objects) < num_objects:
        for i, (type_num, data) in enumerate(objects_spec):
            if type_num not in DELTA_TYPES:
                full_objects[i] = (type_num, data, hash_object(type_num, data))
                continue
            base, data = data
            if isinstance(base, int):
                if base not in full_objects:
                    continue
                base_type_num, _, _ = full_objects[base]
            else:
                base_type_num, _ = store.get_raw(base)
            full_objects[i] = (base_type_num, data, hash_object(base_type_num, data))

    for i, (type_num, obj) in enumerate(objects_spec):
        offset = sf.offset
        if type_num == OFS_DELTA:
            base_index, data = obj
            _, base_data, _ = full_objects[base_index]
            write_pack_object(
                sf.write,
                type_num,
                create_delta(base_data, data),
                offset - offsets[base_index],
            )
        elif type_num == REF_DELTA:
            base_ref, data = obj
            if isinstance(base_ref, int):
                _, base_data, base = full_objects[base_ref]
            else:
                base_type_num, base_data = store.get_raw(base_ref)
                base = hash_object(base_type_num, base_data)
            write_pack_object(
                sf.write, type_num, create_delta(base_data, data), hex_to_sha(base)
            )
        else:
            write_pack_object(sf.write, type_num, obj)
        offsets[i] = offset

    sf.write_sha()
    return [(offsets[i], *full_objects[i]) for i in range(num_objects)]


def build_pack_data(objects_spec, store=None):
    """Return the bytes of a pack built by build_pack."""
    f = BytesIO()
    build_pack(f, objects_spec, store=store)
    return f.getvalue()


def advertisement(refs, capabilities=(b"side-band-64k", b"ofs-delta")):
    """Build an ``info/refs`` response body for git-upload-pack."""
    lines = [pkt_line(b"# service=git-upload-pack\n"), pkt_line(None)]
    first = True
    for name, sha in refs:
        line = sha + b" " + name
        if first:
            line += b"\0" + b" ".join(capabilities)
            first = False
        lines.append(pkt_line(line + b"\n"))
    if first:
        lines.append(
            pkt_line(
                b"0" * 40 + b" capabilities^{}\0" + b" ".join(capabilities) + b"\n"
            )
        )
    lines.append(pkt_line(None))
    return b"".join(lines)


def side_band(channel, data):
    """Wrap data in a side-band pkt-line."""
    return pkt_line(bytes([channel]) + data)


def side_band_response(pack_data, progress=(b"Counting objects: 3, done.\n",)):
    """Build an upload-pack result body that carries a pack in band 1."""
    lines = [pkt_line(b"NAK\n")]
    lines.extend(side_band(2, msg) for msg in progress)
    for i in range(0, len(pack_data), 1000):
        lines.append(side_band(1, pack_data[i : i + 1000]))
    lines.append(pkt_line(None))
    return b"".join(lines)


class PoolManagerMock:
    """Stand-in for a urllib3 pool manager with canned responses.

    Responses are keyed by (method, url) and given as (status, headers,
    body) tuples. Requests are recorded in ``requests``.
    """

    def __init__(self, responses=None):
        self.headers = {}
        self.responses = dict(responses or {})
        self.requests = []

    def add(self, method, url, body, content_type=None, status=200, request_url=None):
        headers = {}
        if content_type is not None:
            headers["Content-Type"] = content_type
        self.responses[(method, url)] = (status, headers, body, request_url)

    def request(self, method, url, headers=None, body=None, preload_content=True, **kwargs):
        self.requests.append((method, url, headers, body))
        status, resp_headers, resp_body, request_url = self.responses[(method, url)]
        return HTTPResponse(
            body=BytesIO(resp_body),
            headers=resp_headers,
            request_method=method,
            request_url=request_url or url,
            preload_content=preload_content,
            status=status,
        )


def smart_http_remote(base_url, refs, pack_data, progress=()):
    """Return a PoolManagerMock that serves one repository over smart HTTP."""
    pool_manager = PoolManagerMock()
    pool_manager.add(
        "GET",
        base_url + "/info/refs?service=git-upload-pack",
        advertisement(refs),
        ADVERTISEMENT_CONTENT_TYPE,
    )
    pool_manager.add(
        "POST",
        base_url + "/git-upload-pack",
        side_band_response(pack_data, progress),
        RESULT_CONTENT_TYPE,
    )
    return pool_manager
