# client.py -- Implementation of the client side of the smart HTTP protocol
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

"""Client side of the git smart HTTP protocol.

Only the stateless fetch used by clone is implemented: the ref advertisement
is fetched from ``info/refs?service=git-upload-pack`` and a pack is requested
from ``git-upload-pack`` with a list of wants and no haves. No capabilities
are negotiated, so the server answers with a plain ``NAK`` followed by the
pack, or with a side-band stream if it chooses to.

Known capabilities in the ref advertisement are recorded but never used.
"""

__all__ = [
    "FetchState",
    "HttpGitClient",
    "check_for_proxy_bypass",
    "default_urllib3_manager",
    "default_user_agent_string",
    "select_branch",
]

import enum
import ipaddress
import logging
import os
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING
from urllib.parse import urljoin, urlparse

import urllib3
import urllib3.exceptions

import gitplumb

from .errors import GitProtocolError, NotGitRepository
from .objects import ObjectID, valid_hexsha
from .protocol import (
    COMMAND_DONE,
    COMMAND_WANT,
    extract_pack_data,
    pkt_line,
    read_info_refs_response,
    split_peeled_refs,
)

if TYPE_CHECKING:
    from urllib3.response import BaseHTTPResponse

    from .config import ConfigDict

logger = logging.getLogger(__name__)

UPLOAD_PACK_SERVICE = "git-upload-pack"

# Branches tried, in order, when the caller does not name one.
DEFAULT_BRANCHES = (b"refs/heads/main", b"refs/heads/master")
HEADS_PREFIX = b"refs/heads/"


class FetchState(enum.Enum):
    """Progress of a fetch through the protocol exchange."""

    IDLE = "idle"
    REFS_DISCOVERED = "refs-discovered"
    PACK_REQUESTED = "pack-requested"
    PACK_RECEIVED = "pack-received"
    DONE = "done"
    FAILED = "failed"


def default_user_agent_string() -> str:
    """Return the default user agent string for gitplumb."""
    # Start user agent with "git/", because some hosting sites require this.
    return "git/gitplumb/{}".format(".".join([str(x) for x in gitplumb.__version__]))


def check_for_proxy_bypass(base_url: str | None) -> bool:
    """Check if the proxy should be bypassed for the given URL.

    Follows curl's interpretation of ``no_proxy``: ``*`` matches every host,
    entries match the hostname or any of its subdomains, and entries that
    parse as IP networks match addresses inside them.
    """
    if not base_url:
        return False
    no_proxy_str = os.environ.get("no_proxy")
    if not no_proxy_str:
        return False
    hostname = urlparse(base_url).hostname
    if not hostname:
        return False
    try:
        hostname_ip = ipaddress.ip_address(hostname)
    except ValueError:
        hostname_ip = None
    for no_proxy_value in no_proxy_str.split(","):
        no_proxy_value = no_proxy_value.strip().lower().lstrip(".")
        if not no_proxy_value:
            continue
        if no_proxy_value == "*":
            return True
        if hostname_ip is not None:
            try:
                network = ipaddress.ip_network(no_proxy_value, strict=False)
            except ValueError:
                network = None
            if network is not None and hostname_ip in network:
                return True
        if hostname == no_proxy_value:
            return True
        if hostname.endswith("." + no_proxy_value):
            return True
    return False


def default_urllib3_manager(
    config: "ConfigDict | None",
    pool_manager_cls: type | None = None,
    proxy_manager_cls: type | None = None,
    base_url: str | None = None,
    timeout: float | None = None,
) -> "urllib3.ProxyManager | urllib3.PoolManager":
    """Return urllib3 connection pool manager.

    Honour detected proxy configurations.

    Args:
      config: `gitplumb.config.ConfigDict` instance with Git configuration.
      pool_manager_cls: Pool manager class to use
      proxy_manager_cls: Proxy manager class to use
      base_url: Base URL for proxy bypass checks
      timeout: Timeout for HTTP requests in seconds
    Returns:
      Either proxy_manager_cls (defaults to `urllib3.ProxyManager`) instance
      for proxy configurations, pool_manager_cls (defaults to
      `urllib3.PoolManager`) instance otherwise
    """
    proxy_server: str | None = None
    user_agent: str | None = None
    ssl_verify = True

    for proxyname in ("https_proxy", "http_proxy", "all_proxy"):
        proxy_server = os.environ.get(proxyname)
        if proxy_server:
            break

    if proxy_server and check_for_proxy_bypass(base_url):
        proxy_server = None

    if config is not None:
        if not proxy_server:
            try:
                proxy_server = config.get(b"http", b"proxy").decode("utf-8")
            except KeyError:
                pass
        try:
            user_agent = config.get(b"http", b"useragent").decode("utf-8")
        except KeyError:
            pass
        try:
            ssl_verify = config.get_boolean(b"http", b"sslVerify", True)
        except ValueError:
            logger.warning("ignoring invalid http.sslVerify value")
        if timeout is None:
            try:
                timeout = float(config.get(b"http", b"timeout"))
            except KeyError:
                pass

    if user_agent is None:
        user_agent = default_user_agent_string()

    headers = {"User-agent": user_agent}
    kwargs: dict[str, object] = {
        "cert_reqs": "CERT_REQUIRED" if ssl_verify else "CERT_NONE",
    }
    if timeout is not None:
        kwargs["timeout"] = timeout

    manager: urllib3.ProxyManager | urllib3.PoolManager
    if proxy_server:
        if proxy_manager_cls is None:
            proxy_manager_cls = urllib3.ProxyManager
        proxy_server_url = urlparse(proxy_server)
        if proxy_server_url.username is not None:
            proxy_headers = urllib3.make_headers(
                proxy_basic_auth=f"{proxy_server_url.username}:{proxy_server_url.password or ''}"
            )
        else:
            proxy_headers = {}
        logger.debug("using proxy %s", proxy_server_url.hostname)
        manager = proxy_manager_cls(
            proxy_server, proxy_headers=proxy_headers, headers=headers, **kwargs
        )
    else:
        if pool_manager_cls is None:
            pool_manager_cls = urllib3.PoolManager
        manager = pool_manager_cls(headers=headers, **kwargs)
    return manager


def select_branch(refs: dict[bytes, bytes]) -> bytes:
    """Pick the branch to clone from a ref advertisement.

    Args:
      refs: Dictionary mapping ref names to ids
    Returns: ``refs/heads/main`` if advertised, else ``refs/heads/master``,
        else the first advertised branch
    Raises:
      GitProtocolError: if the remote has no branches at all
    """
    for name in DEFAULT_BRANCHES:
        if name in refs:
            return name
    for name in refs:
        if name.startswith(HEADS_PREFIX):
            return name
    raise GitProtocolError("remote repository has no branches")


def _wrap_urllib3_exceptions(func: Callable[..., bytes]) -> Callable[..., bytes]:
    def wrapper(*args: object, **kwargs: object) -> bytes:
        try:
            return func(*args, **kwargs)
        except urllib3.exceptions.HTTPError as error:
            raise GitProtocolError(str(error)) from error

    return wrapper


class HttpGitClient:
    """Git client that fetches over the smart HTTP protocol using urllib3."""

    def __init__(
        self,
        base_url: str,
        pool_manager: "urllib3.PoolManager | None" = None,
        config: "ConfigDict | None" = None,
        timeout: float | None = None,
        progress: Callable[[bytes], None] | None = None,
    ) -> None:
        """Create a new HttpGitClient.

        Args:
          base_url: URL of the remote repository
          pool_manager: urllib3 pool manager, created from ``config`` if not given
          config: Configuration to read ``http.*`` settings from
          timeout: Timeout for HTTP requests in seconds
          progress: Callback for progress messages sent by the server
        """
        self._base_url = base_url.rstrip("/") + "/"
        self._timeout = timeout
        self._progress = progress
        if pool_manager is None:
            self.pool_manager = default_urllib3_manager(
                config, base_url=self._base_url, timeout=timeout
            )
        else:
            self.pool_manager = pool_manager
        self.config = config
        self.state = FetchState.IDLE
        self.capabilities: set[bytes] = set()
        self.peeled: dict[bytes, bytes] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._base_url!r})"

    def get_url(self) -> str:
        """Return the base URL of the remote repository."""
        return self._base_url.rstrip("/")

    def _http_request(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        data: bytes | None = None,
    ) -> tuple["BaseHTTPResponse", bytes]:
        """Perform HTTP request.

        Args:
          url: Request URL.
          headers: Optional custom headers to override defaults.
          data: Request data; a POST is sent when given, a GET otherwise.
        Returns:
          Tuple (response, body)
        Raises:
          NotGitRepository: if the server answers 404
          GitProtocolError: on any other failure
        """
        req_headers = dict(self.pool_manager.headers)
        if headers is not None:
            req_headers.update(headers)
        req_headers["Pragma"] = "no-cache"

        request_kwargs: dict[str, object] = {
            "headers": req_headers,
            "preload_content": False,
        }
        if self._timeout is not None:
            request_kwargs["timeout"] = self._timeout
        try:
            if data is None:
                resp = self.pool_manager.request("GET", url, **request_kwargs)
            else:
                request_kwargs["body"] = data
                resp = self.pool_manager.request("POST", url, **request_kwargs)
        except urllib3.exceptions.HTTPError as e:
            raise GitProtocolError(str(e)) from e

        try:
            if resp.status == 404:
                raise NotGitRepository(f"{url} not found")
            if resp.status != 200:
                raise GitProtocolError(f"unexpected http resp {resp.status} for {url}")
            body = _wrap_urllib3_exceptions(resp.read)()
        finally:
            resp.release_conn()
        logger.debug("%s %s: %d bytes", "GET" if data is None else "POST", url, len(body))
        return resp, body

    def _fail(self) -> None:
        self.state = FetchState.FAILED

    def discover_refs(self) -> dict[bytes, ObjectID]:
        """Fetch the ref advertisement of the remote repository.

        Returns: Dictionary mapping ref names to ids. Peeled tag entries are
            moved to the ``peeled`` attribute.
        Raises:
          NotGitRepository: if the repository does not exist
          GitProtocolError: if the server is not a smart git server or the
            advertisement is malformed
        """
        tail = f"info/refs?service={UPLOAD_PACK_SERVICE}"
        url = urljoin(self._base_url, tail)
        try:
            resp, body = self._http_request(url, {"Accept": "*/*"})
            content_type = resp.headers.get("Content-Type")
            if content_type is None or not content_type.startswith("application/x-git-"):
                raise GitProtocolError(
                    f"{self.get_url()} does not look like a smart git server "
                    f"(content type {content_type})"
                )
            resp_url = resp.url
            if resp_url and resp_url != url:
                # Something changed (redirect!), so let's update the base URL
                if not resp_url.endswith(tail):
                    raise GitProtocolError(
                        f"Redirected from URL {url} to URL {resp_url} without {tail}"
                    )
                self._base_url = urljoin(url, resp_url[: -len(tail)])
                logger.debug("redirected to %s", self._base_url)
            refs, self.capabilities = read_info_refs_response(body)
            refs, self.peeled = split_peeled_refs(refs)
            for name, sha in refs.items():
                if not valid_hexsha(sha):
                    raise GitProtocolError(f"invalid object id {sha!r} for {name!r}")
        except Exception:
            self._fail()
            raise
        self.state = FetchState.REFS_DISCOVERED
        logger.debug("discovered %d refs", len(refs))
        return {name: ObjectID(sha) for name, sha in refs.items()}

    def fetch_pack(self, wants: Sequence[ObjectID]) -> bytes:
        """Request a pack containing the given objects and their history.

        Args:
          wants: Ids of the objects to fetch
        Returns: The pack data, starting with the ``PACK`` magic
        Raises:
          GitProtocolError: on an invalid response
        """
        if not wants:
            raise ValueError("nothing to fetch")
        body = b"".join(
            [pkt_line(COMMAND_WANT + b" " + want + b"\n") for want in wants]
            + [pkt_line(None), pkt_line(COMMAND_DONE + b"\n")]
        )
        url = urljoin(self._base_url, UPLOAD_PACK_SERVICE)
        result_content_type = f"application/x-{UPLOAD_PACK_SERVICE}-result"
        headers = {
            "Content-Type": f"application/x-{UPLOAD_PACK_SERVICE}-request",
            "Accept": result_content_type,
            "Content-Length": str(len(body)),
        }
        self.state = FetchState.PACK_REQUESTED
        try:
            resp, data = self._http_request(url, headers, body)
            content_type = resp.headers.get("Content-Type")
            if not content_type or content_type.split(";")[0] != result_content_type:
                raise GitProtocolError(
                    f"Invalid content-type from server: {content_type}"
                )
            self.state = FetchState.PACK_RECEIVED
            pack_data = extract_pack_data(data, self._progress)
        except Exception:
            self._fail()
            raise
        self.state = FetchState.DONE
        return pack_data
