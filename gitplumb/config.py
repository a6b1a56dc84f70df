# config.py -- Reading and writing Git config files
# Copyright (C) 2011-2013 Jelmer Vernooij <jelmer@jelmer.uk>
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

"""The repository's ``.git/config`` file.

gitplumb only ever needs a handful of settings: the ``core`` block written
by ``init``, the ``remote`` and ``branch`` blocks written by ``clone`` and
the ``http`` settings read by the client. Section and variable names are
case-insensitive; subsection names keep their case. A variable that is set
more than once keeps its last value. Includes and line continuations are
not supported.
"""

__all__ = [
    "ConfigDict",
    "ConfigFile",
]

import os
import re
from typing import IO

from .file import GitFile, _GitFile

SectionLike = bytes | str | tuple[bytes | str, ...]
SectionKey = tuple[bytes, bytes | None]

_TRUE = frozenset([b"true", b"yes", b"on", b"1"])
_FALSE = frozenset([b"false", b"no", b"off", b"0", b""])

_HEADER = re.compile(
    rb'\[\s*(?P<name>[A-Za-z0-9.-]+)(?:\s+"(?P<sub>(?:[^"\\\n]|\\.)*)")?\s*\](?P<rest>.*)',
    re.DOTALL,
)
_VARIABLE_NAME = re.compile(rb"[A-Za-z][A-Za-z0-9-]*\Z")
_VALUE_TOKEN = re.compile(
    rb'(?P<quoted>"(?:[^"\\]|\\.)*")'
    rb"|(?P<comment>[#;].*)"
    rb"|(?P<space>[ \t]+)"
    rb'|(?P<text>(?:[^"\\#; \t]|\\.)+)'
    rb"|(?P<bad>.)",
    re.DOTALL,
)
_ESCAPE_SEQUENCE = re.compile(rb"\\(.)", re.DOTALL)
_UNESCAPE = {b"n": b"\n", b"t": b"\t", b"b": b"\b", b'"': b'"', b"\\": b"\\"}
_ESCAPE = [(b"\\", b"\\\\"), (b'"', b'\\"'), (b"\n", b"\\n"), (b"\t", b"\\t")]

UTF8_BOM = b"\xef\xbb\xbf"


def _to_bytes(value: bytes | str) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def _split_section(section: SectionLike) -> SectionKey:
    if not isinstance(section, tuple):
        return _to_bytes(section), None
    if len(section) == 1:
        return _to_bytes(section[0]), None
    if len(section) == 2:
        return _to_bytes(section[0]), _to_bytes(section[1])
    raise ValueError(f"invalid config section {section!r}")


def _unescape(text: bytes) -> bytes:
    def replace(m: re.Match[bytes]) -> bytes:
        try:
            return _UNESCAPE[m.group(1)]
        except KeyError as exc:
            raise ValueError(f"unknown escape sequence {m.group(0)!r}") from exc

    return _ESCAPE_SEQUENCE.sub(replace, text)


def _parse_value(raw: bytes) -> bytes:
    """Decode the text after ``=``: quotes, escapes and a trailing comment."""
    parts = []
    space = b""
    for m in _VALUE_TOKEN.finditer(raw.strip()):
        kind = m.lastgroup
        if kind == "comment":
            break
        if kind == "bad":
            raise ValueError(f"unterminated quote or escape in {raw!r}")
        if kind == "space":
            space += m.group()
            continue
        token = m.group()
        if kind == "quoted":
            token = token[1:-1]
        # Whitespace only counts between two pieces of the value.
        parts.append(space + _unescape(token))
        space = b""
    return b"".join(parts)


def _format_value(value: bytes) -> bytes:
    escaped = value
    for char, replacement in _ESCAPE:
        escaped = escaped.replace(char, replacement)
    if value != value.strip(b" \t") or b"#" in value or b";" in value:
        return b'"' + escaped + b'"'
    return escaped


class _Section:
    """One ``[name "subsection"]`` block."""

    def __init__(self, name: bytes, subsection: bytes | None) -> None:
        self.name = name
        self.subsection = subsection
        # lowercased variable name -> (name as written, value)
        self.variables: dict[bytes, tuple[bytes, bytes]] = {}

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, _Section)
            and (self.name.lower(), self.subsection, self.variables)
            == (other.name.lower(), other.subsection, other.variables)
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r}, {self.subsection!r})"

    def header(self) -> bytes:
        if self.subsection is None:
            return b"[" + self.name + b"]"
        subsection = self.subsection.replace(b"\\", b"\\\\").replace(b'"', b'\\"')
        return b"[" + self.name + b' "' + subsection + b'"]'


class ConfigDict:
    """Git configuration held in memory.

    Sections are given as a name, or as a ``(name, subsection)`` tuple.
    Names may be ``bytes`` or ``str``; ``str`` is encoded as UTF-8.
    """

    def __init__(self) -> None:
        self._sections: dict[SectionKey, _Section] = {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({list(self._sections.values())!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ConfigDict) and self._sections == other._sections

    def _section(self, name: bytes, subsection: bytes | None) -> _Section:
        key = (name.lower(), subsection)
        try:
            return self._sections[key]
        except KeyError:
            section = self._sections[key] = _Section(name, subsection)
            return section

    def get(self, section: SectionLike, name: bytes | str) -> bytes:
        """Look up a variable.

        When a subsection is given but does not set the variable, the plain
        section is consulted, so ``(b"http", url)`` falls back to ``http``.

        Raises:
          KeyError: if the variable is not set
        """
        section_name, subsection = _split_section(section)
        variable = _to_bytes(name).lower()
        keys = [(section_name.lower(), subsection)]
        if subsection is not None:
            keys.append((section_name.lower(), None))
        for key in keys:
            found = self._sections.get(key)
            if found is not None and variable in found.variables:
                return found.variables[variable][1]
        raise KeyError((section, name))

    def get_boolean(
        self, section: SectionLike, name: bytes | str, default: bool | None = None
    ) -> bool | None:
        """Look up a variable as a boolean.

        Returns: The value, or ``default`` if the variable is not set
        Raises:
          ValueError: if the value is not a git boolean
        """
        try:
            value = self.get(section, name).lower()
        except KeyError:
            return default
        if value in _TRUE:
            return True
        if value in _FALSE:
            return False
        raise ValueError(f"not a valid boolean string: {value!r}")

    def set(
        self, section: SectionLike, name: bytes | str, value: bytes | str | bool
    ) -> None:
        """Set a variable, replacing any earlier value."""
        if isinstance(value, bool):
            value = b"true" if value else b"false"
        variable = _to_bytes(name)
        self._section(*_split_section(section)).variables[variable.lower()] = (
            variable,
            _to_bytes(value),
        )


class ConfigFile(ConfigDict):
    """A configuration file on disk, like ``.git/config``."""

    def __init__(self) -> None:
        super().__init__()
        self.path: str | None = None

    @classmethod
    def from_file(cls, f: IO[bytes]) -> "ConfigFile":
        """Parse configuration from a binary file object.

        Raises:
          ValueError: if the contents are not valid git configuration
        """
        ret = cls()
        current: _Section | None = None
        for lineno, line in enumerate(f, 1):
            if lineno == 1 and line.startswith(UTF8_BOM):
                line = line[len(UTF8_BOM) :]
            line = line.strip()
            if line.startswith(b"["):
                m = _HEADER.match(line)
                if m is None:
                    raise ValueError(f"line {lineno}: invalid section header {line!r}")
                name, subsection = m.group("name"), m.group("sub")
                if subsection is not None:
                    subsection = _ESCAPE_SEQUENCE.sub(rb"\1", subsection)
                elif b"." in name:
                    # [branch.main] is the old spelling of [branch "main"]
                    name, subsection = name.split(b".", 1)
                current = ret._section(name, subsection)
                line = m.group("rest").strip()
            if not line or line.startswith((b"#", b";")):
                continue
            if current is None:
                raise ValueError(f"line {lineno}: setting {line!r} outside a section")
            variable, has_value, raw = line.partition(b"=")
            if not has_value:
                # A bare name means true; anything after it is a comment.
                variable = re.split(rb"[#;]", variable, maxsplit=1)[0]
            variable = variable.strip()
            if not _VARIABLE_NAME.match(variable):
                raise ValueError(f"line {lineno}: invalid variable name {variable!r}")
            value = _parse_value(raw) if has_value else b"true"
            current.variables[variable.lower()] = (variable, value)
        return ret

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> "ConfigFile":
        """Read configuration from a file on disk."""
        with GitFile(path, "rb") as f:
            ret = cls.from_file(f)
        ret.path = os.fspath(path)
        return ret

    def write_to_path(self, path: str | os.PathLike[str] | None = None) -> None:
        """Write configuration to a file on disk, by default where it was read."""
        if path is None:
            if self.path is None:
                raise ValueError("No path specified and no default path available")
            path = self.path
        with GitFile(path, "wb") as f:
            self.write_to_file(f)

    def write_to_file(self, f: IO[bytes] | _GitFile) -> None:
        for section in self._sections.values():
            f.write(section.header() + b"\n")
            for variable, value in section.variables.values():
                f.write(b"\t" + variable + b" = " + _format_value(value) + b"\n")
