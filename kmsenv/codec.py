"""
Env file format: parsing and serialization.

On disk an env file looks like:

    <key id>
    NAME=plain value
    OTHER=SECURE:<base64 ciphertext>

The first non-empty line is the key id. Values carrying the SECURE:
marker hold base64 ciphertext produced by the key-management gateway.
Blank lines and lines without '=' are skipped when reading and never
produced when writing.

This module does NOT:
- touch the filesystem
- talk to the key-management service
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

from .config import SECURE_MARKER
from .errors import FormatError


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass
class Entry:
    name: str
    value: Union[str, bytes]
    encrypted: bool = False


@dataclass
class EnvFile:
    key_id: Optional[str] = None
    entries: List[Entry] = field(default_factory=list)

    @property
    def initialized(self) -> bool:
        return bool(self.key_id)

    def names(self) -> List[str]:
        return [entry.name for entry in self.entries]

    def get(self, name: str) -> Optional[Entry]:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def upsert(self, entry: Entry) -> None:
        """
        Insert an entry, replacing any entry of the same name in place.
        New names are appended at the end.
        """

        for idx, existing in enumerate(self.entries):
            if existing.name == entry.name:
                self.entries[idx] = entry
                return
        self.entries.append(entry)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


# ---------------------------------------------------------------------------
# Marker helpers
# ---------------------------------------------------------------------------


def is_secure(value: str) -> bool:
    """Return True if a serialized value carries the encryption marker."""
    return value.startswith(SECURE_MARKER)


def encode_secure(ciphertext: bytes) -> str:
    """Render ciphertext as a marked, printable value."""
    return SECURE_MARKER + base64.b64encode(ciphertext).decode("ascii")


def decode_secure(value: str) -> bytes:
    """
    Extract the ciphertext from a marked value.

    Raises:
        FormatError: if the marker is missing or the payload is not base64
    """

    if not is_secure(value):
        raise FormatError(f"Value is not marked with {SECURE_MARKER}")

    payload = value[len(SECURE_MARKER):]
    try:
        return base64.b64decode(payload.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise FormatError(f"Invalid base64 ciphertext: {e}") from e


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse(text: str) -> EnvFile:
    """
    Parse env file text.

    Empty input yields an EnvFile without key id; deciding whether
    that is acceptable is left to the caller.

    Raises:
        FormatError: if an encrypted value cannot be decoded
    """

    env_file = EnvFile()

    for lineno, raw_line in enumerate(text.split("\n"), start=1):
        line = raw_line.rstrip("\r")
        if not line.strip():
            continue

        if env_file.key_id is None:
            env_file.key_id = line
            continue

        name, sep, value = line.partition("=")
        if not sep:
            continue

        if is_secure(value):
            try:
                entry = Entry(name=name, value=decode_secure(value), encrypted=True)
            except FormatError as e:
                raise FormatError(f"Line {lineno} ({name}): {e}") from e
        else:
            entry = Entry(name=name, value=value, encrypted=False)

        env_file.upsert(entry)

    return env_file


def serialize(env_file: EnvFile) -> str:
    """
    Render an EnvFile in its on-disk form.

    Raises:
        FormatError: if a plain value starts with the encryption marker
    """

    if not env_file.key_id:
        return ""

    lines = [env_file.key_id]
    for entry in env_file.entries:
        if entry.encrypted:
            value = encode_secure(entry.value)
        elif is_secure(entry.value):
            raise FormatError(
                f"Plain value of '{entry.name}' starts with {SECURE_MARKER} and would read back as encrypted"
            )
        else:
            value = entry.value
        lines.append(f"{entry.name}={value}")

    return "\n".join(lines) + "\n"
