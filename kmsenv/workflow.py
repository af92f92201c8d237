"""
User-facing operations: init, add, decrypt, show.

Each operation is a single sequential transaction against one env file
(or, for decrypt, against an environment snapshot). Nothing is cached
between calls.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from .codec import decode_secure, is_secure
from .errors import ConfigError, DecryptionError, FormatError, ValidationError
from .gateway import KeyManagementGateway
from .store import EnvStore
from .utils import is_shell_name, shell_quote, split_assignment

logger = logging.getLogger(__name__)


class EncryptionWorkflow:
    def __init__(
        self,
        gateway: Optional[KeyManagementGateway] = None,
        store: Optional[EnvStore] = None,
    ):
        self._gateway = gateway
        self.store = store or EnvStore()

    @property
    def gateway(self) -> KeyManagementGateway:
        if self._gateway is None:
            raise ConfigError("No key-management gateway configured")
        return self._gateway

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def init(self, key_id: str, path: str | Path):
        """Create or overwrite the env file at path with key_id."""

        if not key_id:
            raise ValidationError("Must provide keyId")
        if not path:
            raise ValidationError("Must provide file")

        logger.debug("Initializing %s with key %s", path, key_id)
        return self.store.init(path, key_id)

    def add(self, path: str | Path, raw_entries: Sequence[str]):
        """
        Encrypt NAME=VALUE tokens and upsert them into the env file.

        All tokens are validated before any I/O. Either every entry is
        written or none is.
        """

        if not path:
            raise ValidationError("Must provide file")
        if isinstance(raw_entries, str) or not raw_entries:
            raise ValidationError("Must provide entries to encrypt")

        pairs = [split_assignment(token) for token in raw_entries]

        logger.debug("Adding %d entr%s to %s", len(pairs), "y" if len(pairs) == 1 else "ies", path)
        return self.store.upsert_many(path, pairs, self.gateway)

    def decrypt(self, environ: Mapping[str, str]) -> List[str]:
        """
        Build shell export lines for marked variables in environ.

        Every marked value is decrypted before anything is returned, so
        a single failure produces no output at all.
        """

        lines: List[str] = []

        for name, value in environ.items():
            if not is_secure(value):
                continue
            if not is_shell_name(name):
                raise ValidationError(
                    f"Cannot export '{name}': not a valid shell variable name"
                )

            try:
                plaintext = self.gateway.decrypt(decode_secure(value))
            except (DecryptionError, FormatError) as e:
                raise DecryptionError(f"Failed to decrypt '{name}': {e}") from e

            lines.append(f"export {name}={shell_quote(plaintext)}")

        logger.debug("Decrypted %d environment variable(s)", len(lines))
        return lines

    def show(self, path: str | Path) -> List[str]:
        """
        Return NAME=value lines for the env file with every value in
        plaintext. Debugging aid: the output contains secrets.
        """

        if not path:
            raise ValidationError("Must provide file to show")

        env_file = self.store.load(path)

        lines: List[str] = []
        for entry in env_file:
            if entry.encrypted:
                try:
                    value = self.gateway.decrypt(entry.value)
                except DecryptionError as e:
                    raise DecryptionError(f"Failed to decrypt '{entry.name}': {e}") from e
            else:
                value = entry.value
            lines.append(f"{entry.name}={value}")

        return lines
