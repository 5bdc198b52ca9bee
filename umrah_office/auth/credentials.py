"""
Credential verification backends.

Login asks a CredentialVerifier whether an email/password pair is valid;
which agent the email belongs to is then looked up in the data store.
Passwords are only ever held as Werkzeug hashes.
"""
from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional

from werkzeug.security import check_password_hash, generate_password_hash

logger = logging.getLogger(__name__)


def _normalize(email: str) -> str:
    return (email or "").strip().lower()


class CredentialVerifier(ABC):
    """Abstract credential check"""

    @abstractmethod
    def verify(self, email: str, password: str) -> bool:
        """Return True when the password matches the stored credential for email"""


class HashedCredentialVerifier(CredentialVerifier):
    """Checks passwords against a mapping of email -> Werkzeug password hash.

    When `path` is set, password changes are written back to that JSON file.
    """

    def __init__(self, hashes: Mapping[str, str], path: Optional[str] = None):
        self._hashes: Dict[str, str] = {_normalize(k): v for k, v in (hashes or {}).items()}
        self.path = path

    def verify(self, email: str, password: str) -> bool:
        stored = self._hashes.get(_normalize(email))
        if not stored or not password:
            return False
        try:
            return check_password_hash(stored, password)
        except ValueError:
            logger.warning("Unreadable password hash for %s", _normalize(email))
            return False

    def has_credentials(self, email: str) -> bool:
        return _normalize(email) in self._hashes

    def set_password(self, email: str, password: str) -> None:
        self._hashes[_normalize(email)] = generate_password_hash(password)
        self._save()

    def rename(self, old_email: str, new_email: str) -> None:
        """Keep a login working after the agent's email changes."""
        old, new = _normalize(old_email), _normalize(new_email)
        if old == new or old not in self._hashes:
            return
        self._hashes[new] = self._hashes.pop(old)
        self._save(removed=old)

    def _save(self, removed: Optional[str] = None) -> None:
        if not self.path:
            return
        existing: Dict[str, str] = {}
        if os.path.isfile(self.path):
            with open(self.path, "r", encoding="utf-8") as fh:
                existing = json.load(fh)
        existing = {_normalize(k): v for k, v in existing.items() if _normalize(k) != removed}
        existing.update(self._hashes)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(existing, fh, indent=2)
        logger.info("Saved %s credential(s) to %s", len(existing), self.path)

    @classmethod
    def from_config(cls, config) -> "HashedCredentialVerifier":
        hashes = dict(config.get("AGENT_CREDENTIALS") or {})
        path = config.get("AGENT_CREDENTIALS_FILE")
        if path:
            if not os.path.isfile(path):
                raise FileNotFoundError(f"AGENT_CREDENTIALS_FILE does not exist: {path}")
            with open(path, "r", encoding="utf-8") as fh:
                hashes.update(json.load(fh))
        if not hashes:
            logger.warning("No agent credentials configured; every login will be rejected")
        return cls(hashes, path=path or None)


class InMemoryCredentialVerifier(HashedCredentialVerifier):
    """Takes plain passwords (tests, local demos) and hashes them on construction."""

    def __init__(self, passwords: Mapping[str, str]):
        super().__init__({email: generate_password_hash(pw) for email, pw in (passwords or {}).items()})
