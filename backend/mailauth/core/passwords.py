"""Password hashing and verification.

Current scheme: bcrypt over a SHA-256 pre-hash of the password. The
pre-hash keeps passwords longer than bcrypt's 72-byte input limit fully
significant. The cost factor is fixed per process (settings.bcrypt_rounds)
and embedded in every hash together with its salt, so verification needs
nothing but the stored string.

Legacy scheme: ``salt || md5_hex(salt || password)`` with a 5-character
salt prefix. Produced by an earlier version of the system and accepted
only when verifying existing hashes. Never used to create new ones.
"""

import base64
import hashlib
import hmac
import logging
import re

import bcrypt

logger = logging.getLogger(__name__)

_DEFAULT_ROUNDS = 12

# Modular crypt format emitted by bcrypt: $2b$<cost>$<22 salt><31 digest>
_BCRYPT_HASH_RE = re.compile(r"^\$2[abxy]?\$\d{2}\$[./A-Za-z0-9]{53}$")

LEGACY_SALT_LENGTH = 5
_LEGACY_DIGEST_LENGTH = 32


def _prehash(cleartext: str) -> bytes:
    """SHA-256 then base64: 44 bytes, no NUL bytes, under the 72-byte limit."""
    digest = hashlib.sha256(cleartext.encode("utf-8")).digest()
    return base64.b64encode(digest)


def legacy_hash(salt: str, cleartext: str) -> str:
    """Compute a legacy-format hash.

    Only exposed so existing records can be reproduced in tests and data
    migrations; never call this for new passwords.
    """
    digest = hashlib.md5((salt + cleartext).encode("utf-8")).hexdigest()  # nosec B324
    return salt + digest


def is_current_scheme(stored_hash: str) -> bool:
    """True if the stored hash is in the current (bcrypt) format."""
    return bool(_BCRYPT_HASH_RE.match(stored_hash))


class PasswordHasher:
    """Salted, slow password hashing with a legacy verification fallback.

    Holds no mutable state; safe to share across concurrent requests.
    """

    def __init__(self, rounds: int = _DEFAULT_ROUNDS) -> None:
        self._rounds = rounds
        # Compared against when there is no stored hash (unknown account, no
        # password set, legacy branch). Same cost as real hashes.
        self._dummy_hash = bcrypt.hashpw(b"dummy", bcrypt.gensalt(rounds=rounds))

    def hash(self, cleartext: str) -> str:
        """Hash a password with a fresh random salt.

        Args:
            cleartext: Plain-text password.

        Returns:
            bcrypt modular-crypt string (cost and salt embedded).
        """
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(_prehash(cleartext), salt).decode("ascii")

    def verify(self, cleartext: str, stored_hash: str) -> bool:
        """Check a password against a stored hash.

        The current scheme is tried first. A stored value that is not in
        bcrypt format is not a mismatch but a different scheme, and is
        checked against the legacy encoding instead.

        Args:
            cleartext: Plain-text password presented by the client.
            stored_hash: Value persisted for the account.

        Returns:
            True if the password matches under either scheme.
        """
        if is_current_scheme(stored_hash):
            try:
                return bcrypt.checkpw(_prehash(cleartext), stored_hash.encode("ascii"))
            except ValueError:
                logger.warning("Stored bcrypt hash could not be parsed")
                return False
        return self._verify_legacy(cleartext, stored_hash)

    def burn(self, cleartext: str) -> None:
        """Spend the same work as a real verification and discard the result.

        Used on paths with no stored hash so response time does not reveal
        whether an account or password exists.
        """
        bcrypt.checkpw(_prehash(cleartext), self._dummy_hash)

    def _verify_legacy(self, cleartext: str, stored_hash: str) -> bool:
        # Equalize timing with the bcrypt branch
        self.burn(cleartext)
        if len(stored_hash) != LEGACY_SALT_LENGTH + _LEGACY_DIGEST_LENGTH:
            return False
        salt = stored_hash[:LEGACY_SALT_LENGTH]
        expected = legacy_hash(salt, cleartext)
        return hmac.compare_digest(expected.encode("utf-8"), stored_hash.encode("utf-8"))
