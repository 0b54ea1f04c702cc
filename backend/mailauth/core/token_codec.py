"""URL-safe encryption of record identifiers and verification tokens.

Ids and tokens travel inside verification / reset links, so they are
encrypted before being embedded in a URL and decrypted when the link is
followed. Uses Fernet from the ``cryptography`` library: every call draws
a fresh random IV, the token is version || timestamp || IV || ciphertext ||
HMAC, and the whole thing is URL-safe base64. The HMAC means any tampered
or truncated value fails to decrypt instead of yielding garbage plaintext.

Key rotation: the first key encrypts, all keys (current + previous) are
tried on decrypt via MultiFernet.

Generate a key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

import binascii
import logging
from collections.abc import Sequence

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from mailauth.core.config import Settings

logger = logging.getLogger(__name__)


class TokenCodec:
    """Symmetric encrypt/decrypt of short strings for use in URL path segments.

    Instances hold only immutable key material and are safe to share across
    concurrent requests.
    """

    def __init__(self, key: str | bytes, previous_keys: Sequence[str | bytes] = ()) -> None:
        """Create a codec.

        Args:
            key: Current Fernet key (URL-safe base64, 32 bytes decoded).
            previous_keys: Retired keys still accepted for decryption.

        Raises:
            ValueError: If any key is not a valid Fernet key.
        """
        self._fernet = MultiFernet([Fernet(k) for k in (key, *previous_keys)])

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        """Build a codec from application settings.

        Outside production an empty key falls back to an ephemeral one, so
        links issued before a restart stop working. Production settings
        validation refuses an empty key.
        """
        key = settings.token_encryption_key.get_secret_value()
        if not key:
            logger.warning(
                "TOKEN_ENCRYPTION_KEY not set, using an ephemeral key. "
                "Verification links will not survive a restart."
            )
            key = cls.generate_key()
        previous = [k.get_secret_value() for k in settings.token_encryption_previous_keys]
        return cls(key, previous)

    @staticmethod
    def generate_key() -> str:
        """Generate a new random Fernet key."""
        return Fernet.generate_key().decode("ascii")

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string into a URL-safe token.

        Base64 padding is stripped so the value can be used as a path
        segment as-is.
        """
        token = self._fernet.encrypt(plaintext.encode("utf-8"))
        return token.decode("ascii").rstrip("=")

    def decrypt(self, value: str) -> str | None:
        """Decrypt a value produced by :meth:`encrypt`.

        Returns None for every kind of failure (malformed base64, wrong
        key, tampered or truncated data). Callers must not distinguish
        between them.
        """
        padded = value + "=" * (-len(value) % 4)
        try:
            plaintext = self._fernet.decrypt(padded.encode("ascii"))
            return plaintext.decode("utf-8")
        except (InvalidToken, binascii.Error, UnicodeError):
            return None
