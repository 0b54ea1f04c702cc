"""Random verification token generation."""

import secrets

# 128 bits of entropy, URL-safe base64 (22 chars)
_DEFAULT_NBYTES = 16


class NonceGenerator:
    """Produces unguessable URL-safe tokens.

    Backed by the OS CSPRNG through :mod:`secrets`, which is safe for
    concurrent use. One instance is created by the composition root and
    injected wherever tokens are issued.
    """

    def __init__(self, nbytes: int = _DEFAULT_NBYTES) -> None:
        if nbytes < _DEFAULT_NBYTES:
            msg = f"Nonce must be at least {_DEFAULT_NBYTES} bytes, got {nbytes}"
            raise ValueError(msg)
        self._nbytes = nbytes

    def new_token(self) -> str:
        """Return a fresh random token."""
        return secrets.token_urlsafe(self._nbytes)
