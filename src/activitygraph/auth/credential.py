"""
API key holder.

The platform authenticates every request with

    Authorization: ExtraHop apikey=<key>

ApiKey keeps the key in a mutable buffer that is zeroed when the key is
released, never renders it in repr/str, and hands it out only as the
complete header value for the transport layer.
"""

from typing import Optional

from ..errors import CredentialError

SCHEME = "ExtraHop"
HEADER_PREFIX = f"{SCHEME} apikey="


class ApiKey:
    """An opaque REST API key. Surrounding whitespace is trimmed."""

    __slots__ = ("_secret",)

    def __init__(self, key: str):
        if not isinstance(key, str):
            raise CredentialError("API key must be a string")
        key = key.strip()
        if not key:
            raise CredentialError("API key is empty")
        self._secret: Optional[bytearray] = bytearray(key.encode("utf-8"))

    @classmethod
    def from_header(cls, value: str) -> "ApiKey":
        """Parse a full Authorization header value."""
        if not value.startswith(HEADER_PREFIX):
            raise CredentialError(
                f"expected an Authorization value starting with {HEADER_PREFIX!r}"
            )
        return cls(value[len(HEADER_PREFIX):])

    @property
    def released(self) -> bool:
        return self._secret is None

    def authorization_header(self) -> str:
        """Header value for the transport layer. The only way to read the key."""
        if self._secret is None:
            raise CredentialError("API key was released")
        return HEADER_PREFIX + self._secret.decode("utf-8")

    def release(self) -> None:
        """Overwrite the key material and drop it."""
        secret = getattr(self, "_secret", None)
        if secret is not None:
            for i in range(len(secret)):
                secret[i] = 0
            self._secret = None

    close = release

    def __enter__(self) -> "ApiKey":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    def __del__(self):
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._secret is None else "***"
        return f"ApiKey({state})"

    __str__ = __repr__

    def __reduce__(self):
        raise TypeError("ApiKey cannot be pickled")
