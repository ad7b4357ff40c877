"""
Connection string (DSN) parsing and reassembly.

Connection strings follow the URI shape
``scheme://[user[:pass]@]host[:port][/path][?query]``.
"""
from typing import Dict, Optional
from urllib.parse import parse_qsl, unquote, urlsplit

from pydantic import BaseModel, ConfigDict

from ckload.utility.exceptions import ConfigError


class Dsn(BaseModel):
    """
    A parsed connection string.

    Userinfo is kept exactly as written (still percent-encoded) so the
    string can be reassembled without changing it; use ``username`` and
    ``secret`` for decoded values.
    """

    model_config = ConfigDict(frozen=True)

    scheme: str
    host: str
    user: Optional[str] = None
    password: Optional[str] = None
    port: Optional[int] = None
    path: Optional[str] = None
    query: Optional[str] = None

    @classmethod
    def parse(cls, dsn: str) -> "Dsn":
        """
        Parse a connection string.

        Raises:
            ConfigError: If the string is empty or lacks a scheme or host
        """
        if not dsn or not dsn.strip():
            raise ConfigError("Connection string is empty")

        parts = urlsplit(dsn.strip())
        if not parts.scheme:
            raise ConfigError(f"Connection string has no scheme: {dsn!r}")

        userinfo, _, hostport = parts.netloc.rpartition("@")
        user, password = None, None
        if userinfo:
            user, sep, password = userinfo.partition(":")
            user = user or None
            password = password if sep else None

        if not parts.hostname:
            raise ConfigError(f"Connection string has no host: {dsn!r}")

        try:
            port = parts.port
        except ValueError as e:
            raise ConfigError(f"Invalid port in connection string: {e}") from e

        # hostname is lowercased by urlsplit; keep the original spelling
        host = hostport
        if port is not None or hostport.endswith(":"):
            host = hostport.rsplit(":", 1)[0]
        host = host.strip("[]")

        return cls(
            scheme=parts.scheme.lower(),
            host=host,
            user=user,
            password=password,
            port=port,
            path=parts.path or None,
            query=parts.query or None,
        )

    @property
    def username(self) -> Optional[str]:
        return unquote(self.user) if self.user else None

    @property
    def secret(self) -> Optional[str]:
        return unquote(self.password) if self.password else None

    @property
    def database(self) -> Optional[str]:
        """First path segment, if any."""
        if not self.path:
            return None
        segment = self.path.strip("/").split("/")[0]
        return unquote(segment) or None

    def query_params(self) -> Dict[str, str]:
        """Query string as a dict; the last occurrence of a key wins."""
        return dict(parse_qsl(self.query or "", keep_blank_values=True))

    def with_scheme(self, scheme: str) -> "Dsn":
        return self.model_copy(update={"scheme": scheme})

    def unparse(self) -> str:
        """Reassemble the URL, leaving out absent parts and their separators."""
        url = f"{self.scheme}://"
        if self.user or self.password:
            url += self.user or ""
            if self.password:
                url += f":{self.password}"
            url += "@"
        url += f"[{self.host}]" if ":" in self.host else self.host
        if self.port is not None:
            url += f":{self.port}"
        if self.path:
            url += self.path if self.path.startswith("/") else f"/{self.path}"
        if self.query:
            url += f"?{self.query}"
        return url
