import os
from typing import Mapping, Optional

from pyvbanmatrix.exceptions import ConfigurationError
from pyvbanmatrix.protocol import DEFAULT_PORT, DEFAULT_QUERY_TIMEOUT, DEFAULT_STREAM_NAME

DEFAULT_HTTP_PORT = 3000


class MatrixConfig:
    """Connection settings for the matrix and the HTTP API."""

    def __init__(self, host: str, port: int = DEFAULT_PORT, stream_name: str = DEFAULT_STREAM_NAME,
                 http_port: int = DEFAULT_HTTP_PORT, timeout: float = DEFAULT_QUERY_TIMEOUT):
        if not host:
            raise ConfigurationError("Matrix host is required (set VBAN_HOST or pass --host)")
        self.host = host
        self.port = port
        self.stream_name = stream_name
        self.http_port = http_port
        self.timeout = timeout

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "MatrixConfig":
        """Build config from VBAN_HOST, VBAN_PORT, VBAN_COMMAND_STREAM_NAME and HTTP_PORT.

        Keyword overrides that are not None win over the environment.
        """
        environ = os.environ if environ is None else environ
        values = {
            "host": environ.get("VBAN_HOST"),
            "port": _int(environ, "VBAN_PORT", DEFAULT_PORT),
            "stream_name": environ.get("VBAN_COMMAND_STREAM_NAME") or DEFAULT_STREAM_NAME,
            "http_port": _int(environ, "HTTP_PORT", DEFAULT_HTTP_PORT),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    def __repr__(self):
        return (
            f"MatrixConfig(host={self.host!r}, port={self.port}, stream_name={self.stream_name!r}, "
            f"http_port={self.http_port}, timeout={self.timeout})"
        )


def _int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got '{raw}'") from None
