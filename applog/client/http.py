"""
HTTP access to the platform log endpoint.

Builds the log request and exposes the streamed response body as a
byte source for the stream orchestrator.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple
from urllib.parse import quote

import requests
from urllib3.exceptions import DecodeError, ProtocolError, ReadTimeoutError

from ..config.loader import ClientConfig

logger = logging.getLogger(__name__)

DEFAULT_LINES = 10
READ_SIZE = 65536


class LogRequestError(Exception):
    """Raised when the platform rejects the log request."""
    def __init__(self, status_code: int, message: str):
        super().__init__(message or f"request failed with status {status_code}")
        self.status_code = status_code


@dataclass(frozen=True)
class LogQuery:
    """Which log entries to request for an app."""
    app: str
    lines: int = DEFAULT_LINES
    source: Optional[str] = None
    unit: Optional[str] = None
    follow: bool = False

    def __post_init__(self):
        """Validate query values."""
        if not self.app or not self.app.strip():
            raise ValueError("app is required and cannot be empty")
        if isinstance(self.lines, bool) or not isinstance(self.lines, int) or self.lines <= 0:
            raise ValueError("lines must be a positive integer")

    def params(self) -> Dict[str, str]:
        """Query string parameters, in the order the platform documents them."""
        params = {"lines": str(self.lines)}
        if self.source:
            params["source"] = self.source
        if self.unit:
            params["unit"] = self.unit
        if self.follow:
            params["follow"] = "1"
        return params


class ResponseSource:
    """Byte source over a streamed HTTP response.

    Iterating yields body chunks as they arrive. A 204 response is
    represented with no response at all and yields nothing.

    Chunked bodies are read one transfer chunk at a time. Bodies that
    end at connection close (or carry a Content-Length) are read with
    ``read1`` so a follow session sees each write as soon as it lands
    instead of waiting for EOF.
    """

    def __init__(self, response: Optional[requests.Response], chunk_size: Optional[int] = None):
        self.response = response
        self.chunk_size = chunk_size

    @property
    def no_content(self) -> bool:
        return self.response is None

    def __iter__(self) -> Iterator[bytes]:
        if self.response is None:
            return iter(())
        if self.chunk_size is None and not getattr(self.response.raw, "chunked", False):
            return self._read_available()
        return self.response.iter_content(chunk_size=self.chunk_size)

    def _read_available(self) -> Iterator[bytes]:
        raw = self.response.raw
        try:
            while True:
                chunk = raw.read1(READ_SIZE, decode_content=True)
                if not chunk:
                    break
                yield chunk
        except ProtocolError as e:
            raise requests.exceptions.ChunkedEncodingError(e)
        except DecodeError as e:
            raise requests.exceptions.ContentDecodingError(e)
        except ReadTimeoutError as e:
            raise requests.exceptions.ConnectionError(e)

    def close(self) -> None:
        if self.response is not None:
            self.response.close()

    def __enter__(self) -> "ResponseSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class LogClient:
    """Client for the platform log endpoint."""

    def __init__(self, config: ClientConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def log_url(self, app: str) -> str:
        """URL of the log endpoint for an app."""
        return f"{self.config.target}/apps/{quote(app, safe='')}/log"

    def headers(self) -> Dict[str, str]:
        headers = {}
        if self.config.token:
            headers["Authorization"] = f"bearer {self.config.token}"
        return headers

    def timeout(self) -> Tuple[float, None]:
        """Connect timeout only; reads may idle forever in follow mode."""
        return (self.config.connect_timeout, None)

    def open_log_stream(self, query: LogQuery) -> ResponseSource:
        """Send the log request and return its body as a byte source.

        Args:
            query: Which app and which entries to request

        Returns:
            ResponseSource over the streamed body (empty for 204 No Content)

        Raises:
            requests.RequestException: On connection failures
            LogRequestError: If the platform answers with an error status
        """
        url = self.log_url(query.app)
        logger.debug("GET %s params=%s", url, query.params())
        response = self.session.get(
            url,
            params=query.params(),
            headers=self.headers(),
            stream=True,
            timeout=self.timeout()
        )

        if response.status_code == requests.codes.no_content:
            logger.debug("No logs available for %s", query.app)
            response.close()
            return ResponseSource(None)

        if response.status_code >= 400:
            try:
                message = response.text.strip()
            finally:
                response.close()
            raise LogRequestError(response.status_code, message)

        return ResponseSource(response)
