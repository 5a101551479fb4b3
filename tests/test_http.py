"""
Unit tests for the HTTP client layer.

The requests session is mocked, except for a local one-shot socket server
used to check that bodies ending at connection close stream live.
"""

import socket
import threading
from unittest.mock import Mock

import pytest
import requests
from urllib3.exceptions import ProtocolError

from applog.client.http import READ_SIZE, LogClient, LogQuery, LogRequestError, ResponseSource
from applog.config.loader import ClientConfig
from applog.core.decoder import StreamDecoder

FIRST = b'[{"Date": "2015-06-10T18:12:03Z", "Message": "creating app lost", "Source": "tsuru"}]'
SECOND = b'[{"Date": "2015-06-10T20:12:03Z", "Message": "app lost successfully created", "Source": "app"}]'


def _response(status_code=200, chunks=(), text=""):
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.iter_content.return_value = iter(chunks)
    return response


def _client(response, **config):
    session = Mock()
    session.get.return_value = response
    settings = {"target": "http://platform.example.com"}
    settings.update(config)
    return LogClient(ClientConfig(**settings), session=session), session


class TestLogQuery:
    """Test query validation and parameters."""

    def test_default_params(self):
        """Only the line count is sent by default."""
        assert LogQuery(app="myapp").params() == {"lines": "10"}

    def test_all_params(self):
        """Filters and follow map onto query parameters."""
        query = LogQuery(app="myapp", lines=12, source="app", unit="abcdef", follow=True)

        assert query.params() == {
            "lines": "12",
            "source": "app",
            "unit": "abcdef",
            "follow": "1"
        }

    @pytest.mark.parametrize("kwargs", [
        {"app": ""},
        {"app": "  "},
        {"app": "myapp", "lines": 0},
        {"app": "myapp", "lines": -5},
        {"app": "myapp", "lines": True},
    ])
    def test_invalid_query(self, kwargs):
        """Blank apps and non-positive line counts are rejected."""
        with pytest.raises(ValueError):
            LogQuery(**kwargs)


class TestLogClient:
    """Test request construction and response handling."""

    def test_open_log_stream_request(self):
        """The log endpoint is requested as a stream with a connect timeout."""
        response = _response(chunks=[b"[]"])
        client, session = _client(response, token="abc123", connect_timeout=5)

        client.open_log_stream(LogQuery(app="myapp", lines=12, follow=True))

        session.get.assert_called_once_with(
            "http://platform.example.com/apps/myapp/log",
            params={"lines": "12", "follow": "1"},
            headers={"Authorization": "bearer abc123"},
            stream=True,
            timeout=(5.0, None)
        )

    def test_no_token_no_auth_header(self):
        """Anonymous requests send no Authorization header."""
        client, session = _client(_response())

        client.open_log_stream(LogQuery(app="myapp"))

        assert session.get.call_args.kwargs["headers"] == {}

    def test_app_name_is_quoted(self):
        """App names are escaped in the URL path."""
        client, _ = _client(_response())

        assert client.log_url("my app/x") == "http://platform.example.com/apps/my%20app%2Fx/log"

    def test_stream_yields_chunks(self):
        """The source yields response chunks in order."""
        response = _response(chunks=[b"[{", b"}]"])
        client, _ = _client(response)

        source = client.open_log_stream(LogQuery(app="myapp"))

        assert not source.no_content
        assert list(source) == [b"[{", b"}]"]
        response.iter_content.assert_called_once_with(chunk_size=None)

    def test_no_content(self):
        """204 gives an empty source and closes the response."""
        response = _response(status_code=204)
        client, _ = _client(response)

        source = client.open_log_stream(LogQuery(app="myapp"))

        assert source.no_content
        assert list(source) == []
        response.close.assert_called_once()
        response.iter_content.assert_not_called()

    def test_error_status_raises(self):
        """Error statuses raise with the body as the message."""
        response = _response(status_code=404, text="App myapp not found.\n")
        client, _ = _client(response)

        with pytest.raises(LogRequestError, match="App myapp not found.") as exc_info:
            client.open_log_stream(LogQuery(app="myapp"))

        assert exc_info.value.status_code == 404
        response.close.assert_called_once()

    def test_error_status_without_body(self):
        """An empty error body still gives a useful message."""
        client, _ = _client(_response(status_code=500))

        with pytest.raises(LogRequestError, match="status 500"):
            client.open_log_stream(LogQuery(app="myapp"))

    def test_connection_error_propagates(self):
        """Transport errors reach the caller unchanged."""
        session = Mock()
        session.get.side_effect = requests.ConnectionError("refused")
        client = LogClient(ClientConfig(target="http://platform.example.com"), session=session)

        with pytest.raises(requests.ConnectionError, match="refused"):
            client.open_log_stream(LogQuery(app="myapp"))


class TestResponseSource:
    """Test the byte source wrapper."""

    def test_context_manager_closes_response(self):
        """Leaving the block closes the response."""
        response = _response(chunks=[b"x"])

        with ResponseSource(response) as source:
            assert list(source) == [b"x"]

        response.close.assert_called_once()

    def test_custom_chunk_size(self):
        """Chunk size is passed through to requests."""
        response = _response(chunks=[b"x"])

        list(ResponseSource(response, chunk_size=1))

        response.iter_content.assert_called_once_with(chunk_size=1)

    def test_unchunked_body_read_as_it_arrives(self):
        """Bodies without chunked encoding are read with read1 until EOF."""
        response = Mock()
        response.raw.chunked = False
        response.raw.read1.side_effect = [b"[{", b"}]", b""]

        assert list(ResponseSource(response)) == [b"[{", b"}]"]
        response.raw.read1.assert_called_with(READ_SIZE, decode_content=True)
        response.iter_content.assert_not_called()

    def test_unchunked_read_error_becomes_requests_error(self):
        """Protocol failures surface as requests exceptions."""
        response = Mock()
        response.raw.chunked = False
        response.raw.read1.side_effect = ProtocolError("Connection broken")

        with pytest.raises(requests.exceptions.ChunkedEncodingError):
            list(ResponseSource(response))


class TestFollowOverSocket:
    """Stream a real HTTP response from a local server."""

    def setup_method(self):
        """Start a one-shot server whose body ends at connection close."""
        self.release = threading.Event()
        self.closed = threading.Event()
        self.server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server.bind(("127.0.0.1", 0))
        self.server.listen(1)
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def teardown_method(self):
        """Stop the server."""
        self.release.set()
        self.thread.join(timeout=5)
        self.server.close()

    def _serve(self):
        conn, _ = self.server.accept()
        try:
            request = b""
            while b"\r\n\r\n" not in request:
                data = conn.recv(4096)
                if not data:
                    return
                request += data
            conn.sendall(
                b"HTTP/1.1 200 OK\r\n"
                b"Content-Type: application/json\r\n"
                b"Connection: close\r\n\r\n"
                + FIRST + b"\n"
            )
            self.release.wait(timeout=5)
            conn.sendall(SECOND)
        finally:
            conn.close()
            self.closed.set()

    def test_records_arrive_before_connection_closes(self):
        """The first write is readable while the server still holds the connection."""
        port = self.server.getsockname()[1]
        client = LogClient(ClientConfig(target=f"http://127.0.0.1:{port}"))
        client.session.trust_env = False

        with client.open_log_stream(LogQuery(app="myapp", follow=True)) as source:
            chunks = iter(source)
            decoder = StreamDecoder()
            records = []
            while not records:
                records = decoder.feed(next(chunks))

            assert not self.closed.is_set()
            assert records[0].message == "creating app lost"

            self.release.set()
            for chunk in chunks:
                records.extend(decoder.feed(chunk))

        assert [r.message for r in records] == ["creating app lost", "app lost successfully created"]
        assert decoder.remaining() == b""
