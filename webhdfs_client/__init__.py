import io
import logging
from typing import BinaryIO, Dict, List, Optional, Union
from urllib.parse import urlparse

from .errors import (
    LocalIOError,
    OperationFailedError,
    ProtocolError,
    RemoteException,
    ResponseParseError,
    TransportError,
    UnexpectedResponseError,
    UnsupportedMethodError,
    WebHdfsError,
)
from .options import (
    ClientOptions,
    MakeDirOptions,
    ReadOptions,
    RemoveOptions,
    WriteOptions,
    to_query_string,
)
from .response import FileStatus, FileType, is_boolean_true, parse_listing
from .transport import HttpTransport, Method, Request
from .url import UrlBuilder, quote_path

__all__ = [
    "Client",
    "ClientOptions",
    "WriteOptions",
    "ReadOptions",
    "MakeDirOptions",
    "RemoveOptions",
    "FileStatus",
    "FileType",
    "WebHdfsError",
    "TransportError",
    "ProtocolError",
    "UnsupportedMethodError",
    "RemoteException",
    "UnexpectedResponseError",
    "LocalIOError",
    "OperationFailedError",
    "ResponseParseError",
]

logger = logging.getLogger(__name__)

DEFAULT_PORT = 50070

_SCHEMES = ("webhdfs", "hdfs", "http")


class Client:
    """
    WebHDFS client for a single gateway.

    Every operation is one blocking exchange (two for `write`) that either completes or
    raises a `WebHdfsError`. A client is not safe for concurrent use, use one per thread.

    Usage::

        with Client("namenode.local", options=ClientOptions(user_name="hdfs")) as client:
            client.write(b"hello", "/tmp/hello.txt", WriteOptions(overwrite=True))
            with open("hello.txt", "wb") as f:
                client.read("/tmp/hello.txt", f)
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        options: Optional[ClientOptions] = None,
    ):
        self.host = host
        self.port = port
        self.options = options or ClientOptions()
        self.url_builder = UrlBuilder(host, port, self.options.user_name)
        self.transport = HttpTransport(
            self.options.effective_connect_timeout,
            self.options.effective_data_transfer_timeout,
        )

    @classmethod
    def from_url(cls, url: str, config: Optional[Dict[str, str]] = None) -> "Client":
        """
        Creates a client from a `webhdfs://host[:port]` style URL. `hdfs://` and `http://`
        are accepted as well. Any path in the URL is ignored.
        """
        parsed = urlparse(url)
        if parsed.scheme not in _SCHEMES:
            raise ValueError(f"Unsupported scheme in {url}")
        if not parsed.hostname:
            raise ValueError(f"No host in {url}")

        return cls(
            parsed.hostname,
            parsed.port or DEFAULT_PORT,
            ClientOptions.from_config(config),
        )

    def __repr__(self) -> str:
        return f"Client(host={self.host!r}, port={self.port!r})"

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *_args):
        self.close()

    def close(self) -> None:
        self.transport.close()

    def write(
        self,
        source: Union[bytes, BinaryIO],
        path: str,
        options: Optional[WriteOptions] = None,
    ) -> None:
        """
        Writes the content of `source` to the file at `path`. `source` is either bytes or a
        binary file object, which is read in chunks and streamed to the data node.
        """
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = io.BytesIO(source)

        # The name node only tells us where the data has to go
        reply = self.transport.execute(
            Request(
                method=Method.PUT,
                url=self.url_builder.build_url(path, "CREATE", to_query_string(options)),
                expected_status=307,
            )
        )
        if not reply.redirect_url:
            raise ProtocolError("protocol error: no redirection to data node")

        logger.debug("Writing %s to %s", path, reply.redirect_url)
        self.transport.execute(
            Request(
                method=Method.PUT,
                url=reply.redirect_url,
                expected_status=201,
                source=source,
            )
        )

    def read(
        self,
        path: str,
        sink: BinaryIO,
        options: Optional[ReadOptions] = None,
    ) -> None:
        """Streams the content of the file at `path` into the binary file object `sink`"""
        self.transport.execute(
            Request(
                method=Method.GET,
                url=self.url_builder.build_url(path, "OPEN", to_query_string(options)),
                expected_status=200,
                follow_redirects=True,
                sink=sink,
            )
        )

    def make_dir(self, path: str, options: Optional[MakeDirOptions] = None) -> None:
        """Creates the directory `path` along with any missing parents"""
        body = self._boolean_request(
            Method.PUT,
            self.url_builder.build_url(path, "MKDIRS", to_query_string(options)),
        )
        if not is_boolean_true(body):
            raise OperationFailedError("create dir", path, body)

    def list_dir(self, path: str) -> List[FileStatus]:
        """Lists the direct children of the directory `path`"""
        sink = io.BytesIO()
        self.transport.execute(
            Request(
                method=Method.GET,
                url=self.url_builder.build_url(path, "LISTSTATUS"),
                expected_status=200,
                follow_redirects=True,
                sink=sink,
            )
        )
        return parse_listing(sink.getvalue())

    def remove(self, path: str, options: Optional[RemoveOptions] = None) -> None:
        """
        Deletes the file or directory at `path`. Non-empty directories are only removed
        with `RemoveOptions(recursive=True)`.
        """
        body = self._boolean_request(
            Method.DELETE,
            self.url_builder.build_url(path, "DELETE", to_query_string(options)),
        )
        if not is_boolean_true(body):
            raise OperationFailedError("delete", path, body)

    def rename(self, path: str, new_path: str) -> None:
        """Moves the file or directory at `path` to `new_path`"""
        url = self.url_builder.build_url(path, "RENAME")
        body = self._boolean_request(
            Method.PUT, f"{url}&destination={quote_path(new_path)}"
        )
        if not is_boolean_true(body):
            raise OperationFailedError("rename", path, body)

    def _boolean_request(self, method: Method, url: str) -> bytes:
        sink = io.BytesIO()
        self.transport.execute(
            Request(method=method, url=url, expected_status=200, sink=sink)
        )
        return sink.getvalue()
