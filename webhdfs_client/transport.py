"""
Single-request HTTP execution on top of `requests`.

A `Request` describes one exchange: the verb, the URL, whether redirects are followed, an
optional binary source streamed as a chunked body, an optional binary sink receiving the
response body, and the one status code that counts as success. `HttpTransport.execute`
runs it and returns a `Reply`, or raises one of the `webhdfs_client.errors` exceptions.

Response bytes only reach the sink when the status matches the expected one. Any other
reply is buffered in memory so it can be reported, which is only meant for the small JSON
bodies the gateway sends on errors.

Failures of the caller's source or sink are recorded on the reply while the transfer is
running and surface as `LocalIOError`, never as a transport failure.
"""

import dataclasses
import enum
import logging
import threading
import time
from importlib import metadata
from typing import BinaryIO, Dict, Iterator, Optional, Tuple, Union
from urllib.parse import urljoin

import requests

from .errors import (
    LocalIOError,
    TransportError,
    UnexpectedResponseError,
    UnsupportedMethodError,
    remote_exception,
)
from .response import try_parse_remote_exception

__all__ = [
    "Method",
    "Request",
    "Reply",
    "HttpTransport",
    "global_init",
    "global_cleanup",
]

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

_init_lock = threading.Lock()
_user_agent: Optional[str] = None


def global_init() -> str:
    """
    Performs the process wide transport setup and returns the User-Agent every transport
    sends. Safe to call from any number of clients and threads; only the first call does
    any work.
    """
    global _user_agent
    with _init_lock:
        if _user_agent is None:
            try:
                version = metadata.version("webhdfs-client")
            except metadata.PackageNotFoundError:
                version = "dev"
            _user_agent = (
                f"webhdfs-client/{version} {requests.utils.default_user_agent()}"
            )
            logger.debug("Initialized transport, user agent %s", _user_agent)
        return _user_agent


def global_cleanup() -> None:
    """Resets the process wide state. Calling it more than once is harmless."""
    global _user_agent
    with _init_lock:
        _user_agent = None


class Method(enum.Enum):
    GET = "GET"
    PUT = "PUT"
    POST = "POST"
    DELETE = "DELETE"


@dataclasses.dataclass
class Request:
    method: Method
    url: str
    expected_status: int
    follow_redirects: bool = False
    source: Optional[BinaryIO] = None
    sink: Optional[BinaryIO] = None


@dataclasses.dataclass
class Reply:
    status_code: int = 0
    unexpected_content: bytes = b""
    redirect_url: Optional[str] = None
    callback_error: Optional[str] = None


class _CallbackAbort(Exception):
    """Raised from inside a body callback to stop the transfer"""


class _DeadlineExceeded(Exception):
    pass


class HttpTransport:
    """
    Executes WebHDFS requests over a `requests.Session` owned by this transport.

    Not thread safe: a transport, like the client owning it, serves one call at a time.
    """

    def __init__(
        self,
        connect_timeout: float,
        data_transfer_timeout: Optional[float] = None,
    ):
        self.connect_timeout = connect_timeout
        self.data_transfer_timeout = data_transfer_timeout
        self.session = requests.Session()
        self.session.headers["User-Agent"] = global_init()
        # Bodies are streamed to the sink exactly as the gateway sends them
        self.session.headers["Accept-Encoding"] = "identity"

    def close(self) -> None:
        self.session.close()

    def execute(self, request: Request) -> Reply:
        reply = Reply()
        deadline = None
        if self.data_transfer_timeout is not None:
            deadline = time.monotonic() + self.data_transfer_timeout
        method, headers, body = self._shape(request, reply, deadline)

        logger.debug("%s %s", method, request.url)
        try:
            response = self.session.request(
                method,
                request.url,
                headers=headers,
                data=body,
                allow_redirects=request.follow_redirects,
                stream=True,
                timeout=(self.connect_timeout, self.data_transfer_timeout),
            )
            with response:
                reply.status_code = response.status_code
                self._receive(response, request, reply, deadline)
                if not request.follow_redirects and response.is_redirect:
                    reply.redirect_url = urljoin(
                        response.url, response.headers["Location"]
                    )
                    logger.debug("Redirected to %s", reply.redirect_url)
        except (_CallbackAbort, _DeadlineExceeded, requests.RequestException) as e:
            # A callback failure makes requests report a generic error, the recorded
            # message is the real cause
            if reply.callback_error is not None:
                raise LocalIOError(reply.callback_error) from e
            raise TransportError(str(e)) from e

        logger.debug("%s %s -> %d", method, request.url, reply.status_code)

        if reply.status_code != request.expected_status:
            info = try_parse_remote_exception(reply.unexpected_content)
            if info is not None:
                raise remote_exception(info.exception, info.message, reply.status_code)
            raise UnexpectedResponseError(reply.status_code, reply.unexpected_content)

        return reply

    def _shape(
        self, request: Request, reply: Reply, deadline: Optional[float]
    ) -> Tuple[str, Dict[str, Optional[str]], Union[bytes, Iterator[bytes]]]:
        """
        Returns the verb, header overrides and body for `request`. Headers mapped to None
        are never sent. A PUT with a source gets a generator body, which requests sends
        chunked since its length isn't known.
        """
        if request.method is Method.GET:
            return "GET", {"Expect": None}, b""
        elif request.method is Method.PUT:
            if request.source is None:
                return "PUT", {"Expect": None, "Transfer-Encoding": None}, b""
            return (
                "PUT",
                {"Expect": None, "Transfer-Encoding": "chunked"},
                self._read_source(request.source, reply, deadline),
            )
        elif request.method is Method.DELETE:
            return "DELETE", {"Expect": None, "Transfer-Encoding": None}, b""
        elif request.method is Method.POST:
            raise UnsupportedMethodError("Post requests not implemented")
        else:
            raise ValueError(f"Unknown method {request.method}")

    def _check_deadline(self, deadline: Optional[float]) -> None:
        if deadline is not None and time.monotonic() > deadline:
            raise _DeadlineExceeded(
                f"Operation timed out after {self.data_transfer_timeout} seconds"
            )

    def _read_source(
        self, source: BinaryIO, reply: Reply, deadline: Optional[float]
    ) -> Iterator[bytes]:
        while True:
            self._check_deadline(deadline)
            try:
                chunk: Optional[Union[bytes, str]] = source.read(CHUNK_SIZE)
            except (OSError, ValueError, TypeError) as e:
                reply.callback_error = f"can't read request data: {e}"
                raise _CallbackAbort(reply.callback_error) from e

            # A non-blocking source returns None when no data is ready
            if chunk is None:
                reply.callback_error = "can't read request data: source returned no data"
                raise _CallbackAbort(reply.callback_error)
            # Short reads are passed on as they are, an empty read ends the body
            if not chunk:
                return
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            yield chunk

    def _receive(
        self,
        response: requests.Response,
        request: Request,
        reply: Reply,
        deadline: Optional[float],
    ) -> None:
        unexpected = bytearray()
        for chunk in response.iter_content(CHUNK_SIZE):
            self._check_deadline(deadline)
            if reply.status_code != request.expected_status:
                unexpected += chunk
            elif request.sink is not None:
                self._write_sink(request.sink, chunk, reply)

        reply.unexpected_content = bytes(unexpected)

    def _write_sink(self, sink: BinaryIO, chunk: bytes, reply: Reply) -> None:
        try:
            written = sink.write(chunk)
        except (OSError, ValueError, TypeError) as e:
            reply.callback_error = f"can't write response data: {e}"
            raise _CallbackAbort(reply.callback_error) from e

        # A non-blocking sink returns None when it accepted nothing
        if written is None or written < len(chunk):
            reply.callback_error = (
                f"can't write response data: short write ({written or 0} of {len(chunk)} bytes)"
            )
            raise _CallbackAbort(reply.callback_error)
