from typing import Dict, Optional, Type

__all__ = [
    "WebHdfsError",
    "TransportError",
    "ProtocolError",
    "UnsupportedMethodError",
    "RemoteException",
    "RemoteFileNotFoundError",
    "RemoteFileExistsError",
    "RemotePermissionError",
    "UnexpectedResponseError",
    "LocalIOError",
    "OperationFailedError",
    "ResponseParseError",
    "remote_exception",
]


class WebHdfsError(Exception):
    """Base class for every error raised by the client"""

    def __str__(self) -> str:
        return f"WebHDFS client error: {super().__str__()}"


class TransportError(WebHdfsError):
    """The HTTP exchange could not be completed (DNS, refused connection, timeout)"""


class ProtocolError(WebHdfsError):
    """The gateway or the caller broke the expected request sequence"""


class UnsupportedMethodError(ProtocolError, NotImplementedError):
    pass


class RemoteException(WebHdfsError):
    """
    The gateway answered with a `RemoteException` JSON envelope. `exception` holds the
    remote (Java) exception name and `message` its message.
    """

    def __init__(self, exception: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"remote error: {message}")
        self.exception = exception
        self.message = message
        self.status_code = status_code


class RemoteFileNotFoundError(RemoteException, FileNotFoundError):
    pass


class RemoteFileExistsError(RemoteException, FileExistsError):
    pass


class RemotePermissionError(RemoteException, PermissionError):
    pass


_REMOTE_EXCEPTIONS: Dict[str, Type[RemoteException]] = {
    "FileNotFoundException": RemoteFileNotFoundError,
    "FileAlreadyExistsException": RemoteFileExistsError,
    "AccessControlException": RemotePermissionError,
}


def remote_exception(
    exception: str, message: str, status_code: Optional[int] = None
) -> RemoteException:
    """Builds the most specific `RemoteException` subclass for a remote exception name"""
    cls = _REMOTE_EXCEPTIONS.get(exception, RemoteException)
    return cls(exception, message, status_code)


class UnexpectedResponseError(WebHdfsError):
    def __init__(self, status_code: int, body: bytes = b""):
        message = f"unexpected server response code: {status_code}"
        if body:
            message += f" ({body.decode('utf-8', errors='replace')})"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class LocalIOError(WebHdfsError):
    """The caller supplied source or sink failed while a transfer was in flight"""


class OperationFailedError(WebHdfsError):
    """The gateway accepted the request but reported a `false` result"""

    def __init__(self, operation: str, path: str, body: bytes):
        super().__init__(
            f"can't {operation} {path}, reply: {body.decode('utf-8', errors='replace')}"
        )
        self.operation = operation
        self.path = path
        self.body = body


class ResponseParseError(WebHdfsError):
    pass
