import dataclasses
import enum
import json
from typing import Any, List, Optional

from .errors import ResponseParseError

__all__ = [
    "FileType",
    "FileStatus",
    "RemoteExceptionInfo",
    "try_parse_remote_exception",
    "parse_listing",
    "is_boolean_true",
]

BOOLEAN_TRUE = b'{"boolean":true}'


class FileType(enum.Enum):
    FILE = "FILE"
    DIRECTORY = "DIRECTORY"


@dataclasses.dataclass(frozen=True)
class FileStatus:
    """One entry of a directory listing. Times are milliseconds since the epoch."""

    access_time: int
    block_size: int
    group: str
    length: int
    modification_time: int
    owner: str
    path_suffix: str
    permission: str
    replication: int
    type: FileType

    @property
    def isdir(self) -> bool:
        return self.type is FileType.DIRECTORY


@dataclasses.dataclass(frozen=True)
class RemoteExceptionInfo:
    exception: str
    message: str


def _loads(body: bytes) -> Any:
    return json.loads(body.decode("utf-8"))


def try_parse_remote_exception(body: bytes) -> Optional[RemoteExceptionInfo]:
    """
    Returns the remote exception carried by `body`, or None if `body` isn't a JSON object
    with a `RemoteException` member.
    """
    try:
        value = _loads(body)
    except ValueError:
        return None

    if not isinstance(value, dict) or "RemoteException" not in value:
        return None

    remote = value["RemoteException"]
    if not isinstance(remote, dict):
        remote = {}
    return RemoteExceptionInfo(
        exception=str(remote.get("exception", "Unknown")),
        message=str(remote.get("message", "")),
    )


def _file_status(value: Any) -> FileStatus:
    return FileStatus(
        access_time=int(value.get("accessTime", 0)),
        block_size=int(value.get("blockSize", 0)),
        group=str(value.get("group", "")),
        length=int(value.get("length", 0)),
        modification_time=int(value.get("modificationTime", 0)),
        owner=str(value.get("owner", "")),
        path_suffix=str(value.get("pathSuffix", "")),
        permission=str(value.get("permission", "")),
        replication=int(value.get("replication", 0)),
        type=FileType.FILE if value.get("type") == "FILE" else FileType.DIRECTORY,
    )


def parse_listing(body: bytes) -> List[FileStatus]:
    """Parses a `LISTSTATUS` reply body"""
    try:
        value = _loads(body)
        items = value["FileStatuses"]["FileStatus"]
    except (ValueError, KeyError, TypeError) as e:
        raise ResponseParseError(f"Can't parse dir listing: {e}") from e

    if not isinstance(items, list):
        raise ResponseParseError("Can't parse dir listing: FileStatus is not an array")

    try:
        return [_file_status(item) for item in items]
    except (AttributeError, TypeError, ValueError) as e:
        raise ResponseParseError(f"Can't parse dir listing entry: {e}") from e


def is_boolean_true(body: bytes) -> bool:
    """Strict check for the literal `{"boolean":true}` success body"""
    return body == BOOLEAN_TRUE
