import dataclasses
import os
from typing import Dict, Optional, Union

__all__ = [
    "ClientOptions",
    "WriteOptions",
    "ReadOptions",
    "MakeDirOptions",
    "RemoveOptions",
    "to_query_string",
]

DEFAULT_CONNECT_TIMEOUT = 300.0

USER_NAME_KEY = "webhdfs.user.name"
CONNECT_TIMEOUT_KEY = "webhdfs.connect.timeout"
DATA_TRANSFER_TIMEOUT_KEY = "webhdfs.data.transfer.timeout"


def _parse_timeout(config: Dict[str, str], key: str) -> Optional[float]:
    value = config.get(key)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid value for {key}: {value!r}") from None


@dataclasses.dataclass(frozen=True)
class ClientOptions:
    """
    Connection settings fixed for the lifetime of a `Client`.

    `connect_timeout` and `data_transfer_timeout` are in seconds. Leaving either unset (or
    non-positive) keeps the transport default: 300 seconds to connect and no bound on the
    data transfer. `user_name` is sent as `user.name`; without it requests are anonymous.
    """

    connect_timeout: Optional[float] = None
    data_transfer_timeout: Optional[float] = None
    user_name: Optional[str] = None

    @classmethod
    def from_config(cls, config: Optional[Dict[str, str]] = None) -> "ClientOptions":
        """
        Builds options from a flat string mapping. The user name falls back to the
        `HADOOP_USER_NAME` environment variable.
        """
        config = config or {}
        return cls(
            connect_timeout=_parse_timeout(config, CONNECT_TIMEOUT_KEY),
            data_transfer_timeout=_parse_timeout(config, DATA_TRANSFER_TIMEOUT_KEY),
            user_name=config.get(USER_NAME_KEY) or os.environ.get("HADOOP_USER_NAME"),
        )

    @property
    def effective_connect_timeout(self) -> float:
        if self.connect_timeout and self.connect_timeout > 0:
            return self.connect_timeout
        return DEFAULT_CONNECT_TIMEOUT

    @property
    def effective_data_transfer_timeout(self) -> Optional[float]:
        if self.data_transfer_timeout and self.data_transfer_timeout > 0:
            return self.data_transfer_timeout
        return None


@dataclasses.dataclass(frozen=True)
class WriteOptions:
    overwrite: Optional[bool] = None
    block_size: Optional[int] = None
    replication: Optional[int] = None
    permission: Optional[int] = None
    buffer_size: Optional[int] = None


@dataclasses.dataclass(frozen=True)
class ReadOptions:
    offset: Optional[int] = None
    length: Optional[int] = None
    buffer_size: Optional[int] = None


@dataclasses.dataclass(frozen=True)
class MakeDirOptions:
    permission: Optional[int] = None


@dataclasses.dataclass(frozen=True)
class RemoveOptions:
    recursive: Optional[bool] = None


OperationOptions = Union[WriteOptions, ReadOptions, MakeDirOptions, RemoveOptions]

# Field name to WebHDFS query parameter name
_PARAMETER_NAMES = {
    "overwrite": "overwrite",
    "block_size": "blocksize",
    "replication": "replication",
    "permission": "permission",
    "buffer_size": "buffersize",
    "offset": "offset",
    "length": "length",
    "recursive": "recursive",
}


def _format_value(field: str, value: Union[bool, int]) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if field == "permission":
        return format(value, "o")
    return str(value)


def to_query_string(options: Optional[OperationOptions]) -> str:
    """
    Serializes the populated fields of `options` into a query fragment. Every parameter is
    emitted as `&name=value`, ordered by parameter name. Returns an empty string when
    nothing is set.
    """
    if options is None:
        return ""

    params = {}
    for field in dataclasses.fields(options):
        value = getattr(options, field.name)
        if value is not None:
            params[_PARAMETER_NAMES[field.name]] = _format_value(field.name, value)

    return "".join(f"&{name}={params[name]}" for name in sorted(params))
