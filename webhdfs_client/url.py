import string
from typing import Optional

__all__ = ["UrlBuilder", "quote_path"]

WEBHDFS_PREFIX = "/webhdfs/v1"

_UNRESERVED = frozenset((string.ascii_letters + string.digits + "-_.~/").encode("ascii"))


def quote_path(path: str) -> str:
    """
    Percent-encodes `path` byte by byte. ASCII letters, digits and `-_.~/` are kept, every
    other byte of the UTF-8 encoding becomes `%XX` in uppercase hex.
    """
    return "".join(
        chr(byte) if byte in _UNRESERVED else f"%{byte:02X}"
        for byte in path.encode("utf-8")
    )


class UrlBuilder:
    """Builds operation URLs for a single WebHDFS gateway"""

    def __init__(self, host: str, port: int, user_name: Optional[str] = None):
        self.prefix = f"http://{host}:{port}{WEBHDFS_PREFIX}"
        self.user_name = user_name

    def build_url(self, remote_path: str, operation: str, query: str = "") -> str:
        """
        Returns the URL for `operation` on `remote_path`. `query` is appended verbatim and
        must already be made of `&name=value` pairs.
        """
        url = self.prefix + quote_path(remote_path)
        if self.user_name:
            url += f"?user.name={quote_path(self.user_name)}&op={operation}"
        else:
            url += f"?op={operation}"
        return url + query
