import io
import posixpath
import secrets
import shutil
import tempfile
import urllib.parse
from contextlib import suppress
from datetime import datetime
from typing import Dict, List, Optional, Union

from fsspec import AbstractFileSystem
from fsspec.utils import tokenize

from . import (
    DEFAULT_PORT,
    Client,
    ClientOptions,
    FileStatus,
    MakeDirOptions,
    OperationFailedError,
    ReadOptions,
    RemoveOptions,
    WriteOptions,
)


class WebHdfsFileWriter(io.RawIOBase):
    """
    Spools written bytes to a local temporary file and uploads them when closed, since
    WebHDFS needs the whole body in a single request.
    """

    def __init__(self, client: Client, path: str, write_options: WriteOptions):
        self.client = client
        self.path = path
        self.write_options = write_options
        self.spool = tempfile.TemporaryFile()

    def writable(self) -> bool:
        return True

    def write(self, buf) -> int:
        """Writes `buf` to the file. Always writes all bytes"""
        return self.spool.write(buf)

    def close(self) -> None:
        """Uploads the written content to `path`"""
        if self.closed:
            return
        try:
            self.spool.seek(0)
            self.client.write(self.spool, self.path, self.write_options)
        finally:
            self.spool.close()
            super().close()


class WebHdfsFileSystem(AbstractFileSystem):
    protocol = "whdfs"
    root_marker = "/"

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        *args,
        **storage_options,
    ):
        super().__init__(host, port, *args, **storage_options)
        if not host:
            raise ValueError("A WebHDFS gateway host is required")
        self.host = host
        self.port = port or DEFAULT_PORT
        self.client = Client(
            self.host,
            self.port,
            ClientOptions.from_config(storage_options),
        )

    @property
    def fsid(self):
        return f"webhdfs_client_{tokenize(self.protocol, self.host, self.port)}"

    @classmethod
    def _strip_protocol(cls, path: str) -> str:
        url = urllib.parse.urlparse(path)
        return url.path.rstrip("/") or cls.root_marker

    def unstrip_protocol(self, name: str) -> str:
        path = self._strip_protocol(name)
        return f"{self.protocol}://{self.host}:{self.port}{path}"

    @staticmethod
    def _get_kwargs_from_urls(path):
        url = urllib.parse.urlparse(path)
        return {"host": url.hostname, "port": url.port}

    def _convert_file_status(self, file_status: FileStatus, path: str) -> Dict:
        return {
            "name": path,
            "size": file_status.length,
            "type": "directory" if file_status.isdir else "file",
            "permission": int(file_status.permission or "0", 8),
            "owner": file_status.owner,
            "group": file_status.group,
            "modification_time": file_status.modification_time,
            "access_time": file_status.access_time,
            "replication": file_status.replication,
            "block_size": file_status.block_size,
        }

    def info(self, path, **_kwargs) -> Dict:
        path = self._strip_protocol(path)
        if path == self.root_marker:
            return {"name": path, "size": 0, "type": "directory"}

        name = posixpath.basename(path)
        for status in self.client.list_dir(posixpath.dirname(path)):
            if status.path_suffix == name:
                return self._convert_file_status(status, path)

        raise FileNotFoundError(path)

    def exists(self, path, **_kwargs):
        try:
            self.info(path)
            return True
        except FileNotFoundError:
            return False

    def ls(self, path: str, detail=True, **kwargs) -> List[Union[str, Dict]]:
        path = self._strip_protocol(path)
        listing = self.client.list_dir(path)

        if len(listing) == 1 and listing[0].path_suffix == "":
            entries = [self._convert_file_status(listing[0], path)]
        else:
            entries = [
                self._convert_file_status(status, posixpath.join(path, status.path_suffix))
                for status in listing
            ]

        if detail:
            return entries
        return [entry["name"] for entry in entries]

    def mkdir(self, path: str, create_parents=True, **kwargs):
        path = self._strip_protocol(path)
        parent = posixpath.dirname(path)
        if not create_parents and not self.exists(parent):
            raise FileNotFoundError(parent)

        self.client.make_dir(path, MakeDirOptions(permission=kwargs.get("permission")))

    def makedirs(self, path: str, exist_ok=False):
        path = self._strip_protocol(path)
        if not exist_ok and self.exists(path):
            raise FileExistsError("File or directory already exists")

        return self.mkdir(path, create_parents=True)

    def mv(self, path1: str, path2: str, **kwargs):
        self.client.rename(self._strip_protocol(path1), self._strip_protocol(path2))

    def cp_file(self, path1, path2, **kwargs):
        with self._open(self._strip_protocol(path1), "rb") as lstream:
            tmp_fname = f"{self._strip_protocol(path2)}.tmp.{secrets.token_hex(6)}"
            try:
                with self.open(tmp_fname, "wb") as rstream:
                    shutil.copyfileobj(lstream, rstream)
                self.mv(tmp_fname, path2)
            except BaseException:  # noqa
                with suppress(FileNotFoundError):
                    self.rm(tmp_fname)
                raise

    def rmdir(self, path: str) -> None:
        self.rm(path)

    def rm(self, path: str, recursive=False, maxdepth: Optional[int] = None) -> None:
        if maxdepth is not None:
            raise NotImplementedError("maxdepth is not supported")

        path = self._strip_protocol(path)
        try:
            self.client.remove(path, RemoveOptions(recursive=recursive))
        except OperationFailedError as e:
            raise FileNotFoundError(path) from e

    def rm_file(self, path: str):
        self.rm(self._strip_protocol(path))

    def modified(self, path: str):
        info = self.info(path)
        return datetime.fromtimestamp(info["modification_time"] / 1000)

    def cat_file(self, path, start=None, end=None, **kwargs):
        path = self._strip_protocol(path)
        start = start or 0
        if start < 0 or (end is not None and end < 0):
            size = self.size(path)
            if start < 0:
                start = max(0, size + start)
            if end is not None and end < 0:
                end = size + end

        length = None
        if end is not None:
            length = end - start
            if length <= 0:
                return b""

        sink = io.BytesIO()
        self.client.read(path, sink, ReadOptions(offset=start or None, length=length))
        return sink.getvalue()

    def _open(
        self,
        path: str,
        mode="rb",
        overwrite=True,
        replication: Optional[int] = None,
        block_size: Optional[int] = None,
        **_kwargs,
    ):
        path = self._strip_protocol(path)
        if mode == "rb":
            local = tempfile.TemporaryFile()
            try:
                self.client.read(path, local)
            except BaseException:
                local.close()
                raise
            local.seek(0)
            return local
        elif mode == "wb":
            write_options = WriteOptions(
                overwrite=overwrite,
                replication=replication,
                block_size=block_size,
            )
            return WebHdfsFileWriter(self.client, path, write_options)
        else:
            raise ValueError(f"Mode {mode} is not supported")
