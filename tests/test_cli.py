import contextlib
import io
import os
import re
from tempfile import TemporaryDirectory
from typing import Callable, List, Literal, overload

import pytest

from webhdfs_client import Client, MakeDirOptions
from webhdfs_client.cli import main as cli_main

from .minidfs import MiniWebHdfs


@pytest.fixture(autouse=True)
def namenode(minidfs: MiniWebHdfs, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("WEBHDFS_NAMENODE", minidfs.get_url())


def read_remote(client: Client, path: str) -> bytes:
    sink = io.BytesIO()
    client.read(path, sink)
    return sink.getvalue()


def names(client: Client, path: str) -> List[str]:
    return [status.path_suffix for status in client.list_dir(path)]


@overload
def capture_stdout(func: Callable[[], None], text: Literal[False]) -> bytes: ...


@overload
def capture_stdout(func: Callable[[], None], text: Literal[True] = True) -> str: ...


def capture_stdout(func: Callable[[], None], text: bool = True):
    buf = io.BytesIO()
    with contextlib.redirect_stdout(io.TextIOWrapper(buf)) as wrapper:
        func()
        if text:
            wrapper.seek(0)
            return wrapper.read()
        else:
            return buf.getvalue()


def test_cat(client: Client, minidfs: MiniWebHdfs):
    client.write(b"1234", "/testfile")

    output = capture_stdout(lambda: cli_main(["cat", "/testfile"]), False)
    assert output == b"1234"

    client.write(b"5678", "/testfile2")

    output = capture_stdout(lambda: cli_main(["cat", "/testfile", "/testfile2"]), False)
    assert output == b"12345678"

    url = f"{minidfs.get_url()}/testfile2"
    output = capture_stdout(lambda: cli_main(["cat", url]), False)
    assert output == b"5678"

    with pytest.raises(FileNotFoundError):
        cli_main(["cat", "/nonexistent"])


def test_no_gateway(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("WEBHDFS_NAMENODE")

    with pytest.raises(ValueError):
        cli_main(["cat", "/testfile"])

    with pytest.raises(ValueError):
        cli_main(["cat", "//host:1234/testfile"])


def test_get(client: Client, monkeypatch: pytest.MonkeyPatch):
    data = b"0123456789"

    with TemporaryDirectory() as tmp_dir:
        with pytest.raises(FileNotFoundError):
            cli_main(["get", "/testfile", os.path.join(tmp_dir, "testfile")])

    client.write(data, "/testfile")

    with TemporaryDirectory() as tmp_dir:
        cli_main(["get", "/testfile", os.path.join(tmp_dir, "localfile")])
        with open(os.path.join(tmp_dir, "localfile"), "rb") as file:
            assert file.read() == data

        cli_main(["get", "/testfile", tmp_dir])
        with open(os.path.join(tmp_dir, "testfile"), "rb") as file:
            assert file.read() == data

        os.remove(os.path.join(tmp_dir, "testfile"))

        with monkeypatch.context() as m:
            m.chdir(tmp_dir)
            cli_main(["get", "/testfile"])

        with open(os.path.join(tmp_dir, "testfile"), "rb") as file:
            assert file.read() == data

        with pytest.raises(FileExistsError):
            cli_main(["get", "/testfile", tmp_dir])

        cli_main(["copyToLocal", "-f", "/testfile", tmp_dir])

    client.write(data, "/testfile2")

    with pytest.raises(ValueError):
        cli_main(["get", "/testfile", "/testfile2", "notadir"])

    with TemporaryDirectory() as tmp_dir:
        cli_main(["get", "/testfile", "/testfile2", tmp_dir])

        with open(os.path.join(tmp_dir, "testfile"), "rb") as file:
            assert file.read() == data

        with open(os.path.join(tmp_dir, "testfile2"), "rb") as file:
            assert file.read() == data


def test_put(client: Client):
    data = b"0123456789"

    with pytest.raises(FileNotFoundError):
        cli_main(["put", "testfile", "/testfile"])

    with TemporaryDirectory() as tmp_dir:
        with open(os.path.join(tmp_dir, "testfile"), "wb") as file:
            file.write(data)

        cli_main(["put", os.path.join(tmp_dir, "testfile"), "/remotefile"])
        assert read_remote(client, "/remotefile") == data
        assert names(client, "/") == ["remotefile"]

        with pytest.raises(FileExistsError):
            cli_main(["put", os.path.join(tmp_dir, "testfile"), "/remotefile"])

        with open(os.path.join(tmp_dir, "testfile"), "wb") as file:
            file.write(b"new data")

        cli_main(["put", "-f", os.path.join(tmp_dir, "testfile"), "/remotefile"])
        assert read_remote(client, "/remotefile") == b"new data"
        assert names(client, "/") == ["remotefile"]

        cli_main(["copyFromLocal", "-d", os.path.join(tmp_dir, "testfile"), "/direct"])
        assert read_remote(client, "/direct") == b"new data"

        with open(os.path.join(tmp_dir, "testfile2"), "wb") as file:
            file.write(data)

        with pytest.raises(ValueError):
            cli_main(["put", os.path.join(tmp_dir, "testfile*"), "/notadir"])

        client.make_dir("/testdir")
        cli_main(["put", os.path.join(tmp_dir, "testfile*"), "/testdir"])
        assert names(client, "/testdir") == ["testfile", "testfile2"]
        assert read_remote(client, "/testdir/testfile2") == data


def test_ls(client: Client):
    with pytest.raises(FileNotFoundError):
        cli_main(["ls", "/fake"])

    client.write(bytes(range(10)), "/testfile1")
    client.make_dir("/testdir", MakeDirOptions(permission=0o750))

    output = capture_stdout(lambda: cli_main(["ls", "/"])).strip().split("\n")
    assert output[0] == "Found 2 items"

    match = re.match(r"(\S+)\s+(\S+)\s+(\S+)\s+(\S+)\s+(\d+)\s+\S+\s+\S+\s+(\S+)", output[1])
    assert match is not None
    assert match.group(1) == "drwxr-x---"
    assert match.group(2) == "-"
    assert match.group(3) == "testuser"
    assert match.group(4) == "supergroup"
    assert match.group(5) == "0"
    assert match.group(6) == "/testdir"

    match = re.match(r"(\S+)\s+(\S+)\s+\S+\s+\S+\s+(\d+)\s+\S+\s+\S+\s+(\S+)", output[2])
    assert match is not None
    assert match.group(1) == "-rw-r--r--"
    assert match.group(2) == "3"
    assert match.group(3) == "10"
    assert match.group(4) == "/testfile1"

    output = capture_stdout(lambda: cli_main(["ls", "-C", "/"]))
    assert output.strip().split("\n") == ["/testdir", "/testfile1"]

    output = capture_stdout(lambda: cli_main(["ls", "-C", "-S", "/"]))
    assert output.strip().split("\n") == ["/testfile1", "/testdir"]

    output = capture_stdout(lambda: cli_main(["ls", "-C", "/testfile1"]))
    assert output.strip() == "/testfile1"

    output = capture_stdout(lambda: cli_main(["ls", "-C", "/testdir"]))
    assert output.strip() == ""


def test_mkdir(client: Client):
    cli_main(["mkdir", "/testdir", "/testdir2/nested"])
    assert names(client, "/") == ["testdir", "testdir2"]
    assert names(client, "/testdir2") == ["nested"]

    client.write(b"", "/testfile")
    with pytest.raises(Exception):
        cli_main(["mkdir", "/testfile"])


def test_mv(client: Client, minidfs: MiniWebHdfs):
    client.write(b"", "/testfile")
    client.make_dir("/testdir")

    cli_main(["mv", "/testfile", "/testfile2"])
    assert names(client, "/") == ["testdir", "testfile2"]

    cli_main(["mv", "/testfile2", "/testdir"])
    assert names(client, "/testdir") == ["testfile2"]

    client.write(b"", "/testfile3")
    client.write(b"", "/testfile4")

    with pytest.raises(ValueError):
        cli_main(["mv", "/testfile3", "/testfile4", "/notadir"])

    cli_main(["mv", "/testfile3", "/testfile4", "/testdir"])
    assert names(client, "/testdir") == ["testfile2", "testfile3", "testfile4"]

    with pytest.raises(ValueError):
        cli_main(["mv", "/testdir", f"{minidfs.get_url()}/testdir2"])


def test_rm(client: Client):
    with pytest.raises(FileNotFoundError):
        cli_main(["rm", "/testfile"])

    cli_main(["rm", "-f", "/testfile"])

    client.write(b"", "/testfile")
    cli_main(["rm", "/testfile"])
    assert names(client, "/") == []

    client.make_dir("/testdir")
    client.write(b"", "/testdir/testfile")

    with pytest.raises(Exception):
        cli_main(["rm", "/testdir"])

    cli_main(["rm", "-r", "/testdir"])
    assert names(client, "/") == []


def test_help():
    output = capture_stdout(lambda: cli_main(["help", "ls"]))
    assert "List the contents of directories" in output
