import functools
import glob
import logging
import os
import stat
import sys
from argparse import ArgumentParser, Namespace
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlparse

from webhdfs_client import (
    Client,
    FileStatus,
    OperationFailedError,
    RemoveOptions,
    WriteOptions,
)
from webhdfs_client.options import (
    CONNECT_TIMEOUT_KEY,
    DATA_TRANSFER_TIMEOUT_KEY,
    USER_NAME_KEY,
)

__all__ = ["main"]

logger = logging.getLogger(__name__)

NAMENODE_ENV = "WEBHDFS_NAMENODE"


@functools.cache
def _get_client(connection_url: str, config: Tuple[Tuple[str, str], ...]) -> Client:
    return Client.from_url(connection_url, dict(config))


def _connection_url(url: str, args: Namespace) -> str:
    parsed = urlparse(url)

    if parsed.scheme:
        connection_url = f"{parsed.scheme}://{parsed.hostname}"
        if parsed.port:
            connection_url += f":{parsed.port}"
        return connection_url
    elif parsed.hostname or parsed.port:
        raise ValueError(
            f"Cannot provide host or port without scheme: {parsed.hostname}"
        )
    elif args.namenode:
        return args.namenode
    else:
        raise ValueError(
            f"No gateway for {url}, use a webhdfs:// URL, --namenode or {NAMENODE_ENV}"
        )


def _prefix_for_url(url: str) -> str:
    parsed = urlparse(url)

    if parsed.scheme:
        prefix = f"{parsed.scheme}://{parsed.hostname}"
        if parsed.port:
            prefix += f":{parsed.port}"
        return prefix

    return ""


def _client_for_url(url: str, args: Namespace) -> Client:
    return _get_client(_connection_url(url, args), args.config)


def _verify_nameservices_match(url: str, *urls: str) -> None:
    first = urlparse(url)

    for url in urls:
        parsed = urlparse(url)
        if first.scheme != parsed.scheme or first.netloc != parsed.netloc:
            raise ValueError(
                f"Protocol and host must match: {first.scheme}://{first.netloc} != {parsed.scheme}://{parsed.netloc}"
            )


def _path_for_url(url: str) -> str:
    return urlparse(url).path or "/"


def _glob_local_path(glob_pattern: str) -> List[str]:
    return glob.glob(glob_pattern)


def _is_single_file(listing: List[FileStatus]) -> bool:
    # Listing a file returns the file itself with an empty suffix
    return len(listing) == 1 and listing[0].path_suffix == "" and not listing[0].isdir


def _exists(client: Client, path: str) -> bool:
    try:
        client.list_dir(path)
        return True
    except FileNotFoundError:
        return False


def _is_dir(client: Client, path: str) -> bool:
    try:
        return not _is_single_file(client.list_dir(path))
    except FileNotFoundError:
        return False


def _download_file(
    client: Client,
    remote_src: str,
    local_dst: str,
    force: bool = False,
) -> None:
    if not force and os.path.exists(local_dst):
        raise FileExistsError(f"{local_dst} already exists, use --force to overwrite")

    logger.info("Copying %s to %s ...", remote_src, local_dst)
    with open(local_dst, "wb") as local_file:
        client.read(remote_src, local_file)


def _upload_file(
    client: Client,
    local_src: str,
    remote_dst: str,
    direct: bool = False,
    force: bool = False,
) -> None:
    if not force and _exists(client, remote_dst):
        raise FileExistsError(f"{remote_dst} already exists, use --force to overwrite")

    if direct:
        write_destination = remote_dst
    else:
        write_destination = f"{remote_dst}._COPYING_"

    logger.info("Copying %s to %s ...", local_src, remote_dst)
    with open(local_src, "rb") as local_file:
        client.write(local_file, write_destination, WriteOptions(overwrite=force))

    if not direct:
        if force and _exists(client, remote_dst):
            client.remove(remote_dst)
        client.rename(write_destination, remote_dst)


def _get_widths(parsed: List[Dict[str, Union[int, str]]]) -> Dict[str, int]:
    widths: Dict[str, int] = defaultdict(lambda: 0)

    for file in parsed:
        for key, value in file.items():
            if isinstance(value, str):
                widths[key] = max(widths[key], len(value))

    return widths


def _human_size(num: int):
    if num < 1024:
        return str(num)

    adjusted = num / 1024.0
    for unit in ("K", "M", "G", "T", "P", "E", "Z"):
        if abs(adjusted) < 1024.0:
            return f"{adjusted:.1f}{unit}"
        adjusted /= 1024.0
    return f"{adjusted:.1f}Y"


def cat(args: Namespace):
    for src in args.src:
        client = _client_for_url(src, args)
        client.read(_path_for_url(src), sys.stdout.buffer)

    sys.stdout.buffer.flush()


def get(args: Namespace):
    paths: List[Tuple[Client, str]] = []

    if len(args.src) > 1:
        srcs = args.src[:-1]
        dst = args.src[-1]
    else:
        srcs = args.src
        dst = os.getcwd()

    for url in srcs:
        paths.append((_client_for_url(url, args), _path_for_url(url)))

    dst_is_dir = os.path.isdir(dst)

    if len(paths) > 1 and not dst_is_dir:
        raise ValueError("Destination must be directory when copying multiple files")
    elif not dst_is_dir:
        _download_file(paths[0][0], paths[0][1], dst, force=args.force)
    else:
        for client, path in paths:
            filename = os.path.basename(path)
            _download_file(client, path, os.path.join(dst, filename), force=args.force)


def ls(args: Namespace):
    def parse_status(status: FileStatus, path: str) -> Dict[str, Union[int, str]]:
        file_time_string = datetime.fromtimestamp(
            status.modification_time / 1000
        ).strftime(r"%Y-%m-%d %H:%M")

        permission = int(status.permission or "0", 8)
        if status.isdir:
            permission |= stat.S_IFDIR
        else:
            permission |= stat.S_IFREG

        mode = stat.filemode(permission)

        if args.human_readable:
            length_string = _human_size(status.length)
        else:
            length_string = str(status.length)

        return {
            "mode": mode,
            "replication": str(status.replication) if status.replication else "-",
            "owner": status.owner,
            "group": status.group,
            "length": status.length,
            "length_formatted": length_string,
            "time": status.modification_time,
            "time_formatted": file_time_string,
            "path": path,
        }

    def print_files(
        parsed: List[Dict[str, Union[int, str]]],
        widths: Optional[Dict[str, int]] = None,
    ):
        if args.sort_time:
            parsed = sorted(parsed, key=lambda x: x["time"], reverse=not args.reverse)
        elif args.sort_size:
            parsed = sorted(parsed, key=lambda x: x["length"], reverse=not args.reverse)

        def format(
            file: Dict[str, Union[int, str]],
            field: str,
            right_align: bool = False,
        ):
            value = str(file[field])

            width = len(value)
            if widths and field in widths:
                width = widths[field]

            if right_align:
                return f"{value:>{width}}"
            return f"{value:{width}}"

        for file in parsed:
            if args.path_only:
                print(file["path"])
            else:
                formatted_fields = [
                    format(file, "mode"),
                    format(file, "replication"),
                    format(file, "owner"),
                    format(file, "group"),
                    format(file, "length_formatted", True),
                    format(file, "time_formatted"),
                    format(file, "path"),
                ]
                print(" ".join(formatted_fields))

    for url in args.path:
        client = _client_for_url(url, args)
        path = _path_for_url(url)
        prefix = _prefix_for_url(url)
        listing = client.list_dir(path)

        if _is_single_file(listing):
            print_files([parse_status(listing[0], prefix + path)])
        else:
            parsed = [
                parse_status(
                    status, prefix + os.path.join(path, status.path_suffix)
                )
                for status in listing
            ]

            if not args.path_only:
                print(f"Found {len(parsed)} items")

            print_files(parsed, _get_widths(parsed))


def mkdir(args: Namespace):
    for url in args.path:
        client = _client_for_url(url, args)
        client.make_dir(_path_for_url(url))


def mv(args: Namespace):
    _verify_nameservices_match(args.dst, *args.src)

    client = _client_for_url(args.dst, args)
    dst_path = _path_for_url(args.dst)

    if len(args.src) > 1 and not _is_dir(client, dst_path):
        raise ValueError(
            "destination must be a directory if multiple sources are provided"
        )

    for src in args.src:
        logger.info("Renaming %s to %s ...", src, args.dst)
        client.rename(_path_for_url(src), dst_path)


def put(args: Namespace):
    paths: List[str] = []

    for pattern in args.localsrc:
        for path in _glob_local_path(pattern):
            paths.append(path)

    if len(paths) == 0:
        raise FileNotFoundError("No files matched patterns")

    client = _client_for_url(args.dst, args)
    dst_path = _path_for_url(args.dst)

    dst_is_dir = _is_dir(client, dst_path)

    if len(paths) > 1 and not dst_is_dir:
        raise ValueError("Destination must be directory when copying multiple files")
    elif not dst_is_dir:
        _upload_file(
            client,
            paths[0],
            dst_path,
            direct=args.direct,
            force=args.force,
        )
    else:
        for path in paths:
            _upload_file(
                client,
                path,
                os.path.join(dst_path, os.path.basename(path)),
                direct=args.direct,
                force=args.force,
            )


def rm(args: Namespace):
    for url in args.src:
        client = _client_for_url(url, args)
        path = _path_for_url(url)
        logger.info("Removing %s ...", url)
        try:
            client.remove(path, RemoveOptions(recursive=args.recursive))
        except OperationFailedError as e:
            if not args.force:
                raise FileNotFoundError(f"Failed to delete {path}") from e


def _client_config(args: Namespace) -> Tuple[Tuple[str, str], ...]:
    config = {}
    if args.user:
        config[USER_NAME_KEY] = args.user
    if args.connect_timeout is not None:
        config[CONNECT_TIMEOUT_KEY] = str(args.connect_timeout)
    if args.timeout is not None:
        config[DATA_TRANSFER_TIMEOUT_KEY] = str(args.timeout)
    return tuple(sorted(config.items()))


def _configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )


def main(in_args: Optional[Sequence[str]] = None):
    parser = ArgumentParser(
        description="""Command line utility for interacting with HDFS through a WebHDFS gateway.
        Remote paths are webhdfs://host[:port]/path URLs, or plain paths resolved against
        --namenode. Globs are only supported for local paths."""
    )
    parser.add_argument(
        "--namenode",
        default=os.environ.get(NAMENODE_ENV),
        help=f"Gateway URL for paths without a scheme. Defaults to ${NAMENODE_ENV}",
    )
    parser.add_argument("-u", "--user", help="User name sent to the gateway")
    parser.add_argument(
        "--connect-timeout",
        type=float,
        help="Connection timeout in seconds",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Data transfer timeout in seconds",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress, repeat for debug output",
    )

    subparsers = parser.add_subparsers(title="Subcommands", required=True)

    cat_parser = subparsers.add_parser(
        "cat",
        help="Print the contents of a file",
        description="Print the contents of a file to stdout",
        add_help=False,
    )
    cat_parser.add_argument("src", nargs="+", help="Files to print")
    cat_parser.set_defaults(func=cat)

    get_parser = subparsers.add_parser(
        "get",
        aliases=["copyToLocal"],
        help="Copy files to a local destination",
        description="""Copy files to a local destination.
            When copying multiple files, the destination must be a directory""",
        add_help=False,
    )
    get_parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        default=False,
        help="Overwrite the destination if it already exists",
    )
    get_parser.add_argument(
        "src",
        nargs="+",
        help="Source files to copy",
    )
    get_parser.add_argument(
        "localdst",
        nargs="?",
        help="Local destination to write to. Defaults to current directory.",
    )
    get_parser.set_defaults(func=get)

    ls_parser = subparsers.add_parser(
        "ls",
        help="List the contents of directories",
        description="""List the contents of directories. For a file, show the file itself.""",
        add_help=False,
    )
    ls_parser.add_argument(
        "-C",
        "--path-only",
        action="store_true",
        default=False,
        help="Display the path of files and directories only.",
    )
    ls_parser.add_argument(
        "-h",
        "--human-readable",
        action="store_true",
        default=False,
        help="Formats the sizes of files in a human-readable fashion rather than a number of bytes",
    )
    ls_parser.add_argument(
        "-t",
        "--sort-time",
        action="store_true",
        default=False,
        help="Sort files by modification time (most recent first)",
    )
    ls_parser.add_argument(
        "-S",
        "--sort-size",
        action="store_true",
        default=False,
        help="Sort files by size (largest first)",
    )
    ls_parser.add_argument(
        "-r",
        "--reverse",
        action="store_true",
        default=False,
        help="Reverse the order of the sort",
    )
    ls_parser.add_argument("path", nargs="+", help="Path to display contents of")
    ls_parser.set_defaults(func=ls)

    mkdir_parser = subparsers.add_parser(
        "mkdir",
        help="Create a directory",
        description="Create a directory and any missing parents",
        add_help=False,
    )
    mkdir_parser.add_argument(
        "path",
        nargs="+",
        help="Path for the directory to create",
    )
    mkdir_parser.set_defaults(func=mkdir)

    mv_parser = subparsers.add_parser(
        "mv",
        help="Move files or directories",
        description="""Move a file or directory from <src> to <dst>. Must be on the same gateway.
        If multiple src are provided, dst must be a directory""",
        add_help=False,
    )
    mv_parser.add_argument("src", nargs="+", help="Files or directories to move")
    mv_parser.add_argument("dst", help="Target destination of file or directory")
    mv_parser.set_defaults(func=mv)

    put_parser = subparsers.add_parser(
        "put",
        aliases=["copyFromLocal"],
        help="Copy local files to a remote destination",
        description="""Copy files matching a pattern to a remote destination.
            When copying multiple files, the destination must be a directory""",
        add_help=False,
    )
    put_parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        default=False,
        help="Overwrite the destination if it already exists",
    )
    put_parser.add_argument(
        "-d",
        "--direct",
        action="store_true",
        default=False,
        help="Skip creation of temporary file (<dst>._COPYING_) and write directly to file",
    )
    put_parser.add_argument(
        "localsrc",
        nargs="+",
        help="Source patterns to copy",
    )
    put_parser.add_argument(
        "dst",
        help="Remote destination to write to",
    )
    put_parser.set_defaults(func=put)

    rm_parser = subparsers.add_parser(
        "rm",
        help="Delete files",
        description="Delete the specified files and directories",
        add_help=False,
    )
    rm_parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        default=False,
        help="Ignore if the file does not exist",
    )
    rm_parser.add_argument(
        "-r",
        "-R",
        "--recursive",
        action="store_true",
        default=False,
        help="Recursively delete directories",
    )
    rm_parser.add_argument(
        "src",
        nargs="+",
        help="Files to delete",
    )
    rm_parser.set_defaults(func=rm)

    def show_help(args: Namespace):
        subparsers.choices[args.cmd].print_help()

    subparser_keys = list(subparsers.choices.keys())

    help_parser = subparsers.add_parser(
        "help",
        help="Display usage of a subcommand",
        description="Display usage of a subcommand",
    )
    help_parser.add_argument(
        "cmd",
        choices=subparser_keys,
        help="Command to show usage for",
    )
    help_parser.set_defaults(func=show_help)

    args = parser.parse_args(in_args)
    _configure_logging(args.verbose)
    args.config = _client_config(args)
    args.func(args)


if __name__ == "__main__":
    main()
