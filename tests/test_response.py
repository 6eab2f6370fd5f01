import json

import pytest

from webhdfs_client.errors import ResponseParseError
from webhdfs_client.response import (
    FileStatus,
    FileType,
    RemoteExceptionInfo,
    is_boolean_true,
    parse_listing,
    try_parse_remote_exception,
)

LISTING = {
    "FileStatuses": {
        "FileStatus": [
            {
                "accessTime": 1320171722771,
                "blockSize": 33554432,
                "group": "supergroup",
                "length": 24930,
                "modificationTime": 1320171722771,
                "owner": "webuser",
                "pathSuffix": "a.patch",
                "permission": "644",
                "replication": 1,
                "type": "FILE",
            },
            {
                "accessTime": 0,
                "blockSize": 0,
                "group": "supergroup",
                "length": 0,
                "modificationTime": 1320895981256,
                "owner": "szetszwo",
                "pathSuffix": "bar",
                "permission": "711",
                "replication": 0,
                "type": "DIRECTORY",
            },
        ]
    }
}


def test_remote_exception():
    body = (
        b'{"RemoteException":{"exception":"AccessControlException",'
        b'"javaClassName":"org.apache.hadoop.security.AccessControlException",'
        b'"message":"Permission denied"}}'
    )
    assert try_parse_remote_exception(body) == RemoteExceptionInfo(
        "AccessControlException", "Permission denied"
    )


def test_remote_exception_defaults():
    assert try_parse_remote_exception(b'{"RemoteException":{}}') == RemoteExceptionInfo(
        "Unknown", ""
    )


@pytest.mark.parametrize(
    "body",
    [b"", b"not json", b"<html>502 Bad Gateway</html>", b'{"boolean":false}', b"[1, 2]"],
)
def test_not_a_remote_exception(body: bytes):
    assert try_parse_remote_exception(body) is None


def test_parse_listing():
    statuses = parse_listing(json.dumps(LISTING).encode())

    assert statuses == [
        FileStatus(
            access_time=1320171722771,
            block_size=33554432,
            group="supergroup",
            length=24930,
            modification_time=1320171722771,
            owner="webuser",
            path_suffix="a.patch",
            permission="644",
            replication=1,
            type=FileType.FILE,
        ),
        FileStatus(
            access_time=0,
            block_size=0,
            group="supergroup",
            length=0,
            modification_time=1320895981256,
            owner="szetszwo",
            path_suffix="bar",
            permission="711",
            replication=0,
            type=FileType.DIRECTORY,
        ),
    ]
    assert not statuses[0].isdir
    assert statuses[1].isdir


def test_parse_empty_listing():
    assert parse_listing(b'{"FileStatuses":{"FileStatus":[]}}') == []


@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"not json",
        b'{"boolean":true}',
        b'{"FileStatuses":{}}',
        b'{"FileStatuses":{"FileStatus":{"pathSuffix":"x"}}}',
        b'{"FileStatuses":{"FileStatus":["x"]}}',
    ],
)
def test_parse_listing_errors(body: bytes):
    with pytest.raises(ResponseParseError):
        parse_listing(body)


def test_is_boolean_true():
    assert is_boolean_true(b'{"boolean":true}')
    assert not is_boolean_true(b'{"boolean":false}')
    assert not is_boolean_true(b'{"boolean": true}')
    assert not is_boolean_true(b'{"boolean":true,"extra":1}')
    assert not is_boolean_true(b"")
