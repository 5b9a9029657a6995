# tests/test_aws_s3.py
"""
Tests for the probe engine.

- Uses fakes for the write/delete/read protocol.
- Uses moto to mock S3 for the live object store.
"""

from types import SimpleNamespace

import boto3
import pytest
import requests
from moto import mock_aws

from bucketscan.aws_s3 import (
    AnonymousReader,
    BucketProbe,
    S3ObjectStore,
    make_probe_key,
    public_object_url,
)
from config import PROBE_CONTENT, PROBE_KEY_PREFIX
from tests.fakes import FakeReader, FakeStore


def fixed_key():
    return "probe-key"


def test_write_failure_is_not_public_and_skips_read():
    store = FakeStore(deny_put={"locked"})
    reader = FakeReader(public={"locked"})
    probe = BucketProbe(store, reader, "eu-west-1", key_factory=fixed_key)

    assert probe.probe("locked") is False
    assert reader.urls == []
    assert store.deletes == []


def test_readable_object_is_public_and_deleted_once():
    store = FakeStore()
    reader = FakeReader(public={"open"})
    probe = BucketProbe(store, reader, "eu-west-1", key_factory=fixed_key)

    assert probe.probe("open") is True
    assert store.puts == [("open", "probe-key", PROBE_CONTENT)]
    assert store.deletes == [("open", "probe-key")]
    assert reader.urls == ["https://open.s3.eu-west-1.amazonaws.com/probe-key"]
    assert store.objects == set()


def test_unreadable_object_is_not_public_and_deleted_once():
    store = FakeStore()
    probe = BucketProbe(store, FakeReader(), "eu-west-1", key_factory=fixed_key)

    assert probe.probe("private") is False
    assert store.deletes == [("private", "probe-key")]


def test_read_check_crash_is_not_public_and_still_deletes(caplog):
    store = FakeStore()
    reader = FakeReader(error=RuntimeError("boom"))
    probe = BucketProbe(store, reader, "eu-west-1", key_factory=fixed_key)

    with caplog.at_level("WARNING"):
        assert probe.probe("flaky") is False
    assert any("read check of flaky failed" in r.getMessage() for r in caplog.records)
    assert store.deletes == [("flaky", "probe-key")]
    assert store.objects == set()


def test_delete_failure_is_logged_not_raised(caplog):
    store = FakeStore(deny_delete={"sticky"})
    probe = BucketProbe(store, FakeReader(public={"sticky"}), "eu-west-1", key_factory=fixed_key)

    with caplog.at_level("WARNING"):
        assert probe.probe("sticky") is True
    assert store.deletes == [("sticky", "probe-key")]
    assert any("unable to delete s3://sticky/probe-key" in r.getMessage() for r in caplog.records)


def test_probe_keys_are_fresh_per_invocation():
    first, second = make_probe_key(), make_probe_key()
    assert first.startswith(PROBE_KEY_PREFIX)
    assert first != second


@pytest.mark.parametrize("bucket,key,expected", [
    ("alpha", "k", "https://alpha.s3.eu-west-1.amazonaws.com/k"),
    ("my.dotted.bucket", "k", "https://s3.eu-west-1.amazonaws.com/my.dotted.bucket/k"),
    ("Legacy_Bucket", "k", "https://s3.eu-west-1.amazonaws.com/Legacy_Bucket/k"),
    ("alpha", "dir/a b+c", "https://alpha.s3.eu-west-1.amazonaws.com/dir/a%20b%2Bc"),
])
def test_public_object_url(bucket, key, expected):
    assert public_object_url(bucket, key, "eu-west-1") == expected


# --- Anonymous reader -----------------------------------------------------

class RecordingSession:
    """Replays responses in order; the last one repeats."""

    def __init__(self, *responses, error=None):
        self.responses = list(responses) or [200]
        self.error = error
        self.calls = []

    def head(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        status, headers = self.responses[min(len(self.calls), len(self.responses)) - 1], {}
        if isinstance(status, tuple):
            status, headers = status
        return SimpleNamespace(status_code=status, headers=headers)


def test_anonymous_reader_ok_status_is_readable():
    session = RecordingSession(200)
    reader = AnonymousReader(session=session, timeout=2.5)

    assert reader.is_readable("https://alpha.s3.eu-west-1.amazonaws.com/k") is True
    url, kwargs = session.calls[0]
    assert kwargs == {"timeout": 2.5, "allow_redirects": False}


@pytest.mark.parametrize("status", [301, 403, 404, 500])
def test_anonymous_reader_other_status_is_not_readable(status):
    reader = AnonymousReader(session=RecordingSession(status))
    assert reader.is_readable("https://alpha.s3.eu-west-1.amazonaws.com/k") is False


def test_anonymous_reader_transport_error_is_not_readable():
    reader = AnonymousReader(session=RecordingSession(error=requests.ConnectionError("dns")))
    assert reader.is_readable("https://nowhere.s3.eu-west-1.amazonaws.com/k") is False


def test_anonymous_reader_default_session_ignores_environment():
    reader = AnonymousReader()
    assert reader.session.trust_env is False
    assert reader.session.auth is None


# --- Live store (moto) ----------------------------------------------------

@mock_aws
def test_live_store_lists_buckets():
    s3 = boto3.client("s3", region_name="us-east-1")
    s3.create_bucket(Bucket="alpha")
    s3.create_bucket(Bucket="beta")

    assert sorted(S3ObjectStore(s3).list_buckets()) == ["alpha", "beta"]


@mock_aws
def test_live_probe_is_idempotent_and_leaves_no_object():
    s3 = boto3.client("s3", region_name="us-east-1")
    s3.create_bucket(Bucket="alpha")
    reader = FakeReader(public={"alpha"})
    probe = BucketProbe(S3ObjectStore(s3), reader, "us-east-1")

    assert probe.probe("alpha") is True
    assert probe.probe("alpha") is True
    assert s3.list_objects_v2(Bucket="alpha")["KeyCount"] == 0
    assert len(reader.urls) == 2
    assert reader.urls[0] != reader.urls[1]


@mock_aws
def test_live_probe_of_missing_bucket_is_not_public():
    s3 = boto3.client("s3", region_name="us-east-1")
    reader = FakeReader(public={"ghost"})
    probe = BucketProbe(S3ObjectStore(s3), reader, "us-east-1")

    assert probe.probe("ghost") is False
    assert reader.urls == []


def test_anonymous_reader_follows_bucket_home_region():
    session = RecordingSession((301, {"x-amz-bucket-region": "us-west-2"}), 200)
    reader = AnonymousReader(session=session)

    assert reader.is_readable("https://alpha.s3.eu-west-1.amazonaws.com/k") is True
    assert [url for url, _ in session.calls] == [
        "https://alpha.s3.eu-west-1.amazonaws.com/k",
        "https://alpha.s3.us-west-2.amazonaws.com/k",
    ]


def test_anonymous_reader_private_bucket_in_other_region():
    session = RecordingSession((301, {"x-amz-bucket-region": "us-west-2"}), 403)
    reader = AnonymousReader(session=session)

    assert reader.is_readable("https://s3.eu-west-1.amazonaws.com/my.bucket/k") is False
    assert session.calls[1][0] == "https://s3.us-west-2.amazonaws.com/my.bucket/k"
