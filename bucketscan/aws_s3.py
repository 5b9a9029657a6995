# bucketscan/aws_s3.py
"""
S3 probe logic.

- S3ObjectStore wraps an authenticated boto3 S3 client (list, put, delete).
- AnonymousReader issues credential-free HEAD requests with requests.
- BucketProbe writes a throwaway object, checks it can be read anonymously,
  and always deletes it again.

A write failure is a negative verdict, not an error: without a known object
there is nothing to verify.

The anonymous check targets the run region's endpoint and follows one 301
to the bucket's home region when S3 names it; any other redirect, and a
301 without the region header, count as not public.
"""

import logging
import re
import uuid
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Protocol
from urllib.parse import quote

import requests
from botocore.exceptions import BotoCoreError, ClientError

from config import DEFAULT_HTTP_TIMEOUT, PROBE_CONTENT, PROBE_KEY_PREFIX

logger = logging.getLogger(__name__)

AWS_ERRORS = (ClientError, BotoCoreError)

# Lowercase labels without dots can be addressed virtual-hosted style over TLS
_VIRTUAL_HOST_NAME = re.compile(r"^[a-z0-9][a-z0-9-]{1,61}[a-z0-9]$")
_REGIONAL_HOST = re.compile(r"s3\.[a-z0-9-]+\.amazonaws\.com")


class ObjectStore(Protocol):
    def list_buckets(self) -> List[str]: ...

    def put_object(self, bucket: str, key: str, content: bytes) -> None: ...

    def delete_object(self, bucket: str, key: str) -> None: ...


class PublicReader(Protocol):
    def is_readable(self, url: str) -> bool: ...


# --- Live AWS helpers -----------------------------------------------------

class S3ObjectStore:
    """
    Authenticated object store backed by a boto3 S3 client.
    Errors propagate as botocore exceptions; callers decide what is fatal.
    """

    def __init__(self, client):
        self.client = client

    def list_buckets(self) -> List[str]:
        resp = self.client.list_buckets()
        return [b["Name"] for b in resp.get("Buckets", [])]

    def put_object(self, bucket: str, key: str, content: bytes) -> None:
        self.client.put_object(Bucket=bucket, Key=key, Body=content)

    def delete_object(self, bucket: str, key: str) -> None:
        self.client.delete_object(Bucket=bucket, Key=key)


class AnonymousReader:
    """
    Checks object readability with a bare HTTP HEAD.

    The session never picks up credentials: no auth is attached and
    trust_env is off so ~/.netrc is not consulted.
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_HTTP_TIMEOUT):
        if session is None:
            session = requests.Session()
            session.trust_env = False
        self.session = session
        self.timeout = timeout

    def is_readable(self, url: str) -> bool:
        resp = self._head(url)
        if resp is None:
            return False
        # list_buckets is account-wide; a bucket in another region answers
        # 301 and names its home region in x-amz-bucket-region
        home_region = resp.headers.get("x-amz-bucket-region")
        if resp.status_code == requests.codes.moved_permanently and home_region:
            resp = self._head(with_region(url, home_region))
            if resp is None:
                return False
        return resp.status_code == requests.codes.ok

    def _head(self, url: str):
        try:
            return self.session.head(url, timeout=self.timeout, allow_redirects=False)
        except requests.RequestException as err:
            logger.debug("anonymous HEAD %s failed: %s", url, err)
            return None


def with_region(url: str, region: str) -> str:
    """Point an S3 regional endpoint URL at another region."""
    return _REGIONAL_HOST.sub(f"s3.{region}.amazonaws.com", url, count=1)


def public_object_url(bucket: str, key: str, region: str) -> str:
    """
    Return the unauthenticated URL of s3://bucket/key.

    Virtual-hosted style when the bucket name is a single DNS label,
    path style otherwise (dotted names break the wildcard certificate).
    """
    escaped_key = quote(key, safe="/")
    if _VIRTUAL_HOST_NAME.match(bucket):
        return f"https://{bucket}.s3.{region}.amazonaws.com/{escaped_key}"
    return f"https://s3.{region}.amazonaws.com/{quote(bucket, safe='')}/{escaped_key}"


def make_probe_key() -> str:
    return f"{PROBE_KEY_PREFIX}{uuid.uuid4().hex}"


@contextmanager
def temporary_object(store: ObjectStore, bucket: str, key: str, content: bytes) -> Iterator[str]:
    """
    Write an object and delete it on exit.
    The put is outside the try block: a failed write has nothing to clean up.
    """
    store.put_object(bucket, key, content)
    try:
        yield key
    finally:
        try:
            store.delete_object(bucket, key)
        except AWS_ERRORS as err:
            logger.warning("unable to delete s3://%s/%s: %s", bucket, key, err)


# --- Probe engine ---------------------------------------------------------

class BucketProbe:
    """
    Empirical public-read test for one bucket at a time.

    Catches only buckets whose policy grants anonymous read of newly written
    objects; empty public buckets and object-level overrides are invisible here.
    """

    def __init__(self, store: ObjectStore, reader: PublicReader, region: str,
                 key_factory: Callable[[], str] = make_probe_key,
                 content: bytes = PROBE_CONTENT):
        self.store = store
        self.reader = reader
        self.region = region
        self.key_factory = key_factory
        self.content = content

    def probe(self, bucket: str) -> bool:
        key = self.key_factory()
        try:
            with temporary_object(self.store, bucket, key, self.content):
                return self.reader.is_readable(public_object_url(bucket, key, self.region))
        except AWS_ERRORS as err:
            # only the put can raise these here; delete errors are logged inside
            logger.debug("unable to write to %s: %s", bucket, err)
            return False
        except Exception:
            # the object is already deleted by the time we get here
            logger.warning("anonymous read check of %s failed; treating as not public", bucket, exc_info=True)
            return False
