# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Object stores that artifacts can be published to.

Keys are plain relative paths like 'linux/proj-ubuntu-skylake-safe-1.2.3.bz2'.
A store puts one local file under one key and overwrites whatever is there,
which is what makes re-publishing a tag idempotent.

  S3ObjectStore     — AWS S3 through boto3. Credentials come from boto3's
                      standard chain; bucket and region fall back to
                      AWS_S3_BUCKET and AWS_REGION.
  LocalObjectStore  — mirrors keys into a local directory. Used for staging
                      and for dry runs of the publish step.
"""

import os
import shutil
from pathlib import Path
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from binforge.config.schema import StorageConfig
from binforge.exceptions import PublishError


class ObjectStore(Protocol):
    def put_file(self, key: str, local_path: Path) -> str:
        """Upload `local_path` under `key` and return the resulting URI."""
        raise NotImplementedError


def normalize_key(key: str) -> str:
    k = str(key or "").strip().lstrip("/")
    if not k:
        raise PublishError("Object key must be non-empty")
    if any(part == ".." for part in k.split("/")):
        raise PublishError(f"Object key must not contain '..': {key}")
    return k


def normalize_prefix(prefix: str) -> str:
    p = str(prefix or "").strip().strip("/")
    return p + "/" if p else ""


class S3ObjectStore:
    """ObjectStore backed by AWS S3."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: str | None = None,
        public_read: bool = True,
        client: Any = None,
    ) -> None:
        self.bucket = bucket
        self.prefix = normalize_prefix(prefix)
        self.public_read = public_read
        if client is None:
            client = boto3.client("s3", region_name=region) if region else boto3.client("s3")
        self._client = client

    def put_file(self, key: str, local_path: Path) -> str:
        k = self.prefix + normalize_key(key)
        if not local_path.is_file():
            raise PublishError(f"Local file not found for upload: {local_path}")

        extra: dict[str, str] = {}
        if self.public_read:
            extra["ACL"] = "public-read"

        try:
            if extra:
                self._client.upload_file(str(local_path), self.bucket, k, ExtraArgs=extra)
            else:
                self._client.upload_file(str(local_path), self.bucket, k)
        except (ClientError, BotoCoreError) as err:
            raise PublishError(f"S3 upload failed: s3://{self.bucket}/{k} ({err})") from err

        return f"s3://{self.bucket}/{k}"


class LocalObjectStore:
    """
    ObjectStore for the local filesystem.

    Keys are treated as relative paths under base_dir. Returned URIs are
    file:// absolute URIs.
    """

    def __init__(self, base_dir: Path, prefix: str = "") -> None:
        self.base_dir = base_dir
        self.prefix = normalize_prefix(prefix)

    def put_file(self, key: str, local_path: Path) -> str:
        if not local_path.is_file():
            raise PublishError(f"Local file not found for upload: {local_path}")
        dest = (self.base_dir / (self.prefix + normalize_key(key))).resolve()
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(str(local_path), str(dest))
        except OSError as err:
            raise PublishError(f"Copy to {dest} failed: {err}") from err
        return dest.as_uri()


def build_store(config: StorageConfig) -> ObjectStore:
    """
    Build the store described by the storage config.

    Raises:
        PublishError: If the s3 backend has no bucket configured anywhere.
    """
    if config.backend == "local":
        return LocalObjectStore(Path(str(config.local_root)), prefix=config.prefix)

    bucket = (config.bucket or os.environ.get("AWS_S3_BUCKET", "")).strip()
    if not bucket:
        raise PublishError("S3 bucket missing. Set release.storage.bucket or AWS_S3_BUCKET.")
    region = (config.region or os.environ.get("AWS_REGION", "")).strip() or None
    return S3ObjectStore(
        bucket=bucket,
        prefix=config.prefix,
        region=region,
        public_read=config.public_read,
    )
