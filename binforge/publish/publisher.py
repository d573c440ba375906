# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Publisher — uploads one platform's successful artifacts.

Only Success outcomes are published. For each artifact both files go up:

    <destination>/<project>-<platform>-<cpu>[-<features>]-<version>.bz2
    <destination>/<project>-<platform>-<cpu>[-<features>]-<version>.bz2.sha256

Uploads are best-effort, not all-or-nothing: a failed upload is recorded and
the next one is attempted anyway. Nothing already uploaded is rolled back.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from binforge.exceptions import PublishError
from binforge.logging.logger import get_logger
from binforge.pipeline.platform import PlatformResult
from binforge.publish.stores import ObjectStore

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class UploadOutcome:
    key: str
    local_path: Path
    uri: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class PublishResult:
    platform: str
    destination: str
    uploads: list[UploadOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(upload.succeeded for upload in self.uploads)

    @property
    def failed_uploads(self) -> list[UploadOutcome]:
        return [upload for upload in self.uploads if not upload.succeeded]


def destination_key(destination: str, filename: str) -> str:
    return f"{destination.strip('/')}/{filename}"


class Publisher:
    """Uploads PlatformResults through an ObjectStore."""

    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    def publish(self, result: PlatformResult, destination: str) -> PublishResult:
        """
        Upload every successful artifact of a platform to `destination`.

        Never raises for a failed upload; check PublishResult.ok instead.
        """
        uploads: list[UploadOutcome] = []

        for artifact in result.artifacts:
            for local_path in (artifact.path, artifact.checksum_path):
                uploads.append(self._upload_one(result.platform, destination, local_path))

        publish_result = PublishResult(
            platform=result.platform,
            destination=destination,
            uploads=uploads,
        )

        if publish_result.ok:
            _logger.info(
                "Platform published",
                extra={
                    "platform": result.platform,
                    "destination": destination,
                    "uploaded": len(uploads),
                },
            )
        else:
            _logger.error(
                "Platform published with failures",
                extra={
                    "platform": result.platform,
                    "destination": destination,
                    "uploaded": len(uploads) - len(publish_result.failed_uploads),
                    "failed": [u.key for u in publish_result.failed_uploads],
                },
            )
        return publish_result

    def _upload_one(self, platform: str, destination: str, local_path: Path) -> UploadOutcome:
        key = destination_key(destination, local_path.name)
        try:
            uri = self._store.put_file(key, local_path)
        except PublishError as err:
            _logger.error(
                "Upload failed",
                extra={"platform": platform, "key": key, "error": str(err)},
            )
            return UploadOutcome(key=key, local_path=local_path, error=str(err))
        except Exception as err:
            _logger.error(
                "Upload crashed",
                extra={"platform": platform, "key": key, "error": str(err)},
                exc_info=True,
            )
            return UploadOutcome(key=key, local_path=local_path, error=f"unexpected error: {err}")

        _logger.debug("Uploaded", extra={"platform": platform, "key": key, "uri": uri})
        return UploadOutcome(key=key, local_path=local_path, uri=uri)
