"""Alibaba Cloud OSS storage client."""
from __future__ import annotations

import itertools
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

import oss2
from oss2.exceptions import OssError, RequestError

from ..config.model import StorageConfig
from ..core.retry import RetryPolicy
from ..logging import get_logger
from .base import ObjectInfo, ObjectStorage, UploadResult
from .errors import StorageConfigError, StorageTransferError

logger = get_logger(__name__)

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


class OssStorageClient(ObjectStorage):
    """Upload, download, list and delete objects in one OSS bucket.

    A prebuilt ``bucket`` may be injected; otherwise one is created from the
    configuration.
    """

    def __init__(
        self,
        config: StorageConfig,
        bucket: Any = None,
        retry: Optional[RetryPolicy] = None,
    ) -> None:
        self.config = config
        self._session: Any = None
        self._retry = retry or RetryPolicy(max_attempts=config.max_retries)
        if bucket is None:
            bucket = self._build_bucket(config)
        self._bucket = bucket

    def _build_bucket(self, config: StorageConfig) -> Any:
        if not config.has_credentials:
            raise StorageConfigError("OSS access key id or access key secret is not configured")
        if not config.endpoint.strip():
            raise StorageConfigError("OSS endpoint is not configured")

        auth = oss2.Auth(config.access_key_id, config.access_key_secret)
        self._session = oss2.Session(pool_size=config.max_connections)
        bucket = oss2.Bucket(
            auth,
            self.endpoint_url,
            config.bucket_name,
            session=self._session,
            connect_timeout=max(config.connection_timeout, config.socket_timeout) / 1000.0,
        )
        logger.debug("OSS client ready (endpoint=%s, bucket=%s)", self.endpoint_url, config.bucket_name)
        return bucket

    @property
    def endpoint_host(self) -> str:
        return _SCHEME_RE.sub("", self.config.endpoint.strip()).rstrip("/")

    @property
    def endpoint_url(self) -> str:
        scheme = "https" if self.config.use_https else "http"
        return f"{scheme}://{self.endpoint_host}"

    def _require_bucket_name(self) -> str:
        name = self.config.bucket_name.strip()
        if not name:
            raise StorageConfigError("OSS bucket name is not configured")
        return name

    def generate_object_key(
        self,
        path: Path,
        now: Optional[datetime] = None,
        token: Optional[str] = None,
    ) -> str:
        """``<prefix>/<yyyy>/<MM>/<uuid>_<file name>``."""
        prefix = self.config.object_key_prefix.strip()
        if prefix and not prefix.endswith("/"):
            prefix += "/"
        date_path = (now or datetime.now()).strftime("%Y/%m")
        return f"{prefix}{date_path}/{token or uuid.uuid4()}_{Path(path).name}"

    def build_file_url(self, object_key: str) -> str:
        if self.config.url_mode == "signed":
            return self._bucket.sign_url("GET", object_key, self.config.url_expires)
        scheme = "https" if self.config.use_https else "http"
        return f"{scheme}://{self.config.bucket_name}.{self.endpoint_host}/{object_key}"

    def upload_file(self, path: Path) -> UploadResult:
        if path is None or not Path(path).is_file():
            raise ValueError(f"File does not exist or is not a regular file: {path}")
        path = Path(path)
        bucket_name = self._require_bucket_name()
        object_key = self.generate_object_key(path)
        size = path.stat().st_size
        logger.debug("Uploading %s (%d bytes) to oss://%s/%s", path, size, bucket_name, object_key)

        def attempt() -> Any:
            if size >= self.config.multipart_threshold:
                return oss2.resumable_upload(
                    self._bucket,
                    object_key,
                    str(path),
                    multipart_threshold=self.config.multipart_threshold,
                    part_size=self.config.part_size,
                    num_threads=self.config.upload_threads,
                )
            return self._bucket.put_object_from_file(object_key, str(path))

        try:
            result = self._retry.call(attempt, retry_on=(RequestError,), operation_name=f"OSS upload {path.name}")
        except OssError as exc:
            raise StorageTransferError(f"OSS upload failed for {path}: {exc}") from exc

        logger.info("Uploaded %s to oss://%s/%s", path.name, bucket_name, object_key)
        return UploadResult(
            object_key=object_key,
            size=size,
            file_url=self.build_file_url(object_key),
            original_file=path,
            etag=getattr(result, "etag", None),
            request_id=getattr(result, "request_id", None),
        )

    def download_file(self, key: str, dest: Path) -> Path:
        self._require_bucket_name()
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._retry.call(
                lambda: self._bucket.get_object_to_file(key, str(dest)),
                retry_on=(RequestError,),
                operation_name=f"OSS download {key}",
            )
        except OssError as exc:
            raise StorageTransferError(f"OSS download failed for {key}: {exc}") from exc
        logger.info("Downloaded oss object %s to %s", key, dest)
        return dest

    def list_objects(self, prefix: Optional[str] = None, limit: Optional[int] = None) -> List[ObjectInfo]:
        self._require_bucket_name()
        prefix = self.config.object_key_prefix if prefix is None else prefix
        try:
            iterator = oss2.ObjectIterator(self._bucket, prefix=prefix)
            infos = [
                ObjectInfo(
                    key=obj.key,
                    size=int(getattr(obj, "size", 0) or 0),
                    last_modified=_to_datetime(getattr(obj, "last_modified", None)),
                    etag=getattr(obj, "etag", None),
                )
                for obj in itertools.islice(iterator, limit)
            ]
        except OssError as exc:
            raise StorageTransferError(f"OSS listing failed for prefix {prefix!r}: {exc}") from exc
        return infos

    def delete_object(self, key: str) -> bool:
        if not key or not key.strip():
            logger.debug("Empty OSS object key, nothing to delete")
            return False
        if not self.config.bucket_name.strip():
            logger.error("OSS bucket name is not configured, cannot delete %s", key)
            return False
        try:
            self._bucket.delete_object(key)
        except OssError as exc:
            logger.error("Failed to delete OSS object %s: %s", key, exc)
            return False
        logger.debug("Deleted OSS object %s", key)
        return True

    def delete_uploaded(self, result: Optional[UploadResult]) -> bool:
        if result is None or not result.succeeded:
            logger.debug("No uploaded object to delete")
            return False
        return self.delete_object(result.object_key)

    def close(self) -> None:
        if self._session is not None:
            self._session.session.close()
            self._session = None
            logger.debug("OSS client closed")

    def __enter__(self) -> "OssStorageClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None
