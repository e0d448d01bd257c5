"""Object storage interface."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol


@dataclass(slots=True)
class UploadResult:
    object_key: str
    size: int
    file_url: str
    original_file: Path
    etag: Optional[str] = None
    request_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return bool(self.object_key)


@dataclass(slots=True)
class ObjectInfo:
    key: str
    size: int
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None


class ObjectStorage(Protocol):
    def upload_file(self, path: Path) -> UploadResult:
        ...

    def download_file(self, key: str, dest: Path) -> Path:
        ...

    def list_objects(self, prefix: Optional[str] = None, limit: Optional[int] = None) -> List[ObjectInfo]:
        ...

    def delete_object(self, key: str) -> bool:
        ...

    def delete_uploaded(self, result: Optional[UploadResult]) -> bool:
        ...

    def close(self) -> None:
        ...
