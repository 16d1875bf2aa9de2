"""
Gallery collaborators: asset enumeration, byte access, deletion and storage
usage. LocalGallery implements them over a folder tree.
"""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Protocol, Sequence, TypeVar

from .deletion import DeletionResult, delete_files
from .errors import AssetNotFound, PermissionDenied

T = TypeVar("T")

SUPPORTED_EXTS = {".jpg", ".jpeg", ".png", ".bmp", ".webp", ".tif", ".tiff", ".gif"}

GB = 1024**3


@dataclass(frozen=True)
class PhotoAsset:
    """Stable asset identifier plus creation time (epoch seconds)"""

    asset_id: str
    created_at: float


@dataclass(frozen=True)
class StorageUsage:
    """Device storage in bytes. All zero when it could not be read."""

    total_space: int = 0
    free_space: int = 0

    @property
    def used_space(self) -> int:
        return max(0, self.total_space - self.free_space)

    @property
    def used_percentage(self) -> float:
        if self.total_space <= 0:
            return 0.0
        return self.used_space / self.total_space * 100

    @property
    def used_space_gb(self) -> str:
        return f"{self.used_space / GB:.1f} GB"

    @property
    def total_space_gb(self) -> str:
        return f"{self.total_space / GB:.0f} GB"


class Gallery(Protocol):
    def list_assets(self) -> List[PhotoAsset]:
        ...

    def fetch_bytes(self, asset_id: str) -> bytes:
        ...

    def delete_by_ids(self, asset_ids: Sequence[str]) -> DeletionResult:
        ...

    def storage_usage(self) -> StorageUsage:
        ...


def read_storage_usage(path: str) -> StorageUsage:
    """Disk usage of the filesystem holding path; zeroed on failure"""
    try:
        usage = shutil.disk_usage(path)
    except OSError as e:
        print(f"Warning: Could not read storage usage for {path}: {e}")
        return StorageUsage()
    return StorageUsage(total_space=usage.total, free_space=usage.free)


def scan_images(folder: str) -> List[PhotoAsset]:
    """
    Recursively scan directory for supported image files.
    Returns assets sorted by path; asset ids are absolute paths.
    """
    folder_path = Path(os.path.abspath(folder))
    if not folder_path.is_dir():
        raise FileNotFoundError(f"{folder} is not a valid directory")
    if not os.access(folder_path, os.R_OK | os.X_OK):
        raise PermissionDenied(f"Cannot read {folder_path}")

    def on_error(e: OSError):
        if Path(e.filename or "") == folder_path:
            raise PermissionDenied(f"Cannot read {folder_path}: {e}") from e
        print(f"Warning: Could not list {e.filename}: {e}")

    records = []
    for root, _, files in os.walk(folder_path, onerror=on_error):
        for file in files:
            if Path(file).suffix.lower() in SUPPORTED_EXTS:
                full_path = os.path.join(root, file)
                try:
                    stat = os.stat(full_path)
                except OSError as e:
                    print(f"Warning: Could not stat {full_path}: {e}")
                    continue
                records.append(PhotoAsset(asset_id=full_path, created_at=stat.st_mtime))

    records.sort(key=lambda r: r.asset_id)
    return records


def split_into_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    """Consecutive chunks of at most batch_size items, order preserved"""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]


class LocalGallery:
    """Gallery backed by image files under a folder"""

    def __init__(self, folder: str):
        self.folder = os.path.abspath(folder)

    def list_assets(self) -> List[PhotoAsset]:
        return scan_images(self.folder)

    def fetch_bytes(self, asset_id: str) -> bytes:
        try:
            with open(asset_id, "rb") as f:
                return f.read()
        except (FileNotFoundError, IsADirectoryError) as e:
            raise AssetNotFound(asset_id) from e

    def delete_by_ids(self, asset_ids: Iterable[str]) -> DeletionResult:
        ids = list(asset_ids)
        outside = [i for i in ids if not self._contains(i)]
        if outside:
            raise ValueError(f"Refusing to delete files outside {self.folder}: {outside[:3]}")
        return delete_files(ids)

    def storage_usage(self) -> StorageUsage:
        return read_storage_usage(self.folder)

    def _contains(self, path: str) -> bool:
        try:
            return os.path.commonpath([self.folder, os.path.abspath(path)]) == self.folder
        except ValueError:
            return False
