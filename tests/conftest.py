"""Shared test fixtures."""

import io
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pytest
from PIL import Image

from photosweep.deletion import DeletionResult
from photosweep.errors import AssetNotFound, PermissionDenied
from photosweep.features import FeatureSet
from photosweep.filesystem import PhotoAsset, StorageUsage
from photosweep.scoring import ScoredPhoto


def encode(array: np.ndarray, fmt: str = "PNG", **kwargs) -> bytes:
    """Encode a uint8 HxW or HxWx3 array as image bytes"""
    buffer = io.BytesIO()
    Image.fromarray(array.astype(np.uint8)).save(buffer, format=fmt, **kwargs)
    return buffer.getvalue()


def noise_image(seed: int, size: int = 64) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(size, size, 3), dtype=np.uint8)


def pattern_image(size: int = 256) -> np.ndarray:
    """Smooth low-frequency pattern that survives resizing"""
    y, x = np.mgrid[0:size, 0:size] / size
    gray = 127.5 + 127.5 * np.sin(2 * np.pi * x) * np.cos(3 * np.pi * y)
    return np.stack([gray, np.roll(gray, size // 4, axis=1), 255 - gray], axis=-1).astype(
        np.uint8
    )


def fingerprint(bits: Iterable[int], width: int = 8) -> bytes:
    """Fingerprint with exactly the given bit indices set"""
    return sum(1 << b for b in set(bits)).to_bytes(width, "little")


def make_features(**overrides) -> FeatureSet:
    """A sharp, bright, detailed photo that scores 0 unless overridden"""
    values = dict(
        digest=b"\x00" * 16,
        fingerprint=b"\x00" * 8,
        blur=500.0,
        luminance=120.0,
        entropy=7.0,
        edge_density=0.02,
    )
    values.update(overrides)
    return FeatureSet(**values)


def make_photo(
    asset_id: str,
    score: float,
    created_at: float = 0.0,
    digest: Optional[bytes] = None,
    fp: Optional[bytes] = None,
) -> ScoredPhoto:
    features = make_features(
        digest=digest if digest is not None else asset_id.encode().ljust(16, b"\x00")[:16],
        fingerprint=fp if fp is not None else b"\x00" * 8,
    )
    return ScoredPhoto(
        asset=PhotoAsset(asset_id=asset_id, created_at=created_at),
        features=features,
        score=score,
    )


@dataclass
class InMemoryGallery:
    """In-memory gallery for tests."""

    photos: Dict[str, Tuple[float, bytes]] = field(default_factory=dict)
    granted: bool = True
    missing: set = field(default_factory=set)
    storage: Optional[StorageUsage] = field(
        default_factory=lambda: StorageUsage(total_space=64 * 1024**3, free_space=16 * 1024**3)
    )
    fetched: List[str] = field(default_factory=list)

    def add(self, asset_id: str, data: bytes, created_at: float = 0.0) -> None:
        self.photos[asset_id] = (created_at, data)

    def list_assets(self) -> List[PhotoAsset]:
        if not self.granted:
            raise PermissionDenied("Gallery access not granted")
        return [PhotoAsset(asset_id=i, created_at=t) for i, (t, _) in self.photos.items()]

    def fetch_bytes(self, asset_id: str) -> bytes:
        self.fetched.append(asset_id)
        if asset_id in self.missing or asset_id not in self.photos:
            raise AssetNotFound(asset_id)
        return self.photos[asset_id][1]

    def delete_by_ids(self, asset_ids) -> DeletionResult:
        result = DeletionResult()
        for asset_id in asset_ids:
            if self.photos.pop(asset_id, None) is None:
                result.already_deleted.append(asset_id)
            else:
                result.deleted.append(asset_id)
        return result

    def storage_usage(self) -> StorageUsage:
        if self.storage is None:
            raise OSError("storage unavailable")
        return self.storage


@pytest.fixture
def gallery() -> InMemoryGallery:
    return InMemoryGallery()


@pytest.fixture
def noisy_gallery() -> InMemoryGallery:
    """30 distinct random photos with increasing timestamps"""
    g = InMemoryGallery()
    for i in range(30):
        g.add(f"photo-{i:03d}", encode(noise_image(i)), created_at=float(i))
    return g
