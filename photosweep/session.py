"""
Session state and the selection orchestrator.

PhotoSweeper owns the table of analyzed photos and the set of ids it has
already surfaced. It is the only writer of that state; other readers take
snapshots.
"""

import threading
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple

from .config import EngineConfig
from .errors import ScanCancelled
from .features import FeatureExtractor
from .filesystem import Gallery, PhotoAsset, StorageUsage
from .scorers import AestheticScorer, FaceCounter
from .scheduler import Extractor, ProgressCallback, SkippedAsset, run_scan
from .scoring import ScoredPhoto, score_photo
from .similarity import cluster_duplicates


@dataclass(frozen=True)
class SessionSnapshot:
    photos: Tuple[ScoredPhoto, ...]
    seen: FrozenSet[str]


class SessionState:
    """Photo table plus previously selected ids"""

    def __init__(self):
        self._photos: Tuple[ScoredPhoto, ...] = ()
        self._seen = set()
        self._lock = threading.Lock()

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(photos=self._photos, seen=frozenset(self._seen))

    def replace_photos(self, photos: Sequence[ScoredPhoto], reset_seen: bool = False):
        table = tuple(photos)
        with self._lock:
            self._photos = table
            if reset_seen:
                self._seen = set()

    def mark_seen(self, asset_ids: Iterable[str]):
        with self._lock:
            self._seen.update(asset_ids)

    def remove(self, asset_ids: Iterable[str]) -> int:
        drop = set(asset_ids)
        with self._lock:
            kept = tuple(p for p in self._photos if p.asset_id not in drop)
            removed = len(self._photos) - len(kept)
            self._photos = kept
        return removed

    def clear(self):
        with self._lock:
            self._photos = ()
            self._seen = set()


@dataclass(frozen=True)
class SelectionResult:
    """Up to K photos, descending by score"""

    photos: Tuple[ScoredPhoto, ...] = ()

    @property
    def ids(self) -> List[str]:
        return [p.asset_id for p in self.photos]

    def __len__(self) -> int:
        return len(self.photos)

    def __iter__(self) -> Iterator[ScoredPhoto]:
        return iter(self.photos)


@dataclass(frozen=True)
class ScanSummary:
    total: int
    analyzed: int
    skipped: List[SkippedAsset] = field(default_factory=list)


def _dedupe_assets(assets: Iterable[PhotoAsset]) -> List[PhotoAsset]:
    seen_ids = set()
    unique = []
    for asset in assets:
        if asset.asset_id not in seen_ids:
            seen_ids.add(asset.asset_id)
            unique.append(asset)
    return unique


class PhotoSweeper:
    """
    Scan a gallery, then repeatedly select the K best deletion candidates
    that have not been surfaced before.
    """

    def __init__(
        self,
        gallery: Gallery,
        config: Optional[EngineConfig] = None,
        face_counter: Optional[FaceCounter] = None,
        aesthetic_scorer: Optional[AestheticScorer] = None,
        extractor: Optional[Extractor] = None,
    ):
        self.gallery = gallery
        self.config = (config or EngineConfig()).validate()
        self.extractor = extractor or FeatureExtractor(
            self.config, face_counter=face_counter, aesthetic_scorer=aesthetic_scorer
        )
        self._state = SessionState()

    @property
    def photos(self) -> Tuple[ScoredPhoto, ...]:
        return self._state.snapshot().photos

    @property
    def seen(self) -> FrozenSet[str]:
        return self._state.snapshot().seen

    def snapshot(self) -> SessionSnapshot:
        return self._state.snapshot()

    def scan(
        self,
        cancel_event: Optional[threading.Event] = None,
        progress: Optional[ProgressCallback] = None,
        reset_seen: bool = False,
    ) -> ScanSummary:
        """
        Analyze every asset in the gallery and replace the photo table.
        The table is swapped only when the scan completes; a cancelled scan
        raises ScanCancelled and leaves the session untouched.
        """
        cfg = self.config
        assets = _dedupe_assets(self.gallery.list_assets())
        if len(assets) > cfg.max_assets:
            print(f"Warning: Gallery has {len(assets)} photos, analyzing the first {cfg.max_assets}")
            assets = assets[: cfg.max_assets]

        report = run_scan(
            self.gallery,
            assets,
            self.extractor,
            batch_size=cfg.batch_size,
            max_workers=cfg.workers,
            cancel_event=cancel_event,
            progress=progress,
        )
        if report.cancelled:
            raise ScanCancelled(
                f"Scan cancelled after {report.processed} of {report.total} photos"
            )

        photos = [score_photo(asset, features, cfg) for asset, features in report.results]
        self._state.replace_photos(photos, reset_seen=reset_seen)
        return ScanSummary(total=report.total, analyzed=len(photos), skipped=report.skipped)

    def select(self, excluded_ids: Iterable[str] = (), k: Optional[int] = None) -> SelectionResult:
        """
        Top-k deletion candidates among photos neither excluded nor seen.
        Marked duplicates come first; free slots are filled with the worst
        unmarked photos. Every returned id is added to the seen set.
        """
        k = self.config.selection_size if k is None else k
        if k <= 0:
            raise ValueError(f"k must be positive, got {k}")

        snapshot = self._state.snapshot()
        excluded = set(excluded_ids)
        candidates = [
            p
            for p in snapshot.photos
            if p.asset_id not in excluded and p.asset_id not in snapshot.seen
        ]
        position = {p.asset_id: i for i, p in enumerate(candidates)}

        def rank(photos: Iterable[ScoredPhoto]) -> List[ScoredPhoto]:
            return sorted(photos, key=lambda p: (-p.score, position[p.asset_id]))

        clustered = cluster_duplicates(candidates, self.config)
        picked = rank(clustered.marked)[:k]
        if len(picked) < k:
            picked += rank(clustered.unmarked)[: k - len(picked)]

        selection = SelectionResult(photos=tuple(rank(picked)))
        self._state.mark_seen(selection.ids)
        return selection

    def confirm_deletion(self, asset_ids: Iterable[str]) -> int:
        """Drop photos the caller has deleted. Returns how many were removed."""
        return self._state.remove(asset_ids)

    def reset(self):
        """Forget every analyzed photo and every surfaced id"""
        self._state.clear()

    def storage_usage(self) -> StorageUsage:
        """Gallery storage usage; zeroed when the gallery cannot report it"""
        try:
            return self.gallery.storage_usage()
        except Exception as e:
            print(f"Warning: Could not read storage usage: {e}")
            return StorageUsage()
