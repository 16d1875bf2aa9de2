"""
Runs feature extraction over a whole gallery with a bounded worker pool.
Every per-photo failure becomes a recorded skip; only PermissionDenied
aborts the scan.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from tqdm import tqdm

from .errors import AssetNotFound, PermissionDenied
from .features import ExtractionOutcome, FeatureSet, Ok, Skip
from .filesystem import Gallery, PhotoAsset, split_into_batches

ProgressCallback = Callable[[int, int], None]
Extractor = Callable[[bytes], ExtractionOutcome]


@dataclass(frozen=True)
class SkippedAsset:
    asset_id: str
    kind: str
    reason: str


@dataclass
class ScanReport:
    """Extraction results in enumeration order plus the skipped assets"""

    total: int
    results: List[Tuple[PhotoAsset, FeatureSet]] = field(default_factory=list)
    skipped: List[SkippedAsset] = field(default_factory=list)
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return len(self.results) + len(self.skipped)


def analyze_asset(gallery: Gallery, asset: PhotoAsset, extractor: Extractor) -> ExtractionOutcome:
    """Fetch one asset's bytes and extract its features"""
    try:
        data = gallery.fetch_bytes(asset.asset_id)
    except AssetNotFound as e:
        return Skip(kind="not_found", reason=str(e))
    return extractor(data)


def run_scan(
    gallery: Gallery,
    assets: Sequence[PhotoAsset],
    extractor: Extractor,
    batch_size: int = 10,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
    progress: Optional[ProgressCallback] = None,
) -> ScanReport:
    """
    Extract features for every asset, batch_size at a time.
    Results are matched back to their asset, never by completion order.
    The cancel event is checked between batches.
    """
    total = len(assets)
    outcomes: List[Optional[ExtractionOutcome]] = [None] * total
    report = ScanReport(total=total)
    done = 0

    with ThreadPoolExecutor(max_workers=max_workers or batch_size) as executor, tqdm(
        total=total, desc="Analyzing photos", disable=total == 0
    ) as pbar:
        for batch_start, batch in enumerate(split_into_batches(assets, batch_size)):
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                break

            offset = batch_start * batch_size
            future_to_position = {
                executor.submit(analyze_asset, gallery, asset, extractor): offset + k
                for k, asset in enumerate(batch)
            }

            for future in as_completed(future_to_position):
                position = future_to_position[future]
                try:
                    outcomes[position] = future.result()
                except PermissionDenied:
                    raise
                except Exception as e:
                    outcomes[position] = Skip(kind="error", reason=f"{type(e).__name__}: {e}")
                pbar.update(1)

            done += len(batch)
            if progress is not None:
                progress(done, total)

    for asset, outcome in zip(assets, outcomes):
        if outcome is None:
            continue
        if isinstance(outcome, Ok):
            report.results.append((asset, outcome.features))
        else:
            tqdm.write(f"Warning: Skipping {asset.asset_id} ({outcome.kind}): {outcome.reason}")
            report.skipped.append(
                SkippedAsset(asset_id=asset.asset_id, kind=outcome.kind, reason=outcome.reason)
            )

    return report
