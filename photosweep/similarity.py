"""
Exact and near-duplicate clustering over scored candidates.
"""

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

try:
    import faiss
except ImportError:
    print(
        "ERROR: FAISS is required. Install with: pip install faiss-cpu (or faiss-gpu)"
    )
    raise ImportError("FAISS is required for similarity calculations")

from .config import EngineConfig
from .scoring import ScoredPhoto, clamp_score

EXACT_DUPLICATE = "exact_duplicate"
NEAR_DUPLICATE = "near_duplicate"


@dataclass(frozen=True)
class ClusterResult:
    """Candidates in input order, marked duplicates carrying adjusted scores"""

    photos: Tuple[ScoredPhoto, ...]

    @property
    def marked(self) -> List[ScoredPhoto]:
        return [p for p in self.photos if p.marked]

    @property
    def unmarked(self) -> List[ScoredPhoto]:
        return [p for p in self.photos if not p.marked]

    @property
    def marked_ids(self) -> Set[str]:
        return {p.asset_id for p in self.photos if p.marked}


def group_exact_duplicates(photos: Sequence[ScoredPhoto]) -> List[List[int]]:
    """Indices of photos sharing a content digest, groups of size > 1 only"""
    groups: Dict[bytes, List[int]] = {}
    for i, photo in enumerate(photos):
        groups.setdefault(photo.features.digest, []).append(i)
    return [g for g in groups.values() if len(g) > 1]


def pick_representative(group: List[int], photos: Sequence[ScoredPhoto]) -> int:
    """The photo to keep: earliest creation time, then earliest position"""
    return min(group, key=lambda i: (photos[i].asset.created_at, i))


def find_similar_pairs(
    fingerprints: Sequence[bytes], threshold: int
) -> Dict[int, List[Tuple[int, int]]]:
    """
    Pairs of fingerprints closer than threshold bits (strictly).
    Returns {i: [(j, distance), ...]} with j > i, sorted by j.
    """
    n = len(fingerprints)
    if n < 2 or threshold <= 0:
        return {}

    width = len(fingerprints[0])
    if any(len(fp) != width for fp in fingerprints):
        raise ValueError("All fingerprints must have the same length")

    codes = np.array([np.frombuffer(fp, dtype=np.uint8) for fp in fingerprints])
    index = faiss.IndexBinaryFlat(width * 8)
    index.add(codes)
    lims, distances, labels = index.range_search(codes, threshold)

    neighbors = {}
    for i in range(n):
        start, end = int(lims[i]), int(lims[i + 1])
        found = [
            (int(j), int(d))
            for j, d in zip(labels[start:end], distances[start:end])
            if j > i and d < threshold
        ]
        if found:
            neighbors[i] = sorted(found)
    return neighbors


def _mark_near_duplicate(
    photo: ScoredPhoto, other: ScoredPhoto, config: EngineConfig
) -> ScoredPhoto:
    return replace(
        photo,
        score=clamp_score(photo.score + config.near_duplicate_boost),
        mark=NEAR_DUPLICATE,
        duplicate_of=other.asset_id,
    )


def cluster_duplicates(
    photos: Sequence[ScoredPhoto], config: Optional[EngineConfig] = None
) -> ClusterResult:
    """
    Mark exact duplicates (all but the earliest copy) and then near duplicates
    (the worse-scoring photo of each similar pair, single pass in input order).
    """
    cfg = config or EngineConfig()
    result = list(photos)

    for group in group_exact_duplicates(result):
        keep = pick_representative(group, result)
        keeper_id = result[keep].asset_id
        for i in group:
            if i != keep:
                result[i] = replace(
                    result[i],
                    score=cfg.duplicate_score,
                    mark=EXACT_DUPLICATE,
                    duplicate_of=keeper_id,
                )

    remaining = [i for i, p in enumerate(result) if not p.marked]
    neighbors = find_similar_pairs(
        [result[i].features.fingerprint for i in remaining], cfg.similarity_threshold
    )

    for a, i in enumerate(remaining):
        if result[i].marked:
            continue
        for b, _ in neighbors.get(a, ()):
            j = remaining[b]
            if result[j].marked:
                continue
            first, second = result[i], result[j]
            # Ties go against the later photo
            if first.score > second.score:
                result[i] = _mark_near_duplicate(first, second, cfg)
                break
            result[j] = _mark_near_duplicate(second, first, cfg)

    return ClusterResult(photos=tuple(result))
