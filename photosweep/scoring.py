"""
Badness scoring. Each rule adds an independent penalty; the sum is clamped to
[0, 100]. Higher means more likely to be deleted.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .config import EngineConfig
from .features import FeatureSet
from .filesystem import PhotoAsset
from .scorers import NEUTRAL_AESTHETIC

MIN_SCORE = 0.0
MAX_SCORE = 100.0


def clamp_score(value: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, value))


def score_breakdown(
    features: FeatureSet, config: Optional[EngineConfig] = None
) -> Dict[str, float]:
    """
    Penalty contributed by every rule that fired, keyed by rule name.
    The aesthetic term is negative for above-average photos.
    """
    cfg = config or EngineConfig()
    penalties = {}

    if features.blur < cfg.blur_threshold:
        penalties["blurry"] = cfg.blur_penalty

    if features.luminance < cfg.dark_threshold:
        if features.entropy < cfg.dark_entropy_threshold:
            penalties["dark_low_detail"] = cfg.dark_low_detail_penalty
        else:
            penalties["dark"] = cfg.dark_penalty

    if features.edge_density > cfg.document_edge_density:
        penalties["document"] = cfg.document_penalty

    if features.face_count == 0 and features.entropy < cfg.low_detail_entropy:
        penalties["no_people_low_detail"] = cfg.low_detail_penalty

    # 0.0 -> +weight/2, 0.5 -> 0, 1.0 -> -weight/2
    aesthetic = (NEUTRAL_AESTHETIC - features.aesthetic) * cfg.aesthetic_weight
    if aesthetic != 0.0:
        penalties["aesthetic"] = aesthetic

    return penalties


def score_features(features: FeatureSet, config: Optional[EngineConfig] = None) -> float:
    """Deterministic badness score in [0, 100]"""
    return clamp_score(sum(score_breakdown(features, config).values()))


def explain(features: FeatureSet, config: Optional[EngineConfig] = None) -> List[str]:
    """Names of the rules that pushed the score up, for reports"""
    return [
        name for name, penalty in score_breakdown(features, config).items() if penalty > 0
    ]


@dataclass(frozen=True)
class ScoredPhoto:
    """
    Asset + features + badness score. Duplicate marking produces a new
    instance with mark/duplicate_of set and the adjusted score.
    """

    asset: PhotoAsset
    features: FeatureSet
    score: float
    mark: Optional[str] = None
    duplicate_of: Optional[str] = None

    @property
    def asset_id(self) -> str:
        return self.asset.asset_id

    @property
    def marked(self) -> bool:
        return self.mark is not None


def score_photo(
    asset: PhotoAsset, features: FeatureSet, config: Optional[EngineConfig] = None
) -> ScoredPhoto:
    return ScoredPhoto(asset=asset, features=features, score=score_features(features, config))
