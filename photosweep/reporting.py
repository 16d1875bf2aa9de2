"""
JSON report generation for selection rounds.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .config import EngineConfig
from .filesystem import StorageUsage
from .scoring import ScoredPhoto, explain
from .session import ScanSummary, SelectionResult


def photo_entry(photo: ScoredPhoto, config: Optional[EngineConfig] = None) -> Dict:
    """One selected photo with its score, duplicate mark and raw metrics"""
    f = photo.features
    return {
        "id": photo.asset_id,
        "score": round(photo.score, 2),
        "mark": photo.mark,
        "duplicate_of": photo.duplicate_of,
        "flags": explain(f, config),
        "created_at": datetime.fromtimestamp(photo.asset.created_at).strftime(
            "%Y-%m-%d %H:%M:%S"
        ),
        "digest": f.digest_hex,
        "fingerprint": f.fingerprint_hex,
        "metrics": {
            "blur": round(f.blur, 2),
            "luminance": round(f.luminance, 2),
            "entropy": round(f.entropy, 3),
            "edge_density": round(f.edge_density, 4),
            "face_count": f.face_count,
            "aesthetic": round(f.aesthetic, 3),
        },
    }


def storage_entry(storage: StorageUsage) -> Dict:
    return {
        "total_space": storage.total_space,
        "free_space": storage.free_space,
        "used_space": storage.used_space,
        "used_percentage": round(storage.used_percentage, 1),
    }


def make_report(
    rounds: Sequence[SelectionResult],
    summary: ScanSummary,
    storage: StorageUsage,
    config: Optional[EngineConfig] = None,
) -> Dict:
    """
    Generate JSON report with every selection round and scan statistics.
    """
    cfg = config or EngineConfig()
    report_rounds: List[Dict] = []
    total_selected = 0

    for number, selection in enumerate(rounds, start=1):
        total_selected += len(selection)
        report_rounds.append(
            {"round": number, "photos": [photo_entry(p, cfg) for p in selection]}
        )

    return {
        "generated_at": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "total_images": summary.total,
        "analyzed_images": summary.analyzed,
        "skipped_images": len(summary.skipped),
        "skipped": [
            {"id": s.asset_id, "kind": s.kind, "reason": s.reason} for s in summary.skipped
        ],
        "selection_size": cfg.selection_size,
        "similarity_threshold": cfg.similarity_threshold,
        "total_selected": total_selected,
        "rounds": report_rounds,
        "storage": storage_entry(storage),
    }
