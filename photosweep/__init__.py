"""
PhotoSweep: on-device photo cleanup

Finds the photos most worth deleting in a large gallery using locally computed
image features: blur, exposure, detail, document-likeness, exact duplicates
and perceptual near-duplicates.
"""

__version__ = "1.0.0"
__author__ = "PhotoSweep"

from .config import EngineConfig

from .errors import (
    PhotoSweepError,
    ExtractionError,
    DecodeError,
    UnsupportedFormat,
    AssetNotFound,
    PermissionDenied,
    ScanCancelled,
    ConfigError,
)

from .filesystem import (
    PhotoAsset,
    StorageUsage,
    Gallery,
    LocalGallery,
    scan_images,
    read_storage_usage,
    split_into_batches,
)

from .deletion import (
    DeletionResult,
    delete_files,
)

from .scorers import (
    FaceCounter,
    AestheticScorer,
    NeutralFaceCounter,
    NeutralAestheticScorer,
)

from .features import (
    FeatureSet,
    Ok,
    Skip,
    FeatureExtractor,
    extract_features,
    hamming_distance,
    perceptual_hash,
)

from .scoring import (
    ScoredPhoto,
    score_features,
    score_breakdown,
    score_photo,
    explain,
)

from .similarity import (
    EXACT_DUPLICATE,
    NEAR_DUPLICATE,
    ClusterResult,
    cluster_duplicates,
    group_exact_duplicates,
    pick_representative,
)

from .scheduler import (
    ScanReport,
    SkippedAsset,
    run_scan,
)

from .session import (
    PhotoSweeper,
    SessionState,
    SelectionResult,
    ScanSummary,
)

from .reporting import make_report

__all__ = [
    # Configuration and errors
    "EngineConfig",
    "PhotoSweepError",
    "ExtractionError",
    "DecodeError",
    "UnsupportedFormat",
    "AssetNotFound",
    "PermissionDenied",
    "ScanCancelled",
    "ConfigError",
    # Gallery collaborators
    "PhotoAsset",
    "StorageUsage",
    "Gallery",
    "LocalGallery",
    "scan_images",
    "read_storage_usage",
    "split_into_batches",
    "DeletionResult",
    "delete_files",
    # Pluggable scorers
    "FaceCounter",
    "AestheticScorer",
    "NeutralFaceCounter",
    "NeutralAestheticScorer",
    # Feature extraction and scoring
    "FeatureSet",
    "Ok",
    "Skip",
    "FeatureExtractor",
    "extract_features",
    "hamming_distance",
    "perceptual_hash",
    "ScoredPhoto",
    "score_features",
    "score_breakdown",
    "score_photo",
    "explain",
    # Duplicate clustering
    "EXACT_DUPLICATE",
    "NEAR_DUPLICATE",
    "ClusterResult",
    "cluster_duplicates",
    "group_exact_duplicates",
    "pick_representative",
    # Scanning and selection
    "ScanReport",
    "SkippedAsset",
    "run_scan",
    "PhotoSweeper",
    "SessionState",
    "SelectionResult",
    "ScanSummary",
    # Reporting
    "make_report",
]
