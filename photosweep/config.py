"""
Tunable thresholds and limits for feature extraction, scoring and selection.
"""

from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError


@dataclass(frozen=True)
class EngineConfig:
    """All tunable constants of the engine. Defaults match the mobile app."""

    # Feature extraction
    reduced_size: int = 128
    hash_size: int = 8
    edge_threshold: float = 50.0
    model_resolution: int = 512

    # Scoring rules
    blur_threshold: float = 80.0
    blur_penalty: float = 45.0
    dark_threshold: float = 50.0
    dark_entropy_threshold: float = 1.5
    dark_low_detail_penalty: float = 30.0
    dark_penalty: float = 15.0
    document_edge_density: float = 0.08
    document_penalty: float = 25.0
    low_detail_entropy: float = 1.2
    low_detail_penalty: float = 20.0
    aesthetic_weight: float = 40.0

    # Duplicate clustering
    duplicate_score: float = 100.0
    near_duplicate_boost: float = 80.0
    similarity_threshold: int = 10

    # Selection and scheduling
    selection_size: int = 9
    batch_size: int = 10
    max_workers: Optional[int] = None
    max_assets: int = 10000

    @property
    def fingerprint_bits(self) -> int:
        return self.hash_size * self.hash_size

    @property
    def workers(self) -> int:
        """Worker pool width; defaults to one worker per batch slot"""
        return self.max_workers if self.max_workers else self.batch_size

    def validate(self) -> "EngineConfig":
        """Check value ranges. Returns self so calls can be chained."""
        if self.hash_size <= 0 or (self.hash_size * self.hash_size) % 8 != 0:
            raise ConfigError(
                f"hash_size must be positive with hash_size^2 divisible by 8, got {self.hash_size}"
            )
        if self.reduced_size < 3 or self.reduced_size % self.hash_size != 0:
            raise ConfigError(
                f"reduced_size must be >= 3 and a multiple of hash_size ({self.hash_size}), "
                f"got {self.reduced_size}"
            )
        if self.model_resolution <= 0:
            raise ConfigError(f"model_resolution must be positive, got {self.model_resolution}")
        if not 0 <= self.similarity_threshold <= self.fingerprint_bits:
            raise ConfigError(
                f"similarity_threshold must be between 0 and {self.fingerprint_bits}, "
                f"got {self.similarity_threshold}"
            )
        if not 0.0 <= self.duplicate_score <= 100.0:
            raise ConfigError(f"duplicate_score must be within [0, 100], got {self.duplicate_score}")
        if self.near_duplicate_boost < 0:
            raise ConfigError(
                f"near_duplicate_boost must be non-negative, got {self.near_duplicate_boost}"
            )
        if self.selection_size <= 0:
            raise ConfigError(f"selection_size must be positive, got {self.selection_size}")
        if self.batch_size <= 0:
            raise ConfigError(f"batch_size must be positive, got {self.batch_size}")
        if self.max_workers is not None and self.max_workers <= 0:
            raise ConfigError(f"max_workers must be positive, got {self.max_workers}")
        if self.max_assets <= 0:
            raise ConfigError(f"max_assets must be positive, got {self.max_assets}")
        return self

    @classmethod
    def from_args(cls, args) -> "EngineConfig":
        """
        Build a config from parsed command line arguments.
        Attributes missing from the namespace or set to None keep their defaults.
        """
        mapping = {
            "k": "selection_size",
            "threshold": "similarity_threshold",
            "batch_size": "batch_size",
            "workers": "max_workers",
            "max_assets": "max_assets",
        }
        overrides = {}
        for arg_name, field_name in mapping.items():
            value = getattr(args, arg_name, None)
            if value is not None:
                overrides[field_name] = value
        return cls(**overrides).validate()
