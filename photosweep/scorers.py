"""
Scorer protocols and neutral defaults.

The extractor treats face counting and aesthetic rating as optional
collaborators. When one is absent or fails, the neutral value is used.
Model-backed implementations live in models.py.
"""

from typing import Protocol

from PIL import Image

NEUTRAL_FACE_COUNT = 0
NEUTRAL_AESTHETIC = 0.5


class FaceCounter(Protocol):
    def count_faces(self, image: Image.Image) -> int:
        ...


class AestheticScorer(Protocol):
    def score(self, image: Image.Image) -> float:
        """Quality in [0, 1], higher is better"""
        ...


class NeutralFaceCounter:
    """Reports no faces"""

    def count_faces(self, image: Image.Image) -> int:
        return NEUTRAL_FACE_COUNT


class NeutralAestheticScorer:
    """Rates every photo as average"""

    def score(self, image: Image.Image) -> float:
        return NEUTRAL_AESTHETIC
