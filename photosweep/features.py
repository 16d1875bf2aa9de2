"""
Single-decode feature extraction for one photo.

The photo is decoded once, digested over its encoded bytes, reduced to a small
grayscale buffer, and every heuristic metric is computed on that buffer so the
per-photo cost does not depend on the original resolution.
"""

import hashlib
import io
import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .config import EngineConfig
from .errors import DecodeError, ExtractionError, UnsupportedFormat
from .scorers import (
    NEUTRAL_AESTHETIC,
    NEUTRAL_FACE_COUNT,
    AestheticScorer,
    FaceCounter,
)


@dataclass(frozen=True)
class FeatureSet:
    """Immutable per-photo metrics"""

    digest: bytes
    fingerprint: bytes
    blur: float
    luminance: float
    entropy: float
    edge_density: float
    face_count: int = NEUTRAL_FACE_COUNT
    aesthetic: float = NEUTRAL_AESTHETIC

    @property
    def digest_hex(self) -> str:
        return self.digest.hex()

    @property
    def fingerprint_hex(self) -> str:
        return self.fingerprint.hex()


@dataclass(frozen=True)
class Ok:
    features: FeatureSet


@dataclass(frozen=True)
class Skip:
    kind: str
    reason: str


ExtractionOutcome = Union[Ok, Skip]


# ---------------------------
# Decoding
# ---------------------------


def compute_digest(data: bytes) -> bytes:
    """MD5 of the encoded bytes, used for exact duplicate detection"""
    return hashlib.md5(data).digest()


def decode_image(data: bytes) -> Image.Image:
    """
    Decode full-resolution pixels.
    Raises UnsupportedFormat or DecodeError; never returns a partial image.
    """
    if not data:
        raise DecodeError("Empty image data")
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except UnidentifiedImageError as e:
        raise UnsupportedFormat(str(e)) from e
    except Image.DecompressionBombError as e:
        raise DecodeError(str(e)) from e
    except (OSError, ValueError, SyntaxError) as e:
        # Truncated streams and corrupt chunks surface as OSError/SyntaxError
        raise DecodeError(str(e)) from e
    return img


def to_eight_bit(image: Image.Image) -> Image.Image:
    """
    Rescale 16-bit and 32-bit single-channel images to an 8-bit L image.
    Pillow's own conversion clips these to 255 instead of rescaling.
    Other modes are returned unchanged.
    """
    if not (image.mode.startswith("I") or image.mode == "F"):
        return image

    values = np.asarray(image, dtype=np.float64)
    high = float(values.max()) if values.size else 0.0
    if image.mode.startswith("I;16") or 255.0 < high <= 65535.0:
        values = values / 257.0
    elif high > 65535.0:
        low = float(values.min())
        values = (values - low) * (255.0 / ((high - low) or 1.0))
    return Image.fromarray(np.clip(np.rint(values), 0, 255).astype(np.uint8))


def reduce_to_gray(image: Image.Image, size: int) -> np.ndarray:
    """Box-downsample to size x size and convert to grayscale once"""
    try:
        image = to_eight_bit(image)
        rgb = image if image.mode == "RGB" else image.convert("RGB")
        small = rgb.resize((size, size), Image.Resampling.BOX).convert("L")
    except (OSError, ValueError) as e:
        raise DecodeError(f"Cannot convert {image.mode} image: {e}") from e
    return np.asarray(small, dtype=np.float64)


def model_view(image: Image.Image, resolution: int) -> Image.Image:
    """RGB copy bounded to resolution on its long side, for learned scorers"""
    view = to_eight_bit(image).convert("RGB")
    view.thumbnail((resolution, resolution), Image.Resampling.BILINEAR)
    return view


# ---------------------------
# Fingerprint
# ---------------------------


def perceptual_hash(gray: np.ndarray, hash_size: int = 8) -> bytes:
    """
    Average hash: block-mean to hash_size x hash_size, bit i set when cell i
    (row-major) is >= the mean of all cells. Bit i is bit (i % 8) of byte (i // 8).
    """
    h, w = gray.shape
    cells = gray.reshape(hash_size, h // hash_size, hash_size, w // hash_size).mean(
        axis=(1, 3)
    )
    bits = (cells >= cells.mean()).ravel()
    return np.packbits(bits, bitorder="little").tobytes()


def hamming_distance(a: bytes, b: bytes) -> int:
    """Number of differing bits between two equal-length fingerprints"""
    if len(a) != len(b):
        raise ValueError(f"Fingerprint lengths differ: {len(a)} != {len(b)}")
    return bin(int.from_bytes(a, "little") ^ int.from_bytes(b, "little")).count("1")


# ---------------------------
# Heuristics
# ---------------------------


def laplacian_variance(gray: np.ndarray) -> float:
    """Variance of the 4-neighbour Laplacian. Low values mean few edges (blur)."""
    lap = (
        gray[:-2, 1:-1]
        + gray[2:, 1:-1]
        + gray[1:-1, :-2]
        + gray[1:-1, 2:]
        - 4.0 * gray[1:-1, 1:-1]
    )
    return float(lap.var())


def luminance_entropy(gray: np.ndarray) -> Tuple[float, float]:
    """Mean intensity and base-2 Shannon entropy of the 256-bin histogram"""
    levels = np.clip(np.rint(gray), 0, 255).astype(np.uint8)
    hist = np.bincount(levels.ravel(), minlength=256)
    p = hist[hist > 0] / levels.size
    entropy = max(0.0, float(-np.sum(p * np.log2(p))))
    return float(gray.mean()), entropy


def edge_density(gray: np.ndarray, threshold: float = 50.0) -> float:
    """Fraction of interior pixels whose Sobel magnitude exceeds threshold"""
    gx = (gray[:-2, 2:] + 2.0 * gray[1:-1, 2:] + gray[2:, 2:]) - (
        gray[:-2, :-2] + 2.0 * gray[1:-1, :-2] + gray[2:, :-2]
    )
    gy = (gray[2:, :-2] + 2.0 * gray[2:, 1:-1] + gray[2:, 2:]) - (
        gray[:-2, :-2] + 2.0 * gray[:-2, 1:-1] + gray[:-2, 2:]
    )
    magnitude = np.hypot(gx, gy)
    return float(np.count_nonzero(magnitude > threshold) / magnitude.size)


# ---------------------------
# Pluggable scorers
# ---------------------------


def _count_faces(counter: FaceCounter, view: Image.Image) -> int:
    try:
        count = int(counter.count_faces(view))
    except Exception as e:
        print(f"Warning: face counter failed, using {NEUTRAL_FACE_COUNT}: {e}")
        return NEUTRAL_FACE_COUNT
    return max(0, count)


def _aesthetic(scorer: AestheticScorer, view: Image.Image) -> float:
    try:
        value = float(scorer.score(view))
    except Exception as e:
        print(f"Warning: aesthetic scorer failed, using {NEUTRAL_AESTHETIC}: {e}")
        return NEUTRAL_AESTHETIC
    if math.isnan(value):
        return NEUTRAL_AESTHETIC
    return min(1.0, max(0.0, value))


# ---------------------------
# Pipeline
# ---------------------------


class FeatureExtractor:
    """
    Bytes -> Ok(FeatureSet) | Skip. Optional scorers are fixed at construction.
    Safe to call from several worker threads at once.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        face_counter: Optional[FaceCounter] = None,
        aesthetic_scorer: Optional[AestheticScorer] = None,
    ):
        self.config = (config or EngineConfig()).validate()
        self.face_counter = face_counter
        self.aesthetic_scorer = aesthetic_scorer

    def __call__(self, data: bytes) -> ExtractionOutcome:
        return self.extract(data)

    def extract(self, data: bytes) -> ExtractionOutcome:
        cfg = self.config
        try:
            image = decode_image(data)
        except ExtractionError as e:
            return Skip(kind=e.kind, reason=str(e))

        try:
            try:
                gray = reduce_to_gray(image, cfg.reduced_size)
            except ExtractionError as e:
                return Skip(kind=e.kind, reason=str(e))

            luminance, entropy = luminance_entropy(gray)
            face_count = NEUTRAL_FACE_COUNT
            aesthetic = NEUTRAL_AESTHETIC
            if self.face_counter is not None or self.aesthetic_scorer is not None:
                view = model_view(image, cfg.model_resolution)
                if self.face_counter is not None:
                    face_count = _count_faces(self.face_counter, view)
                if self.aesthetic_scorer is not None:
                    aesthetic = _aesthetic(self.aesthetic_scorer, view)
        finally:
            image.close()

        return Ok(
            FeatureSet(
                digest=compute_digest(data),
                fingerprint=perceptual_hash(gray, cfg.hash_size),
                blur=laplacian_variance(gray),
                luminance=luminance,
                entropy=entropy,
                edge_density=edge_density(gray, cfg.edge_threshold),
                face_count=face_count,
                aesthetic=aesthetic,
            )
        )


def extract_features(
    data: bytes,
    config: Optional[EngineConfig] = None,
    face_counter: Optional[FaceCounter] = None,
    aesthetic_scorer: Optional[AestheticScorer] = None,
) -> ExtractionOutcome:
    """One-off extraction without keeping an extractor around"""
    return FeatureExtractor(config, face_counter, aesthetic_scorer).extract(data)
