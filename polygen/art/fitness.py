"""Pixel-distance fitness against a target image.

Candidates render onto a transparent canvas.  Before comparing, the
rendering is composited over opaque black, which is the same as reading
its premultiplied color.  Fitness is the sum of squared per-channel
differences, so 0 is a perfect match and lower is better.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image

from polygen.polygons.genome import Candidate

_BLACK = (0, 0, 0, 255)


def load_target(path: str | Path, max_size: int | None = None) -> Image.Image:
    """Open a target image as RGB, shrinking it so neither side exceeds max_size."""
    img = Image.open(path).convert("RGB")
    if max_size is not None and max(img.size) > max_size:
        img.thumbnail((max_size, max_size), Image.LANCZOS)
    return img


def flatten_rgba(image: Image.Image) -> np.ndarray:
    """Composite over opaque black.

    Returns:
        (H, W, 3) int64 array in [0, 255].
    """
    if image.mode != "RGBA":
        return np.asarray(image.convert("RGB"), dtype=np.int64)
    base = Image.new("RGBA", image.size, _BLACK)
    flat = Image.alpha_composite(base, image).convert("RGB")
    return np.asarray(flat, dtype=np.int64)


def target_array(target: Image.Image | np.ndarray) -> np.ndarray:
    if isinstance(target, np.ndarray):
        return target.astype(np.int64, copy=False)
    return flatten_rgba(target)


def image_distance(rendered: Image.Image | np.ndarray,
                   target: Image.Image | np.ndarray) -> int:
    """Sum of squared channel differences between two images.

    Args:
        rendered: candidate rendering (RGBA image) or an (H, W, 3) array.
        target: target image or its (H, W, 3) array.

    Returns:
        Non-negative distance (lower = closer).
    """
    a = target_array(rendered)
    b = target_array(target)
    if a.shape != b.shape:
        raise ValueError(f"image shapes differ: {a.shape} != {b.shape}")
    diff = a - b
    return int(np.sum(diff * diff))


def score_candidate(candidate: Candidate,
                    target: Image.Image | np.ndarray) -> int:
    """Compute and store ``candidate.fitness``."""
    candidate.fitness = image_distance(candidate.image, target)
    return candidate.fitness
