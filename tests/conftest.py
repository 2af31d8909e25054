"""Pytest configuration and shared fixtures."""

import random
import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))


@pytest.fixture
def rng():
    """Seeded generator so failures reproduce."""
    return random.Random(1234)


@pytest.fixture
def square():
    """Opaque red 6x6 square in the middle of a 10x10 canvas."""
    from polygen.polygons.genome import Color, Point, Polygon
    return Polygon(
        points=[Point(2, 2), Point(7, 2), Point(7, 7), Point(2, 7)],
        color=Color(255, 0, 0, 255),
    )


@pytest.fixture
def make_candidate():
    """Build a candidate from (color, points) pairs."""
    from polygen.polygons.genome import Candidate, Color, Point, Polygon

    def _make(specs, width=20, height=20):
        polygons = [
            Polygon(points=[Point(x, y) for x, y in pts], color=Color(*color))
            for color, pts in specs
        ]
        return Candidate(width=width, height=height, polygons=polygons)

    return _make
