"""Polygon genome for evolutionary image approximation.

A *Candidate* is a fixed-length list of semi-transparent *Polygons*
drawn in list order over a transparent canvas.  Each polygon owns a
short outline of integer *Points* (3 to 6 of them) and one RGBA color.

Evolution works on whole polygons: crossover cuts the two parents'
polygon lists at a single index, and mutation touches one polygon at a
time (its color, one of its points, or its point count).  The number of
polygons in a candidate never changes.

Every random operation takes an optional ``rng`` (a ``random.Random``).
Pass a seeded generator for reproducible runs, or one generator per
worker when building candidates concurrently.
"""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass, field, replace
from typing import NamedTuple

import numpy as np
from loguru import logger
from PIL import Image

from polygen.polygons.renderer import render_polygons

MUTATION_CHANCE = 0.15
POPULATION_COUNT = 10
POLYGONS_PER_INDIVIDUAL = 100
MIN_POLYGON_POINTS = 3
MAX_POLYGON_POINTS = 6

_shared_rng = random.Random()


def _resolve(rng: random.Random | None) -> random.Random:
    return _shared_rng if rng is None else rng


# ------------------------------------------------------------------
# Point / Color
# ------------------------------------------------------------------

@dataclass(frozen=True)
class Point:
    x: int
    y: int

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, d: dict) -> Point:
        return cls(x=int(d["x"]), y=int(d["y"]))


class Color(NamedTuple):
    """Non-premultiplied RGBA, each channel in [0, 255]."""
    r: int
    g: int
    b: int
    a: int


CHANNELS = Color._fields


# ------------------------------------------------------------------
# Polygon
# ------------------------------------------------------------------

@dataclass
class Polygon:
    points: list[Point] = field(default_factory=list)
    color: Color = Color(0, 0, 0, 0)

    def copy(self) -> Polygon:
        # Points are frozen, so a fresh list is a full copy.
        return Polygon(points=list(self.points), color=self.color)

    def add_point(self, point: Point) -> None:
        self.points.append(point)

    def delete_random_point(self, rng: random.Random | None = None) -> Point:
        rng = _resolve(rng)
        return self.points.pop(rng.randrange(len(self.points)))

    def to_dict(self) -> dict:
        return {
            "color": list(self.color),
            "points": [p.to_dict() for p in self.points],
        }

    @classmethod
    def from_dict(cls, d: dict) -> Polygon:
        return cls(
            points=[Point.from_dict(p) for p in d["points"]],
            color=Color(*(int(c) for c in d["color"])),
        )


# ------------------------------------------------------------------
# Candidate
# ------------------------------------------------------------------

@dataclass(eq=False)
class Candidate:
    """One individual: an image approximation made of polygons.

    The rendered image is cached on construction.  Call ``render()``
    after changing ``polygons`` in place so the cache follows.
    ``fitness`` stays ``None`` until a scorer assigns it; lower is better.
    """
    width: int
    height: int
    polygons: list[Polygon]
    fitness: int | None = None
    _image: Image.Image | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.render()

    @property
    def image(self) -> Image.Image:
        return self._image

    def render(self) -> Image.Image:
        self._image = render_polygons(self.polygons, self.width, self.height)
        return self._image

    def copy(self) -> Candidate:
        """Independent copy with the same polygons; fitness is reset."""
        return Candidate(
            width=self.width, height=self.height,
            polygons=[p.copy() for p in self.polygons],
        )

    def pixels(self) -> np.ndarray:
        """Rendered buffer as a (height, width, 4) uint8 array."""
        return np.asarray(self._image, dtype=np.uint8)

    def __lt__(self, other: Candidate) -> bool:
        return self.fitness < other.fitness

    def __str__(self) -> str:
        return f"fitness: {self.fitness}"

    def to_dict(self) -> dict:
        return {
            "width": self.width,
            "height": self.height,
            "fitness": self.fitness,
            "polygons": [p.to_dict() for p in self.polygons],
        }

    @classmethod
    def from_dict(cls, d: dict) -> Candidate:
        return cls(
            width=int(d["width"]),
            height=int(d["height"]),
            polygons=[Polygon.from_dict(p) for p in d["polygons"]],
            fitness=d.get("fitness"),
        )


# ======================================================================
# Random initialization
# ======================================================================

def random_point(max_w: int, max_h: int,
                 rng: random.Random | None = None) -> Point:
    rng = _resolve(rng)
    return Point(rng.randrange(max_w), rng.randrange(max_h))


def random_color(rng: random.Random | None = None) -> Color:
    rng = _resolve(rng)
    return Color(*(rng.randint(0, 255) for _ in CHANNELS))


def random_polygon(max_w: int, max_h: int,
                   rng: random.Random | None = None) -> Polygon:
    rng = _resolve(rng)
    color = random_color(rng)
    n_points = rng.randint(MIN_POLYGON_POINTS, MAX_POLYGON_POINTS)
    points = [random_point(max_w, max_h, rng) for _ in range(n_points)]
    return Polygon(points=points, color=color)


def random_candidate(width: int, height: int,
                     rng: random.Random | None = None,
                     num_polygons: int = POLYGONS_PER_INDIVIDUAL) -> Candidate:
    rng = _resolve(rng)
    polygons = [random_polygon(width, height, rng) for _ in range(num_polygons)]
    return Candidate(width=width, height=height, polygons=polygons)


# ======================================================================
# Mutation
# ======================================================================

class MutationKind(enum.Enum):
    COLOR = "color"
    POINT = "point"
    ADD_OR_DELETE_POINT = "add_or_delete_point"


MUTATIONS = tuple(MutationKind)


def mutate_color(color: Color, rng: random.Random | None = None) -> Color:
    """Replace exactly one of the four channels with a random byte."""
    rng = _resolve(rng)
    channel = CHANNELS[rng.randrange(len(CHANNELS))]
    value = rng.randrange(256)
    return color._replace(**{channel: value})


def mutate_point(point: Point, max_w: int, max_h: int,
                 rng: random.Random | None = None) -> Point:
    """Redraw either X or Y inside the bounds; the other axis is kept."""
    rng = _resolve(rng)
    if rng.randrange(2) == 0:
        return replace(point, x=rng.randrange(max_w))
    return replace(point, y=rng.randrange(max_h))


def _add_or_delete_point(polygon: Polygon, max_w: int, max_h: int,
                         rng: random.Random) -> None:
    n = len(polygon.points)
    if n <= MIN_POLYGON_POINTS:
        add = True
    elif n >= MAX_POLYGON_POINTS:
        add = False
    else:
        add = rng.randrange(2) == 0

    if add:
        polygon.add_point(random_point(max_w, max_h, rng))
    else:
        polygon.delete_random_point(rng)


def mutate(polygon: Polygon, max_w: int, max_h: int,
           rng: random.Random | None = None,
           kind: MutationKind | None = None) -> MutationKind:
    """Apply one mutation to ``polygon`` in place and return its kind.

    The kind is drawn uniformly from ``MutationKind`` unless given.
    """
    rng = _resolve(rng)
    if kind is None:
        kind = MUTATIONS[rng.randrange(len(MUTATIONS))]

    if kind is MutationKind.COLOR:
        orig = polygon.color
        polygon.color = mutate_color(orig, rng)
        logger.debug("MutationColor: {} -> {}", tuple(orig), tuple(polygon.color))

    elif kind is MutationKind.POINT:
        i = rng.randrange(len(polygon.points))
        orig = polygon.points[i]
        polygon.points[i] = mutate_point(orig, max_w, max_h, rng)
        logger.debug("MutationPoint: {} -> {}", orig, polygon.points[i])

    elif kind is MutationKind.ADD_OR_DELETE_POINT:
        orig_count = len(polygon.points)
        _add_or_delete_point(polygon, max_w, max_h, rng)
        logger.debug("MutationAddOrDeletePoint: {} -> {} points",
                     orig_count, len(polygon.points))

    else:
        raise ValueError(f"unknown mutation kind: {kind!r}")

    return kind


# ======================================================================
# Crossover
# ======================================================================

def crossover_polygons(polys_a: list[Polygon], polys_b: list[Polygon],
                       cut: int) -> list[Polygon]:
    """Copies of ``polys_a[:cut + 1]`` followed by copies of ``polys_b[cut + 1:]``."""
    return [
        (polys_a[i] if i <= cut else polys_b[i]).copy()
        for i in range(len(polys_a))
    ]


def mate(parent_a: Candidate, parent_b: Candidate,
         rng: random.Random | None = None,
         mutation_chance: float = MUTATION_CHANCE) -> Candidate:
    """Single-point crossover of two parents, then per-polygon mutation.

    Parents are left untouched.  The child is rendered before returning
    and has no fitness yet.
    """
    if len(parent_a.polygons) != len(parent_b.polygons):
        raise ValueError(
            f"parents differ in polygon count: "
            f"{len(parent_a.polygons)} != {len(parent_b.polygons)}"
        )
    if (parent_a.width, parent_a.height) != (parent_b.width, parent_b.height):
        raise ValueError(
            f"parents differ in size: {parent_a.width}x{parent_a.height} "
            f"!= {parent_b.width}x{parent_b.height}"
        )

    rng = _resolve(rng)
    w, h = parent_a.width, parent_a.height
    cut = rng.randrange(len(parent_a.polygons))
    polygons = crossover_polygons(parent_a.polygons, parent_b.polygons, cut)

    for p in polygons:
        if rng.random() < mutation_chance:
            mutate(p, w, h, rng)

    return Candidate(width=w, height=h, polygons=polygons)
