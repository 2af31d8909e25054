"""Rasterize polygon genomes to PIL Images.

Polygons are painted in list order (back-to-front) onto a transparent
RGBA canvas.  Each polygon is filled, then its closed outline is stroked
with a 1px line in the same color; fill and stroke are drawn on their
own temporary layers and alpha-composited onto the canvas, so a
translucent stroke shows over its own fill.

Layers are cropped to the polygon's bounding box to keep compositing
cheap for large populations.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Sequence

from PIL import Image, ImageDraw

if TYPE_CHECKING:
    from polygen.polygons.genome import Candidate, Polygon

TRANSPARENT = (0, 0, 0, 0)


def _clipped_bbox(polygon: Polygon, width: int,
                  height: int) -> tuple[int, int, int, int] | None:
    xs = [p.x for p in polygon.points]
    ys = [p.y for p in polygon.points]
    x0 = max(0, min(xs))
    y0 = max(0, min(ys))
    x1 = min(width - 1, max(xs))
    y1 = min(height - 1, max(ys))
    if x1 < x0 or y1 < y0:
        return None
    return x0, y0, x1, y1


# ------------------------------------------------------------------
# Polygon drawing
# ------------------------------------------------------------------

def _draw_polygon(canvas: Image.Image, polygon: Polygon) -> None:
    bbox = _clipped_bbox(polygon, canvas.width, canvas.height)
    if bbox is None:
        return
    x0, y0, x1, y1 = bbox
    size = (x1 - x0 + 1, y1 - y0 + 1)
    color = tuple(polygon.color)
    outline = [(p.x - x0, p.y - y0) for p in polygon.points]

    fill = Image.new("RGBA", size, TRANSPARENT)
    ImageDraw.Draw(fill).polygon(outline, fill=color)
    canvas.alpha_composite(fill, dest=(x0, y0))

    stroke = Image.new("RGBA", size, TRANSPARENT)
    ImageDraw.Draw(stroke).line(outline + outline[:1], fill=color, width=1)
    canvas.alpha_composite(stroke, dest=(x0, y0))


def render_polygons(polygons: Sequence[Polygon], width: int,
                    height: int) -> Image.Image:
    """Paint ``polygons`` in order onto a fresh transparent canvas."""
    canvas = Image.new("RGBA", (width, height), TRANSPARENT)
    for polygon in polygons:
        _draw_polygon(canvas, polygon)
    return canvas


# ------------------------------------------------------------------
# Output helpers
# ------------------------------------------------------------------

def save_png(candidate: Candidate, path: str | Path) -> Path:
    """Re-render ``candidate`` and write it as a PNG."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    candidate.render().save(path, format="PNG")
    return path


def render_population_grid(candidates: Sequence[Candidate], thumb_size: int = 128,
                           cols: int = 5) -> Image.Image:
    n = len(candidates)
    rows = (n + cols - 1) // cols
    padding = 4
    label_h = 18
    cell = thumb_size + padding * 2 + label_h
    grid_w = cols * cell + padding
    grid_h = rows * cell + padding

    grid = Image.new("RGB", (grid_w, grid_h), (30, 30, 30))
    draw = ImageDraw.Draw(grid)

    for i, c in enumerate(candidates):
        row, col_idx = divmod(i, cols)
        thumb = c.image.copy()
        thumb.thumbnail((thumb_size, thumb_size), Image.LANCZOS)
        x = col_idx * cell + padding
        y = row * cell + padding + label_h
        # Transparent regions show as black, matching how scoring sees them.
        grid.paste((0, 0, 0), (x, y, x + thumb.width, y + thumb.height))
        grid.paste(thumb, (x, y), thumb)

        label = f"#{i}" if c.fitness is None else f"#{i} {c.fitness}"
        draw.text((x + 2, y - label_h + 2), label, fill=(180, 180, 180))

    return grid
