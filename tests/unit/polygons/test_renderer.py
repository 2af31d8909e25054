"""
Unit tests for polygon rasterization and output helpers.
"""

from PIL import Image, ImageDraw

from polygen.polygons.genome import Candidate, Color, Point, Polygon, random_candidate
from polygen.polygons.renderer import (
    render_polygons,
    render_population_grid,
    save_png,
)


def _fill_only(polygon, width, height):
    """The polygon's fill with no outline, for comparison."""
    img = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    ImageDraw.Draw(img).polygon([(p.x, p.y) for p in polygon.points],
                                fill=tuple(polygon.color))
    return img


class TestRenderPolygons:

    def test_canvas_size_and_mode(self):
        img = render_polygons([], 13, 7)
        assert img.size == (13, 7)
        assert img.mode == "RGBA"

    def test_empty_canvas_is_transparent(self):
        img = render_polygons([], 4, 4)
        assert set(img.getdata()) == {(0, 0, 0, 0)}

    def test_opaque_square_fills_inside_only(self, square):
        img = render_polygons([square], 10, 10)
        assert img.getpixel((4, 4)) == (255, 0, 0, 255)
        assert img.getpixel((2, 2)) == (255, 0, 0, 255)
        assert img.getpixel((0, 0)) == (0, 0, 0, 0)
        assert img.getpixel((9, 9)) == (0, 0, 0, 0)

    def test_later_polygons_paint_over_earlier(self, square):
        top = Polygon(points=list(square.points), color=Color(0, 0, 255, 255))
        img = render_polygons([square, top], 10, 10)
        assert img.getpixel((4, 4)) == (0, 0, 255, 255)

        img = render_polygons([top, square], 10, 10)
        assert img.getpixel((4, 4)) == (255, 0, 0, 255)

    def test_translucent_fill_keeps_alpha(self, square):
        square.color = Color(255, 0, 0, 128)
        r, g, b, a = render_polygons([square], 10, 10).getpixel((4, 4))
        assert a == 128
        assert r >= 254 and g == 0 and b == 0

    def test_translucent_layers_accumulate(self, square):
        square.color = Color(0, 255, 0, 100)
        single = render_polygons([square], 10, 10).getpixel((4, 4))
        double = render_polygons([square, square.copy()], 10, 10).getpixel((4, 4))
        assert double[3] > single[3]

    def test_translucent_stroke_darkens_fill_edge(self, square):
        square.color = Color(255, 0, 0, 128)
        img = render_polygons([square], 10, 10)
        fill_only = _fill_only(square, 10, 10)

        edge = img.getpixel((2, 4))
        interior = img.getpixel((4, 4))
        assert interior[3] == fill_only.getpixel((4, 4))[3]
        assert edge[3] > fill_only.getpixel((2, 4))[3]
        assert edge[3] > interior[3]

    def test_closing_edge_is_stroked(self):
        # Open path (1,1) -> (8,1) -> (8,8); the diagonal only exists as the
        # implicit last-to-first edge.
        tri = Polygon(
            points=[Point(1, 1), Point(8, 1), Point(8, 8)],
            color=Color(0, 0, 255, 128),
        )
        img = render_polygons([tri], 10, 10)
        fill_only = _fill_only(tri, 10, 10)

        for xy in [(3, 3), (4, 4), (5, 5)]:
            assert img.getpixel(xy)[3] > fill_only.getpixel(xy)[3]

    def test_collinear_outline_is_drawn_by_stroke(self):
        line = Polygon(
            points=[Point(1, 5), Point(8, 5), Point(4, 5)],
            color=Color(0, 200, 0, 255),
        )
        img = render_polygons([line], 10, 10)
        assert all(img.getpixel((x, 5)) == (0, 200, 0, 255) for x in range(1, 9))
        assert img.getpixel((4, 4)) == (0, 0, 0, 0)

    def test_points_outside_canvas_are_clipped(self):
        poly = Polygon(
            points=[Point(-5, -5), Point(3, -5), Point(3, 3)],
            color=Color(9, 9, 9, 255),
        )
        img = render_polygons([poly], 10, 10)
        assert img.getpixel((2, 0)) == (9, 9, 9, 255)
        assert img.getpixel((8, 8)) == (0, 0, 0, 0)

    def test_polygon_entirely_off_canvas_draws_nothing(self):
        poly = Polygon(
            points=[Point(20, 20), Point(30, 20), Point(25, 28)],
            color=Color(9, 9, 9, 255),
        )
        img = render_polygons([poly], 10, 10)
        assert set(img.getdata()) == {(0, 0, 0, 0)}

    def test_rendering_is_deterministic(self, rng):
        c = random_candidate(40, 30, rng, num_polygons=50)
        first = c.render().tobytes()
        second = c.render().tobytes()
        assert first == second

    def test_same_polygons_same_pixels(self, rng):
        c = random_candidate(40, 30, rng, num_polygons=50)
        twin = Candidate(width=40, height=30, polygons=[p.copy() for p in c.polygons])
        assert twin.image.tobytes() == c.image.tobytes()


class TestOutputs:

    def test_save_png(self, rng, tmp_path):
        c = random_candidate(16, 12, rng, num_polygons=5)
        path = save_png(c, tmp_path / "nested" / "best.png")

        assert path.exists()
        with Image.open(path) as img:
            assert img.size == (16, 12)
            assert img.convert("RGBA").tobytes() == c.image.tobytes()

    def test_population_grid_layout(self, rng):
        cands = [random_candidate(20, 20, rng, num_polygons=3) for _ in range(7)]
        cands[0].fitness = 99
        grid = render_population_grid(cands, thumb_size=32, cols=5)

        cell = 32 + 4 * 2 + 18
        assert grid.size == (5 * cell + 4, 2 * cell + 4)
        assert grid.mode == "RGB"
