from __future__ import annotations

import sys
import unittest
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from planviz.geometry import (
    central_region,
    distribute_central,
    distribute_points,
    ellipse_edge_point,
    ellipsis_split,
    output_arrow_positions,
)
from planviz.text import TextMeasurer, estimate_text_width


class DistributionTests(unittest.TestCase):
    def test_distribute_points_edge_cases(self) -> None:
        self.assertEqual(distribute_points(0, 0, 10), [])
        self.assertEqual(distribute_points(1, 0, 10), [5])
        self.assertEqual(distribute_points(2, 0, 10), [0, 10])
        self.assertEqual(distribute_points(3, 0, 10), [0, 5, 10])
        self.assertEqual(distribute_points(5, 100, 200), [100, 125, 150, 175, 200])

    def test_central_region_is_sixty_percent(self) -> None:
        left, right = central_region(0, 300)
        self.assertAlmostEqual(left, 60)
        self.assertAlmostEqual(right, 240)
        self.assertEqual(distribute_central(1, 0, 300), [150])

    def test_output_positions_use_central_region_for_small_counts(self) -> None:
        self.assertEqual(output_arrow_positions(0, 0, 300), ([], 0))
        self.assertEqual(output_arrow_positions(1, 0, 300), ([150], 1))
        positions, count = output_arrow_positions(2, 0, 300)
        self.assertEqual(count, 2)
        self.assertAlmostEqual(positions[0], 60)
        self.assertAlmostEqual(positions[1], 240)
        positions, _ = output_arrow_positions(4, 0, 300)
        for got, want in zip(positions, [60, 120, 180, 240]):
            self.assertAlmostEqual(got, want)

    def test_output_positions_span_full_width_above_four(self) -> None:
        positions, count = output_arrow_positions(5, 0, 300)
        self.assertEqual(count, 5)
        self.assertEqual(positions, [0, 75, 150, 225, 300])

    def test_output_positions_collapse_above_eight(self) -> None:
        positions, count = output_arrow_positions(16, 0, 300)
        self.assertEqual(count, 16)
        self.assertEqual(len(positions), 4)
        for got, want in zip(positions, [60, 150, 150, 240]):
            self.assertAlmostEqual(got, want)

    def test_eight_arrows_are_not_collapsed(self) -> None:
        positions, count = output_arrow_positions(8, 0, 350)
        self.assertEqual(count, 8)
        self.assertEqual(len(positions), 8)
        self.assertFalse(ellipsis_split(8, positions).collapsed)


class EllipsisTests(unittest.TestCase):
    def test_split_packs_visible_arrows_around_center(self) -> None:
        split = ellipsis_split(16, distribute_points(16, 0, 300))
        self.assertTrue(split.collapsed)
        self.assertAlmostEqual(split.ellipsis_x, 150)
        for got, want in zip(split.positions, [95, 115, 185, 205]):
            self.assertAlmostEqual(got, want)

    def test_split_shrinks_spacing_in_narrow_span(self) -> None:
        split = ellipsis_split(9, [0, 40])
        self.assertTrue(split.collapsed)
        self.assertAlmostEqual(split.ellipsis_x, 20)
        for got, want in zip(split.positions, [8, 20, 20, 32]):
            self.assertAlmostEqual(got, want)

    def test_small_bundles_pass_through(self) -> None:
        split = ellipsis_split(3, [1.0, 2.0, 3.0])
        self.assertFalse(split.collapsed)
        self.assertEqual(split.positions, (1.0, 2.0, 3.0))


class EllipseEdgeTests(unittest.TestCase):
    def test_vertical_and_horizontal_rays(self) -> None:
        x, y = ellipse_edge_point(0, -100, 0, 0, 100, 50)
        self.assertAlmostEqual(x, 0)
        self.assertAlmostEqual(y, -25)
        x, y = ellipse_edge_point(100, 0, 0, 0, 100, 50)
        self.assertAlmostEqual(x, 50)
        self.assertAlmostEqual(y, 0)

    def test_point_lies_on_boundary(self) -> None:
        x, y = ellipse_edge_point(-300, 400, 150, 90, 138, 41)
        value = ((x - 150) / 69) ** 2 + ((y - 90) / 20.5) ** 2
        self.assertAlmostEqual(value, 1.0)

    def test_zero_length_returns_center(self) -> None:
        self.assertEqual(ellipse_edge_point(5, 5, 5, 5, 10, 10), (5, 5))


class TextWidthTests(unittest.TestCase):
    def test_character_classes(self) -> None:
        self.assertAlmostEqual(estimate_text_width("il", 10), 6.4)
        self.assertAlmostEqual(estimate_text_width("MW", 10), 16)
        self.assertAlmostEqual(estimate_text_width("A", 10), 7)
        self.assertAlmostEqual(estimate_text_width("a", 10), 5.5)
        self.assertEqual(estimate_text_width("", 14), 0)

    def test_measurer_without_font_uses_estimate(self) -> None:
        measurer = TextMeasurer()
        self.assertAlmostEqual(measurer.measure("env, ts", 14), estimate_text_width("env, ts", 14))

    def test_measurer_with_missing_font_falls_back(self) -> None:
        measurer = TextMeasurer(str(PROJECT_ROOT / "no-such-font.ttf"))
        self.assertIsNone(measurer.font(14))
        self.assertAlmostEqual(measurer.measure("value", 14), estimate_text_width("value", 14))


if __name__ == "__main__":
    unittest.main()
