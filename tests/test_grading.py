"""Tests for netgauge.grading -- bufferbloat grades and share text."""

import unittest

from fakes import estimated, make_result

from netgauge.grading import BufferbloatRating, format_share_text, rate_bufferbloat, rating_color


class TestRateBufferbloat(unittest.TestCase):
    def test_boundaries(self):
        cases = [
            (0.0, "A"),
            (19.9, "A"),
            (20.0, "B"),
            (49.9, "B"),
            (50.0, "C"),
            (99.9, "C"),
            (100.0, "D"),
            (199.9, "D"),
            (200.0, "F"),
            (1500.0, "F"),
        ]
        for increase, expected in cases:
            with self.subTest(increase=increase):
                self.assertEqual(rate_bufferbloat(increase).value, expected)

    def test_monotonic(self):
        grades = [rate_bufferbloat(ms) for ms in range(0, 400, 5)]
        self.assertEqual(grades, sorted(grades))

    def test_ordering(self):
        self.assertLess(BufferbloatRating.A, BufferbloatRating.B)
        self.assertGreater(BufferbloatRating.F, BufferbloatRating.D)
        self.assertLessEqual(BufferbloatRating.C, BufferbloatRating.C)

    def test_colors(self):
        self.assertEqual(rating_color(BufferbloatRating.A), "green")
        self.assertEqual(rating_color(BufferbloatRating.C), "yellow")
        self.assertEqual(rating_color(BufferbloatRating.F), "red")


class TestFormatShareText(unittest.TestCase):
    def test_contains_headline_numbers(self):
        text = format_share_text(make_result())
        self.assertTrue(text.startswith("Network Test Results"))
        self.assertIn("Download: 94.3 Mbps", text)
        self.assertIn("Upload: 21.7 Mbps", text)
        self.assertIn("Ping: 18.2 ms (jitter: 2.4 ms)", text)
        self.assertIn("Packet Loss: 2.0%", text)
        self.assertIn("Bufferbloat: B (+32.0 ms under load)", text)
        self.assertNotIn("Estimated", text)

    def test_lists_estimated_fields(self):
        text = format_share_text(make_result(upload_speed=estimated(15.0)))
        self.assertIn("Estimated: uploadSpeed", text)

    def test_optional_sections_omitted(self):
        text = format_share_text(make_result(bufferbloat=None, packet_loss=None))
        self.assertNotIn("Bufferbloat", text)
        self.assertNotIn("Packet Loss", text)


if __name__ == "__main__":
    unittest.main()
