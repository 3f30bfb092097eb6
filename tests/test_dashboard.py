"""Tests for ui.dashboard -- histogram and the progress sinks."""

import unittest

from netgauge.models import GraphDataPoint, Phase, TestProgress
from ui.dashboard import ProgressDisplay, create_histogram


class TestCreateHistogram(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(create_histogram([]), "No data")

    def test_one_bar_per_value(self):
        bars = create_histogram([10.0, 50.0, 90.0])
        self.assertEqual(len(bars), 3)
        self.assertEqual(bars[0], "▁")
        self.assertEqual(bars[-1], "█")

    def test_flat_series(self):
        self.assertEqual(create_histogram([5.0, 5.0]), "▁▁")


class TestProgressDisplay(unittest.TestCase):
    def test_one_task_per_phase(self):
        display = ProgressDisplay()
        display.on_progress(TestProgress(phase=Phase.PING, progress=10))
        display.on_progress(TestProgress(phase=Phase.PING, progress=40))
        display.on_progress(TestProgress(phase=Phase.DOWNLOAD, progress=20, current_speed=55.0))
        display.on_progress(TestProgress(phase=Phase.COMPLETE, progress=100))

        tasks = display.progress.tasks
        self.assertEqual([t.description for t in tasks], ["Latency", "Download"])
        self.assertTrue(all(t.completed == 100 for t in tasks))

    def test_graph_update_draws_current_phase_sparkline(self):
        display = ProgressDisplay()
        display.on_progress(TestProgress(phase=Phase.UPLOAD, progress=10, current_speed=20.0))
        points = [
            GraphDataPoint(time=100.0, speed=90.0, phase="download"),
            GraphDataPoint(time=100.0, speed=10.0, phase="upload"),
            GraphDataPoint(time=200.0, speed=30.0, phase="upload"),
        ]
        display.on_graph_update(points)

        task = display.progress.tasks[0]
        self.assertEqual(task.fields["spark"], create_histogram([10.0, 30.0]))

    def test_sparkline_keeps_recent_samples(self):
        display = ProgressDisplay()
        display.on_progress(TestProgress(phase=Phase.DOWNLOAD, progress=50))
        points = [
            GraphDataPoint(time=float(i), speed=float(i), phase="download") for i in range(100)
        ]
        display.on_graph_update(points)
        self.assertEqual(len(display.progress.tasks[0].fields["spark"]), 30)

    def test_graph_update_before_any_phase_is_ignored(self):
        display = ProgressDisplay()
        display.on_graph_update([GraphDataPoint(time=1.0, speed=1.0, phase="download")])
        self.assertEqual(display.progress.tasks, [])


if __name__ == "__main__":
    unittest.main()
