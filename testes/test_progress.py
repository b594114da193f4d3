import unittest

from content_diff.utils.progress import ProgressMeter


class TestProgressMeter(unittest.TestCase):

    def test_reports_each_ten_percent_once(self):
        """Every 10% step is reported once, in order."""
        messages = []
        meter = ProgressMeter(20, report=messages.append)
        for i in range(1, 21):
            meter.advance(i)
        self.assertEqual(messages, [f"{p}%" for p in range(10, 101, 10)])

    def test_small_totals_skip_steps(self):
        """With three items only the reached steps are reported."""
        messages = []
        meter = ProgressMeter(3, report=messages.append)
        self.assertEqual(meter.advance(1), 30)
        self.assertEqual(meter.advance(2), 60)
        self.assertEqual(meter.advance(3), 100)
        self.assertEqual(messages, ["30%", "60%", "100%"])

    def test_no_step_crossed(self):
        messages = []
        meter = ProgressMeter(1000, report=messages.append)
        self.assertIsNone(meter.advance(5))
        self.assertEqual(messages, [])

    def test_empty_loop(self):
        meter = ProgressMeter(0, report=self.fail)
        self.assertIsNone(meter.advance(1))


if __name__ == "__main__":
    unittest.main()
