from __future__ import annotations

import unittest

from gcstudio import calibration as cal
from gcstudio.errors import CalibrationIncomplete, InvalidCalibration
from gcstudio.inputs import InputSnapshot


class RecordingTarget:
    def __init__(self) -> None:
        self.sticks = None
        self.triggers = None

    def apply_stick_calibration(self, main_stick, c_stick) -> None:
        self.sticks = (main_stick, c_stick)

    def apply_trigger_calibration(self, l_trigger, r_trigger) -> None:
        self.triggers = (l_trigger, r_trigger)


def press(session, sample) -> bool:
    """One full press and release of the confirm button."""
    recorded = session.tick(sample, True)
    session.tick(sample, False)
    return recorded


def capture_stick(session, base: int) -> None:
    press(session, (base, base))
    for index in range(cal.NOTCH_COUNT):
        press(session, (base + index, base - index))


class ConfirmEdgeTests(unittest.TestCase):
    def test_rising_edge_only(self) -> None:
        edge = cal.ConfirmEdge()
        self.assertEqual([edge.update(level) for level in (False, True, True, False, True)],
                         [False, True, False, False, True])


class ArtifactTests(unittest.TestCase):
    def test_default_notch_points(self) -> None:
        points = cal.default_notch_points()
        self.assertEqual(len(points), 8)
        self.assertEqual(points[0], (128, 255))
        self.assertEqual(points[1], (217, 217))
        self.assertEqual(points[2], (255, 128))
        self.assertEqual(points[4], (128, 1))
        for x, y in points:
            self.assertTrue(0 <= x <= 255 and 0 <= y <= 255)

    def test_default_trigger_data(self) -> None:
        self.assertEqual(
            cal.default_trigger_data(),
            {"l_trigger": {"min": 0, "max": 255}, "r_trigger": {"min": 0, "max": 255}},
        )

    def test_stick_cal_requires_eight_notches(self) -> None:
        with self.assertRaises(InvalidCalibration):
            cal.StickCal(notch_points=((0, 0),) * 7, center=(128, 128))

    def test_stick_cal_dict_shape(self) -> None:
        data = cal.StickCal.default().to_dict()
        self.assertEqual(sorted(data), ["notch_points", "stick_center"])
        self.assertEqual(data["stick_center"], [128, 128])
        self.assertEqual(cal.StickCal.from_dict(data), cal.StickCal.default())

    def test_trig_cal_validity_over_all_byte_pairs(self) -> None:
        for low in range(256):
            for high in range(256):
                trig = cal.TrigCal(low, high)
                self.assertEqual(trig.is_valid, low < high)
                if low < high:
                    trig.validate()
                else:
                    with self.assertRaises(InvalidCalibration):
                        trig.validate()


class StickSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = cal.StickCalibrationSession()

    def test_initial_prompt(self) -> None:
        self.assertEqual(self.session.stage, cal.StickStage.AWAITING_CENTER)
        self.assertEqual(self.session.prompt(), "Center main stick and press A")
        self.assertEqual(self.session.progress(), (0, 18))

    def test_notch_prompts_follow_clockwise_labels(self) -> None:
        press(self.session, (128, 128))
        for index, label in enumerate(cal.NOTCH_LABELS):
            self.assertEqual(self.session.notch_index, index)
            self.assertEqual(
                self.session.prompt(),
                f"Move main stick to center then to {label} then press A",
            )
            press(self.session, (index, index))

    def test_main_stick_then_c_stick_awaits_center(self) -> None:
        capture_stick(self.session, 100)
        self.assertIs(self.session.stick, cal.Stick.C)
        self.assertEqual(self.session.stage, cal.StickStage.AWAITING_CENTER)
        self.assertEqual(self.session.prompt(), "Center C-stick and press A")
        center, notches = self.session.points(cal.Stick.MAIN)
        self.assertEqual(center, (100, 100))
        self.assertEqual(len(notches), 8)
        self.assertEqual(notches[7], (107, 93))

    def test_sustained_confirm_records_once(self) -> None:
        for _ in range(30):
            self.session.tick((10, 20), True)
        self.assertEqual(self.session.progress(), (1, 18))
        self.assertEqual(self.session.points(cal.Stick.MAIN), ((10, 20), []))

    def test_completed_session_has_center_and_eight_notches_per_stick(self) -> None:
        capture_stick(self.session, 60)
        capture_stick(self.session, 160)
        self.assertTrue(self.session.finished)
        self.assertEqual(self.session.stage, cal.StickStage.FINISHED)
        self.assertEqual(self.session.progress(), (18, 18))
        self.assertFalse(press(self.session, (1, 1)))

        main_stick, c_stick = self.session.result()
        self.assertEqual(main_stick.center, (60, 60))
        self.assertEqual(c_stick.center, (160, 160))
        self.assertEqual(len(main_stick.notch_points), 8)
        self.assertEqual(len(c_stick.notch_points), 8)

    def test_apply_hands_result_to_target_and_resets(self) -> None:
        capture_stick(self.session, 60)
        capture_stick(self.session, 160)
        target = RecordingTarget()
        main_stick, c_stick = self.session.apply(target)
        self.assertEqual(target.sticks, (main_stick, c_stick))
        self.assertEqual(self.session.stage, cal.StickStage.AWAITING_CENTER)

    def test_result_before_finish_is_rejected(self) -> None:
        capture_stick(self.session, 60)
        target = RecordingTarget()
        with self.assertRaises(CalibrationIncomplete):
            self.session.apply(target)
        self.assertIsNone(target.sticks)

    def test_cancel_discards_points(self) -> None:
        capture_stick(self.session, 60)
        press(self.session, (1, 1))
        self.session.cancel()
        self.assertIs(self.session.stick, cal.Stick.MAIN)
        self.assertEqual(self.session.progress(), (0, 18))
        self.assertEqual(self.session.points(cal.Stick.C), (None, []))

    def test_held_confirm_across_restart_records_nothing(self) -> None:
        self.assertTrue(self.session.tick((10, 10), True))
        self.session.cancel()
        self.assertFalse(self.session.tick((20, 20), True))
        self.assertEqual(self.session.progress(), (0, 18))
        self.session.tick((20, 20), False)
        self.assertTrue(self.session.tick((20, 20), True))

    def test_feed_reads_the_stick_being_captured(self) -> None:
        self.session.feed(InputSnapshot(main_stick=(1, 2), c_stick=(3, 4), confirm_pressed=True))
        self.assertEqual(self.session.points(cal.Stick.MAIN)[0], (1, 2))
        capture_rest = [(5, 5)] * 8
        for sample in capture_rest:
            self.session.feed(InputSnapshot(main_stick=sample, confirm_pressed=False))
            self.session.feed(InputSnapshot(main_stick=sample, confirm_pressed=True))
        self.session.feed(InputSnapshot(confirm_pressed=False))
        self.session.feed(InputSnapshot(main_stick=(9, 9), c_stick=(3, 4), confirm_pressed=True))
        self.assertEqual(self.session.points(cal.Stick.C)[0], (3, 4))


class TriggerSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = cal.TriggerCalibrationSession()

    def run_session(self, left, right) -> None:
        for low, high in (left, right):
            press(self.session, low)
            press(self.session, high)

    def test_prompts(self) -> None:
        self.assertEqual(self.session.prompt(), "Fully release the left trigger and press A")
        press(self.session, 0)
        self.assertEqual(self.session.prompt(), "Fully press the left trigger and press A")
        press(self.session, 255)
        self.assertEqual(self.session.prompt(), "Fully release the right trigger and press A")

    def test_full_range_is_accepted(self) -> None:
        self.run_session((0, 255), (0, 255))
        target = RecordingTarget()
        left, right = self.session.apply(target)
        self.assertEqual(left, cal.TrigCal(0, 255))
        self.assertEqual(target.triggers, (cal.TrigCal(0, 255), cal.TrigCal(0, 255)))

    def test_inverted_range_is_rejected(self) -> None:
        self.run_session((200, 50), (0, 255))
        target = RecordingTarget()
        with self.assertRaises(InvalidCalibration):
            self.session.apply(target)
        self.assertIsNone(target.triggers)

    def test_apply_rejected_iff_min_not_below_max(self) -> None:
        target = RecordingTarget()
        for low in range(0, 256, 5):
            for high in range(0, 256, 5):
                self.session.cancel()
                self.run_session((10, 250), (low, high))
                target.triggers = None
                if low < high:
                    self.session.apply(target)
                    self.assertEqual(target.triggers[1], cal.TrigCal(low, high))
                else:
                    with self.assertRaises(InvalidCalibration):
                        self.session.apply(target)
                    self.assertIsNone(target.triggers)

    def test_values_are_clamped_to_bytes(self) -> None:
        self.run_session((-20, 999), (3.7, 254.2))
        left, right = self.session.result()
        self.assertEqual((left.min, left.max, right.min, right.max), (0, 255, 3, 254))

    def test_incomplete_and_cancel(self) -> None:
        press(self.session, 0)
        with self.assertRaises(CalibrationIncomplete):
            self.session.result()
        self.assertEqual(self.session.progress(), (1, 4))
        self.session.cancel()
        self.assertEqual(self.session.stage, cal.TriggerStage.AWAITING_RELEASE)
        self.assertEqual(self.session.progress(), (0, 4))

    def test_held_confirm_after_apply_records_nothing(self) -> None:
        for sample in (0, 255, 0):
            press(self.session, sample)
        self.assertTrue(self.session.tick(255, True))
        self.session.apply(RecordingTarget())
        self.assertFalse(self.session.tick(255, True))
        self.assertEqual(self.session.progress(), (0, 4))

    def test_feed_reads_the_trigger_being_captured(self) -> None:
        self.session.feed(InputSnapshot(l_trigger=4, r_trigger=90, confirm_pressed=True))
        self.assertEqual(self.session.bounds[cal.Trigger.LEFT]["min"], 4)


if __name__ == "__main__":
    unittest.main()
