import tempfile
import unittest
from pathlib import Path

from pose_creator.core.models import TextPoseSource
from pose_creator.core.preview import PoseSourceHolder
from pose_creator.engine.errors import DescriptionError
from pose_creator.engine.normalizer import PoseDescriptionNormalizer, normalization_key
from pose_creator.processing.image_utils import PNG_SIGNATURE
from tests.fakes import FakeBackend, ManualDispatcher, make_jpeg


class Recorder:
    def __init__(self):
        self.started = 0
        self.successes = []
        self.failures = []

    def callbacks(self):
        return dict(
            on_start=self._start,
            on_success=self.successes.append,
            on_failure=self.failures.append,
        )

    def _start(self):
        self.started += 1


class NormalizationKeyTest(unittest.TestCase):

    def test_blank_text_has_no_key(self):
        self.assertIsNone(normalization_key(None))
        self.assertIsNone(normalization_key(TextPoseSource("")))
        self.assertIsNone(normalization_key(TextPoseSource("   \n\t")))

    def test_text_key_is_trimmed(self):
        self.assertEqual(normalization_key(TextPoseSource("  squat ")), ("text", "squat"))

    def test_each_upload_gets_its_own_key(self):
        with tempfile.TemporaryDirectory() as tmp:
            holder = PoseSourceHolder(Path(tmp))
            first = holder.set_image(make_jpeg(), "image/jpeg")
            first_key = normalization_key(first)
            second = holder.set_image(make_jpeg(), "image/jpeg")
            self.assertNotEqual(first_key, normalization_key(second))
            holder.close()


class PoseDescriptionNormalizerTest(unittest.TestCase):

    def setUp(self):
        self.dispatcher = ManualDispatcher()
        self.backend = FakeBackend(description=lambda image=None, text=None: f"Described: {text or 'image'}")
        self.normalizer = PoseDescriptionNormalizer(self.backend.describe, self.dispatcher, debounce_seconds=0.5)
        self.recorder = Recorder()

    def test_blank_text_never_calls_describe(self):
        started = self.normalizer.request(TextPoseSource("   "), **self.recorder.callbacks())
        self.dispatcher.settle()

        self.assertFalse(started)
        self.assertEqual(self.backend.describe_calls, [])
        self.assertEqual(self.recorder.started, 0)

    def test_normalize_rejects_blank_text(self):
        with self.assertRaises(ValueError):
            self.normalizer.normalize(TextPoseSource(" "))
        self.assertEqual(self.backend.describe_calls, [])

    def test_rapid_edits_trigger_one_call_for_the_final_value(self):
        for text in ("p", "pu", "push", "push-ups"):
            self.normalizer.request(TextPoseSource(text), **self.recorder.callbacks())
            self.dispatcher.advance(0.2)

        self.assertEqual(self.backend.describe_calls, [])
        self.dispatcher.advance(0.5)
        self.dispatcher.run_all_jobs()

        self.assertEqual(self.backend.describe_calls, [{"image": None, "text": "push-ups"}])
        self.assertEqual(self.recorder.successes, ["Described: push-ups"])

    def test_call_waits_for_quiet_period(self):
        self.normalizer.request(TextPoseSource("squat"), **self.recorder.callbacks())
        self.dispatcher.advance(0.4)
        self.assertEqual(self.recorder.started, 0)
        self.assertTrue(self.normalizer.pending)

        self.dispatcher.advance(0.1)
        self.assertEqual(self.recorder.started, 1)
        self.assertEqual(len(self.dispatcher.jobs), 1)
        self.assertTrue(self.normalizer.pending)

        self.dispatcher.run_all_jobs()
        self.assertFalse(self.normalizer.pending)

    def test_stale_result_is_discarded(self):
        self.normalizer.request(TextPoseSource("A: squat"), **self.recorder.callbacks())
        self.dispatcher.advance(0.5)
        self.assertEqual(len(self.dispatcher.jobs), 1)

        self.normalizer.request(TextPoseSource("B: lunge"), **self.recorder.callbacks())
        self.dispatcher.advance(0.5)
        self.assertEqual(len(self.dispatcher.jobs), 2)

        # B resolves first, then the stale A arrives
        self.dispatcher.run_job(1)
        self.dispatcher.run_job(0)

        self.assertEqual(self.recorder.successes, ["Described: B: lunge"])

    def test_invalidate_drops_in_flight_result(self):
        self.normalizer.request(TextPoseSource("squat"), **self.recorder.callbacks())
        self.dispatcher.advance(0.5)
        self.normalizer.invalidate()
        self.dispatcher.run_all_jobs()

        self.assertEqual(len(self.backend.describe_calls), 1)
        self.assertEqual(self.recorder.successes, [])
        self.assertEqual(self.recorder.failures, [])

    def test_failure_becomes_description_error(self):
        self.backend.description = RuntimeError("quota exceeded")
        self.normalizer.request(TextPoseSource("squat"), **self.recorder.callbacks())
        self.dispatcher.settle()

        self.assertEqual(len(self.recorder.failures), 1)
        failure = self.recorder.failures[0]
        self.assertIsInstance(failure, DescriptionError)
        self.assertEqual(failure.error.category.value, "DescriptionFailed")
        self.assertIn("quota exceeded", failure.error.message)

    def test_empty_description_is_a_failure(self):
        self.backend.description = "   "
        with self.assertRaises(DescriptionError):
            self.normalizer.normalize(TextPoseSource("squat"))

    def test_image_source_is_reencoded_as_png(self):
        with tempfile.TemporaryDirectory() as tmp:
            holder = PoseSourceHolder(Path(tmp))
            source = holder.set_image(make_jpeg(), "image/jpeg")

            self.normalizer.normalize(source)

            call = self.backend.describe_calls[0]
            self.assertIsNone(call["text"])
            self.assertEqual(call["image"].mime_type, "image/png")
            self.assertTrue(call["image"].data.startswith(PNG_SIGNATURE))
            holder.close()


if __name__ == "__main__":
    unittest.main()
