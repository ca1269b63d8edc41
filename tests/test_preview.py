import tempfile
import unittest
from io import BytesIO
from pathlib import Path

from PIL import Image

from pose_creator.core.models import ImagePoseSource, TextPoseSource
from pose_creator.core.preview import PoseSourceHolder, PreviewHandle
from tests.fakes import make_jpeg


class PreviewTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def files(self):
        return list(self.tmp.iterdir())


class PreviewHandleTest(PreviewTestCase):

    def test_acquire_writes_downscaled_png(self):
        handle = PreviewHandle.acquire(make_jpeg(size=(1024, 256)), self.tmp)

        self.assertTrue(handle.path.is_file())
        self.assertTrue(handle.uri.startswith("file://"))
        with Image.open(BytesIO(handle.path.read_bytes())) as img:
            self.assertEqual(img.format, "PNG")
            self.assertEqual(img.size, (512, 128))

    def test_release_is_idempotent(self):
        handle = PreviewHandle.acquire(make_jpeg(), self.tmp)

        handle.release()
        handle.release()

        self.assertTrue(handle.released)
        self.assertEqual(self.files(), [])

    def test_ids_are_unique(self):
        first = PreviewHandle.acquire(make_jpeg(), self.tmp)
        second = PreviewHandle.acquire(make_jpeg(), self.tmp)
        self.assertNotEqual(first.id, second.id)


class PoseSourceHolderTest(PreviewTestCase):

    def test_replacing_image_releases_previous_handle(self):
        holder = PoseSourceHolder(self.tmp)
        first = holder.set_image(make_jpeg(), "image/jpeg")
        second = holder.set_image(make_jpeg(), "image/jpeg")

        self.assertTrue(first.display_handle.released)
        self.assertFalse(second.display_handle.released)
        self.assertEqual(self.files(), [second.display_handle.path])

    def test_switching_to_text_releases_handle(self):
        holder = PoseSourceHolder(self.tmp)
        image = holder.set_image(make_jpeg(), "image/jpeg")

        source = holder.set_text("squat")

        self.assertIsInstance(source, TextPoseSource)
        self.assertTrue(image.display_handle.released)
        self.assertEqual(self.files(), [])

    def test_clear_then_close_release_once(self):
        holder = PoseSourceHolder(self.tmp)
        image = holder.set_image(make_jpeg(), "image/jpeg")
        self.assertIsInstance(holder.source, ImagePoseSource)

        holder.clear()
        holder.close()

        self.assertIsNone(holder.source)
        self.assertTrue(image.display_handle.released)
        self.assertEqual(self.files(), [])

    def test_closed_holder_refuses_images(self):
        holder = PoseSourceHolder(self.tmp)
        holder.close()
        with self.assertRaises(RuntimeError):
            holder.set_image(make_jpeg(), "image/jpeg")
        self.assertEqual(self.files(), [])


if __name__ == "__main__":
    unittest.main()
