from livepose.data.types import BodyPart, Keypoint
from livepose.data.utils import create_sample_image, format_keypoints
from livepose.inference.frame_source import VideoCaptureSource


def test_sample_image_is_black_figure_on_white():
    image = create_sample_image()
    
    assert image.shape == (800, 500, 3)
    assert (image[10, 10] == 255).all()
    assert (image[300, 250] == 0).all()   # body
    assert (image[600, 150] == 0).all()   # left foot


def test_sample_image_scales():
    image = create_sample_image(250, 400)
    assert image.shape == (400, 250, 3)
    assert (image[150, 125] == 0).all()


def test_format_keypoints():
    lines = format_keypoints([Keypoint(BodyPart.NOSE, (10.0, 20.5), 0.8766)])
    assert lines == ['NOSE: x=10.0, y=20.5, confidence=0.877']


def test_unopened_source_has_no_frames():
    source = VideoCaptureSource(0)
    assert source.read() is None
    assert list(source.frames()) == []
    source.close()
