import cv2
import numpy as np
import pytest

from models.image import Image
from models.comparison_stats import Severity
from models.exceptions import InvalidImageError
from pipeline.compare_images import compare, compare_files, highlight_on_test
from repositories.difference_repository import DifferenceRepository
from repositories.image_repository import ImageRepository


def test_black_vs_white_is_all_different(make_image):
    result = compare(make_image(4, 4, value=0), make_image(4, 4, value=255), 10)

    assert result.stats.total_pixels == 16
    assert result.stats.differing_pixels == 16
    assert result.stats.percentage_display == 100.00
    assert result.stats.severity is Severity.HIGH


def test_identical_images_have_no_difference(rng):
    pixels = rng.integers(0, 256, size=(10, 10, 3), dtype=np.uint8)
    reference = Image(pixels)
    test = Image(pixels.copy())

    for threshold in (0, 1, 128, 255):
        result = compare(reference, test, threshold)
        assert result.stats.differing_pixels == 0
        assert result.stats.percentage_display == 0.00
        assert result.stats.severity is Severity.LOW


def test_self_comparison_is_zero_for_every_threshold(rng):
    reference = Image(rng.integers(0, 256, size=(12, 9), dtype=np.uint8))
    for threshold in range(0, 256, 17):
        assert compare(reference, reference, threshold).stats.differing_pixels == 0


def test_smaller_test_image_is_resized_not_rejected(make_image):
    reference = make_image(100, 100, value=0)
    test = make_image(50, 50, value=200)

    result = compare(reference, test, 10)

    assert result.stats.total_pixels == 100 * 100
    assert result.stats.differing_pixels == 100 * 100
    assert result.overlay.pixels.shape == (100, 100, 3)
    assert result.mask.shape == (100, 100)


def test_total_pixels_follow_reference_geometry(rng):
    reference = Image(rng.integers(0, 256, size=(30, 70, 3), dtype=np.uint8))
    test = Image(rng.integers(0, 256, size=(45, 20, 3), dtype=np.uint8))

    assert compare(reference, test, 40).stats.total_pixels == 30 * 70


def test_single_unit_difference_counts_at_zero_threshold(make_image):
    reference = make_image(8, 8, value=100)
    test = make_image(8, 8, value=100)
    test.pixels[3, 5] = 101

    result = compare(reference, test, 0)

    assert result.stats.differing_pixels == 1
    assert result.mask[3, 5] == 255


def test_difference_equal_to_threshold_is_not_marked():
    reference = Image(np.zeros((3, 3), dtype=np.uint8))
    test_pixels = np.zeros((3, 3), dtype=np.uint8)
    test_pixels[0, 0] = 40
    test_pixels[2, 2] = 41

    result = compare(reference, Image(test_pixels), 40)

    assert result.stats.differing_pixels == 1
    assert result.mask[0, 0] == 0
    assert result.mask[2, 2] == 255


def test_differing_pixels_never_grow_with_threshold(rng):
    reference = Image(rng.integers(0, 256, size=(24, 24, 3), dtype=np.uint8))
    test = Image(rng.integers(0, 256, size=(24, 24, 3), dtype=np.uint8))

    counts = [compare(reference, test, t).stats.differing_pixels for t in range(0, 256, 5)]

    assert all(later <= earlier for earlier, later in zip(counts, counts[1:]))
    assert compare(reference, test, 255).stats.differing_pixels == 0


def test_prior_resize_to_same_size_changes_nothing(rng):
    reference = Image(rng.integers(0, 256, size=(16, 20, 3), dtype=np.uint8))
    test_pixels = rng.integers(0, 256, size=(16, 20, 3), dtype=np.uint8)
    resized = DifferenceRepository.resize(test_pixels, 20, 16)

    direct = compare(reference, Image(test_pixels), 25)
    pre_resized = compare(reference, Image(resized), 25)

    assert direct.stats == pre_resized.stats


def test_inputs_are_not_modified(rng):
    ref_pixels = rng.integers(0, 256, size=(10, 10, 3), dtype=np.uint8)
    test_pixels = rng.integers(0, 256, size=(5, 7, 3), dtype=np.uint8)
    ref_before, test_before = ref_pixels.copy(), test_pixels.copy()

    compare(Image(ref_pixels), Image(test_pixels), 0)

    assert np.array_equal(ref_pixels, ref_before)
    assert np.array_equal(test_pixels, test_before)


def test_overlay_is_red_on_black(make_image):
    reference = make_image(2, 2, value=0)
    test = make_image(2, 2, value=0)
    test.pixels[0, 1] = 255

    overlay = compare(reference, test, 10).overlay.pixels

    assert tuple(overlay[0, 1]) == (255, 0, 0)
    assert tuple(overlay[0, 0]) == (0, 0, 0)
    assert tuple(overlay[1, 1]) == (0, 0, 0)


def test_grayscale_reference_with_color_test(make_image):
    reference = make_image(6, 6, channels=1, value=0)
    test = make_image(6, 6, channels=3, value=255)

    result = compare(reference, test, 100)

    assert result.stats.differing_pixels == 36


def test_zero_area_reference_is_rejected(make_image):
    with pytest.raises(InvalidImageError):
        compare(Image(np.zeros((0, 5, 3), dtype=np.uint8)), make_image(5, 5), 10)


def test_zero_area_test_is_rejected(make_image):
    with pytest.raises(InvalidImageError):
        compare(make_image(5, 5), Image(np.zeros((5, 0), dtype=np.uint8)), 10)


@pytest.mark.parametrize("threshold", [-1, 256, 12.5, "10", True])
def test_bad_threshold_is_rejected(make_image, threshold):
    with pytest.raises(ValueError):
        compare(make_image(2, 2), make_image(2, 2), threshold)


def test_highlight_on_test_keeps_unchanged_pixels(make_image):
    reference = make_image(3, 3, value=10)
    test = make_image(3, 3, value=10)
    test.pixels[1, 1] = 200

    blended = highlight_on_test(reference, test, 20).pixels

    assert tuple(blended[1, 1]) == (255, 0, 0)
    assert tuple(blended[0, 0]) == (10, 10, 10)


def test_compare_files(tmp_path, make_image):
    ref_path = tmp_path / "ref.png"
    test_path = tmp_path / "test.png"
    ImageRepository.save(ImageRepository.create_image(make_image(8, 8, value=0).pixels, ref_path))
    ImageRepository.save(ImageRepository.create_image(make_image(8, 8, value=255).pixels, test_path))

    result = compare_files(ref_path, test_path, 10)

    assert result.stats.differing_pixels == 64


def test_compare_files_unreadable(tmp_path, make_image):
    ref_path = tmp_path / "ref.png"
    ImageRepository.save(ImageRepository.create_image(make_image(8, 8).pixels, ref_path))
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")

    with pytest.raises(InvalidImageError):
        compare_files(ref_path, broken, 10)


def test_compare_files_decode_timeout(tmp_path, make_image, monkeypatch):
    path = tmp_path / "ref.png"
    ImageRepository.save(ImageRepository.create_image(make_image(4, 4).pixels, path))

    def _slow_imread(*args, **kwargs):
        raise TimeoutError("cv2.imread timed-out after 5s")

    monkeypatch.setattr(cv2, "imread", _slow_imread)

    with pytest.raises(InvalidImageError):
        compare_files(path, path, 10)
