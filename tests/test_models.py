import dataclasses

import pytest

from deckmaker.models import DeckSettings, GenerationStatus, SourceImage
from imaging.image_processor import ImageDecodeError


def test_source_image_ids_are_unique(make_source):
    a = make_source((255, 0, 0))
    b = make_source((255, 0, 0))
    assert a.id != b.id


def test_source_image_reference_by_scale(make_source):
    image = make_source((255, 0, 0))
    assert image.reference(1) != image.reference(0.25)
    assert image.reference(0.25)[:2] == b"\xff\xd8"  # JPEG thumbnail


def test_from_path_uses_file_name(tmp_path):
    from PIL import Image

    path = tmp_path / "ace.png"
    Image.new("RGB", (8, 8), "red").save(path)
    image = SourceImage.from_path(path)
    assert image.name == "ace.png"


def test_release_is_idempotent(make_source):
    image = make_source((0, 0, 255))
    assert image.release() is True
    assert image.release() is False
    assert image.released
    with pytest.raises(ImageDecodeError):
        image.reference(1)


def test_release_waits_for_pins(make_source):
    image = make_source((0, 0, 255))
    with image.pinned():
        image.release()
        assert not image.released
        assert image.reference(1)
    assert image.released


def test_pinning_a_released_image_fails(make_source):
    image = make_source((0, 0, 255))
    image.release()
    with pytest.raises(ImageDecodeError):
        with image.pinned():
            pass


def test_settings_defaults():
    settings = DeckSettings()
    assert settings.deck_size == 52
    assert settings.aspect_ratio_tolerance == 0
    assert settings.hidden_card_image is None
    assert settings.jpeg_quality == pytest.approx(0.92)


@pytest.mark.parametrize(
    "kwargs",
    [{"deck_size": 0}, {"deck_size": 70}, {"aspect_ratio_tolerance": 1.5}, {"jpeg_quality": -0.1}],
)
def test_settings_validation(kwargs):
    with pytest.raises(ValueError):
        DeckSettings(**kwargs)


def test_settings_replace_validates():
    with pytest.raises(ValueError):
        dataclasses.replace(DeckSettings(), deck_size=100)


def test_status_values():
    assert [s.value for s in GenerationStatus] == ["idle", "loading", "generating", "complete", "error"]
