"""Unit tests for the deck session controller."""
from __future__ import annotations

import dataclasses
import threading

import pytest
from PIL import Image

import deckmaker.controllers.session as session_module
from deckmaker.cache import RenderCache, override_cache
from deckmaker.controllers import IDLE_PROGRESS, DeckSessionController
from deckmaker.models import DeckResult, DeckSettings, GenerationProgress, GenerationStatus
from imaging.image_processor import ImageDecodeError


class FakeAssembler:
    """Stand-in for ``generate_deck`` recording its calls."""

    def __init__(self):
        self.calls = []
        self.fail = False

    def __call__(self, template, images, settings, on_progress=None, scale=1.0):
        self.calls.append((tuple(images), settings, scale))
        if on_progress is not None:
            on_progress(GenerationProgress(0, settings.deck_size, GenerationStatus.LOADING, "Loading template..."))
        if self.fail:
            if on_progress is not None:
                on_progress(GenerationProgress(0, settings.deck_size, GenerationStatus.ERROR, "boom"))
            raise ImageDecodeError("boom")
        if on_progress is not None:
            on_progress(GenerationProgress(settings.deck_size, settings.deck_size, GenerationStatus.COMPLETE, "Deck generated!"))
        size = (round(4080 * scale), round(4032 * scale))
        return DeckResult(image=Image.new("RGBA", size, (10, 20, 30, 255)), scale=scale)


@pytest.fixture
def assembler(monkeypatch):
    fake = FakeAssembler()
    monkeypatch.setattr(session_module, "generate_deck", fake)
    return fake


@pytest.fixture
def progress_log():
    return []


@pytest.fixture
def session(progress_log):
    with override_cache(RenderCache()):
        controller = DeckSessionController("template.png", on_progress=progress_log.append)
    yield controller
    controller.close()


def test_add_remove_and_reorder(session, make_source):
    a, b, c = make_source((1, 0, 0)), make_source((2, 0, 0)), make_source((3, 0, 0))
    session.add_images([a, b, c])
    assert session.images == (a, b, c)

    session.reorder_images([c.id, a.id, b.id])
    assert session.images == (c, a, b)

    removed = session.remove_image(a.id)
    assert removed is a
    assert a.released
    assert session.images == (c, b)

    with pytest.raises(KeyError):
        session.remove_image(a.id)


def test_reorder_requires_permutation(session, make_source):
    a, b = make_source((1, 0, 0)), make_source((2, 0, 0))
    session.add_images([a, b])
    with pytest.raises(ValueError):
        session.reorder_images([a.id])
    with pytest.raises(ValueError):
        session.reorder_images([a.id, a.id])


def test_duplicate_ids_rejected(session, make_source):
    a = make_source((1, 0, 0))
    session.add_images([a])
    with pytest.raises(ValueError):
        session.add_images([a])


def test_add_files_skips_invalid(session, tmp_path, caplog):
    good = tmp_path / "good.png"
    Image.new("RGB", (8, 8), "red").save(good)
    bad = tmp_path / "bad.txt"
    bad.write_text("nope")

    loaded = session.add_files([good, bad])

    assert [image.name for image in loaded] == ["good.png"]
    assert len(session.images) == 1
    assert "Skipping invalid image" in caplog.text


def test_preview_runs_at_preview_scale(session, assembler, make_source, progress_log):
    session.add_images([make_source((1, 0, 0))])
    result = session.regenerate_preview()

    assert result is session.preview
    assert assembler.calls[-1][2] == pytest.approx(0.25)
    assert result.image.size == (1020, 1008)
    assert progress_log[-1].status is GenerationStatus.COMPLETE


def test_preview_without_images_is_idle(session, assembler, progress_log):
    assert session.regenerate_preview() is None
    assert session.preview is None
    assert session.progress == IDLE_PROGRESS
    assert assembler.calls == []


def test_superseded_preview_is_discarded(session, assembler, make_source, progress_log):
    session.add_images([make_source((1, 0, 0))])
    first = session.regenerate_preview()

    stale = session.begin_request()
    latest = session.begin_request()
    progress_log.clear()

    assert session.regenerate_preview(stale) is None
    assert session.preview is first
    assert progress_log == []

    assert session.is_current(latest)
    assert session.regenerate_preview(latest) is not None


def test_edit_supersedes_in_flight_preview(session, make_source, monkeypatch):
    session.add_images([make_source((1, 0, 0))])
    started = threading.Event()
    release = threading.Event()
    fake = FakeAssembler()

    def slow(*args, **kwargs):
        started.set()
        release.wait(5)
        return fake(*args, **kwargs)

    monkeypatch.setattr(session_module, "generate_deck", slow)
    outcome = {}
    thread = threading.Thread(target=lambda: outcome.setdefault("result", session.regenerate_preview()))
    thread.start()
    started.wait(5)
    session.update_settings(DeckSettings(deck_size=10))
    release.set()
    thread.join(5)

    assert outcome["result"] is None
    assert session.preview is None


def test_failed_preview_keeps_previous(session, assembler, make_source, progress_log):
    session.add_images([make_source((1, 0, 0))])
    first = session.regenerate_preview()

    assembler.fail = True
    assert session.regenerate_preview() is None
    assert session.preview is first
    assert session.progress.status is GenerationStatus.ERROR
    assert session.progress.message == "boom"


def test_full_render_is_cached_until_inputs_change(session, assembler, make_source):
    session.add_images([make_source((1, 0, 0))])

    first = session.render_full()
    second = session.render_full()
    assert first is second
    assert len(assembler.calls) == 1
    assert assembler.calls[0][2] == 1.0

    session.update_settings(dataclasses.replace(session.settings, deck_size=54))
    third = session.render_full()
    assert third is not first
    assert len(assembler.calls) == 2

    session.add_images([make_source((2, 0, 0))])
    session.render_full()
    assert len(assembler.calls) == 3


def test_quality_change_reuses_render(session, assembler, make_source):
    session.add_images([make_source((1, 0, 0))])
    session.render_full()
    session.update_settings(dataclasses.replace(session.settings, jpeg_quality=0.5))
    session.render_full()
    assert len(assembler.calls) == 1


def test_downloads_share_one_render(session, assembler, make_source, tmp_path):
    session.add_images([make_source((1, 0, 0))])

    png = session.download_png(tmp_path)
    jpg = session.download_jpeg(tmp_path)

    assert png.name == "card_deck.png"
    assert jpg.name == "card_deck.jpg"
    assert len(assembler.calls) == 1
    with Image.open(png) as img:
        assert img.format == "PNG"
        assert img.size == (4080, 4032)
    with Image.open(jpg) as img:
        assert img.format == "JPEG"


def test_replacing_hidden_card_releases_old_one(session, make_source):
    back = make_source((0, 0, 0))
    other = make_source((9, 9, 9))
    session.set_hidden_card(back)
    session.update_settings(dataclasses.replace(session.settings, deck_size=20))
    assert not back.released

    session.set_hidden_card(other)
    assert back.released
    assert session.settings.hidden_card_image is other

    session.set_hidden_card(None)
    assert other.released


def test_close_releases_everything(progress_log, make_source):
    controller = DeckSessionController("template.png", cache=RenderCache())
    images = [make_source((1, 0, 0)), make_source((2, 0, 0))]
    back = make_source((0, 0, 0))
    controller.add_images(images)
    controller.set_hidden_card(back)

    controller.close()
    controller.close()

    assert all(image.released for image in images)
    assert back.released
    assert controller.images == ()
    with pytest.raises(RuntimeError):
        controller.add_images([make_source((3, 0, 0))])


def test_real_preview_end_to_end(template, make_source):
    controller = DeckSessionController(template, settings=DeckSettings(deck_size=3), cache=RenderCache())
    controller.add_images([make_source((255, 0, 0))])
    result = controller.regenerate_preview()
    assert result.image.size == (1020, 1008)
    assert controller.progress.status is GenerationStatus.COMPLETE
    controller.close()


@pytest.fixture
def real_session(template):
    with override_cache(RenderCache()):
        controller = DeckSessionController(template, settings=DeckSettings(deck_size=2))
    yield controller
    controller.close()


def test_clearing_hidden_card_keeps_listed_image(real_session, make_source):
    face = make_source((255, 0, 0))
    real_session.add_images([face])
    real_session.set_hidden_card(face)

    real_session.set_hidden_card(None)

    assert not face.released
    assert real_session.regenerate_preview() is not None

    real_session.remove_image(face.id)
    assert face.released


def test_removing_listed_hidden_card_keeps_it_alive(real_session, make_source):
    a, b = make_source((255, 0, 0)), make_source((0, 0, 255))
    real_session.add_images([a, b])
    real_session.set_hidden_card(b)

    real_session.remove_image(b.id)

    assert not b.released
    assert real_session.settings.hidden_card_image is b
    assert real_session.regenerate_preview() is not None
    assert real_session.progress.status is GenerationStatus.COMPLETE

    real_session.set_hidden_card(None)
    assert b.released
