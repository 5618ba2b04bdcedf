"""Tests for the content store and thumbnail cache."""

from PIL import Image as PILImage

import imaging
from store import IN, OUT, THUMB, ContentStore, fingerprint


def test_fingerprint_is_32_bit_signed_path_hash():
    assert fingerprint("") == 0
    assert fingerprint("a") == 97
    assert fingerprint("ab") == 97 * 31 + 98
    long_path = "/tmp/" + "x" * 500 + ".jpg"
    value = fingerprint(long_path)
    assert -(2**31) <= value < 2**31
    assert fingerprint(long_path) == value


def test_put_original_names_file_after_key(store, image_bytes):
    data = image_bytes(fmt="PNG")
    key, path = store.put_original(data, "png")
    assert path.name == f"{key}.in.png"
    assert path.read_bytes() == data
    assert store.find(key, IN) == path
    assert not list(store.root.glob("tmp_*"))


def test_put_and_get(store):
    store.put(-42, OUT, b"payload", "webp")
    assert store.find(-42, OUT).name == "-42.out.webp"
    assert store.get(-42, OUT) == b"payload"
    assert store.get(-42, IN) is None


def test_thumbnail_missing_output(store):
    assert store.get_thumbnail(12345) is None


def test_thumbnail_is_resized_and_cached(store, image_bytes, monkeypatch):
    store.put(7, OUT, image_bytes(1200, 800), "jpg")
    calls = []
    real_resize = imaging.resize_to_width

    def counting_resize(image, width):
        calls.append(width)
        return real_resize(image, width)

    monkeypatch.setattr(imaging, "resize_to_width", counting_resize)

    first = store.get_thumbnail(7)
    assert first == store.path_for(7, THUMB)
    first_bytes = first.read_bytes()
    with PILImage.open(first) as im:
        assert im.size == (600, 400)
        assert im.format == "JPEG"

    second = store.get_thumbnail(7)
    assert second == first
    assert second.read_bytes() == first_bytes
    assert calls == [600]


def test_thumbnail_width_is_fixed(tmp_path, image_bytes):
    store = ContentStore(tmp_path / "s", thumbnail_width=600)
    store.put(3, OUT, image_bytes(300, 150, fmt="PNG"), "png")
    with PILImage.open(store.get_thumbnail(3)) as im:
        assert im.size == (600, 300)


def test_undecodable_output_is_served_as_is(store):
    out = store.put(9, OUT, b"definitely not an image", "jpg")
    assert store.get_thumbnail(9) == out
    assert store.find(9, THUMB) is None


def test_remove_deletes_all_artifacts(store, image_bytes):
    key, _ = store.put_original(image_bytes(), "jpg")
    store.put(key, OUT, image_bytes(), "jpg")
    store.get_thumbnail(key)
    other = store.put(key + 1, OUT, b"x", "jpg")

    assert store.remove(key) == 3
    assert store.find(key, IN) is None
    assert store.find(key, OUT) is None
    assert store.find(key, THUMB) is None
    assert other.exists()
