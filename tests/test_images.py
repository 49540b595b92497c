"""Tests for image transcoding and fetching helpers."""
import io
from unittest.mock import MagicMock

import pytest
import requests
from PIL import Image

from pagegrab.images import (
    ImageFetchError,
    detect_image_format,
    download_file,
    even_height_png,
    fetch_image_as_png,
    pad_to_even_height,
    transcode_to_png,
)


def _jpeg_bytes(size):
    buffer = io.BytesIO()
    Image.linear_gradient("L").resize(size).convert("RGB").save(buffer, format="JPEG")
    return buffer.getvalue()


def _session_returning(content, status_error=None):
    response = MagicMock()
    response.content = content
    response.headers = {"Content-Type": "application/octet-stream"}
    response.raise_for_status.side_effect = status_error
    session = MagicMock()
    session.get.return_value = response
    return session


def test_detect_image_format():
    assert detect_image_format(_jpeg_bytes((20, 20))) == "jpg"
    assert detect_image_format(b"<html></html>" * 10) is None


def test_pad_to_even_height_adds_one_row():
    padded = pad_to_even_height(Image.new("RGB", (10, 7), "black"))
    assert padded.size == (10, 8)
    assert padded.getpixel((0, 7)) == (255, 255, 255)


def test_pad_keeps_even_images():
    image = Image.new("RGB", (10, 8))
    assert pad_to_even_height(image) is image


def test_transcode_stores_even_height_png(tmp_path):
    destination = tmp_path / "0001.png"
    assert transcode_to_png(_jpeg_bytes((120, 91)), destination) == (120, 92)
    with Image.open(destination) as stored:
        assert stored.format == "PNG"


def test_transcode_rejects_garbage(tmp_path):
    with pytest.raises(ImageFetchError):
        transcode_to_png(b"\x00" * 200, tmp_path / "x.png")


def test_fetch_image_as_png(tmp_path):
    session = _session_returning(_jpeg_bytes((80, 60)))
    size = fetch_image_as_png(session, "https://cdn/slide-1.jpg", tmp_path / "0001.png")
    assert size == (80, 60)
    assert (tmp_path / "0001.png").exists()


def test_fetch_reports_http_errors(tmp_path):
    session = _session_returning(b"", status_error=requests.HTTPError("404 Client Error"))
    with pytest.raises(ImageFetchError, match="404"):
        fetch_image_as_png(session, "https://cdn/slide-1.jpg", tmp_path / "0001.png")


def test_fetch_rejects_non_images(tmp_path):
    session = _session_returning(b"<html>" + b" " * 500 + b"</html>")
    with pytest.raises(ImageFetchError, match="unsupported image type"):
        fetch_image_as_png(session, "https://cdn/slide-1.jpg", tmp_path / "0001.png")


def test_download_file_removes_partial_output(tmp_path):
    response = MagicMock()
    response.__enter__.return_value = response
    response.iter_content.side_effect = requests.ConnectionError("reset")
    session = MagicMock()
    session.get.return_value = response
    destination = tmp_path / "episode.mp3"

    with pytest.raises(requests.ConnectionError):
        download_file(session, "https://cdn/episode.mp3", destination)
    assert not destination.exists()


def test_download_file_writes_chunks(tmp_path):
    response = MagicMock()
    response.__enter__.return_value = response
    response.iter_content.return_value = [b"ID3", b"", b"data"]
    session = MagicMock()
    session.get.return_value = response
    destination = tmp_path / "episode.mp3"

    assert download_file(session, "https://cdn/episode.mp3", destination) == 7
    assert destination.read_bytes() == b"ID3data"


def test_even_height_png_pads_stored_screenshot(tmp_path):
    path = tmp_path / "0001.png"
    Image.new("RGBA", (24, 11), (10, 20, 30, 255)).save(path)

    assert even_height_png(path) == (24, 12)
    with Image.open(path) as stored:
        assert stored.size == (24, 12)


def test_even_height_png_leaves_even_files_alone(tmp_path):
    path = tmp_path / "0001.png"
    Image.new("RGB", (24, 12)).save(path)
    before = path.read_bytes()

    assert even_height_png(path) == (24, 12)
    assert path.read_bytes() == before
