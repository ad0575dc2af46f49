import pytest

from harvester.errors import StorageError
from harvester.storage import ImageStore, detect_image_format

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 64


def test_detect_image_format():
    assert detect_image_format(PNG) == "png"
    assert detect_image_format(JPEG) == "jpg"
    assert detect_image_format(b"not an image") is None


def test_write_creates_directory_and_picks_extension(tmp_path):
    store = ImageStore(tmp_path / "images")
    path = store.write("front", PNG)
    assert path == tmp_path / "images" / "front.png"
    assert path.read_bytes() == PNG


def test_unknown_payload_falls_back_to_jpeg(tmp_path):
    path = ImageStore(tmp_path).write("mystery", b"opaque")
    assert path.name == "mystery.jpeg"


def test_write_failure_raises_storage_error(tmp_path):
    blocker = tmp_path / "taken"
    blocker.write_text("a file where the directory should be")
    with pytest.raises(StorageError) as excinfo:
        ImageStore(blocker).write("front", PNG)
    assert excinfo.value.name == "front"
    assert isinstance(excinfo.value.__cause__, OSError)
