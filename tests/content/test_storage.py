import io

import pytest
from werkzeug.datastructures import FileStorage

from src.shule_system.shule_system.content.storage import ContentFileStore, format_file_size, is_valid_mime_type
from src.shule_system.shule_system.core.exceptions import ValidationError


@pytest.mark.parametrize(
    "size, text",
    [
        (0, "0 Bytes"),
        (500, "500 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (1048576, "1 MB"),
        (5 * 1024 ** 3, "5 GB"),
    ],
)
def test_format_file_size(size, text):
    assert format_file_size(size) == text


def test_allowed_mime_types():
    assert is_valid_mime_type("application/pdf")
    assert is_valid_mime_type("VIDEO/MP4")
    assert not is_valid_mime_type("application/x-msdownload")
    assert not is_valid_mime_type(None)


def _upload(data=b"%PDF-1.4 lesson", name="Lesson 1.pdf", mimetype="application/pdf"):
    return FileStorage(stream=io.BytesIO(data), filename=name, content_type=mimetype)


def test_save_keeps_file_under_unique_name(tmp_path):
    store = ContentFileStore(str(tmp_path))
    stored = store.save(_upload())
    assert stored.file_path.endswith("-Lesson_1.pdf")
    assert stored.file_size == len(b"%PDF-1.4 lesson")
    assert stored.mime_type == "application/pdf"
    assert store.path_for(stored.file_path).read_bytes() == b"%PDF-1.4 lesson"


def test_rejects_disallowed_type(tmp_path):
    with pytest.raises(ValidationError):
        ContentFileStore(str(tmp_path)).save(_upload(name="run.exe", mimetype="application/x-msdownload"))


def test_rejects_oversized_file(tmp_path):
    store = ContentFileStore(str(tmp_path), max_size_mb=0)
    with pytest.raises(ValidationError) as exc:
        store.save(_upload())
    assert "too large" in exc.value.message
    assert list(tmp_path.iterdir()) == []


def test_delete_tolerates_missing_file(tmp_path):
    store = ContentFileStore(str(tmp_path))
    stored = store.save(_upload())
    store.delete(stored.file_path)
    store.delete(stored.file_path)
    store.delete(None)
    assert not store.path_for(stored.file_path).exists()
