# tests/test_image_service.py
import base64
from io import BytesIO

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from multihospital.core.exception_handler import BusinessHTTPException
from multihospital.services import image_service
from multihospital.services.image_service import (
    InlineImage,
    PathImage,
    build_image_ref,
    guess_media_type,
    image_item,
    read_image_upload,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def _upload(content: bytes, filename: str, content_type: str) -> UploadFile:
    return UploadFile(file=BytesIO(content), filename=filename, headers=Headers({"content-type": content_type}))


def test_no_image_has_no_ref():
    assert build_image_ref(None, "/hospitals/1/image") is None
    assert build_image_ref(b"", "/hospitals/1/image", mode="path") is None


def test_inline_mode_embeds_base64():
    ref = build_image_ref(PNG_BYTES, "/hospitals/1/image", mode="inline")

    assert ref == InlineImage(data=PNG_BYTES)
    item = ref.to_item()
    assert item.kind == "inline"
    assert base64.b64decode(item.data) == PNG_BYTES
    assert item.path is None


def test_path_mode_returns_relative_path():
    ref = build_image_ref(PNG_BYTES, "/departments/7/image", mode="PATH")

    assert ref == PathImage(path="/departments/7/image")
    item = ref.to_item()
    assert item.kind == "path"
    assert item.path == "/departments/7/image"
    assert item.data is None


def test_mode_follows_settings(monkeypatch):
    monkeypatch.setattr(image_service.settings, "IMAGE_REF_MODE", "path")

    assert image_item(PNG_BYTES, "/hospitals/3/image").kind == "path"


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError):
        build_image_ref(PNG_BYTES, "/hospitals/1/image", mode="s3")


def test_guess_media_type():
    assert guess_media_type(PNG_BYTES) == "image/png"
    assert guess_media_type(b"GIF89a....") == "image/gif"
    assert guess_media_type(b"\xff\xd8\xff\xe0rest") == "image/jpeg"
    assert guess_media_type(b"plain text") == "application/octet-stream"


async def test_read_upload_accepts_png():
    assert await read_image_upload(_upload(PNG_BYTES, "logo.png", "image/png")) == PNG_BYTES


async def test_read_upload_without_file():
    assert await read_image_upload(None) is None


async def test_read_upload_rejects_non_image():
    with pytest.raises(BusinessHTTPException):
        await read_image_upload(_upload(b"hello", "notes.txt", "text/plain"))


async def test_read_upload_rejects_unsupported_extension():
    with pytest.raises(BusinessHTTPException):
        await read_image_upload(_upload(PNG_BYTES, "logo.bmp", "image/bmp"))


async def test_read_upload_rejects_oversized(monkeypatch):
    monkeypatch.setattr(image_service.settings, "MAX_IMAGE_BYTES", 8)

    with pytest.raises(BusinessHTTPException):
        await read_image_upload(_upload(PNG_BYTES, "logo.png", "image/png"))
