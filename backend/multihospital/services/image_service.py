"""
图片处理

医院/科室图片以原始字节存入数据库。对外统一通过 ImageRef 表示:
- InlineImage: 直接内联 base64 数据
- PathImage: 返回原始图片下载接口的相对路径
使用哪一种由配置 IMAGE_REF_MODE 决定, 不随接口变化。
"""
from dataclasses import dataclass
from typing import Optional, Union
import base64
import os
import logging

from fastapi import UploadFile

from multihospital.core.config import settings
from multihospital.core.exception_handler import BusinessHTTPException
from multihospital.schemas.image import ImageRefItem

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif"}

# 图片头部特征, 用于下载接口推断 media type
_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\xff\xd8\xff", "image/jpeg"),
)


@dataclass(frozen=True)
class InlineImage:
    data: bytes

    def to_item(self) -> ImageRefItem:
        return ImageRefItem(kind="inline", data=base64.b64encode(self.data).decode("ascii"))


@dataclass(frozen=True)
class PathImage:
    path: str

    def to_item(self) -> ImageRefItem:
        return ImageRefItem(kind="path", path=self.path)


ImageRef = Union[InlineImage, PathImage]


def build_image_ref(blob: Optional[bytes], path: str, mode: Optional[str] = None) -> Optional[ImageRef]:
    """没有图片时返回 None; path 为该实体原始图片接口的相对路径"""
    if not blob:
        return None
    mode = (mode or settings.IMAGE_REF_MODE).lower()
    if mode == "path":
        return PathImage(path=path)
    if mode == "inline":
        return InlineImage(data=blob)
    raise ValueError(f"未知的 IMAGE_REF_MODE: {mode}")


def image_item(blob: Optional[bytes], path: str) -> Optional[ImageRefItem]:
    ref = build_image_ref(blob, path)
    return ref.to_item() if ref else None


def guess_media_type(blob: bytes) -> str:
    for signature, media_type in _SIGNATURES:
        if blob.startswith(signature):
            return media_type
    return "application/octet-stream"


async def read_image_upload(upload: Optional[UploadFile]) -> Optional[bytes]:
    """读取上传图片并校验类型/扩展名/大小; 未上传或空文件返回 None"""
    if upload is None or not upload.filename:
        return None

    # 验证文件类型
    content_type = (upload.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="只允许上传图片文件",
            status_code=400
        )

    file_extension = os.path.splitext(upload.filename)[1].lower()
    if file_extension not in ALLOWED_EXTENSIONS:
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="不支持的图片格式",
            status_code=400
        )

    content = await upload.read()
    if not content:
        return None
    if len(content) > settings.MAX_IMAGE_BYTES:
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg=f"图片大小不能超过 {settings.MAX_IMAGE_BYTES} 字节",
            status_code=400
        )
    return content
