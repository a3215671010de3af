"""图片数据工具：data URI 解析、MIME 嗅探"""
from __future__ import annotations

import base64
import binascii
import io
import re

from PIL import Image, UnidentifiedImageError

DEFAULT_MIME = "image/jpeg"

_HEADER_MIME = re.compile(r":(.*?);")


def is_data_uri(value: str | None) -> bool:
    return bool(value) and value.startswith("data:")


def is_remote_url(value: str | None) -> bool:
    return bool(value) and value.startswith(("http://", "https://"))


def sniff_mime(payload: str) -> str | None:
    """用 Pillow 识别 base64 图片的 MIME，无法识别返回 None"""
    try:
        raw = base64.b64decode(payload, validate=False)
        with Image.open(io.BytesIO(raw)) as img:
            fmt = img.format
    except (binascii.Error, ValueError, UnidentifiedImageError, OSError):
        return None
    if not fmt:
        return None
    return Image.MIME.get(fmt.upper())


def split_data_uri(value: str) -> tuple[str, str]:
    """data URI -> (mime_type, base64 数据)

    头部没有 MIME 时尝试嗅探，仍然失败则回退为 image/jpeg。
    不带 data: 前缀的字符串视为裸 base64。
    """
    if "," in value and value.startswith("data:"):
        header, data = value.split(",", 1)
        match = _HEADER_MIME.search(header)
        if match and match.group(1):
            return match.group(1), data
    else:
        data = value
    return sniff_mime(data) or DEFAULT_MIME, data


def to_data_uri(data: str, mime_type: str) -> str:
    return f"data:{mime_type};base64,{data}"
