import base64
import binascii
import io
import re
from typing import Optional, Tuple

from PIL import Image

_DATA_URL_RE = re.compile(r"^data:(?P<ct>[\w.+-]+/[\w.+-]+)?(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)

_EXT_BY_TYPE = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/heic": "heic",
}


def is_image(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.lower().startswith("image/")


def file_ext(filename: Optional[str], content_type: Optional[str] = None) -> str:
    """Extension used for the stored original; filename wins over content type."""
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].lower()
        if ext:
            return ext
    return _EXT_BY_TYPE.get((content_type or "").lower(), "jpg")


def to_data_url(raw: bytes, content_type: str = "image/jpeg") -> str:
    return f"data:{content_type};base64,{base64.b64encode(raw).decode()}"


def decode_data_url(url: str) -> Tuple[bytes, str]:
    m = _DATA_URL_RE.match(url or "")
    if not m:
        raise ValueError("not_a_data_url")
    ct = m.group("ct") or "application/octet-stream"
    data = m.group("data")
    if m.group("b64"):
        try:
            return base64.b64decode(data, validate=False), ct
        except (binascii.Error, ValueError) as exc:
            raise ValueError("invalid_base64") from exc
    return data.encode(), ct


def compress_jpeg(raw: bytes, quality: int = 70, max_side: Optional[int] = None) -> bytes:
    """Re-encode a frame as JPEG; quality is on PIL's 1-95 scale."""
    im = Image.open(io.BytesIO(raw)).convert("RGB")
    if max_side and max(im.size) > max_side:
        im.thumbnail((max_side, max_side))
    out = io.BytesIO()
    im.save(out, format="JPEG", quality=quality)
    return out.getvalue()
