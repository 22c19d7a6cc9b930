# Overview: Service-layer operations for image uploads; normalizes with Pillow and stores on disk.

"""
Image storage.

Uploaded images are decoded with Pillow (rejecting anything that is not an
image), downscaled to UPLOAD_MAX_WIDTH, re-encoded as WEBP and written under
UPLOAD_FOLDER/<folder>/. The returned dict mirrors a hosted-image API:
{public_id, secure_url, bytes, width, height, format}.
"""

import hashlib
import io
import os
import re

from flask import current_app
from PIL import Image, UnidentifiedImageError

from ..validation import ValidationError


_SAFE = re.compile(r"[^a-zA-Z0-9_-]+")


def _safe_segment(value: str | None, default: str) -> str:
    cleaned = _SAFE.sub("-", (value or "").strip()).strip("-")
    return cleaned[:64] or default


def process_to_webp(in_fp, max_w: int = 1600, quality: int = 86):
    try:
        im = Image.open(in_fp)
        im.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        raise ValidationError("File is not a valid image")

    im = im.convert("RGBA" if im.mode in ("RGBA", "LA", "P") else "RGB")
    w, h = im.size
    if w > max_w:
        nh = int(h * (max_w / float(w)))
        im = im.resize((max_w, nh), Image.LANCZOS)
        w, h = im.size
    buf = io.BytesIO()
    im.save(buf, format="WEBP", quality=quality, method=6)
    return buf.getvalue(), w, h


def store_image(stream, folder: str | None = None, tag: str | None = None) -> dict:
    if stream is None:
        raise ValidationError("No file uploaded")

    cfg = current_app.config
    data, width, height = process_to_webp(stream, max_w=int(cfg.get("UPLOAD_MAX_WIDTH", 1600)))

    folder = _safe_segment(folder, "misc")
    digest = hashlib.sha256(data).hexdigest()[:24]
    name = f"{_safe_segment(tag, 'image')}-{digest}"
    public_id = f"{folder}/{name}"

    base_dir = cfg.get("UPLOAD_FOLDER", "uploads")
    if not os.path.isabs(base_dir):
        base_dir = os.path.join(current_app.instance_path, base_dir)
    target = os.path.join(base_dir, folder, f"{name}.webp")
    os.makedirs(os.path.dirname(target), exist_ok=True)
    with open(target, "wb") as fh:
        fh.write(data)

    current_app.logger.info("Stored image %s (%d bytes)", public_id, len(data))
    base_url = cfg.get("UPLOAD_BASE_URL", "/uploads").rstrip("/")
    return {
        "public_id": public_id,
        "secure_url": f"{base_url}/{public_id}.webp",
        "bytes": len(data),
        "width": width,
        "height": height,
        "format": "webp",
    }


def resolve_path(public_path: str) -> tuple[str, str]:
    """(directory, filename) for serving a stored file back; rejects traversal."""
    parts = [p for p in (public_path or "").split("/") if p]
    if len(parts) != 2 or any(p in (".", "..") for p in parts):
        raise ValidationError("Invalid path")
    base_dir = current_app.config.get("UPLOAD_FOLDER", "uploads")
    if not os.path.isabs(base_dir):
        base_dir = os.path.join(current_app.instance_path, base_dir)
    return os.path.join(base_dir, _safe_segment(parts[0], "misc")), parts[1]
