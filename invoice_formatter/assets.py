"""
Banner asset resolution.

The banner path in the render configuration is either a URL / data URI,
which the renderer references directly, or a file name relative to the
project's config directory, which is read here and embedded.
"""

import base64
from pathlib import Path
from typing import Optional, Union

from .config import ASSET_DIR_NAME, logger
from .exceptions import AssetUnavailable

_IMAGE_SIGNATURES: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"RIFF", "image/webp"),
    (b"<svg", "image/svg+xml"),
    (b"<?xml", "image/svg+xml"),
]


def is_remote_reference(path: str) -> bool:
    """True for banner paths the renderer can reference without reading a file."""
    return path.startswith("http") or path.startswith("data:")


def strip_asset_prefix(path: str) -> str:
    """Drop a leading ``./`` and config directory component from a banner path."""
    if path.startswith("./"):
        path = path[2:]
    prefix = f"{ASSET_DIR_NAME}/"
    if path.startswith(prefix):
        path = path[len(prefix):]
    return path


def guess_image_type(data: bytes) -> str:
    """Guess the MIME type of image bytes from their signature."""
    head = data[:16].lstrip()
    for signature, mime in _IMAGE_SIGNATURES:
        if head.startswith(signature):
            return mime
    return "image/png"


def to_data_uri(data: bytes) -> str:
    """Encode image bytes as a base64 data URI."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{guess_image_type(data)};base64,{encoded}"


def read_asset(config_dir: Path, relative_path: str) -> bytes:
    """
    Read an asset file from the config directory.

    Raises:
        AssetUnavailable: If the file is missing or unreadable
    """
    asset_path = config_dir / strip_asset_prefix(relative_path)
    try:
        return asset_path.read_bytes()
    except OSError as e:
        raise AssetUnavailable(
            f"Could not read asset: {asset_path}",
            {"reason": e.strerror or str(e)},
        ) from e


def load_banner(banner_path: str, config_dir: Optional[Union[str, Path]]) -> Optional[bytes]:
    """
    Resolve the configured banner to image bytes.

    Returns None when no banner is configured, when the banner is a URL or
    data URI, when no config directory is known, or when the file cannot be
    read. A missing file is logged, never raised.
    """
    if not banner_path or config_dir is None or is_remote_reference(banner_path):
        return None

    try:
        return read_asset(Path(config_dir), banner_path)
    except AssetUnavailable as e:
        logger.warning(f"Banner not loaded, falling back to path reference: {e}")
        return None
