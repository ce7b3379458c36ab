import hashlib
import struct
from pathlib import Path

from clipkeep.config import DATA_DIR, IMAGE_DIR, PREVIEW_LENGTH, PREVIEW_MAX_LINES
from clipkeep.models import FileListPayload, ImagePayload, Payload

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def compute_hash(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def payload_bytes(payload: Payload) -> bytes:
    """Normalized bytes of a payload, as fed to the content hash."""
    if isinstance(payload, ImagePayload):
        return payload.data
    if isinstance(payload, FileListPayload):
        return "\n".join(payload.paths).encode("utf-8")
    return payload.text.encode("utf-8")


def hash_payload(payload: Payload) -> str:
    return compute_hash(payload_bytes(payload))


def truncate_text(text: str, max_len: int) -> str:
    single_line = " ".join(text.split())
    if len(single_line) <= max_len:
        return single_line
    return single_line[: max_len - 3] + "..."


def generate_preview(text: str, max_len: int = PREVIEW_LENGTH, max_lines: int = PREVIEW_MAX_LINES) -> str:
    lines = text.strip().splitlines()
    first_lines = "\n".join(lines[:max_lines])
    if len(first_lines) <= max_len:
        return first_lines
    return first_lines[: max_len - 3] + "..."


def preview_for_payload(payload: Payload) -> str:
    if isinstance(payload, ImagePayload):
        return f"Image ({payload.width}×{payload.height})"
    if isinstance(payload, FileListPayload):
        names = [Path(p).name for p in payload.paths]
        if len(names) == 1:
            return names[0]
        suffix = "..." if len(names) > 3 else ""
        return f"{len(names)} files: " + ", ".join(names[:3]) + suffix
    return generate_preview(payload.text)


def ensure_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    IMAGE_DIR.mkdir(parents=True, exist_ok=True)


def get_image_dimensions(png_bytes: bytes) -> tuple[int, int]:
    """Width and height from the IHDR chunk, or (0, 0) for non-PNG data."""
    if len(png_bytes) < 24 or png_bytes[:8] != PNG_SIGNATURE:
        return (0, 0)
    return struct.unpack(">II", png_bytes[16:24])


NS_PNG_FILE_TYPE = 4
NS_INTERPOLATION_HIGH = 3


def _encode_png(bitmap_source) -> bytes | None:
    from AppKit import NSBitmapImageRep

    rep = NSBitmapImageRep.imageRepWithData_(bitmap_source)
    if not rep:
        return None
    encoded = rep.representationUsingType_properties_(NS_PNG_FILE_TYPE, None)
    return bytes(encoded) if encoded else None


def convert_to_png(image_bytes: bytes) -> bytes | None:
    """Re-encode image data (typically TIFF from the pasteboard) as PNG.

    Returns None if AppKit is unavailable or the data cannot be decoded.
    """
    if image_bytes[:8] == PNG_SIGNATURE:
        return image_bytes
    try:
        from Foundation import NSData

        return _encode_png(NSData.dataWithBytes_length_(image_bytes, len(image_bytes)))
    except Exception:
        return None


def create_thumbnail(image_path: str, thumb_path: str, size: tuple[int, int] = (32, 32)) -> bool:
    """Scale the image at ``image_path`` into a PNG at ``thumb_path``.

    Returns False when the source is missing, unreadable, or AppKit is absent.
    """
    if not Path(image_path).exists():
        return False
    try:
        from AppKit import NSGraphicsContext, NSImage

        source = NSImage.alloc().initWithContentsOfFile_(image_path)
        if not source:
            return False

        canvas = NSImage.alloc().initWithSize_(size)
        canvas.lockFocus()
        try:
            NSGraphicsContext.currentContext().setImageInterpolation_(NS_INTERPOLATION_HIGH)
            source.drawInRect_(((0, 0), size))
        finally:
            canvas.unlockFocus()

        png_bytes = _encode_png(canvas.TIFFRepresentation())
        if png_bytes is None:
            return False
        Path(thumb_path).write_bytes(png_bytes)
        return True
    except Exception:
        return False
