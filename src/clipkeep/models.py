from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum


class ContentKind(str, Enum):
    TEXT = "text"
    URL = "url"
    CODE = "code"
    COLOR = "color"
    EMAIL = "email"
    PHONE = "phone"
    NUMBER = "number"
    JSON = "json"
    FILE = "file"
    IMAGE = "image"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        if self in (ContentKind.URL, ContentKind.JSON):
            return self.value.upper()
        return self.value.capitalize()


@dataclass(frozen=True)
class TextPayload:
    text: str


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    width: int
    height: int


@dataclass(frozen=True)
class FileListPayload:
    paths: tuple[str, ...]

    def __post_init__(self):
        # Accept any sequence of paths but store an immutable tuple
        object.__setattr__(self, "paths", tuple(str(p) for p in self.paths))


Payload = TextPayload | ImagePayload | FileListPayload


def payload_kind_is_consistent(payload: Payload, kind: ContentKind) -> bool:
    if isinstance(payload, ImagePayload):
        return kind == ContentKind.IMAGE
    if isinstance(payload, FileListPayload):
        return kind == ContentKind.FILE
    return kind != ContentKind.IMAGE


@dataclass(frozen=True)
class SourceApp:
    bundle_id: str | None
    name: str | None


@dataclass(frozen=True)
class CapturedContent:
    payload: Payload
    kind: ContentKind


@dataclass
class ClipboardEntry:
    id: str
    payload: Payload
    kind: ContentKind
    content_hash: str
    preview: str
    created_at: datetime
    use_count: int = 0
    source_app: SourceApp | None = None
    url_title: str | None = None
    seq: int = field(default=0, compare=False)

    @property
    def display_text(self) -> str:
        """Text that search and paste operate on."""
        if isinstance(self.payload, TextPayload):
            return self.payload.text
        if isinstance(self.payload, FileListPayload):
            return "\n".join(self.payload.paths)
        return self.preview

    @property
    def is_frequent(self) -> bool:
        return self.use_count >= 3

    @property
    def byte_size(self) -> int:
        if isinstance(self.payload, ImagePayload):
            return len(self.payload.data)
        return len(self.display_text.encode("utf-8"))

    def snapshot(self) -> "ClipboardEntry":
        return replace(self)
