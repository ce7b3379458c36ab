"""Thin wrapper over the macOS general pasteboard.

AppKit is imported lazily so the rest of the package works without pyobjc.
The type identifiers below are the raw values of the corresponding AppKit
constants.
"""

from clipkeep.models import SourceApp

TYPE_STRING = "public.utf8-plain-text"
TYPE_URL = "public.url"
TYPE_PNG = "public.png"
TYPE_TIFF = "public.tiff"
TYPE_FILENAMES = "NSFilenamesPboardType"


class MacPasteboard:
    def __init__(self, pasteboard=None, workspace=None):
        if pasteboard is None:
            from AppKit import NSPasteboard

            pasteboard = NSPasteboard.generalPasteboard()
        self._pasteboard = pasteboard
        self._workspace = workspace

    def change_count(self) -> int:
        return int(self._pasteboard.changeCount())

    def types(self) -> list[str]:
        types = self._pasteboard.types()
        if types is None:
            return []
        return [str(t) for t in types]

    def read_string(self, pb_type: str = TYPE_STRING) -> str | None:
        value = self._pasteboard.stringForType_(pb_type)
        return str(value) if value is not None else None

    def read_data(self, pb_type: str) -> bytes | None:
        data = self._pasteboard.dataForType_(pb_type)
        return bytes(data) if data is not None else None

    def read_file_paths(self) -> list[str]:
        filenames = self._pasteboard.propertyListForType_(TYPE_FILENAMES)
        if not filenames:
            return []
        return [str(f) for f in filenames]

    def write_string(self, text: str) -> None:
        self._pasteboard.clearContents()
        self._pasteboard.setString_forType_(text, TYPE_STRING)

    def write_image(self, png_bytes: bytes) -> None:
        from Foundation import NSData

        data = NSData.dataWithBytes_length_(png_bytes, len(png_bytes))
        self._pasteboard.clearContents()
        self._pasteboard.setData_forType_(data, TYPE_PNG)

    def frontmost_app(self) -> SourceApp | None:
        workspace = self._workspace
        if workspace is None:
            try:
                from AppKit import NSWorkspace

                workspace = NSWorkspace.sharedWorkspace()
            except ImportError:
                return None
        app = workspace.frontmostApplication()
        if app is None:
            return None
        return SourceApp(app.bundleIdentifier(), app.localizedName())
