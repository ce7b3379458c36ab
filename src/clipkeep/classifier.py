"""Content classification for captured clipboard text.

Rules are evaluated in order and the first match wins. Several patterns
overlap (a phone number is also a number, a JSON array may look like code),
so the order of ``RULES`` is significant.
"""

import json
import os
import re
from collections.abc import Callable
from urllib.parse import urlsplit

from clipkeep.models import ContentKind, FileListPayload, ImagePayload, Payload

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
PHONE_RE = re.compile(r"[+]?[(]?[0-9]{1,4}[)]?[-\s./0-9]{6,}")
HEX_COLOR_RE = re.compile(r"#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})")
NUMBER_RE = re.compile(r"-?[$€¥£]?[0-9]{1,3}(,?[0-9]{3})*(\.[0-9]+)?%?")

URL_SCHEMES = frozenset({"http", "https", "ftp", "file"})
PATH_PREFIXES = ("/", "~", "file://")
COLOR_FUNCTIONS = ("rgb(", "rgba(", "hsl(", "hsla(")

PHONE_MIN_DIGITS = 7
PHONE_MAX_DIGITS = 15

CODE_KEYWORDS = (
    "func ", "class ", "struct ", "enum ", "import ",
    "var ", "let ", "guard ", "@", "try ", "catch {",
    "extension ", "protocol ", "typealias ", ".self",
    "function ", "const ", "=> {", "export ",
    "def ", "if __name__", "from ",
    "public class", "private ", "protected ", "void ",
    "<?php", "<?=",
    "<html", "<!DOCTYPE", "<head", "<body",
    "SELECT ", "INSERT ", "UPDATE ", "DELETE ",
    "#include", "#define", "int main",
)

CODE_INDICATORS = (
    "() {", "();", "-> ", "=> ", "== ", "!= ", "&&", "||",
    "if (", "for (", "while (", "switch (", "return ",
    "= {", "do {", "} catch", ": [", "]()", "{ get", "{ set",
    "fatalError(", "print(", "guard let", "if let",
)
CODE_INDICATOR_THRESHOLD = 2

OTHER_RATIO_THRESHOLD = 0.5
OTHER_MIN_LENGTH = 10


def is_email(text: str) -> bool:
    return EMAIL_RE.fullmatch(text) is not None


def is_phone(text: str) -> bool:
    if PHONE_RE.fullmatch(text) is None:
        return False
    digits = sum(1 for ch in text if ch.isdigit())
    return PHONE_MIN_DIGITS <= digits <= PHONE_MAX_DIGITS


def is_url(text: str) -> bool:
    if any(ch.isspace() for ch in text):
        return False
    try:
        scheme = urlsplit(text).scheme
    except ValueError:
        return False
    return scheme.lower() in URL_SCHEMES


def is_existing_path(text: str) -> bool:
    """True for path-like text naming something that exists right now."""
    if not text.startswith(PATH_PREFIXES):
        return False
    path = os.path.expanduser(text.replace("file://", "", 1))
    try:
        return os.path.exists(path)
    except (OSError, ValueError):
        return False


def is_color(text: str) -> bool:
    if HEX_COLOR_RE.fullmatch(text):
        return True
    return text.lower().startswith(COLOR_FUNCTIONS)


def is_json(text: str) -> bool:
    if not ((text.startswith("{") and text.endswith("}")) or (text.startswith("[") and text.endswith("]"))):
        return False
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


def is_number(text: str) -> bool:
    return NUMBER_RE.fullmatch(text) is not None


def code_indicator_score(text: str) -> int:
    return sum(1 for indicator in CODE_INDICATORS if indicator in text)


def is_code(text: str) -> bool:
    if any(keyword in text for keyword in CODE_KEYWORDS):
        return True
    return code_indicator_score(text) >= CODE_INDICATOR_THRESHOLD


RULES: list[tuple[ContentKind, Callable[[str], bool]]] = [
    (ContentKind.EMAIL, is_email),
    (ContentKind.PHONE, is_phone),
    (ContentKind.URL, is_url),
    (ContentKind.FILE, is_existing_path),
    (ContentKind.COLOR, is_color),
    (ContentKind.JSON, is_json),
    (ContentKind.NUMBER, is_number),
    (ContentKind.CODE, is_code),
]


def _fallback_kind(text: str) -> ContentKind:
    readable = sum(1 for ch in text if ch.isalpha() or ch.isnumeric() or ch.isspace())
    if len(text) > OTHER_MIN_LENGTH and readable / len(text) < OTHER_RATIO_THRESHOLD:
        return ContentKind.OTHER
    return ContentKind.TEXT


def classify(text: str) -> ContentKind:
    """Return the content kind of a piece of clipboard text.

    Raises ValueError for empty or whitespace-only text; callers are expected
    to drop such content before classification.
    """
    trimmed = text.strip()
    if not trimmed:
        raise ValueError("cannot classify empty content")
    for kind, predicate in RULES:
        if predicate(trimmed):
            return kind
    return _fallback_kind(trimmed)


def classify_payload(payload: Payload) -> ContentKind:
    if isinstance(payload, ImagePayload):
        return ContentKind.IMAGE
    if isinstance(payload, FileListPayload):
        return ContentKind.FILE
    return classify(payload.text)
