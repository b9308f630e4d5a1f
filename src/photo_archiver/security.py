"""
Name sanitization for the Photo Archiver service.

Archive filenames and ZIP entry names are derived from user-controlled
metadata (event display names, photo ids, file type hints). Everything that
ends up as a name inside or on an archive passes through this module so that
the archives we publish can be extracted safely on any platform.

The rules are deliberately narrow:
- Only ``[A-Za-z0-9._-]`` survives; every other run of characters becomes ``_``
- Accents are folded to their base letters before filtering
- Leading and trailing dots, dashes and underscores are stripped, which also
  removes ``.``/``..`` style components
- Windows reserved device names (``CON``, ``LPT1``...) are defused
- Results are length-capped
"""

import re
import unicodedata

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_REPEATED_UNDERSCORES = re.compile(r"_{2,}")
_EDGE_CHARS = "._-"

# Windows reserved device names (case-insensitive)
_WINDOWS_DEVICE_NAMES: set[str] = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9"
}

_EXTENSION_ALIASES: dict[str, str] = {
    "jpeg": "jpg",
    "pjpeg": "jpg",
    "tiff": "tif",
    "x-png": "png",
    "svg+xml": "svg",
}

DEFAULT_ARCHIVE_NAME = "photos"
DEFAULT_EXTENSION = "jpg"


def _fold_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    return "".join(c for c in normalized if not unicodedata.combining(c))


def sanitize_path_component(value: str | None, max_length: int = 128) -> str:
    """
    Reduce *value* to a single safe path component.

    Returns an empty string when nothing safe is left, so callers can decide
    on their own fallback.

    Examples:
        >>> sanitize_path_component("Summer Party 2024!")
        'Summer_Party_2024'

        >>> sanitize_path_component("../../etc/passwd")
        'etc_passwd'
    """
    if not isinstance(value, str):
        return ""
    if max_length <= 0:
        raise ValueError("max_length must be a positive integer")

    cleaned = _UNSAFE_CHARS.sub("_", _fold_accents(value))
    cleaned = _REPEATED_UNDERSCORES.sub("_", cleaned).strip(_EDGE_CHARS)
    cleaned = cleaned[:max_length].rstrip(_EDGE_CHARS)

    base, dot, rest = cleaned.partition(".")
    if base.upper() in _WINDOWS_DEVICE_NAMES:
        cleaned = f"{base}_{dot}{rest}"[:max_length]
    return cleaned


def sanitize_archive_name(
    name: str | None,
    max_length: int = 64,
    fallback: str = DEFAULT_ARCHIVE_NAME,
) -> str:
    """
    Turn an event's display name into the base name of its archive files.

    The result never carries an extension; ``.zip`` and any part suffix are
    appended by the caller. An unusable name falls back to *fallback*.
    """
    return sanitize_path_component(name, max_length=max_length) or fallback


def normalize_extension(file_type: str | None) -> str:
    """
    Map a file type hint to a bare lowercase extension.

    Accepts MIME types (``image/jpeg``), dotted extensions (``.PNG``) and bare
    extensions (``heic``). Unknown or unusable hints yield ``jpg``.
    """
    if not isinstance(file_type, str) or not file_type.strip():
        return DEFAULT_EXTENSION

    hint = file_type.strip().lower()
    if "/" in hint:
        hint = hint.rsplit("/", 1)[1]
    hint = hint.split(";", 1)[0].strip().lstrip(".")
    hint = _EXTENSION_ALIASES.get(hint, hint)

    extension = sanitize_path_component(hint, max_length=10).replace(".", "")
    return extension or DEFAULT_EXTENSION
