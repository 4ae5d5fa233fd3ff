"""Supported formats, extension detection and conversion options."""

from app.constants import EXTENSION_FORMAT_MAP
from app.models.conversion import FormatKey


def detect_format(filename: str) -> FormatKey | None:
    """Map a filename's extension to a FormatKey, case-insensitively.

    Returns None for unknown extensions and for names without one.
    """
    if "." not in filename:
        return None
    extension = filename.rsplit(".", 1)[-1].lower()
    return EXTENSION_FORMAT_MAP.get(extension)


def conversion_targets(source: FormatKey) -> tuple[FormatKey, ...]:
    """All formats except the source, in declaration order."""
    return tuple(f for f in FormatKey if f != source)


def output_filename(original_name: str, target: FormatKey) -> str:
    """Replace the last extension of original_name with the target's."""
    stem = original_name.rsplit(".", 1)[0] if "." in original_name else original_name
    return f"{stem}.{target.value}"


def accepted_extensions() -> list[str]:
    return [f".{ext}" for ext in EXTENSION_FORMAT_MAP]
