"""Utility functions and constants for remarko."""

from datetime import datetime, timezone
from typing import Optional

# =============================================================================
# Device layout
# =============================================================================

# Directory holding the flat object store on the device
DEFAULT_DOCUMENT_DIR: str = "/home/root/.local/share/remarkable/xochitl"

# Suffix of the JSON sidecar describing each object
METADATA_SUFFIX: str = ".metadata"

# Parent value marking an object as deleted
TRASH_PARENT: str = "trash"

# Document containers that may carry the same logical document
DOCUMENT_EXTENSIONS: tuple[str, ...] = (".pdf", ".epub")

# Extension assumed for objects whose visible name has none
DEFAULT_DOCUMENT_EXTENSION: str = ".pdf"

# Values below this are treated as seconds rather than milliseconds
_MILLISECONDS_THRESHOLD: int = 10**11

# Characters that cannot appear in a single local path component
_UNSAFE_NAME_CHARACTERS: tuple[str, ...] = ("/", "\\", "\0")


def file_stem(name: str, extensions: tuple[str, ...] = DOCUMENT_EXTENSIONS) -> str:
    """Strip exactly one trailing document extension from a file name.

    Args:
        name: Visible file name
        extensions: Recognized extensions (with leading dot)

    Returns:
        The name without its extension, or the name unchanged if it
        does not end with a recognized extension

    Examples:
        >>> file_stem("Book.pdf")
        'Book'
        >>> file_stem("Book.pdf.pdf")
        'Book.pdf'
        >>> file_stem("notes.txt")
        'notes.txt'
    """
    for extension in extensions:
        if name.endswith(extension):
            return name[: -len(extension)]
    return name


def document_extension(
    name: str, extensions: tuple[str, ...] = DOCUMENT_EXTENSIONS
) -> Optional[str]:
    """Return the recognized document extension of a name, if any."""
    for extension in extensions:
        if name.endswith(extension):
            return extension
    return None


def safe_path_component(name: str) -> str:
    """Map a visible name to one local path component.

    Path separators become ``_``, and the names ``""``, ``.`` and ``..`` are
    replaced by underscores, so joining the result onto a directory never
    leaves that directory.

    Examples:
        >>> safe_path_component("1/2 notes.pdf")
        '1_2 notes.pdf'
        >>> safe_path_component("../escaped.pdf")
        '.._escaped.pdf'
        >>> safe_path_component("..")
        '__'
    """
    for character in _UNSAFE_NAME_CHARACTERS:
        name = name.replace(character, "_")
    if name in ("", ".", ".."):
        return "_" * max(len(name), 1)
    return name


def parse_last_modified(value: Optional[str]) -> Optional[datetime]:
    """Parse a device ``lastModified`` value.

    The device stores milliseconds since the epoch as a string. Values small
    enough to be seconds are accepted as seconds.

    Args:
        value: Timestamp string from a metadata sidecar

    Returns:
        Timezone-aware UTC datetime, or None if the value cannot be parsed
    """
    if not value:
        return None

    try:
        timestamp = int(value)
    except (TypeError, ValueError):
        return None

    if abs(timestamp) >= _MILLISECONDS_THRESHOLD:
        timestamp_seconds = timestamp / 1000
    else:
        timestamp_seconds = float(timestamp)

    try:
        return datetime.fromtimestamp(timestamp_seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def format_timestamp(dt: Optional[datetime]) -> str:
    """Format a datetime for display, or return "-" when unknown."""
    if dt is None:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def get_hashes_from_ls_output(output: str) -> list[str]:
    """Extract object hashes from an ``ls`` of the document directory.

    Only metadata sidecars name an object; every other file in the store
    (content, thumbnails, page data) is ignored.

    Args:
        output: Raw stdout of ``ls``

    Returns:
        Hashes in listing order, without duplicates
    """
    hashes: list[str] = []
    seen: set[str] = set()

    for line in output.split():
        name = line.strip()
        if not name.endswith(METADATA_SUFFIX):
            continue
        hash_value = name[: -len(METADATA_SUFFIX)]
        if hash_value and hash_value not in seen:
            seen.add(hash_value)
            hashes.append(hash_value)

    return hashes


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Human-readable size string (e.g., "1.5 MB")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"
