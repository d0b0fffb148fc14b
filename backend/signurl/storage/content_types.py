"""
File path sanitization and content-type/header derivation.

Content type is a pure function of the lowercased file extension; unknown
extensions fall back to application/octet-stream.
"""
import posixpath
from typing import Any, Dict

from signurl.errors import ValidationError

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Mapping of file extensions to content types
EXTENSION_CONTENT_TYPES = {
    # Audio
    'mp3': 'audio/mpeg',
    'm4a': 'audio/mp4',
    'aac': 'audio/aac',
    'wav': 'audio/wav',
    # Images
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
}

AUDIO_EXTENSIONS = ('mp3', 'm4a', 'aac', 'wav')

# Content types whose upload URLs carry explicit metadata for iOS playback
IOS_AUDIO_CONTENT_TYPES = ('audio/mpeg', 'audio/mp4', 'audio/aac')

LONG_CACHE_CONTROL = "public, max-age=31536000"

# Cache operations
OPERATION_GET = "get"
OPERATION_AUDIO = "ios-audio"


def sanitize_file_path(file_path: Any) -> str:
    """
    Validate and normalize a client-supplied file path.

    Rejects missing, non-string and blank values and strips every ``..``
    sequence before the path is used in any downstream call.

    Raises:
        ValidationError: If the path is missing or empty
    """
    if file_path is None or file_path == "":
        raise ValidationError("File parameter is required")
    if not isinstance(file_path, str) or not file_path.strip():
        raise ValidationError("Invalid file parameter")

    sanitized = file_path.replace("..", "").strip()
    if not sanitized:
        raise ValidationError("Invalid file parameter")
    return sanitized


def get_extension(file_path: str) -> str:
    """Lowercased extension of the last path segment, without the dot."""
    _, ext = posixpath.splitext(posixpath.basename(file_path))
    return ext[1:].lower()


def content_type_for(file_path: str) -> str:
    return EXTENSION_CONTENT_TYPES.get(get_extension(file_path), DEFAULT_CONTENT_TYPE)


def is_audio_file(file_path: str) -> bool:
    return get_extension(file_path) in AUDIO_EXTENSIONS


def response_headers_for(operation: str, content_type: str) -> Dict[str, str]:
    """
    Response headers the signed GET URL should make the provider return.

    Audio is served with a long cache lifetime; the iOS audio flavour also
    advertises byte ranges for AVPlayer seeking.
    """
    headers = {
        "Content-Type": content_type,
        "Content-Disposition": "inline",
    }
    if operation == OPERATION_AUDIO or content_type.startswith("audio/"):
        headers["Cache-Control"] = LONG_CACHE_CONTROL
    if operation == OPERATION_AUDIO:
        headers["Accept-Ranges"] = "bytes"
    return headers


def upload_metadata_for(content_type: str) -> Dict[str, str]:
    """Object metadata attached to audio uploads; empty for everything else."""
    metadata: Dict[str, str] = {}
    if content_type.startswith("audio/"):
        metadata["Content-Disposition"] = "inline"
        metadata["Cache-Control"] = LONG_CACHE_CONTROL
        if content_type in IOS_AUDIO_CONTENT_TYPES:
            metadata["Content-Type"] = content_type
    return metadata
