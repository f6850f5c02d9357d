"""
Transfer identifiers and storage key layout.

Every transfer owns the namespace ``transfers/<ID>/``. Its settings live in
the reserved object ``transfers/<ID>/.transfer.json`` which is never listed
or archived.
"""
import os
import re
import secrets

from slugify import slugify

from ..errors import InvalidRequest

ID_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ID_LENGTH = 6
NAMESPACE_ROOT = "transfers/"
METADATA_NAME = ".transfer.json"

_ID_RE = re.compile(rf"^[{ID_ALPHABET}]{{{ID_LENGTH}}}$")
_EXT_RE = re.compile(r"[^A-Za-z0-9.]+")
_SEGMENT_PATTERN = r"[^-a-zA-Z0-9_]+"


def new_transfer_id() -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


def normalize_transfer_id(raw: str) -> str:
    transfer_id = (raw or "").strip().upper()
    if not _ID_RE.match(transfer_id):
        raise InvalidRequest("invalid_id")
    return transfer_id


def transfer_namespace(transfer_id: str) -> str:
    return f"{NAMESPACE_ROOT}{transfer_id}/"


def metadata_key(transfer_id: str) -> str:
    return f"{transfer_namespace(transfer_id)}{METADATA_NAME}"


def is_metadata_key(key: str) -> bool:
    return key == METADATA_NAME or key.endswith("/" + METADATA_NAME)


def relative_key(namespace: str, key: str) -> str:
    return key[len(namespace):] if key.startswith(namespace) else key


def _sanitize_segment(segment: str) -> str:
    stem, ext = os.path.splitext(segment)
    safe_stem = slugify(stem, lowercase=False, regex_pattern=_SEGMENT_PATTERN)
    safe_ext = _EXT_RE.sub("", ext)
    if not safe_stem:
        return ""
    return f"{safe_stem}{safe_ext}" if safe_ext not in ("", ".") else safe_stem


def sanitize_relative_path(path: str) -> str:
    """Turn a client supplied path into a safe relative key.

    Traversal segments are dropped and every segment is slugified with case
    and extension preserved, so "../Photos/Día 1.JPG" becomes "Photos/Dia-1.JPG".
    """
    segments = []
    for part in (path or "").replace("\\", "/").split("/"):
        if part in ("", ".", ".."):
            continue
        safe = _sanitize_segment(part)
        if safe:
            segments.append(safe)
    if not segments:
        raise InvalidRequest("invalid_path")
    return "/".join(segments)
