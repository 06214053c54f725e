"""Archive reference resolution (path or base64) and secret loading."""

import base64
import binascii
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ArchiveNotFoundError, InvalidInputError, MissingInputError
from .workspace import Workspace


@dataclass(frozen=True)
class Credentials:
    store_password: str = field(repr=False)
    alias: str
    key_password: str = field(repr=False)


@dataclass(frozen=True)
class VerificationRequest:
    """
    What to verify. Exactly one of archive_path / archive_base64 is expected;
    when both are given archive_path wins and the base64 text is ignored.
    """

    credentials: Credentials
    archive_path: str | None = None
    archive_base64: str | None = field(default=None, repr=False)


def load_password(path: str | Path) -> str:
    """
    Read a password from file. Strips trailing newline.
    Content must not be logged or echoed.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Password file not found: {path}")
    if not p.is_file():
        raise ValueError(f"Not a file: {path}")
    return p.read_bytes().rstrip(b"\n\r").decode("utf-8")


def _present(value: str | None) -> bool:
    return value is not None and value.strip() != ""


def decode_archive(text: str) -> bytes:
    """Strict base64 decode; line breaks and other whitespace are ignored."""
    compact = "".join(text.split())
    try:
        data = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError(f"archive-base64 is not valid base64: {e}") from e
    if not data:
        raise InvalidInputError("archive-base64 decoded to zero bytes")
    return data


def write_archive(path: Path, data: bytes, logger: logging.Logger | None = None) -> None:
    """Write decoded archive bytes with 0o600."""
    path.write_bytes(data)
    try:
        path.chmod(0o600)
    except OSError:
        if logger:
            logger.warning("Could not set file permissions 0o600 on %s (e.g. Windows)", path)


def resolve_archive(
    request: VerificationRequest,
    workspace: Workspace,
    logger: logging.Logger | None = None,
) -> Path:
    """
    Turn the request's archive reference into a readable file path.
    Base64 input is decoded into a fresh file inside workspace.
    """
    has_path = _present(request.archive_path)
    has_b64 = _present(request.archive_base64)

    if not has_path and not has_b64:
        raise MissingInputError("Either archive-path or archive-base64 must be provided")

    if has_path:
        if has_b64 and logger:
            logger.info("Both archive-path and archive-base64 given; using archive-path")
        path = Path(request.archive_path.strip())
    else:
        data = decode_archive(request.archive_base64)
        path = workspace.new_path("archive", ".keystore")
        write_archive(path, data, logger=logger)
        if logger:
            logger.info("Decoded archive-base64 into temporary file (%d bytes)", len(data))

    if not path.exists():
        raise ArchiveNotFoundError(f"Keystore file not found: {path}")
    if not path.is_file():
        raise ArchiveNotFoundError(f"Keystore path is not a file: {path}")
    if not os.access(path, os.R_OK):
        raise ArchiveNotFoundError(f"Keystore file is not readable: {path}")
    return path
