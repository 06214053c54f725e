"""Keystore type detection from verbose keytool listings."""

import logging
import re
from enum import Enum
from pathlib import Path

from .errors import ExternalToolError, TypeDetectionError
from .keytool import Keytool

_TYPE_LINE = re.compile(r"^\s*keystore type:\s*(\S+)", re.IGNORECASE | re.MULTILINE)


class ArchiveType(Enum):
    PKCS12 = "PKCS12"
    JKS = "JKS"
    UNKNOWN = "UNKNOWN"


def parse_archive_type(text: str) -> ArchiveType | None:
    """
    Map the first "Keystore type: <token>" line to an ArchiveType.
    Returns None when the output has no such line.
    """
    m = _TYPE_LINE.search(text or "")
    if m is None:
        return None
    token = m.group(1).upper()
    if token == ArchiveType.PKCS12.value:
        return ArchiveType.PKCS12
    if token == ArchiveType.JKS.value:
        return ArchiveType.JKS
    return ArchiveType.UNKNOWN


def detect_type(
    keytool: Keytool,
    archive_path: str | Path,
    store_password: str,
    logger: logging.Logger | None = None,
) -> ArchiveType:
    """
    Run a verbose listing and parse the reported type.
    A failed keytool call raises TypeDetectionError; it is never reported as UNKNOWN.
    """
    logger = logger or logging.getLogger("ksverify")
    try:
        result = keytool.inspect(archive_path, store_password, ["-v"])
    except ExternalToolError as e:
        raise TypeDetectionError(e) from e

    archive_type = parse_archive_type(result.stdout)
    if archive_type is None:
        logger.warning(
            "keytool output has no 'Keystore type' line; unexpected output format, treating type as UNKNOWN"
        )
        return ArchiveType.UNKNOWN
    return archive_type
