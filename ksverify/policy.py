"""
Private key access policy per keystore type.

PKCS12 encrypts every entry under the store password, and keytool accepts but
silently ignores a different -keypass for it. A PKCS12 export with a distinct key
password would therefore pass without proving anything, so that combination is
rejected up front instead of tried.
"""

import logging
from pathlib import Path

from .detect import ArchiveType
from .errors import ExternalToolError, KeyAccessError, PasswordMismatchPolicyError
from .keytool import KEYPASS_ENV, STOREPASS_ENV, Keytool
from .workspace import Workspace

PKCS12_MISMATCH_MESSAGE = (
    "PKCS12 keystores protect every entry with the store password, and keytool "
    "ignores a different key password for them, so it cannot be verified. "
    "Use the same value for store-password and key-password, or convert the "
    "keystore to JKS if distinct passwords are required."
)


def _export_pkcs12_entry(
    keytool: Keytool,
    archive_path: Path,
    store_password: str,
    alias: str,
    workspace: Workspace,
    logger: logging.Logger,
) -> None:
    """Re-export alias into a throwaway PKCS12 archive; requires decrypting the key."""
    scratch = workspace.new_path("scratch", ".p12")
    logger.debug("Exporting alias '%s' into discarded scratch archive", alias)
    try:
        keytool.run(
            [
                "-importkeystore", "-noprompt",
                "-srckeystore", str(archive_path),
                "-srcstoretype", "PKCS12",
                "-srcstorepass:env", STOREPASS_ENV,
                "-srcalias", alias,
                "-srckeypass:env", STOREPASS_ENV,
                "-destkeystore", str(scratch),
                "-deststoretype", "PKCS12",
                "-deststorepass:env", STOREPASS_ENV,
                "-destkeypass:env", STOREPASS_ENV,
            ],
            {STOREPASS_ENV: store_password},
        )
    finally:
        scratch.unlink(missing_ok=True)


def _request_certificate(
    keytool: Keytool,
    archive_path: Path,
    store_password: str,
    alias: str,
    key_password: str,
    logger: logging.Logger,
) -> None:
    """Generate a CSR for alias; signing it needs the decrypted private key."""
    logger.debug("Generating certificate signing request for alias '%s'", alias)
    keytool.run(
        [
            "-certreq",
            "-alias", alias,
            "-keystore", str(archive_path),
            "-storepass:env", STOREPASS_ENV,
            "-keypass:env", KEYPASS_ENV,
        ],
        {STOREPASS_ENV: store_password, KEYPASS_ENV: key_password},
    )


def verify_key_access(
    keytool: Keytool,
    archive_path: str | Path,
    store_password: str,
    alias: str,
    key_password: str,
    archive_type: ArchiveType,
    workspace: Workspace,
    logger: logging.Logger | None = None,
) -> None:
    """
    Prove that key_password unlocks the private key of alias.

    Raises PasswordMismatchPolicyError (PKCS12 with differing passwords, nothing run),
    KeyAccessError (keytool ran and failed) or ExternalToolError (keytool could not run).
    """
    logger = logger or logging.getLogger("ksverify")
    archive_path = Path(archive_path)

    try:
        if archive_type is ArchiveType.PKCS12:
            if store_password != key_password:
                raise PasswordMismatchPolicyError(PKCS12_MISMATCH_MESSAGE)
            _export_pkcs12_entry(keytool, archive_path, store_password, alias, workspace, logger)
        else:
            # JKS, and UNKNOWN as the most permissive fallback
            _request_certificate(keytool, archive_path, store_password, alias, key_password, logger)
    except ExternalToolError as e:
        if e.exit_status is None:
            raise
        raise KeyAccessError(alias, e.detail) from e
