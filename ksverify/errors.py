"""Error taxonomy for keystore verification. Messages never contain passwords."""

from enum import Enum


class ErrorKind(Enum):
    """Why a verification run failed."""

    MISSING_INPUT = "MissingInput"
    INVALID_INPUT = "InvalidInput"
    FILE_EXISTS = "FileExists"
    STORE_PASSWORD = "StorePassword"
    TYPE_DETECTION = "TypeDetectionError"
    ALIAS_EXISTS = "AliasExists"
    PASSWORD_MISMATCH_POLICY = "PasswordMismatchPolicy"
    KEY_ACCESS = "KeyAccessError"
    EXTERNAL_TOOL = "ExternalToolError"


class KeystoreVerificationError(Exception):
    """Base class for all errors raised by ksverify components."""

    kind = ErrorKind.EXTERNAL_TOOL


class MissingInputError(KeystoreVerificationError):
    kind = ErrorKind.MISSING_INPUT


class InvalidInputError(KeystoreVerificationError):
    kind = ErrorKind.INVALID_INPUT


class ArchiveNotFoundError(KeystoreVerificationError):
    kind = ErrorKind.FILE_EXISTS


class ExternalToolError(KeystoreVerificationError):
    """
    keytool could not be run or exited non-zero.
    exit_status is None when the process never produced one (missing binary, timeout).
    """

    kind = ErrorKind.EXTERNAL_TOOL

    def __init__(self, exit_status: int | None, detail: str, command: str | None = None):
        self.exit_status = exit_status
        self.detail = detail
        self.command = command
        if exit_status is None:
            msg = f"keytool could not be run: {detail}"
        else:
            msg = f"keytool exited with status {exit_status}: {detail}"
        super().__init__(msg)


class TypeDetectionError(KeystoreVerificationError):
    kind = ErrorKind.TYPE_DETECTION

    def __init__(self, cause: ExternalToolError):
        self.cause = cause
        super().__init__(f"Could not detect keystore type: {cause}")


class PasswordMismatchPolicyError(KeystoreVerificationError):
    """Rejected by policy before keytool was run."""

    kind = ErrorKind.PASSWORD_MISMATCH_POLICY


class KeyAccessError(KeystoreVerificationError):
    """keytool ran but could not unlock the private key."""

    kind = ErrorKind.KEY_ACCESS

    def __init__(self, alias: str, detail: str):
        self.alias = alias
        self.detail = detail
        super().__init__(f"Private key for alias '{alias}' could not be accessed: {detail}")
