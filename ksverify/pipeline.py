"""
Verification pipeline: five ordered stages, stop at the first failure.

Each stage takes the run context and returns None when it passes or a Failure.
Component exceptions are converted to Failure inside the stage that called the
component, with a remediation hint attached.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable

from .certificates import CertificateSummary, expiry_warnings, summarize_certificate
from .detect import ArchiveType, detect_type
from .errors import (
    ErrorKind,
    ExternalToolError,
    KeyAccessError,
    KeystoreVerificationError,
    PasswordMismatchPolicyError,
    TypeDetectionError,
)
from .inputs import VerificationRequest, resolve_archive
from .keytool import Keytool
from .policy import verify_key_access
from .workspace import Workspace

UNKNOWN_TYPE_WARNING = (
    "Keystore type is not PKCS12 or JKS; key password was checked with the JKS "
    "strategy and the result may not be accurate for this format"
)


class Stage(Enum):
    FILE_EXISTS = "FileExists"
    STORE_PASSWORD = "StorePassword"
    TYPE_DETECTION = "TypeDetection"
    ALIAS_EXISTS = "AliasExists"
    KEY_PASSWORD = "KeyPassword"


@dataclass(frozen=True)
class Success:
    archive_type: ArchiveType
    warnings: tuple[str, ...] = ()
    certificate: CertificateSummary | None = None
    ok = True


@dataclass(frozen=True)
class Failure:
    stage: Stage
    reason: ErrorKind
    message: str
    warnings: tuple[str, ...] = ()
    ok = False


@dataclass
class _Run:
    """Mutable state threaded through the stages of one run."""

    request: VerificationRequest
    keytool: Keytool
    workspace: Workspace
    logger: logging.Logger
    archive_path: Path | None = None
    archive_type: ArchiveType | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def credentials(self):
        return self.request.credentials

    def warn(self, message: str) -> None:
        """Record a warning for the outcome and log it right away."""
        self.warnings.append(message)
        self.logger.warning("%s", message)


def _check_file(run: _Run) -> Failure | None:
    try:
        run.archive_path = resolve_archive(run.request, run.workspace, logger=run.logger)
    except KeystoreVerificationError as e:
        return Failure(Stage.FILE_EXISTS, e.kind, str(e))
    return None


def _check_store_password(run: _Run) -> Failure | None:
    try:
        run.keytool.inspect(run.archive_path, run.credentials.store_password)
    except ExternalToolError as e:
        if e.exit_status is None:
            return Failure(Stage.STORE_PASSWORD, e.kind, str(e))
        return Failure(
            Stage.STORE_PASSWORD,
            ErrorKind.STORE_PASSWORD,
            "Could not open keystore with the given store password. "
            "Check store-password for typos, or the keystore file may be corrupted. "
            f"({e.detail})",
        )
    return None


def _check_type(run: _Run) -> Failure | None:
    try:
        run.archive_type = detect_type(
            run.keytool, run.archive_path, run.credentials.store_password, logger=run.logger
        )
    except TypeDetectionError as e:
        return Failure(Stage.TYPE_DETECTION, e.kind, str(e))
    run.logger.info("Detected keystore type: %s", run.archive_type.value)
    if run.archive_type is ArchiveType.UNKNOWN:
        run.warn(UNKNOWN_TYPE_WARNING)
    return None


def _check_alias(run: _Run) -> Failure | None:
    alias = run.credentials.alias
    try:
        run.keytool.inspect(run.archive_path, run.credentials.store_password, ["-alias", alias])
    except ExternalToolError as e:
        if e.exit_status is None:
            return Failure(Stage.ALIAS_EXISTS, e.kind, str(e))
    else:
        return None

    message = f"Alias '{alias}' was not found in the keystore."
    try:
        available = run.keytool.list_aliases(run.archive_path, run.credentials.store_password)
    except ExternalToolError as e:
        run.logger.debug("Could not enumerate aliases: %s", e)
        available = None
    if available:
        message += " Available aliases: " + ", ".join(available)
    elif available == []:
        message += " The keystore contains no entries."
    return Failure(Stage.ALIAS_EXISTS, ErrorKind.ALIAS_EXISTS, message)


def _check_key_password(run: _Run) -> Failure | None:
    creds = run.credentials
    try:
        verify_key_access(
            run.keytool,
            run.archive_path,
            creds.store_password,
            creds.alias,
            creds.key_password,
            run.archive_type,
            run.workspace,
            logger=run.logger,
        )
    except PasswordMismatchPolicyError as e:
        return Failure(Stage.KEY_PASSWORD, e.kind, str(e))
    except KeyAccessError as e:
        if run.archive_type is ArchiveType.PKCS12:
            hint = "For PKCS12 keystores the key password must be identical to the store password."
        else:
            hint = (
                "Check key-password for typos, and make sure the alias is a private key "
                "entry and not a trusted certificate."
            )
        return Failure(Stage.KEY_PASSWORD, e.kind, f"{str(e).rstrip('.')}. {hint}")
    except ExternalToolError as e:
        return Failure(Stage.KEY_PASSWORD, e.kind, str(e))
    return None


StageCheck = Callable[[_Run], Failure | None]

STAGES: tuple[tuple[Stage, StageCheck], ...] = (
    (Stage.FILE_EXISTS, _check_file),
    (Stage.STORE_PASSWORD, _check_store_password),
    (Stage.TYPE_DETECTION, _check_type),
    (Stage.ALIAS_EXISTS, _check_alias),
    (Stage.KEY_PASSWORD, _check_key_password),
)


def _describe_certificate(run: _Run) -> CertificateSummary | None:
    """Best effort; never changes the outcome."""
    try:
        pem = run.keytool.export_certificate(
            run.archive_path, run.credentials.store_password, run.credentials.alias
        )
        summary = summarize_certificate(pem)
    except (ExternalToolError, ValueError) as e:
        run.logger.debug("Could not summarize signing certificate: %s", e)
        return None
    run.logger.info("Signing certificate: %s", summary.describe())
    for warning in expiry_warnings(summary):
        run.warn(warning)
    return summary


def run_verification(
    request: VerificationRequest,
    keytool: Keytool | None = None,
    work_root: str | Path | None = None,
    logger: logging.Logger | None = None,
) -> Success | Failure:
    """
    Verify that the keystore in request is usable for signing.
    Temporary files are created under work_root (system temp dir by default) and
    removed before returning, including when an unexpected exception escapes.
    """
    logger = logger or logging.getLogger("ksverify")
    keytool = keytool or Keytool(logger=logger)

    with Workspace(work_root) as workspace:
        run = _Run(request=request, keytool=keytool, workspace=workspace, logger=logger)

        for stage, check in STAGES:
            logger.info("Checking %s", stage.value)
            failure = check(run)
            if failure is not None:
                logger.error("%s check failed: %s", stage.value, failure.message)
                return replace(failure, warnings=tuple(run.warnings))
            logger.info("%s check passed", stage.value)

        certificate = _describe_certificate(run)
        return Success(
            archive_type=run.archive_type,
            warnings=tuple(run.warnings),
            certificate=certificate,
        )
