"""CLI: ksverify; input validation, secret loading from files or environment, outcome reporting."""

import argparse
import os
import sys
from pathlib import Path

from . import __version__
from . import logger as log_module
from .inputs import Credentials, VerificationRequest, load_password
from .keytool import DEFAULT_TIMEOUT, Keytool
from .pipeline import Success, run_verification

# Environment fallbacks per input. INPUT_* is what GitHub Actions exports for action inputs.
ENV_ARCHIVE_PATH = ("KSVERIFY_ARCHIVE_PATH", "INPUT_ARCHIVE-PATH")
ENV_ARCHIVE_BASE64 = ("KSVERIFY_ARCHIVE_BASE64", "INPUT_ARCHIVE-BASE64")
ENV_STORE_PASSWORD = ("KSVERIFY_STORE_PASSWORD", "INPUT_STORE-PASSWORD")
ENV_ALIAS = ("KSVERIFY_ALIAS", "INPUT_ALIAS-NAME")
ENV_KEY_PASSWORD = ("KSVERIFY_KEY_PASSWORD", "INPUT_KEY-PASSWORD")


def _env(names) -> str | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


def _read_secret(parser, log, file_arg: str | None, env_names, option: str) -> str:
    """Password from --<option> file, else from the environment. Never echoed."""
    if file_arg:
        try:
            return load_password(file_arg)
        except (FileNotFoundError, ValueError) as e:
            log.error("Validation failed: cannot read %s: %s", option, e)
            parser.error(f"--{option} must exist and be a readable UTF-8 file: {file_arg}")
    value = _env(env_names)
    if value is None:
        log.error("Validation failed: no value for --%s or %s", option, env_names[0])
        parser.error(f"--{option} or the {env_names[0]} environment variable is required")
    return value


def _read_archive_base64(parser, log, file_arg: str | None) -> str | None:
    if file_arg:
        try:
            return Path(file_arg).read_text(encoding="ascii")
        except (OSError, ValueError) as e:
            log.error("Validation failed: cannot read --archive-base64-file: %s", e)
            parser.error(f"--archive-base64-file must exist and contain base64 text: {file_arg}")
    return _env(ENV_ARCHIVE_BASE64)


def build_request(parser: argparse.ArgumentParser, args) -> VerificationRequest:
    """Validate arguments and assemble the request; on failure log/print error and exit 2."""
    log = log_module.setup_logging(getattr(args, "log_file", None))

    alias = (args.alias or _env(ENV_ALIAS) or "").strip()
    if not alias:
        log.error("Validation failed: --alias is required and must be non-empty")
        parser.error(f"--alias or the {ENV_ALIAS[0]} environment variable is required")

    store_password = _read_secret(
        parser, log, args.store_password_file, ENV_STORE_PASSWORD, "store-password-file"
    )
    key_password = _read_secret(
        parser, log, args.key_password_file, ENV_KEY_PASSWORD, "key-password-file"
    )

    if args.timeout is not None and args.timeout <= 0:
        log.error("Validation failed: --timeout must be positive")
        parser.error("--timeout must be a positive number of seconds")

    work_dir = args.work_dir
    if work_dir and not Path(work_dir).is_dir():
        log.error("Validation failed: --work-dir is not a directory: %s", work_dir)
        parser.error(f"--work-dir must be an existing directory: {work_dir}")

    # Missing archive input is left to the pipeline, which reports it as MissingInput.
    return VerificationRequest(
        credentials=Credentials(store_password=store_password, alias=alias, key_password=key_password),
        archive_path=args.archive_path or _env(ENV_ARCHIVE_PATH),
        archive_base64=_read_archive_base64(parser, log, args.archive_base64_file),
    )


def _escape_workflow(text: str) -> str:
    return text.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _write_github_outputs(values: dict) -> None:
    path = os.environ.get("GITHUB_OUTPUT")
    if not path:
        return
    with open(path, "a", encoding="utf-8") as fh:
        for key, value in values.items():
            fh.write(f"{key}={value}\n")


def report(outcome) -> int:
    """Print the outcome; returns the process exit code."""
    in_actions = os.environ.get("GITHUB_ACTIONS") == "true"
    for warning in outcome.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
        if in_actions:
            print(f"::warning::{_escape_workflow(warning)}")

    if isinstance(outcome, Success):
        print(f"OK: keystore ({outcome.archive_type.value}) is usable for signing.")
        if in_actions:
            _write_github_outputs({"result": "success", "keystore-type": outcome.archive_type.value})
        return 0

    print(f"Error [{outcome.stage.value}/{outcome.reason.value}]: {outcome.message}", file=sys.stderr)
    if in_actions:
        print(f"::error::{_escape_workflow(outcome.message)}")
        _write_github_outputs({"result": "failure", "failed-stage": outcome.stage.value})
    return 1


def cmd_verify(parser: argparse.ArgumentParser, args) -> int:
    """Run the verification pipeline for parsed args."""
    request = build_request(parser, args)
    creds = request.credentials
    log = log_module.setup_logging(args.log_file, secrets=(creds.store_password, creds.key_password))

    keytool = Keytool(
        executable=args.keytool or os.environ.get("KSVERIFY_KEYTOOL"),
        timeout=args.timeout or DEFAULT_TIMEOUT,
        logger=log,
    )
    try:
        outcome = run_verification(request, keytool=keytool, work_root=args.work_dir, logger=log)
    except Exception as e:
        log.exception("Keystore verification failed unexpectedly")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return report(outcome)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ksverify",
        description="Verify that a PKCS12/JKS keystore, alias and passwords are usable for signing",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--archive-path", default=None, help="Path to the keystore file (wins over base64 input)")
    parser.add_argument("--archive-base64-file", default=None, help="File containing the keystore as base64 text")
    parser.add_argument("--store-password-file", default=None, help="File with the store password")
    parser.add_argument("--alias", default=None, help="Alias of the signing entry")
    parser.add_argument("--key-password-file", default=None, help="File with the key password")
    parser.add_argument("--keytool", default=None, help="Path to keytool (default: PATH, then JAVA_HOME)")
    parser.add_argument("--timeout", type=float, default=None, help=f"Seconds per keytool call (default: {DEFAULT_TIMEOUT:g})")
    parser.add_argument("--work-dir", default=None, help="Directory for temporary files (default: system temp)")
    parser.add_argument("--log-file", default=None, help="Log file (default: stderr)")
    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    sys.exit(cmd_verify(parser, args))


if __name__ == "__main__":
    main()
