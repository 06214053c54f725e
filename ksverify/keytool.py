"""
keytool adapter: runs the JDK keytool with explicit argument lists.

Passwords never appear in argv. Each one is handed to the child process in a
private environment variable and referenced with keytool's ":env" modifier,
e.g. ``-storepass:env KSVERIFY_STOREPASS``.
"""

import logging
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Mapping, NamedTuple, Sequence

from .errors import ExternalToolError

DEFAULT_TIMEOUT = 60.0
MAX_DETAIL_CHARS = 500

STOREPASS_ENV = "KSVERIFY_STOREPASS"
KEYPASS_ENV = "KSVERIFY_KEYPASS"

# Force English output so "Keystore type:" and listing lines can be parsed.
_LOCALE_ARGS = ["-J-Duser.language=en", "-J-Duser.country=US"]

# <alias>, <Mon DD, YYYY>, <EntryType>,  where the alias itself may contain ", "
_ALIAS_LINE = re.compile(
    r"^(?P<alias>.+), [A-Z][a-z]{2} \d{1,2}, \d{4}, (?:PrivateKeyEntry|trustedCertEntry|SecretKeyEntry),\s*$"
)


class ToolResult(NamedTuple):
    stdout: str
    exit_status: int


def find_keytool(explicit: str | None = None) -> str | None:
    """Locate keytool: explicit path, then PATH, then $JAVA_HOME/bin."""
    if explicit:
        return explicit
    found = shutil.which("keytool")
    if found:
        return found
    java_home = os.environ.get("JAVA_HOME")
    if java_home:
        for name in ("keytool", "keytool.exe"):
            candidate = Path(java_home) / "bin" / name
            if candidate.is_file():
                return str(candidate)
    return None


def _truncate(text: str, limit: int = MAX_DETAIL_CHARS) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class Keytool:
    """Thin wrapper around the keytool executable."""

    def __init__(
        self,
        executable: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        logger: logging.Logger | None = None,
    ) -> None:
        self._executable = executable
        self.timeout = timeout
        self._runner = runner
        self._logger = logger or logging.getLogger("ksverify")

    @property
    def executable(self) -> str:
        path = find_keytool(self._executable)
        if path is None:
            raise ExternalToolError(
                None, "keytool executable not found (install a JDK or set JAVA_HOME)"
            )
        return path

    def run(self, args: Sequence[str], secrets: Mapping[str, str] | None = None) -> ToolResult:
        """
        Run keytool with args; secrets maps env var name -> value for ":env" options.
        Raises ExternalToolError on launch failure, timeout or non-zero exit.
        """
        argv = [self.executable] + _LOCALE_ARGS + list(args)
        # Safe to log: secrets are only ever in the child environment.
        command = " ".join(["keytool"] + list(args))
        env = dict(os.environ)
        env.update(secrets or {})

        self._logger.debug("Running %s", command)
        try:
            proc = self._runner(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=env,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise ExternalToolError(None, f"timed out after {self.timeout:g}s", command)
        except OSError as e:
            raise ExternalToolError(None, str(e), command)

        stdout = proc.stdout or ""
        if proc.returncode != 0:
            detail = _truncate(proc.stderr or "") or _truncate(stdout)
            self._logger.debug("keytool exited with status %s", proc.returncode)
            raise ExternalToolError(proc.returncode, detail, command)
        return ToolResult(stdout, proc.returncode)

    def inspect(
        self,
        archive_path: str | Path,
        store_password: str,
        extra_args: Sequence[str] = (),
    ) -> ToolResult:
        """List the archive (plus extra_args) using only the store password."""
        args = [
            "-list",
            "-keystore", str(archive_path),
            "-storepass:env", STOREPASS_ENV,
        ] + list(extra_args)
        return self.run(args, {STOREPASS_ENV: store_password})

    def list_aliases(self, archive_path: str | Path, store_password: str) -> list[str]:
        """Aliases from a non-verbose listing, in keytool's order."""
        out = self.inspect(archive_path, store_password).stdout
        aliases = []
        for line in out.splitlines():
            m = _ALIAS_LINE.match(line.strip())
            if m:
                aliases.append(m.group("alias"))
        return aliases

    def export_certificate(self, archive_path: str | Path, store_password: str, alias: str) -> bytes:
        """Return the certificate of alias as PEM."""
        result = self.run(
            [
                "-exportcert", "-rfc",
                "-alias", alias,
                "-keystore", str(archive_path),
                "-storepass:env", STOREPASS_ENV,
            ],
            {STOREPASS_ENV: store_password},
        )
        return result.stdout.encode("ascii", errors="replace")
