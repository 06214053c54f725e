"""Shared fixtures: an in-process keytool stand-in and test certificates."""

import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from ksverify.keytool import Keytool

_FLAGS = {"-list", "-v", "-rfc", "-noprompt", "-certreq", "-exportcert", "-importkeystore"}


def make_certificate_pem(
    common_name: str = "Release Signing",
    not_before: datetime | None = None,
    validity_days: int = 365,
) -> bytes:
    """Self-signed P-256 certificate as PEM."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    not_before = not_before or datetime.now(timezone.utc) - timedelta(days=1)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_before + timedelta(days=validity_days))
        .sign(private_key=key, algorithm=hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM)


@dataclass
class FakeArchive:
    """
    What the fake keytool believes is inside any existing keystore file.
    entries: alias -> (entry type, key password).
    """

    type_token: str
    store_password: str
    entries: dict
    certificate_pem: bytes | None = None
    verbose_has_type_line: bool = True


@dataclass
class FakeKeytool:
    """
    Callable with subprocess.run's signature that imitates keytool.
    PKCS12 -certreq ignores -keypass, like the real tool.
    """

    archive: FakeArchive
    calls: list = field(default_factory=list)
    envs: list = field(default_factory=list)
    scratch_paths: list = field(default_factory=list)

    def __call__(self, argv, **kwargs):
        env = kwargs.get("env") or {}
        args = [a for a in argv[1:] if not a.startswith("-J")]
        self.calls.append(args)
        self.envs.append(env)
        opts = self._parse(args, env)
        rc, out = self._dispatch(args[0], opts)
        return subprocess.CompletedProcess(argv, rc, out, "")

    def commands(self) -> list:
        return [c[0] for c in self.calls]

    @staticmethod
    def _parse(args, env) -> dict:
        opts = {}
        i = 0
        while i < len(args):
            token = args[i]
            if token in _FLAGS:
                opts[token] = True
                i += 1
                continue
            value = args[i + 1]
            if token.endswith(":env"):
                token = token[: -len(":env")]
                value = env[value]
            opts[token] = value
            i += 2
        return opts

    def _dispatch(self, command, opts):
        a = self.archive
        keystore = opts.get("-keystore") or opts.get("-srckeystore")
        if not Path(keystore).is_file():
            return 1, f"keytool error: java.lang.Exception: Keystore file does not exist: {keystore}\n"
        storepass = opts.get("-storepass") or opts.get("-srcstorepass")
        if storepass != a.store_password:
            return 1, "keytool error: java.io.IOException: keystore password was incorrect\n"

        if command == "-list":
            listed = opts.get("-alias")
            if listed is not None and listed not in a.entries:
                return 1, f"keytool error: java.lang.Exception: Alias <{listed}> does not exist\n"
            return 0, self._listing(opts)

        alias = opts.get("-alias") or opts.get("-srcalias")
        if alias not in a.entries:
            return 1, f"keytool error: java.lang.Exception: Alias <{alias}> does not exist\n"
        entry_type, key_password = a.entries[alias]

        if command == "-exportcert":
            if a.certificate_pem is None:
                return 1, "keytool error: java.lang.Exception: no certificate\n"
            return 0, a.certificate_pem.decode("ascii")

        if entry_type != "PrivateKeyEntry":
            return 1, f"keytool error: java.lang.Exception: Alias <{alias}> has no key\n"

        if command == "-certreq":
            if a.type_token != "PKCS12" and opts.get("-keypass") != key_password:
                return 1, "keytool error: java.security.UnrecoverableKeyException: Cannot recover key\n"
            return 0, "-----BEGIN NEW CERTIFICATE REQUEST-----\nMIIB\n-----END NEW CERTIFICATE REQUEST-----\n"

        if command == "-importkeystore":
            if opts.get("-srckeypass") != key_password:
                return 1, "keytool error: java.security.UnrecoverableKeyException: Get Key failed\n"
            dest = Path(opts["-destkeystore"])
            if dest.exists():
                return 1, "keytool error: destination exists\n"
            dest.write_bytes(b"scratch")
            self.scratch_paths.append(dest)
            return 0, f"Importing keystore {keystore} to {dest}...\n"

        raise AssertionError(f"unexpected keytool command {command}")

    def _listing(self, opts) -> str:
        a = self.archive
        lines = []
        if not opts.get("-v") or a.verbose_has_type_line:
            lines += [f"Keystore type: {a.type_token}", "Keystore provider: SUN", ""]
        alias = opts.get("-alias")
        if alias is not None:
            selected = {alias: a.entries[alias]}
        else:
            lines += [f"Your keystore contains {len(a.entries)} entries", ""]
            selected = a.entries
        for name, (entry_type, _) in selected.items():
            if opts.get("-v"):
                lines += [f"Alias name: {name}", "Creation date: Oct 18, 2026", f"Entry type: {entry_type}", ""]
            else:
                lines.append(f"{name}, Oct 18, 2026, {entry_type}, ")
        return "\n".join(lines) + "\n"


@pytest.fixture
def keystore_file(tmp_path):
    path = tmp_path / "release.keystore"
    path.write_bytes(b"\x30\x82keystore-bytes")
    return path


@pytest.fixture
def work_root(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def pkcs12_archive():
    return FakeArchive(
        type_token="PKCS12",
        store_password="secret123",
        entries={
            "release": ("PrivateKeyEntry", "secret123"),
            "upload": ("PrivateKeyEntry", "secret123"),
            "root-ca": ("trustedCertEntry", None),
        },
        certificate_pem=make_certificate_pem(),
    )


@pytest.fixture
def jks_archive():
    return FakeArchive(
        type_token="JKS",
        store_password="storepass",
        entries={
            "release": ("PrivateKeyEntry", "keypass"),
            "root-ca": ("trustedCertEntry", None),
        },
        certificate_pem=make_certificate_pem(),
    )


@pytest.fixture
def make_keytool():
    """Factory: archive -> (Keytool wired to a FakeKeytool, the fake)."""

    def _make(archive: FakeArchive):
        fake = FakeKeytool(archive)
        return Keytool(executable="keytool", runner=fake), fake

    return _make


@pytest.fixture
def certificate_pem():
    return make_certificate_pem
