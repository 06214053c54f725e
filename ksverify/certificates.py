"""X.509 summary of the signing certificate exported from the keystore."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.backends import default_backend

EXPIRY_WARNING_DAYS = 30


@dataclass(frozen=True)
class CertificateSummary:
    subject: str
    issuer: str
    serial_hex: str
    not_before: datetime
    not_after: datetime

    @property
    def self_signed(self) -> bool:
        return self.subject == self.issuer

    def describe(self) -> str:
        return (
            f"subject={self.subject}, issuer={self.issuer}, serial={self.serial_hex}, "
            f"valid {self.not_before:%Y-%m-%d} to {self.not_after:%Y-%m-%d}"
            + (" (self-signed)" if self.self_signed else "")
        )


def load_certificate_pem(pem: bytes) -> x509.Certificate:
    """Load X.509 certificate from PEM bytes (keytool -exportcert -rfc output)."""
    return x509.load_pem_x509_certificate(pem, default_backend())


def summarize_certificate(pem: bytes) -> CertificateSummary:
    cert = load_certificate_pem(pem)
    return CertificateSummary(
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        serial_hex=f"{cert.serial_number:x}",
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
    )


def expiry_warnings(
    summary: CertificateSummary,
    now: datetime | None = None,
    warn_days: int = EXPIRY_WARNING_DAYS,
) -> list[str]:
    """Warnings for a certificate that is expired, not yet valid, or close to expiry."""
    now = now or datetime.now(timezone.utc)
    if summary.not_after <= now:
        return [f"Signing certificate expired on {summary.not_after:%Y-%m-%d %H:%M:%S UTC}"]
    if summary.not_before > now:
        return [f"Signing certificate is not valid until {summary.not_before:%Y-%m-%d %H:%M:%S UTC}"]
    remaining = summary.not_after - now
    if remaining <= timedelta(days=warn_days):
        return [f"Signing certificate expires in {remaining.days} day(s), on {summary.not_after:%Y-%m-%d}"]
    return []
