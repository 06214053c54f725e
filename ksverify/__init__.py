"""ksverify: pre-flight verification of PKCS12/JKS keystores for signing."""

__version__ = "0.1.0"
