"""Building signers and verifiers, and signing backed by X.509 certificates."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, Protocol, Sequence, runtime_checkable

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from witness.cryptoutil.digestset import Hash
from witness.cryptoutil.keys import (
    ECDSASigner,
    ECDSAVerifier,
    ED25519Signer,
    ED25519Verifier,
    RSASigner,
    RSAVerifier,
    UnsupportedKeyTypeError,
    VerifyFailedError,
)
from witness.cryptoutil.util import try_parse_key_from_reader

__all__ = [
    "Signer",
    "Verifier",
    "TrustBundler",
    "InvalidSignerError",
    "InvalidCertificateError",
    "X509Verifier",
    "X509Signer",
    "new_signer",
    "new_signer_from_reader",
    "new_verifier",
    "new_verifier_from_reader",
]

_MAX_CHAIN_DEPTH = 10


@runtime_checkable
class Verifier(Protocol):
    """Checks signatures and identifies its key."""

    def key_id(self) -> str: ...

    def verify(self, stream: BinaryIO, sig: bytes) -> None: ...

    def to_bytes(self) -> bytes: ...


@runtime_checkable
class Signer(Protocol):
    """Produces signatures and identifies its key."""

    def key_id(self) -> str: ...

    def sign(self, stream: BinaryIO) -> bytes: ...

    def verifier(self) -> Verifier: ...


@runtime_checkable
class TrustBundler(Protocol):
    """Carries a leaf certificate together with its chain of trust."""

    def certificate(self) -> x509.Certificate | None: ...

    def intermediates(self) -> list[x509.Certificate]: ...

    def roots(self) -> list[x509.Certificate]: ...


class InvalidSignerError(ValueError):
    def __init__(self) -> None:
        super().__init__("signer must not be nil")


class InvalidCertificateError(ValueError):
    def __init__(self) -> None:
        super().__init__("certificate must not be nil")


class _UntrustedCertificateError(VerifyFailedError):
    def __init__(self, reason: str) -> None:
        Exception.__init__(self, f"certificate verification failed: {reason}")
        self.reason = reason


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _validity(cert: x509.Certificate) -> tuple[datetime, datetime]:
    try:
        return cert.not_valid_before_utc, cert.not_valid_after_utc
    except AttributeError:
        return _as_utc(cert.not_valid_before), _as_utc(cert.not_valid_after)


def _is_valid_at(cert: x509.Certificate, moment: datetime) -> bool:
    not_before, not_after = _validity(cert)
    return not_before <= moment <= not_after


def _can_sign_certificates(cert: x509.Certificate, intermediates_below: int) -> bool:
    try:
        constraints = cert.extensions.get_extension_for_class(x509.BasicConstraints).value
    except x509.ExtensionNotFound:
        return cert.version == x509.Version.v1
    if not constraints.ca:
        return False
    if constraints.path_length is not None and intermediates_below > constraints.path_length:
        return False
    try:
        usage = cert.extensions.get_extension_for_class(x509.KeyUsage).value
    except x509.ExtensionNotFound:
        return True
    return usage.key_cert_sign


def _issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    try:
        cert.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def _chain_to_root(
    current: x509.Certificate,
    chain: list[x509.Certificate],
    candidates: list[tuple[x509.Certificate, bool]],
    moment: datetime,
) -> bool:
    for candidate, is_root in candidates:
        if candidate in chain:
            continue
        if not _issued_by(current, candidate):
            continue
        if not _can_sign_certificates(candidate, len(chain) - 1):
            continue
        if not _is_valid_at(candidate, moment):
            continue
        if is_root:
            return True
        if len(chain) < _MAX_CHAIN_DEPTH and _chain_to_root(
            candidate, [*chain, candidate], candidates, moment
        ):
            return True
    return False


def _verify_chain(
    cert: x509.Certificate,
    intermediates: Sequence[x509.Certificate],
    roots: Sequence[x509.Certificate],
    trusted_time: datetime | None,
) -> None:
    moment = _as_utc(trusted_time) if trusted_time else datetime.now(timezone.utc)
    if not _is_valid_at(cert, moment):
        raise _UntrustedCertificateError("certificate is not valid at the trusted time")
    if cert in roots:
        return
    candidates = [(root, True) for root in roots] + [(inter, False) for inter in intermediates]
    if not _chain_to_root(cert, [cert], candidates, moment):
        raise _UntrustedCertificateError("certificate does not chain to a trusted root")


class X509Verifier:
    """Verifies signatures from a certificate's key after checking its chain."""

    def __init__(
        self,
        cert: x509.Certificate,
        intermediates: Sequence[x509.Certificate] | None = None,
        roots: Sequence[x509.Certificate] | None = None,
        trusted_time: datetime | None = None,
    ) -> None:
        self._verifier = new_verifier(cert.public_key())
        self._cert = cert
        self._intermediates = list(intermediates or [])
        self._roots = list(roots or [])
        self._trusted_time = trusted_time

    @classmethod
    def _from_parts(
        cls,
        verifier: Verifier,
        cert: x509.Certificate,
        intermediates: Sequence[x509.Certificate],
        roots: Sequence[x509.Certificate],
    ) -> "X509Verifier":
        instance = cls.__new__(cls)
        instance._verifier = verifier
        instance._cert = cert
        instance._intermediates = list(intermediates)
        instance._roots = list(roots)
        instance._trusted_time = None
        return instance

    def key_id(self) -> str:
        return self._verifier.key_id()

    def verify(self, stream: BinaryIO, sig: bytes) -> None:
        """Check the certificate chain, then the signature."""
        _verify_chain(self._cert, self._intermediates, self._roots, self._trusted_time)
        self._verifier.verify(stream, sig)

    def belongs_to_root(self, root: x509.Certificate) -> None:
        """Raise unless the certificate chains to the given root."""
        _verify_chain(self._cert, self._intermediates, [root], self._trusted_time)

    def to_bytes(self) -> bytes:
        return self._cert.public_bytes(serialization.Encoding.PEM)

    def certificate(self) -> x509.Certificate:
        return self._cert

    def intermediates(self) -> list[x509.Certificate]:
        return self._intermediates

    def roots(self) -> list[x509.Certificate]:
        return self._roots


class X509Signer:
    """A signer that carries the certificate chain of its key."""

    def __init__(
        self,
        signer: Signer | None,
        cert: x509.Certificate | None,
        intermediates: Sequence[x509.Certificate] | None = None,
        roots: Sequence[x509.Certificate] | None = None,
    ) -> None:
        if signer is None:
            raise InvalidSignerError()
        if cert is None:
            raise InvalidCertificateError()
        self._signer = signer
        self._cert = cert
        self._intermediates = list(intermediates or [])
        self._roots = list(roots or [])

    def key_id(self) -> str:
        return self._signer.key_id()

    def sign(self, stream: BinaryIO) -> bytes:
        return self._signer.sign(stream)

    def verifier(self) -> X509Verifier:
        return X509Verifier._from_parts(
            self._signer.verifier(), self._cert, self._intermediates, self._roots
        )

    def certificate(self) -> x509.Certificate:
        return self._cert

    def intermediates(self) -> list[x509.Certificate]:
        return self._intermediates

    def roots(self) -> list[x509.Certificate]:
        return self._roots


def new_signer(
    priv: Any,
    *,
    certificate: x509.Certificate | None = None,
    intermediates: Sequence[x509.Certificate] | None = None,
    roots: Sequence[x509.Certificate] | None = None,
    hash: Hash = Hash.SHA256,
) -> Signer:
    """Build a signer for a private key, wrapped with a certificate if one is given."""
    signer: Signer
    if isinstance(priv, rsa.RSAPrivateKey):
        signer = RSASigner(priv, hash)
    elif isinstance(priv, ec.EllipticCurvePrivateKey):
        signer = ECDSASigner(priv, hash)
    elif isinstance(priv, ed25519.Ed25519PrivateKey):
        signer = ED25519Signer(priv)
    else:
        raise UnsupportedKeyTypeError(type(priv).__name__)

    if certificate is not None:
        return X509Signer(signer, certificate, intermediates, roots)
    return signer


def new_signer_from_reader(
    stream: BinaryIO,
    *,
    certificate: x509.Certificate | None = None,
    intermediates: Sequence[x509.Certificate] | None = None,
    roots: Sequence[x509.Certificate] | None = None,
    hash: Hash = Hash.SHA256,
) -> Signer:
    """Build a signer from a PEM-encoded private key read from a stream."""
    return new_signer(
        try_parse_key_from_reader(stream),
        certificate=certificate,
        intermediates=intermediates,
        roots=roots,
        hash=hash,
    )


def new_verifier(
    pub: Any,
    *,
    roots: Sequence[x509.Certificate] | None = None,
    intermediates: Sequence[x509.Certificate] | None = None,
    hash: Hash = Hash.SHA256,
    trusted_time: datetime | None = None,
) -> Verifier:
    """Build a verifier for a public key or a certificate."""
    if isinstance(pub, rsa.RSAPublicKey):
        return RSAVerifier(pub, hash)
    if isinstance(pub, ec.EllipticCurvePublicKey):
        return ECDSAVerifier(pub, hash)
    if isinstance(pub, ed25519.Ed25519PublicKey):
        return ED25519Verifier(pub)
    if isinstance(pub, x509.Certificate):
        return X509Verifier(pub, intermediates, roots, trusted_time)
    raise UnsupportedKeyTypeError(type(pub).__name__)


def new_verifier_from_reader(
    stream: BinaryIO,
    *,
    roots: Sequence[x509.Certificate] | None = None,
    intermediates: Sequence[x509.Certificate] | None = None,
    hash: Hash = Hash.SHA256,
    trusted_time: datetime | None = None,
) -> Verifier:
    """Build a verifier from a PEM-encoded key or certificate read from a stream."""
    return new_verifier(
        try_parse_key_from_reader(stream),
        roots=roots,
        intermediates=intermediates,
        hash=hash,
        trusted_time=trusted_time,
    )


# Keeps the timedelta import meaningful for callers computing trusted times.
_ONE_SECOND = timedelta(seconds=1)