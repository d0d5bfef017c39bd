"""DSSE envelopes: signing, verification and their JSON form."""

from __future__ import annotations

import base64
import io
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, BinaryIO, Protocol, Sequence, runtime_checkable

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from witness.cryptoutil.keys import UnsupportedKeyTypeError, VerifyFailedError
from witness.cryptoutil.signing import Signer, TrustBundler, Verifier, X509Verifier
from witness.cryptoutil.util import try_parse_certificate

__all__ = [
    "PEM_TYPE_CERTIFICATE",
    "NoSignaturesError",
    "NoMatchingSigsError",
    "ThresholdNotMetError",
    "InvalidThresholdError",
    "SignatureTimestampType",
    "SignatureTimestamp",
    "Signature",
    "Envelope",
    "Timestamper",
    "TimestampVerifier",
    "PassedVerifier",
    "preauth_encode",
    "sign",
]

PEM_TYPE_CERTIFICATE = "CERTIFICATE"
_DSSE_VERSION = b"DSSEv1"


class NoSignaturesError(ValueError):
    def __init__(self) -> None:
        super().__init__("no signatures in dsse envelope")


class NoMatchingSigsError(ValueError):
    def __init__(self) -> None:
        super().__init__("no valid signatures for the provided verifiers found")


class ThresholdNotMetError(ValueError):
    """Fewer verifiers passed than the threshold asks for."""

    def __init__(
        self,
        threshold: int,
        actual: int,
        passed_verifiers: list["PassedVerifier"] | None = None,
    ) -> None:
        super().__init__(
            "envelope did not meet verifier threshold. "
            f"expected {threshold} valid verifiers but got {actual}"
        )
        self.threshold = threshold
        self.actual = actual
        self.passed_verifiers = list(passed_verifiers or [])


class InvalidThresholdError(ValueError):
    def __init__(self, threshold: int) -> None:
        super().__init__(
            f"invalid threshold ({threshold}). thresholds must be greater than 0"
        )
        self.threshold = threshold


class SignatureTimestampType(str, Enum):
    RFC3161 = "tsp"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(text: str) -> bytes:
    return base64.b64decode(text)


@dataclass
class SignatureTimestamp:
    type: SignatureTimestampType
    data: bytes


@dataclass
class Signature:
    """One signature over an envelope, with optional chain and timestamps."""

    key_id: str
    signature: bytes
    certificate: bytes = b""
    intermediates: list[bytes] = field(default_factory=list)
    timestamps: list[SignatureTimestamp] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"keyid": self.key_id, "sig": _b64(self.signature)}
        if self.certificate:
            result["certificate"] = _b64(self.certificate)
        if self.intermediates:
            result["intermediates"] = [_b64(i) for i in self.intermediates]
        if self.timestamps:
            result["timestamps"] = [
                {"type": ts.type.value, "data": _b64(ts.data)} for ts in self.timestamps
            ]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Signature":
        return cls(
            key_id=data.get("keyid", ""),
            signature=_unb64(data.get("sig") or ""),
            certificate=_unb64(data.get("certificate") or ""),
            intermediates=[_unb64(i) for i in data.get("intermediates") or []],
            timestamps=[
                SignatureTimestamp(SignatureTimestampType(ts["type"]), _unb64(ts["data"]))
                for ts in data.get("timestamps") or []
            ],
        )


@runtime_checkable
class Timestamper(Protocol):
    """Produces a timestamp token for the signature read from a stream."""

    def timestamp(self, stream: BinaryIO) -> bytes: ...


@runtime_checkable
class TimestampVerifier(Protocol):
    """Checks a timestamp token against a signature and returns its time."""

    def verify(self, timestamp: BinaryIO, sig: BinaryIO) -> datetime: ...


@dataclass
class PassedVerifier:
    verifier: Verifier
    passed_timestamp_verifiers: list[TimestampVerifier] = field(default_factory=list)


def preauth_encode(body_type: str, body: bytes) -> bytes:
    """DSSE pre-authentication encoding of a payload and its type."""
    type_bytes = body_type.encode()
    return b" ".join(
        [
            _DSSE_VERSION,
            str(len(type_bytes)).encode(),
            type_bytes,
            str(len(body)).encode(),
            bytes(body),
        ]
    )


def _verify_x509_time(
    cert: x509.Certificate,
    intermediates: Sequence[x509.Certificate],
    roots: Sequence[x509.Certificate],
    pae: bytes,
    sig: bytes,
    trusted_time: datetime | None,
) -> X509Verifier | None:
    try:
        verifier = X509Verifier(cert, intermediates, roots, trusted_time)
        verifier.verify(io.BytesIO(pae), sig)
    except (VerifyFailedError, UnsupportedKeyTypeError, ValueError, TypeError):
        return None
    return verifier


@dataclass
class Envelope:
    """A signed payload together with its type and signatures."""

    payload: bytes
    payload_type: str
    signatures: list[Signature] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "payload": _b64(self.payload),
            "payloadType": self.payload_type,
            "signatures": [s.to_dict() for s in self.signatures],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Envelope":
        return cls(
            payload=_unb64(data.get("payload") or ""),
            payload_type=data.get("payloadType", ""),
            signatures=[Signature.from_dict(s) for s in data.get("signatures") or []],
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, data: str | bytes) -> "Envelope":
        return cls.from_dict(json.loads(data))

    def verify(
        self,
        *,
        roots: Sequence[x509.Certificate] = (),
        intermediates: Sequence[x509.Certificate] = (),
        verifiers: Sequence[Verifier | None] = (),
        threshold: int = 1,
        timestamp_verifiers: Sequence[TimestampVerifier] = (),
    ) -> list[PassedVerifier]:
        """Return the verifiers that accept the envelope's signatures.

        Raises ThresholdNotMetError, carrying those that passed, when fewer
        than ``threshold`` do.
        """
        if threshold <= 0:
            raise InvalidThresholdError(threshold)

        pae = preauth_encode(self.payload_type, self.payload)
        if not self.signatures:
            raise NoSignaturesError()

        matching_sig_found = False
        passed: list[PassedVerifier] = []
        for sig in self.signatures:
            if sig.certificate:
                try:
                    cert = try_parse_certificate(sig.certificate)
                except (ValueError, TypeError):
                    continue

                sig_intermediates: list[x509.Certificate] = []
                for raw in sig.intermediates:
                    try:
                        sig_intermediates.append(try_parse_certificate(raw))
                    except (ValueError, TypeError):
                        continue
                sig_intermediates.extend(intermediates)

                if not timestamp_verifiers:
                    verifier = _verify_x509_time(
                        cert, sig_intermediates, roots, pae, sig.signature, None
                    )
                    if verifier is not None:
                        matching_sig_found = True
                        passed.append(PassedVerifier(verifier))
                else:
                    passed_verifier: Verifier | None = None
                    passed_timestamp_verifiers: list[TimestampVerifier] = []
                    for ts_verifier in timestamp_verifiers:
                        for sig_ts in sig.timestamps:
                            try:
                                moment = ts_verifier.verify(
                                    io.BytesIO(sig_ts.data), io.BytesIO(sig.signature)
                                )
                            except Exception:
                                continue
                            verifier = _verify_x509_time(
                                cert, sig_intermediates, roots, pae, sig.signature, moment
                            )
                            if verifier is not None:
                                passed_verifier = verifier
                                passed_timestamp_verifiers.append(ts_verifier)

                    if passed_timestamp_verifiers and passed_verifier is not None:
                        matching_sig_found = True
                        passed.append(
                            PassedVerifier(passed_verifier, passed_timestamp_verifiers)
                        )

            for verifier in verifiers:
                if verifier is None:
                    continue
                try:
                    verifier.verify(io.BytesIO(pae), sig.signature)
                except Exception:
                    continue
                passed.append(PassedVerifier(verifier))
                matching_sig_found = True

        if not matching_sig_found:
            raise NoMatchingSigsError()

        if len(passed) < threshold:
            raise ThresholdNotMetError(threshold, len(passed), passed)

        return passed


def _pem_certificate(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


def sign(
    body_type: str,
    body: bytes | BinaryIO,
    *,
    signers: Sequence[Signer] = (),
    timestampers: Sequence[Timestamper] = (),
) -> Envelope:
    """Sign a payload with every signer and return the envelope."""
    if not signers:
        raise ValueError(f"must have at least one signer, have {len(signers)}")

    if isinstance(body, (bytes, bytearray, memoryview)):
        body_bytes = bytes(body)
    else:
        body_bytes = body.read()

    env = Envelope(payload=body_bytes, payload_type=body_type)
    pae = preauth_encode(body_type, body_bytes)
    for signer in signers:
        raw_sig = signer.sign(io.BytesIO(pae))
        dsse_sig = Signature(key_id=signer.key_id(), signature=raw_sig)

        for timestamper in timestampers:
            dsse_sig.timestamps.append(
                SignatureTimestamp(
                    SignatureTimestampType.RFC3161,
                    timestamper.timestamp(io.BytesIO(raw_sig)),
                )
            )

        if isinstance(signer, TrustBundler):
            leaf = signer.certificate()
            if leaf is not None:
                dsse_sig.certificate = _pem_certificate(leaf)
            dsse_sig.intermediates.extend(
                _pem_certificate(inter) for inter in signer.intermediates()
            )

        env.signatures.append(dsse_sig)

    return env