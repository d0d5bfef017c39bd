"""Digests, PEM handling and key parsing."""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass, field
from typing import Any, BinaryIO

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa, x25519

from witness.cryptoutil.digestset import Hash

__all__ = [
    "UnsupportedPEMError",
    "InvalidPEMBlockError",
    "PemBlock",
    "decode_pem",
    "digest_bytes",
    "digest",
    "hex_encode",
    "generate_public_key_id",
    "public_pem_bytes",
    "try_parse_pem_block",
    "try_parse_key_from_reader",
    "try_parse_certificate",
]

_CHUNK_SIZE = 64 * 1024

_PUBLIC_TYPES = (
    rsa.RSAPublicKey,
    ec.EllipticCurvePublicKey,
    ed25519.Ed25519PublicKey,
    x25519.X25519PublicKey,
)
_PRIVATE_TYPES = (
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    ed25519.Ed25519PrivateKey,
    x25519.X25519PrivateKey,
)
_PARSE_ERRORS = (ValueError, TypeError, UnsupportedAlgorithm)

_BEGIN = re.compile(rb"^-----BEGIN (.*)-----[ \t]*\r?$", re.MULTILINE)


class UnsupportedPEMError(ValueError):
    def __init__(self, pem_type: str) -> None:
        super().__init__(f"unsupported pem type: {pem_type}")
        self.pem_type = pem_type


class InvalidPEMBlockError(ValueError):
    def __init__(self) -> None:
        super().__init__("invalid pem block")


@dataclass
class PemBlock:
    """A decoded PEM block."""

    type: str
    data: bytes
    headers: dict[str, str] = field(default_factory=dict)


def _parse_block(type_bytes: bytes, rest: bytes) -> PemBlock | None:
    end = re.search(rb"\n-----END " + re.escape(type_bytes) + rb"-----", rest)
    if end is None:
        return None
    lines = [line.rstrip(b"\r \t") for line in rest[1 : end.start()].split(b"\n")]
    headers: dict[str, str] = {}
    index = 0
    while index < len(lines) and b":" in lines[index]:
        key, _, value = lines[index].partition(b":")
        headers[key.strip().decode("latin-1")] = value.strip().decode("latin-1")
        index += 1
    if headers and index < len(lines) and not lines[index].strip():
        index += 1
    payload = b"".join(line.strip() for line in lines[index:])
    try:
        data = base64.b64decode(payload, validate=True)
    except binascii.Error:
        return None
    return PemBlock(type_bytes.decode("ascii", "replace"), data, headers)


def decode_pem(data: bytes | str) -> PemBlock | None:
    """Return the first well-formed PEM block in data, or None."""
    if isinstance(data, str):
        data = data.encode()
    position = 0
    while (match := _BEGIN.search(data, position)) is not None:
        block = _parse_block(match.group(1), data[match.end() :])
        if block is not None:
            return block
        position = match.end()
    return None


def digest_bytes(data: bytes, hash: Hash) -> bytes:
    hasher = hash.new()
    hasher.update(data)
    return hasher.digest()


def digest(stream: BinaryIO, hash: Hash) -> bytes:
    """Hash everything read from a binary stream."""
    hasher = hash.new()
    for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
        hasher.update(chunk)
    return hasher.digest()


def hex_encode(data: bytes) -> str:
    return data.hex()


def public_pem_bytes(pub: Any) -> bytes:
    """PEM-encode a public key as a PKIX 'PUBLIC KEY' block."""
    if not isinstance(pub, _PUBLIC_TYPES):
        raise TypeError(f"unsupported public key type: {type(pub).__name__}")
    return pub.public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    )


def generate_public_key_id(pub: Any, hash: Hash) -> str:
    """Hex digest of the key's PEM encoding."""
    return hex_encode(digest_bytes(public_pem_bytes(pub), hash))


def try_parse_pem_block(block: PemBlock | None) -> Any:
    """Parse a private key, public key or certificate from a PEM block."""
    if block is None:
        raise InvalidPEMBlockError()

    try:
        key = serialization.load_der_private_key(block.data, password=None)
    except _PARSE_ERRORS:
        key = None
    if isinstance(key, _PRIVATE_TYPES):
        return key

    try:
        pub = serialization.load_der_public_key(block.data)
    except _PARSE_ERRORS:
        pub = None
    if isinstance(pub, _PUBLIC_TYPES):
        return pub

    try:
        return x509.load_der_x509_certificate(block.data)
    except _PARSE_ERRORS:
        pass

    raise UnsupportedPEMError(block.type)


def try_parse_key_from_reader(stream: BinaryIO) -> Any:
    """Parse the first PEM block read from a binary stream."""
    return try_parse_pem_block(decode_pem(stream.read()))


def try_parse_certificate(data: bytes) -> x509.Certificate:
    parsed = try_parse_pem_block(decode_pem(data))
    if not isinstance(parsed, x509.Certificate):
        raise ValueError("data was a valid verifier but not a certificate")
    return parsed