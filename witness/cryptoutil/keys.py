"""Signers and verifiers for RSA-PSS, ECDSA and Ed25519 keys."""

from __future__ import annotations

from typing import BinaryIO

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa, utils

from witness.cryptoutil.digestset import Hash
from witness.cryptoutil.util import digest, generate_public_key_id, public_pem_bytes

__all__ = [
    "VerifyFailedError",
    "UnsupportedKeyTypeError",
    "RSASigner",
    "RSAVerifier",
    "ECDSASigner",
    "ECDSAVerifier",
    "ED25519Signer",
    "ED25519Verifier",
]

_ALGORITHMS = {
    Hash.MD5: hashes.MD5,
    Hash.SHA1: hashes.SHA1,
    Hash.SHA224: hashes.SHA224,
    Hash.SHA256: hashes.SHA256,
    Hash.SHA384: hashes.SHA384,
    Hash.SHA512: hashes.SHA512,
}


def _algorithm(hash: Hash) -> hashes.HashAlgorithm:
    return _ALGORITHMS[hash]()


class VerifyFailedError(Exception):
    def __init__(self) -> None:
        super().__init__("verification failed")


class UnsupportedKeyTypeError(TypeError):
    def __init__(self, key_type: str) -> None:
        super().__init__(f"unsupported signer key type: {key_type}")
        self.key_type = key_type


class RSAVerifier:
    """Verifies RSA-PSS signatures over a digest of the message."""

    def __init__(self, pub: rsa.RSAPublicKey, hash: Hash) -> None:
        self._pub = pub
        self._hash = hash

    def key_id(self) -> str:
        return generate_public_key_id(self._pub, self._hash)

    def verify(self, stream: BinaryIO, sig: bytes) -> None:
        algorithm = _algorithm(self._hash)
        try:
            self._pub.verify(
                sig,
                digest(stream, self._hash),
                padding.PSS(mgf=padding.MGF1(algorithm), salt_length=padding.PSS.AUTO),
                utils.Prehashed(algorithm),
            )
        except InvalidSignature as exc:
            raise VerifyFailedError() from exc

    def to_bytes(self) -> bytes:
        return public_pem_bytes(self._pub)


class RSASigner:
    """Signs with RSA-PSS over a digest of the message."""

    def __init__(self, priv: rsa.RSAPrivateKey, hash: Hash) -> None:
        self._priv = priv
        self._hash = hash

    def key_id(self) -> str:
        return generate_public_key_id(self._priv.public_key(), self._hash)

    def sign(self, stream: BinaryIO) -> bytes:
        algorithm = _algorithm(self._hash)
        return self._priv.sign(
            digest(stream, self._hash),
            padding.PSS(mgf=padding.MGF1(algorithm), salt_length=padding.PSS.MAX_LENGTH),
            utils.Prehashed(algorithm),
        )

    def verifier(self) -> RSAVerifier:
        return RSAVerifier(self._priv.public_key(), self._hash)


class ECDSAVerifier:
    """Verifies ASN.1 ECDSA signatures over a digest of the message."""

    def __init__(self, pub: ec.EllipticCurvePublicKey, hash: Hash) -> None:
        self._pub = pub
        self._hash = hash

    def key_id(self) -> str:
        return generate_public_key_id(self._pub, self._hash)

    def verify(self, stream: BinaryIO, sig: bytes) -> None:
        algorithm = _algorithm(self._hash)
        try:
            self._pub.verify(
                sig, digest(stream, self._hash), ec.ECDSA(utils.Prehashed(algorithm))
            )
        except InvalidSignature as exc:
            raise VerifyFailedError() from exc

    def to_bytes(self) -> bytes:
        return public_pem_bytes(self._pub)


class ECDSASigner:
    """Signs with ECDSA over a digest of the message, ASN.1 encoded."""

    def __init__(self, priv: ec.EllipticCurvePrivateKey, hash: Hash) -> None:
        self._priv = priv
        self._hash = hash

    def key_id(self) -> str:
        return generate_public_key_id(self._priv.public_key(), self._hash)

    def sign(self, stream: BinaryIO) -> bytes:
        algorithm = _algorithm(self._hash)
        return self._priv.sign(
            digest(stream, self._hash), ec.ECDSA(utils.Prehashed(algorithm))
        )

    def verifier(self) -> ECDSAVerifier:
        return ECDSAVerifier(self._priv.public_key(), self._hash)


class ED25519Verifier:
    """Verifies Ed25519 signatures over the whole message."""

    def __init__(self, pub: ed25519.Ed25519PublicKey) -> None:
        self._pub = pub

    def key_id(self) -> str:
        return generate_public_key_id(self._pub, Hash.SHA256)

    def verify(self, stream: BinaryIO, sig: bytes) -> None:
        try:
            self._pub.verify(sig, stream.read())
        except InvalidSignature as exc:
            raise VerifyFailedError() from exc

    def to_bytes(self) -> bytes:
        return public_pem_bytes(self._pub)


class ED25519Signer:
    """Signs the whole message with Ed25519."""

    def __init__(self, priv: ed25519.Ed25519PrivateKey) -> None:
        self._priv = priv

    def key_id(self) -> str:
        return generate_public_key_id(self._priv.public_key(), Hash.SHA256)

    def sign(self, stream: BinaryIO) -> bytes:
        return self._priv.sign(stream.read())

    def verifier(self) -> ED25519Verifier:
        return ED25519Verifier(self._priv.public_key())