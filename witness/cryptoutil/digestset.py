"""Sets of digests keyed by hash function, and their JSON form."""

from __future__ import annotations

import hashlib
import json
import os
import stat
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Iterable, Mapping

__all__ = [
    "Hash",
    "UnsupportedHashError",
    "DigestValue",
    "DigestSet",
    "hash_to_string",
    "hash_from_string",
    "new_digest_set",
    "calculate_digest_set",
    "calculate_digest_set_from_bytes",
    "calculate_digest_set_from_file",
]

_CHUNK_SIZE = 64 * 1024


class Hash(Enum):
    """Hash functions known to the library."""

    MD5 = "md5"
    SHA1 = "sha1"
    SHA224 = "sha224"
    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"

    def new(self):
        """Return a fresh hashlib object for this function."""
        return hashlib.new(self.value)

    def __str__(self) -> str:
        return _LABELS[self]


_LABELS = {
    Hash.MD5: "MD5",
    Hash.SHA1: "SHA-1",
    Hash.SHA224: "SHA-224",
    Hash.SHA256: "SHA-256",
    Hash.SHA384: "SHA-384",
    Hash.SHA512: "SHA-512",
}


class UnsupportedHashError(ValueError):
    """Raised for a hash function or name that has no digest-set name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"unsupported hash function: {name}")
        self.name = name


@dataclass(frozen=True)
class DigestValue:
    """A hash function, optionally used in gitoid form."""

    hash: Hash
    git_oid: bool = False


_NAMES: dict[DigestValue, str] = {
    DigestValue(Hash.SHA256, False): "sha256",
    DigestValue(Hash.SHA1, False): "sha1",
    DigestValue(Hash.SHA256, True): "gitoid:sha256",
    DigestValue(Hash.SHA1, True): "gitoid:sha1",
}

_BY_NAME: dict[str, DigestValue] = {name: value for value, name in _NAMES.items()}


class DigestSet(dict):
    """Mapping of DigestValue to hex digest."""

    def equal(self, other: Mapping[DigestValue, str]) -> bool:
        """True if all shared hash functions agree and at least one is shared."""
        has_match = False
        for value, digest in self.items():
            if value not in other:
                continue
            if other[value] != digest:
                return False
            has_match = True
        return has_match

    def to_name_map(self) -> dict[str, str]:
        """Return the digests keyed by their names, such as 'sha256'."""
        result = {}
        for value, digest in self.items():
            name = _NAMES.get(value)
            if name is None:
                raise UnsupportedHashError(str(value.hash))
            result[name] = digest
        return result

    @classmethod
    def from_name_map(cls, digests_by_name: Mapping[str, str]) -> "DigestSet":
        """Build a set from digests keyed by name."""
        result = cls()
        for name, digest in digests_by_name.items():
            value = _BY_NAME.get(name)
            if value is None:
                raise UnsupportedHashError(name)
            result[value] = digest
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_name_map(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_json(cls, data: str | bytes) -> "DigestSet":
        parsed = json.loads(data)
        if not isinstance(parsed, dict) or not all(
            isinstance(v, str) for v in parsed.values()
        ):
            raise ValueError("digest set must be a JSON object of strings")
        return cls.from_name_map(parsed)


def hash_to_string(hash: Hash) -> str:
    """Return the digest-set name of a plain hash function."""
    name = _NAMES.get(DigestValue(hash, False))
    if name is None:
        raise UnsupportedHashError(str(hash))
    return name


def hash_from_string(name: str) -> Hash:
    """Return the hash function behind a digest-set name."""
    value = _BY_NAME.get(name)
    if value is None:
        raise UnsupportedHashError(name)
    return value.hash


def new_digest_set(digests_by_name: Mapping[str, str]) -> DigestSet:
    return DigestSet.from_name_map(digests_by_name)


def calculate_digest_set(stream: BinaryIO, hashes: Iterable[Hash]) -> DigestSet:
    """Hash everything read from a binary stream with each hash function."""
    hashers = {h: h.new() for h in hashes}
    for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
        for hasher in hashers.values():
            hasher.update(chunk)
    return DigestSet(
        {DigestValue(h, False): hasher.hexdigest() for h, hasher in hashers.items()}
    )


def calculate_digest_set_from_bytes(data: bytes, hashes: Iterable[Hash]) -> DigestSet:
    digest_set = DigestSet()
    for h in hashes:
        hasher = h.new()
        hasher.update(data)
        digest_set[DigestValue(h, False)] = hasher.hexdigest()
    return digest_set


def calculate_digest_set_from_file(
    path: str | os.PathLike, hashes: Iterable[Hash]
) -> DigestSet:
    """Hash a regular file; other kinds of file are refused."""
    mode = os.stat(path).st_mode
    if not stat.S_ISREG(mode):
        raise ValueError(f"{os.fspath(path)} is not a hashable file")
    with open(path, "rb") as handle:
        return calculate_digest_set(handle, hashes)