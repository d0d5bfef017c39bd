import io
import json

import pytest

from witness.cryptoutil.digestset import (
    DigestSet,
    DigestValue,
    Hash,
    UnsupportedHashError,
    calculate_digest_set,
    calculate_digest_set_from_bytes,
    calculate_digest_set_from_file,
    hash_from_string,
    hash_to_string,
    new_digest_set,
)

EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
EMPTY_SHA1 = "da39a3ee5e6b4b0d3255bfef95601890afd80709"


def test_empty_input_digests():
    ds = calculate_digest_set_from_bytes(b"", [Hash.SHA256, Hash.SHA1])
    assert ds[DigestValue(Hash.SHA256)] == EMPTY_SHA256
    assert ds[DigestValue(Hash.SHA1)] == EMPTY_SHA1


def test_stream_and_bytes_agree():
    data = b"this is some test data" * 10000
    from_stream = calculate_digest_set(io.BytesIO(data), [Hash.SHA256, Hash.SHA1])
    from_bytes = calculate_digest_set_from_bytes(data, [Hash.SHA256, Hash.SHA1])
    assert from_stream == from_bytes
    assert from_stream.equal(from_bytes)


def test_file_digest_matches_bytes(tmp_path):
    path = tmp_path / "artifact.bin"
    path.write_bytes(b"test")
    from_file = calculate_digest_set_from_file(path, [Hash.SHA256])
    assert from_file == calculate_digest_set_from_bytes(b"test", [Hash.SHA256])


def test_file_digest_rejects_directory(tmp_path):
    with pytest.raises(ValueError, match="is not a hashable file"):
        calculate_digest_set_from_file(tmp_path, [Hash.SHA256])


def test_file_digest_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        calculate_digest_set_from_file(tmp_path / "missing", [Hash.SHA256])


def test_hash_names():
    assert hash_to_string(Hash.SHA256) == "sha256"
    assert hash_to_string(Hash.SHA1) == "sha1"
    assert hash_from_string("sha256") is Hash.SHA256
    assert hash_from_string("gitoid:sha256") is Hash.SHA256
    assert hash_from_string("gitoid:sha1") is Hash.SHA1


def test_unsupported_hash_names():
    with pytest.raises(UnsupportedHashError):
        hash_to_string(Hash.SHA512)
    with pytest.raises(UnsupportedHashError) as info:
        hash_from_string("md5")
    assert str(info.value) == "unsupported hash function: md5"


def test_name_map_round_trip():
    names = {"sha256": "aa", "sha1": "bb", "gitoid:sha256": "cc", "gitoid:sha1": "dd"}
    ds = new_digest_set(names)
    assert ds[DigestValue(Hash.SHA256, True)] == "cc"
    assert ds[DigestValue(Hash.SHA1, False)] == "bb"
    assert ds.to_name_map() == names


def test_unknown_name_rejected():
    with pytest.raises(UnsupportedHashError):
        DigestSet.from_name_map({"sha999": "aa"})


def test_to_name_map_rejects_unnamed_hash():
    ds = DigestSet({DigestValue(Hash.SHA512): "aa"})
    with pytest.raises(UnsupportedHashError):
        ds.to_name_map()


def test_json_round_trip():
    ds = calculate_digest_set_from_bytes(b"test", [Hash.SHA256, Hash.SHA1])
    text = ds.to_json()
    assert set(json.loads(text)) == {"sha256", "sha1"}
    assert DigestSet.from_json(text) == ds
    assert DigestSet.from_json(text.encode()) == ds


def test_json_rejects_non_object():
    with pytest.raises(ValueError):
        DigestSet.from_json("[1, 2]")
    with pytest.raises(UnsupportedHashError):
        DigestSet.from_json('{"blake": "aa"}')


def test_equal_semantics():
    a = DigestSet({DigestValue(Hash.SHA256): "x", DigestValue(Hash.SHA1): "y"})
    same_shared = DigestSet({DigestValue(Hash.SHA256): "x"})
    conflicting = DigestSet({DigestValue(Hash.SHA256): "x", DigestValue(Hash.SHA1): "z"})
    disjoint = DigestSet({DigestValue(Hash.SHA256, True): "x"})
    assert a.equal(same_shared)
    assert same_shared.equal(a)
    assert not a.equal(conflicting)
    assert not a.equal(disjoint)
    assert not DigestSet().equal(DigestSet())


def test_hash_new_and_label():
    hasher = Hash.SHA256.new()
    hasher.update(b"")
    assert hasher.hexdigest() == EMPTY_SHA256
    assert str(UnsupportedHashError(str(Hash.SHA1))).endswith(str(Hash.SHA1))