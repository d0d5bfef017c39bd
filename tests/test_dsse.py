import io
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa
from cryptography.x509.oid import NameOID

from witness.cryptoutil.digestset import Hash
from witness.cryptoutil.keys import ED25519Signer, RSASigner, RSAVerifier
from witness.cryptoutil.signing import new_signer
from witness.dsse import (
    Envelope,
    InvalidThresholdError,
    NoMatchingSigsError,
    NoSignaturesError,
    Signature,
    SignatureTimestamp,
    SignatureTimestampType,
    ThresholdNotMetError,
    preauth_encode,
    sign,
)

DATA = b"this is some dummy data"


def _rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="module")
def rsa_keys():
    return [_rsa_key() for _ in range(10)]


def _pair(key):
    return RSASigner(key, Hash.SHA256), RSAVerifier(key.public_key(), Hash.SHA256)


def _name(common_name):
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example Org"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )


def _key_usage(cert_sign):
    return x509.KeyUsage(
        digital_signature=not cert_sign,
        content_commitment=False,
        key_encipherment=False,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=cert_sign,
        crl_sign=cert_sign,
        encipher_only=False,
        decipher_only=False,
    )


def _cert(subject, issuer, pub, issuer_key, ca, path_length):
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(pub)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(hours=24))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=path_length), critical=True)
        .add_extension(_key_usage(ca), critical=True)
        .sign(issuer_key, hashes.SHA256())
    )


@pytest.fixture(scope="module")
def chain():
    root_key = _rsa_key()
    root = _cert(_name("Test Root"), _name("Test Root"), root_key.public_key(), root_key, True, 2)
    inter_key = _rsa_key()
    inter = _cert(
        _name("Test Intermediate"), root.subject, inter_key.public_key(), root_key, True, 1
    )
    leaf_key = _rsa_key()
    leaf = _cert(_name("Test Leaf"), inter.subject, leaf_key.public_key(), inter_key, False, None)
    return root, inter, leaf, leaf_key


@dataclass(frozen=True)
class DummyTimestamper:
    t: datetime

    def _text(self):
        return self.t.isoformat(timespec="seconds").encode()

    def timestamp(self, stream):
        return self._text()

    def verify(self, timestamp, sig):
        if timestamp.read() != self._text():
            raise ValueError("mismatched time")
        return self.t


def test_preauth_encode():
    assert preauth_encode("dummydata", DATA) == b"DSSEv1 9 dummydata 23 this is some dummy data"


def test_sign(rsa_keys):
    signer, _ = _pair(rsa_keys[0])
    env = sign("dummydata", io.BytesIO(DATA), signers=[signer])
    assert env.payload == DATA
    assert env.payload_type == "dummydata"
    assert len(env.signatures) == 1
    assert env.signatures[0].key_id == signer.key_id()
    assert env.signatures[0].certificate == b""


def test_sign_requires_signer():
    with pytest.raises(ValueError, match="must have at least one signer, have 0"):
        sign("dummydata", DATA)


def test_verify(rsa_keys):
    signer, verifier = _pair(rsa_keys[0])
    env = sign("dummydata", DATA, signers=[signer])
    passed = env.verify(verifiers=[verifier])
    assert len(passed) == 1
    assert passed[0].verifier is verifier
    assert passed[0].passed_timestamp_verifiers == []


def test_fail_verify(rsa_keys):
    signer, _ = _pair(rsa_keys[0])
    _, verifier = _pair(rsa_keys[1])
    env = sign("dummydata", DATA, signers=[signer])
    with pytest.raises(NoMatchingSigsError):
        env.verify(verifiers=[verifier])


def test_multi_signers(rsa_keys):
    pairs = [_pair(k) for k in rsa_keys[:5]]
    env = sign("dummydata", DATA, signers=[s for s, _ in pairs])
    passed = env.verify(verifiers=[v for _, v in pairs])
    assert len(passed) == 5
    assert {id(p.verifier) for p in passed} == {id(v) for _, v in pairs}


def test_threshold(rsa_keys):
    pairs = [_pair(k) for k in rsa_keys[:5]]
    extra = [_pair(k)[1] for k in rsa_keys[5:]]
    verifiers = [v for _, v in pairs] + extra
    env = sign("dummydata", DATA, signers=[s for s, _ in pairs])

    passed = env.verify(verifiers=verifiers, threshold=5)
    assert {id(p.verifier) for p in passed} == {id(v) for _, v in pairs}

    with pytest.raises(ThresholdNotMetError) as info:
        env.verify(verifiers=verifiers, threshold=10)
    assert info.value.threshold == 10
    assert info.value.actual == 5
    assert {id(p.verifier) for p in info.value.passed_verifiers} == {id(v) for _, v in pairs}

    with pytest.raises(InvalidThresholdError) as bad:
        env.verify(verifiers=verifiers, threshold=-10)
    assert bad.value.threshold == -10


def test_no_signatures():
    env = Envelope(payload=DATA, payload_type="dummydata")
    with pytest.raises(NoSignaturesError):
        env.verify()


def test_timestamp(chain):
    root, inter, leaf, leaf_key = chain
    s = new_signer(leaf_key, certificate=leaf)
    v = s.verifier()
    now = datetime.now(timezone.utc)
    expected = [DummyTimestamper(now), DummyTimestamper(now + timedelta(hours=12))]
    unexpected = [
        DummyTimestamper(now + timedelta(hours=36)),
        DummyTimestamper(now + timedelta(hours=128)),
    ]
    everything = expected + unexpected

    env = sign("dummydata", DATA, signers=[s], timestampers=everything)
    assert len(env.signatures[0].timestamps) == 4
    assert env.signatures[0].timestamps[0].type is SignatureTimestampType.RFC3161

    passed = env.verify(
        verifiers=[v], roots=[root], intermediates=[inter], timestamp_verifiers=everything
    )
    assert len(passed) == 1
    assert passed[0].passed_timestamp_verifiers == expected


def test_certificate_chain_embedded(chain):
    root, inter, leaf, leaf_key = chain
    s = new_signer(leaf_key, certificate=leaf, intermediates=[inter])
    env = sign("dummydata", DATA, signers=[s])
    sig = env.signatures[0]
    assert sig.certificate == leaf.public_bytes(serialization.Encoding.PEM)
    assert sig.intermediates == [inter.public_bytes(serialization.Encoding.PEM)]

    passed = env.verify(roots=[root])
    assert len(passed) == 1
    assert passed[0].verifier.certificate() == leaf

    with pytest.raises(NoMatchingSigsError):
        env.verify()


def test_envelope_json_round_trip(rsa_keys):
    signer, verifier = _pair(rsa_keys[0])
    env = sign("dummydata", DATA, signers=[signer])
    restored = Envelope.from_json(env.to_json())
    assert restored == env
    assert restored.verify(verifiers=[verifier])[0].verifier is verifier


def test_envelope_to_dict_shape():
    env = Envelope(
        payload=b"hi",
        payload_type="t",
        signatures=[Signature(key_id="k", signature=b"\x01\x02")],
    )
    assert env.to_dict() == {
        "payload": "aGk=",
        "payloadType": "t",
        "signatures": [{"keyid": "k", "sig": "AQI="}],
    }


def test_signature_dict_round_trip_with_extras():
    sig = Signature(
        key_id="k",
        signature=b"sig",
        certificate=b"cert",
        intermediates=[b"i1", b"i2"],
        timestamps=[SignatureTimestamp(SignatureTimestampType.RFC3161, b"ts")],
    )
    data = sig.to_dict()
    assert data["timestamps"] == [{"type": "tsp", "data": "dHM="}]
    assert Signature.from_dict(data) == sig


def test_ed25519_sign_and_verify():
    key = ed25519.Ed25519PrivateKey.generate()
    signer = ED25519Signer(key)
    env = sign("dummydata", DATA, signers=[signer])
    verifier = signer.verifier()
    assert env.verify(verifiers=[verifier])[0].verifier is verifier
    env.payload = b"tampered"
    with pytest.raises(NoMatchingSigsError):
        env.verify(verifiers=[verifier])