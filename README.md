# witness

Building blocks for signing and verifying software supply-chain attestations.
It is a library only: there is no command to run.

## Modules

- `witness.cryptoutil.digestset`: the `Hash` enum and `DigestSet`, a `dict`
  that maps a `DigestValue` (a hash function, optionally in gitoid form) to a
  hex digest. Only `sha256`, `sha1`, `gitoid:sha256` and `gitoid:sha1` have
  names; `to_name_map`, `from_name_map`, `to_json` and `from_json` convert to
  and from those names and raise `UnsupportedHashError` for anything else.
  `DigestSet.equal` is true when every hash function the two sets share gives
  the same digest and they share at least one. `calculate_digest_set`,
  `calculate_digest_set_from_bytes` and `calculate_digest_set_from_file`
  compute digests; the file version accepts regular files only and raises
  `ValueError` for anything else.
- `witness.cryptoutil.util`: `digest`, `digest_bytes`, `hex_encode`,
  `decode_pem` (first PEM block, as a `PemBlock`), `public_pem_bytes`,
  `generate_public_key_id` (hex digest of the key's PEM form), and
  `try_parse_pem_block`, `try_parse_key_from_reader` and
  `try_parse_certificate`, which return a private key, public key or
  certificate, raising `InvalidPEMBlockError` or `UnsupportedPEMError`.
- `witness.cryptoutil.keys`: `RSASigner`/`RSAVerifier` (RSA-PSS over a
  digest), `ECDSASigner`/`ECDSAVerifier` (ASN.1 ECDSA over a digest) and
  `ED25519Signer`/`ED25519Verifier` (over the whole message). A failed check
  raises `VerifyFailedError`.
- `witness.cryptoutil.signing`: the `Signer`, `Verifier` and `TrustBundler`
  protocols; `new_signer`, `new_signer_from_reader`, `new_verifier` and
  `new_verifier_from_reader`; and `X509Signer` / `X509Verifier`, which carry a
  certificate with its intermediates and roots. `X509Verifier.verify` first
  checks that the certificate chains to one of the roots and that every
  certificate in the chain is valid at the trusted time (now, if none is
  given), then checks the signature. `belongs_to_root` checks the chain
  against a single root.
- `witness.intoto`: `Statement` and `Subject`, built with `new_statement` and
  `digest_set_to_subject`; `Statement.to_json` gives the in-toto JSON form.
- `witness.dsse`: `preauth_encode`, `sign` and `Envelope`, with
  `to_json`/`from_json` (binary fields base64-encoded) and `Envelope.verify`.
- `witness.log`: a pluggable `Logger` that is silent by default.

## Installation

```
pip install .
```

## Signing and verifying an envelope

```python
import io

from cryptography.hazmat.primitives.asymmetric import ed25519

from witness import dsse
from witness.cryptoutil.signing import new_signer

key = ed25519.Ed25519PrivateKey.generate()
signer = new_signer(key)

envelope = dsse.sign(
    "application/vnd.in-toto+json",
    io.BytesIO(b'{"hello": "world"}'),
    signers=[signer],
)

passed = envelope.verify(verifiers=[signer.verifier()])
print(len(passed))  # 1
```

`Envelope.verify` takes keyword arguments `verifiers`, `roots`,
`intermediates`, `threshold` (default 1) and `timestamp_verifiers`.
Signatures that carry a certificate are checked against the roots, and when
timestamp verifiers are given, at each verified timestamp's time.

- A threshold of zero or less raises `InvalidThresholdError`.
- An envelope with no signatures raises `NoSignaturesError`.
- If nothing matches, `verify` raises `NoMatchingSigsError`.
- If fewer verifiers pass than the threshold, it raises
  `ThresholdNotMetError`. The verifiers that did pass are in its
  `passed_verifiers` attribute.

If a signer given to `sign` is a `TrustBundler`, such as an `X509Signer`,
the signature also carries its certificate and intermediates in PEM form.
Each `Timestamper` passed to `sign` adds a timestamp over the signature.

## Digest sets

```python
from witness.cryptoutil.digestset import Hash, calculate_digest_set_from_bytes

ds = calculate_digest_set_from_bytes(b"test", [Hash.SHA256])
print(ds.to_name_map())
```

## Logging

The library logs nothing by default. To capture its output, pass an object
that has the `Logger` methods (`errorf`, `error`, `warnf`, `warn`, `debugf`,
`debug`, `infof`, `info`) to `witness.log.set_logger`.

## What this package does not do

- There is no command-line tool.
- There are no attestors that collect information about a build.
- There is no timestamp authority client. `Timestamper` and
  `TimestampVerifier` are protocols that you implement yourself.
- Certificate chain checks cover validity periods, basic constraints, path
  length and key usage. They do not check revocation, extended key usage or
  name constraints.

## Running the tests

```
pip install ".[test]"
pytest
```