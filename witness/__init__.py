"""Supply-chain attestation primitives: digest sets, signers and verifiers, in-toto statements, DSSE envelopes and a pluggable logger."""

__version__ = "0.1.0"