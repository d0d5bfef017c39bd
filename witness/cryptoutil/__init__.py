"""Digest sets, PEM and key parsing, key-based and X.509 signers and verifiers."""