[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "witness"
version = "0.1.0"
description = "Software supply-chain attestation primitives: digest sets, key-based signers and verifiers, in-toto statements and DSSE envelopes."
requires-python = ">=3.10"
keywords = ["attestation", "dsse", "in-toto", "supply-chain", "signing", "x509", "digest"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["witness"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
