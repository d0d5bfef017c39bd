"""in-toto statements built from named digest sets."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping

from witness.cryptoutil.digestset import DigestSet

__all__ = [
    "STATEMENT_TYPE",
    "PAYLOAD_TYPE",
    "Subject",
    "Statement",
    "new_statement",
    "digest_set_to_subject",
]

STATEMENT_TYPE = "https://in-toto.io/Statement/v0.1"
PAYLOAD_TYPE = "application/vnd.in-toto+json"


@dataclass
class Subject:
    """A named artifact and its digests keyed by hash name."""

    name: str
    digest: dict[str, str] = field(default_factory=dict)


@dataclass
class Statement:
    """An in-toto statement; the predicate is held as raw JSON."""

    predicate_type: str
    predicate: bytes = b""
    subject: list[Subject] = field(default_factory=list)
    type: str = STATEMENT_TYPE

    def to_dict(self) -> dict[str, Any]:
        raw = self.predicate.encode() if isinstance(self.predicate, str) else self.predicate
        return {
            "_type": self.type,
            "subject": [
                {"name": subj.name, "digest": dict(sorted(subj.digest.items()))}
                for subj in self.subject
            ],
            "predicateType": self.predicate_type,
            "predicate": json.loads(raw) if raw else None,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


def digest_set_to_subject(name: str, digest_set: DigestSet) -> Subject:
    """Turn a digest set into a subject with named digests."""
    return Subject(name=name, digest=digest_set.to_name_map())


def new_statement(
    predicate_type: str,
    predicate: bytes | str,
    subjects: Mapping[str, DigestSet],
) -> Statement:
    """Build a statement with one subject per named digest set."""
    raw = predicate.encode() if isinstance(predicate, str) else bytes(predicate)
    return Statement(
        predicate_type=predicate_type,
        predicate=raw,
        subject=[digest_set_to_subject(name, ds) for name, ds in subjects.items()],
    )