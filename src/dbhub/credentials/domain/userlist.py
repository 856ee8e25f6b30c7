"""Model of the pooler credential cache (``userlist.txt``).

Every credential line has the form ``"username" "secret-hash"``: exactly one
space between two double-quoted fields, a ``"`` inside a field written as
``""``. Lines starting with ``#`` and blank lines are kept as they are.

The module covers three jobs:

- parse a cache file into lines, classifying each one,
- render the canonical file a full resync produces, and apply single-entry
  edits that keep a canonical file canonical,
- repair structurally broken lines when exactly one reading is possible,
  and set everything else aside for quarantine.
"""

from __future__ import annotations

import base64
import binascii
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

HEADER = "# PgBouncer userlist - managed by dbhub\n"

_CANONICAL_RE = re.compile(r'^"((?:[^"]|"")+)" "([^"\s]+)"$')
_QUOTED_FIELD_RE = re.compile(r'"((?:[^"]|"")*)"')
_LOOSE_FIELD_RE = re.compile(r'"?([^\s"]+)"?')
_WHITESPACE_RE = re.compile(r"\s+")

_SCRAM_RE = re.compile(
    r"^SCRAM-SHA-256\$(\d+):([A-Za-z0-9+/]+={0,2})"
    r"\$([A-Za-z0-9+/]+={0,2}):([A-Za-z0-9+/]+={0,2})$"
)
_MD5_RE = re.compile(r"^md5[0-9a-f]{32}$")
SCRAM_KEY_LENGTH = 32


def verifier_problem(secret_hash: str) -> str | None:
    """Describe what is wrong with a password verifier, or None if it is valid.

    Accepted formats are PostgreSQL's ``SCRAM-SHA-256$<iter>:<salt>$<stored>:<server>``
    and ``md5<32 hex digits>``.
    """
    if secret_hash.startswith("SCRAM-SHA-256$"):
        match = _SCRAM_RE.match(secret_hash)
        if match is None:
            return "malformed SCRAM-SHA-256 verifier"
        iterations, salt, stored_key, server_key = match.groups()
        if int(iterations) < 1:
            return "SCRAM-SHA-256 verifier has no iterations"
        try:
            if not base64.b64decode(salt, validate=True):
                return "SCRAM-SHA-256 verifier has an empty salt"
            for key in (stored_key, server_key):
                if len(base64.b64decode(key, validate=True)) != SCRAM_KEY_LENGTH:
                    return "truncated SCRAM-SHA-256 verifier"
        except binascii.Error:
            return "truncated SCRAM-SHA-256 verifier"
        return None

    if secret_hash.startswith("md5"):
        if _MD5_RE.match(secret_hash):
            return None
        return "truncated md5 verifier"

    return "unknown verifier format"


def quote_field(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def unquote_field(value: str) -> str:
    return value.replace('""', '"')


@dataclass(frozen=True)
class CacheEntry:
    """One credential of the cache."""

    username: str
    secret_hash: str

    def render(self) -> str:
        return f"{quote_field(self.username)} {quote_field(self.secret_hash)}"


class LineKind(StrEnum):
    ENTRY = "entry"
    COMMENT = "comment"
    CORRUPT = "corrupt"


@dataclass(frozen=True)
class UserlistLine:
    """A physical line of the cache file (without its newline)."""

    lineno: int
    raw: str
    kind: LineKind
    entry: CacheEntry | None = None
    problem: str | None = None


def classify_line(lineno: int, raw: str) -> UserlistLine:
    """Classify one line without changing it."""
    if not raw.strip() or raw.lstrip().startswith("#"):
        return UserlistLine(lineno, raw, LineKind.COMMENT)

    match = _CANONICAL_RE.match(raw)
    if match is None:
        return UserlistLine(
            lineno, raw, LineKind.CORRUPT, problem="line is not in canonical form"
        )

    entry = CacheEntry(unquote_field(match.group(1)), match.group(2))
    problem = verifier_problem(entry.secret_hash)
    if problem is not None:
        return UserlistLine(lineno, raw, LineKind.CORRUPT, entry=entry, problem=problem)
    return UserlistLine(lineno, raw, LineKind.ENTRY, entry=entry)


@dataclass(frozen=True)
class Userlist:
    """Parsed cache file."""

    lines: tuple[UserlistLine, ...] = ()
    trailing_newline: bool = True

    @classmethod
    def parse(cls, text: str) -> Userlist:
        raw_lines = text.splitlines()
        return cls(
            lines=tuple(
                classify_line(lineno, raw)
                for lineno, raw in enumerate(raw_lines, start=1)
            ),
            trailing_newline=text.endswith("\n") or not raw_lines,
        )

    @classmethod
    def canonical(cls, entries: Mapping[str, str]) -> Userlist:
        """The file a full resync writes for ``entries``."""
        return cls.parse(render_canonical(entries))

    def render(self) -> str:
        if not self.lines:
            return ""
        body = "\n".join(line.raw for line in self.lines)
        return body + "\n" if self.trailing_newline else body

    def entries(self) -> dict[str, str]:
        """Valid credentials by username; the first line wins for a repeated name."""
        result: dict[str, str] = {}
        for line in self.lines:
            if line.kind == LineKind.ENTRY and line.entry is not None:
                result.setdefault(line.entry.username, line.entry.secret_hash)
        return result

    def corrupt_lines(self) -> list[UserlistLine]:
        return [line for line in self.lines if line.kind == LineKind.CORRUPT]

    def holds(self, username: str) -> bool:
        """Whether any line, damaged ones included, carries ``username``."""
        return any(_belongs_to(line, username) for line in self.lines)

    def with_entry(self, username: str, secret_hash: str) -> Userlist:
        """Set one username's credential.

        An existing line for the username, damaged or not, is replaced in
        place (further lines for it are dropped). A new username is inserted
        before the first entry that sorts after it, which keeps a sorted file
        sorted.
        """
        entry = CacheEntry(username, secret_hash)
        new_line = UserlistLine(0, entry.render(), LineKind.ENTRY, entry=entry)
        lines: list[UserlistLine] = []
        replaced = False
        for line in self.lines:
            if _belongs_to(line, username):
                if not replaced:
                    lines.append(new_line)
                    replaced = True
                continue
            lines.append(line)

        if not replaced:
            if not lines:
                lines = list(Userlist.parse(HEADER).lines)
            position = len(lines)
            for index, line in enumerate(lines):
                if line.kind == LineKind.ENTRY and line.entry.username > username:
                    position = index
                    break
            else:
                last_entry = max(
                    (i for i, line in enumerate(lines) if line.kind == LineKind.ENTRY),
                    default=None,
                )
                if last_entry is not None:
                    position = last_entry + 1
            lines.insert(position, new_line)

        return Userlist(lines=_renumber(lines), trailing_newline=True)

    def without_entry(self, username: str) -> Userlist:
        """Drop every line that holds ``username``'s credential."""
        lines = [line for line in self.lines if not _belongs_to(line, username)]
        return Userlist(lines=_renumber(lines), trailing_newline=self.trailing_newline)


def _belongs_to(line: UserlistLine, username: str) -> bool:
    """Whether the pooler could read ``line`` as a credential for ``username``.

    Damaged lines count when their first field names the user; the pooler
    reads those despite the spacing or quoting ``_CANONICAL_RE`` rejects.
    """
    if line.entry is not None:
        return line.entry.username == username
    if line.kind != LineKind.CORRUPT:
        return False
    fields = _split_fields(line.raw.strip())
    return bool(fields) and fields[0] == username


def _renumber(lines: Iterable[UserlistLine]) -> tuple[UserlistLine, ...]:
    return tuple(
        UserlistLine(lineno, line.raw, line.kind, line.entry, line.problem)
        for lineno, line in enumerate(lines, start=1)
    )


def render_canonical(entries: Mapping[str, str]) -> str:
    """Header followed by one line per credential, ordered by username."""
    return HEADER + "".join(
        CacheEntry(username, entries[username]).render() + "\n"
        for username in sorted(entries)
    )


# Repair


@dataclass(frozen=True)
class RepairedLine:
    lineno: int
    username: str
    original: str
    repaired: str


@dataclass(frozen=True)
class QuarantinedLine:
    lineno: int
    raw: str
    reason: str


@dataclass
class RepairPlan:
    """Outcome of inspecting a cache file for structural damage."""

    userlist: Userlist
    repaired: list[RepairedLine] = field(default_factory=list)
    quarantined: list[QuarantinedLine] = field(default_factory=list)
    duplicates_removed: list[int] = field(default_factory=list)
    valid: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.repaired or self.quarantined or self.duplicates_removed)

    def render(self) -> str:
        return self.userlist.render()


def _split_fields(text: str) -> list[str] | None:
    """Split a line into quoted or bare fields; None when it cannot be split."""
    fields: list[str] = []
    pos = 0
    while pos < len(text):
        while pos < len(text) and text[pos].isspace():
            pos += 1
        if pos >= len(text):
            break
        match = _QUOTED_FIELD_RE.match(text, pos)
        if match is not None and (
            match.end() == len(text) or text[match.end()].isspace()
        ):
            fields.append(unquote_field(match.group(1)))
        else:
            match = _LOOSE_FIELD_RE.match(text, pos)
            if match is None:
                return None
            fields.append(match.group(1))
        pos = match.end()
    return fields


def repair_line(raw: str) -> tuple[CacheEntry | None, str | None]:
    """Try to read a damaged line as exactly one credential.

    Returns:
        ``(entry, None)`` when the line has a single unambiguous reading,
        ``(None, reason)`` otherwise
    """
    fields = _split_fields(raw.strip())
    if fields is None:
        return None, "unbalanced quotes"
    if len(fields) < 2:
        return None, "missing secret hash"
    if len(fields) > 2:
        return None, f"expected 2 fields, found {len(fields)}"

    username, secret_hash = fields
    if not username or username != username.strip():
        return None, "invalid username"
    secret_hash = _WHITESPACE_RE.sub("", secret_hash)
    problem = verifier_problem(secret_hash)
    if problem is not None:
        return None, problem
    return CacheEntry(username, secret_hash), None


def plan_repair(userlist: Userlist) -> RepairPlan:
    """Work out the repaired cache.

    Valid lines are never changed. Damaged lines with one possible reading
    are rewritten; repeated lines for a username are collapsed when they
    agree, and every line for that username is quarantined when they
    disagree. Everything else is quarantined.
    """
    candidates: list[tuple[UserlistLine, CacheEntry | None, str | None]] = []
    for line in userlist.lines:
        if line.kind == LineKind.COMMENT:
            candidates.append((line, None, None))
        elif line.kind == LineKind.ENTRY:
            candidates.append((line, line.entry, None))
        else:
            entry, reason = repair_line(line.raw)
            candidates.append((line, entry, reason))

    hashes: dict[str, set[str]] = {}
    for _, entry, _ in candidates:
        if entry is not None:
            hashes.setdefault(entry.username, set()).add(entry.secret_hash)
    conflicting = {name for name, values in hashes.items() if len(values) > 1}

    plan = RepairPlan(userlist=userlist)
    kept: list[UserlistLine] = []
    seen: set[str] = set()
    for line, entry, reason in candidates:
        if line.kind == LineKind.COMMENT:
            kept.append(line)
            continue
        if entry is None:
            plan.quarantined.append(
                QuarantinedLine(line.lineno, line.raw, reason or "unreadable line")
            )
            continue
        if entry.username in conflicting:
            plan.quarantined.append(
                QuarantinedLine(
                    line.lineno, line.raw, "conflicting duplicate username"
                )
            )
            continue
        if entry.username in seen:
            plan.duplicates_removed.append(line.lineno)
            continue

        seen.add(entry.username)
        if line.kind == LineKind.ENTRY:
            plan.valid += 1
            kept.append(line)
        else:
            rendered = entry.render()
            plan.repaired.append(
                RepairedLine(line.lineno, entry.username, line.raw, rendered)
            )
            kept.append(UserlistLine(line.lineno, rendered, LineKind.ENTRY, entry=entry))

    plan.userlist = Userlist(lines=tuple(kept), trailing_newline=True)
    return plan
