"""Mailbox name patterns.

Exactly two patterns are cascaded across every selected domain; the pair is a
product constraint, not a general list.
"""

from typing import Iterable, Optional

INVALID_EDGE_CHARS = (".", "_", "-")


def is_valid_pattern(pattern: Optional[str]) -> bool:
    """A pattern is valid when non-empty, free of whitespace and not
    starting/ending with ``. _ -``.
    """
    if not pattern or any(c.isspace() for c in pattern):
        return False
    return pattern[0] not in INVALID_EDGE_CHARS and pattern[-1] not in INVALID_EDGE_CHARS


def pattern_error(pattern: Optional[str]) -> Optional[str]:
    """Inline error for a pattern field, or ``None`` when there is nothing to report.

    An empty field has no message; emptiness is reported by the step gate.
    """
    if not pattern or not pattern.strip():
        return None
    if any(c.isspace() for c in pattern):
        return "Username cannot contain spaces"
    if pattern[0] in INVALID_EDGE_CHARS:
        return "Username cannot start with '.', '_', or '-'"
    if pattern[-1] in INVALID_EDGE_CHARS:
        return "Username cannot end with '.', '_', or '-'"
    return None


def patterns_complete(pattern_1: Optional[str], pattern_2: Optional[str]) -> bool:
    return all(
        p is not None and p.strip() != "" and is_valid_pattern(p)
        for p in (pattern_1, pattern_2)
    )


def mailbox_usernames(pattern_1: Optional[str], pattern_2: Optional[str]) -> list[str]:
    """Distinct non-empty patterns, in order."""
    usernames: list[str] = []
    for pattern in (pattern_1, pattern_2):
        if pattern and pattern.strip() and pattern not in usernames:
            usernames.append(pattern)
    return usernames


def generate_mailboxes(
    domains: Iterable[str], pattern_1: Optional[str], pattern_2: Optional[str]
) -> list[str]:
    """``[f"{p}@{d}" for d in domains for p in patterns]`` without duplicates."""
    usernames = mailbox_usernames(pattern_1, pattern_2)
    mailboxes: list[str] = []
    for domain in domains:
        for username in usernames:
            email = f"{username}@{domain}"
            if email not in mailboxes:
                mailboxes.append(email)
    return mailboxes
