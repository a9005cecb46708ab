"""Glob-style repository filtering"""

import re
from functools import lru_cache
from typing import Iterable, Sequence

from release_notifier.config import Profile, Settings


@lru_cache(maxsize=512)
def _compile(pattern: str) -> "re.Pattern[str]":
    # Only * and ? are special; everything else matches literally
    regex = "".join(
        ".*" if ch == "*" else "." if ch == "?" else re.escape(ch)
        for ch in pattern
    )
    return re.compile(f"^{regex}$", re.IGNORECASE | re.DOTALL)


def matches_pattern(name: str, patterns: Iterable[str]) -> bool:
    """True if `name` matches any of the glob patterns. An empty list never matches."""
    for pattern in patterns:
        if pattern == "*" or _compile(pattern).match(name):
            return True
    return False


def should_include_repository(
    name: str,
    archived: bool,
    fork: bool,
    profile: Profile,
    *,
    include_archived: bool,
    include_forks: bool,
    allowlist: Sequence[str] = (),
    blocklist: Sequence[str] = (),
) -> bool:
    """Apply the global and per-profile filters, first matching rule wins"""
    if archived and not include_archived:
        return False
    if fork and not include_forks:
        return False
    if matches_pattern(name, blocklist):
        return False
    if allowlist and not matches_pattern(name, allowlist):
        return False
    if matches_pattern(name, profile.exclude):
        return False
    if profile.include:
        return matches_pattern(name, profile.include)
    return True


def filters_from_settings(settings: Settings) -> dict:
    return {
        "include_archived": settings.include_archived,
        "include_forks": settings.include_forks,
        "allowlist": tuple(settings.allowlist),
        "blocklist": tuple(settings.blocklist),
    }
