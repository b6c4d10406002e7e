"""Retention policy evaluation for cleanup.

This module selects which stored versions violate a retention policy.
It is pure so cleanup behaviour can be tested without a backend.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from core.config import RetentionPolicy
from core.types import VersionStorage
from storage.primitives import parse_timestamp


def select_cleanup_candidates(
    versions: list[VersionStorage],
    policy: RetentionPolicy,
    now: datetime | None = None,
) -> list[VersionStorage]:
    """Select versions that violate the retention policy.

    A version is a candidate when it is older than ``max_age_days`` or when
    it is among the oldest records beyond ``max_versions``. Either trigger
    is sufficient. Ids in ``keep_forever`` are never candidates.

    Args:
        versions: Stored versions in any order.
        policy: Retention rules.
        now: Reference time; current UTC time when omitted.

    Returns:
        Candidates ordered oldest first.
    """
    reference_time = now or datetime.now(timezone.utc)
    max_age = timedelta(days=policy.max_age_days)
    protected = set(policy.keep_forever)
    ordered = sorted(versions, key=lambda item: _stored_at(item))
    eligible = [item for item in ordered if item.version_id not in protected]
    excess_count = max(len(ordered) - policy.max_versions, 0)
    over_count = {id(item) for item in eligible[:excess_count]}
    return [
        item
        for item in eligible
        if id(item) in over_count or reference_time - _stored_at(item) > max_age
    ]


def _stored_at(version: VersionStorage) -> datetime:
    """Return the stored-at time; unparsable values sort as oldest."""
    parsed = parse_timestamp(version.metadata.stored_at)
    return parsed or datetime.min.replace(tzinfo=timezone.utc)
