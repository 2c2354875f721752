"""Deterministic shuffle ordering for the annotation feed.

The feed looks shuffled but must paginate without gaps or repeats for a given
seed, so every annotation gets a pure sort key derived from its id and the
seed. The same function is registered as a SQL function on each SQLite
connection, which lets the store express the ordering as a plain
``ORDER BY key, id LIMIT/OFFSET``.
"""

from __future__ import annotations

import hashlib
import secrets

SHUFFLE_MODULUS = 1_000_000
SQL_FUNCTION_NAME = "booktalk_shuffle_key"

_PERSON = b"booktalk.feed"


def numeric_prefix(annotation_id: str) -> int:
    """Fixed-width numeric value for an annotation id.

    The first 8 hex digits of a tagged BLAKE2b digest, so ids of any shape
    (UUIDs, slugs, integers) spread evenly.
    """
    digest = hashlib.blake2b(
        annotation_id.encode("utf-8"), digest_size=8, person=_PERSON
    ).hexdigest()
    return int(digest[:8], 16)


def shuffle_key(annotation_id: str, seed: int) -> int:
    """Sort key of `annotation_id` in the feed ordering for `seed`."""
    return (numeric_prefix(annotation_id) + seed) % SHUFFLE_MODULUS


def normalize_seed(seed: int) -> int:
    """Reduce a 64-bit seed into key space; the ordering is unchanged."""
    if seed < 0:
        raise ValueError("seed must be non-negative")
    return seed % SHUFFLE_MODULUS


def new_seed() -> int:
    """Fresh random seed for a new shuffle (e.g. pull-to-refresh)."""
    return secrets.randbits(64)


def sort_ids(annotation_ids: list[str], seed: int) -> list[str]:
    """In-process equivalent of the SQL ordering, ties broken by id."""
    return sorted(annotation_ids, key=lambda aid: (shuffle_key(aid, seed), aid))
