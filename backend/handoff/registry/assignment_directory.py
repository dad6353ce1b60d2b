"""
Assignment directory: (category, subcategory) -> responder ids.

Lookup is exact-pair only. A request with no assignment goes to the
general pool (an empty responder set), never to a partial match.
"""
import logging
from typing import Dict, Iterable, Set, Tuple

from ..store.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

ASSIGN_PREFIX = "assign:"


def normalize_tag(tag: str) -> str:
    tag = (tag or "").strip().lower()
    if not tag:
        raise ValueError("Category and subcategory cannot be blank")
    if ":" in tag:
        raise ValueError(f"Category tags cannot contain ':' ({tag!r})")
    return tag


def assignment_key(category: str, subcategory: str) -> str:
    return f"{ASSIGN_PREFIX}{normalize_tag(category)}:{normalize_tag(subcategory)}"


class AssignmentDirectory:
    """Many-to-many routing from category pairs to responder sets."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def add_responders(
        self,
        category: str,
        subcategory: str,
        responder_ids: Iterable[str]
    ) -> None:
        responder_ids = [r for r in responder_ids if r]
        if not responder_ids:
            return

        key = assignment_key(category, subcategory)
        added = await self.store.sadd(key, *responder_ids)
        logger.info(f"Assignment {key}: added {added} responder(s)")

    async def remove_responders(
        self,
        category: str,
        subcategory: str,
        responder_ids: Iterable[str] = ()
    ) -> None:
        """Remove the named responders, or clear the pair when none are named."""
        key = assignment_key(category, subcategory)
        responder_ids = [r for r in responder_ids if r]

        if not responder_ids:
            await self.store.delete(key)
            logger.info(f"Assignment {key} cleared")
            return

        removed = await self.store.srem(key, *responder_ids)
        logger.info(f"Assignment {key}: removed {removed} responder(s)")

    async def list_responders(self, category: str, subcategory: str) -> Set[str]:
        return await self.store.smembers(assignment_key(category, subcategory))

    async def list_all(self) -> Dict[Tuple[str, str], Set[str]]:
        """Every pair with at least one responder."""
        assignments = {}
        for key in await self.store.keys(f"{ASSIGN_PREFIX}*"):
            pair = key[len(ASSIGN_PREFIX):].split(":", 1)
            if len(pair) != 2:
                logger.warning(f"Skipping malformed assignment key {key}")
                continue

            responders = await self.store.smembers(key)
            if responders:
                assignments[(pair[0], pair[1])] = responders

        return dict(sorted(assignments.items()))


__all__ = ['AssignmentDirectory', 'assignment_key', 'normalize_tag']
