"""
Session registry: the session <-> Slack thread correspondence.

Owns both index directions:
    session:{session_id} -> serialized Session
    thread:{thread_id}   -> session_id
Both are always written and removed in a single atomic batch.
"""
import logging
from typing import Optional

from ..errors import DuplicateSessionError, SessionNotFoundError
from ..models.session import Session
from ..store.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session:"
THREAD_PREFIX = "thread:"


def session_key(session_id: str) -> str:
    return f"{SESSION_PREFIX}{session_id}"


def thread_key(thread_id: str) -> str:
    return f"{THREAD_PREFIX}{thread_id}"


class SessionRegistry:
    """
    Create, look up and delete sessions.

    Duplicate policy: overwrite-and-reindex by default. Recreating a session
    drops its previous reverse pointer in the same batch that writes the new
    pair, so no half-entry survives. Pass ``on_duplicate="reject"`` to get
    DuplicateSessionError instead.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def _load(self, session_id: str) -> Optional[Session]:
        raw = await self.store.get(session_key(session_id))
        if raw is None:
            return None
        return Session.from_json(raw)

    async def create_session(
        self,
        session_id: str,
        thread_id: str,
        display_name: str,
        *,
        channel_id: str,
        customer_phone: Optional[str] = None,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        on_duplicate: str = "overwrite"
    ) -> Session:
        """
        Store a new session and both index entries.

        Raises:
            DuplicateSessionError: If the session exists and on_duplicate="reject"
        """
        stale_keys = []

        existing = await self._load(session_id)
        if existing is not None:
            if on_duplicate == "reject":
                raise DuplicateSessionError(session_id)

            logger.warning(
                f"Session {session_id} already linked to thread {existing.thread_id}, "
                f"reindexing to thread {thread_id}"
            )
            if existing.thread_id != thread_id:
                stale_keys.append(thread_key(existing.thread_id))

        # A thread hosts at most one session
        previous_owner = await self.store.get(thread_key(thread_id))
        if previous_owner and previous_owner != session_id:
            logger.warning(
                f"Thread {thread_id} was linked to session {previous_owner}, dropping that session"
            )
            stale_keys.append(session_key(previous_owner))

        session = Session(
            session_id=session_id,
            thread_id=thread_id,
            channel_id=channel_id,
            customer_display_name=display_name,
            customer_phone=customer_phone,
            category=category,
            subcategory=subcategory,
        )

        await self.store.write_batch(
            {
                session_key(session_id): session.to_json(),
                thread_key(thread_id): session_id,
            },
            delete_keys=stale_keys
        )

        logger.info(f"Session {session_id} linked to thread {thread_id}")
        return session

    async def get_by_session_id(self, session_id: str) -> Session:
        """
        Raises:
            SessionNotFoundError: If no session is stored under this id
        """
        session = await self._load(session_id)
        if session is None:
            raise SessionNotFoundError(session_id=session_id)
        return session

    async def get_by_thread_id(self, thread_id: str) -> Session:
        """
        Resolve a thread through the reverse index.

        A missing pointer, a missing record, or a record that points at a
        different thread all count as not found.

        Raises:
            SessionNotFoundError: If the thread has no live session
        """
        session_id = await self.store.get(thread_key(thread_id))
        if session_id is None:
            raise SessionNotFoundError(thread_id=thread_id)

        session = await self._load(session_id)
        if session is None or session.thread_id != thread_id:
            logger.debug(f"Reverse pointer for thread {thread_id} is stale")
            raise SessionNotFoundError(thread_id=thread_id)

        return session

    async def find_by_thread_id(self, thread_id: str) -> Optional[Session]:
        """Like get_by_thread_id, but returns None on a miss."""
        try:
            return await self.get_by_thread_id(thread_id)
        except SessionNotFoundError:
            return None

    async def delete_session(self, session_id: str) -> Optional[Session]:
        """
        Remove both index entries. Idempotent.

        Returns:
            The removed session, or None if there was nothing to remove
        """
        existing = await self._load(session_id)

        delete_keys = [session_key(session_id)]
        if existing is not None:
            owner = await self.store.get(thread_key(existing.thread_id))
            if owner == session_id:
                delete_keys.append(thread_key(existing.thread_id))

        await self.store.write_batch({}, delete_keys=delete_keys)

        if existing is not None:
            logger.info(f"Session {session_id} deleted (thread {existing.thread_id})")
        else:
            logger.debug(f"Delete of unknown session {session_id} ignored")

        return existing

    async def count(self) -> int:
        """Number of live sessions."""
        return len(await self.store.keys(f"{SESSION_PREFIX}*"))


__all__ = ['SessionRegistry', 'session_key', 'thread_key']
