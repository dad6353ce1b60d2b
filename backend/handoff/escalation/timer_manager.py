"""
Auto-escalation timers.

Every started session gets two one-shot reminders (3 and 10 minutes by
default). If no agent has replied by then, the customer is told agents are
busy and the thread gets a mirrored notice. An agent reply or a close cancels
both.

Timers are asyncio tasks in this process only; they do not survive a restart
and are not shared between instances.
"""
import asyncio
import logging
from typing import Dict, List, Set

from ..collaborators.base import AIPlatform, ChatPlatform
from ..errors import AlreadyScheduledError, CollaboratorError, SessionNotFoundError
from ..messages import MessageKind, render
from ..registry import SessionRegistry
from ..utils.telemetry import track_escalation_reminder

logger = logging.getLogger(__name__)

FIRST_STAGE = "first"
SECOND_STAGE = "second"


class EscalationTimerManager:
    """
    Per-session pair of delayed busy notifications.

    State per session: scheduled (both pending), partially fired (second
    pending), fired, or cancelled. A task removes its own handle right after
    waking and before its first await, so ``cancel`` only ever reaches tasks
    that have not yet become due.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        ai_platform: AIPlatform,
        chat_platform: ChatPlatform,
        first_delay: float = 180.0,
        second_delay: float = 600.0
    ):
        if first_delay < 0 or second_delay < 0:
            raise ValueError("Escalation delays must be non-negative")

        self.registry = registry
        self.ai_platform = ai_platform
        self.chat_platform = chat_platform
        self.delays = {FIRST_STAGE: first_delay, SECOND_STAGE: second_delay}

        self._timers: Dict[str, Dict[str, asyncio.Task]] = {}
        self._firing: Set[asyncio.Task] = set()

        logger.info(
            f"Escalation timers: first={first_delay}s, second={second_delay}s"
        )

    @property
    def active_count(self) -> int:
        """Number of sessions with at least one pending timer."""
        return len(self._timers)

    def pending(self, session_id: str) -> List[str]:
        """Stages still waiting to fire for a session."""
        return sorted(self._timers.get(session_id, {}))

    def schedule(self, session_id: str, replace: bool = True) -> None:
        """
        Start both timers for a session.

        Args:
            session_id: Session to remind about
            replace: Cancel an existing pair first instead of failing

        Raises:
            AlreadyScheduledError: If timers exist and replace is False
        """
        if session_id in self._timers:
            if not replace:
                raise AlreadyScheduledError(session_id)
            self.cancel(session_id)

        self._timers[session_id] = {
            stage: asyncio.create_task(
                self._run(session_id, stage, delay),
                name=f"escalation:{session_id}:{stage}"
            )
            for stage, delay in self.delays.items()
        }
        logger.debug(f"Scheduled escalation timers for session {session_id}")

    def cancel(self, session_id: str) -> bool:
        """
        Cancel whatever is still pending for a session.

        Returns:
            True if any timer was pending
        """
        timers = self._timers.pop(session_id, None)
        if not timers:
            return False

        for task in timers.values():
            task.cancel()

        logger.debug(f"Cancelled escalation timers for session {session_id}: {sorted(timers)}")
        return True

    async def cancel_all(self) -> int:
        """Cancel every timer, including notifications in flight (shutdown)."""
        tasks = [task for timers in self._timers.values() for task in timers.values()]
        tasks.extend(self._firing)
        cancelled = len(self._timers)
        self._timers.clear()

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info(f"✓ Cancelled escalation timers for {cancelled} sessions")
        return cancelled

    def _forget(self, session_id: str, stage: str) -> None:
        timers = self._timers.get(session_id)
        if timers is None or timers.get(stage) is not asyncio.current_task():
            return
        del timers[stage]
        if not timers:
            del self._timers[session_id]

    async def _run(self, session_id: str, stage: str, delay: float) -> None:
        await asyncio.sleep(delay)

        # Past this point cancel() can no longer reach this task
        self._forget(session_id, stage)
        task = asyncio.current_task()
        self._firing.add(task)
        try:
            await self._fire(session_id, stage)
        except Exception as e:
            logger.error(f"Escalation {stage} for session {session_id} failed: {e}", exc_info=True)
        finally:
            self._firing.discard(task)

    async def _fire(self, session_id: str, stage: str) -> None:
        try:
            session = await self.registry.get_by_session_id(session_id)
        except SessionNotFoundError:
            logger.debug(f"Escalation {stage} skipped, session {session_id} already closed")
            return

        logger.info(
            f"No agent reply for session {session_id}, sending {stage} busy notice",
            extra={"session_id": session_id, "stage": stage}
        )
        track_escalation_reminder(stage)

        try:
            await self.ai_platform.send_outbound(
                session_id,
                "text",
                {"text": render(MessageKind.BUSY)}
            )
        except CollaboratorError as e:
            logger.warning(f"Busy notice to customer failed for session {session_id}: {e}")

        try:
            await self.chat_platform.post_message(
                render(MessageKind.BUSY_NOTICE),
                thread_id=session.thread_id,
                channel_id=session.channel_id
            )
        except CollaboratorError as e:
            logger.warning(f"Busy notice to thread failed for session {session_id}: {e}")


__all__ = ['EscalationTimerManager', 'FIRST_STAGE', 'SECOND_STAGE']
