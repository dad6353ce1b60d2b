"""
Auto-escalation timers for unanswered sessions.
"""
from .timer_manager import EscalationTimerManager, FIRST_STAGE, SECOND_STAGE

__all__ = ['EscalationTimerManager', 'FIRST_STAGE', 'SECOND_STAGE']
