"""
WhatsApp to Slack live-agent handoff relay.

Vonage AI Studio hands escalated WhatsApp conversations to Slack threads,
agents answer in the thread, and replies flow back to the customer.
"""

__version__ = "1.0.0"
