"""
Registries over the shared key-value store.
"""
from .session_registry import SessionRegistry
from .contact_directory import ContactDirectory
from .assignment_directory import AssignmentDirectory

__all__ = [
    'SessionRegistry',
    'ContactDirectory',
    'AssignmentDirectory',
]
