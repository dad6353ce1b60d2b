"""
Contact directory: saved WhatsApp identities and broadcast roles.

Keys:
    contact:{phone} -> serialized Contact
    roles           -> set of role names
"""
import logging
from datetime import datetime
from typing import Iterable, List, Set

from ..errors import ContactNotFoundError
from ..models.contact import Contact, canonical_phone
from ..store.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

CONTACT_PREFIX = "contact:"
ROLES_KEY = "roles"


def contact_key(phone: str) -> str:
    return f"{CONTACT_PREFIX}{canonical_phone(phone)}"


def normalize_role(role: str) -> str:
    role = (role or "").strip().lower()
    if not role:
        raise ValueError("Role name cannot be blank")
    return role


class ContactDirectory:
    """
    Phone -> contact records, plus the global role set.

    ``remove_role`` walks every contact to strip the role. That cascade is
    O(contacts) and does not scale horizontally; it is fine for a directory
    of a few hundred entries.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def find_by_phone(self, phone: str) -> Contact:
        """
        Raises:
            ContactNotFoundError: If no contact is saved for this phone
        """
        raw = await self.store.get(contact_key(phone))
        if raw is None:
            raise ContactNotFoundError(phone)
        return Contact.from_json(raw)

    async def upsert_name(self, phone: str, name: str) -> Contact:
        """Create the contact, or rename it keeping its roles."""
        try:
            existing = await self.find_by_phone(phone)
            roles = existing.roles
        except ContactNotFoundError:
            roles = set()

        contact = Contact(
            phone=phone,
            name=name,
            roles=roles,
            saved_at=datetime.utcnow(),
        )
        await self.store.set(contact_key(contact.phone), contact.to_json())

        logger.info(f"Saved contact {contact.phone} as '{contact.name}'")
        return contact

    async def set_roles(self, phone: str, roles: Iterable[str]) -> Contact:
        """
        Replace a contact's roles. Roles outside the global set are dropped.

        Raises:
            ContactNotFoundError: If the contact does not exist
        """
        contact = await self.find_by_phone(phone)

        requested = {normalize_role(r) for r in roles}
        defined = await self.store.smembers(ROLES_KEY)
        unknown = requested - defined
        if unknown:
            logger.warning(
                f"Ignoring undefined roles for contact {contact.phone}: {sorted(unknown)}"
            )

        updated = contact.model_copy(update={"roles": requested & defined})
        await self.store.set(contact_key(updated.phone), updated.to_json())

        logger.info(f"Contact {updated.phone} roles set to {sorted(updated.roles)}")
        return updated

    async def list_all(self) -> List[Contact]:
        """All contacts, sorted by name (case-insensitive)."""
        contacts = []
        for key in await self.store.keys(f"{CONTACT_PREFIX}*"):
            raw = await self.store.get(key)
            if raw is None:
                # Deleted between SCAN and GET
                continue
            contacts.append(Contact.from_json(raw))

        contacts.sort(key=lambda c: (c.name.casefold(), c.phone))
        return contacts

    async def contacts_with_any_role(self, roles: Iterable[str]) -> List[Contact]:
        """Contacts holding at least one of the given roles, sorted by name."""
        wanted: Set[str] = {normalize_role(r) for r in roles}
        if not wanted:
            return []
        return [c for c in await self.list_all() if c.roles & wanted]

    async def add_role(self, role: str) -> str:
        role = normalize_role(role)
        added = await self.store.sadd(ROLES_KEY, role)
        if added:
            logger.info(f"Role '{role}' added")
        return role

    async def remove_role(self, role: str) -> int:
        """
        Remove a role and strip it from every contact.

        Returns:
            Number of contacts that lost the role
        """
        role = normalize_role(role)
        await self.store.srem(ROLES_KEY, role)

        stripped = 0
        for contact in await self.list_all():
            if role in contact.roles:
                updated = contact.model_copy(update={"roles": contact.roles - {role}})
                await self.store.set(contact_key(updated.phone), updated.to_json())
                stripped += 1

        logger.info(f"Role '{role}' removed, stripped from {stripped} contacts")
        return stripped

    async def list_roles(self) -> List[str]:
        return sorted(await self.store.smembers(ROLES_KEY))


__all__ = ['ContactDirectory', 'contact_key', 'normalize_role']
