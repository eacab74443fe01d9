"""Access resolution — how the requester relates to the target contact.

Resolution order (most specific relationship wins, not most senior role):
1. Requester is the contact's assigned agent      -> AssignedAgent
2. Requester holds an active, unexpired grant     -> Collaborator
   (Personal fields withheld unless a grant allows personal data)
3. Requester is an admin of the organization      -> OrgAdmin
4. Otherwise                                      -> NoAccess

Missing/soft-deleted contacts and cross-tenant references are fatal
and raise; NoAccess is a normal result.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from contextguard.context.errors import ContactNotFoundError, CrossTenantError
from contextguard.db.session import SessionFactory
from contextguard.db.tables import ContactCollaboratorRow
from contextguard.models.common import AccessLevel, PrivacyTag, as_utc, utc_now
from contextguard.repositories.contacts import (
    CollaboratorRepository,
    ContactRepository,
    OrganizationRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessResolution:
    """Resolved access level plus the audit reason behind it."""

    level: AccessLevel
    reason: str
    # Tags the level would admit but this particular grant does not.
    withheld_tags: frozenset[PrivacyTag] = frozenset()


def grant_is_current(grant: ContactCollaboratorRow, requester_id: UUID,
                     now: datetime) -> bool:
    """Check whether a collaboration grant gives the requester access right now."""
    if grant.collaborator_id != requester_id or not grant.is_active:
        return False
    if grant.expires_at is None:
        return True
    return as_utc(grant.expires_at) > now


class AccessResolver:
    """Derive the AccessLevel for one (requester, contact, organization) triple."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def resolve(
        self,
        requester_id: UUID,
        contact_id: UUID,
        organization_id: UUID,
    ) -> AccessResolution:
        async with self._session_factory() as session:
            contact = await ContactRepository(session).get(contact_id)
            if contact is None or contact.is_deleted:
                raise ContactNotFoundError(
                    f"Contact {contact_id} not found.",
                    contact_id=contact_id, organization_id=organization_id,
                )
            if contact.organization_id != organization_id:
                logger.warning(
                    "Cross-tenant context request: contact %s is not in organization %s",
                    contact_id, organization_id,
                )
                raise CrossTenantError(
                    f"Contact {contact_id} does not belong to organization {organization_id}.",
                    contact_id=contact_id, organization_id=organization_id,
                )
            organization = await OrganizationRepository(session).get_active(organization_id)
            if organization is None:
                raise ContactNotFoundError(
                    f"Organization {organization_id} not found.",
                    contact_id=contact_id, organization_id=organization_id,
                )

            if contact.assigned_agent_id == requester_id:
                return AccessResolution(AccessLevel.ASSIGNED_AGENT, "assigned-agent")

            grants = await CollaboratorRepository(session).list_for_contact(
                contact_id, organization_id,
            )
            now = self._clock()
            current = [g for g in grants if grant_is_current(g, requester_id, now)]
            if current:
                withheld = (
                    frozenset()
                    if any(g.can_access_personal_data for g in current)
                    else frozenset({PrivacyTag.PERSONAL})
                )
                return AccessResolution(
                    AccessLevel.COLLABORATOR, "active-collaborator", withheld,
                )

            if await UserRepository(session).is_org_admin(requester_id, organization_id):
                return AccessResolution(AccessLevel.ORG_ADMIN, "organization-admin")

        logger.info(
            "Requester %s has no relationship with contact %s", requester_id, contact_id,
        )
        return AccessResolution(AccessLevel.NO_ACCESS, "no-relationship")
