"""Seed script: load a demo organization into the ContextGuard database.

Creates:
1. The demo organization (Acme Realty)
2. Its users: an assigned agent, a team lead, a specialist and an admin
3. One client contact with data in every context section
4. Collaboration grants for the team lead and the specialist

Idempotent: safe to run multiple times. Skips if the demo organization
already exists.

Usage:
    python -m scripts.seed                 # against DATABASE_URL from .env
    pytest tests/test_seed.py              # against aiosqlite in-memory
"""

import asyncio
from datetime import timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from contextguard.models.common import (
    AssignmentStatus,
    CollaboratorRole,
    DealStatus,
    RelationshipState,
    utc_now,
)
from contextguard.repositories.activity import (
    DealRepository,
    InteractionRepository,
    ResourceAssignmentRepository,
)
from contextguard.repositories.contacts import (
    CollaboratorRepository,
    ContactRepository,
    OrganizationRepository,
    UserRepository,
)

DEMO_ORGANIZATION_ID = UUID("0190a000-0000-7000-8000-000000000001")
DEMO_AGENT_ID = UUID("0190a000-0000-7000-8000-000000000010")
DEMO_TEAM_LEAD_ID = UUID("0190a000-0000-7000-8000-000000000011")
DEMO_SPECIALIST_ID = UUID("0190a000-0000-7000-8000-000000000012")
DEMO_ADMIN_ID = UUID("0190a000-0000-7000-8000-000000000013")
DEMO_CONTACT_ID = UUID("0190a000-0000-7000-8000-000000000100")


async def seed_users(session: AsyncSession) -> None:
    await OrganizationRepository(session).create(
        organization_id=DEMO_ORGANIZATION_ID, name="Acme Realty (Demo)",
    )
    users = UserRepository(session)
    for user_id, name, is_admin in [
        (DEMO_AGENT_ID, "Avery Agent", False),
        (DEMO_TEAM_LEAD_ID, "Tess Lead", False),
        (DEMO_SPECIALIST_ID, "Sam Specialist", False),
        (DEMO_ADMIN_ID, "Ada Admin", True),
    ]:
        await users.create(
            user_id=user_id, organization_id=DEMO_ORGANIZATION_ID,
            display_name=name, is_admin=is_admin,
        )


async def seed_contact(session: AsyncSession) -> None:
    """Client contact with profile, consent, activity, deals and resources."""
    now = utc_now()
    await ContactRepository(session).create(
        contact_id=DEMO_CONTACT_ID, organization_id=DEMO_ORGANIZATION_ID,
        first_name="Dana", last_name="Reyes", company="Reyes Holdings",
        relationship_state=RelationshipState.CLIENT.value,
        assigned_agent_id=DEMO_AGENT_ID,
        emails=["dana@reyes.example"], phones=["555-010-2000"],
        tags=["investor"], preferences={"tone": "formal", "contactWindow": "mornings"},
        email_opt_in=True, sms_opt_in=False, consent_updated_at=now,
        preferred_channels=["email"],
    )

    grants = CollaboratorRepository(session)
    for collaborator_id, role in [
        (DEMO_TEAM_LEAD_ID, CollaboratorRole.TEAM_LEAD),
        (DEMO_SPECIALIST_ID, CollaboratorRole.SPECIALIST),
    ]:
        await grants.grant(
            collaboration_id=_derived_id(collaborator_id, 0x200),
            contact_id=DEMO_CONTACT_ID, organization_id=DEMO_ORGANIZATION_ID,
            collaborator_id=collaborator_id, granted_by=DEMO_AGENT_ID,
            role=role.value,
        )

    interactions = InteractionRepository(session)
    for offset, (days_ago, score, signals, urgency) in enumerate([
        (10, 0.1, [], None),
        (4, 0.5, ["asked-for-comps"], "Medium"),
        (1, 0.6, ["pre-approved"], "High"),
    ]):
        await interactions.create(
            interaction_id=_derived_id(DEMO_CONTACT_ID, 0x300 + offset),
            contact_id=DEMO_CONTACT_ID, organization_id=DEMO_ORGANIZATION_ID,
            channel="email", occurred_at=now - timedelta(days=days_ago),
            sentiment_score=score, buying_signals=signals, urgency=urgency,
        )

    deals = DealRepository(session)
    await deals.create(
        deal_id=_derived_id(DEMO_CONTACT_ID, 0x400),
        contact_id=DEMO_CONTACT_ID, organization_id=DEMO_ORGANIZATION_ID,
        title="Harbor view duplex", stage="offer", amount=8200.0,
        status=DealStatus.OPEN.value, opened_at=now - timedelta(days=6),
    )
    await deals.create(
        deal_id=_derived_id(DEMO_CONTACT_ID, 0x401),
        contact_id=DEMO_CONTACT_ID, organization_id=DEMO_ORGANIZATION_ID,
        title="Maple St bungalow", stage="closed", amount=4100.0,
        status=DealStatus.WON.value, opened_at=now - timedelta(days=200),
        closed_at=now - timedelta(days=150),
    )

    await ResourceAssignmentRepository(session).create(
        assignment_id=_derived_id(DEMO_CONTACT_ID, 0x500),
        contact_id=DEMO_CONTACT_ID, organization_id=DEMO_ORGANIZATION_ID,
        provider_id=_derived_id(DEMO_ORGANIZATION_ID, 0x600),
        provider_name="Harbor Home Inspections", service_type="inspection",
        status=AssignmentStatus.ACTIVE.value, assigned_at=now - timedelta(days=2),
    )


def _derived_id(base: UUID, n: int) -> UUID:
    """Stable child id so reseeding produces the same keys."""
    return UUID(int=(base.int & ~0xFFFF) | n)


async def seed_demo(session: AsyncSession) -> dict:
    """Seed the demo organization unless it already exists."""
    if await OrganizationRepository(session).get(DEMO_ORGANIZATION_ID) is not None:
        return {"created": False, "organization_id": DEMO_ORGANIZATION_ID}

    await seed_users(session)
    await seed_contact(session)
    return {
        "created": True,
        "organization_id": DEMO_ORGANIZATION_ID,
        "contact_id": DEMO_CONTACT_ID,
        "agent_id": DEMO_AGENT_ID,
        "team_lead_id": DEMO_TEAM_LEAD_ID,
        "specialist_id": DEMO_SPECIALIST_ID,
        "admin_id": DEMO_ADMIN_ID,
    }


# ---------------------------------------------------------------------------
# CLI entry point: python -m scripts.seed
# ---------------------------------------------------------------------------


async def _run_seed() -> None:
    """Run the demo seed against the real database (idempotent)."""
    from contextguard.db.session import async_session_factory

    async with async_session_factory() as session:
        result = await seed_demo(session)

        if not result["created"]:
            print("Demo data already seeded (Acme Realty exists). Skipping.")
            print(f"  Organization: {result['organization_id']}")
            return

        await session.commit()

        print("Seed complete.")
        print(f"  Organization: {result['organization_id']}")
        print(f"  Contact:      {result['contact_id']}")
        print(f"  Agent:        {result['agent_id']}")
        print(f"  Team lead:    {result['team_lead_id']}")
        print(f"  Specialist:   {result['specialist_id']}")
        print(f"  Admin:        {result['admin_id']}")


if __name__ == "__main__":
    asyncio.run(_run_seed())
