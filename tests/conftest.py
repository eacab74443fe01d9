"""Shared pytest fixtures for the ContextGuard test suite.

Provides:
- db_engine: in-memory SQLite async engine with all tables
- db_session: SAVEPOINT-isolated async session (app commits don't leak)
- session_factory: SessionFactory that hands out db_session (sequential use only)
- file_session_factory: real async_sessionmaker over a file-backed SQLite
  database, for the concurrent fan-out (one connection per fetcher)
- seeded / file_seeded: one organization with a fully populated contact
- client: AsyncClient with dependency overrides for DB-backed testing
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from uuid_extensions import uuid7

from contextguard.db.session import Base, get_async_session, get_session_factory
import contextguard.db.tables  # noqa: F401  register ORM models on Base.metadata
from contextguard.models.common import utc_now
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


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with all tables."""
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Provide a SAVEPOINT-isolated session.

    The outer transaction is never committed — it rolls back at teardown.
    Application code calling session.commit() triggers a SAVEPOINT release,
    which is then restarted so subsequent operations stay in the same
    outer transaction.
    """
    async with db_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)

        nested = await conn.begin_nested()

        @event.listens_for(session.sync_session, "after_transaction_end")
        def restart_savepoint(sync_session, transaction):  # noqa: ARG001
            nonlocal nested
            if transaction.nested and not transaction._parent.nested:
                nested = conn.sync_connection.begin_nested()

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture
def session_factory(db_session):
    """SessionFactory over the shared test session. Not for concurrent use."""

    @asynccontextmanager
    async def _factory():
        yield db_session

    return _factory


@pytest.fixture
async def file_session_factory(tmp_path):
    """File-backed SQLite so concurrent fetchers each get a real connection."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'contextguard.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=eng, class_=AsyncSession, expire_on_commit=False)
    await eng.dispose()


async def _seed(session: AsyncSession) -> SimpleNamespace:
    """One organization, its users, and a contact with data in every section."""
    now = utc_now()
    ids = SimpleNamespace(
        organization_id=uuid7(),
        other_organization_id=uuid7(),
        agent_id=uuid7(),
        collaborator_id=uuid7(),
        team_lead_id=uuid7(),
        expired_collaborator_id=uuid7(),
        admin_id=uuid7(),
        stranger_id=uuid7(),
        contact_id=uuid7(),
        other_contact_id=uuid7(),
    )

    orgs = OrganizationRepository(session)
    await orgs.create(organization_id=ids.organization_id, name="Acme Realty")
    await orgs.create(organization_id=ids.other_organization_id, name="Globex Realty")

    users = UserRepository(session)
    for user_id, name in (
        (ids.agent_id, "Agent"),
        (ids.collaborator_id, "Collaborator"),
        (ids.team_lead_id, "Team Lead"),
        (ids.expired_collaborator_id, "Former Collaborator"),
        (ids.stranger_id, "Stranger"),
    ):
        await users.create(
            user_id=user_id, organization_id=ids.organization_id, display_name=name,
        )
    await users.create(
        user_id=ids.admin_id, organization_id=ids.organization_id,
        display_name="Admin", is_admin=True,
    )

    contacts = ContactRepository(session)
    await contacts.create(
        contact_id=ids.contact_id,
        organization_id=ids.organization_id,
        assigned_agent_id=ids.agent_id,
        first_name="Dana",
        last_name="Reyes",
        company="Acme Corp",
        job_title="Buyer",
        emails=["dana@acme.example"],
        phones=["555-010-2000"],
        relationship_state="Client",
        tags=["vip"],
        preferences={"tone": "formal"},
        email_opt_in=True,
        sms_opt_in=False,
        consent_updated_at=now - timedelta(days=30),
        preferred_channels=["email"],
    )
    await contacts.create(
        contact_id=ids.other_contact_id,
        organization_id=ids.other_organization_id,
        first_name="Lee",
        relationship_state="Lead",
    )

    grants = CollaboratorRepository(session)
    await grants.grant(
        collaboration_id=uuid7(), contact_id=ids.contact_id,
        organization_id=ids.organization_id, collaborator_id=ids.collaborator_id,
        granted_by=ids.agent_id, role="Specialist",
    )
    await grants.grant(
        collaboration_id=uuid7(), contact_id=ids.contact_id,
        organization_id=ids.organization_id, collaborator_id=ids.team_lead_id,
        granted_by=ids.agent_id, role="TeamLead",
    )
    await grants.grant(
        collaboration_id=uuid7(), contact_id=ids.contact_id,
        organization_id=ids.organization_id,
        collaborator_id=ids.expired_collaborator_id,
        granted_by=ids.agent_id, role="Assistant",
        expires_at=now - timedelta(days=1),
    )

    interactions = InteractionRepository(session)
    for offset, score, signals, urgency in (
        (3, 0.5, ["budget-approved"], "Medium"),
        (2, 0.4, ["asked-for-quote", "budget-approved"], "High"),
        (1, 0.6, [], None),
    ):
        await interactions.create(
            interaction_id=uuid7(), contact_id=ids.contact_id,
            organization_id=ids.organization_id, channel="email",
            occurred_at=now - timedelta(days=offset),
            sentiment_score=score, buying_signals=signals, urgency=urgency,
        )

    deals = DealRepository(session)
    await deals.create(
        deal_id=uuid7(), contact_id=ids.contact_id, organization_id=ids.organization_id,
        title="Lakeside condo", stage="negotiation", amount=5000.0,
        opened_at=now - timedelta(days=10),
    )
    await deals.create(
        deal_id=uuid7(), contact_id=ids.contact_id, organization_id=ids.organization_id,
        title="Downtown loft", stage="closed", amount=1200.5, status="WON",
        opened_at=now - timedelta(days=90), closed_at=now - timedelta(days=60),
    )
    await deals.create(
        deal_id=uuid7(), contact_id=ids.contact_id, organization_id=ids.organization_id,
        title="Suburban duplex", stage="closed", amount=300.0, status="LOST",
        opened_at=now - timedelta(days=80), closed_at=now - timedelta(days=70),
    )

    resources = ResourceAssignmentRepository(session)
    await resources.create(
        assignment_id=uuid7(), contact_id=ids.contact_id,
        organization_id=ids.organization_id, provider_id=uuid7(),
        provider_name="Reliable Inspections", service_type="inspection",
        assigned_at=now - timedelta(days=5),
    )
    await resources.create(
        assignment_id=uuid7(), contact_id=ids.contact_id,
        organization_id=ids.organization_id, provider_id=uuid7(),
        provider_name="First Lending", service_type="mortgage",
        status="COMPLETED", assigned_at=now - timedelta(days=40),
        completed_at=now - timedelta(days=20),
    )
    return ids


@pytest.fixture
async def seeded(db_session) -> SimpleNamespace:
    return await _seed(db_session)


@pytest.fixture
async def file_seeded(file_session_factory) -> SimpleNamespace:
    async with file_session_factory() as session:
        ids = await _seed(session)
        await session.commit()
    return ids


@pytest.fixture
async def client(file_session_factory):
    """AsyncClient wired to the file-backed database."""
    from contextguard.api.main import app

    async def _override_session():
        async with file_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_session_factory] = lambda: file_session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
