"""Tests for the unit-of-work helper."""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.catalog.models import Flavor
from backoffice.domain.exceptions import ConflictError
from backoffice.infrastructure.database import atomic


async def _flavor_names(session: AsyncSession) -> list[str]:
    return list((await session.execute(select(Flavor.name))).scalars().all())


class TestAtomic:
    """Tests for commit, rollback and constraint mapping."""

    async def test_commits_on_success(self, session: AsyncSession) -> None:
        async with atomic(session):
            session.add(Flavor(name="Vanilla"))
        assert await _flavor_names(session) == ["Vanilla"]

    async def test_flush_violation_becomes_conflict(self, session: AsyncSession) -> None:
        with pytest.raises(ConflictError) as exc_info:
            async with atomic(session):
                session.add(Flavor(name="Vanilla"))
                session.add(Flavor(name="Vanilla"))
                await session.flush()

        assert exc_info.value.details["error"]
        assert await _flavor_names(session) == []

    async def test_commit_violation_becomes_conflict(self, session: AsyncSession) -> None:
        """Rows left unflushed are checked when the block commits."""
        async with atomic(session):
            session.add(Flavor(name="Vanilla"))

        with pytest.raises(ConflictError):
            async with atomic(session):
                session.add(Flavor(name="Vanilla"))

        assert await _flavor_names(session) == ["Vanilla"]

    async def test_other_errors_pass_through(self, session: AsyncSession) -> None:
        with pytest.raises(LookupError):
            async with atomic(session):
                session.add(Flavor(name="Vanilla"))
                await session.flush()
                raise LookupError("boom")

        assert await _flavor_names(session) == []
