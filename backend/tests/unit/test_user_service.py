from __future__ import annotations

from uuid import uuid4

import pytest

from wanda.core.errors import (
    ErrorKind,
    RegistrationError,
    TrustAdjustmentError,
    UnauthorizedAdminAction,
    UserAlreadyExists,
    UserNotFound,
)
from wanda.domain.identity.models import Department, Establishment, Role, departments_of
from wanda.domain.identity.service import UserService
from wanda.domain.identity.trust import TrustImpact, TrustScore


def test_every_department_belongs_to_one_establishment() -> None:
    assert Department.COMPUTER_SCIENCE.establishment is Establishment.FS
    assert Department.IT_GENIUS.establishment is Establishment.IUT
    assert Department.ANIMAL_HEALTH.establishment is Establishment.EMVT
    covered = [dept for establishment in Establishment for dept in departments_of(establishment)]
    assert sorted(covered) == sorted(Department)


def test_user_helpers(make_user) -> None:
    student = make_user()
    delegate = make_user(role=Role.DELEGATE)
    admin = make_user(role=Role.ADMIN)
    banned = make_user(trust=0)

    assert student.establishment is Establishment.FS
    assert not student.can_publish_certified()
    assert delegate.can_publish_certified() and admin.can_publish_certified()
    assert admin.is_admin() and not delegate.is_admin()
    assert student.can_vote() and not banned.can_vote()
    assert student.with_trust(TrustScore(70)).trust_score.value == 70
    assert student.trust_score.value == 50


@pytest.mark.asyncio
async def test_register_user_starts_as_student_with_default_score(user_service) -> None:
    result = await user_service.register_user(
        matricule="21A001FS",
        full_name="Aissatou Bello",
        department=Department.MATHEMATICS,
        level="L1",
    )

    assert result.ok
    user = result.unwrap()
    assert user.role is Role.STUDENT
    assert user.trust_score == TrustScore.DEFAULT
    assert await user_service.get_user(user.id) == user


@pytest.mark.asyncio
async def test_register_user_rejects_taken_matricule(user_service, make_user) -> None:
    make_user(matricule="21A001FS")

    result = await user_service.register_user(
        matricule="21A001FS",
        full_name="Someone Else",
        department=Department.HISTORY,
        level="L3",
    )

    assert not result.ok
    assert isinstance(result.error, UserAlreadyExists)
    assert result.kind is ErrorKind.INVARIANT_VIOLATION


@pytest.mark.asyncio
async def test_register_user_wraps_store_failure(stores, locks) -> None:
    class BrokenDirectory:
        async def find_user(self, user_id, *, for_update=False):
            return None

        async def find_by_matricule(self, matricule):
            return None

        async def save_user(self, user):
            raise ConnectionError("db down")

    service = UserService(users=BrokenDirectory(), transactions=stores.transactions, locks=locks)

    result = await service.register_user(
        matricule="X1",
        full_name="Nobody",
        department=Department.FINANCE,
        level="M1",
    )

    assert isinstance(result.error, RegistrationError)
    assert isinstance(result.error.cause, ConnectionError)


@pytest.mark.asyncio
async def test_adjust_user_trust_applies_delta(user_service, make_user, database) -> None:
    author = make_user(trust=60)

    result = await user_service.adjust_user_trust(author.id, TrustImpact.REPORT_CONFIRMED)

    assert result.unwrap().trust_score.value == 40
    assert database.users[author.id].trust_score.value == 40


@pytest.mark.asyncio
async def test_adjust_user_trust_clamps_and_reports_missing_user(user_service, make_user) -> None:
    author = make_user(trust=10)

    clamped = await user_service.adjust_user_trust(author.id, TrustImpact.REPORT_CONFIRMED)
    missing = await user_service.adjust_user_trust(uuid4(), TrustImpact.POSITIVE_VALIDATION)

    assert clamped.unwrap().trust_score.value == 0
    assert isinstance(missing.error, UserNotFound)


@pytest.mark.asyncio
async def test_adjust_user_trust_wraps_store_failure(stores, locks, make_user, database) -> None:
    author = make_user(trust=50)

    class FailingSave:
        async def find_user(self, user_id, *, for_update=False):
            return database.users.get(user_id)

        async def find_by_matricule(self, matricule):
            return None

        async def save_user(self, user):
            raise RuntimeError("write refused")

    service = UserService(users=FailingSave(), transactions=stores.transactions, locks=locks)

    result = await service.adjust_user_trust(author.id, TrustImpact.POSITIVE_VALIDATION)

    assert isinstance(result.error, TrustAdjustmentError)
    assert result.kind is ErrorKind.PERSISTENCE_FAILURE
    assert database.users[author.id].trust_score.value == 50


@pytest.mark.asyncio
async def test_promote_to_delegate(user_service, make_user) -> None:
    admin = make_user(role=Role.ADMIN)
    student = make_user(trust=35)

    result = await user_service.promote_to_delegate(admin.id, student.id)

    promoted = result.unwrap()
    assert promoted.role is Role.DELEGATE
    assert promoted.trust_score == TrustScore.MAX


@pytest.mark.asyncio
async def test_promote_requires_existing_admin(user_service, make_user) -> None:
    delegate = make_user(role=Role.DELEGATE)
    student = make_user()

    missing_admin = await user_service.promote_to_delegate(uuid4(), student.id)
    not_admin = await user_service.promote_to_delegate(delegate.id, student.id)
    missing_target = await user_service.promote_to_delegate(make_user(role=Role.ADMIN).id, uuid4())

    assert isinstance(missing_admin.error, UserNotFound)
    assert isinstance(not_admin.error, UnauthorizedAdminAction)
    assert not_admin.kind is ErrorKind.UNAUTHORIZED
    assert isinstance(missing_target.error, UserNotFound)
