"""User lifecycle and trust adjustment orchestration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from wanda.core.errors import (
    ActionResult,
    RegistrationError,
    TrustAdjustmentError,
    UnauthorizedAdminAction,
    UserAlreadyExists,
    UserNotFound,
    WandaError,
)
from wanda.core.locking import KeyLocks, user_key
from wanda.core.repositories import TransactionManager, UserDirectory
from wanda.domain.identity.models import Department, Role, User
from wanda.domain.identity.trust import TrustImpact, TrustScore, adjust, delta_for
from wanda.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


@dataclass
class UserService:
    users: UserDirectory
    transactions: TransactionManager
    locks: KeyLocks

    async def get_user(self, user_id: UUID) -> User | None:
        return await self.users.find_user(user_id)

    async def register_user(
        self,
        *,
        matricule: str,
        full_name: str,
        department: Department,
        level: str,
    ) -> ActionResult[User]:
        # New members always start as students with the default score.
        try:
            async with self.transactions.atomic():
                if await self.users.find_by_matricule(matricule) is not None:
                    raise UserAlreadyExists(matricule)
                user = User(
                    matricule=matricule,
                    full_name=full_name,
                    department=department,
                    level=level,
                    role=Role.STUDENT,
                    trust_score=TrustScore.DEFAULT,
                )
                saved = await self.users.save_user(user)
        except WandaError as exc:
            return ActionResult.failure(exc)
        except Exception as exc:
            return ActionResult.failure(RegistrationError(f"could not register {matricule}", exc))
        logger.info("user registered", extra={"user_id": str(saved.id), "department": saved.department.value})
        return ActionResult.success(saved)

    async def require_admin(self, admin_id: UUID) -> User:
        admin = await self.users.find_user(admin_id)
        if admin is None:
            raise UserNotFound(admin_id)
        if not admin.is_admin():
            raise UnauthorizedAdminAction(admin_id)
        return admin

    async def promote_to_delegate(self, admin_id: UUID, target_id: UUID) -> ActionResult[User]:
        try:
            await self.require_admin(admin_id)
            async with self.locks.hold(user_key(target_id)):
                async with self.transactions.atomic():
                    student = await self.users.find_user(target_id, for_update=True)
                    if student is None:
                        raise UserNotFound(target_id)
                    promoted = student.model_copy(update={"role": Role.DELEGATE, "trust_score": TrustScore.MAX})
                    saved = await self.users.save_user(promoted)
        except WandaError as exc:
            return ActionResult.failure(exc)
        except Exception as exc:
            return ActionResult.failure(TrustAdjustmentError(f"could not promote {target_id}", exc))
        logger.info("user promoted to delegate", extra={"user_id": str(target_id), "admin_id": str(admin_id)})
        return ActionResult.success(saved)

    async def adjust_user_trust(self, user_id: UUID, impact: TrustImpact) -> ActionResult[User]:
        """Apply one reputation impact in its own unit of work."""

        try:
            async with self.locks.hold(user_key(user_id)):
                async with self.transactions.atomic():
                    updated = await self.apply_impact(user_id, impact)
        except WandaError as exc:
            return ActionResult.failure(exc)
        except Exception as exc:
            return ActionResult.failure(TrustAdjustmentError(f"could not adjust trust of {user_id}", exc))
        return ActionResult.success(updated)

    async def apply_impact(self, user_id: UUID, impact: TrustImpact) -> User:
        """Read-modify-write the user's score; joins the caller's transaction.

        The caller holds ``user_key(user_id)`` until its unit of work has
        committed or rolled back. Raises ``UserNotFound``; store failures
        propagate to the caller.
        """

        user = await self.users.find_user(user_id, for_update=True)
        if user is None:
            raise UserNotFound(user_id)
        score = adjust(user.trust_score, impact)
        saved = await self.users.save_user(user.with_trust(score))
        obs_metrics.TRUST_ADJUSTMENTS_TOTAL.labels(impact=impact.value).inc()
        logger.info(
            "trust adjusted",
            extra={
                "user_id": str(user_id),
                "impact": impact.value,
                "delta": delta_for(impact),
                "trust_before": user.trust_score.value,
                "trust_after": score.value,
            },
        )
        return saved


__all__ = ["UserService"]
