"""Peer validation: vote recording, author reputation and post status."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from wanda.core.errors import (
    ActionResult,
    DoubleValidation,
    PostNotFound,
    SelfValidation,
    StaleWriteError,
    UserNotFound,
    ValidationActionError,
    WandaError,
)
from wanda.core.locking import KeyLocks, post_key, user_key
from wanda.core.repositories import Stores
from wanda.domain.identity.service import UserService
from wanda.domain.identity.trust import impact_for_vote
from wanda.domain.posts.models import Post, PostStatus
from wanda.domain.validation.models import Validation, ValidationType
from wanda.obs import logging as obs_logging
from wanda.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_RECOMPUTE_ATTEMPTS = 3


def decide_status(
    current: PostStatus,
    confirms: int,
    refutes: int,
    *,
    publication_threshold: int = 5,
    suspicion_threshold: int = 3,
) -> PostStatus:
    """Status implied by the vote tally.

    Archived posts ignore votes. Refutations win over confirmations, and only a
    pending post can be published by peers.
    """

    if current is PostStatus.ARCHIVED:
        return current
    if refutes >= suspicion_threshold:
        return PostStatus.SUSPECT
    if confirms >= publication_threshold and current is PostStatus.PENDING:
        return PostStatus.PUBLISHED
    return current


@dataclass
class ValidationEngine:
    stores: Stores
    locks: KeyLocks
    users: UserService
    publication_threshold: int = 5
    suspicion_threshold: int = 3

    async def cast_vote(
        self,
        validator_id: UUID,
        post_id: UUID,
        vote_type: ValidationType,
    ) -> ActionResult[Validation]:
        try:
            with obs_logging.bound_context(actor_id=str(validator_id), operation="cast_vote"):
                async with self.locks.hold(post_key(post_id)):
                    post = await self.stores.posts.find_post(post_id)
                    if post is None:
                        raise PostNotFound(post_id)
                    # The author lock spans the whole unit of work.
                    async with self.locks.hold(user_key(post.author_id)):
                        async with self.stores.transactions.atomic():
                            validation = await self._cast(validator_id, post_id, vote_type)
        except WandaError as exc:
            obs_metrics.VOTES_TOTAL.labels(type=vote_type.value, outcome=exc.detail).inc()
            return ActionResult.failure(exc)
        except Exception as exc:
            obs_metrics.VOTES_TOTAL.labels(type=vote_type.value, outcome="error").inc()
            logger.error(
                "vote failed",
                extra={"post_id": str(post_id), "validator_id": str(validator_id), "error": repr(exc)},
            )
            return ActionResult.failure(ValidationActionError(f"could not record vote on {post_id}", exc))
        obs_metrics.VOTES_TOTAL.labels(type=vote_type.value, outcome="accepted").inc()
        return ActionResult.success(validation)

    async def _cast(self, validator_id: UUID, post_id: UUID, vote_type: ValidationType) -> Validation:
        post = await self.stores.posts.find_post(post_id, for_update=True)
        if post is None:
            raise PostNotFound(post_id)
        if validator_id == post.author_id:
            raise SelfValidation()
        if await self.stores.validations.has_voted(validator_id, post_id):
            raise DoubleValidation(validator_id, post_id)

        validation = await self.stores.validations.save_validation(
            Validation(post_id=post_id, validator_id=validator_id, type=vote_type)
        )

        impact = impact_for_vote(vote_type)
        try:
            await self.users.apply_impact(post.author_id, impact)
        except UserNotFound:
            logger.warning(
                "vote author has no account, trust unchanged",
                extra={"post_id": str(post_id), "author_id": str(post.author_id)},
            )

        await self.recompute_status(post_id)
        logger.info(
            "vote recorded",
            extra={"post_id": str(post_id), "validator_id": str(validator_id), "type": vote_type.value},
        )
        return validation

    async def recompute_status(self, post_id: UUID, *, trigger: str = "vote") -> Post | None:
        """Re-derive the post status from its tally and persist it if it moved.

        Runs inside the caller's unit of work. A concurrent writer bumping the
        post version makes the save stale; the tally is then recomputed.
        """

        for attempt in range(1, _RECOMPUTE_ATTEMPTS + 1):
            post = await self.stores.posts.find_post(post_id, for_update=True)
            if post is None:
                return None
            confirms = await self.stores.validations.count_by_type(post_id, ValidationType.CONFIRM)
            refutes = await self.stores.validations.count_by_type(post_id, ValidationType.REFUTE)
            target = decide_status(
                post.status,
                confirms,
                refutes,
                publication_threshold=self.publication_threshold,
                suspicion_threshold=self.suspicion_threshold,
            )
            if target is post.status:
                return post
            try:
                saved = await self.stores.posts.save_post(post.with_status(target))
            except StaleWriteError:
                if attempt == _RECOMPUTE_ATTEMPTS:
                    raise
                logger.debug("stale post status write, retrying", extra={"post_id": str(post_id), "attempt": attempt})
                continue
            obs_metrics.record_transition(post.status.value, target.value, trigger)
            logger.info(
                "post status changed",
                extra={
                    "post_id": str(post_id),
                    "from_status": post.status.value,
                    "to_status": target.value,
                    "confirms": confirms,
                    "refutes": refutes,
                },
            )
            return saved


__all__ = ["ValidationEngine", "decide_status"]
