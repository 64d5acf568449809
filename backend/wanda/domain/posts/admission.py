"""Admission of community posts: initial status, audience and persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence
from uuid import UUID

from wanda.core.errors import ActionResult, AuthorNotFound, PostCreationError, QueryError, WandaError
from wanda.core.repositories import Stores
from wanda.domain.identity.models import Role, User
from wanda.domain.posts.models import Post, PostCategory, PostSource, PostStatus, VisibilityScope
from wanda.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_CERTIFIED_ROLES = frozenset({Role.ADMIN, Role.DELEGATE})


class AdmissionPolicy:
	"""Pure rules deciding how a new post enters the system."""

	def initial_status(self, author: User) -> PostStatus:
		if author.role in _CERTIFIED_ROLES or author.trust_score.is_high_reliability():
			return PostStatus.PUBLISHED
		return PostStatus.PENDING

	def visibility_for(self, author: User) -> VisibilityScope:
		if author.role is Role.ADMIN:
			return VisibilityScope()
		# The department already implies the establishment.
		return VisibilityScope(department=author.department)


@dataclass
class PostService:
	stores: Stores
	policy: AdmissionPolicy = field(default_factory=AdmissionPolicy)

	async def create_post(
		self,
		author_id: UUID,
		title: str,
		content: str,
		category: PostCategory,
	) -> ActionResult[Post]:
		try:
			author = await self.stores.users.find_user(author_id)
			if author is None:
				raise AuthorNotFound(author_id)
			post = Post(
				author_id=author.id,
				title=title,
				content=content,
				category=category,
				status=self.policy.initial_status(author),
				visibility=self.policy.visibility_for(author),
			)
			saved = await self.stores.posts.save_post(post)
		except WandaError as exc:
			return ActionResult.failure(exc)
		except Exception as exc:
			return ActionResult.failure(PostCreationError(f"could not create post for {author_id}", exc))
		obs_metrics.POSTS_CREATED_TOTAL.labels(status=saved.status.value, source=PostSource.COMMUNITY.value).inc()
		logger.info(
			"post created",
			extra={"post_id": str(saved.id), "author_id": str(author_id), "status": saved.status.value},
		)
		return ActionResult.success(saved)

	async def list_published(self) -> ActionResult[Sequence[Post]]:
		try:
			published = await self.stores.posts.list_published()
		except Exception as exc:
			logger.error("published feed listing failed", extra={"error": repr(exc)})
			return ActionResult.failure(QueryError("could not list published posts", exc))
		return ActionResult.success(published)


__all__ = ["AdmissionPolicy", "PostService"]
