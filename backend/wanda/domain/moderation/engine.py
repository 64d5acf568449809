"""Report intake, auto-quarantine and moderator decisions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence
from uuid import UUID

from wanda.core.errors import (
	ActionResult,
	DuplicateReport,
	ModerationActionError,
	PostNotFound,
	QueryError,
	ReportAlreadyResolved,
	ReportNotFound,
	UserNotFound,
	WandaError,
)
from wanda.core.locking import KeyLocks, post_key, user_key
from wanda.core.repositories import Stores
from wanda.domain.identity.service import UserService
from wanda.domain.identity.trust import TrustImpact, impact_for_report
from wanda.domain.moderation.models import Report, ReportReason, ReportStatus
from wanda.domain.posts.models import PostStatus
from wanda.obs import logging as obs_logging
from wanda.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


@dataclass
class ModerationEngine:
	"""Applies reports and moderator verdicts to posts and their authors.

	Every mutation runs under the post lock and in a single unit of work, so a
	verdict either lands completely (trust, post and report) or not at all.
	"""

	stores: Stores
	locks: KeyLocks
	users: UserService
	quarantine_threshold: int = 5

	async def submit_report(
		self,
		reporter_id: UUID,
		post_id: UUID,
		reason: ReportReason,
		details: Optional[str] = None,
	) -> ActionResult[Report]:
		try:
			with obs_logging.bound_context(actor_id=str(reporter_id), operation="submit_report"):
				async with self.locks.hold(post_key(post_id)):
					async with self.stores.transactions.atomic():
						report = await self._submit(reporter_id, post_id, reason, details)
		except WandaError as exc:
			obs_metrics.REPORTS_TOTAL.labels(reason=reason.value, outcome=exc.detail).inc()
			return ActionResult.failure(exc)
		except Exception as exc:
			obs_metrics.REPORTS_TOTAL.labels(reason=reason.value, outcome="error").inc()
			logger.error("report failed", extra={"post_id": str(post_id), "error": repr(exc)})
			return ActionResult.failure(ModerationActionError(f"could not record report on {post_id}", exc))
		obs_metrics.REPORTS_TOTAL.labels(reason=reason.value, outcome="accepted").inc()
		return ActionResult.success(report)

	async def _submit(
		self,
		reporter_id: UUID,
		post_id: UUID,
		reason: ReportReason,
		details: Optional[str],
	) -> Report:
		if await self.stores.reports.exists_report(reporter_id, post_id):
			raise DuplicateReport(reporter_id, post_id)
		post = await self.stores.posts.find_post(post_id, for_update=True)
		if post is None:
			raise PostNotFound(post_id)

		report = await self.stores.reports.save_report(
			Report(reporter_id=reporter_id, post_id=post_id, reason=reason, details=details)
		)
		count = await self.stores.reports.count_reports_for_post(post_id)
		if count >= self.quarantine_threshold:
			# Quarantine overrides the vote tally; only a rejected report lifts it.
			await self.stores.posts.set_status(post_id, PostStatus.ARCHIVED)
			if post.status is not PostStatus.ARCHIVED:
				obs_metrics.QUARANTINES_TOTAL.inc()
				obs_metrics.record_transition(post.status.value, PostStatus.ARCHIVED.value, "quarantine")
				logger.warning("post quarantined", extra={"post_id": str(post_id), "reports": count})
		logger.info(
			"report recorded",
			extra={"report_id": str(report.id), "post_id": str(post_id), "reason": reason.value},
		)
		return report

	async def confirm_report(self, admin_id: UUID, report_id: UUID) -> ActionResult[Report]:
		try:
			with obs_logging.bound_context(actor_id=str(admin_id), operation="confirm_report"):
				await self.users.require_admin(admin_id)
				report = await self._pending_report(report_id)
				async with self.locks.hold(post_key(report.post_id)):
					post = await self.stores.posts.find_post(report.post_id)
					if post is None:
						raise PostNotFound(report.post_id)
					async with self.locks.hold(user_key(post.author_id)):
						async with self.stores.transactions.atomic():
							impact = await self._confirm(report)
		except WandaError as exc:
			obs_metrics.MODERATION_DECISIONS_TOTAL.labels(decision="confirm", outcome=exc.detail).inc()
			return ActionResult.failure(exc)
		except Exception as exc:
			obs_metrics.MODERATION_DECISIONS_TOTAL.labels(decision="confirm", outcome="error").inc()
			logger.error("report confirmation failed", extra={"report_id": str(report_id), "error": repr(exc)})
			return ActionResult.failure(ModerationActionError(f"could not confirm report {report_id}", exc))
		obs_metrics.MODERATION_DECISIONS_TOTAL.labels(decision="confirm", outcome="applied").inc()
		logger.info(
			"report confirmed",
			extra={
				"report_id": str(report_id),
				"post_id": str(report.post_id),
				"admin_id": str(admin_id),
				"impact": impact.value,
			},
		)
		return ActionResult.success(report.with_status(ReportStatus.VALIDATED))

	async def _confirm(self, report: Report) -> TrustImpact:
		post = await self.stores.posts.find_post(report.post_id, for_update=True)
		if post is None:
			raise PostNotFound(report.post_id)
		await self._pending_report(report.id)
		impact = impact_for_report(report.reason)
		try:
			await self.users.apply_impact(post.author_id, impact)
		except UserNotFound:
			# Ingested posts are authored by the system id, which has no account.
			logger.warning(
				"reported post author has no account, trust unchanged",
				extra={"post_id": str(post.id), "author_id": str(post.author_id)},
			)
		await self.stores.posts.delete_post(post.id)
		await self.stores.reports.set_report_status(report.id, ReportStatus.VALIDATED)
		return impact

	async def reject_report(self, admin_id: UUID, report_id: UUID) -> ActionResult[Report]:
		try:
			with obs_logging.bound_context(actor_id=str(admin_id), operation="reject_report"):
				await self.users.require_admin(admin_id)
				report = await self._pending_report(report_id)
				async with self.locks.hold(post_key(report.post_id)):
					async with self.stores.transactions.atomic():
						await self._pending_report(report_id)
						post = await self.stores.posts.find_post(report.post_id, for_update=True)
						if post is not None:
							await self.stores.posts.set_status(post.id, PostStatus.PUBLISHED)
							obs_metrics.record_transition(post.status.value, PostStatus.PUBLISHED.value, "report_rejected")
						await self.stores.reports.set_report_status(report_id, ReportStatus.REJECTED)
		except WandaError as exc:
			obs_metrics.MODERATION_DECISIONS_TOTAL.labels(decision="reject", outcome=exc.detail).inc()
			return ActionResult.failure(exc)
		except Exception as exc:
			obs_metrics.MODERATION_DECISIONS_TOTAL.labels(decision="reject", outcome="error").inc()
			logger.error("report rejection failed", extra={"report_id": str(report_id), "error": repr(exc)})
			return ActionResult.failure(ModerationActionError(f"could not reject report {report_id}", exc))
		obs_metrics.MODERATION_DECISIONS_TOTAL.labels(decision="reject", outcome="applied").inc()
		logger.info(
			"report rejected",
			extra={"report_id": str(report_id), "post_id": str(report.post_id), "admin_id": str(admin_id)},
		)
		return ActionResult.success(report.with_status(ReportStatus.REJECTED))

	async def list_pending_reports(self) -> ActionResult[Sequence[Report]]:
		try:
			pending = await self.stores.reports.list_pending_reports()
		except Exception as exc:
			logger.error("pending report listing failed", extra={"error": repr(exc)})
			return ActionResult.failure(QueryError("could not list pending reports", exc))
		return ActionResult.success(pending)

	async def _pending_report(self, report_id: UUID) -> Report:
		report = await self.stores.reports.find_report(report_id)
		if report is None:
			raise ReportNotFound(report_id)
		if report.status.is_terminal:
			raise ReportAlreadyResolved(report_id, report.status.value)
		return report


__all__ = ["ModerationEngine"]
