"""Central registry for Prometheus metrics used by the trust and moderation core."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

VOTES_TOTAL = Counter(
	"wanda_votes_total",
	"Peer validation votes by type and outcome",
	["type", "outcome"],
)

POST_STATUS_TRANSITIONS_TOTAL = Counter(
	"wanda_post_status_transitions_total",
	"Post status transitions by origin",
	["from_status", "to_status", "trigger"],
)

POSTS_CREATED_TOTAL = Counter(
	"wanda_posts_created_total",
	"Posts admitted by initial status and source",
	["status", "source"],
)

REPORTS_TOTAL = Counter(
	"wanda_reports_total",
	"Reports submitted by reason and outcome",
	["reason", "outcome"],
)

QUARANTINES_TOTAL = Counter(
	"wanda_quarantines_total",
	"Posts archived by the report auto-quarantine threshold",
)

MODERATION_DECISIONS_TOTAL = Counter(
	"wanda_moderation_decisions_total",
	"Moderator report decisions by outcome",
	["decision", "outcome"],
)

TRUST_ADJUSTMENTS_TOTAL = Counter(
	"wanda_trust_adjustments_total",
	"Trust adjustments applied by impact",
	["impact"],
)

INBOUND_SYNC_ITEMS_TOTAL = Counter(
	"wanda_inbound_sync_items_total",
	"Inbound official items handled by source and result",
	["source", "result"],
)

LOCK_WAIT_SECONDS = Histogram(
	"wanda_lock_wait_seconds",
	"Time spent waiting for a per-key lock",
	["backend"],
	buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)


def record_transition(before: str, after: str, trigger: str) -> None:
	if before == after:
		return
	POST_STATUS_TRANSITIONS_TOTAL.labels(from_status=before, to_status=after, trigger=trigger).inc()
