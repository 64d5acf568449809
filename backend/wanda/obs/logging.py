"""Structured logging helpers for the observability package."""

from __future__ import annotations

import json
import logging
import random
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from wanda.settings import settings

_REQUEST_ID: ContextVar[Optional[str]] = ContextVar("obs_request_id", default=None)
_ACTOR_ID: ContextVar[Optional[str]] = ContextVar("obs_actor_id", default=None)
_OPERATION: ContextVar[Optional[str]] = ContextVar("obs_operation", default=None)

_LOGGER_NAME = "wanda"

_SENSITIVE_KEYWORDS = (
	"token",
	"secret",
	"password",
	"matricule",
	"content",
	"details",
)

_MAX_STRING_LENGTH = 256
_MAX_COLLECTION_ITEMS = 10

_RESERVED_ATTRS = frozenset(
	{
		"args",
		"msg",
		"levelname",
		"levelno",
		"pathname",
		"filename",
		"module",
		"exc_info",
		"exc_text",
		"stack_info",
		"lineno",
		"funcName",
		"created",
		"msecs",
		"relativeCreated",
		"thread",
		"threadName",
		"process",
		"processName",
		"message",
		"name",
		"taskName",
	}
)


def bind_context(
	*,
	request_id: Optional[str] = None,
	actor_id: Optional[str] = None,
	operation: Optional[str] = None,
) -> Dict[str, Token]:
	"""Bind contextual fields for the current task and return reset tokens."""
	tokens: Dict[str, Token] = {}
	if request_id is not None:
		tokens["request_id"] = _REQUEST_ID.set(request_id)
	if actor_id is not None:
		tokens["actor_id"] = _ACTOR_ID.set(actor_id)
	if operation is not None:
		tokens["operation"] = _OPERATION.set(operation)
	return tokens


def reset_context(tokens: Dict[str, Token]) -> None:
	for key, token in tokens.items():
		if key == "request_id":
			_REQUEST_ID.reset(token)
		elif key == "actor_id":
			_ACTOR_ID.reset(token)
		elif key == "operation":
			_OPERATION.reset(token)


@contextmanager
def bound_context(**fields: Optional[str]) -> Iterator[None]:
	tokens = bind_context(**fields)
	try:
		yield
	finally:
		reset_context(tokens)


def _truncate_collection(values: list[Any]) -> list[Any]:
	if len(values) <= _MAX_COLLECTION_ITEMS:
		return values
	trimmed = values[:_MAX_COLLECTION_ITEMS]
	trimmed.append("…")
	return trimmed


def _sanitize_value(value: Any) -> Any:
	if isinstance(value, str):
		return value if len(value) <= _MAX_STRING_LENGTH else f"{value[:_MAX_STRING_LENGTH]}…"
	if isinstance(value, dict):
		result: Dict[str, Any] = {}
		for idx, (key, nested) in enumerate(value.items()):
			if idx >= _MAX_COLLECTION_ITEMS:
				result["…"] = f"+{len(value) - _MAX_COLLECTION_ITEMS} keys"
				break
			result[key] = _sanitize_field(str(key), nested)
		return result
	if isinstance(value, (list, tuple, set)):
		items = [_sanitize_value(item) for item in list(value)]
		return _truncate_collection(items)
	if isinstance(value, (int, float, bool)) or value is None:
		return value
	return str(value)


def _sanitize_field(key: str, value: Any) -> Any:
	lowered = key.lower()
	if any(keyword in lowered for keyword in _SENSITIVE_KEYWORDS):
		return "[redacted]"
	return _sanitize_value(value)


class JSONLogFormatter(logging.Formatter):
	"""Emit logs as JSON objects with structured fields."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
		payload: Dict[str, object] = {
			"ts": timestamp,
			"level": record.levelname.lower(),
			"msg": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		request_id = _REQUEST_ID.get()
		if request_id:
			payload["request_id"] = request_id
		actor_id = _ACTOR_ID.get()
		if actor_id:
			payload["actor_id"] = actor_id
		operation = _OPERATION.get()
		if operation:
			payload["operation"] = operation
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		for key, value in record.__dict__.items():
			if key in _RESERVED_ATTRS or key.startswith("_"):
				continue
			payload[key] = _sanitize_field(key, value)
		return json.dumps(payload, separators=(",", ":"))


class InfoSamplingFilter(logging.Filter):
	"""Randomly sample info-level logs, keep warnings/errors."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO:
			return True
		rate = max(0.0, min(1.0, settings.obs_log_sampling_rate_info))
		if rate >= 1.0:
			return True
		return random.random() < rate


def configure_logging() -> logging.Logger:
	"""Configure root logger with JSON formatting and sampling."""
	root = logging.getLogger()
	root.handlers.clear()
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
