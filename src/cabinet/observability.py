from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

log = logging.getLogger("cabinet.observability")


class LogLevel(Enum):
    """Structured log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class ActionType(Enum):
    """Action types for structured logging."""
    STARBOARD_POST = "starboard_post"
    STARBOARD_UPDATE = "starboard_update"
    STARBOARD_REMOVE = "starboard_remove"
    ROLE_GRANT = "role_grant"
    ROLE_REVOKE = "role_revoke"
    BACKFILL = "backfill"
    API_CALL = "api_call"
    ERROR = "error"
    STARTUP = "startup"


@dataclass
class StructuredLogEntry:
    """Structured log entry with context."""
    timestamp: datetime
    level: LogLevel
    action: ActionType
    guild_id: int | None
    user_id: int | None
    message: str
    details: dict[str, Any]
    success: bool | None = None
    error_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["level"] = self.level.value
        data["action"] = self.action.value
        return data


class ObservabilityManager:
    """Structured event logging plus the counters behind the admin status route."""

    def __init__(self) -> None:
        self._startup_time = datetime.now(timezone.utc)
        self._action_counts: dict[str, int] = {}
        self._error_counts: dict[str, int] = {}
        self._api_call_counts: dict[str, int] = {}
        self._health_status: dict[str, bool] = {
            "database": False,
            "command_sync_done": False,
            "reaction_roles": False,
            "web": False,
        }

    def log_structured(
        self,
        level: LogLevel,
        action: ActionType,
        message: str,
        guild_id: int | None = None,
        user_id: int | None = None,
        details: dict[str, Any] | None = None,
        success: bool | None = None,
        error_type: str | None = None,
    ) -> None:
        """Log a structured event."""
        details = details or {}
        entry = StructuredLogEntry(
            timestamp=datetime.now(timezone.utc),
            level=level,
            action=action,
            guild_id=guild_id,
            user_id=user_id,
            message=message,
            details=details,
            success=success,
            error_type=error_type,
        )

        log_method = {
            LogLevel.DEBUG: log.debug,
            LogLevel.INFO: log.info,
            LogLevel.WARNING: log.warning,
            LogLevel.ERROR: log.error,
        }.get(level, log.info)

        log_method(f"[{action.value}] {message} | {json.dumps(entry.to_dict(), separators=(',', ':'), default=str)}")

        self._action_counts[action.value] = self._action_counts.get(action.value, 0) + 1
        if action == ActionType.ERROR:
            error_key = f"{error_type or 'unknown'}:{message}"
            self._error_counts[error_key] = self._error_counts.get(error_key, 0) + 1
        elif action == ActionType.API_CALL:
            route = details.get("route", "unknown")
            self._api_call_counts[route] = self._api_call_counts.get(route, 0) + 1

    def log_starboard(self, action: ActionType, guild_id: int, source_message_id: int, stars: int) -> None:
        self.log_structured(
            level=LogLevel.INFO,
            action=action,
            message=f"Starboard {action.value.split('_', 1)[1]} for message {source_message_id}",
            guild_id=guild_id,
            details={"source_message_id": source_message_id, "stars": stars},
            success=True,
        )

    def log_role_change(
        self,
        granted: bool,
        guild_id: int,
        user_id: int,
        role_id: int,
        message_id: int,
        reaction: str,
    ) -> None:
        self.log_structured(
            level=LogLevel.INFO,
            action=ActionType.ROLE_GRANT if granted else ActionType.ROLE_REVOKE,
            message=f"Role {role_id} {'granted to' if granted else 'removed from'} {user_id}",
            guild_id=guild_id,
            user_id=user_id,
            details={"role_id": role_id, "message_id": message_id, "reaction": reaction},
            success=True,
        )

    def log_error(self, message: str, error: Exception, guild_id: int | None = None, **details: Any) -> None:
        self.log_structured(
            level=LogLevel.ERROR,
            action=ActionType.ERROR,
            message=message,
            guild_id=guild_id,
            details=details,
            success=False,
            error_type=type(error).__name__,
        )

    def log_api_call(self, method: str, route: str, status: int) -> None:
        self.log_structured(
            level=LogLevel.INFO if status < 500 else LogLevel.WARNING,
            action=ActionType.API_CALL,
            message=f"{method} {route} -> {status}",
            details={"method": method, "route": route, "status": status},
            success=status < 400,
        )

    def log_startup_event(self, component: str, status: str, details: dict[str, Any] | None = None) -> None:
        self.log_structured(
            level=LogLevel.INFO if status == "OK" else LogLevel.ERROR,
            action=ActionType.STARTUP,
            message=f"Startup component {component}: {status}",
            details={"component": component, "status": status, **(details or {})},
            success=status == "OK",
        )
        self._health_status[component] = status == "OK"

    def get_health_status(self) -> dict[str, Any]:
        uptime = datetime.now(timezone.utc) - self._startup_time
        return {
            "healthy": all(self._health_status.values()),
            "uptimeSeconds": int(uptime.total_seconds()),
            "components": dict(self._health_status),
        }

    def get_stats(self) -> dict[str, Any]:
        return {
            "actions": dict(self._action_counts),
            "errors": dict(self._error_counts),
            "apiCalls": dict(self._api_call_counts),
        }
