from __future__ import annotations

import json
import logging

from cabinet.observability import ActionType, ObservabilityManager


def test_health_requires_every_component():
    observability = ObservabilityManager()
    assert observability.get_health_status()["healthy"] is False

    for component in ("database", "command_sync_done", "reaction_roles", "web"):
        observability.log_startup_event(component, "OK")

    health = observability.get_health_status()
    assert health["healthy"] is True
    assert health["uptimeSeconds"] >= 0

    observability.log_startup_event("web", "FAILED")
    assert observability.get_health_status()["components"]["web"] is False


def test_counters():
    observability = ObservabilityManager()

    observability.log_starboard(ActionType.STARBOARD_POST, 1, 2, 3)
    observability.log_role_change(True, 1, 2, 3, 4, "🎮")
    observability.log_api_call("GET", "/healthz", 200)
    observability.log_api_call("GET", "/healthz", 200)
    observability.log_error("Failed to add reaction role", RuntimeError("boom"), guild_id=1)

    stats = observability.get_stats()
    assert stats["actions"]["starboard_post"] == 1
    assert stats["actions"]["role_grant"] == 1
    assert stats["apiCalls"] == {"/healthz": 2}
    assert stats["errors"] == {"RuntimeError:Failed to add reaction role": 1}


def test_startup_event_keeps_component_with_extra_details(caplog):
    observability = ObservabilityManager()

    with caplog.at_level(logging.INFO, logger="cabinet.observability"):
        observability.log_startup_event("web", "OK", {"port": 3000})

    line = caplog.records[-1].getMessage()
    payload = json.loads(line.split(" | ", 1)[1])
    assert payload["details"] == {"component": "web", "status": "OK", "port": 3000}
    assert observability.get_health_status()["components"]["web"] is True
