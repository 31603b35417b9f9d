from __future__ import annotations

from typing import Any

import redis
from django.conf import settings
from django.db import connection
from django.db import transaction
from django.http import JsonResponse


def check_db() -> dict[str, Any]:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1;")
            cursor.fetchone()
    except Exception as exc:  # noqa: BLE001 - health must degrade, not crash
        return {"ok": False, "error": str(exc)}
    else:
        return {"ok": True}


def check_redis() -> dict[str, Any] | None:
    """Ping Redis when one is configured; ``None`` means not in use."""

    url = getattr(settings, "REDIS_URL", "") or getattr(
        settings, "REALTIME_REDIS_URL", ""
    )
    if not url:
        return None
    try:
        client = redis.Redis.from_url(
            url,
            socket_timeout=0.5,
            socket_connect_timeout=0.5,
        )
        client.ping()
    except Exception as exc:  # noqa: BLE001 - health must degrade, not crash
        return {"ok": False, "error": str(exc)}
    else:
        return {"ok": True}


def check_realtime() -> dict[str, Any]:
    from senaconnect.realtime.socketio import GATEWAYS  # noqa: PLC0415

    return {
        "ok": True,
        "gateways": {
            gateway.name: {
                "users": len(gateway.registry.users()),
                "connections": len(gateway.registry),
            }
            for gateway in GATEWAYS
        },
    }


@transaction.non_atomic_requests
def health(request):
    components: dict[str, dict[str, Any]] = {"db": check_db()}
    redis_info = check_redis()
    if redis_info is not None:
        components["redis"] = redis_info

    all_ok = all(v.get("ok", False) for v in components.values())
    some_ok = any(v.get("ok", False) for v in components.values())

    status = "ok" if all_ok else ("degraded" if some_ok else "down")
    http_status = 200 if all_ok else 503

    return JsonResponse(
        {"status": status, "components": components, "realtime": check_realtime()},
        status=http_status,
    )
