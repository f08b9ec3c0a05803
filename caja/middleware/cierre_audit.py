from __future__ import annotations

from datetime import datetime, timezone
import json
import re
import threading

import structlog
from starlette.concurrency import iterate_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from caja.core.config import get_settings
from caja.utils.atomic_file import append_jsonl_atomic, iter_jsonl

logger = structlog.get_logger(__name__)

_CERRAR = re.compile(r"^/cajas/(\d+)/cerrar$")
_LOCK = threading.Lock()


def audit_file() -> str:
    return get_settings().cierres_audit_file


def _dedup_exists(path: str, caja_id) -> bool:
    for ev in iter_jsonl(path):
        if ev.get("kind") == "cierre" and ev.get("caja_id") == caja_id:
            return True
    return False


def registrar_cierre(data: dict, idempotency_key=None) -> bool:
    """Anexa una línea por caja cerrada; False si ya estaba registrada."""
    caja = data.get("caja") or {}
    resultado = data.get("resultado") or {}
    caja_id = caja.get("id")
    if caja_id is None:
        return False
    path = audit_file()
    with _LOCK:
        if _dedup_exists(path, caja_id):
            return False
        append_jsonl_atomic(
            path,
            {
                "ts": datetime.now(timezone.utc).isoformat(),
                "kind": "cierre",
                "caja_id": caja_id,
                "user_id": caja.get("user_id"),
                "total_calculado_bs": resultado.get("total_calculado_bs"),
                "reporte_z": resultado.get("reporte_z"),
                "diferencia": resultado.get("diferencia"),
                "idempotency_key": idempotency_key,
            },
        )
    return True


class CierreAuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        if request.method != "POST" or not _CERRAR.match(request.url.path):
            return response
        if response.status_code != 200:
            return response

        # Captura el body y reinyéctalo para no consumir el stream
        body_chunks = [section async for section in response.body_iterator]
        body_bytes = b"".join(body_chunks)
        response.body_iterator = iterate_in_threadpool(iter([body_bytes]))

        try:
            data = json.loads(body_bytes.decode("utf-8"))
        except ValueError:
            return response
        if not isinstance(data, dict) or data.get("replay"):
            return response

        try:
            registrar_cierre(data, request.headers.get("Idempotency-Key"))
        except OSError:
            # el cierre ya está confirmado en base de datos
            logger.exception("auditoria_cierre_fallida", path=request.url.path)
        return response


def install_cierre_audit(app):
    app.add_middleware(CierreAuditMiddleware)
