import asyncio
import hashlib
import json
import re
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger(__name__)

# Endpoints soportados y la clave de éxito esperada en el JSON
ALLOW = [
    (re.compile(r"^/cajas/abrir$"), "id"),
    (re.compile(r"^/cajas/\d+/cerrar$"), "cierre"),
]

TTL = 3600


def _success_key(path: str):
    for patron, key in ALLOW:
        if patron.match(path):
            return key
    return None


class _Cache:
    def __init__(self, ttl=TTL, max_entries=2048):
        self.ttl = ttl
        self.max_entries = max_entries
        self._store = {}
        self._lock = asyncio.Lock()

    async def get(self, key):
        async with self._lock:
            item = self._store.get(key)
            if not item:
                return None
            if item["exp"] < time.time():
                self._store.pop(key, None)
                return None
            return item

    async def set(self, key, val):
        async with self._lock:
            if len(self._store) >= self.max_entries:
                self._store.pop(next(iter(self._store)))
            self._store[key] = val


class _KeyedLocks:
    def __init__(self):
        # key -> [lock, solicitudes que lo usan]
        self._locks = {}
        self._guard = asyncio.Lock()

    async def acquire(self, key):
        async with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [asyncio.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
        await entry[0].acquire()
        return entry[0]

    async def release(self, key):
        async with self._guard:
            entry = self._locks[key]
            entry[0].release()
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]


def _drop_content_length(headers: dict) -> dict:
    return {k: v for k, v in headers.items() if k.lower() != "content-length"}


def _reused_key(cached, digest: str, idem_key: str):
    if cached["digest"] == digest:
        return None
    logger.warning("idempotency_key_reused", key=idem_key)
    return JSONResponse(
        status_code=422,
        content={"detail": "Idempotency-Key ya usada con otro contenido"},
    )


def _replay(cached) -> Response:
    body_bytes = cached["body"]
    try:
        js = json.loads(body_bytes.decode("utf-8"))
    except ValueError:
        js = None
    if isinstance(js, dict):
        js.setdefault("replay", True)
        body_bytes = json.dumps(js).encode("utf-8")
    headers = _drop_content_length(dict(cached["headers"]))
    headers["Idempotent-Replay"] = "true"
    return Response(
        content=body_bytes,
        status_code=cached["status"],
        media_type=cached["media_type"],
        headers=headers,
    )


_idem_cache = _Cache()
_keyed_locks = _KeyedLocks()


class CajaIdempotency(BaseHTTPMiddleware):
    """Repite la primera respuesta 200 de abrir/cerrar para un mismo Idempotency-Key."""

    async def dispatch(self, request, call_next):
        if request.method != "POST":
            return await call_next(request)

        path = request.url.path
        success_key = _success_key(path)
        if not success_key:
            return await call_next(request)

        idem_key = request.headers.get("Idempotency-Key")
        if not idem_key:
            return await call_next(request)

        cache_key = f"{request.method}:{path}:{idem_key}"
        digest = hashlib.sha256(await request.body()).hexdigest()

        cached = await _idem_cache.get(cache_key)
        if cached:
            conflicto = _reused_key(cached, digest, idem_key)
            if conflicto is not None:
                return conflicto
            logger.info("idempotent_replay", path=path, key=idem_key)
            return _replay(cached)

        await _keyed_locks.acquire(cache_key)
        try:
            cached = await _idem_cache.get(cache_key)
            if cached:
                conflicto = _reused_key(cached, digest, idem_key)
                if conflicto is not None:
                    return conflicto
                logger.info("idempotent_replay", path=path, key=idem_key)
                return _replay(cached)

            response = await call_next(request)
            body_bytes = b""
            async for chunk in response.body_iterator:
                body_bytes += chunk

            new_resp = Response(
                content=body_bytes,
                status_code=response.status_code,
                media_type=response.media_type,
                headers=_drop_content_length(dict(response.headers)),
            )

            # Cachear solo si 200 y contiene la clave de éxito
            should_cache = response.status_code == 200
            if should_cache:
                try:
                    js = json.loads(body_bytes.decode("utf-8"))
                    should_cache = isinstance(js, dict) and (success_key in js)
                except ValueError:
                    should_cache = False

            if should_cache:
                await _idem_cache.set(
                    cache_key,
                    {
                        "status": new_resp.status_code,
                        "headers": dict(new_resp.headers),
                        "media_type": new_resp.media_type,
                        "body": body_bytes,
                        "digest": digest,
                        "exp": time.time() + _idem_cache.ttl,
                    },
                )

            return new_resp
        finally:
            await _keyed_locks.release(cache_key)


def install_idempotency(app):
    app.add_middleware(CajaIdempotency)
