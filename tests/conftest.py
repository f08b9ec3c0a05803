import os
import tempfile

# Config antes de importar la app: base en memoria y auditoría en un directorio temporal
os.environ["DATABASE_URL"] = "sqlite://"
_AUDIT_DIR = tempfile.mkdtemp(prefix="cajas-audit-")
os.environ["CIERRES_AUDIT_FILE"] = os.path.join(_AUDIT_DIR, "cierres_audit.jsonl")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from caja.db import Base, SessionLocal, engine  # noqa: E402
from caja.main import app  # noqa: E402
from caja.middleware import idempotency  # noqa: E402
from caja.ops.bootstrap import sembrar_bancos  # noqa: E402

AUDIT_FILE = os.environ["CIERRES_AUDIT_FILE"]


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    s = SessionLocal()
    try:
        sembrar_bancos(s)
    finally:
        s.close()
    idempotency._idem_cache._store.clear()
    if os.path.exists(AUDIT_FILE):
        os.remove(AUDIT_FILE)
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def audit_file():
    return AUDIT_FILE
