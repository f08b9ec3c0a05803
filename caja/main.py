from fastapi import FastAPI

from caja.core.config import settings
from caja.core.logs import configure_logging
from caja.db import Base, engine
from caja.middleware.cierre_audit import install_cierre_audit
from caja.middleware.idempotency import install_idempotency

# IMPORTA MODELOS antes de create_all
from caja.models import caja as _caja_models  # noqa: F401
from caja.models import cierre as _cierre_models  # noqa: F401
from caja.models import pagos as _pagos_models  # noqa: F401
from caja.routers import cajas, cierres, creditos, health

configure_logging()

# Crea tablas faltantes (desarrollo)
Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.app_name, version=settings.app_version)

# el último agregado envuelve a los anteriores: idempotencia responde antes que la auditoría
install_cierre_audit(app)
install_idempotency(app)

app.include_router(health.router)
app.include_router(cajas.router)
app.include_router(creditos.router)
app.include_router(cierres.router)
