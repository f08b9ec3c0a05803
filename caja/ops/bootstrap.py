# caja/ops/bootstrap.py
from __future__ import annotations

import sys
from typing import Iterable, Tuple

import structlog
from sqlalchemy.exc import SQLAlchemyError

from caja.core.logs import configure_logging
from caja.db import Base, SessionLocal, engine

# IMPORTA MODELOS antes de create_all
from caja.models import caja as _caja_models  # noqa: F401
from caja.models import pagos as _pagos_models  # noqa: F401
from caja.models.cierre import Banco

logger = structlog.get_logger(__name__)

BANCOS_DEFAULT: Tuple[Tuple[str, str], ...] = (
    ("0102", "Banco de Venezuela"),
    ("0104", "Venezolano de Crédito"),
    ("0105", "Mercantil"),
    ("0108", "Provincial"),
    ("0114", "Bancaribe"),
    ("0134", "Banesco"),
    ("0172", "Bancamiga"),
    ("0191", "BNC"),
)


def crear_tablas(bind=None) -> None:
    Base.metadata.create_all(bind=bind or engine)
    logger.info("bootstrap_tablas_creadas")


def sembrar_bancos(db, bancos: Iterable[Tuple[str, str]] = BANCOS_DEFAULT) -> int:
    """Inserta los bancos que falten (por código). Idempotente; devuelve cuántos agregó."""
    existentes = {codigo for (codigo,) in db.query(Banco.codigo).all()}
    nuevos = [Banco(codigo=codigo, nombre=nombre) for codigo, nombre in bancos if codigo not in existentes]
    db.add_all(nuevos)
    db.commit()
    logger.info("bootstrap_bancos", agregados=len(nuevos), existentes=len(existentes))
    return len(nuevos)


def main() -> int:
    configure_logging()
    crear_tablas()
    db = SessionLocal()
    try:
        sembrar_bancos(db)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("bootstrap_fallido")
        return 1
    finally:
        db.close()
    logger.info("bootstrap_listo")
    return 0


if __name__ == "__main__":
    sys.exit(main())
