"""
Recalcula los totales acumulados de una caja (pago móvil, Zelle, créditos,
notas de crédito) a partir de sus filas de pago.
Uso: python scripts/recalc_totales_caja.py <CAJA_ID>
"""
import sys

import structlog

from caja.core.logs import configure_logging
from caja.db import SessionLocal
from caja.models import cierre as _cierre_models  # noqa: F401
from caja.services.pagos_service import recalcular_totales

logger = structlog.get_logger("recalc_totales_caja")


def main():
    if len(sys.argv) < 2:
        raise SystemExit("Usage: recalc_totales_caja.py <CAJA_ID>")
    configure_logging()
    caja_id = int(sys.argv[1])
    s = SessionLocal()
    try:
        r = recalcular_totales(s, caja_id)
        if not r.ok:
            raise SystemExit(f"RECALC FAILED -> caja_id={caja_id}: {r.mensaje}")
        caja = r.value
        logger.info(
            "recalc",
            caja_id=caja_id,
            total_pagos_movil=float(caja.total_pagos_movil),
            total_zelle_bs=float(caja.total_zelle_bs),
            total_creditos_bs=float(caja.total_creditos_bs),
            total_notas_credito=float(caja.total_notas_credito),
        )
    finally:
        s.close()


if __name__ == "__main__":
    main()
