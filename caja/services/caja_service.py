"""
Ciclo de vida de la caja: apertura, cierre con conciliación, consultas y
reportes. Cada operación devuelve Ok(valor) o Err(mensaje, codigo); el router
decide cómo presentarlo.

Estados: abierta -> cerrada (una sola transición, sin reapertura).
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from caja.core.result import (
    CAJA_CERRADA,
    CONFLICTO,
    NO_ENCONTRADO,
    PERSISTENCIA,
    VALIDACION,
    Err,
    Ok,
    Result,
)
from caja.core.schemas import AbrirCajaIn, CierreCajaIn, FiltrosCaja
from caja.models.caja import ABIERTA, CERRADA, Caja
from caja.models.cierre import Banco, CierreCaja, CierrePuntoVenta
from caja.services import mapeo
from caja.services.conciliacion import (
    ConteoCierre,
    ErrorValidacion,
    LineaPuntoVenta,
    ProveedorTasas,
    ResultadoCierre,
    TotalesSistema,
    a_decimal,
    calcular_cierre,
    esta_cuadrado,
    monto_usd_punto_venta,
)

logger = structlog.get_logger(__name__)

CAJA_NO_ENCONTRADA = "Caja no encontrada"
CAJA_YA_CERRADA = "La caja está cerrada"


def commit_o_err(db: Session, mensaje: str, **ctx) -> Optional[Err]:
    """Commit; ante fallo de persistencia hace rollback y devuelve Err."""
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("error_persistencia", mensaje=mensaje, **ctx)
        return Err(mensaje, PERSISTENCIA)
    return None


def get_caja(db: Session, caja_id: int) -> Optional[Caja]:
    return db.get(Caja, caja_id)


def caja_abierta_o_err(db: Session, caja_id: int) -> Result:
    caja = get_caja(db, caja_id)
    if caja is None:
        return Err(CAJA_NO_ENCONTRADA, NO_ENCONTRADO)
    if not caja.abierta:
        return Err(CAJA_YA_CERRADA, CAJA_CERRADA)
    return Ok(caja)


# ---------- APERTURA ----------
def verificar_caja_abierta(db: Session, user_id: str, fecha: Optional[date] = None) -> Result:
    fecha = fecha or date.today()
    caja = (
        db.query(Caja)
        .filter(Caja.user_id == user_id, Caja.fecha == fecha)
        .first()
    )
    return Ok(caja)


def abrir_caja(db: Session, datos: AbrirCajaIn, hoy: Optional[date] = None) -> Result:
    hoy = hoy or date.today()
    if datos.tasa_dia <= 0:
        return Err("La tasa del día debe ser mayor a 0", VALIDACION)

    existente = (
        db.query(Caja)
        .filter(Caja.user_id == datos.user_id)
        .filter(or_(Caja.fecha == hoy, Caja.estado == ABIERTA))
        .first()
    )
    if existente is not None:
        if existente.estado == ABIERTA and existente.fecha != hoy:
            return Err(
                f"El cajero tiene una caja abierta del {existente.fecha.isoformat()} sin cerrar",
                CONFLICTO,
            )
        return Err("Ya existe una caja abierta para el día de hoy", CONFLICTO)

    caja = Caja(
        user_id=datos.user_id,
        company_id=datos.company_id,
        fecha=hoy,
        hora_apertura=datetime.utcnow(),
        monto_apertura=a_decimal(datos.monto_apertura),
        monto_apertura_usd=a_decimal(datos.monto_apertura_usd),
        tasa_dia=a_decimal(datos.tasa_dia),
        estado=ABIERTA,
    )
    db.add(caja)
    try:
        db.commit()
    except IntegrityError:
        # otra apertura ganó la carrera contra uq_caja_user_fecha
        db.rollback()
        logger.warning("apertura_duplicada", user_id=datos.user_id, fecha=hoy.isoformat())
        return Err("Ya existe una caja abierta para el día de hoy", CONFLICTO)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("error_persistencia", mensaje="abrir_caja", user_id=datos.user_id)
        return Err("Error al abrir la caja", PERSISTENCIA)

    db.refresh(caja)
    logger.info("caja_abierta", caja_id=caja.id, user_id=caja.user_id, tasa_dia=float(caja.tasa_dia))
    return Ok(caja)


def actualizar_tasa_dia(db: Session, caja_id: int, tasa: float) -> Result:
    if tasa is None or tasa <= 0:
        return Err("La tasa del día debe ser mayor a 0", VALIDACION)
    r = caja_abierta_o_err(db, caja_id)
    if not r.ok:
        return r
    caja = r.value
    caja.tasa_dia = a_decimal(tasa)
    err = commit_o_err(db, "Error al actualizar la tasa del día", caja_id=caja_id)
    if err:
        return err
    db.refresh(caja)
    logger.info("tasa_actualizada", caja_id=caja_id, tasa_dia=float(tasa))
    return Ok(caja)


# ---------- CIERRE ----------
def _conteo_desde(datos: CierreCajaIn) -> ConteoCierre:
    return ConteoCierre(
        efectivo_dolares=a_decimal(datos.efectivo_dolares),
        efectivo_euros=a_decimal(datos.efectivo_euros),
        efectivo_bs=a_decimal(datos.efectivo_bs),
        reporte_z=a_decimal(datos.reporte_z),
        fondo_caja_dolares=a_decimal(datos.fondo_caja_dolares),
        fondo_caja_bs=a_decimal(datos.fondo_caja_bs),
        cierres_punto_venta=[
            LineaPuntoVenta(monto_bs=a_decimal(pv.monto_bs), banco_id=pv.banco_id, numero_lote=pv.numero_lote)
            for pv in datos.cierres_punto_venta
        ],
    )


def _conciliar(caja: Caja, datos: CierreCajaIn, tasas: Optional[ProveedorTasas]) -> Result:
    try:
        resultado = calcular_cierre(
            TotalesSistema.desde_caja(caja), _conteo_desde(datos), caja.tasa_dia, tasas
        )
    except ErrorValidacion as e:
        return Err(str(e), VALIDACION)
    return Ok(resultado)


def previsualizar_cierre(
    db: Session, caja_id: int, datos: CierreCajaIn, tasas: Optional[ProveedorTasas] = None
) -> Result:
    """Calcula la conciliación sin persistir (el resumen que ve el cajero antes de cerrar)."""
    r = caja_abierta_o_err(db, caja_id)
    if not r.ok:
        return r
    return _conciliar(r.value, datos, tasas)


def cerrar_caja(
    db: Session, caja_id: int, datos: CierreCajaIn, tasas: Optional[ProveedorTasas] = None
) -> Result:
    r = caja_abierta_o_err(db, caja_id)
    if not r.ok:
        return r
    caja = r.value

    banco_ids = {pv.banco_id for pv in datos.cierres_punto_venta}
    if banco_ids:
        encontrados = {b.id for b in db.query(Banco).filter(Banco.id.in_(banco_ids)).all()}
        faltantes = sorted(banco_ids - encontrados)
        if faltantes:
            return Err(f"Banco no encontrado: {faltantes[0]}", VALIDACION)

    r = _conciliar(caja, datos, tasas)
    if not r.ok:
        return r
    resultado: ResultadoCierre = r.value

    ahora = datetime.utcnow()
    # compare-and-swap: sólo cierra si sigue abierta
    res = db.execute(
        update(Caja)
        .where(Caja.id == caja_id, Caja.estado == ABIERTA)
        .values(
            estado=CERRADA,
            hora_cierre=ahora,
            monto_cierre=resultado.total_calculado_bs,
            observaciones=datos.observaciones or None,
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        return Err(CAJA_YA_CERRADA, CAJA_CERRADA)

    db.add(
        CierreCaja(
            caja_id=caja_id,
            efectivo_dolares=a_decimal(datos.efectivo_dolares),
            efectivo_euros=a_decimal(datos.efectivo_euros),
            efectivo_bs=a_decimal(datos.efectivo_bs),
            reporte_z=resultado.reporte_z,
            fondo_caja_dolares=resultado.fondo_caja_dolares,
            fondo_caja_bs=resultado.fondo_caja_bs,
            total_efectivo_bs=resultado.total_efectivo_bs,
            total_punto_venta_bs=resultado.total_punto_venta_bs,
            total_calculado_bs=resultado.total_calculado_bs,
            diferencia=resultado.diferencia,
            user_id=datos.user_id or caja.user_id,
        )
    )
    for pv in datos.cierres_punto_venta:
        db.add(
            CierrePuntoVenta(
                caja_id=caja_id,
                banco_id=pv.banco_id,
                numero_lote=pv.numero_lote,
                monto_bs=a_decimal(pv.monto_bs),
                monto_usd=monto_usd_punto_venta(pv.monto_bs, caja.tasa_dia),
            )
        )

    err = commit_o_err(db, "Error al procesar el cierre de caja", caja_id=caja_id)
    if err:
        return err

    db.refresh(caja)
    logger.info(
        "caja_cerrada",
        caja_id=caja_id,
        user_id=caja.user_id,
        total_calculado_bs=float(resultado.total_calculado_bs),
        reporte_z=float(resultado.reporte_z),
        diferencia=float(resultado.diferencia),
    )
    return Ok(
        {
            "caja": mapeo.caja_dict(caja),
            "cierre": mapeo.cierre_dict(caja.cierre),
            "cierres_punto_venta": [mapeo.punto_venta_dict(pv) for pv in caja.cierres_punto_venta],
            "resultado": resultado.as_dict(),
            "cuadrado": esta_cuadrado(resultado.diferencia),
        }
    )


# ---------- CONSULTAS ----------
def listar_cajas(db: Session, company_id: str, filtros: Optional[FiltrosCaja] = None) -> Result:
    filtros = filtros or FiltrosCaja()
    q = db.query(Caja).filter(Caja.company_id == company_id)
    if filtros.fecha_desde:
        q = q.filter(Caja.fecha >= filtros.fecha_desde)
    if filtros.fecha_hasta:
        q = q.filter(Caja.fecha <= filtros.fecha_hasta)
    if filtros.user_id:
        q = q.filter(Caja.user_id == filtros.user_id)
    if filtros.estado and filtros.estado != "todas":
        q = q.filter(Caja.estado == filtros.estado)
    cajas = q.order_by(Caja.fecha.desc(), Caja.hora_apertura.desc()).all()
    return Ok(cajas)


def obtener_caja(db: Session, caja_id: int) -> Result:
    caja = get_caja(db, caja_id)
    if caja is None:
        return Err(CAJA_NO_ENCONTRADA, NO_ENCONTRADO)
    return Ok(caja)


def generar_reporte(db: Session, caja_id: int) -> Result:
    r = obtener_caja(db, caja_id)
    if not r.ok:
        return r
    caja = r.value
    data = mapeo.caja_dict(caja, con_pagos=True)
    total_movil = a_decimal(caja.total_pagos_movil)
    total_zelle_bs = a_decimal(caja.total_zelle_bs)
    return Ok(
        {
            "caja": data,
            "pagos_movil": data.pop("pagos_movil"),
            "pagos_zelle": data.pop("pagos_zelle"),
            "creditos": data.pop("creditos"),
            "notas_credito": data.pop("notas_credito"),
            "cierre": mapeo.cierre_dict(caja.cierre),
            "totales": {
                "cantidad_pagos_movil": caja.cantidad_pagos_movil,
                "monto_total_movil": float(total_movil),
                "cantidad_zelle": caja.cantidad_zelle,
                "monto_total_zelle_usd": float(caja.total_zelle_usd or 0),
                "monto_total_zelle_bs": float(total_zelle_bs),
                "monto_total_general": float(total_movil + total_zelle_bs),
            },
        }
    )


def resumen_cajas(db: Session, company_id: str, dias: int = 7, hoy: Optional[date] = None) -> Result:
    hoy = hoy or date.today()
    desde = hoy - timedelta(days=dias)
    cajas = (
        db.query(Caja)
        .filter(Caja.company_id == company_id, Caja.fecha >= desde)
        .order_by(Caja.fecha.desc())
        .all()
    )

    def suma(attr) -> float:
        return float(sum((a_decimal(getattr(c, attr)) for c in cajas), Decimal("0")))

    return Ok(
        {
            "total_cajas": len(cajas),
            "cajas_abiertas": sum(1 for c in cajas if c.estado == ABIERTA),
            "total_pagos_movil": suma("total_pagos_movil"),
            "total_cantidad_pagos_movil": sum(c.cantidad_pagos_movil or 0 for c in cajas),
            "total_zelle_usd": suma("total_zelle_usd"),
            "total_zelle_bs": suma("total_zelle_bs"),
            "total_cantidad_zelle": sum(c.cantidad_zelle or 0 for c in cajas),
            "monto_total_general": suma("total_pagos_movil") + suma("total_zelle_bs"),
            "cajas_por_dia": [
                {
                    "fecha": c.fecha.isoformat(),
                    "estado": c.estado,
                    "user_id": c.user_id,
                    "total_pagos_movil": float(c.total_pagos_movil or 0),
                    "cantidad_pagos_movil": c.cantidad_pagos_movil,
                    "total_zelle_usd": float(c.total_zelle_usd or 0),
                    "total_zelle_bs": float(c.total_zelle_bs or 0),
                    "cantidad_zelle": c.cantidad_zelle,
                }
                for c in cajas
            ],
        }
    )


def listar_bancos(db: Session) -> Result:
    return Ok(db.query(Banco).order_by(Banco.nombre).all())
