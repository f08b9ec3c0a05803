"""
Pagos por canal registrados durante la caja abierta: pago móvil, Zelle,
créditos y notas de crédito. Cada alta/modificación/baja ajusta los totales
acumulados de la caja en la misma transacción que el pago.
"""
from __future__ import annotations

import re
from datetime import datetime

import structlog
from sqlalchemy.orm import Session

from caja.core.result import CAJA_CERRADA, NO_ENCONTRADO, VALIDACION, Err, Ok, Result
from caja.core.schemas import (
    CreditoCajaIn,
    NotaCreditoCajaIn,
    PagoMovilIn,
    PagoMovilUpdate,
    PagoZelleIn,
    PagoZelleUpdate,
)
from caja.models.caja import Caja
from caja.models.pagos import PENDIENTE, CreditoCaja, NotaCreditoCaja, PagoMovil, PagoZelle
from caja.services.caja_service import CAJA_NO_ENCONTRADA, CAJA_YA_CERRADA, caja_abierta_o_err, commit_o_err
from caja.services.conciliacion import a_decimal, sumar

logger = structlog.get_logger(__name__)

_SOLO_NUMEROS = re.compile(r"^\d+$")
REFERENCIA_INVALIDA = "El número de referencia debe contener solo números"
PAGO_NO_ENCONTRADO = "Pago no encontrado"


def _pago_en_caja_abierta(db: Session, modelo, caja_id: int, pago_id: int) -> Result:
    pago = db.get(modelo, pago_id)
    if pago is None or pago.caja_id != caja_id:
        return Err(PAGO_NO_ENCONTRADO, NO_ENCONTRADO)
    if not pago.caja.abierta:
        return Err(CAJA_YA_CERRADA, CAJA_CERRADA)
    return Ok(pago)


# ---------- PAGO MÓVIL ----------
def agregar_pago_movil(db: Session, caja_id: int, datos: PagoMovilIn) -> Result:
    r = caja_abierta_o_err(db, caja_id)
    if not r.ok:
        return r
    caja = r.value
    if not _SOLO_NUMEROS.match(datos.numero_referencia):
        return Err(REFERENCIA_INVALIDA, VALIDACION)

    monto = a_decimal(datos.monto)
    pago = PagoMovil(
        caja_id=caja_id,
        monto=monto,
        nombre_cliente=datos.nombre_cliente,
        telefono=datos.telefono,
        numero_referencia=datos.numero_referencia,
        fecha_hora=datetime.utcnow(),
        user_id=datos.user_id,
        company_id=datos.company_id,
    )
    db.add(pago)
    caja.total_pagos_movil = a_decimal(caja.total_pagos_movil) + monto
    caja.cantidad_pagos_movil = (caja.cantidad_pagos_movil or 0) + 1

    err = commit_o_err(db, "Error al registrar el pago móvil", caja_id=caja_id)
    if err:
        return err
    db.refresh(pago)
    logger.info("pago_registrado", canal="pago_movil", caja_id=caja_id, pago_id=pago.id, monto=float(monto))
    return Ok(pago)


def actualizar_pago_movil(db: Session, caja_id: int, pago_id: int, cambios: PagoMovilUpdate) -> Result:
    r = _pago_en_caja_abierta(db, PagoMovil, caja_id, pago_id)
    if not r.ok:
        return r
    pago = r.value
    if cambios.numero_referencia is not None and not _SOLO_NUMEROS.match(cambios.numero_referencia):
        return Err(REFERENCIA_INVALIDA, VALIDACION)

    if cambios.monto is not None:
        nuevo = a_decimal(cambios.monto)
        diferencia = nuevo - a_decimal(pago.monto)
        if diferencia:
            pago.caja.total_pagos_movil = a_decimal(pago.caja.total_pagos_movil) + diferencia
        pago.monto = nuevo
    if cambios.nombre_cliente is not None:
        pago.nombre_cliente = cambios.nombre_cliente
    if cambios.telefono is not None:
        pago.telefono = cambios.telefono
    if cambios.numero_referencia is not None:
        pago.numero_referencia = cambios.numero_referencia

    err = commit_o_err(db, "Error al actualizar el pago móvil", pago_id=pago_id)
    if err:
        return err
    db.refresh(pago)
    return Ok(pago)


def eliminar_pago_movil(db: Session, caja_id: int, pago_id: int) -> Result:
    r = _pago_en_caja_abierta(db, PagoMovil, caja_id, pago_id)
    if not r.ok:
        return r
    pago = r.value
    caja = pago.caja
    caja.total_pagos_movil = a_decimal(caja.total_pagos_movil) - a_decimal(pago.monto)
    caja.cantidad_pagos_movil = (caja.cantidad_pagos_movil or 0) - 1
    db.delete(pago)

    err = commit_o_err(db, "Error al eliminar el pago móvil", pago_id=pago_id)
    if err:
        return err
    logger.info("pago_eliminado", canal="pago_movil", caja_id=caja_id, pago_id=pago_id)
    return Ok(None)


# ---------- ZELLE ----------
def agregar_pago_zelle(db: Session, caja_id: int, datos: PagoZelleIn) -> Result:
    r = caja_abierta_o_err(db, caja_id)
    if not r.ok:
        return r
    caja = r.value

    monto_usd = a_decimal(datos.monto_usd)
    tasa = a_decimal(datos.tasa if datos.tasa is not None else caja.tasa_dia)
    if tasa <= 0:
        return Err("La tasa debe ser mayor a 0", VALIDACION)
    monto_bs = monto_usd * tasa

    pago = PagoZelle(
        caja_id=caja_id,
        monto_usd=monto_usd,
        tasa=tasa,
        monto_bs=monto_bs,
        nombre_cliente=datos.nombre_cliente,
        telefono=datos.telefono,
        fecha_hora=datetime.utcnow(),
        user_id=datos.user_id,
        company_id=datos.company_id,
    )
    db.add(pago)
    caja.total_zelle_usd = a_decimal(caja.total_zelle_usd) + monto_usd
    caja.total_zelle_bs = a_decimal(caja.total_zelle_bs) + monto_bs
    caja.cantidad_zelle = (caja.cantidad_zelle or 0) + 1

    err = commit_o_err(db, "Error al registrar el pago Zelle", caja_id=caja_id)
    if err:
        return err
    db.refresh(pago)
    logger.info(
        "pago_registrado", canal="zelle", caja_id=caja_id, pago_id=pago.id,
        monto_usd=float(monto_usd), monto_bs=float(monto_bs),
    )
    return Ok(pago)


def actualizar_pago_zelle(db: Session, caja_id: int, pago_id: int, cambios: PagoZelleUpdate) -> Result:
    r = _pago_en_caja_abierta(db, PagoZelle, caja_id, pago_id)
    if not r.ok:
        return r
    pago = r.value

    if cambios.monto_usd is not None or cambios.tasa is not None:
        anterior_usd = a_decimal(pago.monto_usd)
        anterior_bs = a_decimal(pago.monto_bs)
        monto_usd = a_decimal(cambios.monto_usd) if cambios.monto_usd is not None else anterior_usd
        tasa = a_decimal(cambios.tasa) if cambios.tasa is not None else a_decimal(pago.tasa)
        monto_bs = monto_usd * tasa

        caja = pago.caja
        caja.total_zelle_usd = a_decimal(caja.total_zelle_usd) + (monto_usd - anterior_usd)
        caja.total_zelle_bs = a_decimal(caja.total_zelle_bs) + (monto_bs - anterior_bs)
        pago.monto_usd = monto_usd
        pago.tasa = tasa
        pago.monto_bs = monto_bs
    if cambios.nombre_cliente is not None:
        pago.nombre_cliente = cambios.nombre_cliente
    if cambios.telefono is not None:
        pago.telefono = cambios.telefono

    err = commit_o_err(db, "Error al actualizar el pago Zelle", pago_id=pago_id)
    if err:
        return err
    db.refresh(pago)
    return Ok(pago)


def eliminar_pago_zelle(db: Session, caja_id: int, pago_id: int) -> Result:
    r = _pago_en_caja_abierta(db, PagoZelle, caja_id, pago_id)
    if not r.ok:
        return r
    pago = r.value
    caja = pago.caja
    caja.total_zelle_usd = a_decimal(caja.total_zelle_usd) - a_decimal(pago.monto_usd)
    caja.total_zelle_bs = a_decimal(caja.total_zelle_bs) - a_decimal(pago.monto_bs)
    caja.cantidad_zelle = (caja.cantidad_zelle or 0) - 1
    db.delete(pago)

    err = commit_o_err(db, "Error al eliminar el pago Zelle", pago_id=pago_id)
    if err:
        return err
    logger.info("pago_eliminado", canal="zelle", caja_id=caja_id, pago_id=pago_id)
    return Ok(None)


# ---------- CRÉDITOS ----------
def agregar_credito(db: Session, caja_id: int, datos: CreditoCajaIn) -> Result:
    r = caja_abierta_o_err(db, caja_id)
    if not r.ok:
        return r
    caja = r.value

    tasa = a_decimal(caja.tasa_dia)
    monto_bs = a_decimal(datos.monto_bs)
    monto_usd = monto_bs / tasa
    credito = CreditoCaja(
        caja_id=caja_id,
        numero_factura=datos.numero_factura,
        nombre_cliente=datos.nombre_cliente,
        telefono_cliente=datos.telefono_cliente,
        monto_bs=monto_bs,
        monto_usd=monto_usd,
        tasa=tasa,
        estado=PENDIENTE,
        fecha_hora=datetime.utcnow(),
        fecha_vencimiento=datos.fecha_vencimiento,
        observaciones=datos.observaciones,
        user_id=datos.user_id,
        company_id=datos.company_id,
    )
    db.add(credito)
    caja.total_creditos_bs = a_decimal(caja.total_creditos_bs) + monto_bs
    caja.total_creditos_usd = a_decimal(caja.total_creditos_usd) + monto_usd
    caja.cantidad_creditos = (caja.cantidad_creditos or 0) + 1

    err = commit_o_err(db, "Error al registrar el crédito", caja_id=caja_id)
    if err:
        return err
    db.refresh(credito)
    logger.info("pago_registrado", canal="credito", caja_id=caja_id, credito_id=credito.id, monto_bs=float(monto_bs))
    return Ok(credito)


def eliminar_credito(db: Session, caja_id: int, credito_id: int) -> Result:
    r = _pago_en_caja_abierta(db, CreditoCaja, caja_id, credito_id)
    if not r.ok:
        return r
    credito = r.value
    if credito.abonos:
        return Err("El crédito tiene abonos registrados", VALIDACION)
    caja = credito.caja
    caja.total_creditos_bs = a_decimal(caja.total_creditos_bs) - a_decimal(credito.monto_bs)
    caja.total_creditos_usd = a_decimal(caja.total_creditos_usd) - a_decimal(credito.monto_usd)
    caja.cantidad_creditos = (caja.cantidad_creditos or 0) - 1
    db.delete(credito)

    err = commit_o_err(db, "Error al eliminar el crédito", credito_id=credito_id)
    if err:
        return err
    logger.info("pago_eliminado", canal="credito", caja_id=caja_id, credito_id=credito_id)
    return Ok(None)


# ---------- NOTAS DE CRÉDITO ----------
def agregar_nota_credito(db: Session, caja_id: int, datos: NotaCreditoCajaIn) -> Result:
    r = caja_abierta_o_err(db, caja_id)
    if not r.ok:
        return r
    caja = r.value

    monto_bs = a_decimal(datos.monto_bs)
    nota = NotaCreditoCaja(
        caja_id=caja_id,
        numero_nota_credito=datos.numero_nota_credito,
        factura_afectada=datos.factura_afectada,
        monto_bs=monto_bs,
        nombre_cliente=datos.nombre_cliente,
        explicacion=datos.explicacion,
        fecha_hora=datetime.utcnow(),
        user_id=datos.user_id,
        company_id=datos.company_id,
    )
    db.add(nota)
    caja.total_notas_credito = a_decimal(caja.total_notas_credito) + monto_bs
    caja.cantidad_notas_credito = (caja.cantidad_notas_credito or 0) + 1

    err = commit_o_err(db, "Error al registrar la nota de crédito", caja_id=caja_id)
    if err:
        return err
    db.refresh(nota)
    logger.info("pago_registrado", canal="nota_credito", caja_id=caja_id, nota_id=nota.id, monto_bs=float(monto_bs))
    return Ok(nota)


def eliminar_nota_credito(db: Session, caja_id: int, nota_id: int) -> Result:
    r = _pago_en_caja_abierta(db, NotaCreditoCaja, caja_id, nota_id)
    if not r.ok:
        return r
    nota = r.value
    caja = nota.caja
    caja.total_notas_credito = a_decimal(caja.total_notas_credito) - a_decimal(nota.monto_bs)
    caja.cantidad_notas_credito = (caja.cantidad_notas_credito or 0) - 1
    db.delete(nota)

    err = commit_o_err(db, "Error al eliminar la nota de crédito", nota_id=nota_id)
    if err:
        return err
    logger.info("pago_eliminado", canal="nota_credito", caja_id=caja_id, nota_id=nota_id)
    return Ok(None)


# ---------- MANTENIMIENTO ----------
def recalcular_totales(db: Session, caja_id: int) -> Result:
    """Reconstruye los totales acumulados de la caja a partir de sus pagos."""
    caja = db.get(Caja, caja_id)
    if caja is None:
        return Err(CAJA_NO_ENCONTRADA, NO_ENCONTRADO)

    caja.total_pagos_movil = sumar(p.monto for p in caja.pagos_movil)
    caja.cantidad_pagos_movil = len(caja.pagos_movil)
    caja.total_zelle_usd = sumar(p.monto_usd for p in caja.pagos_zelle)
    caja.total_zelle_bs = sumar(p.monto_bs for p in caja.pagos_zelle)
    caja.cantidad_zelle = len(caja.pagos_zelle)
    caja.total_creditos_bs = sumar(c.monto_bs for c in caja.creditos)
    caja.total_creditos_usd = sumar(c.monto_usd for c in caja.creditos)
    caja.cantidad_creditos = len(caja.creditos)
    caja.total_notas_credito = sumar(n.monto_bs for n in caja.notas_credito)
    caja.cantidad_notas_credito = len(caja.notas_credito)

    err = commit_o_err(db, "Error al recalcular los totales", caja_id=caja_id)
    if err:
        return err
    db.refresh(caja)
    logger.info("totales_recalculados", caja_id=caja_id)
    return Ok(caja)
