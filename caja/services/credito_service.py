"""
Ventas a crédito: consulta, abonos parciales y estado de vencimiento.

Un crédito queda pagado cuando la suma de sus abonos alcanza su monto en Bs;
no se aceptan abonos que excedan el saldo pendiente.
"""
from __future__ import annotations

import math
from datetime import datetime, time, timedelta
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from caja.core.config import settings
from caja.core.result import NO_ENCONTRADO, VALIDACION, Err, Ok, Result
from caja.core.schemas import AbonoIn, CreditoUpdate, FiltrosCredito
from caja.models.cierre import Banco
from caja.models.pagos import PAGADO, PENDIENTE, AbonoCredito, CreditoCaja
from caja.services import mapeo
from caja.services.caja_service import commit_o_err
from caja.services.conciliacion import a_decimal, sumar

logger = structlog.get_logger(__name__)

CREDITO_NO_ENCONTRADO = "Crédito no encontrado"

VIGENTE = "Vigente"
VENCIDO = "Vencido"
POR_VENCER = "Por vencer"
ESTADO_PAGADO = "Pagado"

_FILTRO_VENCIMIENTO = {"vencido": VENCIDO, "por_vencer": POR_VENCER, "vigente": VIGENTE}


def saldo_pendiente(credito: CreditoCaja):
    return a_decimal(credito.monto_bs) - a_decimal(credito.monto_abonado)


def estado_vencimiento(credito: CreditoCaja, ahora: Optional[datetime] = None) -> str:
    if credito.estado == PAGADO:
        return ESTADO_PAGADO
    if credito.fecha_vencimiento is None:
        return VIGENTE
    ahora = ahora or datetime.utcnow()
    dias = math.floor((credito.fecha_vencimiento - ahora).total_seconds() / 86400)
    if dias < 0:
        return VENCIDO
    if dias <= settings.dias_por_vencer:
        return POR_VENCER
    return VIGENTE


def _credito_ui(credito: CreditoCaja, ahora: Optional[datetime] = None, con_abonos: bool = False) -> dict:
    return mapeo.credito_dict(
        credito,
        extra={"estado_vencimiento": estado_vencimiento(credito, ahora)},
        con_abonos=con_abonos,
    )


def listar_creditos(db: Session, filtros: Optional[FiltrosCredito] = None, ahora: Optional[datetime] = None) -> Result:
    filtros = filtros or FiltrosCredito()
    q = db.query(CreditoCaja)
    if filtros.company_id:
        q = q.filter(CreditoCaja.company_id == filtros.company_id)
    if filtros.fecha_desde:
        q = q.filter(CreditoCaja.fecha_hora >= datetime.combine(filtros.fecha_desde, time.min))
    if filtros.fecha_hasta:
        # fin del día inclusive
        q = q.filter(CreditoCaja.fecha_hora < datetime.combine(filtros.fecha_hasta, time.min) + timedelta(days=1))
    if filtros.estado != "todos":
        q = q.filter(CreditoCaja.estado == filtros.estado)
    if filtros.numero_factura:
        q = q.filter(CreditoCaja.numero_factura.contains(filtros.numero_factura))
    if filtros.nombre_cliente:
        q = q.filter(CreditoCaja.nombre_cliente.ilike(f"%{filtros.nombre_cliente}%"))

    creditos = [_credito_ui(c, ahora) for c in q.order_by(CreditoCaja.fecha_hora.desc()).all()]
    if filtros.estado_vencimiento != "todos":
        buscado = _FILTRO_VENCIMIENTO[filtros.estado_vencimiento]
        creditos = [c for c in creditos if c["estado_vencimiento"] == buscado]
    return Ok(creditos)


def obtener_credito(db: Session, credito_id: int, ahora: Optional[datetime] = None) -> Result:
    credito = db.get(CreditoCaja, credito_id)
    if credito is None:
        return Err(CREDITO_NO_ENCONTRADO, NO_ENCONTRADO)
    return Ok(_credito_ui(credito, ahora, con_abonos=True))


def actualizar_credito(db: Session, credito_id: int, cambios: CreditoUpdate) -> Result:
    credito = db.get(CreditoCaja, credito_id)
    if credito is None:
        return Err(CREDITO_NO_ENCONTRADO, NO_ENCONTRADO)
    if cambios.estado == PAGADO and saldo_pendiente(credito) > 0:
        return Err("El crédito tiene saldo pendiente. Debe registrar el pago completo.", VALIDACION)

    if cambios.estado is not None:
        credito.estado = cambios.estado
    if cambios.fecha_vencimiento is not None:
        credito.fecha_vencimiento = cambios.fecha_vencimiento
    if cambios.observaciones is not None:
        credito.observaciones = cambios.observaciones

    err = commit_o_err(db, "Error al actualizar el crédito", credito_id=credito_id)
    if err:
        return err
    db.refresh(credito)
    return Ok(_credito_ui(credito))


def registrar_abono(db: Session, credito_id: int, datos: AbonoIn) -> Result:
    credito = db.get(CreditoCaja, credito_id)
    if credito is None:
        return Err(CREDITO_NO_ENCONTRADO, NO_ENCONTRADO)
    if credito.estado == PAGADO:
        return Err("El crédito ya está pagado", VALIDACION)

    monto_bs = a_decimal(datos.monto_bs)
    if monto_bs <= 0:
        return Err("El monto del abono debe ser mayor a 0", VALIDACION)
    saldo = saldo_pendiente(credito)
    if monto_bs > saldo:
        return Err(f"El abono excede el saldo pendiente ({float(saldo):.2f} Bs)", VALIDACION)
    if datos.banco_id is not None and db.get(Banco, datos.banco_id) is None:
        return Err(f"Banco no encontrado: {datos.banco_id}", VALIDACION)

    tasa = a_decimal(datos.tasa)
    fecha_pago = datos.fecha_pago or datetime.utcnow()
    abono = AbonoCredito(
        credito_id=credito_id,
        monto_bs=monto_bs,
        monto_usd=monto_bs / tasa,
        tasa=tasa,
        metodo_pago=datos.metodo_pago,
        referencia=datos.referencia,
        banco_id=datos.banco_id,
        fecha_pago=fecha_pago,
        observaciones=datos.observaciones,
        user_id=datos.user_id,
        company_id=datos.company_id,
    )
    db.add(abono)
    credito.monto_abonado = a_decimal(credito.monto_abonado) + monto_bs
    credito.cantidad_abonos = (credito.cantidad_abonos or 0) + 1
    credito.fecha_ultimo_pago = fecha_pago
    if saldo - monto_bs <= 0:
        credito.estado = PAGADO

    err = commit_o_err(db, "Error al registrar el abono", credito_id=credito_id)
    if err:
        return err
    db.refresh(abono)
    logger.info(
        "abono_registrado",
        credito_id=credito_id,
        abono_id=abono.id,
        monto_bs=float(monto_bs),
        saldo=float(saldo - monto_bs),
    )
    return Ok(abono)


def marcar_como_pagado(db: Session, credito_id: int, observaciones: Optional[str] = None) -> Result:
    credito = db.get(CreditoCaja, credito_id)
    if credito is None:
        return Err(CREDITO_NO_ENCONTRADO, NO_ENCONTRADO)
    if saldo_pendiente(credito) > 0:
        return Err("El crédito tiene saldo pendiente. Debe registrar el pago completo.", VALIDACION)

    credito.estado = PAGADO
    if observaciones:
        credito.observaciones = observaciones
    err = commit_o_err(db, "Error al marcar el crédito como pagado", credito_id=credito_id)
    if err:
        return err
    db.refresh(credito)
    logger.info("credito_pagado", credito_id=credito_id)
    return Ok(_credito_ui(credito))


def resumen_creditos(db: Session, company_id: Optional[str] = None, ahora: Optional[datetime] = None) -> Result:
    ahora = ahora or datetime.utcnow()
    q = db.query(CreditoCaja)
    if company_id:
        q = q.filter(CreditoCaja.company_id == company_id)
    creditos = q.all()
    pendientes = [c for c in creditos if c.estado == PENDIENTE]

    return Ok(
        {
            "total_creditos": len(creditos),
            "creditos_pendientes": len(pendientes),
            "creditos_pagados": sum(1 for c in creditos if c.estado == PAGADO),
            "creditos_vencidos": sum(
                1 for c in pendientes if c.fecha_vencimiento is not None and c.fecha_vencimiento < ahora
            ),
            "monto_pendiente_total": float(sumar(saldo_pendiente(c) for c in pendientes)),
            "monto_abonado": float(sumar(c.monto_abonado for c in creditos)),
            "clientes_con_credito": len({(c.nombre_cliente.strip().lower(), c.telefono_cliente) for c in creditos}),
        }
    )


def estado_cuenta_cliente(db: Session, nombre_cliente: str, company_id: Optional[str] = None) -> Result:
    q = db.query(CreditoCaja).filter(CreditoCaja.nombre_cliente.ilike(nombre_cliente.strip()))
    if company_id:
        q = q.filter(CreditoCaja.company_id == company_id)
    creditos = q.order_by(CreditoCaja.fecha_hora.desc()).all()
    if not creditos:
        return Err("Cliente sin créditos registrados", NO_ENCONTRADO)

    pendientes = [c for c in creditos if c.estado == PENDIENTE]
    return Ok(
        {
            "cliente": {"nombre": creditos[0].nombre_cliente, "telefono": creditos[0].telefono_cliente},
            "creditos": [_credito_ui(c, con_abonos=True) for c in creditos],
            "totales": {
                "total_creditos": len(creditos),
                "creditos_pendientes": len(pendientes),
                "monto_pendiente": float(sumar(saldo_pendiente(c) for c in pendientes)),
                "monto_abonado": float(sumar(c.monto_abonado for c in creditos)),
            },
        }
    )
