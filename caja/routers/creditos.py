from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from caja.core.schemas import AbonoIn, CreditoUpdate, FiltrosCredito, MarcarPagadoIn
from caja.db import get_db
from caja.routers.common import unwrap
from caja.services import credito_service, mapeo

router = APIRouter(prefix="/creditos", tags=["creditos"])


@router.get("")
def listar_creditos(
    company_id: Optional[str] = None,
    fecha_desde: Optional[date] = None,
    fecha_hasta: Optional[date] = None,
    estado: Literal["pendiente", "pagado", "todos"] = "todos",
    numero_factura: Optional[str] = None,
    nombre_cliente: Optional[str] = None,
    estado_vencimiento: Literal["vencido", "por_vencer", "vigente", "todos"] = "todos",
    db: Session = Depends(get_db),
):
    filtros = FiltrosCredito(
        company_id=company_id,
        fecha_desde=fecha_desde,
        fecha_hasta=fecha_hasta,
        estado=estado,
        numero_factura=numero_factura,
        nombre_cliente=nombre_cliente,
        estado_vencimiento=estado_vencimiento,
    )
    items = unwrap(credito_service.listar_creditos(db, filtros))
    return {"items": items, "total": len(items)}


@router.get("/resumen")
def resumen_creditos(company_id: Optional[str] = None, db: Session = Depends(get_db)):
    return unwrap(credito_service.resumen_creditos(db, company_id))


@router.get("/estado-cuenta")
def estado_cuenta(
    nombre_cliente: str = Query(..., min_length=1),
    company_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return unwrap(credito_service.estado_cuenta_cliente(db, nombre_cliente, company_id))


@router.get("/{credito_id}")
def obtener_credito(credito_id: int, db: Session = Depends(get_db)):
    return unwrap(credito_service.obtener_credito(db, credito_id))


@router.patch("/{credito_id}")
def actualizar_credito(credito_id: int, payload: CreditoUpdate, db: Session = Depends(get_db)):
    return unwrap(credito_service.actualizar_credito(db, credito_id, payload))


@router.post("/{credito_id}/abonos")
def registrar_abono(credito_id: int, payload: AbonoIn, db: Session = Depends(get_db)):
    abono = unwrap(credito_service.registrar_abono(db, credito_id, payload))
    credito = unwrap(credito_service.obtener_credito(db, credito_id))
    return {"abono": mapeo.abono_dict(abono), "credito": credito}


@router.post("/{credito_id}/pagado")
def marcar_pagado(credito_id: int, payload: Optional[MarcarPagadoIn] = None, db: Session = Depends(get_db)):
    observaciones = payload.observaciones if payload else None
    return unwrap(credito_service.marcar_como_pagado(db, credito_id, observaciones))
