from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from caja.core.schemas import (
    AbrirCajaIn,
    CierreCajaIn,
    CreditoCajaIn,
    FiltrosCaja,
    NotaCreditoCajaIn,
    PagoMovilIn,
    PagoMovilUpdate,
    PagoZelleIn,
    PagoZelleUpdate,
    TasaIn,
)
from caja.db import get_db
from caja.routers.common import get_proveedor_tasas, unwrap
from caja.services import caja_service, mapeo, pagos_service
from caja.services.conciliacion import ProveedorTasas, esta_cuadrado

router = APIRouter(prefix="/cajas", tags=["cajas"])


# ---------- APERTURA / CONSULTAS ----------
@router.post("/abrir")
def abrir_caja(payload: AbrirCajaIn, db: Session = Depends(get_db)):
    caja = unwrap(caja_service.abrir_caja(db, payload))
    return mapeo.caja_dict(caja)


@router.get("/actual")
def caja_actual(user_id: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    caja = unwrap(caja_service.verificar_caja_abierta(db, user_id))
    return {"caja": mapeo.caja_dict(caja, con_pagos=True) if caja else None}


@router.get("/resumen")
def resumen_cajas(
    company_id: str = Query(..., min_length=1),
    dias: int = Query(7, ge=1, le=365),
    db: Session = Depends(get_db),
):
    return unwrap(caja_service.resumen_cajas(db, company_id, dias))


@router.get("")
def listar_cajas(
    company_id: str = Query(..., min_length=1),
    fecha_desde: Optional[date] = None,
    fecha_hasta: Optional[date] = None,
    user_id: Optional[str] = None,
    estado: Literal["abierta", "cerrada", "todas"] = "todas",
    db: Session = Depends(get_db),
):
    filtros = FiltrosCaja(fecha_desde=fecha_desde, fecha_hasta=fecha_hasta, user_id=user_id, estado=estado)
    cajas = unwrap(caja_service.listar_cajas(db, company_id, filtros))
    return {"items": [mapeo.caja_dict(c) for c in cajas], "total": len(cajas)}


@router.get("/{caja_id}")
def obtener_caja(caja_id: int, db: Session = Depends(get_db)):
    caja = unwrap(caja_service.obtener_caja(db, caja_id))
    return mapeo.caja_dict(caja, con_pagos=True)


@router.get("/{caja_id}/reporte")
def reporte_caja(caja_id: int, db: Session = Depends(get_db)):
    return unwrap(caja_service.generar_reporte(db, caja_id))


@router.put("/{caja_id}/tasa")
def actualizar_tasa(caja_id: int, payload: TasaIn, db: Session = Depends(get_db)):
    caja = unwrap(caja_service.actualizar_tasa_dia(db, caja_id, payload.tasa_dia))
    return mapeo.caja_dict(caja)


# ---------- CIERRE ----------
@router.post("/{caja_id}/cierre/preview")
def previsualizar_cierre(
    caja_id: int,
    payload: CierreCajaIn,
    db: Session = Depends(get_db),
    tasas: ProveedorTasas = Depends(get_proveedor_tasas),
):
    resultado = unwrap(caja_service.previsualizar_cierre(db, caja_id, payload, tasas))
    return {
        "caja_id": caja_id,
        "resultado": resultado.as_dict(),
        "cuadrado": esta_cuadrado(resultado.diferencia),
    }


@router.post("/{caja_id}/cerrar")
def cerrar_caja(
    caja_id: int,
    payload: CierreCajaIn,
    db: Session = Depends(get_db),
    tasas: ProveedorTasas = Depends(get_proveedor_tasas),
):
    return unwrap(caja_service.cerrar_caja(db, caja_id, payload, tasas))


# ---------- PAGO MÓVIL ----------
@router.post("/{caja_id}/pagos-movil")
def agregar_pago_movil(caja_id: int, payload: PagoMovilIn, db: Session = Depends(get_db)):
    pago = unwrap(pagos_service.agregar_pago_movil(db, caja_id, payload))
    return mapeo.pago_movil_dict(pago)


@router.put("/{caja_id}/pagos-movil/{pago_id}")
def actualizar_pago_movil(caja_id: int, pago_id: int, payload: PagoMovilUpdate, db: Session = Depends(get_db)):
    pago = unwrap(pagos_service.actualizar_pago_movil(db, caja_id, pago_id, payload))
    return mapeo.pago_movil_dict(pago)


@router.delete("/{caja_id}/pagos-movil/{pago_id}")
def eliminar_pago_movil(caja_id: int, pago_id: int, db: Session = Depends(get_db)):
    unwrap(pagos_service.eliminar_pago_movil(db, caja_id, pago_id))
    return {"ok": True, "id": pago_id}


# ---------- ZELLE ----------
@router.post("/{caja_id}/pagos-zelle")
def agregar_pago_zelle(caja_id: int, payload: PagoZelleIn, db: Session = Depends(get_db)):
    pago = unwrap(pagos_service.agregar_pago_zelle(db, caja_id, payload))
    return mapeo.pago_zelle_dict(pago)


@router.put("/{caja_id}/pagos-zelle/{pago_id}")
def actualizar_pago_zelle(caja_id: int, pago_id: int, payload: PagoZelleUpdate, db: Session = Depends(get_db)):
    pago = unwrap(pagos_service.actualizar_pago_zelle(db, caja_id, pago_id, payload))
    return mapeo.pago_zelle_dict(pago)


@router.delete("/{caja_id}/pagos-zelle/{pago_id}")
def eliminar_pago_zelle(caja_id: int, pago_id: int, db: Session = Depends(get_db)):
    unwrap(pagos_service.eliminar_pago_zelle(db, caja_id, pago_id))
    return {"ok": True, "id": pago_id}


# ---------- CRÉDITOS / NOTAS DE CRÉDITO ----------
@router.post("/{caja_id}/creditos")
def agregar_credito(caja_id: int, payload: CreditoCajaIn, db: Session = Depends(get_db)):
    credito = unwrap(pagos_service.agregar_credito(db, caja_id, payload))
    return mapeo.credito_dict(credito)


@router.delete("/{caja_id}/creditos/{credito_id}")
def eliminar_credito(caja_id: int, credito_id: int, db: Session = Depends(get_db)):
    unwrap(pagos_service.eliminar_credito(db, caja_id, credito_id))
    return {"ok": True, "id": credito_id}


@router.post("/{caja_id}/notas-credito")
def agregar_nota_credito(caja_id: int, payload: NotaCreditoCajaIn, db: Session = Depends(get_db)):
    nota = unwrap(pagos_service.agregar_nota_credito(db, caja_id, payload))
    return mapeo.nota_credito_dict(nota)


@router.delete("/{caja_id}/notas-credito/{nota_id}")
def eliminar_nota_credito(caja_id: int, nota_id: int, db: Session = Depends(get_db)):
    unwrap(pagos_service.eliminar_nota_credito(db, caja_id, nota_id))
    return {"ok": True, "id": nota_id}
