from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from caja.core.schemas import FiltrosCierres
from caja.db import get_db
from caja.routers.common import get_proveedor_tasas, unwrap
from caja.services import caja_service, cierres_service
from caja.services.conciliacion import ProveedorTasas

router = APIRouter(tags=["cierres"])


@router.get("/cierres")
def listar_cierres(
    fecha_desde: Optional[date] = None,
    fecha_hasta: Optional[date] = None,
    user_id: Optional[str] = None,
    company_id: Optional[str] = None,
    con_discrepancias: bool = False,
    monto_min: Optional[float] = None,
    monto_max: Optional[float] = None,
    db: Session = Depends(get_db),
    tasas: ProveedorTasas = Depends(get_proveedor_tasas),
):
    filtros = FiltrosCierres(
        fecha_desde=fecha_desde,
        fecha_hasta=fecha_hasta,
        user_id=user_id,
        company_id=company_id,
        con_discrepancias=con_discrepancias,
        monto_min=monto_min,
        monto_max=monto_max,
    )
    items = unwrap(cierres_service.listar_cierres(db, filtros, tasas))
    return {"items": items, "total": len(items)}


@router.get("/cierres/resumen")
def resumen_cierres(
    company_id: Optional[str] = None,
    dias: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    tasas: ProveedorTasas = Depends(get_proveedor_tasas),
):
    return unwrap(cierres_service.resumen_cierres(db, company_id, dias, tasas=tasas))


@router.get("/cierres/alertas")
def alertas(
    company_id: Optional[str] = None,
    umbral: Optional[float] = Query(None, gt=0),
    db: Session = Depends(get_db),
    tasas: ProveedorTasas = Depends(get_proveedor_tasas),
):
    items = unwrap(cierres_service.alertas_discrepancias(db, company_id, umbral, tasas))
    return {"items": items, "total": len(items)}


@router.get("/cierres/comparar")
def comparar(
    caja1: int,
    caja2: int,
    db: Session = Depends(get_db),
    tasas: ProveedorTasas = Depends(get_proveedor_tasas),
):
    return unwrap(cierres_service.comparar_cierres(db, caja1, caja2, tasas))


@router.get("/cierres/{caja_id}")
def detalle_cierre(caja_id: int, db: Session = Depends(get_db), tasas: ProveedorTasas = Depends(get_proveedor_tasas)):
    return unwrap(cierres_service.obtener_cierre(db, caja_id, tasas))


@router.get("/bancos")
def listar_bancos(db: Session = Depends(get_db)):
    bancos = unwrap(caja_service.listar_bancos(db))
    return [{"id": b.id, "nombre": b.nombre, "codigo": b.codigo} for b in bancos]
