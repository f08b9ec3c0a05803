"""
Reportes sobre cajas cerradas: detalle de cada cierre, filtros, resumen
estadístico, comparación entre dos cierres y alertas de discrepancia.

El resumen de cada cierre separa lo que registró el sistema por canal
(total_sistemico) de lo que el cajero contó (efectivo + punto de venta):

    discrepancia_total      = total_sistemico - (efectivo contado + punto de venta)
    discrepancia_reporte_z  = total_sistemico - reporte_z   (0 sin Reporte Z)
"""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session, selectinload

from caja.core.config import settings
from caja.core.result import NO_ENCONTRADO, Err, Ok, Result
from caja.core.schemas import FiltrosCierres
from caja.models.caja import CERRADA, Caja
from caja.services import mapeo
from caja.services.conciliacion import (
    CERO,
    ConteoCierre,
    ProveedorTasas,
    TasaCruzadaFija,
    TotalesSistema,
    a_decimal,
    efectivo_en_bs,
    sumar,
)

logger = structlog.get_logger(__name__)

_ORDEN_SEVERIDAD = {"alta": 3, "media": 2, "baja": 1}


def _resumen(caja: Caja, tasas: ProveedorTasas) -> dict:
    cierre = caja.cierre
    if cierre is not None:
        conteo = ConteoCierre(
            efectivo_dolares=a_decimal(cierre.efectivo_dolares),
            efectivo_euros=a_decimal(cierre.efectivo_euros),
            efectivo_bs=a_decimal(cierre.efectivo_bs),
        )
        efectivo = efectivo_en_bs(conteo, a_decimal(caja.tasa_dia), tasas)
        reporte_z = a_decimal(cierre.reporte_z)
    else:
        efectivo = CERO
        reporte_z = CERO

    punto_venta = sumar(pv.monto_bs for pv in caja.cierres_punto_venta)
    sistemico = TotalesSistema.desde_caja(caja).total
    return {
        "total_efectivo_contado": efectivo,
        "total_punto_venta": punto_venta,
        "total_sistemico": sistemico,
        "discrepancia_reporte_z": sistemico - reporte_z if reporte_z else CERO,
        "discrepancia_total": sistemico - (efectivo + punto_venta),
        "diferencia": a_decimal(cierre.diferencia) if cierre is not None else None,
    }


def detalle_cierre(caja: Caja, tasas: Optional[ProveedorTasas] = None) -> dict:
    resumen = _resumen(caja, tasas or TasaCruzadaFija())
    return {
        "caja": mapeo.caja_dict(caja),
        "detalles_efectivo": mapeo.cierre_dict(caja.cierre),
        "detalles_punto_venta": [mapeo.punto_venta_dict(pv) for pv in caja.cierres_punto_venta],
        "resumen": {k: (float(v) if v is not None else None) for k, v in resumen.items()},
    }


def _cierres_detallados(
    db: Session, filtros: Optional[FiltrosCierres] = None, tasas: Optional[ProveedorTasas] = None
) -> List[dict]:
    filtros = filtros or FiltrosCierres()
    tasas = tasas or TasaCruzadaFija()
    q = (
        db.query(Caja)
        .options(selectinload(Caja.cierre), selectinload(Caja.cierres_punto_venta))
        .filter(Caja.estado == CERRADA)
    )
    if filtros.fecha_desde:
        q = q.filter(Caja.fecha >= filtros.fecha_desde)
    if filtros.fecha_hasta:
        q = q.filter(Caja.fecha <= filtros.fecha_hasta)
    if filtros.user_id:
        q = q.filter(Caja.user_id == filtros.user_id)
    if filtros.company_id:
        q = q.filter(Caja.company_id == filtros.company_id)

    umbral = a_decimal(settings.umbral_cuadre)
    salida = []
    for caja in q.order_by(Caja.fecha.desc(), Caja.hora_cierre.desc()).all():
        detalle = detalle_cierre(caja, tasas)
        resumen = detalle["resumen"]
        if filtros.con_discrepancias and abs(a_decimal(resumen["discrepancia_total"])) < umbral:
            continue
        if filtros.monto_min is not None and resumen["total_sistemico"] < filtros.monto_min:
            continue
        if filtros.monto_max is not None and resumen["total_sistemico"] > filtros.monto_max:
            continue
        salida.append(detalle)
    return salida


def listar_cierres(
    db: Session, filtros: Optional[FiltrosCierres] = None, tasas: Optional[ProveedorTasas] = None
) -> Result:
    return Ok(_cierres_detallados(db, filtros, tasas))


def obtener_cierre(db: Session, caja_id: int, tasas: Optional[ProveedorTasas] = None) -> Result:
    caja = db.get(Caja, caja_id)
    if caja is None or caja.estado != CERRADA:
        return Err("Cierre no encontrado", NO_ENCONTRADO)
    return Ok(detalle_cierre(caja, tasas))


def resumen_cierres(
    db: Session,
    company_id: Optional[str] = None,
    dias: int = 30,
    hoy: Optional[date] = None,
    tasas: Optional[ProveedorTasas] = None,
) -> Result:
    hoy = hoy or date.today()
    filtros = FiltrosCierres(fecha_desde=hoy - timedelta(days=dias), fecha_hasta=hoy, company_id=company_id)
    cierres = _cierres_detallados(db, filtros, tasas)
    umbral = settings.umbral_cuadre

    total = len(cierres)
    discrepancias = [abs(c["resumen"]["discrepancia_total"]) for c in cierres]

    por_usuario = {}
    for c in cierres:
        user_id = c["caja"]["user_id"]
        stats = por_usuario.setdefault(
            user_id,
            {"user_id": user_id, "cantidad_cierres": 0, "total_discrepancias": 0.0},
        )
        stats["cantidad_cierres"] += 1
        stats["total_discrepancias"] += abs(c["resumen"]["discrepancia_total"])
    for stats in por_usuario.values():
        stats["promedio_discrepancia"] = stats["total_discrepancias"] / stats["cantidad_cierres"]
    usuarios = sorted(por_usuario.values(), key=lambda s: s["cantidad_cierres"], reverse=True)[:5]

    return Ok(
        {
            "total_cierres": total,
            "cierres_con_discrepancias": sum(1 for d in discrepancias if d >= umbral),
            "promedio_discrepancia": sum(discrepancias) / total if total else 0.0,
            "total_efectivo_contado": sum(c["resumen"]["total_efectivo_contado"] for c in cierres),
            "total_sistemico": sum(c["resumen"]["total_sistemico"] for c in cierres),
            "total_punto_venta": sum(c["resumen"]["total_punto_venta"] for c in cierres),
            "monto_total_cierres": sum(c["caja"]["monto_cierre"] or 0 for c in cierres),
            "usuarios_mas_activos": usuarios,
        }
    )


def comparar_cierres(
    db: Session, caja_id_1: int, caja_id_2: int, tasas: Optional[ProveedorTasas] = None
) -> Result:
    r1 = obtener_cierre(db, caja_id_1, tasas)
    r2 = obtener_cierre(db, caja_id_2, tasas)
    if not r1.ok or not r2.ok:
        return Err("Uno o ambos cierres no encontrados", NO_ENCONTRADO)
    c1, c2 = r1.value["resumen"], r2.value["resumen"]

    def dif(campo: str) -> float:
        return float(Decimal(str(c1[campo])) - Decimal(str(c2[campo])))

    return Ok(
        {
            "cierre1": r1.value,
            "cierre2": r2.value,
            "comparacion": {
                "diferencia_sistemico": dif("total_sistemico"),
                "diferencia_efectivo": dif("total_efectivo_contado"),
                "diferencia_punto_venta": dif("total_punto_venta"),
                "diferencia_discrepancia": dif("discrepancia_total"),
                "mejor_precision": (
                    "cierre1"
                    if abs(c1["discrepancia_total"]) < abs(c2["discrepancia_total"])
                    else "cierre2"
                ),
            },
        }
    )


def alertas_discrepancias(
    db: Session,
    company_id: Optional[str] = None,
    umbral: Optional[float] = None,
    tasas: Optional[ProveedorTasas] = None,
) -> Result:
    umbral = settings.umbral_alerta if umbral is None else umbral
    alertas = []
    for cierre in _cierres_detallados(db, FiltrosCierres(company_id=company_id), tasas):
        resumen = cierre["resumen"]
        total = resumen["discrepancia_total"]
        if abs(total) > umbral:
            alertas.append(
                {
                    "cierre": cierre,
                    "tipo_alerta": "discrepancia_alta",
                    "severidad": "alta" if abs(total) > umbral * 2 else "media",
                    "mensaje": f"Discrepancia de Bs {total:.2f} entre sistema y conteo",
                }
            )
        z = resumen["discrepancia_reporte_z"]
        if abs(z) > umbral:
            alertas.append(
                {
                    "cierre": cierre,
                    "tipo_alerta": "discrepancia_reporte_z",
                    "severidad": "media",
                    "mensaje": f"Discrepancia de Bs {z:.2f} entre sistema y Reporte Z",
                }
            )
        if cierre["detalles_efectivo"] is None:
            alertas.append(
                {
                    "cierre": cierre,
                    "tipo_alerta": "sin_detalles",
                    "severidad": "baja",
                    "mensaje": "Cierre sin detalles de efectivo registrados",
                }
            )

    alertas.sort(key=lambda a: _ORDEN_SEVERIDAD[a["severidad"]], reverse=True)
    if alertas:
        logger.info("alertas_discrepancias", cantidad=len(alertas), umbral=umbral)
    return Ok(alertas)
