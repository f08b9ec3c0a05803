from typing import Any, Dict, Optional


def _f(v) -> float:
    return float(v or 0)


def _iso(v) -> Optional[str]:
    return v.isoformat() if v is not None else None


def caja_dict(c, con_pagos: bool = False) -> Dict[str, Any]:
    d = {
        "id": c.id,
        "user_id": c.user_id,
        "company_id": c.company_id,
        "fecha": _iso(c.fecha),
        "hora_apertura": _iso(c.hora_apertura),
        "hora_cierre": _iso(c.hora_cierre),
        "estado": c.estado,
        "observaciones": c.observaciones,
        "monto_apertura": _f(c.monto_apertura),
        "monto_apertura_usd": _f(c.monto_apertura_usd),
        "monto_cierre": float(c.monto_cierre) if c.monto_cierre is not None else None,
        "tasa_dia": _f(c.tasa_dia),
        "total_pagos_movil": _f(c.total_pagos_movil),
        "cantidad_pagos_movil": c.cantidad_pagos_movil or 0,
        "total_zelle_usd": _f(c.total_zelle_usd),
        "total_zelle_bs": _f(c.total_zelle_bs),
        "cantidad_zelle": c.cantidad_zelle or 0,
        "total_creditos_bs": _f(c.total_creditos_bs),
        "total_creditos_usd": _f(c.total_creditos_usd),
        "cantidad_creditos": c.cantidad_creditos or 0,
        "total_notas_credito": _f(c.total_notas_credito),
        "cantidad_notas_credito": c.cantidad_notas_credito or 0,
    }
    if con_pagos:
        d["pagos_movil"] = [pago_movil_dict(p) for p in c.pagos_movil]
        d["pagos_zelle"] = [pago_zelle_dict(p) for p in c.pagos_zelle]
        d["creditos"] = [credito_dict(x) for x in c.creditos]
        d["notas_credito"] = [nota_credito_dict(n) for n in c.notas_credito]
    return d


def pago_movil_dict(p) -> Dict[str, Any]:
    return {
        "id": p.id,
        "caja_id": p.caja_id,
        "monto": _f(p.monto),
        "nombre_cliente": p.nombre_cliente,
        "telefono": p.telefono,
        "numero_referencia": p.numero_referencia,
        "fecha_hora": _iso(p.fecha_hora),
        "user_id": p.user_id,
        "company_id": p.company_id,
    }


def pago_zelle_dict(p) -> Dict[str, Any]:
    return {
        "id": p.id,
        "caja_id": p.caja_id,
        "monto_usd": _f(p.monto_usd),
        "tasa": _f(p.tasa),
        "monto_bs": _f(p.monto_bs),
        "nombre_cliente": p.nombre_cliente,
        "telefono": p.telefono,
        "fecha_hora": _iso(p.fecha_hora),
        "user_id": p.user_id,
        "company_id": p.company_id,
    }


def credito_dict(c, extra: Optional[Dict[str, Any]] = None, con_abonos: bool = False) -> Dict[str, Any]:
    d = {
        "id": c.id,
        "caja_id": c.caja_id,
        "numero_factura": c.numero_factura,
        "nombre_cliente": c.nombre_cliente,
        "telefono_cliente": c.telefono_cliente,
        "monto_bs": _f(c.monto_bs),
        "monto_usd": _f(c.monto_usd),
        "tasa": _f(c.tasa),
        "estado": c.estado,
        "fecha_hora": _iso(c.fecha_hora),
        "fecha_vencimiento": _iso(c.fecha_vencimiento),
        "monto_abonado": _f(c.monto_abonado),
        "cantidad_abonos": c.cantidad_abonos or 0,
        "fecha_ultimo_pago": _iso(c.fecha_ultimo_pago),
        "observaciones": c.observaciones,
        "saldo_pendiente": _f(c.monto_bs) - _f(c.monto_abonado),
        "user_id": c.user_id,
        "company_id": c.company_id,
    }
    if extra:
        d.update(extra)
    if con_abonos:
        d["abonos"] = [abono_dict(a) for a in c.abonos]
    return d


def abono_dict(a) -> Dict[str, Any]:
    return {
        "id": a.id,
        "credito_id": a.credito_id,
        "monto_bs": _f(a.monto_bs),
        "monto_usd": _f(a.monto_usd),
        "tasa": _f(a.tasa),
        "metodo_pago": a.metodo_pago,
        "referencia": a.referencia,
        "banco_id": a.banco_id,
        "fecha_pago": _iso(a.fecha_pago),
        "observaciones": a.observaciones,
        "user_id": a.user_id,
    }


def nota_credito_dict(n) -> Dict[str, Any]:
    return {
        "id": n.id,
        "caja_id": n.caja_id,
        "numero_nota_credito": n.numero_nota_credito,
        "factura_afectada": n.factura_afectada,
        "monto_bs": _f(n.monto_bs),
        "nombre_cliente": n.nombre_cliente,
        "explicacion": n.explicacion,
        "fecha_hora": _iso(n.fecha_hora),
        "user_id": n.user_id,
    }


def cierre_dict(c) -> Optional[Dict[str, Any]]:
    if c is None:
        return None
    return {
        "id": c.id,
        "caja_id": c.caja_id,
        "efectivo_dolares": _f(c.efectivo_dolares),
        "efectivo_euros": _f(c.efectivo_euros),
        "efectivo_bs": _f(c.efectivo_bs),
        "reporte_z": _f(c.reporte_z),
        "fondo_caja_dolares": _f(c.fondo_caja_dolares),
        "fondo_caja_bs": _f(c.fondo_caja_bs),
        "total_efectivo_bs": _f(c.total_efectivo_bs),
        "total_punto_venta_bs": _f(c.total_punto_venta_bs),
        "total_calculado_bs": _f(c.total_calculado_bs),
        "diferencia": _f(c.diferencia),
        "created_at": _iso(c.created_at),
    }


def punto_venta_dict(pv) -> Dict[str, Any]:
    return {
        "id": pv.id,
        "caja_id": pv.caja_id,
        "banco_id": pv.banco_id,
        "banco": {"nombre": pv.banco.nombre, "codigo": pv.banco.codigo} if pv.banco else None,
        "numero_lote": pv.numero_lote,
        "monto_bs": _f(pv.monto_bs),
        "monto_usd": _f(pv.monto_usd),
    }
