"""
Conciliación del cierre de caja.

Funciones puras (sin I/O): a partir de los totales que el sistema acumuló por
canal durante el día y del conteo que el cajero ingresa al cerrar, calcula el
total de la caja en bolívares y su diferencia contra el Reporte Z de la
impresora fiscal.

    total_efectivo_bs    = USD * tasa + EUR * tasa * cruce(EUR->USD) + Bs
    total_punto_venta_bs = suma de los lotes de punto de venta
    total_calculado_bs   = pago móvil + zelle + créditos + notas de crédito
                           + total_efectivo_bs + total_punto_venta_bs
    diferencia           = total_calculado_bs - reporte_z

El fondo de caja (efectivo que queda para el día siguiente) se informa pero
no participa en el total ni en la diferencia.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol

from caja.core.config import settings

CERO = Decimal("0")


class ErrorValidacion(ValueError):
    """Monto negativo o tasa no positiva en los datos del cierre."""


def a_decimal(valor) -> Decimal:
    if valor is None:
        return CERO
    if isinstance(valor, Decimal):
        return valor
    # str() evita arrastrar el error binario de los float
    return Decimal(str(valor))


class ProveedorTasas(Protocol):
    def tasa_cruzada(self, origen: str, destino: str) -> Decimal: ...


class TasaCruzadaFija:
    """Tasa EUR->USD constante (configurable con TASA_EUR_USD, 1.1 por defecto)."""

    def __init__(self, eur_usd=None):
        self.eur_usd = a_decimal(settings.tasa_eur_usd if eur_usd is None else eur_usd)

    def tasa_cruzada(self, origen: str, destino: str) -> Decimal:
        origen, destino = origen.upper(), destino.upper()
        if origen == destino:
            return Decimal("1")
        if (origen, destino) == ("EUR", "USD"):
            return self.eur_usd
        if (origen, destino) == ("USD", "EUR"):
            return Decimal("1") / self.eur_usd
        raise ErrorValidacion(f"Sin tasa cruzada para {origen}->{destino}")


@dataclass
class TotalesSistema:
    total_pagos_movil: Decimal = CERO
    total_zelle_bs: Decimal = CERO
    total_creditos_bs: Decimal = CERO
    total_notas_credito: Decimal = CERO

    @classmethod
    def desde_caja(cls, caja) -> "TotalesSistema":
        return cls(
            total_pagos_movil=a_decimal(caja.total_pagos_movil),
            total_zelle_bs=a_decimal(caja.total_zelle_bs),
            total_creditos_bs=a_decimal(caja.total_creditos_bs),
            total_notas_credito=a_decimal(caja.total_notas_credito),
        )

    @property
    def total(self) -> Decimal:
        return (
            self.total_pagos_movil
            + self.total_zelle_bs
            + self.total_creditos_bs
            + self.total_notas_credito
        )


@dataclass
class LineaPuntoVenta:
    monto_bs: Decimal
    banco_id: Optional[int] = None
    numero_lote: str = ""


@dataclass
class ConteoCierre:
    efectivo_dolares: Decimal = CERO
    efectivo_euros: Decimal = CERO
    efectivo_bs: Decimal = CERO
    reporte_z: Decimal = CERO
    fondo_caja_dolares: Decimal = CERO
    fondo_caja_bs: Decimal = CERO
    cierres_punto_venta: List[LineaPuntoVenta] = field(default_factory=list)


@dataclass(frozen=True)
class ResultadoCierre:
    total_efectivo_bs: Decimal
    total_punto_venta_bs: Decimal
    total_punto_venta_usd: Decimal
    total_sistema_bs: Decimal
    total_calculado_bs: Decimal
    reporte_z: Decimal
    diferencia: Decimal
    fondo_caja_dolares: Decimal
    fondo_caja_bs: Decimal

    def as_dict(self) -> dict:
        return {k: float(v) for k, v in self.__dict__.items()}


def _validar_tasa(tasa_dia: Decimal) -> None:
    if tasa_dia <= 0:
        raise ErrorValidacion("La tasa del día debe ser mayor a 0")


def monto_usd_punto_venta(monto_bs, tasa_dia) -> Decimal:
    tasa = a_decimal(tasa_dia)
    _validar_tasa(tasa)
    return a_decimal(monto_bs) / tasa


def efectivo_en_bs(conteo: ConteoCierre, tasa_dia: Decimal, tasas: ProveedorTasas) -> Decimal:
    eur_usd = tasas.tasa_cruzada("EUR", "USD")
    return (
        conteo.efectivo_dolares * tasa_dia
        + conteo.efectivo_euros * tasa_dia * eur_usd
        + conteo.efectivo_bs
    )


def _normalizar(conteo: ConteoCierre) -> ConteoCierre:
    montos = {
        "efectivo_dolares": a_decimal(conteo.efectivo_dolares),
        "efectivo_euros": a_decimal(conteo.efectivo_euros),
        "efectivo_bs": a_decimal(conteo.efectivo_bs),
        "reporte_z": a_decimal(conteo.reporte_z),
        "fondo_caja_dolares": a_decimal(conteo.fondo_caja_dolares),
        "fondo_caja_bs": a_decimal(conteo.fondo_caja_bs),
    }
    for nombre, monto in montos.items():
        if monto < 0:
            raise ErrorValidacion(f"El monto no puede ser negativo ({nombre})")
    lineas = []
    for linea in conteo.cierres_punto_venta:
        monto = a_decimal(linea.monto_bs)
        if monto < 0:
            raise ErrorValidacion("El monto no puede ser negativo (punto de venta)")
        lineas.append(LineaPuntoVenta(monto_bs=monto, banco_id=linea.banco_id, numero_lote=linea.numero_lote))
    return ConteoCierre(cierres_punto_venta=lineas, **montos)


def calcular_cierre(
    totales: TotalesSistema,
    conteo: ConteoCierre,
    tasa_dia,
    tasas: Optional[ProveedorTasas] = None,
) -> ResultadoCierre:
    tasa = a_decimal(tasa_dia)
    _validar_tasa(tasa)
    tasas = tasas or TasaCruzadaFija()
    conteo = _normalizar(conteo)
    totales = TotalesSistema(
        total_pagos_movil=a_decimal(totales.total_pagos_movil),
        total_zelle_bs=a_decimal(totales.total_zelle_bs),
        total_creditos_bs=a_decimal(totales.total_creditos_bs),
        total_notas_credito=a_decimal(totales.total_notas_credito),
    )

    total_efectivo = efectivo_en_bs(conteo, tasa, tasas)
    total_pv_bs = sum((l.monto_bs for l in conteo.cierres_punto_venta), CERO)
    total_pv_usd = sum((l.monto_bs / tasa for l in conteo.cierres_punto_venta), CERO)
    total_calculado = totales.total + total_efectivo + total_pv_bs

    return ResultadoCierre(
        total_efectivo_bs=total_efectivo,
        total_punto_venta_bs=total_pv_bs,
        total_punto_venta_usd=total_pv_usd,
        total_sistema_bs=totales.total,
        total_calculado_bs=total_calculado,
        reporte_z=conteo.reporte_z,
        diferencia=total_calculado - conteo.reporte_z,
        fondo_caja_dolares=conteo.fondo_caja_dolares,
        fondo_caja_bs=conteo.fondo_caja_bs,
    )


def esta_cuadrado(diferencia, tolerancia=None) -> bool:
    """Criterio de presentación: |diferencia| < tolerancia (UMBRAL_CUADRE)."""
    tol = a_decimal(settings.umbral_cuadre if tolerancia is None else tolerancia)
    return abs(a_decimal(diferencia)) < tol


def sumar(valores: Iterable) -> Decimal:
    return sum((a_decimal(v) for v in valores), CERO)
