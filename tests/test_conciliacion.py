from decimal import Decimal

import pytest

from caja.services.conciliacion import (
    ConteoCierre,
    ErrorValidacion,
    LineaPuntoVenta,
    TasaCruzadaFija,
    TotalesSistema,
    calcular_cierre,
    esta_cuadrado,
    monto_usd_punto_venta,
)


def _totales(movil=0, zelle=0, creditos=0, notas=0):
    return TotalesSistema(
        total_pagos_movil=Decimal(str(movil)),
        total_zelle_bs=Decimal(str(zelle)),
        total_creditos_bs=Decimal(str(creditos)),
        total_notas_credito=Decimal(str(notas)),
    )


def _conteo(usd=0, eur=0, bs=0, z=0, pv=(), fondo_usd=0, fondo_bs=0):
    return ConteoCierre(
        efectivo_dolares=usd,
        efectivo_euros=eur,
        efectivo_bs=bs,
        reporte_z=z,
        fondo_caja_dolares=fondo_usd,
        fondo_caja_bs=fondo_bs,
        cierres_punto_venta=[LineaPuntoVenta(monto_bs=m) for m in pv],
    )


def test_escenario_cuadrado():
    r = calcular_cierre(
        _totales(movil=500, zelle=300),
        _conteo(usd=10, bs=100, pv=[200], z=1500),
        tasa_dia=40,
    )
    assert r.total_efectivo_bs == Decimal("500")
    assert r.total_punto_venta_bs == Decimal("200")
    assert r.total_calculado_bs == Decimal("1500")
    assert r.diferencia == 0


def test_todo_en_cero():
    r = calcular_cierre(_totales(), _conteo(), tasa_dia=40)
    assert r.total_calculado_bs == 0
    assert r.diferencia == 0


def test_reporte_z_igual_al_total_da_cero():
    base = calcular_cierre(_totales(123.45, 67.8, 90.12, 3.3), _conteo(usd=7.25, eur=3.5, bs=41.1, pv=[12.34]), 36.57)
    r = calcular_cierre(
        _totales(123.45, 67.8, 90.12, 3.3),
        _conteo(usd=7.25, eur=3.5, bs=41.1, pv=[12.34], z=base.total_calculado_bs),
        36.57,
    )
    assert r.diferencia == 0


def test_euros_usan_tasa_cruzada():
    r = calcular_cierre(_totales(), _conteo(eur=10), tasa_dia=40)
    assert r.total_efectivo_bs == Decimal("440")


@pytest.mark.parametrize(
    "campo",
    ["total_pagos_movil", "total_zelle_bs", "total_creditos_bs", "total_notas_credito"],
)
def test_diferencia_lineal_en_cada_canal(campo):
    delta = Decimal("17.31")
    totales = _totales(100, 200, 300, 400)
    base = calcular_cierre(totales, _conteo(bs=50, z=900), 40)
    setattr(totales, campo, getattr(totales, campo) + delta)
    r = calcular_cierre(totales, _conteo(bs=50, z=900), 40)
    assert r.diferencia - base.diferencia == delta


def test_diferencia_lineal_en_reporte_z():
    base = calcular_cierre(_totales(100), _conteo(z=80), 40)
    r = calcular_cierre(_totales(100), _conteo(z=Decimal("80") + Decimal("0.1")), 40)
    assert base.diferencia - r.diferencia == Decimal("0.1")


def test_fondo_de_caja_no_suma():
    sin_fondo = calcular_cierre(_totales(100), _conteo(usd=1, z=50), 40)
    con_fondo = calcular_cierre(_totales(100), _conteo(usd=1, z=50, fondo_usd=20, fondo_bs=300), 40)
    assert con_fondo.total_calculado_bs == sin_fondo.total_calculado_bs
    assert con_fondo.diferencia == sin_fondo.diferencia
    assert con_fondo.fondo_caja_dolares == 20
    assert con_fondo.fondo_caja_bs == 300


def test_punto_venta_en_usd():
    assert monto_usd_punto_venta(1000, 40) == Decimal("25")
    r = calcular_cierre(_totales(), _conteo(pv=[1000, 200]), 40)
    assert r.total_punto_venta_usd == Decimal("30")


def test_proveedor_de_tasas_inyectado():
    class Tasas:
        def tasa_cruzada(self, origen, destino):
            assert (origen, destino) == ("EUR", "USD")
            return Decimal("1.2")

    r = calcular_cierre(_totales(), _conteo(eur=10), 40, tasas=Tasas())
    assert r.total_efectivo_bs == Decimal("480")


def test_tasa_cruzada_fija():
    t = TasaCruzadaFija("1.1")
    assert t.tasa_cruzada("eur", "usd") == Decimal("1.1")
    assert t.tasa_cruzada("USD", "USD") == 1
    assert t.tasa_cruzada("USD", "EUR") * Decimal("1.1") == pytest.approx(Decimal("1"))
    with pytest.raises(ErrorValidacion):
        t.tasa_cruzada("EUR", "VES")


@pytest.mark.parametrize("tasa", [0, -1])
def test_tasa_no_positiva(tasa):
    with pytest.raises(ErrorValidacion):
        calcular_cierre(_totales(), _conteo(usd=1), tasa)
    with pytest.raises(ErrorValidacion):
        monto_usd_punto_venta(100, tasa)


def test_montos_negativos():
    with pytest.raises(ErrorValidacion):
        calcular_cierre(_totales(), _conteo(bs=-1), 40)
    with pytest.raises(ErrorValidacion):
        calcular_cierre(_totales(), _conteo(pv=[-5]), 40)


def test_esta_cuadrado():
    assert esta_cuadrado(Decimal("0.99"))
    assert esta_cuadrado(-0.5)
    assert not esta_cuadrado(1)
    assert not esta_cuadrado(-3, tolerancia=2)
