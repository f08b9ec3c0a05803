from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from caja.core.schemas import AbonoIn
from caja.services.credito_service import estado_vencimiento
from helpers import COMPANY, _get, _patch, _post, abrir, banco_id, credito

AHORA = datetime(2025, 3, 10, 12, 0, 0)


def _abono(client, credito_id, monto_bs, **extra):
    body = {
        "user_id": "cajero-1",
        "company_id": COMPANY,
        "monto_bs": monto_bs,
        "tasa": 40,
        "metodo_pago": "pago_movil",
    }
    body.update(extra)
    return _post(client, f"/creditos/{credito_id}/abonos", body)


@pytest.mark.parametrize(
    "estado, vence, esperado",
    [
        ("pagado", AHORA - timedelta(days=30), "Pagado"),
        ("pendiente", None, "Vigente"),
        ("pendiente", AHORA - timedelta(days=1), "Vencido"),
        ("pendiente", AHORA + timedelta(days=3), "Por vencer"),
        ("pendiente", AHORA + timedelta(days=7, hours=1), "Por vencer"),
        ("pendiente", AHORA + timedelta(days=20), "Vigente"),
    ],
)
def test_estado_vencimiento(estado, vence, esperado):
    c = SimpleNamespace(estado=estado, fecha_vencimiento=vence)
    assert estado_vencimiento(c, AHORA) == esperado


def test_abonos_hasta_pagar(client):
    cid = abrir(client)["id"]
    cr = credito(client, cid, 1000)

    st, js = _abono(client, cr["id"], 400, banco_id=banco_id(client), referencia="778899")
    assert st == 200, js
    assert js["abono"]["monto_usd"] == 10.0
    assert js["credito"]["monto_abonado"] == 400.0
    assert js["credito"]["saldo_pendiente"] == 600.0
    assert js["credito"]["cantidad_abonos"] == 1
    assert js["credito"]["estado"] == "pendiente"

    st, js = _abono(client, cr["id"], 600.01)
    assert st == 422
    assert "excede el saldo pendiente" in js["detail"]

    st, js = _abono(client, cr["id"], 600)
    assert st == 200
    assert js["credito"]["estado"] == "pagado"
    assert js["credito"]["saldo_pendiente"] == 0.0
    assert js["credito"]["fecha_ultimo_pago"] is not None
    assert len(js["credito"]["abonos"]) == 2

    st, js = _abono(client, cr["id"], 1)
    assert st == 422 and js["detail"] == "El crédito ya está pagado"


def test_marcar_pagado_con_saldo(client):
    cid = abrir(client)["id"]
    cr = credito(client, cid, 100)
    st, js = _post(client, f"/creditos/{cr['id']}/pagado", {})
    assert st == 422
    assert js["detail"] == "El crédito tiene saldo pendiente. Debe registrar el pago completo."
    st, _ = _patch(client, f"/creditos/{cr['id']}", {"estado": "pagado"})
    assert st == 422


def test_abono_sobre_credito_inexistente(client):
    st, js = _abono(client, 5555, 10)
    assert st == 404 and js["detail"] == "Crédito no encontrado"


def test_actualizar_credito(client):
    cid = abrir(client)["id"]
    cr = credito(client, cid, 100)
    vence = (datetime.utcnow() - timedelta(days=2)).replace(microsecond=0)
    st, js = _patch(client, f"/creditos/{cr['id']}", {"fecha_vencimiento": vence.isoformat(), "observaciones": "llamar"})
    assert st == 200
    assert js["observaciones"] == "llamar"
    assert js["estado_vencimiento"] == "Vencido"


def test_vencimiento_con_zona_se_guarda_en_utc(client):
    cid = abrir(client)["id"]
    cr = credito(client, cid, 100, fecha_vencimiento="2026-12-25T00:00:00+02:00")
    assert cr["fecha_vencimiento"] == "2026-12-24T22:00:00"

    st, js = _patch(client, f"/creditos/{cr['id']}", {"fecha_vencimiento": "2026-12-25T08:30:00-04:00"})
    assert st == 200
    assert js["fecha_vencimiento"] == "2026-12-25T12:30:00"


def test_fecha_pago_con_zona_se_guarda_en_utc():
    abono = AbonoIn(
        user_id="c",
        company_id=COMPANY,
        monto_bs=10,
        tasa=40,
        metodo_pago="efectivo",
        fecha_pago="2026-03-01T23:00:00-04:00",
    )
    assert abono.fecha_pago == datetime(2026, 3, 2, 3, 0, 0)
    assert abono.fecha_pago.tzinfo is None


def test_listar_y_filtrar(client):
    cid = abrir(client)["id"]
    ayer = (datetime.utcnow() - timedelta(days=1)).isoformat()
    en_tres = (datetime.utcnow() + timedelta(days=3)).isoformat()
    credito(client, cid, 100, factura="1001", nombre="Carlos Rivas", fecha_vencimiento=ayer)
    credito(client, cid, 200, factura="2002", nombre="Lucía Gómez", fecha_vencimiento=en_tres)
    c3 = credito(client, cid, 300, factura="3003", nombre="Carlos Rivas")
    _abono(client, c3["id"], 300)

    st, js = _get(client, "/creditos", {"company_id": COMPANY})
    assert st == 200 and js["total"] == 3

    st, js = _get(client, "/creditos", {"estado": "pendiente"})
    assert js["total"] == 2

    st, js = _get(client, "/creditos", {"numero_factura": "200"})
    assert [c["numero_factura"] for c in js["items"]] == ["2002"]

    st, js = _get(client, "/creditos", {"estado_vencimiento": "vencido"})
    assert [c["numero_factura"] for c in js["items"]] == ["1001"]

    st, js = _get(client, "/creditos", {"estado_vencimiento": "por_vencer"})
    assert [c["numero_factura"] for c in js["items"]] == ["2002"]

    hoy = datetime.utcnow().date().isoformat()
    st, js = _get(client, "/creditos", {"fecha_desde": hoy, "fecha_hasta": hoy})
    assert js["total"] == 3


def test_resumen_y_estado_de_cuenta(client):
    cid = abrir(client)["id"]
    ayer = (datetime.utcnow() - timedelta(days=1)).isoformat()
    c1 = credito(client, cid, 100, nombre="Carlos Rivas", fecha_vencimiento=ayer)
    credito(client, cid, 250, factura="1002", nombre="Carlos Rivas")
    c3 = credito(client, cid, 50, factura="1003", nombre="Lucía Gómez")
    _abono(client, c1["id"], 40)
    _abono(client, c3["id"], 50)

    st, js = _get(client, "/creditos/resumen", {"company_id": COMPANY})
    assert st == 200
    assert js["total_creditos"] == 3
    assert js["creditos_pendientes"] == 2
    assert js["creditos_pagados"] == 1
    assert js["creditos_vencidos"] == 1
    assert js["monto_pendiente_total"] == 310.0
    assert js["monto_abonado"] == 90.0
    assert js["clientes_con_credito"] == 2

    st, js = _get(client, "/creditos/estado-cuenta", {"nombre_cliente": "carlos rivas"})
    assert st == 200
    assert js["totales"]["total_creditos"] == 2
    assert js["totales"]["creditos_pendientes"] == 2
    assert js["totales"]["monto_pendiente"] == 310.0
    assert js["totales"]["monto_abonado"] == 40.0

    st, js = _get(client, "/creditos/estado-cuenta", {"nombre_cliente": "Nadie"})
    assert st == 404


def test_obtener_credito(client):
    cid = abrir(client)["id"]
    cr = credito(client, cid, 100)
    st, js = _get(client, f"/creditos/{cr['id']}")
    assert st == 200
    assert js["estado_vencimiento"] == "Vigente"
    assert js["abonos"] == []
