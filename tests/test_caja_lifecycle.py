import json
from datetime import date, timedelta

from caja.core.schemas import AbrirCajaIn
from caja.middleware import idempotency
from caja.models.caja import Caja
from caja.services import caja_service
from helpers import COMPANY, _get, _post, _put, abrir, banco_id, cerrar, pago_movil, pago_zelle


def test_abrir_y_consultar_actual(client):
    caja = abrir(client, monto_apertura=150, monto_apertura_usd=20)
    assert caja["estado"] == "abierta"
    assert caja["tasa_dia"] == 40.0
    assert caja["monto_apertura"] == 150.0

    st, js = _get(client, "/cajas/actual", {"user_id": "cajero-1"})
    assert st == 200
    assert js["caja"]["id"] == caja["id"]
    assert js["caja"]["pagos_movil"] == []

    st, js = _get(client, "/cajas/actual", {"user_id": "otro"})
    assert st == 200 and js["caja"] is None


def test_doble_apertura_mismo_dia(client):
    abrir(client)
    st, js = _post(client, "/cajas/abrir", {"user_id": "cajero-1", "company_id": COMPANY, "tasa_dia": 41})
    assert st == 409
    assert js["detail"] == "Ya existe una caja abierta para el día de hoy"


def test_otro_cajero_puede_abrir(client):
    a = abrir(client, user_id="cajero-1")
    b = abrir(client, user_id="cajero-2")
    assert a["id"] != b["id"]


def test_no_abre_con_caja_vieja_sin_cerrar(db):
    ayer = date.today() - timedelta(days=1)
    datos = AbrirCajaIn(user_id="cajero-9", company_id=COMPANY, tasa_dia=40)
    assert caja_service.abrir_caja(db, datos, hoy=ayer).ok
    r = caja_service.abrir_caja(db, datos)
    assert not r.ok
    assert r.status_code == 409
    assert "sin cerrar" in r.mensaje


def test_tasa_invalida_en_apertura(client):
    st, _ = _post(client, "/cajas/abrir", {"user_id": "c", "company_id": COMPANY, "tasa_dia": 0})
    assert st == 422


def test_cierre_cuadrado(client, audit_file):
    caja = abrir(client)
    cid = caja["id"]
    pago_movil(client, cid, 500)
    pago_zelle(client, cid, 7.5)  # 7.5 * 40 = 300
    st, js = cerrar(
        client,
        cid,
        efectivo_dolares=10,
        efectivo_bs=100,
        reporte_z=1500,
        fondo_caja_dolares=5,
        fondo_caja_bs=50,
        cierres_punto_venta=[{"banco_id": banco_id(client), "monto_bs": 200, "numero_lote": "L-01"}],
    )
    assert st == 200, js
    assert js["caja"]["estado"] == "cerrada"
    assert js["caja"]["monto_cierre"] == 1500.0
    assert js["resultado"]["total_efectivo_bs"] == 500.0
    assert js["resultado"]["diferencia"] == 0.0
    assert js["cuadrado"] is True
    assert js["cierre"]["fondo_caja_dolares"] == 5.0
    assert js["cierres_punto_venta"][0]["monto_usd"] == 5.0
    assert js["cierres_punto_venta"][0]["banco"]["codigo"] == "0134"

    with open(audit_file, encoding="utf-8") as f:
        lines = [json.loads(ln) for ln in f if ln.strip()]
    assert len(lines) == 1
    assert lines[0]["kind"] == "cierre"
    assert lines[0]["caja_id"] == cid
    assert lines[0]["diferencia"] == 0.0


def test_cierre_con_diferencia(client):
    cid = abrir(client)["id"]
    pago_movil(client, cid, 1000)
    st, js = cerrar(client, cid, efectivo_bs=100, reporte_z=1050)
    assert st == 200
    assert js["resultado"]["diferencia"] == 50.0
    assert js["cuadrado"] is False
    assert js["cierre"]["diferencia"] == 50.0


def test_doble_cierre(client):
    cid = abrir(client)["id"]
    st, _ = cerrar(client, cid, reporte_z=0)
    assert st == 200
    st, js = cerrar(client, cid, reporte_z=0)
    assert st == 409
    assert js["detail"] == "La caja está cerrada"


def test_pagos_rechazados_despues_del_cierre(client):
    cid = abrir(client)["id"]
    p = pago_movil(client, cid, 10)
    cerrar(client, cid)
    st, js = _post(
        client,
        f"/cajas/{cid}/pagos-movil",
        {
            "user_id": "cajero-1",
            "company_id": COMPANY,
            "monto": 5,
            "nombre_cliente": "X",
            "telefono": "1",
            "numero_referencia": "1",
        },
    )
    assert st == 409
    st, _ = _put(client, f"/cajas/{cid}/pagos-movil/{p['id']}", {"monto": 99})
    assert st == 409
    st, _ = _put(client, f"/cajas/{cid}/tasa", {"tasa_dia": 45})
    assert st == 409


def test_cierre_banco_inexistente(client):
    cid = abrir(client)["id"]
    st, js = cerrar(client, cid, cierres_punto_venta=[{"banco_id": 9999, "monto_bs": 10, "numero_lote": "1"}])
    assert st == 422
    assert js["detail"] == "Banco no encontrado: 9999"
    st, js = _get(client, f"/cajas/{cid}")
    assert js["estado"] == "abierta"


def test_montos_negativos_rechazados(client):
    cid = abrir(client)["id"]
    st, _ = cerrar(client, cid, efectivo_bs=-1)
    assert st == 422


def test_caja_inexistente(client):
    st, js = cerrar(client, 424242)
    assert st == 404 and js["detail"] == "Caja no encontrada"


def test_preview_no_cierra(client):
    cid = abrir(client)["id"]
    pago_movil(client, cid, 100)
    st, js = _post(client, f"/cajas/{cid}/cierre/preview", {"efectivo_euros": 1, "reporte_z": 100})
    assert st == 200
    assert js["resultado"]["total_efectivo_bs"] == 44.0
    assert js["resultado"]["diferencia"] == 44.0
    st, js = _get(client, f"/cajas/{cid}")
    assert js["estado"] == "abierta"


def test_cierre_idempotente(client, audit_file):
    cid = abrir(client)["id"]
    h = {"Idempotency-Key": "cierre-abc-1"}
    st1, j1 = cerrar(client, cid, headers=h, reporte_z=0)
    st2, j2 = cerrar(client, cid, headers=h, reporte_z=0)
    assert st1 == 200 and st2 == 200
    assert j2["replay"] is True
    assert j1["cierre"]["id"] == j2["cierre"]["id"]

    with open(audit_file, encoding="utf-8") as f:
        lines = [ln for ln in f if ln.strip()]
    assert len(lines) == 1
    assert json.loads(lines[0])["idempotency_key"] == "cierre-abc-1"


def test_apertura_idempotente(client):
    body = {"user_id": "cajero-7", "company_id": COMPANY, "tasa_dia": 38.5}
    h = {"Idempotency-Key": "abrir-7"}
    st1, j1 = _post(client, "/cajas/abrir", body, h)
    st2, j2 = _post(client, "/cajas/abrir", body, h)
    assert st1 == 200 and st2 == 200
    assert j1["id"] == j2["id"] and j2["replay"] is True
    # sin clave la segunda apertura choca
    st3, _ = _post(client, "/cajas/abrir", body)
    assert st3 == 409
    assert idempotency._keyed_locks._locks == {}


def test_clave_reutilizada_con_otro_cuerpo(client):
    h = {"Idempotency-Key": "k1"}
    st, a = _post(client, "/cajas/abrir", {"user_id": "A", "company_id": COMPANY, "tasa_dia": 40}, h)
    assert st == 200 and a["user_id"] == "A"
    st, js = _post(client, "/cajas/abrir", {"user_id": "B", "company_id": COMPANY, "tasa_dia": 40}, h)
    assert st == 422
    assert js["detail"] == "Idempotency-Key ya usada con otro contenido"
    st, js = _get(client, "/cajas/actual", {"user_id": "B"})
    assert js["caja"] is None
    # la clave sigue sirviendo para el cuerpo original
    st, js = _post(client, "/cajas/abrir", {"user_id": "A", "company_id": COMPANY, "tasa_dia": 40}, h)
    assert st == 200 and js["id"] == a["id"] and js["replay"] is True


def test_proveedor_tasas_override(client):
    from decimal import Decimal

    from caja.routers.common import get_proveedor_tasas

    class Tasas:
        def tasa_cruzada(self, origen, destino):
            return Decimal("1.25")

    client.app.dependency_overrides[get_proveedor_tasas] = Tasas
    cid = abrir(client)["id"]
    st, js = cerrar(client, cid, efectivo_euros=2, reporte_z=100)
    assert st == 200
    assert js["resultado"]["total_efectivo_bs"] == 100.0
    assert js["resultado"]["diferencia"] == 0.0


def test_actualizar_tasa(client, db):
    cid = abrir(client)["id"]
    st, js = _put(client, f"/cajas/{cid}/tasa", {"tasa_dia": 42.5})
    assert st == 200 and js["tasa_dia"] == 42.5
    assert float(db.get(Caja, cid).tasa_dia) == 42.5
