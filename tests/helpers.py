COMPANY = "empresa-1"


def _json(r):
    try:
        return r.json()
    except ValueError:
        return {"text": r.text}


def _get(client, p, params=None):
    r = client.get(p, params=params)
    return r.status_code, _json(r)


def _post(client, p, body=None, headers=None):
    r = client.post(p, json=body, headers=headers or {})
    return r.status_code, _json(r)


def _put(client, p, body):
    r = client.put(p, json=body)
    return r.status_code, _json(r)


def _patch(client, p, body):
    r = client.patch(p, json=body)
    return r.status_code, _json(r)


def _delete(client, p):
    r = client.delete(p)
    return r.status_code, _json(r)


def abrir(client, user_id="cajero-1", tasa_dia=40.0, **extra):
    body = {"user_id": user_id, "company_id": COMPANY, "tasa_dia": tasa_dia}
    body.update(extra)
    st, js = _post(client, "/cajas/abrir", body)
    assert st == 200, js
    return js


def banco_id(client, codigo="0134"):
    st, bancos = _get(client, "/bancos")
    assert st == 200
    return next(b["id"] for b in bancos if b["codigo"] == codigo)


def pago_movil(client, caja_id, monto, user_id="cajero-1", referencia="123456"):
    st, js = _post(
        client,
        f"/cajas/{caja_id}/pagos-movil",
        {
            "user_id": user_id,
            "company_id": COMPANY,
            "monto": monto,
            "nombre_cliente": "Ana Pérez",
            "telefono": "0414-1234567",
            "numero_referencia": referencia,
        },
    )
    assert st == 200, js
    return js


def pago_zelle(client, caja_id, monto_usd, tasa=None, user_id="cajero-1"):
    body = {
        "user_id": user_id,
        "company_id": COMPANY,
        "monto_usd": monto_usd,
        "nombre_cliente": "John Doe",
        "telefono": "+1 305 555 0100",
    }
    if tasa is not None:
        body["tasa"] = tasa
    st, js = _post(client, f"/cajas/{caja_id}/pagos-zelle", body)
    assert st == 200, js
    return js


def credito(client, caja_id, monto_bs, factura="1001", nombre="Carlos Rivas", **extra):
    body = {
        "user_id": "cajero-1",
        "company_id": COMPANY,
        "numero_factura": factura,
        "nombre_cliente": nombre,
        "telefono_cliente": "0412-7654321",
        "monto_bs": monto_bs,
    }
    body.update(extra)
    st, js = _post(client, f"/cajas/{caja_id}/creditos", body)
    assert st == 200, js
    return js


def cerrar(client, caja_id, headers=None, **conteo):
    return _post(client, f"/cajas/{caja_id}/cerrar", conteo, headers)
