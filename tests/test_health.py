from helpers import _get


def test_health_returns_200(client):
    st, js = _get(client, "/health")
    assert st == 200
    assert js["status"] == "ok"


def test_bancos_sembrados(client, db):
    from caja.ops.bootstrap import BANCOS_DEFAULT, sembrar_bancos

    st, js = _get(client, "/bancos")
    assert st == 200
    assert {b["codigo"] for b in js} == {codigo for codigo, _ in BANCOS_DEFAULT}
    # idempotente
    assert sembrar_bancos(db) == 0
