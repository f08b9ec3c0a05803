import pytest
from pydantic import ValidationError

from caja.core.config import Settings


def test_tasa_eur_usd_por_defecto(monkeypatch):
    monkeypatch.delenv("TASA_EUR_USD", raising=False)
    assert Settings().tasa_eur_usd == 1.1


@pytest.mark.parametrize("valor", ["0", "-1.1"])
def test_tasa_eur_usd_no_positiva(monkeypatch, valor):
    monkeypatch.setenv("TASA_EUR_USD", valor)
    with pytest.raises(ValidationError):
        Settings()
