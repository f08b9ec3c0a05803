from fastapi import HTTPException

from caja.core.result import Result
from caja.services.conciliacion import ProveedorTasas, TasaCruzadaFija


def unwrap(result: Result):
    """Ok -> valor; Err -> HTTPException con el mensaje tal cual."""
    if not result.ok:
        raise HTTPException(status_code=result.status_code, detail=result.mensaje)
    return result.value


def get_proveedor_tasas() -> ProveedorTasas:
    # se reemplaza con app.dependency_overrides en pruebas
    return TasaCruzadaFija()
