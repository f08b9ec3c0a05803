from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")

# Códigos de error de servicio -> status HTTP (lo decide el router)
VALIDACION = "validacion"
NO_ENCONTRADO = "no_encontrado"
CAJA_CERRADA = "caja_cerrada"
CONFLICTO = "conflicto"
PERSISTENCIA = "persistencia"

HTTP_STATUS = {
    VALIDACION: 422,
    NO_ENCONTRADO: 404,
    CAJA_CERRADA: 409,
    CONFLICTO: 409,
    PERSISTENCIA: 500,
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    mensaje: str
    codigo: str = PERSISTENCIA

    @property
    def ok(self) -> bool:
        return False

    @property
    def status_code(self) -> int:
        return HTTP_STATUS.get(self.codigo, 500)


Result = Union[Ok[Any], Err]
