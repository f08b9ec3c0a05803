from datetime import date, datetime, timezone
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, Field

SOLO_NUMEROS = r"^\d+$"
TELEFONO = r"^[\d\-+() ]+$"


def utc_naive(v: Optional[datetime]) -> Optional[datetime]:
    # la base guarda UTC sin zona
    if v is not None and v.tzinfo is not None:
        v = v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


FechaUTC = Annotated[Optional[datetime], AfterValidator(utc_naive)]


class AbrirCajaIn(BaseModel):
    user_id: str = Field(..., min_length=1)
    company_id: str = Field(..., min_length=1)
    monto_apertura: float = Field(default=0, ge=0)
    monto_apertura_usd: float = Field(default=0, ge=0)
    tasa_dia: float = Field(..., gt=0)


class TasaIn(BaseModel):
    tasa_dia: float = Field(..., gt=0)


class PuntoVentaIn(BaseModel):
    banco_id: int
    monto_bs: float = Field(..., gt=0)
    numero_lote: str = Field(..., min_length=1)


class CierreCajaIn(BaseModel):
    user_id: Optional[str] = None
    efectivo_dolares: float = Field(default=0, ge=0)
    efectivo_euros: float = Field(default=0, ge=0)
    efectivo_bs: float = Field(default=0, ge=0)
    reporte_z: float = Field(default=0, ge=0)
    fondo_caja_dolares: float = Field(default=0, ge=0)
    fondo_caja_bs: float = Field(default=0, ge=0)
    observaciones: Optional[str] = None
    cierres_punto_venta: List[PuntoVentaIn] = Field(default_factory=list)


class PagoMovilIn(BaseModel):
    user_id: str
    company_id: str
    monto: float = Field(..., gt=0)
    nombre_cliente: str = Field(..., min_length=1)
    telefono: str = Field(..., min_length=1)
    numero_referencia: str = Field(..., min_length=1)


class PagoMovilUpdate(BaseModel):
    monto: Optional[float] = Field(default=None, gt=0)
    nombre_cliente: Optional[str] = Field(default=None, min_length=1)
    telefono: Optional[str] = Field(default=None, min_length=1)
    numero_referencia: Optional[str] = None


class PagoZelleIn(BaseModel):
    user_id: str
    company_id: str
    monto_usd: float = Field(..., gt=0)
    tasa: Optional[float] = Field(default=None, gt=0)
    nombre_cliente: str = Field(..., min_length=1)
    telefono: str = Field(..., min_length=1)


class PagoZelleUpdate(BaseModel):
    monto_usd: Optional[float] = Field(default=None, gt=0)
    tasa: Optional[float] = Field(default=None, gt=0)
    nombre_cliente: Optional[str] = Field(default=None, min_length=1)
    telefono: Optional[str] = Field(default=None, min_length=1)


class CreditoCajaIn(BaseModel):
    user_id: str
    company_id: str
    numero_factura: str = Field(..., min_length=1, pattern=SOLO_NUMEROS)
    nombre_cliente: str = Field(..., min_length=3)
    telefono_cliente: str = Field(..., min_length=1, pattern=TELEFONO)
    monto_bs: float = Field(..., gt=0)
    fecha_vencimiento: FechaUTC = None
    observaciones: Optional[str] = None


class NotaCreditoCajaIn(BaseModel):
    user_id: str
    company_id: str
    numero_nota_credito: str = Field(..., min_length=1, pattern=SOLO_NUMEROS)
    factura_afectada: str = Field(..., min_length=1, pattern=SOLO_NUMEROS)
    monto_bs: float = Field(..., gt=0)
    nombre_cliente: str = Field(..., min_length=3)
    explicacion: str = Field(..., min_length=10)


class AbonoIn(BaseModel):
    user_id: str
    company_id: str
    monto_bs: float = Field(..., gt=0)
    tasa: float = Field(..., gt=0)
    metodo_pago: str = Field(..., min_length=1)
    referencia: Optional[str] = None
    banco_id: Optional[int] = None
    fecha_pago: FechaUTC = None
    observaciones: Optional[str] = None


class CreditoUpdate(BaseModel):
    estado: Optional[Literal["pendiente", "pagado"]] = None
    fecha_vencimiento: FechaUTC = None
    observaciones: Optional[str] = None


class MarcarPagadoIn(BaseModel):
    observaciones: Optional[str] = None


class FiltrosCaja(BaseModel):
    fecha_desde: Optional[date] = None
    fecha_hasta: Optional[date] = None
    user_id: Optional[str] = None
    estado: Literal["abierta", "cerrada", "todas"] = "todas"


class FiltrosCredito(BaseModel):
    company_id: Optional[str] = None
    fecha_desde: Optional[date] = None
    fecha_hasta: Optional[date] = None
    estado: Literal["pendiente", "pagado", "todos"] = "todos"
    numero_factura: Optional[str] = None
    nombre_cliente: Optional[str] = None
    estado_vencimiento: Literal["vencido", "por_vencer", "vigente", "todos"] = "todos"


class FiltrosCierres(BaseModel):
    fecha_desde: Optional[date] = None
    fecha_hasta: Optional[date] = None
    user_id: Optional[str] = None
    company_id: Optional[str] = None
    con_discrepancias: bool = False
    monto_min: Optional[float] = None
    monto_max: Optional[float] = None
