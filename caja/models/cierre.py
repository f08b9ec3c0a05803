from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from ..db import Base


class Banco(Base):
    __tablename__ = "bancos"

    id = Column(Integer, primary_key=True, index=True)
    nombre = Column(String(120), nullable=False)
    codigo = Column(String(10), unique=True, nullable=False)


class CierreCaja(Base):
    __tablename__ = "cierres_caja"

    id = Column(Integer, primary_key=True, index=True)
    caja_id = Column(Integer, ForeignKey("cajas.id"), unique=True, nullable=False)

    # conteo del cajero
    efectivo_dolares = Column(Numeric(14, 2), default=0, nullable=False)
    efectivo_euros = Column(Numeric(14, 2), default=0, nullable=False)
    efectivo_bs = Column(Numeric(14, 2), default=0, nullable=False)
    reporte_z = Column(Numeric(14, 2), default=0, nullable=False)
    fondo_caja_dolares = Column(Numeric(14, 2), default=0, nullable=False)
    fondo_caja_bs = Column(Numeric(14, 2), default=0, nullable=False)

    # resultado de la conciliación al momento del cierre
    total_efectivo_bs = Column(Numeric(14, 2), default=0, nullable=False)
    total_punto_venta_bs = Column(Numeric(14, 2), default=0, nullable=False)
    total_calculado_bs = Column(Numeric(14, 2), default=0, nullable=False)
    diferencia = Column(Numeric(14, 2), default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    user_id = Column(String(64), nullable=False)

    caja = relationship("Caja", back_populates="cierre")


class CierrePuntoVenta(Base):
    __tablename__ = "cierres_punto_venta"

    id = Column(Integer, primary_key=True, index=True)
    caja_id = Column(Integer, ForeignKey("cajas.id"), nullable=False, index=True)
    banco_id = Column(Integer, ForeignKey("bancos.id"), nullable=False)
    numero_lote = Column(String(40), nullable=False)
    monto_bs = Column(Numeric(14, 2), nullable=False)
    monto_usd = Column(Numeric(14, 2), nullable=False)

    caja = relationship("Caja", back_populates="cierres_punto_venta")
    banco = relationship("Banco")
