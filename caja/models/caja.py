from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db import Base

ABIERTA = "abierta"
CERRADA = "cerrada"


class Caja(Base):
    __tablename__ = "cajas"
    # una caja por cajero por día
    __table_args__ = (UniqueConstraint("user_id", "fecha", name="uq_caja_user_fecha"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    company_id = Column(String(64), nullable=False, index=True)
    fecha = Column(Date, nullable=False, index=True)
    hora_apertura = Column(DateTime, default=datetime.utcnow, nullable=False)
    hora_cierre = Column(DateTime, nullable=True)
    estado = Column(String(20), default=ABIERTA, nullable=False)  # abierta|cerrada
    observaciones = Column(Text, nullable=True)

    monto_apertura = Column(Numeric(14, 2), default=0, nullable=False)
    monto_apertura_usd = Column(Numeric(14, 2), default=0, nullable=False)
    monto_cierre = Column(Numeric(14, 2), nullable=True)
    tasa_dia = Column(Numeric(14, 4), nullable=False)

    total_pagos_movil = Column(Numeric(14, 2), default=0, nullable=False)
    cantidad_pagos_movil = Column(Integer, default=0, nullable=False)
    total_zelle_usd = Column(Numeric(14, 2), default=0, nullable=False)
    total_zelle_bs = Column(Numeric(14, 2), default=0, nullable=False)
    cantidad_zelle = Column(Integer, default=0, nullable=False)
    total_creditos_bs = Column(Numeric(14, 2), default=0, nullable=False)
    total_creditos_usd = Column(Numeric(14, 2), default=0, nullable=False)
    cantidad_creditos = Column(Integer, default=0, nullable=False)
    total_notas_credito = Column(Numeric(14, 2), default=0, nullable=False)
    cantidad_notas_credito = Column(Integer, default=0, nullable=False)

    pagos_movil = relationship("PagoMovil", back_populates="caja", order_by="PagoMovil.id")
    pagos_zelle = relationship("PagoZelle", back_populates="caja", order_by="PagoZelle.id")
    creditos = relationship("CreditoCaja", back_populates="caja", order_by="CreditoCaja.id")
    notas_credito = relationship("NotaCreditoCaja", back_populates="caja", order_by="NotaCreditoCaja.id")
    cierre = relationship("CierreCaja", back_populates="caja", uselist=False)
    cierres_punto_venta = relationship(
        "CierrePuntoVenta", back_populates="caja", order_by="CierrePuntoVenta.id"
    )

    @property
    def abierta(self) -> bool:
        return self.estado == ABIERTA
