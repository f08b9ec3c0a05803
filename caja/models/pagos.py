from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from ..db import Base

PENDIENTE = "pendiente"
PAGADO = "pagado"


class PagoMovil(Base):
    __tablename__ = "pagos_movil"

    id = Column(Integer, primary_key=True, index=True)
    caja_id = Column(Integer, ForeignKey("cajas.id"), nullable=False, index=True)
    monto = Column(Numeric(14, 2), nullable=False)
    nombre_cliente = Column(String(120), nullable=False)
    telefono = Column(String(40), nullable=False)
    numero_referencia = Column(String(40), nullable=False)
    fecha_hora = Column(DateTime, default=datetime.utcnow, nullable=False)
    user_id = Column(String(64), nullable=False)
    company_id = Column(String(64), nullable=False)

    caja = relationship("Caja", back_populates="pagos_movil")


class PagoZelle(Base):
    __tablename__ = "pagos_zelle"

    id = Column(Integer, primary_key=True, index=True)
    caja_id = Column(Integer, ForeignKey("cajas.id"), nullable=False, index=True)
    monto_usd = Column(Numeric(14, 2), nullable=False)
    tasa = Column(Numeric(14, 4), nullable=False)
    monto_bs = Column(Numeric(14, 2), nullable=False)
    nombre_cliente = Column(String(120), nullable=False)
    telefono = Column(String(40), nullable=False)
    fecha_hora = Column(DateTime, default=datetime.utcnow, nullable=False)
    user_id = Column(String(64), nullable=False)
    company_id = Column(String(64), nullable=False)

    caja = relationship("Caja", back_populates="pagos_zelle")


class CreditoCaja(Base):
    __tablename__ = "creditos_caja"

    id = Column(Integer, primary_key=True, index=True)
    caja_id = Column(Integer, ForeignKey("cajas.id"), nullable=False, index=True)
    numero_factura = Column(String(40), nullable=False, index=True)
    nombre_cliente = Column(String(120), nullable=False, index=True)
    telefono_cliente = Column(String(40), nullable=False)
    monto_bs = Column(Numeric(14, 2), nullable=False)
    monto_usd = Column(Numeric(14, 2), nullable=False)
    tasa = Column(Numeric(14, 4), nullable=False)
    estado = Column(String(20), default=PENDIENTE, nullable=False)  # pendiente|pagado
    fecha_hora = Column(DateTime, default=datetime.utcnow, nullable=False)
    fecha_vencimiento = Column(DateTime, nullable=True)
    monto_abonado = Column(Numeric(14, 2), default=0, nullable=False)
    cantidad_abonos = Column(Integer, default=0, nullable=False)
    fecha_ultimo_pago = Column(DateTime, nullable=True)
    observaciones = Column(Text, nullable=True)
    user_id = Column(String(64), nullable=False)
    company_id = Column(String(64), nullable=False, index=True)

    caja = relationship("Caja", back_populates="creditos")
    abonos = relationship("AbonoCredito", back_populates="credito", order_by="AbonoCredito.id")


class AbonoCredito(Base):
    __tablename__ = "abonos_credito"

    id = Column(Integer, primary_key=True, index=True)
    credito_id = Column(Integer, ForeignKey("creditos_caja.id"), nullable=False, index=True)
    monto_bs = Column(Numeric(14, 2), nullable=False)
    monto_usd = Column(Numeric(14, 2), nullable=False)
    tasa = Column(Numeric(14, 4), nullable=False)
    metodo_pago = Column(String(30), nullable=False)
    referencia = Column(String(60), nullable=True)
    banco_id = Column(Integer, ForeignKey("bancos.id"), nullable=True)
    fecha_pago = Column(DateTime, default=datetime.utcnow, nullable=False)
    observaciones = Column(Text, nullable=True)
    user_id = Column(String(64), nullable=False)
    company_id = Column(String(64), nullable=False)

    credito = relationship("CreditoCaja", back_populates="abonos")
    banco = relationship("Banco")


class NotaCreditoCaja(Base):
    __tablename__ = "notas_credito_caja"

    id = Column(Integer, primary_key=True, index=True)
    caja_id = Column(Integer, ForeignKey("cajas.id"), nullable=False, index=True)
    numero_nota_credito = Column(String(40), nullable=False)
    factura_afectada = Column(String(40), nullable=False)
    monto_bs = Column(Numeric(14, 2), nullable=False)
    nombre_cliente = Column(String(120), nullable=False)
    explicacion = Column(Text, nullable=False)
    fecha_hora = Column(DateTime, default=datetime.utcnow, nullable=False)
    user_id = Column(String(64), nullable=False)
    company_id = Column(String(64), nullable=False)

    caja = relationship("Caja", back_populates="notas_credito")
