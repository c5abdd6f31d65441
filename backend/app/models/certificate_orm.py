"""
ORM models for digital certificates (A1 file-based, A3 token/smartcard).

Status (valid/expiring/expired) is derived from expiration_date on every
read and is deliberately not a column.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, DateTime, JSON, ForeignKey

from backend.app.core.database import Base


class CertificateORM(Base):
    __tablename__ = "certificates"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    entity = Column(String(255), nullable=False)
    identifier = Column(String(32), nullable=False)  # CNPJ/CPF
    type = Column(String(2), nullable=False)  # A1 | A3
    issued_date = Column(DateTime(timezone=True), nullable=False)
    expiration_date = Column(DateTime(timezone=True), nullable=False, index=True)

    # iv:ciphertext, never serialized
    password = Column(Text, nullable=False)
    certificate_file = Column(String(512), nullable=True)
    systems = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)

    created_by = Column(String(36), nullable=False)
    updated_by = Column(String(36), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=lambda: datetime.now(timezone.utc))


class CertificateSystemORM(Base):
    """External system that depends on a certificate."""
    __tablename__ = "certificate_systems"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    certificate_id = Column(
        String(36), ForeignKey("certificates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    url = Column(String(512), nullable=True)
    purpose = Column(String(255), nullable=True)
