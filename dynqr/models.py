from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from dynqr.database import Base


class DynamicCode(Base):
    __tablename__ = "dynamic_qr_codes"

    id = Column(Integer, primary_key=True, index=True)
    short_code = Column(String(16), unique=True, index=True, nullable=False)
    target_url = Column(String(2048), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    name = Column(String(255), nullable=False)
    user_id = Column(String(255), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    scans = relationship("ScanEvent", back_populates="dynamic_code", cascade="all, delete-orphan")


class ScanEvent(Base):
    __tablename__ = "dynamic_qr_scans"

    id = Column(Integer, primary_key=True, index=True)
    dynamic_code_id = Column(
        Integer, ForeignKey("dynamic_qr_codes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    scanned_at = Column(DateTime(timezone=True), nullable=False)
    user_agent = Column(Text)
    referrer = Column(Text)
    ip_address = Column(String(64))
    country = Column(String(128))
    city = Column(String(128))
    latitude = Column(Float)
    longitude = Column(Float)

    dynamic_code = relationship("DynamicCode", back_populates="scans")


class Folder(Base):
    __tablename__ = "folders"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    user_id = Column(String(255), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Deleting a folder leaves its codes in place with folder_id cleared
    qr_codes = relationship("QRCode", back_populates="folder")


class QRCode(Base):
    """A saved static QR code: the content is encoded directly, no redirect."""

    __tablename__ = "qr_codes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    type = Column(String(32), nullable=False, default="url")
    content = Column(Text, nullable=False)
    options = Column(JSON, nullable=False, default=dict)
    folder_id = Column(Integer, ForeignKey("folders.id", ondelete="SET NULL"), index=True)
    user_id = Column(String(255), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    folder = relationship("Folder", back_populates="qr_codes")
