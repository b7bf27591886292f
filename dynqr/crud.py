import secrets
import string
from typing import NamedTuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from dynqr import models, schemas

ALPHABET = string.ascii_letters + string.digits
SHORT_CODE_LENGTH = 8


class ScanLogResult(NamedTuple):
    """Outcome of a best-effort scan insert: exactly one of the two is set."""

    scan: models.ScanEvent | None
    error: Exception | None

    @property
    def ok(self) -> bool:
        return self.error is None


def generate_code(length: int = SHORT_CODE_LENGTH) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))

def create_dynamic_code(db: Session, user_id: str, code_in: schemas.DynamicCodeCreate) -> models.DynamicCode:
    short_code = generate_code()
    while get_dynamic_code_by_short_code(db, short_code):
        short_code = generate_code()
    code = models.DynamicCode(
        short_code=short_code,
        name=code_in.name,
        target_url=code_in.target_url,
        user_id=user_id,
        active=True,
    )
    db.add(code)
    db.commit()
    db.refresh(code)
    return code

def get_dynamic_code_by_short_code(db: Session, short_code: str) -> models.DynamicCode | None:
    # Active and paused rows alike; callers branch on .active
    return db.query(models.DynamicCode).filter_by(short_code=short_code).first()

def get_dynamic_code(db: Session, code_id: int, user_id: str) -> models.DynamicCode | None:
    return db.query(models.DynamicCode).filter_by(id=code_id, user_id=user_id).first()

def get_dynamic_codes(
    db: Session, user_id: str, skip: int = 0, limit: int = 100
) -> list[tuple[models.DynamicCode, int]]:
    """Owner's codes, newest first, each paired with its scan count."""
    scan_count = func.count(models.ScanEvent.id)
    rows = (
        db.query(models.DynamicCode, scan_count)
        .outerjoin(models.ScanEvent, models.ScanEvent.dynamic_code_id == models.DynamicCode.id)
        .filter(models.DynamicCode.user_id == user_id)
        .group_by(models.DynamicCode.id)
        .order_by(models.DynamicCode.created_at.desc(), models.DynamicCode.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return [(code, count) for code, count in rows]

def count_dynamic_codes(db: Session, user_id: str) -> int:
    return db.query(models.DynamicCode).filter_by(user_id=user_id).count()

def update_dynamic_code(
    db: Session, code: models.DynamicCode, code_in: schemas.DynamicCodeUpdate
) -> models.DynamicCode:
    for field, value in code_in.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(code, field, value)
    db.commit()
    db.refresh(code)
    return code

def delete_dynamic_code(db: Session, code: models.DynamicCode) -> None:
    db.delete(code)
    db.commit()

def count_scans(db: Session, code_id: int) -> int:
    return db.query(models.ScanEvent).filter_by(dynamic_code_id=code_id).count()

def get_scans(db: Session, code_id: int) -> list[models.ScanEvent]:
    return (
        db.query(models.ScanEvent)
        .filter_by(dynamic_code_id=code_id)
        .order_by(models.ScanEvent.scanned_at.desc(), models.ScanEvent.id.desc())
        .all()
    )

def record_scan(db: Session, record: dict) -> ScanLogResult:
    """Insert one scan event. Store errors are returned, never raised."""
    try:
        scan = models.ScanEvent(**record)
        db.add(scan)
        db.commit()
        db.refresh(scan)
    except Exception as exc:
        db.rollback()
        return ScanLogResult(scan=None, error=exc)
    return ScanLogResult(scan=scan, error=None)

def get_scans_missing_geo(db: Session, user_id: str, limit: int = 100) -> list[models.ScanEvent]:
    return (
        db.query(models.ScanEvent)
        .join(models.DynamicCode)
        .filter(
            models.DynamicCode.user_id == user_id,
            models.ScanEvent.ip_address.isnot(None),
            models.ScanEvent.country.is_(None),
        )
        .order_by(models.ScanEvent.id)
        .limit(limit)
        .all()
    )

def create_folder(db: Session, user_id: str, folder_in: schemas.FolderIn) -> models.Folder:
    folder = models.Folder(name=folder_in.name, user_id=user_id)
    db.add(folder)
    db.commit()
    db.refresh(folder)
    return folder

def get_folder(db: Session, folder_id: int, user_id: str) -> models.Folder | None:
    return db.query(models.Folder).filter_by(id=folder_id, user_id=user_id).first()

def get_folders(db: Session, user_id: str) -> list[models.Folder]:
    return (
        db.query(models.Folder)
        .filter_by(user_id=user_id)
        .order_by(models.Folder.created_at.desc(), models.Folder.id.desc())
        .all()
    )

def rename_folder(db: Session, folder: models.Folder, name: str) -> models.Folder:
    folder.name = name
    db.commit()
    db.refresh(folder)
    return folder

def delete_folder(db: Session, folder: models.Folder) -> None:
    # Codes in the folder are kept; the relationship clears their folder_id
    db.delete(folder)
    db.commit()

def create_qr_code(db: Session, user_id: str, qr_in: schemas.QRCodeCreate) -> models.QRCode:
    qr = models.QRCode(user_id=user_id, **qr_in.model_dump())
    db.add(qr)
    db.commit()
    db.refresh(qr)
    return qr

def get_qr_code(db: Session, qr_id: int, user_id: str) -> models.QRCode | None:
    return db.query(models.QRCode).filter_by(id=qr_id, user_id=user_id).first()

def get_qr_codes(
    db: Session, user_id: str, folder_id: int | None = None, skip: int = 0, limit: int = 100
) -> list[models.QRCode]:
    query = db.query(models.QRCode).filter_by(user_id=user_id)
    if folder_id is not None:
        query = query.filter_by(folder_id=folder_id)
    return (
        query.order_by(models.QRCode.created_at.desc(), models.QRCode.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

def count_qr_codes(db: Session, user_id: str, folder_id: int | None = None) -> int:
    query = db.query(models.QRCode).filter_by(user_id=user_id)
    if folder_id is not None:
        query = query.filter_by(folder_id=folder_id)
    return query.count()

def update_qr_code(db: Session, qr: models.QRCode, qr_in: schemas.QRCodeUpdate) -> models.QRCode:
    for field, value in qr_in.model_dump(exclude_unset=True).items():
        if value is not None or field == "folder_id":
            setattr(qr, field, value)
    db.commit()
    db.refresh(qr)
    return qr

def move_qr_code(db: Session, qr: models.QRCode, folder_id: int | None) -> models.QRCode:
    qr.folder_id = folder_id
    db.commit()
    db.refresh(qr)
    return qr

def delete_qr_code(db: Session, qr: models.QRCode) -> None:
    db.delete(qr)
    db.commit()
