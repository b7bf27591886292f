from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DynamicCodeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    target_url: str = Field(min_length=1, max_length=2048)

class DynamicCodeUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    target_url: str | None = Field(None, min_length=1, max_length=2048)
    active: bool | None = None

class DynamicCodeOut(BaseModel):
    id: int
    name: str
    short_code: str
    target_url: str
    active: bool
    user_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    scan_count: int = 0
    redirect_url: str

    model_config = ConfigDict(from_attributes=True)

class PaginatedCodes(BaseModel):
    items: list[DynamicCodeOut]
    total: int
    skip: int
    limit: int

class ScanOut(BaseModel):
    id: int
    dynamic_code_id: int
    scanned_at: datetime
    user_agent: str | None = None
    referrer: str | None = None
    ip_address: str | None = None
    country: str | None = None
    city: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    model_config = ConfigDict(from_attributes=True)

class DailyScans(BaseModel):
    date: str
    scans: int

class CountryScans(BaseModel):
    name: str
    value: int

class ScanStats(BaseModel):
    total_scans: int
    scans_by_date: dict[str, int]
    scans_by_country: dict[str, int]
    daily: list[DailyScans]
    countries: list[CountryScans]
    first_scan: ScanOut | None
    unique_countries: int
    raw_scans: list[ScanOut]

class EnrichResult(BaseModel):
    checked: int
    updated: int

class Token(BaseModel):
    access_token: str
    token_type: str

class MessageOut(BaseModel):
    ok: bool
    detail: str

class FolderIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)

class FolderOut(BaseModel):
    id: int
    name: str
    user_id: str
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

class QRCodeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: str = Field("url", min_length=1, max_length=32)
    content: str = Field(min_length=1)
    options: dict = Field(default_factory=dict)
    folder_id: int | None = None

class QRCodeUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    type: str | None = Field(None, min_length=1, max_length=32)
    content: str | None = Field(None, min_length=1)
    options: dict | None = None
    # Explicit null moves the code out of its folder
    folder_id: int | None = None

class QRCodeMove(BaseModel):
    folder_id: int | None

class QRCodeOut(BaseModel):
    id: int
    name: str
    type: str
    content: str
    options: dict
    folder_id: int | None
    user_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

class PaginatedQRCodes(BaseModel):
    items: list[QRCodeOut]
    total: int
    skip: int
    limit: int
