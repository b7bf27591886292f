import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordRequestForm

from dynqr import auth, crud, database, geo, models, qr_utils, redirect, schemas, stats

load_dotenv(Path(__file__).parent.parent / ".env")

ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")

# --- Logging ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
logger = logging.getLogger("dynqr")

# --- DB tables ---
models.Base.metadata.create_all(bind=database.engine)

app = FastAPI(
    title="Dynamic QR Tracker",
    description="Dynamic QR codes that redirect through a tracked short link. Change or pause the destination without reprinting.",
    version="1.0.0",
)

SCAN_PATH = "/dynamic-qr"


class ManagementCORSMiddleware(CORSMiddleware):
    """CORS for the management API only.

    The scan entry point answers preflights and sets its own fixed CORS headers,
    so its requests bypass this middleware untouched.
    """

    def __init__(self, app, exempt_paths=(), **kwargs):
        super().__init__(app, **kwargs)
        self.exempt_paths = frozenset(exempt_paths)

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["path"] in self.exempt_paths:
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)

# --- CORS (allow frontend dev servers, etc.) ---
origins = ["*"] if ENVIRONMENT == "dev" else [
    os.getenv("PUBLIC_BASE_URL", "http://localhost:8000"),
]
app.add_middleware(
    ManagementCORSMiddleware,
    exempt_paths=[SCAN_PATH],
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def public_base_url(request: Request) -> str:
    return os.getenv("PUBLIC_BASE_URL") or str(request.base_url).rstrip("/")

def redirect_url_for(request: Request, short_code: str) -> str:
    return f"{public_base_url(request)}{SCAN_PATH}?code={short_code}"

def code_out(request: Request, code: models.DynamicCode, scan_count: int = 0) -> schemas.DynamicCodeOut:
    return schemas.DynamicCodeOut.model_validate(
        {
            **{column.name: getattr(code, column.name) for column in models.DynamicCode.__table__.columns},
            "scan_count": scan_count,
            "redirect_url": redirect_url_for(request, code.short_code),
        }
    )

def owned_code(code_id: int, db, user: str) -> models.DynamicCode:
    code = crud.get_dynamic_code(db, code_id, user)
    if not code:
        raise HTTPException(status_code=404, detail="QR code not found")
    return code

# Small config for frontend to know public base URL
@app.get("/config", include_in_schema=False)
def get_config(request: Request):
    return {"public_base_url": public_base_url(request)}

# Health check (useful for uptime monitors & load balancers)
@app.get("/health", include_in_schema=False)
def health():
    return {"status": "ok", "env": ENVIRONMENT}

# ---------- Scan entry point ----------
@app.api_route(
    SCAN_PATH,
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    include_in_schema=False,
)
def dynamic_qr(request: Request, db=Depends(database.get_db)):
    return redirect.handle_dynamic_qr(request, db)

# ---------- API ----------
@app.post("/login", response_model=schemas.Token)
def login(form_data: OAuth2PasswordRequestForm = Depends()):
    if not auth.authenticate_user(form_data.username, form_data.password):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    token = auth.create_access_token({"sub": form_data.username})
    return {"access_token": token, "token_type": "bearer"}

@app.post("/dynamic", response_model=schemas.DynamicCodeOut, status_code=201)
def create_dynamic_code(
    code_in: schemas.DynamicCodeCreate,
    request: Request,
    db=Depends(database.get_db),
    user=Depends(auth.get_current_user),
):
    code = crud.create_dynamic_code(db, user, code_in)
    logger.info("Created QR code %s (%s) -> %s by=%s", code.id, code.short_code, code.target_url, user)
    return code_out(request, code)

@app.get("/dynamic", response_model=schemas.PaginatedCodes)
def list_dynamic_codes(
    request: Request,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db=Depends(database.get_db),
    user=Depends(auth.get_current_user),
):
    rows = crud.get_dynamic_codes(db, user, skip=skip, limit=limit)
    total = crud.count_dynamic_codes(db, user)
    items = [code_out(request, code, count) for code, count in rows]
    return {"items": items, "total": total, "skip": skip, "limit": limit}

@app.get("/dynamic/{code_id}", response_model=schemas.DynamicCodeOut)
def get_dynamic_code(code_id: int, request: Request, db=Depends(database.get_db), user=Depends(auth.get_current_user)):
    code = owned_code(code_id, db, user)
    return code_out(request, code, crud.count_scans(db, code.id))

@app.patch("/dynamic/{code_id}", response_model=schemas.DynamicCodeOut)
def update_dynamic_code(
    code_id: int,
    code_in: schemas.DynamicCodeUpdate,
    request: Request,
    db=Depends(database.get_db),
    user=Depends(auth.get_current_user),
):
    code = crud.update_dynamic_code(db, owned_code(code_id, db, user), code_in)
    logger.info("Updated QR code %s with %s by=%s", code_id, code_in.model_dump(exclude_unset=True), user)
    return code_out(request, code, crud.count_scans(db, code.id))

@app.delete("/dynamic/{code_id}", response_model=schemas.MessageOut)
def delete_dynamic_code(code_id: int, db=Depends(database.get_db), user=Depends(auth.get_current_user)):
    code = owned_code(code_id, db, user)
    short_code = code.short_code
    crud.delete_dynamic_code(db, code)
    logger.info("Deleted QR code %s (%s) by=%s", code_id, short_code, user)
    return {"ok": True, "detail": f"QR code '{short_code}' deleted"}

@app.get("/dynamic/{code_id}/stats", response_model=schemas.ScanStats)
def dynamic_code_stats(code_id: int, db=Depends(database.get_db), user=Depends(auth.get_current_user)):
    code = owned_code(code_id, db, user)
    summary = stats.summarize_scans(crud.get_scans(db, code.id))
    return schemas.ScanStats.model_validate(summary, from_attributes=True)

@app.get("/dynamic/{code_id}/qr")
def dynamic_code_qr(
    code_id: int,
    request: Request,
    fill_color: str = Query("black", max_length=32),
    back_color: str = Query("white", max_length=32),
    box_size: int = Query(10, ge=1, le=40),
    format: str = Query("base64", pattern="^(base64|png)$"),
    db=Depends(database.get_db),
    user=Depends(auth.get_current_user),
):
    code = owned_code(code_id, db, user)
    data = redirect_url_for(request, code.short_code)
    style = {"fill_color": fill_color, "back_color": back_color, "box_size": box_size}
    try:
        if format == "png":
            return Response(content=qr_utils.generate_qr_png(data, **style), media_type="image/png")
        return {"qr_base64": qr_utils.generate_qr_base64(data, **style)}
    except ValueError as exc:
        # Unknown color names surface from PIL as ValueError
        raise HTTPException(status_code=400, detail=str(exc))

@app.post("/scans/enrich", response_model=schemas.EnrichResult)
def enrich_scans(
    limit: int = Query(100, ge=1, le=1000),
    db=Depends(database.get_db),
    user=Depends(auth.get_current_user),
):
    checked, updated = geo.enrich_scans(db, user, limit=limit)
    return {"checked": checked, "updated": updated}

# ---------- Folders & saved static codes ----------
def owned_folder(folder_id: int, db, user: str) -> models.Folder:
    folder = crud.get_folder(db, folder_id, user)
    if not folder:
        raise HTTPException(status_code=404, detail="Folder not found")
    return folder

def owned_qr(qr_id: int, db, user: str) -> models.QRCode:
    qr = crud.get_qr_code(db, qr_id, user)
    if not qr:
        raise HTTPException(status_code=404, detail="QR code not found")
    return qr

def check_folder(folder_id: int | None, db, user: str) -> None:
    if folder_id is not None:
        owned_folder(folder_id, db, user)

@app.post("/folders", response_model=schemas.FolderOut, status_code=201)
def create_folder(folder_in: schemas.FolderIn, db=Depends(database.get_db), user=Depends(auth.get_current_user)):
    folder = crud.create_folder(db, user, folder_in)
    logger.info("Created folder %s (%s) by=%s", folder.id, folder.name, user)
    return folder

@app.get("/folders", response_model=list[schemas.FolderOut])
def list_folders(db=Depends(database.get_db), user=Depends(auth.get_current_user)):
    return crud.get_folders(db, user)

@app.patch("/folders/{folder_id}", response_model=schemas.FolderOut)
def rename_folder(
    folder_id: int, folder_in: schemas.FolderIn, db=Depends(database.get_db), user=Depends(auth.get_current_user)
):
    return crud.rename_folder(db, owned_folder(folder_id, db, user), folder_in.name)

@app.delete("/folders/{folder_id}", response_model=schemas.MessageOut)
def delete_folder(folder_id: int, db=Depends(database.get_db), user=Depends(auth.get_current_user)):
    folder = owned_folder(folder_id, db, user)
    name = folder.name
    crud.delete_folder(db, folder)
    logger.info("Deleted folder %s (%s) by=%s", folder_id, name, user)
    return {"ok": True, "detail": f"Folder '{name}' deleted"}

@app.get("/folders/{folder_id}/qrcodes", response_model=schemas.PaginatedQRCodes)
def list_folder_qr_codes(
    folder_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db=Depends(database.get_db),
    user=Depends(auth.get_current_user),
):
    owned_folder(folder_id, db, user)
    items = crud.get_qr_codes(db, user, folder_id=folder_id, skip=skip, limit=limit)
    total = crud.count_qr_codes(db, user, folder_id=folder_id)
    return {"items": items, "total": total, "skip": skip, "limit": limit}

@app.post("/qrcodes", response_model=schemas.QRCodeOut, status_code=201)
def create_qr_code(qr_in: schemas.QRCodeCreate, db=Depends(database.get_db), user=Depends(auth.get_current_user)):
    check_folder(qr_in.folder_id, db, user)
    qr = crud.create_qr_code(db, user, qr_in)
    logger.info("Saved static QR code %s (%s) by=%s", qr.id, qr.type, user)
    return qr

@app.get("/qrcodes", response_model=schemas.PaginatedQRCodes)
def list_qr_codes(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db=Depends(database.get_db),
    user=Depends(auth.get_current_user),
):
    items = crud.get_qr_codes(db, user, skip=skip, limit=limit)
    total = crud.count_qr_codes(db, user)
    return {"items": items, "total": total, "skip": skip, "limit": limit}

@app.get("/qrcodes/{qr_id}", response_model=schemas.QRCodeOut)
def get_qr_code(qr_id: int, db=Depends(database.get_db), user=Depends(auth.get_current_user)):
    return owned_qr(qr_id, db, user)

@app.patch("/qrcodes/{qr_id}", response_model=schemas.QRCodeOut)
def update_qr_code(
    qr_id: int, qr_in: schemas.QRCodeUpdate, db=Depends(database.get_db), user=Depends(auth.get_current_user)
):
    qr = owned_qr(qr_id, db, user)
    if "folder_id" in qr_in.model_fields_set:
        check_folder(qr_in.folder_id, db, user)
    return crud.update_qr_code(db, qr, qr_in)

@app.put("/qrcodes/{qr_id}/folder", response_model=schemas.QRCodeOut)
def move_qr_code(
    qr_id: int, move: schemas.QRCodeMove, db=Depends(database.get_db), user=Depends(auth.get_current_user)
):
    qr = owned_qr(qr_id, db, user)
    check_folder(move.folder_id, db, user)
    logger.info("Moving QR code %s to folder %s by=%s", qr_id, move.folder_id, user)
    return crud.move_qr_code(db, qr, move.folder_id)

@app.delete("/qrcodes/{qr_id}", response_model=schemas.MessageOut)
def delete_qr_code(qr_id: int, db=Depends(database.get_db), user=Depends(auth.get_current_user)):
    qr = owned_qr(qr_id, db, user)
    name = qr.name
    crud.delete_qr_code(db, qr)
    logger.info("Deleted static QR code %s by=%s", qr_id, user)
    return {"ok": True, "detail": f"QR code '{name}' deleted"}

@app.get("/qrcodes/{qr_id}/qr")
def qr_code_image(
    qr_id: int,
    format: str = Query("base64", pattern="^(base64|png)$"),
    db=Depends(database.get_db),
    user=Depends(auth.get_current_user),
):
    qr = owned_qr(qr_id, db, user)
    options = qr.options or {}
    style = {key: options[key] for key in ("fill_color", "back_color", "box_size") if key in options}
    try:
        if format == "png":
            return Response(content=qr_utils.generate_qr_png(qr.content, **style), media_type="image/png")
        return {"qr_base64": qr_utils.generate_qr_base64(qr.content, **style)}
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
