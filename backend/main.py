from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse
import logging
import os
import time

from db.database import init_db
from routers import images, inventory, lookups, receipts, recipes, spending

# ── Logging setup ─────────────────────────────────────────────────────────────
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
# Quiet noisy libraries unless we're in DEBUG
if LOG_LEVEL != "DEBUG":
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)

logger = logging.getLogger("larder")

VERSION = "0.1.0"

# Keys for optional integrations; each missing one only disables its feature
OPTIONAL_KEYS = {
    "ANTHROPIC_API_KEY": "receipt analysis",
    "SPOONACULAR_API_KEY": "online recipe search (local recipes only)",
    "PEXELS_API_KEY": "recipe photos (placeholder image only)",
    "DEEPAI_API_KEY": "image enhancement",
}

app = FastAPI(
    title="Larder — Receipt Scanner & Food Inventory",
    description="Scan grocery receipts, track what's in the kitchen, and find recipes for it",
    version=VERSION,
)

_cors_origins = os.environ.get("CORS_ORIGINS", "").strip()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins.split(",") if _cors_origins else ["*"],
    allow_credentials=bool(_cors_origins),  # only send credentials when origins are explicit
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(receipts.router,  prefix="/api/receipts",  tags=["receipts"])
app.include_router(inventory.router, prefix="/api/inventory", tags=["inventory"])
app.include_router(recipes.router,   prefix="/api/recipes",   tags=["recipes"])
app.include_router(lookups.router,   prefix="/api",           tags=["lookups"])
app.include_router(images.router,    prefix="/api/images",    tags=["images"])
app.include_router(spending.router,  prefix="/api/spending",  tags=["spending"])

# Serve frontend static files
FRONTEND_DIR = os.environ.get("FRONTEND_DIR", "/app/frontend")
if os.path.exists(FRONTEND_DIR):
    app.mount("/assets", StaticFiles(directory=f"{FRONTEND_DIR}/assets"), name="assets")

    @app.get("/", include_in_schema=False)
    async def serve_frontend():
        return FileResponse(f"{FRONTEND_DIR}/index.html")

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    elapsed = (time.time() - start) * 1000
    if LOG_LEVEL == "DEBUG" or response.status_code >= 400:
        logger.log(
            logging.WARNING if response.status_code >= 400 else logging.DEBUG,
            "%s %s → %s (%.0fms)",
            request.method, request.url.path, response.status_code, elapsed,
        )
    return response

@app.on_event("startup")
async def on_startup():
    logger.info("Starting Larder v%s  LOG_LEVEL=%s  DB=%s",
                VERSION, LOG_LEVEL, os.environ.get("DB_PATH", "(default)"))
    for key, feature in OPTIONAL_KEYS.items():
        if not os.environ.get(key):
            logger.warning("%s not set — %s disabled", key, feature)
    await init_db()

@app.get("/api/health")
async def health():
    return {"status": "ok", "version": VERSION}
