# app/main.py

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
import os

# --- Import Routers ---
from .auth import router as auth_router
from .sessions_api import router as sessions_router
from .sim_api import router as sim_router
from .config import settings
from .db import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="PM Scenario Lab API", lifespan=lifespan)


# --- Include API Routers ---
app.include_router(auth_router, prefix="/api/auth", tags=["Authentication"])
app.include_router(sessions_router, prefix="/api/sessions", tags=["Sessions"])
app.include_router(sim_router, prefix="/api/sim", tags=["Simulation"])


# --- Health Check ---
@app.get("/api/health", tags=["System"])
async def health_check():
    return {"status": "ok"}


# --- Pre-built browser client (optional) ---
# Relative STATIC_DIR is resolved against the project root, one level up from app/
project_root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
static_dir = settings.STATIC_DIR if os.path.isabs(settings.STATIC_DIR) else os.path.join(project_root_dir, settings.STATIC_DIR)
index_html_path = os.path.join(static_dir, "index.html")

if os.path.isdir(os.path.join(static_dir, "assets")):
    app.mount("/assets", StaticFiles(directory=os.path.join(static_dir, "assets")), name="assets")


@app.get("/", tags=["Frontend"], include_in_schema=False)
async def serve_index():
    if os.path.exists(index_html_path):
        return FileResponse(index_html_path)
    print(f"INFO: index.html not found at {index_html_path}")
    return JSONResponse({"detail": "Client bundle not built. The API is served under /api."}, status_code=404)
