# app/main.py
from pathlib import Path
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
import logging

from app.core.settings import settings
from app.routers.contact import router as contact_router
from app.routers.health import router as health_router

app = FastAPI(title=settings.api_title)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(contact_router)
app.include_router(health_router)

@app.get("/__routes")
async def __routes():
    # openapi paths include routes from included routers on every fastapi version
    return [
        {"methods": sorted(m.upper() for m in ops), "path": path}
        for path, ops in app.openapi()["paths"].items()
    ]

# contact page; mounted last so it does not shadow the API routes
static_dir = Path(__file__).resolve().parent / "static"
app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")

logging.getLogger("uvicorn.error").info(f"[main] serving contact page from {static_dir}")
