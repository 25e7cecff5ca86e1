import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from app.core.config import settings
from app.core.error_handlers import add_exception_handlers
from app.routers.chat import router as chat_router
from app.routers.health import router as health_router
from app.routers.messages import router as messages_router
from app.db.database import init_db

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = FastAPI(title="Friend Chat Room")

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

# Ensure tables exist
init_db()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)
add_exception_handlers(app)

# Routers
app.include_router(chat_router)
app.include_router(health_router)
app.include_router(messages_router)

# Client assets are built elsewhere; serve them when they are deployed alongside
if PUBLIC_DIR.exists():
    app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")

@app.get("/", include_in_schema=False)
def serve_frontend():
    """
    Return the chat UI when users hit the root URL.
    """
    index_file = PUBLIC_DIR / "index.html"
    if index_file.exists():
        return FileResponse(index_file)
    return {"message": "UI not found"}
