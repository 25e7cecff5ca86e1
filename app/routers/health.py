from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.db import database
from app.realtime.hub import ConnectionHub
from app.routers.chat import get_hub

router = APIRouter(tags=["health"])


@router.get("/health")
def health(connections: ConnectionHub = Depends(get_hub)):
    ok = database.ping()
    body = {"status": "ok" if ok else "degraded", "connections": len(connections)}
    return JSONResponse(status_code=200 if ok else 503, content=body)
