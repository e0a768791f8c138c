from fastapi import APIRouter, Depends

from pocketledger.core.config import Settings
from pocketledger.db.dal import Database
from pocketledger.db.migrate import SCHEMA_VERSION_KEY
from .deps import get_app_settings, get_db

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness and schema version")
async def health(
    db: Database = Depends(get_db), settings: Settings = Depends(get_app_settings)
):
    version = db.get_value(SCHEMA_VERSION_KEY)
    return {
        "status": "ok",
        "app": settings.app_name,
        "version": settings.version,
        "schema_version": int(version) if version else None,
    }
