import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.database import get_db
from pulse.platform_settings.schemas import SettingResponse, SettingWriteRequest
from pulse.platform_settings.service import SettingValidationError, get_setting_row, put_setting

logger = structlog.get_logger()
router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/{key}", response_model=SettingResponse)
async def read_setting(key: str, db: AsyncSession = Depends(get_db)):
    row = await get_setting_row(db, key)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Setting not found")
    return SettingResponse(key=row.key, value=row.value, description=row.description, updated_at=row.updated_at)


@router.put("/{key}", response_model=SettingResponse)
async def write_setting(key: str, body: SettingWriteRequest, db: AsyncSession = Depends(get_db)):
    """Validate and store a typed setting. Malformed shapes are rejected with 422."""
    try:
        row = await put_setting(db, key, body.value, body.description)
    except SettingValidationError as exc:
        logger.warning("platform_setting_rejected", key=key, error=exc.message)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return SettingResponse(key=row.key, value=row.value, description=row.description, updated_at=row.updated_at)
