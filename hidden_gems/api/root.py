from fastapi import APIRouter

from hidden_gems.core.config import APP_NAME

router = APIRouter(prefix="/api", tags=["root"])

@router.get("/")
async def api_root():
    return {"message": f"{APP_NAME} API"}
