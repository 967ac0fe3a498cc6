# FILE: hidden_gems/api/media.py
from fastapi import APIRouter, Depends

from hidden_gems.core import config
from hidden_gems.api.deps import get_current_user

router = APIRouter(prefix="/api/media", tags=["media"])


@router.get("/upload-config")
async def upload_config(user=Depends(get_current_user)):
    """Unsigned-upload settings for the image CDN; the API only stores the resulting URLs."""
    cloud = config.CLOUDINARY_CLOUD_NAME
    return {
        "cloud_name": cloud,
        "upload_preset": config.CLOUDINARY_UPLOAD_PRESET,
        "upload_url": f"https://api.cloudinary.com/v1_1/{cloud}/auto/upload" if cloud else None,
    }
