from typing import Optional
from pydantic import BaseModel


class PageViewCreate(BaseModel):
    page: Optional[str] = None
    path: Optional[str] = None
    referrer: Optional[str] = None
