from typing import Any, Optional
from pydantic import BaseModel


class RatingWrite(BaseModel):
    # Parsed by the rating service so bad scores get a readable message
    score: Optional[Any] = None
    comment: Optional[str] = None
