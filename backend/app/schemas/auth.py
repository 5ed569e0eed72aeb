# backend/app/schemas/auth.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class MeResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    is_active: bool = True
    roles: List[str] = Field(default_factory=list)
