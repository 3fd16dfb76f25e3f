from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AgencyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    code: str
    domain: Optional[str] = None
    is_active: bool
    created_at: datetime
