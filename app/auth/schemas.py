from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Caller resolved from the access token. student_id is present for student tokens only."""

    id: UUID
    role: str
    permissions: Dict[str, Dict[str, bool]] = {}
    student_id: Optional[UUID] = None
