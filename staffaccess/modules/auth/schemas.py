from pydantic import BaseModel
from typing import Optional, List


class CurrentUserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    role: Optional[str] = None
    staff_role: Optional[str] = None
    is_super_admin: bool = False
    permissions: List[str]
