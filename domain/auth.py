"""Domain Entities - Auth"""
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID, uuid4
from typing import Optional


class StaffRole(str, Enum):
    FRONT_DESK = "FRONT_DESK"
    REVENUE_MANAGER = "REVENUE_MANAGER"
    ADMIN = "ADMIN"


class User(BaseModel):
    """Hotel staff member using the booking API"""
    user_id: UUID = Field(default_factory=uuid4)
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: StaffRole = StaffRole.FRONT_DESK
    disabled: bool = False

    model_config = ConfigDict(from_attributes=True)

    def can_manage_inventory(self) -> bool:
        """Room type and inventory configuration is limited to managers"""
        return self.role in (StaffRole.REVENUE_MANAGER, StaffRole.ADMIN)


class UserInDB(User):
    """User with hashed password for DB storage"""
    hashed_password: str
