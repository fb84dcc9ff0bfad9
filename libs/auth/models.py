from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

SERVICE_ROLE = "service_role"


class AuthUser(BaseModel):
    """
    Represents an authenticated caller decoded from the bearer token.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = "buyer"  # buyer | seller | admin | service_role

    @property
    def is_service(self) -> bool:
        return self.role == SERVICE_ROLE
