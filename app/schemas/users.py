from pydantic import BaseModel

from app.models.users import UserRole


class TokenPayload(BaseModel):
    """Claims the identity provider puts in an access token."""

    sub: str
    role: UserRole = UserRole.USER
