"""Explicit session context passed into the messaging core."""

from pydantic import BaseModel, Field

from models.user import User


class Session(BaseModel):
    """The signed-in user and their opaque bearer credential.

    Owned by the authentication layer; the messaging core only reads it.
    Instances are passed by reference to the client and the messenger
    rather than looked up from a global.

    Args:
        user: The signed-in user.
        access_token: Opaque bearer credential attached to every request.
    """

    user: User = Field(description="The signed-in user")
    access_token: str = Field(default="", description="Opaque bearer credential")

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)
