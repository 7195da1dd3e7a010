from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from app.storage.database import store_errors
from app.storage.models import User


class UserProfile(BaseModel):
    """Read-only view of an owner: contact address and notification preferences."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: Optional[str] = None
    email_notifications: bool = True
    push_notifications: bool = False
    sms_notifications: bool = False

    def channel_enabled(self, channel: str) -> bool:
        return {
            "email": self.email_notifications,
            "push": self.push_notifications,
            "sms": self.sms_notifications,
        }.get(channel, False)


class UserDirectory:
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: Optional[str]) -> Optional[UserProfile]:
        if not user_id:
            return None
        with store_errors("user_lookup"):
            user = self.session.get(User, user_id)
        if user is None:
            return None
        return UserProfile.model_validate(user)
