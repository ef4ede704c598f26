from sqlalchemy import Column, String, Boolean, Text, Integer, JSON, Index
from sqlalchemy.orm import validates
from talesy.db.base import BaseModel

# Keys of User.notification_preferences; a missing key means "enabled".
PREFERENCE_KEYS = ("comments", "follows", "likes", "messages", "weekly_digest")

class User(BaseModel):
    __tablename__ = "users"

    name = Column(String(100))
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255))
    bio = Column(Text)
    avatar_url = Column(String(500))
    cover_image_url = Column(String(500))
    is_active = Column(Boolean, default=True, nullable=False)

    # Incremented to invalidate every issued session token
    token_version = Column(Integer, default=0, nullable=False)

    notification_preferences = Column(JSON, default=dict, nullable=False)

    # Denormalized counts, recomputed from the follows table
    followers_count = Column(Integer, default=0, nullable=False)
    following_count = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index('ix_users_created_at', 'created_at'),
        Index('ix_users_is_active', 'is_active'),
    )

    @validates("email")
    def _normalize_email(self, key, value):
        return value.strip().lower() if value else value

    def wants(self, preference: str) -> bool:
        """Whether the user accepts notifications for ``preference``."""
        prefs = self.notification_preferences or {}
        return prefs.get(preference, True) is not False
