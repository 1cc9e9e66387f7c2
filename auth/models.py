"""
SQLAlchemy model for the credential store.

User rows are owned by the surrounding login system; the OAuth2 provider
only reads them (id, profile attributes released through scopes, permission).
"""

from sqlalchemy import Column, String, Integer, DateTime

from storage.relational.database import Base, utcnow


class User(Base):
    """User accounts with a numeric permission level"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False)
    fullname = Column(String(100), nullable=False, default="")
    school_number = Column(String(20), unique=True, nullable=False, index=True)
    email = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    # 0 = member, 3+ = administrator
    permission = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"
