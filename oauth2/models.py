"""
SQLAlchemy models for the OAuth2 / OpenID-Connect provider.

Models:
- Client: registered third-party application (secret stored as a bcrypt hash)
- RedirectUrl: redirect targets registered for a client
- Scope: consentable unit of user-data disclosure
- ToAgree: per-client scope declaration, essential or optional
- Connection: a user's consent grant to a client; its id is the authorization code
- RefreshToken: the single live refresh token of a (user, client) pair

Clients, redirect URLs, scopes and ToAgree rows are managed by the
administrative application flow; the provider only reads them.
"""

import uuid

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, String, Table, UniqueConstraint
)
from sqlalchemy.orm import relationship

from auth.models import User
from storage.relational.database import Base, utcnow


connection_scopes = Table(
    "oauth2_connection_scopes",
    Base.metadata,
    Column("connection_id", String(36), ForeignKey("oauth2_connections.id", ondelete="CASCADE"), primary_key=True),
    Column("scope_id", Integer, ForeignKey("oauth2_scopes.id", ondelete="CASCADE"), primary_key=True),
)


class Client(Base):
    """OAuth2 client application"""

    __tablename__ = "oauth2_clients"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    profile = Column(String(1024), nullable=False, default="")
    secret = Column(String(255), nullable=False)  # bcrypt hash, never plaintext
    use_oauth = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)

    redirect_urls = relationship("RedirectUrl", back_populates="client", cascade="all, delete-orphan")
    to_agree = relationship("ToAgree", back_populates="client", cascade="all, delete-orphan")
    connections = relationship("Connection", back_populates="client")

    def __repr__(self):
        return f"<Client(id={self.id}, title={self.title}, use_oauth={self.use_oauth})>"


class RedirectUrl(Base):
    """Redirect URL registered for a client; matched exactly"""

    __tablename__ = "oauth2_redirect_urls"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(String(36), ForeignKey("oauth2_clients.id", ondelete="CASCADE"), nullable=False, index=True)
    value = Column(String(2048), nullable=False)

    client = relationship("Client", back_populates="redirect_urls")


class Scope(Base):
    """
    Consentable scope.

    Attributes:
        title: Display label shown on the consent screen
        item: User attribute key released by this scope (e.g. "email")
    """

    __tablename__ = "oauth2_scopes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    item = Column(String(100), nullable=False)

    def __repr__(self):
        return f"<Scope(id={self.id}, item={self.item})>"


class ToAgree(Base):
    """Scope declared by a client, with its essential/optional designation"""

    __tablename__ = "oauth2_to_agree"
    __table_args__ = (
        UniqueConstraint("client_id", "scope_id", name="uq_oauth2_to_agree_client_scope"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = Column(String(36), ForeignKey("oauth2_clients.id", ondelete="CASCADE"), nullable=False, index=True)
    scope_id = Column(Integer, ForeignKey("oauth2_scopes.id", ondelete="CASCADE"), nullable=False)
    is_essential = Column(Boolean, nullable=False, default=False)

    client = relationship("Client", back_populates="to_agree")
    scope = relationship("Scope")


class Connection(Base):
    """
    Consent grant of a user to a client.

    The generated id doubles as the authorization code handed to the
    client's redirect target. One row per (user, client) pair; the unique
    constraint is what makes concurrent consent requests safe.
    """

    __tablename__ = "oauth2_connections"
    __table_args__ = (
        UniqueConstraint("user_id", "client_id", name="uq_oauth2_connection_user_client"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("oauth2_clients.id", ondelete="CASCADE"), nullable=False, index=True)
    connected_at = Column(DateTime, nullable=False, default=utcnow)
    nonce = Column(String(255), nullable=True)

    user = relationship(User)
    client = relationship("Client", back_populates="connections")
    scopes = relationship("Scope", secondary=connection_scopes, order_by="Scope.id")

    def __repr__(self):
        return f"<Connection(id={self.id}, user_id={self.user_id}, client_id={self.client_id})>"


class RefreshToken(Base):
    """Persisted OAuth2 refresh token; at most one per (user, client)"""

    __tablename__ = "oauth2_refresh_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "client_id", name="uq_oauth2_refresh_user_client"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    value = Column(String(1024), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("oauth2_clients.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)
