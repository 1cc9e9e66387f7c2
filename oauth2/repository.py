"""
Data access layer for the OAuth2 provider.

The repository pattern isolates database operations from the authorization
logic. Methods never commit; the caller owns the transaction.

Repository methods:
- User: get_by_id
- Client: get_by_id, get_redirect_url, list_to_agree
- Scope: get_many
- Connection: get_by_id, get_by_user_and_client, create
- RefreshToken: get_by_user_and_client, delete_for_user_and_client,
  create, count_expired, delete_expired_batch
"""

from datetime import datetime
from typing import Iterable, List, Optional

from loguru import logger
from sqlalchemy.orm import Session, contains_eager, joinedload, selectinload

from auth.models import User
from oauth2.models import Client, Connection, RedirectUrl, RefreshToken, Scope, ToAgree


class UserRepository:
    """Read-only access to the credential store"""

    @staticmethod
    def get_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()


class ClientRepository:
    """Read-only access to registered clients"""

    @staticmethod
    def get_by_id(db: Session, client_id: str) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id).first()

    @staticmethod
    def get_redirect_url(db: Session, client_id: str, value: str) -> Optional[RedirectUrl]:
        """Registered redirect URL of the client equal to value (exact match)"""
        return db.query(RedirectUrl).filter(
            RedirectUrl.client_id == client_id,
            RedirectUrl.value == value
        ).first()

    @staticmethod
    def list_to_agree(db: Session, client_id: str) -> List[ToAgree]:
        """Declared scopes of a client, scope loaded, in scope-catalog order"""
        return db.query(ToAgree).join(ToAgree.scope).options(
            contains_eager(ToAgree.scope)
        ).filter(
            ToAgree.client_id == client_id
        ).order_by(Scope.id).all()


class ScopeRepository:

    @staticmethod
    def get_many(db: Session, scope_ids: Iterable[int]) -> List[Scope]:
        ids = list(scope_ids)
        if not ids:
            return []
        return db.query(Scope).filter(Scope.id.in_(ids)).order_by(Scope.id).all()


class ConnectionRepository:
    """Consent records; a connection id is also the authorization code"""

    @staticmethod
    def get_by_id(db: Session, connection_id: str) -> Optional[Connection]:
        return db.query(Connection).options(
            joinedload(Connection.user),
            selectinload(Connection.scopes)
        ).filter(Connection.id == connection_id).first()

    @staticmethod
    def get_by_user_and_client(db: Session, user_id: int, client_id: str) -> Optional[Connection]:
        return db.query(Connection).options(
            joinedload(Connection.user),
            selectinload(Connection.scopes)
        ).filter(
            Connection.user_id == user_id,
            Connection.client_id == client_id
        ).first()

    @staticmethod
    def create(
        db: Session,
        user: User,
        client: Client,
        scopes: List[Scope],
        nonce: Optional[str] = None,
        connected_at: Optional[datetime] = None
    ) -> Connection:
        """
        Add a connection and flush it so constraint violations surface now.

        Args:
            db: Database session (transaction owned by the caller)
            user: Consenting user
            client: Client being granted access
            scopes: Final agreed scope set
            nonce: Optional OpenID nonce from the consent request
            connected_at: Creation time; defaults to now (UTC)

        Returns:
            The pending Connection, id populated
        """
        connection = Connection(
            user=user,
            client=client,
            scopes=list(scopes),
            nonce=nonce or None
        )
        if connected_at is not None:
            connection.connected_at = connected_at
        db.add(connection)
        db.flush()

        logger.debug(f"[CONNECTION] Flushed connection {connection.id} for user {user.id} / client {client.id}")
        return connection


class RefreshTokenRepository:

    @staticmethod
    def get_by_user_and_client(db: Session, user_id: int, client_id: str) -> Optional[RefreshToken]:
        return db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.client_id == client_id
        ).first()

    @staticmethod
    def delete_for_user_and_client(db: Session, user_id: int, client_id: str) -> int:
        """Delete immediately (bulk DELETE) so a new row for the pair can follow"""
        return db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.client_id == client_id
        ).delete(synchronize_session="fetch")

    @staticmethod
    def create(db: Session, user_id: int, client_id: str, value: str, expires_at: datetime) -> RefreshToken:
        token = RefreshToken(
            user_id=user_id,
            client_id=client_id,
            value=value,
            expires_at=expires_at
        )
        db.add(token)
        db.flush()
        return token

    @staticmethod
    def count_expired(db: Session, now: datetime) -> int:
        return db.query(RefreshToken).filter(RefreshToken.expires_at < now).count()

    @staticmethod
    def delete_expired_batch(db: Session, now: datetime, batch_size: int) -> int:
        """Delete up to batch_size expired tokens; returns the number deleted"""
        ids = [
            row.id for row in db.query(RefreshToken.id).filter(
                RefreshToken.expires_at < now
            ).order_by(RefreshToken.id).limit(batch_size).all()
        ]
        if not ids:
            return 0
        return db.query(RefreshToken).filter(
            RefreshToken.id.in_(ids)
        ).delete(synchronize_session=False)
