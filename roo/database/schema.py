# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Database schema for Roo using SQLAlchemy.

Defines the OAuth2 administration entities and their ownership chains.

Assumptions:
- All entities have id (UUID string), created_date, modified_date
- Every manageable entity resolves to an owning User through `owner`;
  Application holds the reference, everything else reaches it through
  its parent chain
- `owned_by(user)` is the SQL form of the same chain, used to narrow
  listing queries
- Users, clients, roles and scopes belong to exactly one Application
"""
import enum
from datetime import datetime, timedelta, UTC
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Column, DateTime, Enum, ForeignKey, Integer, JSON, String, Table, Text,
    UniqueConstraint, create_engine
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    # Naive UTC, as SQLite hands it back
    return datetime.now(UTC).replace(tzinfo=None)


def _new_id() -> str:
    return str(uuid4())


def _enum_values(enum_class) -> list[str]:
    return [member.value for member in enum_class]


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class TimestampMixin:
    """Mixin for timestamp fields.
    
    Assumptions:
    - created_date is set on insert and is the default sort column
    - modified_date is updated on every change
    """
    created_date: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False, index=True)
    modified_date: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class ClientType(str, enum.Enum):
    """OAuth2 grant flow a client is registered for."""
    AUTHORIZATION_GRANT = "AuthorizationGrant"
    IMPLICIT = "Implicit"
    OWNER_CREDENTIALS = "OwnerCredentials"
    CLIENT_CREDENTIALS = "ClientCredentials"


class OAuthTokenType(str, enum.Enum):
    """Kind of issued token."""
    AUTHORIZATION = "Authorization"
    BEARER = "Bearer"
    REFRESH = "Refresh"


class AuthenticatorType(str, enum.Enum):
    """Identity provider backing an authenticator or identity."""
    PASSWORD = "Password"
    TEST = "Test"
    GOOGLE = "Google"
    GITHUB = "Github"
    FACEBOOK = "Facebook"


role_scopes = Table(
    "role_scopes",
    Base.metadata,
    Column("role_id", String(36), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("scope_id", String(36), ForeignKey("application_scopes.id", ondelete="CASCADE"), primary_key=True),
)

token_scopes = Table(
    "token_scopes",
    Base.metadata,
    Column("token_id", String(36), ForeignKey("oauth_tokens.id", ondelete="CASCADE"), primary_key=True),
    Column("scope_id", String(36), ForeignKey("application_scopes.id", ondelete="CASCADE"), primary_key=True),
)


class Application(Base, TimestampMixin):
    """A registered OAuth2 application.
    
    Assumptions:
    - owner is a User of some (usually the admin) application
    - owner is nullable only while the admin application is bootstrapped
    - default_role is assigned to self-registered users
    """
    __tablename__ = "applications"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", use_alter=True, name="fk_applications_owner_id"),
        nullable=True,
        index=True,
    )
    default_role_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("roles.id", use_alter=True, name="fk_applications_default_role_id"),
        nullable=True,
    )
    
    # Relationships
    owner: Mapped[Optional["User"]] = relationship(
        "User", foreign_keys=[owner_id], back_populates="owned_applications", post_update=True
    )
    default_role: Mapped[Optional["Role"]] = relationship(
        "Role", foreign_keys=[default_role_id], post_update=True
    )
    users: Mapped[list["User"]] = relationship(
        "User", foreign_keys="User.application_id", back_populates="application",
        cascade="all, delete-orphan"
    )
    clients: Mapped[list["Client"]] = relationship(
        "Client", back_populates="application", cascade="all, delete-orphan"
    )
    roles: Mapped[list["Role"]] = relationship(
        "Role", foreign_keys="Role.application_id", back_populates="application",
        cascade="all, delete-orphan"
    )
    scopes: Mapped[list["ApplicationScope"]] = relationship(
        "ApplicationScope", back_populates="application", cascade="all, delete-orphan"
    )

    @property
    def application(self) -> "Application":
        return self

    @classmethod
    def owned_by(cls, user: "User"):
        return cls.owner_id == user.id


class Client(Base, TimestampMixin):
    """An OAuth2 client of an application."""
    __tablename__ = "clients"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    application_id: Mapped[str] = mapped_column(String(36), ForeignKey("applications.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[ClientType] = mapped_column(
        Enum(ClientType, values_callable=_enum_values, native_enum=False, length=32), nullable=False
    )
    client_secret: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    configuration: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    
    # Relationships
    application: Mapped["Application"] = relationship("Application", back_populates="clients")
    redirects: Mapped[list["ClientRedirect"]] = relationship(
        "ClientRedirect", back_populates="client", cascade="all, delete-orphan"
    )
    referrers: Mapped[list["ClientReferrer"]] = relationship(
        "ClientReferrer", back_populates="client", cascade="all, delete-orphan"
    )
    authenticators: Mapped[list["Authenticator"]] = relationship(
        "Authenticator", back_populates="client", cascade="all, delete-orphan"
    )
    tokens: Mapped[list["OAuthToken"]] = relationship(
        "OAuthToken", back_populates="client", cascade="all, delete"
    )

    @property
    def owner(self) -> Optional["User"]:
        return self.application.owner if self.application else None

    @classmethod
    def owned_by(cls, user: "User"):
        return cls.application.has(Application.owned_by(user))


class ClientRedirect(Base, TimestampMixin):
    """A redirect URI registered for a client."""
    __tablename__ = "client_redirects"
    __table_args__ = (UniqueConstraint("client_id", "uri", name="uq_client_redirects_uri"),)
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    uri: Mapped[str] = mapped_column(String(2048), nullable=False)
    
    client: Mapped["Client"] = relationship("Client", back_populates="redirects")

    @property
    def application(self) -> Optional[Application]:
        return self.client.application if self.client else None

    @property
    def owner(self) -> Optional["User"]:
        return self.client.owner if self.client else None

    @classmethod
    def owned_by(cls, user: "User"):
        return cls.client.has(Client.owned_by(user))


class ClientReferrer(Base, TimestampMixin):
    """A referrer URI permitted for a client."""
    __tablename__ = "client_referrers"
    __table_args__ = (UniqueConstraint("client_id", "uri", name="uq_client_referrers_uri"),)
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    uri: Mapped[str] = mapped_column(String(2048), nullable=False)
    
    client: Mapped["Client"] = relationship("Client", back_populates="referrers")

    @property
    def application(self) -> Optional[Application]:
        return self.client.application if self.client else None

    @property
    def owner(self) -> Optional["User"]:
        return self.client.owner if self.client else None

    @classmethod
    def owned_by(cls, user: "User"):
        return cls.client.has(Client.owned_by(user))


class Authenticator(Base, TimestampMixin):
    """An identity provider configured for a client."""
    __tablename__ = "authenticators"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    type: Mapped[AuthenticatorType] = mapped_column(
        Enum(AuthenticatorType, values_callable=_enum_values, native_enum=False, length=32), nullable=False
    )
    configuration: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    
    client: Mapped["Client"] = relationship("Client", back_populates="authenticators")

    @property
    def application(self) -> Optional[Application]:
        return self.client.application if self.client else None

    @property
    def owner(self) -> Optional["User"]:
        return self.client.owner if self.client else None

    @classmethod
    def owned_by(cls, user: "User"):
        return cls.client.has(Client.owned_by(user))


class Role(Base, TimestampMixin):
    """A named bundle of application scopes.
    
    Assumptions:
    - Name is unique within the application
    - Scopes must belong to the same application
    """
    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("application_id", "name", name="uq_roles_name"),)
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    application_id: Mapped[str] = mapped_column(String(36), ForeignKey("applications.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    
    application: Mapped["Application"] = relationship(
        "Application", foreign_keys=[application_id], back_populates="roles"
    )
    scopes: Mapped[list["ApplicationScope"]] = relationship(
        "ApplicationScope", secondary=role_scopes, back_populates="roles"
    )
    users: Mapped[list["User"]] = relationship("User", back_populates="role")

    @property
    def owner(self) -> Optional["User"]:
        return self.application.owner if self.application else None

    @classmethod
    def owned_by(cls, user: "User"):
        return cls.application.has(Application.owned_by(user))


class ApplicationScope(Base, TimestampMixin):
    """A permission name defined by an application.
    
    Assumptions:
    - Name is unique within the application
    """
    __tablename__ = "application_scopes"
    __table_args__ = (UniqueConstraint("application_id", "name", name="uq_application_scopes_name"),)
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    application_id: Mapped[str] = mapped_column(String(36), ForeignKey("applications.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    
    application: Mapped["Application"] = relationship("Application", back_populates="scopes")
    roles: Mapped[list["Role"]] = relationship("Role", secondary=role_scopes, back_populates="scopes")
    tokens: Mapped[list["OAuthToken"]] = relationship(
        "OAuthToken", secondary=token_scopes, back_populates="scopes"
    )

    @property
    def owner(self) -> Optional["User"]:
        return self.application.owner if self.application else None

    @classmethod
    def owned_by(cls, user: "User"):
        return cls.application.has(Application.owned_by(user))


class User(Base, TimestampMixin):
    """A user of an application.
    
    Assumptions:
    - The owner of a user is the owner of its application
    - A user may own applications (usually when it lives in the admin app)
    - Deleting a user deletes the applications it owns
    """
    __tablename__ = "users"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    application_id: Mapped[str] = mapped_column(String(36), ForeignKey("applications.id"), nullable=False, index=True)
    role_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("roles.id"), nullable=True, index=True)
    
    application: Mapped["Application"] = relationship(
        "Application", foreign_keys=[application_id], back_populates="users"
    )
    role: Mapped[Optional["Role"]] = relationship("Role", back_populates="users")
    identities: Mapped[list["UserIdentity"]] = relationship(
        "UserIdentity", back_populates="user", cascade="all, delete-orphan"
    )
    owned_applications: Mapped[list["Application"]] = relationship(
        "Application", foreign_keys="Application.owner_id", back_populates="owner",
        cascade="all"
    )

    @property
    def owner(self) -> Optional["User"]:
        return self.application.owner if self.application else None

    @classmethod
    def owned_by(cls, user: "User"):
        return cls.application.has(Application.owned_by(user))


class UserIdentity(Base, TimestampMixin):
    """A user's identity with one identity provider.
    
    Assumptions:
    - (type, remote_id) is unique
    - password_hash is set only for Password identities and never serialized
    """
    __tablename__ = "user_identities"
    __table_args__ = (UniqueConstraint("type", "remote_id", name="uq_user_identities_remote_id"),)
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type: Mapped[AuthenticatorType] = mapped_column(
        Enum(AuthenticatorType, values_callable=_enum_values, native_enum=False, length=32), nullable=False
    )
    remote_id: Mapped[str] = mapped_column(String(255), nullable=False)
    claims: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    user: Mapped["User"] = relationship("User", back_populates="identities")
    tokens: Mapped[list["OAuthToken"]] = relationship(
        "OAuthToken", back_populates="identity", cascade="all, delete"
    )

    @property
    def application(self) -> Optional[Application]:
        return self.user.application if self.user else None

    @property
    def owner(self) -> Optional["User"]:
        return self.user.owner if self.user else None

    @classmethod
    def owned_by(cls, user: "User"):
        return cls.user.has(User.owned_by(user))


class OAuthToken(Base, TimestampMixin):
    """An issued OAuth2 token.
    
    Assumptions:
    - identity is None only for client-credentials grants
    - auth_token links a refresh token to the bearer token it renews
    - expires_in is in seconds, counted from created_date
    """
    __tablename__ = "oauth_tokens"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    identity_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("user_identities.id"), nullable=True, index=True)
    auth_token_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("oauth_tokens.id"), nullable=True)
    token_type: Mapped[OAuthTokenType] = mapped_column(
        Enum(OAuthTokenType, values_callable=_enum_values, native_enum=False, length=32), nullable=False
    )
    expires_in: Mapped[int] = mapped_column(Integer, nullable=False)
    redirect: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    issuer: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    client: Mapped["Client"] = relationship("Client", back_populates="tokens")
    identity: Mapped[Optional["UserIdentity"]] = relationship("UserIdentity", back_populates="tokens")
    auth_token: Mapped[Optional["OAuthToken"]] = relationship(
        "OAuthToken", remote_side=[id], back_populates="refresh_tokens"
    )
    refresh_tokens: Mapped[list["OAuthToken"]] = relationship(
        "OAuthToken", back_populates="auth_token", cascade="all, delete"
    )
    scopes: Mapped[list["ApplicationScope"]] = relationship(
        "ApplicationScope", secondary=token_scopes, back_populates="tokens"
    )

    @property
    def application(self) -> Optional[Application]:
        return self.client.application if self.client else None

    @property
    def owner(self) -> Optional["User"]:
        return self.client.owner if self.client else None

    @classmethod
    def owned_by(cls, user: "User"):
        return cls.client.has(Client.owned_by(user))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the token has outlived expires_in.
        
        Args:
            now: Reference time (defaults to current UTC time)
            
        Returns:
            bool: True once created_date + expires_in lies in the past
        """
        now = now or datetime.now(UTC)
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        created = self.created_date or now
        if created.tzinfo is None:
            created = created.replace(tzinfo=UTC)
        return created + timedelta(seconds=self.expires_in) < now


class ConfigurationEntry(Base, TimestampMixin):
    """A persisted key/value setting, grouped by section.
    
    Assumptions:
    - The "admin" section records the ids created on first run
    """
    __tablename__ = "configuration"
    __table_args__ = (UniqueConstraint("section", "config_key", name="uq_configuration_key"),)
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    section: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    config_key: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)


def init_db(engine=None):
    """Initialize database by creating all tables.
    
    Args:
        engine: SQLAlchemy engine (optional, creates default if not provided)
        
    Assumptions:
    - Creates all tables defined in Base.metadata
    - Safe to call multiple times (no-op if tables exist)
    """
    if engine is None:
        from roo.config import settings
        engine = create_engine(settings.database_url)
    
    Base.metadata.create_all(engine)
    return engine
