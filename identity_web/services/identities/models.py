"""SQLAlchemy models for the identity store."""

from typing import Optional

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, \
    String, Text
from sqlalchemy.orm import relationship

from ... import domain

db: SQLAlchemy = SQLAlchemy()


class DBIdentity(db.Model):  # type: ignore
    """Persistence for :class:`domain.Identity`."""

    __tablename__ = 'identity'

    identity_id = Column(String(255), primary_key=True)
    slug = Column(String(64), nullable=False, unique=True)
    label = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    """Not unique; one address may own several identities."""

    email_verified = Column(Boolean, nullable=False, default=False)
    password_hash = Column(String(255), nullable=False)
    created = Column(DateTime, nullable=False)

    passcodes = relationship('DBPasscode', back_populates='identity',
                             cascade='all, delete-orphan')
    public_keys = relationship('DBPublicKey', back_populates='owner',
                               cascade='all, delete-orphan')

    def to_domain(self, context: Optional[str] = None) -> domain.Identity:
        return domain.Identity(
            id=self.identity_id,
            sys_slug=self.slug,
            label=self.label,
            email=self.email,
            email_verified=bool(self.email_verified),
            created=self.created,
            context=context
        )


class DBPasscode(db.Model):  # type: ignore
    """A one-time code mailed to the owner of an identity."""

    __tablename__ = 'identity_passcode'

    passcode_id = Column(Integer, primary_key=True, autoincrement=True)
    identity_id = Column(ForeignKey('identity.identity_id'), nullable=False,
                         index=True)
    passcode_hash = Column(String(255), nullable=False)
    usage = Column(String(16), nullable=False)
    created = Column(DateTime, nullable=False)
    expires = Column(DateTime, nullable=False)
    used = Column(Boolean, nullable=False, default=False)

    identity = relationship('DBIdentity', back_populates='passcodes')


class DBPublicKey(db.Model):  # type: ignore
    """Persistence for :class:`domain.PublicKey`."""

    __tablename__ = 'identity_public_key'

    key_id = Column(String(255), primary_key=True)
    owner_id = Column(ForeignKey('identity.identity_id'), nullable=False,
                      index=True)
    public_key_pem = Column(Text, nullable=False)
    created = Column(DateTime, nullable=False)

    owner = relationship('DBIdentity', back_populates='public_keys')

    def to_domain(self) -> domain.PublicKey:
        return domain.PublicKey(id=self.key_id, owner=self.owner_id,
                                public_key_pem=self.public_key_pem)
