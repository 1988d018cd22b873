# crosspost/db/crud_accounts.py
from datetime import timedelta
from typing import List, Optional
from sqlalchemy.orm import Session
from crosspost.db.models import Account, User, utcnow
from crosspost.db import token_crypto

def create_user(db: Session, email: str | None = None) -> User:
    u = User(email=email)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u

def upsert_account(
    db: Session,
    user_id: int,
    platform: str,
    platform_user_id: str,
    access_token: str,
    refresh_token: str | None = None,
    expires_in: int | None = None,
    username: str | None = None,
) -> Account:
    """Store (or rotate) the single account row for (user, platform) and mark it active."""
    acc = (
        db.query(Account)
        .filter(Account.user_id == user_id, Account.platform == platform)
        .first()
    )
    if not acc:
        acc = Account(user_id=user_id, platform=platform)
    acc.platform_user_id = platform_user_id
    acc.username = username
    acc.access_token_encrypted = token_crypto.encrypt_token(access_token)
    acc.refresh_token_encrypted = token_crypto.encrypt_token(refresh_token) if refresh_token else None
    acc.expires_at = utcnow() + timedelta(seconds=expires_in) if expires_in else None
    acc.is_active = True
    db.add(acc)
    db.commit()
    db.refresh(acc)
    return acc

def deactivate_account(db: Session, account_id: int) -> None:
    acc = db.query(Account).filter(Account.id == account_id).first()
    if not acc:
        return
    acc.is_active = False
    db.add(acc)
    db.commit()

def get_active_account(db: Session, user_id: int, platform: str) -> Account | None:
    return (
        db.query(Account)
        .filter(Account.user_id == user_id, Account.platform == platform, Account.is_active.is_(True))
        .first()
    )

def get_account_by_platform_user_id(db: Session, platform: str, platform_user_id: str) -> Account | None:
    return (
        db.query(Account)
        .filter(
            Account.platform == platform,
            Account.platform_user_id == platform_user_id,
            Account.is_active.is_(True),
        )
        .first()
    )

def list_active_accounts(db: Session, platform: str) -> List[Account]:
    return (
        db.query(Account)
        .filter(Account.platform == platform, Account.is_active.is_(True))
        .order_by(Account.id)
        .all()
    )

def is_token_expiring(acc: Account, seconds: int = 300) -> bool:
    return bool(acc.expires_at and (acc.expires_at - utcnow()).total_seconds() < seconds)

def update_tokens(
    db: Session,
    acc: Account,
    new_access_token: str,
    expires_in: Optional[int],
    new_refresh_token: Optional[str] = None,
) -> Account:
    acc.access_token_encrypted = token_crypto.encrypt_token(new_access_token)
    if new_refresh_token:
        acc.refresh_token_encrypted = token_crypto.encrypt_token(new_refresh_token)
    acc.expires_at = utcnow() + timedelta(seconds=expires_in) if expires_in else None
    db.add(acc)
    db.commit()
    db.refresh(acc)
    return acc
