# crosspost/services/tokens.py
import logging
from sqlalchemy.orm import Session
from crosspost.db import crud_accounts, token_crypto
from crosspost.db.models import Account, TWITTER, YOUTUBE
from crosspost.errors import TokenError
from crosspost.services import twitter_api, youtube_api

logger = logging.getLogger(__name__)

REFRESHERS = {
    TWITTER: twitter_api.refresh_access_token,
    YOUTUBE: youtube_api.refresh_access_token,
}

def get_valid_token(db: Session, account: Account) -> str:
    """Return a usable bearer token for the account, refreshing and persisting it when it is about to expire."""
    if crud_accounts.is_token_expiring(account):
        refresher = REFRESHERS.get(account.platform)
        plain_refresh = token_crypto.decrypt_token(account.refresh_token_encrypted)
        if refresher and plain_refresh:
            try:
                resp = refresher(plain_refresh)
            except Exception as e:
                raise TokenError(f"{account.platform} token expired and refresh failed: {e}") from e
            access_token_new = resp.get("access_token")
            if not access_token_new:
                raise TokenError(f"No access_token in {account.platform} refresh response")
            crud_accounts.update_tokens(
                db, account, access_token_new,
                expires_in=resp.get("expires_in"),
                new_refresh_token=resp.get("refresh_token"),
            )
            logger.info("[tokens] refreshed %s token for account %s", account.platform, account.id)
            return access_token_new
        logger.warning("[tokens] %s token for account %s is expiring and cannot be refreshed", account.platform, account.id)

    token = token_crypto.decrypt_token(account.access_token_encrypted)
    if not token:
        raise TokenError(f"Could not decrypt {account.platform} access token; reconnect the account")
    return token
