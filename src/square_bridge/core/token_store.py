"""Read and write Square OAuth credentials in the relational store."""

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from square_bridge.core.errors import StoreUnavailableError, TokenNotFoundError
from square_bridge.core.models import SquareToken

logger = logging.getLogger("token_store")


def get_latest_token(db: Session) -> SquareToken:
    """
    Get the most recently created Square credential.

    Args:
        db (Session): The database session.

    Returns:
        SquareToken: The newest credential row.

    Raises:
        TokenNotFoundError: If the store holds no credential.
        StoreUnavailableError: If the store cannot be queried.
    """
    try:
        token = (
            db.query(SquareToken)
            .order_by(SquareToken.created_at.desc(), SquareToken.id.desc())
            .limit(1)
            .one_or_none()
        )
    except SQLAlchemyError as e:
        logger.error("Error loading Square token: %s: %s.", type(e).__name__, str(e))
        raise StoreUnavailableError("No Square token found", details=str(e)) from e

    if token is None:
        raise TokenNotFoundError("No Square token found", details="square_tokens table is empty")

    logger.info("Loaded Square token for merchant: %s", token.merchant_id)
    return token


def save_token(db: Session, tokens: dict[str, Any]) -> SquareToken:
    """
    Upsert the credential returned by the OAuth token exchange.

    The row is keyed by merchant id; a second authorization of the same
    merchant overwrites the stored tokens.

    Raises:
        StoreUnavailableError: If the row cannot be written.
    """
    merchant_id = tokens["merchant_id"]
    try:
        existing = db.query(SquareToken).filter_by(merchant_id=merchant_id).first()
        if existing:
            logger.info("Updating existing merchant: %s", merchant_id)
            token = existing
        else:
            logger.info("Creating new merchant: %s", merchant_id)
            token = SquareToken(merchant_id=merchant_id)
            db.add(token)

        token.access_token = tokens["access_token"]
        token.refresh_token = tokens.get("refresh_token")
        token.expires_at = tokens.get("expires_at")
        token.short_lived = tokens.get("short_lived")
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Error saving Square token: %s: %s.", type(e).__name__, str(e))
        raise StoreUnavailableError("Failed to save tokens", details=str(e)) from e

    return token
