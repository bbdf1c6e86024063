"""
Mirror identity-provider profiles into the users table.
"""
from datetime import datetime

from sqlalchemy.orm import Session

from dailytest.core.identity import VerifiedIdentity
from dailytest.models import User


def upsert_user(db: Session, identity: VerifiedIdentity, seen_at: datetime) -> User:
    """
    Create or refresh the profile for a verified identity.

    Profile fields are only overwritten when the provider supplies a value.
    The change is flushed but not committed.
    """
    user = db.query(User).filter(User.id == identity.subject_id).first()
    if user is None:
        user = User(id=identity.subject_id, created_at=seen_at)
        db.add(user)

    if identity.display_name:
        user.display_name = identity.display_name
    if identity.email:
        user.email = identity.email
    if identity.photo_url:
        user.photo_url = identity.photo_url
    user.last_seen_at = seen_at

    db.flush()
    return user
