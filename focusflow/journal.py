"""
Daily journal: end-of-day reviews, optionally behind a password.

The password is stored as a salted PBKDF2 hash in the settings document,
never in a reversible form.
"""

import hashlib
import hmac
import logging
import secrets
import time
from typing import List, Optional

from .errors import ValidationFailure
from .models import DailyReview
from .storage import Storage, SETTINGS, DAILY_REVIEWS

logger = logging.getLogger(__name__)

PASSWORD_FIELD = "review_password_hash"
HASH_ALGORITHM = "pbkdf2_sha256"
HASH_ITERATIONS = 240_000


def hash_password(password: str, salt: Optional[bytes] = None, iterations: int = HASH_ITERATIONS) -> str:
    """Return `pbkdf2_sha256$iterations$salt$hash` for storage."""
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{HASH_ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    """Constant-time check of `password` against a stored hash."""
    try:
        algorithm, iterations, salt_hex, digest_hex = stored.split("$")
        if algorithm != HASH_ALGORITHM:
            return False
        digest = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), bytes.fromhex(salt_hex), int(iterations)
        )
    except ValueError:
        logger.warning("Stored journal password hash is malformed")
        return False
    return hmac.compare_digest(digest.hex(), digest_hex)


class DailyJournal:
    """Per-user daily reviews and the password that guards them."""

    def __init__(self, storage: Storage, user_id: str):
        self.storage = storage
        self.user_id = user_id

    def add_review(self, text: str) -> Optional[DailyReview]:
        """Save a review. Blank text is ignored."""
        if not text or not text.strip():
            return None
        review = DailyReview(review_text=text, date=int(time.time()))
        entry_id = self.storage.append(
            self.user_id, DAILY_REVIEWS,
            {"review_text": review.review_text, "date": review.date, "created_at": review.date}
        )
        return DailyReview(review_text=review.review_text, date=review.date, id=entry_id)

    def reviews(self) -> List[DailyReview]:
        """All reviews, newest first."""
        return [
            DailyReview(review_text=e.get("review_text", ""), date=int(e.get("date", 0)), id=e["id"])
            for e in self.storage.list_entries(self.user_id, DAILY_REVIEWS)
        ]

    def _stored_hash(self) -> Optional[str]:
        doc = self.storage.get_document(self.user_id, SETTINGS) or {}
        return doc.get(PASSWORD_FIELD) or None

    def is_protected(self) -> bool:
        return self._stored_hash() is not None

    def set_password(self, new_password: str, confirm_password: str):
        """
        Set or (with an empty password) remove the journal password.

        Raises:
            ValidationFailure: if the two entries differ.
        """
        if new_password != confirm_password:
            raise ValidationFailure("review_password", message="Passwords do not match.")
        value = hash_password(new_password) if new_password else None
        self.storage.set_document(self.user_id, SETTINGS, {PASSWORD_FIELD: value}, merge=True)
        logger.info("Journal password %s", "set" if value else "removed")

    def unlock(self, password: str) -> bool:
        stored = self._stored_hash()
        if stored is None:
            return True
        return verify_password(password, stored)
