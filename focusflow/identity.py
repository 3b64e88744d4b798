"""
Anonymous identity for this installation.
The first sign-in mints an id and stores it; later sign-ins reuse it.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Optional

from .errors import AuthenticationFailure

logger = logging.getLogger(__name__)


class AnonymousIdentityProvider:
    """Issues a stable anonymous user id backed by a small JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._user_id: Optional[str] = None

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def sign_in(self) -> str:
        """
        Return this installation's user id, creating it on first use.

        Raises:
            AuthenticationFailure: if the identity file cannot be read or written.
        """
        if self._user_id:
            return self._user_id

        try:
            if self.path.exists():
                data = json.loads(self.path.read_text(encoding="utf-8"))
                user_id = data.get("user_id") if isinstance(data, dict) else None
                if not user_id:
                    raise AuthenticationFailure(f"Identity file {self.path} has no user id")
            else:
                user_id = uuid.uuid4().hex
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(json.dumps({"user_id": user_id}), encoding="utf-8")
                logger.info("Issued new anonymous identity")
        except (OSError, ValueError) as e:
            raise AuthenticationFailure(f"Cannot use identity file {self.path}: {e}") from e

        self._user_id = str(user_id)
        return self._user_id
