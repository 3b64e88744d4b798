"""
End-of-session message rotation.
Picks a message from the verse service or the user's own list. Never
raises: a missing message is reported as unavailable.
"""

import random
import logging
from typing import Optional

from .clients import QuoteClient, VERSE_COUNT
from .errors import ExternalServiceFailure
from .models import EndSessionMessage, MessageOrder, MessageSource, SessionConfig

logger = logging.getLogger(__name__)

CUSTOM_REFERENCE = "Custom Message"


class MessageRotationPolicy:
    """Selects the message shown when a session ends."""

    def __init__(self, quote_client: QuoteClient, rng: Optional[random.Random] = None):
        self._quote_client = quote_client
        self._rng = rng or random.Random()

    def select(self, config: SessionConfig) -> EndSessionMessage:
        """
        Pick a message for this snapshot of settings.

        For sequential custom lists the result carries `next_cursor`, which
        the caller must persist.
        """
        if not config.show_end_session_message:
            return EndSessionMessage.unavailable()

        if config.message_source is MessageSource.EXTERNAL_QUOTE:
            return self._from_quote_service()
        return self._from_custom_list(config)

    def _from_quote_service(self) -> EndSessionMessage:
        number = self._rng.randint(1, VERSE_COUNT)
        try:
            verse = self._quote_client.fetch_verse(number)
        except ExternalServiceFailure as e:
            logger.warning("No end-of-session message: %s", e)
            return EndSessionMessage.unavailable()
        return EndSessionMessage(text=verse.text, reference=verse.reference)

    def _from_custom_list(self, config: SessionConfig) -> EndSessionMessage:
        messages = config.custom_messages
        if not messages:
            return EndSessionMessage.unavailable()

        if config.message_order is MessageOrder.RANDOM:
            return EndSessionMessage(
                text=messages[self._rng.randrange(len(messages))],
                reference=CUSTOM_REFERENCE,
            )

        # The list may have shrunk since the cursor was saved
        index = config.message_cursor % len(messages)
        return EndSessionMessage(
            text=messages[index],
            reference=CUSTOM_REFERENCE,
            next_cursor=(index + 1) % len(messages),
        )
