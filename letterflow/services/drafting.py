"""
AI drafting collaborator.

Advisory only: the result pre-fills a letter body. Any failure comes back as
an error text instead of an exception, so composing a letter never depends on it.
"""
import logging
from typing import List, Optional
from urllib.parse import quote

import httpx

from letterflow import config

logger = logging.getLogger(__name__)

DRAFTING_ERROR_TEXT = "Could not reach the drafting service. Check the network connection and try again."
EMPTY_DRAFT_TEXT = "The drafting service returned no text."

PROMPT_TEMPLATE = """
You are an expert secretary in a formal office.
Write a formal business letter.

Details:
Sender: {sender}
Recipients: {recipients}
Topic: {topic}

The tone must be polite, formal and strictly professional, using standard administrative phrasing.
Do not include placeholders like [Date] or [Signature], just the body and closing.
Return ONLY the text of the letter.
"""


def build_prompt(topic: str, sender_name: str, recipient_names: List[str]) -> str:
    return PROMPT_TEMPLATE.format(
        sender=sender_name,
        recipients=", ".join(recipient_names),
        topic=topic,
    )


class DraftingClient:
    """Plain-text generation over HTTP GET, prompt in the path."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.base_url = (base_url or config.DRAFTING_URL).rstrip("/")
        self.model = model or config.DRAFTING_MODEL
        self.timeout = config.DRAFTING_TIMEOUT if timeout is None else timeout
        self.transport = transport

    def draft_letter(self, topic: str, sender_name: str, recipient_names: List[str]) -> str:
        prompt = build_prompt(topic, sender_name, recipient_names)
        url = f"{self.base_url}/{quote(prompt, safe='')}"

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(url, params={"model": self.model})
                response.raise_for_status()
        except httpx.HTTPError:
            logger.error("Drafting request failed for topic %r", topic, exc_info=True)
            return DRAFTING_ERROR_TEXT

        return response.text.strip() or EMPTY_DRAFT_TEXT
