"""Tests for the advisory drafting client - failures become text, never exceptions."""
from urllib.parse import unquote

import httpx

from letterflow.services.drafting import (
    DRAFTING_ERROR_TEXT,
    EMPTY_DRAFT_TEXT,
    DraftingClient,
    build_prompt,
)


def client_returning(handler):
    return DraftingClient(base_url="https://drafts.test/", model="m1", timeout=1, transport=httpx.MockTransport(handler))


class TestDraftLetter:

    def test_returns_generated_text(self):
        seen = {}

        def handler(request):
            seen["path"] = unquote(request.url.path)
            seen["model"] = request.url.params["model"]
            return httpx.Response(200, text="  Dear colleagues, ...  ")

        text = client_returning(handler).draft_letter("Annual leave", "Sara", ["Reza", "Ali"])

        assert text == "Dear colleagues, ..."
        assert "Annual leave" in seen["path"]
        assert "Reza, Ali" in seen["path"]
        assert seen["model"] == "m1"

    def test_http_error_returns_error_text(self):
        text = client_returning(lambda request: httpx.Response(503)).draft_letter("Topic", "Sara", ["Reza"])
        assert text == DRAFTING_ERROR_TEXT

    def test_network_error_returns_error_text(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        text = client_returning(handler).draft_letter("Topic", "Sara", ["Reza"])
        assert text == DRAFTING_ERROR_TEXT

    def test_empty_body(self):
        text = client_returning(lambda request: httpx.Response(200, text="")).draft_letter("Topic", "Sara", ["Reza"])
        assert text == EMPTY_DRAFT_TEXT

    def test_prompt_names_everyone(self):
        prompt = build_prompt("Budget", "Sara", ["Reza", "Ali"])
        assert "Sender: Sara" in prompt
        assert "Recipients: Reza, Ali" in prompt
        assert "Topic: Budget" in prompt
