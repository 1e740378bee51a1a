"""Bridge between cached responses and the command-line output system."""

from __future__ import annotations

from typing import Any

import httpx

from fetchless.autofix import is_auto_fixed
from fetchless.output import get_output


def format_api_response(response: httpx.Response, source: str) -> None:
    """Print *response*: a status line to stderr and the body to stdout.

    Args:
        response: The response returned by the caching client.
        source: Where the response came from, e.g. ``"cache hit"`` or
            ``"network"``. Shown in the status line.
    """
    output = get_output()
    if is_auto_fixed(response):
        source = "auto-fixed"
    output.info(f"HTTP {response.status_code} {response.reason_phrase} ({source})")

    data = extract_response_data(response)
    if data is not None:
        output.format_response(data)


def extract_response_data(response: httpx.Response) -> Any:
    """Decode the body as JSON, falling back to text. ``None`` when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
