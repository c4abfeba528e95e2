"""ARM pagination helper."""

from __future__ import annotations

from collections.abc import Callable

import requests


def _paginate(
    url: str,
    get: Callable[[str], requests.Response],
) -> list[dict]:
    """Fetch all pages from an ARM list endpoint and return the merged values.

    *get* performs one authenticated, status-checked GET.
    """
    items: list[dict] = []
    next_url: str | None = url
    while next_url:
        data = get(next_url).json()
        items.extend(data.get("value", []))
        next_url = data.get("nextLink")
    return items
