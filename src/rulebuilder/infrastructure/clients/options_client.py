"""Argument option list client.

Fetches option lists for select/multiselect function arguments from
``/rules/ui/config/argument-options/{optionsRef}``. Lists are cached per
reference for the life of the client; a failed fetch is logged and yields an
empty list so the argument widget can still render.
"""

from typing import Any

import httpx
from pydantic import ValidationError

from rulebuilder.core.config import Settings, get_settings
from rulebuilder.core.logging import get_logger
from rulebuilder.domain.entities.rule import OptionItem
from rulebuilder.domain.ports import OptionListProvider
from rulebuilder.infrastructure.clients.schemas import OptionEntry

logger = get_logger(__name__)


class OptionsClient(OptionListProvider):
    """Cached HTTP option list provider."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = settings or get_settings()
        self._client = client or httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )
        self._cache: dict[str, list[OptionItem]] = {}

    async def __aenter__(self) -> "OptionsClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_options(self, options_ref: str) -> list[OptionItem]:
        if options_ref in self._cache:
            return list(self._cache[options_ref])

        url = f"/rules/ui/config/argument-options/{options_ref}"
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            entries = [OptionEntry.model_validate(item) for item in response.json()]
        except httpx.HTTPError as e:
            logger.warning("Option list unavailable", options_ref=options_ref, error=str(e))
            return []
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning("Option list malformed", options_ref=options_ref, error=str(e))
            return []

        options = [
            OptionItem(value=entry.value, label=entry.label if entry.label is not None else str(entry.value))
            for entry in entries
        ]
        self._cache[options_ref] = options
        logger.debug("Option list loaded", options_ref=options_ref, count=len(options))
        return list(options)

    def invalidate(self, options_ref: str | None = None) -> None:
        """Drop one cached list, or all of them."""
        if options_ref is None:
            self._cache.clear()
        else:
            self._cache.pop(options_ref, None)
