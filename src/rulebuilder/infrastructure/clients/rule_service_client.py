"""Rule service REST client.

Implements rule search, loading and versioned persistence against the rule
service (``/rules`` endpoints) with an httpx ``AsyncClient``. Transport and
HTTP failures surface as ``LoadError`` so callers handle a single exception
type at the resolution call site.
"""

from typing import Any

import httpx
from pydantic import ValidationError

from rulebuilder.core.config import Settings, get_settings
from rulebuilder.core.logging import get_logger
from rulebuilder.core.tree.catalog import RuleBuilderConfig
from rulebuilder.core.tree.exceptions import ConfigurationError, LoadError, RuleTreeError
from rulebuilder.domain.entities.rule import RuleDocument, RuleSummary, SaveResult, VersionInfo
from rulebuilder.domain.ports import ReferenceResolver, RulePersistence
from rulebuilder.infrastructure.clients.schemas import (
    RulePage,
    SaveResponse,
    VersionEntry,
)

logger = get_logger(__name__)

LATEST = "latest"
PAGE_SIZE = 100
MAX_PAGES = 50


class RuleServiceClient(ReferenceResolver, RulePersistence):
    """HTTP client for the rule service.

    Example:
        async with RuleServiceClient() as client:
            config = await client.fetch_config()
            rules = await client.search(["Reporting"], query="AGE")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        config: RuleBuilderConfig | None = None,
    ):
        settings = settings or get_settings()
        self.base_url = settings.api_base_url
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "RuleServiceClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        uuid: str | None = None,
        version: int | str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Rule service request failed",
                method=method,
                url=url,
                status_code=e.response.status_code,
            )
            raise LoadError(
                f"Rule service returned {e.response.status_code} for {method} {url}",
                uuid=uuid,
                version=version,
            ) from e
        except httpx.HTTPError as e:
            logger.error("Rule service unreachable", method=method, url=url, error=str(e))
            raise LoadError(f"Rule service unreachable: {e}", uuid=uuid, version=version) from e
        return response

    @staticmethod
    def _json(response: httpx.Response, uuid: str | None = None, version: Any = None) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise LoadError("Rule service returned invalid JSON", uuid=uuid, version=version) from e

    # =========================================================================
    # ReferenceResolver
    # =========================================================================

    async def search(
        self,
        rule_types: list[str] | None = None,
        query: str | None = None,
    ) -> list[RuleSummary]:
        """Search rules; one request per rule type, all pages."""
        summaries: list[RuleSummary] = []
        seen: set[str] = set()
        for rule_type in rule_types or [None]:
            for item in await self._search_pages(rule_type, query):
                if item.uuid in seen:
                    continue
                seen.add(item.uuid)
                summaries.append(
                    RuleSummary(
                        rule_id=item.rule_id,
                        uuid=item.uuid,
                        version=item.latest_version,
                        return_type=item.return_type,
                        rule_type=item.rule_type,
                        folder_path=item.folder_path,
                    )
                )
        logger.debug("Rule search completed", rule_types=rule_types, query=query, results=len(summaries))
        return summaries

    async def _search_pages(self, rule_type: str | None, query: str | None) -> list:
        params: dict[str, Any] = {"size": PAGE_SIZE}
        if rule_type:
            params["ruleType"] = rule_type
        if query:
            params["search"] = query

        items = []
        for page_number in range(MAX_PAGES):
            params["page"] = page_number
            response = await self._request("GET", "/rules", params=params)
            try:
                page = RulePage.model_validate(self._json(response))
            except ValidationError as e:
                raise LoadError(f"Unexpected rule search response: {e}") from e
            items.extend(page.content)
            if page.last or page_number + 1 >= page.total_pages:
                break
        return items

    async def load(self, uuid: str, version: int | str | None = None) -> RuleDocument:
        """Load one version of a rule (``latest`` when no version is given)."""
        return await self.get_version(uuid, version if version is not None else LATEST)

    # =========================================================================
    # RulePersistence
    # =========================================================================

    async def get_version(self, uuid: str, version: int | str) -> RuleDocument:
        response = await self._request("GET", f"/rules/{uuid}/versions/{version}", uuid=uuid, version=version)
        data = self._json(response, uuid, version)
        try:
            return RuleDocument.from_dict(data, self.config)
        except (RuleTreeError, ValueError, TypeError, AttributeError) as e:
            logger.error("Stored rule could not be parsed", rule_uuid=uuid, version=version, error=str(e))
            raise LoadError(f"Stored rule {uuid} v{version} is malformed: {e}", uuid=uuid, version=version) from e

    async def create(self, document: RuleDocument) -> SaveResult:
        response = await self._request("POST", "/rules", json=document.to_dict())
        result = self._save_result(response)
        logger.info("Rule created", rule_uuid=result.uuid, version=result.version, rule_id=result.rule_id)
        return result

    async def update(self, uuid: str, document: RuleDocument) -> SaveResult:
        response = await self._request("PUT", f"/rules/{uuid}", uuid=uuid, json=document.to_dict())
        result = self._save_result(response)
        logger.info("Rule updated", rule_uuid=result.uuid, version=result.version, rule_id=result.rule_id)
        return result

    def _save_result(self, response: httpx.Response) -> SaveResult:
        try:
            saved = SaveResponse.model_validate(self._json(response))
        except ValidationError as e:
            raise LoadError(f"Unexpected save response: {e}") from e
        return SaveResult(uuid=saved.uuid, version=saved.version, rule_id=saved.rule_id)

    async def list_versions(self, uuid: str) -> list[VersionInfo]:
        response = await self._request("GET", f"/rules/{uuid}/versions", uuid=uuid)
        try:
            entries = [VersionEntry.model_validate(item) for item in self._json(response, uuid)]
        except (ValidationError, TypeError) as e:
            raise LoadError(f"Unexpected version history for {uuid}: {e}", uuid=uuid) from e
        versions = [
            VersionInfo(
                version=entry.version,
                rule_id=entry.rule_id,
                extra={
                    "modifiedOn": entry.modified_on,
                    "restoredFromVersion": entry.restored_from_version,
                    **entry.extras(),
                },
            )
            for entry in entries
        ]
        return sorted(versions, key=lambda info: info.version, reverse=True)

    async def restore(self, uuid: str, version: int) -> SaveResult:
        """Restore ``version``; the service writes it forward as a new version."""
        await self._request("POST", f"/rules/{uuid}/versions/{version}/restore", uuid=uuid, version=version)
        versions = await self.list_versions(uuid)
        if not versions:
            raise LoadError(f"Rule {uuid} has no versions after restore", uuid=uuid, version=version)
        newest = versions[0]
        logger.info("Rule version restored", rule_uuid=uuid, restored=version, version=newest.version)
        return SaveResult(uuid=uuid, version=newest.version, rule_id=newest.rule_id)

    # =========================================================================
    # Editor configuration
    # =========================================================================

    async def fetch_config(self) -> RuleBuilderConfig:
        """Load the editor catalogue served at ``/rules/ui/config``.

        The catalogue is kept for parsing rules loaded afterwards.
        """
        response = await self._request("GET", "/rules/ui/config")
        try:
            config = RuleBuilderConfig.from_payload(self._json(response))
        except ValidationError as e:
            logger.error("Invalid editor configuration", error=str(e))
            raise ConfigurationError(f"Invalid editor configuration: {e}") from e
        self.config = config
        return config
