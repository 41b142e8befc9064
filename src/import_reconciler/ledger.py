"""Ledger service client used to preview, categorize and commit imports."""

from pathlib import Path
from typing import Any, Optional, Protocol, Union

import requests

from import_reconciler.config import LedgerConfig
from import_reconciler.errors import LedgerError
from import_reconciler.models.category import Category
from import_reconciler.models.session import ChunkResult
from import_reconciler.models.transaction import (
    HistoricalTransaction,
    ImportPreview,
    TransactionType,
)
from import_reconciler.utils.logging_config import get_logger

logger = get_logger(__name__)

API_PREFIX = "/api/v1"


class LedgerClient(Protocol):
    """Operations the import engine needs from the ledger service."""

    def preview_import(self, file_path: Path, account_id: str) -> ImportPreview: ...

    def list_categories(self) -> list[Category]: ...

    def create_category(
        self,
        name: str,
        category_type: TransactionType,
        color: Optional[str] = None,
    ) -> Category: ...

    def list_recent_transactions(self, limit: int) -> list[HistoricalTransaction]: ...

    def confirm_import(self, account_id: str, transactions: list[dict[str, Any]]) -> ChunkResult: ...


def _unwrap_list(payload: Any, key: str = "data") -> list[Any]:
    """Accept either a bare list or a paginated ``{"data": [...]}`` envelope."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]  # type: ignore[no-any-return]
    raise LedgerError(f"Unexpected response shape: {type(payload).__name__}")


class HttpLedgerClient:
    """LedgerClient over the dashboard's REST API."""

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize client.

        Args:
            base_url: API root, e.g. ``http://localhost:3001``.
            api_token: Bearer token (omitted from requests when None).
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/") + API_PREFIX
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if api_token:
            self._session.headers.update({"Authorization": f"Bearer {api_token}"})

    @classmethod
    def from_config(cls, config: LedgerConfig) -> "HttpLedgerClient":
        """Create a client from ledger settings."""
        if not config.api_token:
            logger.warning(f"{config.api_token_env} is not set; requests will be unauthenticated")
        return cls(config.base_url, config.api_token, config.timeout)

    def _request(
        self,
        method: str,
        endpoint: str,
        json: Union[dict[str, Any], None] = None,
        params: Union[dict[str, Any], None] = None,
        data: Union[dict[str, Any], None] = None,
        files: Union[dict[str, Any], None] = None,
    ) -> Any:
        """Make an API request.

        Raises:
            LedgerError: On transport errors, HTTP errors or a non-JSON body.
        """
        url = f"{self.base_url}/{endpoint}"
        try:
            response = self._session.request(
                method,
                url,
                json=json,
                params=params,
                data=data,
                files=files,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            raise LedgerError(f"{method} {endpoint} failed: {e}") from e
        except ValueError as e:
            raise LedgerError(f"{method} {endpoint} returned invalid JSON") from e
        except requests.RequestException as e:
            raise LedgerError(f"{method} {endpoint} could not reach the ledger: {e}") from e

    def preview_import(self, file_path: Path, account_id: str) -> ImportPreview:
        """Upload a statement and get the parsed preview."""
        with open(file_path, "rb") as f:
            payload = self._request(
                "POST",
                "import/preview",
                data={"accountId": account_id},
                files={"file": (file_path.name, f)},
            )
        return ImportPreview.from_dict(payload)

    def list_categories(self) -> list[Category]:
        """Get all categories."""
        categories = []
        for item in _unwrap_list(self._request("GET", "categories")):
            try:
                categories.append(Category.from_dict(item))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring malformed category {item!r}: {e}")
        return categories

    def create_category(
        self,
        name: str,
        category_type: TransactionType,
        color: Optional[str] = None,
    ) -> Category:
        """Create a category and return it as stored by the ledger."""
        body: dict[str, Any] = {"name": name, "type": category_type.value}
        if color:
            body["color"] = color
        result = self._request("POST", "categories", json=body)
        try:
            return Category.from_dict(result)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise LedgerError(f"Category creation returned an invalid category for '{name}'") from e

    def list_recent_transactions(self, limit: int) -> list[HistoricalTransaction]:
        """Get the most recent confirmed transactions, newest first."""
        transactions = []
        for item in _unwrap_list(self._request("GET", "transactions", params={"limit": limit})):
            try:
                transactions.append(HistoricalTransaction.from_dict(item))
            except (AttributeError, TypeError, ValueError) as e:
                logger.debug(f"Ignoring transaction {item!r}: {e}")
        return transactions

    def confirm_import(self, account_id: str, transactions: list[dict[str, Any]]) -> ChunkResult:
        """Commit one chunk of transactions."""
        result = self._request(
            "POST",
            "import/confirm",
            json={"accountId": account_id, "transactions": transactions},
        )
        if not isinstance(result, dict):
            raise LedgerError("Import confirmation returned an unexpected response")
        for error in result.get("errors") or []:
            logger.warning(f"Ledger reported import error: {error}")
        return ChunkResult(
            imported=int(result.get("imported", 0)),
            skipped=int(result.get("skipped", 0)),
        )
