"""
Client for the managed backend.

Talks to the PostgREST data API and the GoTrue auth API over httpx,
always on behalf of one caller: the caller's bearer token is forwarded so
row-level security scopes every query to that user.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
import logging

import httpx
from pydantic import ValidationError

from cropwatch import config
from cropwatch.errors import AuthorizationError, ExternalServiceError, ParseError
from cropwatch.models import Alert, Farm, Reading
from cropwatch.utils.http_utils import error_message, request_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Authenticated identity passed explicitly into every operation."""
    user_id: str
    access_token: str


def _auth_headers(access_token: str, anon_key: str) -> Dict[str, str]:
    return {
        "apikey": anon_key,
        "Authorization": f"Bearer {access_token}",
    }


async def authenticate(
    client: httpx.AsyncClient,
    authorization: Optional[str],
    base_url: str = config.SUPABASE_URL,
    anon_key: str = config.SUPABASE_ANON_KEY,
) -> Caller:
    """
    Resolve an ``Authorization`` header into a Caller.

    Raises:
        AuthorizationError: Header missing, malformed or rejected
        ExternalServiceError: Auth service unreachable
    """
    if not authorization:
        raise AuthorizationError("Missing authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthorizationError("Malformed authorization header")
    token = token.strip()

    try:
        response = await client.get(
            f"{base_url}/auth/v1/user",
            headers=_auth_headers(token, anon_key),
        )
    except httpx.HTTPError as e:
        logger.error(f"Auth service request failed: {e}")
        raise ExternalServiceError("auth service unavailable") from e

    if response.status_code in (401, 403):
        raise AuthorizationError("Unauthorized")
    if response.is_error:
        raise ExternalServiceError(f"auth service error: {error_message(response)}")

    try:
        user = response.json()
    except ValueError as e:
        raise ExternalServiceError("auth service returned invalid JSON") from e
    if not isinstance(user, dict) or not user.get("id"):
        raise AuthorizationError("Unauthorized")
    return Caller(user_id=str(user["id"]), access_token=token)


def _in_filter(values: Iterable[str]) -> str:
    return "in.(" + ",".join(values) + ")"


def _flatten_farm(row: Any) -> Any:
    """Replace an embedded ``farm: {name}`` object with a ``farm_name`` field."""
    if not isinstance(row, dict) or "farm" not in row:
        return row
    row = dict(row)
    farm = row.pop("farm")
    row["farm_name"] = farm.get("name") if isinstance(farm, dict) else None
    return row


def _count_rows(rows: Any) -> int:
    return len(rows) if isinstance(rows, list) else 0


def _parse_rows(model, rows: Any) -> List:
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise ParseError(f"Expected a list of {model.__name__} rows")
    try:
        return [model.model_validate(row) for row in rows]
    except ValidationError as e:
        raise ParseError(f"Malformed {model.__name__} row: {e.errors()[0]['msg']}") from e


class SupabaseStore:
    """Row access for farms, NDVI readings and alerts on behalf of one caller."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        caller: Caller,
        base_url: str = config.SUPABASE_URL,
        anon_key: str = config.SUPABASE_ANON_KEY,
    ):
        self.client = client
        self.caller = caller
        self.rest_url = f"{base_url}/rest/v1"
        self.headers = _auth_headers(caller.access_token, anon_key)

    async def _request(self, method: str, table: str, params=None, json=None, prefer=None):
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer
        return await request_json(
            self.client,
            method,
            f"{self.rest_url}/{table}",
            service="database",
            params=params,
            json=json,
            headers=headers,
        )

    # ── farms ────────────────────────────────────────────────────────────
    async def list_farms(self, columns: str = "*") -> List[Farm]:
        rows = await self._request(
            "GET", "farms",
            params={"select": columns, "user_id": f"eq.{self.caller.user_id}", "order": "name.asc"},
        )
        return _parse_rows(Farm, rows)

    async def get_farm(self, farm_id: str) -> Optional[Farm]:
        rows = await self._request(
            "GET", "farms",
            params={
                "select": "id,name,crop_type,user_id",
                "id": f"eq.{farm_id}",
                "user_id": f"eq.{self.caller.user_id}",
                "limit": "1",
            },
        )
        farms = _parse_rows(Farm, rows)
        return farms[0] if farms else None

    # ── readings ─────────────────────────────────────────────────────────
    async def list_readings(
        self,
        farm_ids: List[str],
        since: date,
        newest_first: bool = True,
    ) -> List[Reading]:
        if not farm_ids:
            return []
        direction = "desc" if newest_first else "asc"
        rows = await self._request(
            "GET", "ndvi_readings",
            params={
                "select": "*",
                "farm_id": _in_filter(farm_ids),
                "reading_date": f"gte.{since.isoformat()}",
                "order": f"reading_date.{direction}",
            },
        )
        return _parse_rows(Reading, rows)

    async def insert_reading(self, reading: Reading) -> Reading:
        rows = await self._request(
            "POST", "ndvi_readings",
            json=reading.model_dump(mode="json", exclude_none=True),
            prefer="return=representation",
        )
        created = _parse_rows(Reading, rows)
        if not created:
            raise ExternalServiceError("database did not return the inserted reading")
        return created[0]

    # ── alerts ───────────────────────────────────────────────────────────
    async def list_alerts(self) -> List[Alert]:
        """All alerts of the caller, newest first, with the farm name joined in."""
        rows = await self._request(
            "GET", "alerts",
            params={
                "select": "*,farm:farms(name)",
                "user_id": f"eq.{self.caller.user_id}",
                "order": "created_at.desc",
            },
        )
        if isinstance(rows, list):
            rows = [_flatten_farm(row) for row in rows]
        return _parse_rows(Alert, rows)

    async def list_alert_keys(self, created_since: datetime) -> Set[Tuple[str, str]]:
        """(farm_id, alert_type) pairs of alerts created since ``created_since``."""
        rows = await self._request(
            "GET", "alerts",
            params={
                "select": "farm_id,alert_type",
                "user_id": f"eq.{self.caller.user_id}",
                "created_at": f"gte.{created_since.isoformat()}",
            },
        )
        if rows is None:
            return set()
        try:
            return {(str(row["farm_id"]), str(row["alert_type"])) for row in rows}
        except (KeyError, TypeError) as e:
            raise ParseError(f"Malformed alert key row: {e}") from e

    async def insert_alerts(self, alerts: List[Alert]) -> int:
        if not alerts:
            return 0
        payload = [
            alert.model_dump(mode="json", exclude={"id", "is_read", "created_at", "farm_name"})
            for alert in alerts
        ]
        await self._request("POST", "alerts", json=payload, prefer="return=minimal")
        return len(payload)

    async def mark_alerts_read(self, alert_ids: List[str]) -> int:
        """Mark alerts read; returns the number of rows actually updated."""
        if not alert_ids:
            return 0
        rows = await self._request(
            "PATCH", "alerts",
            params={
                "select": "id",
                "id": _in_filter(alert_ids),
                "user_id": f"eq.{self.caller.user_id}",
            },
            json={"is_read": True},
            prefer="return=representation",
        )
        return _count_rows(rows)

    async def delete_alert(self, alert_id: str) -> int:
        rows = await self._request(
            "DELETE", "alerts",
            params={
                "select": "id",
                "id": f"eq.{alert_id}",
                "user_id": f"eq.{self.caller.user_id}",
            },
            prefer="return=representation",
        )
        return _count_rows(rows)
