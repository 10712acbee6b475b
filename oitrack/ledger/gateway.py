# oitrack/ledger/gateway.py
import logging
from typing import Any, Callable, List, Optional, Protocol

import httpx

from oitrack.config import settings
from oitrack.ledger.errors import GatewayError
from oitrack.ledger.records import (
    ActivitySubmission,
    MonthlyActivityRecord,
    SavedRecord,
    YearlyGoal,
)

logger = logging.getLogger(__name__)


class TaskGateway(Protocol):
    """What a ledger session needs from the task-management API."""

    async def get_monthly_record(
        self, task_id: int, year: int, month: int
    ) -> Optional[MonthlyActivityRecord]: ...

    async def save_monthly_record(
        self, task_id: int, year: int, month: int, submission: ActivitySubmission
    ) -> SavedRecord: ...

    async def get_yearly_goals(self, task_id: int, year: int) -> List[YearlyGoal]: ...

    async def get_previous_activities(
        self, task_id: int, limit: int
    ) -> List[MonthlyActivityRecord]: ...


class HttpTaskGateway:
    """TaskGateway over the REST endpoints served by oitrack.main."""

    def __init__(
        self,
        user_id: str,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.user_id = user_id
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.TASK_API_BASE_URL).rstrip("/"),
            headers={"X-User-Id": user_id},
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kw) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kw)
        except httpx.HTTPError as e:
            raise GatewayError(f"{method} {url} failed: {e}") from e
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            detail = response.json().get("detail")
        except (ValueError, AttributeError):
            detail = response.text
        raise GatewayError(
            f"{response.request.method} {response.request.url.path} returned "
            f"{response.status_code}: {detail}",
            status_code=response.status_code,
        )

    @staticmethod
    def _decode(response: httpx.Response, parse: Callable[[Any], Any]):
        """Parse a 2xx body; a body that is not JSON or has the wrong shape is a gateway failure."""
        try:
            return parse(response.json())
        except (ValueError, TypeError, AttributeError) as e:
            raise GatewayError(
                f"{response.request.method} {response.request.url.path} returned "
                f"an unreadable body: {e}",
                status_code=response.status_code,
            ) from e

    async def get_monthly_record(self, task_id, year, month):
        response = await self._request(
            "GET", f"/tasks/{task_id}/activity", params={"year": year, "month": month}
        )
        # 404 and null both mean "not entered yet"
        if response.status_code == 404:
            return None
        self._raise_for_status(response)
        return self._decode(
            response, lambda data: MonthlyActivityRecord.model_validate(data) if data else None
        )

    async def save_monthly_record(self, task_id, year, month, submission):
        response = await self._request(
            "POST",
            f"/tasks/{task_id}/activity",
            params={"year": year, "month": month},
            json=submission.model_dump(mode="json"),
        )
        self._raise_for_status(response)
        return self._decode(response, SavedRecord.model_validate)

    async def get_yearly_goals(self, task_id, year):
        response = await self._request(
            "GET", f"/tasks/{task_id}/yearly-goals", params={"year": year}
        )
        self._raise_for_status(response)
        return self._decode(
            response,
            lambda data: [YearlyGoal.model_validate(g) for g in data.get("monthly_goals") or []],
        )

    async def get_previous_activities(self, task_id, limit):
        response = await self._request(
            "GET", f"/tasks/{task_id}/activity/previous", params={"limit": limit}
        )
        self._raise_for_status(response)
        return self._decode(
            response, lambda data: [MonthlyActivityRecord.model_validate(r) for r in data]
        )
