"""Async HTTP client for the job application API."""
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
import pydantic
from loguru import logger

from .config import settings
from .exceptions import ApiError, NotFoundError, ValidationError
from .schemas import (
    ApplicationPage,
    Communication,
    DeleteResponse,
    JobApplication,
    Note,
)

BASE_PATH = "/job-applications"

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return response.text or response.reason_phrase


def _parse(model: Type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        logger.error(f"Malformed {model.__name__} in response: {e}")
        raise ApiError(f"Invalid response: expected {model.__name__}") from e


class ApiClient:
    """Thin wrapper over httpx.AsyncClient.

    400 responses raise ValidationError, 404 raise NotFoundError, and any
    other failure (status, transport, or a 2xx body that is not the expected
    JSON shape) raises ApiError.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            transport=transport,
            timeout=timeout or settings.API_TIMEOUT_SECONDS,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(f"Request failed: {e}") from e

        if response.status_code == 400:
            raise ValidationError(_detail(response))
        if response.status_code == 404:
            parts = path.strip("/").split("/")
            raise NotFoundError("Job application", parts[1] if len(parts) > 1 else path)
        if response.is_error:
            raise ApiError(_detail(response), status_code=response.status_code)
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{method} {path} returned a non-JSON body")
            raise ApiError("Invalid response: body is not JSON", status_code=response.status_code) from e

    async def list_applications(
        self,
        search: Optional[str] = None,
        stage: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> ApplicationPage:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if search:
            params["search"] = search
        if stage:
            params["stage"] = stage
        return _parse(ApplicationPage, await self._request("GET", BASE_PATH, params=params))

    async def get_application(self, application_id: str) -> JobApplication:
        data = await self._request("GET", f"{BASE_PATH}/{application_id}")
        return _parse(JobApplication, data)

    async def create_application(self, fields: Dict[str, Any]) -> JobApplication:
        data = await self._request("POST", BASE_PATH, json=fields)
        return _parse(JobApplication, data)

    async def update_application(self, application_id: str, fields: Dict[str, Any]) -> JobApplication:
        data = await self._request("PATCH", f"{BASE_PATH}/{application_id}", json=fields)
        return _parse(JobApplication, data)

    async def delete_application(self, application_id: str) -> DeleteResponse:
        data = await self._request("DELETE", f"{BASE_PATH}/{application_id}")
        return _parse(DeleteResponse, data)

    async def add_note(self, application_id: str, content: str, type: Optional[str] = None) -> Note:
        body = {"content": content}
        if type:
            body["type"] = type
        data = await self._request("POST", f"{BASE_PATH}/{application_id}/notes", json=body)
        return _parse(Note, data)

    async def add_communication(
        self,
        application_id: str,
        type: str,
        direction: str,
        content: str,
        subject: Optional[str] = None,
        contact_person: Optional[str] = None,
    ) -> Communication:
        body = {"type": type, "direction": direction, "content": content}
        if subject:
            body["subject"] = subject
        if contact_person:
            body["contactPerson"] = contact_person
        data = await self._request(
            "POST", f"{BASE_PATH}/{application_id}/communications", json=body
        )
        return _parse(Communication, data)
