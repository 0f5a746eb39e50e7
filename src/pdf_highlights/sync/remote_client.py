"""
Remote annotation service client.

The core only relies on a save/delete contract from the remote store; this
module provides the REST implementation of that contract on top of httpx.
Timeouts apply here and nowhere else.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ..errors import RemoteSyncError

logger = logging.getLogger(__name__)


class RemoteAnnotationStore(Protocol):
    """What the sync layer needs from the remote store"""

    async def save(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Persist an annotation and return the server's copy (with its ``id``)"""
        ...

    async def delete(self, annotation_id: str) -> None:
        ...


class RemoteAnnotationClient:
    """
    REST client for the annotation service.

    Every call is a POST with a JSON body and a bearer token. Any failure,
    including timeouts and non-2xx responses, raises RemoteSyncError.
    """

    def __init__(self, base_url: str, auth_token: str = "", timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Most specific message in an error response: JSON message/error, body text, or status"""
        message = f"HTTP {response.status_code}"
        try:
            data = response.json()
            if isinstance(data, dict) and (data.get("message") or data.get("error")):
                return str(data.get("message") or data.get("error"))
        except ValueError:
            if response.text:
                return response.text
        return message

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=body, headers=self._headers())
        except httpx.TimeoutException as e:
            raise RemoteSyncError(f"Request to {endpoint} timed out") from e
        except httpx.HTTPError as e:
            raise RemoteSyncError(f"Request to {endpoint} failed: {e}") from e

        if response.is_error:
            raise RemoteSyncError(self._error_message(response), status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteSyncError(f"Invalid JSON from {endpoint}") from e
        return data if isinstance(data, dict) else {}

    async def save(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create or update an annotation

        Returns:
            The stored annotation as returned by the server
        """
        data = await self._post("/saveAnnotation", payload)
        annotation = data.get("annotation")
        if not isinstance(annotation, dict):
            raise RemoteSyncError("saveAnnotation response carries no annotation")
        return annotation

    async def delete(self, annotation_id: str) -> None:
        await self._post("/deleteAnnotation", {"annotationId": annotation_id})

    async def list_annotations(self, reference_id: str) -> List[Dict[str, Any]]:
        """Annotations the server holds for a document"""
        data = await self._post("/getAnnotations", {"referenceId": reference_id})
        annotations = data.get("annotations") or []
        return [a for a in annotations if isinstance(a, dict)]
