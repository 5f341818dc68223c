"""
HTTP Request action: calls an arbitrary URL with the configured method.
"""
from typing import Any, Dict, Optional, Union

from ...core.logging_config import get_logger
from ...models.zap_model import ActionType
from ..credential_store import Credentials
from .base import ActionParams, ActionResult, BaseActionExecutor

logger = get_logger("action_http_request")

SUPPORTED_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE"}


class HttpRequestParams(ActionParams):
    url: Optional[str] = None
    method: str = "GET"
    body: Optional[Union[str, Dict[str, Any], list]] = None
    headers: Dict[str, str] = {}


class HttpRequestExecutor(BaseActionExecutor):
    action_type = ActionType.HTTP_REQUEST.value
    params_model = HttpRequestParams

    async def run(self, params: HttpRequestParams, credentials: Optional[Credentials]) -> ActionResult:
        method = params.method.upper()
        logger.info(f"[HTTP Request] {method} {params.url}")

        if not params.url:
            logger.warning("No URL provided - skipping")
            return ActionResult.ok("No URL provided", skipped=True)

        if method not in SUPPORTED_METHODS:
            return ActionResult.failure(f"Unsupported HTTP method: {method}")

        headers = {"Content-Type": "application/json", **params.headers}
        request_kwargs: Dict[str, Any] = {"headers": headers}
        if method != "GET" and params.body is not None:
            if isinstance(params.body, str):
                request_kwargs["content"] = params.body
            else:
                request_kwargs["json"] = params.body

        async with self.http_client() as client:
            response = await client.request(method, params.url, **request_kwargs)

        logger.info(f"HTTP Request {method} {params.url} -> {response.status_code}")

        if not response.is_success:
            return ActionResult.failure(
                f"HTTP {method} {params.url} returned {response.status_code}",
                status_code=response.status_code
            )

        return ActionResult.ok(status_code=response.status_code, response_preview=response.text[:100])
