"""
Client for the upstream workflow-execution API.
"""

import json
import time
from typing import Any, Dict, Optional

import httpx

from shared.errors import UpstreamError, UpstreamTimeoutError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..domain.credentials import mask_credential
from ..domain.parameters import reject_json_constant


class UpstreamClient:
    """Sends workflow runs to ``{base_url}/workflow/run``.

    A failed call is terminal for the invocation: workflow runs are not
    guaranteed idempotent, so nothing here retries.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("workflow_gateway.upstream_client")
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def run_workflow(
        self,
        credential: str,
        workflow_id: str,
        parameters: Dict[str, Any],
        *,
        is_async: bool = False,
    ) -> Any:
        """Run a workflow and return the decoded response body."""
        url = f"{self.base_url}/workflow/run"
        payload = {
            "workflow_id": workflow_id,
            "parameters": parameters,
            "is_async": is_async,
        }
        headers = {
            "Authorization": credential,
            "Content-Type": "application/json",
        }

        self.logger.info(
            "Calling upstream workflow API",
            workflow_id=workflow_id,
            credential=mask_credential(credential),
            is_async=is_async,
        )

        start_time = time.perf_counter()
        try:
            response = await self._client.post(url, json=payload, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            self.logger.error("Upstream workflow API timed out", workflow_id=workflow_id, error=str(exc))
            raise UpstreamTimeoutError(
                f"timeout of {int(self.timeout * 1000)}ms exceeded"
            ) from exc
        except httpx.HTTPError as exc:
            self.logger.error("Upstream workflow API unreachable", workflow_id=workflow_id, error=str(exc))
            raise UpstreamError(str(exc) or type(exc).__name__) from exc
        finally:
            if self.metrics:
                self.metrics.observe("upstream_request_duration_seconds", time.perf_counter() - start_time)

        body = self._decode_body(response)
        if not response.is_success:
            self.logger.warning(
                "Upstream workflow API returned an error status",
                workflow_id=workflow_id,
                status_code=response.status_code,
            )
            raise UpstreamError(
                f"Request failed with status code {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        return body

    @staticmethod
    def _decode_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return json.loads(response.content, parse_constant=reject_json_constant)
        except ValueError:
            return response.text
