"""
Deployment success webhooks.

Each target receives one multipart POST with ``action=deploy``,
``status=success`` and the bundle as the ``bundle`` file field. Targets are
contacted in order; the first failure stops delivery.
"""

import os
from pathlib import Path
from typing import Any, Iterable, Mapping

import httpx

from portage_cd.pipeline.domain.models import WebhookTarget
from portage_cd.shared.domain.exceptions import WebhookError
from portage_cd.shared.infrastructure.config import settings
from portage_cd.shared.infrastructure.logging import get_logger

# response bodies are only echoed into errors/logs up to this size
MAX_BODY_PREVIEW = 512


class WebhookNotifier:
    """Posts the artifact bundle to configured webhook targets."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        timeout: float | None = None,
        environ: Mapping[str, str] | None = None,
        logger: Any = None,
    ):
        self.client = client
        self.timeout = timeout if timeout is not None else settings.webhook_timeout
        self.environ = environ if environ is not None else os.environ
        self.logger = logger if logger is not None else get_logger(__name__)

    def notify_all(self, targets: Iterable[WebhookTarget], bundle_path: Path) -> None:
        """
        Deliver to every target in order.

        Raises:
            WebhookError: On the first transport error or non-2xx response
            OSError: The bundle file cannot be opened
        """
        targets = list(targets)
        if not targets:
            self.logger.debug("webhooks_none_configured")
            return

        if self.client is not None:
            for index, target in enumerate(targets):
                self.send(self.client, target, bundle_path, index)
            return

        with httpx.Client(timeout=self.timeout) as client:
            for index, target in enumerate(targets):
                self.send(client, target, bundle_path, index)

    def _headers(self, target: WebhookTarget) -> dict[str, str]:
        if not target.authorization_var:
            return {}
        value = self.environ.get(target.authorization_var, "")
        if not value:
            self.logger.warning("webhook_authorization_env_empty", env_var=target.authorization_var)
            return {}
        return {"Authorization": value}

    def send(self, client: httpx.Client, target: WebhookTarget, bundle_path: Path, index: int = 0) -> httpx.Response:
        self.logger.debug("webhook_submit", url=target.url, index=index)

        with open(bundle_path, "rb") as bundle_file:
            try:
                response = client.post(
                    target.url,
                    data={"action": "deploy", "status": "success"},
                    files={"bundle": (bundle_path.name, bundle_file, "application/octet-stream")},
                    headers=self._headers(target),
                )
            except httpx.HTTPError as e:
                self.logger.error("webhook_request_failed", url=target.url, error=str(e))
                raise WebhookError(f"webhook request failed: {e} - url: {target.url}", url=target.url) from e

        body = response.text[:MAX_BODY_PREVIEW]
        self.logger.debug(
            "webhook_response",
            url=target.url,
            status=response.status_code,
            content_type=response.headers.get("content-type", ""),
            response_body=body,
        )

        if not response.is_success:
            self.logger.error(
                "webhook_non_success_status",
                url=target.url,
                status=response.status_code,
                response_body=body,
            )
            raise WebhookError(
                f"webhook request failed with status: {response.status_code} - response: {body} - url: {target.url}",
                url=target.url,
                status_code=response.status_code,
            )

        self.logger.info("webhook_submitted", url=target.url, status=response.status_code)
        return response
