"""Client for the local llama.cpp-style inference server."""

from __future__ import annotations

import logging
from typing import Any, Optional, cast

import requests

from modelhub.clients.base_client import BaseClient, HttpSession
from modelhub.clients.errors import InferenceLoadError
from modelhub.config import DEFAULT_HTTP_TIMEOUT, DEFAULT_INFERENCE_URL
from modelhub.net.rate_limiter import RateLimiter
from modelhub.utils.request_logging import body_preview


class LlamaServerClient(BaseClient[Any]):
    """Ask the inference server to (re)load a model from a local path."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_INFERENCE_URL,
        timeout: int = DEFAULT_HTTP_TIMEOUT,
        rate_limiter: Optional[RateLimiter] = None,
        logger: Optional[logging.Logger] = None,
        http_session: Optional[HttpSession] = None,
    ) -> None:
        super().__init__(
            rate_limiter or RateLimiter.per_second(1), logger=logger
        )
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http_session = cast(
            HttpSession, http_session or requests.Session()
        )

    def load_model(self, path: str) -> None:
        """POST ``{"model": path}`` to ``/props``; raise on any failure."""

        url = f"{self._base_url}/props"

        def _operation() -> Any:
            self._logger.info("Loading model from %s via %s", path, url)
            return self._http_session.post(
                url, json={"model": path}, timeout=self._timeout
            )

        try:
            response = self._execute_with_rate_limit(
                _operation, name="llama.load_model"
            )
        except requests.RequestException as exc:
            raise InferenceLoadError(
                f"Inference server unreachable at {url}: {exc}"
            ) from exc

        if response.status_code != 200:
            body = getattr(response, "text", "") or ""
            raise InferenceLoadError(
                f"Inference server rejected model {path} "
                f"(HTTP {response.status_code}): {body_preview(body)}"
            )
