"""Hugging Face Hub catalog client with rate limiting."""

from __future__ import annotations

import logging
from typing import Any, Optional, cast

import requests
from huggingface_hub import hf_hub_url

from modelhub.clients.base_client import BaseClient, HttpSession
from modelhub.clients.errors import (RegistryError, RegistryUnavailable,
                                     StatsUnavailable)
from modelhub.config import (DEFAULT_HTTP_TIMEOUT, DEFAULT_RATE_LIMIT,
                             DEFAULT_REGISTRY_URL, DEFAULT_REVISION)
from modelhub.models import (CatalogEntry, ConfigDocument, GlobalStats,
                             ModelDetail, normalize_model_id)
from modelhub.net.rate_limiter import RateLimiter
from modelhub.utils.request_logging import body_preview

TOTAL_COUNT_HEADER = "X-Total-Count"


class HFClient(BaseClient[Any]):
    """Read catalog listings, revision details and artifacts from the Hub.

    All JSON endpoints go through ``_get_json`` which maps transport failures
    to :class:`RegistryUnavailable` and non-success statuses to
    :class:`RegistryError`; the optional documents (``config.json`` and the
    model card) are fetched best-effort and never raise.
    """

    def __init__(
        self,
        *,
        endpoint: str = DEFAULT_REGISTRY_URL,
        revision: str = DEFAULT_REVISION,
        timeout: int = DEFAULT_HTTP_TIMEOUT,
        rate_limiter: Optional[RateLimiter] = None,
        logger: Optional[logging.Logger] = None,
        http_session: Optional[HttpSession] = None,
    ) -> None:
        limiter = rate_limiter or RateLimiter.per_second(DEFAULT_RATE_LIMIT)
        super().__init__(limiter, logger=logger)
        self._endpoint = endpoint.rstrip("/")
        self._revision = revision
        self._timeout = timeout
        self._http_session = cast(
            HttpSession, http_session or requests.Session()
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def list_by_pipeline(self, pipeline: str) -> list[CatalogEntry]:
        """Return the registry's listing for one pipeline tag."""

        normalized = self._normalize_pipeline(pipeline)
        payload = self._get_json(
            f"{self._endpoint}/api/models",
            params={"pipeline_tag": normalized},
            name=f"hf.list_models({normalized})",
        )
        if not isinstance(payload, list):
            raise RegistryError(200, "listing response is not a JSON array")
        entries = [
            CatalogEntry.from_payload(item)
            for item in payload
            if isinstance(item, dict) and (item.get("id") or item.get("modelId"))
        ]
        self._logger.info(
            "Listed %d models for pipeline %s", len(entries), normalized
        )
        return entries

    def fetch_detail(self, model_id: str) -> ModelDetail:
        """Fetch revision hash, file list and card data for ``model_id``."""

        normalized = self._normalize_repo_id(model_id)
        payload = self._get_json(
            f"{self._endpoint}/api/models/{normalized}",
            name=f"hf.model_info({normalized})",
        )
        if not isinstance(payload, dict):
            raise RegistryError(200, "model detail response is not an object")
        payload.setdefault("id", normalized)
        return ModelDetail.from_payload(payload)

    def fetch_global_stats(self) -> GlobalStats:
        """Read the total model count from a limit-1 listing's headers."""

        url = f"{self._endpoint}/api/models"

        def _operation() -> Any:
            return self._send(url, params={"limit": 1})

        response = self._execute_with_rate_limit(
            _operation, name="hf.global_stats"
        )
        self._raise_for_status(response)
        raw_total = (response.headers or {}).get(TOTAL_COUNT_HEADER)
        if not raw_total:
            raise StatsUnavailable("total count header missing")
        try:
            total = int(str(raw_total).strip())
        except ValueError as exc:
            raise StatsUnavailable(
                f"total count header is not an integer: {raw_total!r}"
            ) from exc
        return GlobalStats(total_models=total)

    def fetch_secondary_config(self, model_id: str) -> Optional[ConfigDocument]:
        """Return the model's ``config.json`` or ``None`` when unavailable."""

        normalized = self._normalize_repo_id(model_id)
        url = (
            f"{self._endpoint}/{normalized}/raw/{self._revision}/config.json"
        )
        try:
            payload = self._get_json(
                url, name=f"hf.config({normalized})"
            )
        except (RegistryError, RegistryUnavailable) as exc:
            self._logger.info(
                "model %s missing config.json: %s", normalized, exc
            )
            return None
        if not isinstance(payload, dict):
            self._logger.info(
                "model %s config.json is not an object; ignoring", normalized
            )
            return None
        return ConfigDocument.from_payload(payload)

    def fetch_model_card(self, model_id: str) -> Optional[str]:
        """Fetch the model card README as UTF-8 text, best-effort."""

        normalized = self._normalize_repo_id(model_id)
        url = hf_hub_url(
            repo_id=normalized,
            filename="README.md",
            revision=self._revision,
            endpoint=self._endpoint,
        )

        def _operation() -> Optional[str]:
            self._logger.debug("Downloading README.md for %s", normalized)
            response = self._send(url)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            response.encoding = response.encoding or "utf-8"
            return response.text or None

        try:
            return self._execute_with_rate_limit(
                _operation,
                name=f"hf.model_card({normalized})",
            )
        except (requests.RequestException, RegistryUnavailable) as exc:
            self._logger.info(
                "README unavailable for %s: %s", normalized, exc
            )
            return None

    def artifact_url(self, model_id: str, filename: str) -> str:
        return hf_hub_url(
            repo_id=self._normalize_repo_id(model_id),
            filename=filename,
            revision=self._revision,
            endpoint=self._endpoint,
        )

    def open_artifact(self, model_id: str, filename: str) -> Any:
        """Start a streaming download of one artifact file.

        The caller owns the returned response and must close it.
        """

        url = self.artifact_url(model_id, filename)

        def _operation() -> Any:
            self._logger.debug("Opening artifact stream %s", url)
            return self._send(url, stream=True)

        response = self._execute_with_rate_limit(
            _operation,
            name=f"hf.artifact({model_id}/{filename})",
        )
        try:
            self._raise_for_status(response)
        except RegistryError:
            _close_quietly(response)
            raise
        return response

    def _get_json(
        self,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        name: str,
    ) -> Any:
        def _operation() -> Any:
            return self._send(url, params=params)

        response = self._execute_with_rate_limit(_operation, name=name)
        self._raise_for_status(response)
        try:
            return response.json()
        except ValueError as exc:
            raise RegistryError(
                response.status_code,
                f"invalid JSON body: {body_preview(response.text)}",
            ) from exc

    def _send(
        self,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        stream: bool = False,
    ) -> Any:
        kwargs: dict[str, Any] = {"timeout": self._timeout}
        if params:
            kwargs["params"] = params
        if stream:
            kwargs["stream"] = True
        try:
            return self._http_session.get(url, **kwargs)
        except requests.RequestException as exc:
            self._logger.warning("Registry request to %s failed: %s", url, exc)
            raise RegistryUnavailable(
                f"Registry unreachable at {url}: {exc}"
            ) from exc

    def _raise_for_status(self, response: Any) -> None:
        status = int(getattr(response, "status_code", 0))
        if 200 <= status < 300:
            return
        body = getattr(response, "text", "") or ""
        self._logger.info(
            "Registry returned HTTP %d: %s", status, body_preview(body)
        )
        raise RegistryError(status, body)

    @staticmethod
    def _normalize_repo_id(repo_identifier: str) -> str:
        return normalize_model_id(repo_identifier)

    @staticmethod
    def _normalize_pipeline(pipeline: str) -> str:
        trimmed = pipeline.strip()
        if not trimmed:
            raise ValueError("Pipeline cannot be empty.")
        return trimmed


def _close_quietly(response: Any) -> None:
    close = getattr(response, "close", None)
    if callable(close):
        close()
