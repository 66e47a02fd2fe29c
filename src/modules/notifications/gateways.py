"""Push delivery gateways.

``HttpPushGateway`` POSTs one JSON message per batch of tokens to
``PUSH_SERVICE_URL``; the service answers with a per-token result list::

    {"results": [{"token": "...", "success": false,
                  "error": "invalid-registration-token"}]}

``LoggingPushGateway`` is used when no URL is configured (local/test).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import requests
import structlog
from django.conf import settings

from modules.notifications.exceptions import PushGatewayError

logger = structlog.get_logger(__name__)

INVALID_TOKEN_ERRORS = frozenset(
    {"invalid-registration-token", "registration-token-not-registered"}
)


@dataclass(frozen=True)
class PushMessage:
    title: str
    body: str
    link: str = ""
    tag: str = ""
    data: Dict[str, str] = field(default_factory=dict)

    def as_payload(self) -> Dict[str, Any]:
        return {
            "notification": {"title": self.title, "body": self.body, "tag": self.tag},
            "data": self.data,
            "link": self.link,
        }


@dataclass(frozen=True)
class PushResult:
    sent: int = 0
    failed: int = 0
    invalid_tokens: List[str] = field(default_factory=list)


class IPushGateway(ABC):
    @abstractmethod
    def send(self, tokens: Sequence[str], message: PushMessage) -> PushResult:
        """Deliver ``message`` to every token.

        Raises:
            PushGatewayError: the whole batch could not be delivered.
        """


class HttpPushGateway(IPushGateway):
    def __init__(self, url: str, api_key: str = "", timeout: int = 10) -> None:
        self._url = url
        self._api_key = api_key
        self._timeout = timeout

    def send(self, tokens: Sequence[str], message: PushMessage) -> PushResult:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        body = {"tokens": list(tokens), **message.as_payload()}
        try:
            response = requests.post(
                self._url, json=body, headers=headers, timeout=self._timeout
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise PushGatewayError(str(exc)) from exc

        results = self._parse_results(payload)
        sent = sum(1 for r in results if r.get("success"))
        invalid = [
            r["token"]
            for r in results
            if not r.get("success") and r.get("error") in INVALID_TOKEN_ERRORS
        ]
        return PushResult(sent=sent, failed=len(results) - sent, invalid_tokens=invalid)

    @staticmethod
    def _parse_results(payload: object) -> List[dict]:
        """``{"results": [{"token", "success", "error"}, ...]}`` or ``PushGatewayError``."""
        if not isinstance(payload, dict):
            raise PushGatewayError(f"Unexpected push reply: {type(payload).__name__}")
        results = payload.get("results", [])
        if not isinstance(results, list) or not all(
            isinstance(r, dict) and isinstance(r.get("token"), str) for r in results
        ):
            raise PushGatewayError("Unexpected push reply: malformed results")
        return results


class LoggingPushGateway(IPushGateway):
    def send(self, tokens: Sequence[str], message: PushMessage) -> PushResult:
        logger.info(
            "push.logged", tokens=len(tokens), title=message.title, body=message.body
        )
        return PushResult(sent=len(tokens))


def get_push_gateway() -> IPushGateway:
    """Gateway selected by ``PUSH_SERVICE_URL``."""
    if settings.PUSH_SERVICE_URL:
        return HttpPushGateway(
            settings.PUSH_SERVICE_URL,
            api_key=settings.PUSH_SERVICE_KEY,
            timeout=settings.PUSH_TIMEOUT_SECONDS,
        )
    return LoggingPushGateway()
