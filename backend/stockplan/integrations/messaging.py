"""
Chat messaging integration (Feishu open platform API).

Only used to announce MRP run outcomes. Disabled unless MESSAGING_ENABLED is
set together with the app credentials and a target chat id.
"""
import json
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

import requests

from stockplan.core.settings import settings
from stockplan.exceptions import IntegrationError
from stockplan.integrations.token_cache import TokenCache
from stockplan.logging_config import get_logger

logger = get_logger(__name__)

SERVICE_NAME = "messaging"


class MessagingClient:
    """Minimal client: tenant token + send message to a chat."""

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        base_url: str = "https://open.feishu.cn",
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ):
        self.app_id = app_id
        self.app_secret = app_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.tokens = TokenCache(self._fetch_token)

    def _post(self, path: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.Timeout:
            raise IntegrationError(SERVICE_NAME, f"Request to {path} timed out")
        except requests.exceptions.RequestException as e:
            raise IntegrationError(SERVICE_NAME, f"Request to {path} failed: {e}")
        except ValueError:
            raise IntegrationError(SERVICE_NAME, f"Invalid JSON from {path}")

        if body.get("code", 0) != 0:
            raise IntegrationError(
                SERVICE_NAME,
                body.get("msg") or "API returned an error",
                details={"code": body.get("code"), "path": path},
            )
        return body

    def _fetch_token(self) -> Tuple[str, int]:
        body = self._post(
            "/open-apis/auth/v3/tenant_access_token/internal",
            {"app_id": self.app_id, "app_secret": self.app_secret},
        )
        token = body.get("tenant_access_token")
        if not token:
            raise IntegrationError(SERVICE_NAME, "Token response has no tenant_access_token")
        return token, int(body.get("expire", 0))

    def send_text(self, chat_id: str, text: str) -> None:
        token = self.tokens.get()
        self._post(
            "/open-apis/im/v1/messages?receive_id_type=chat_id",
            {
                "receive_id": chat_id,
                "msg_type": "text",
                "content": json.dumps({"text": text}, ensure_ascii=False),
            },
            headers={"Authorization": f"Bearer {token}"},
        )

    def notify_mrp_run(self, run, chat_id: str) -> None:
        self.send_text(chat_id, format_run_summary(run))


def format_run_summary(run) -> str:
    lines = [f"MRP run {run.run_code}: {run.status}"]
    if run.status == "FAILED":
        lines.append(f"Error: {run.error_message}")
    else:
        lines.append(f"Materials planned: {run.total_items or 0}")
        lines.append(f"Planning horizon: {run.planning_horizon} days")
    if run.diagnostics:
        lines.append(f"Degraded supply lookups: {len(run.diagnostics)}")
    return "\n".join(lines)


@lru_cache()
def get_messaging_client() -> MessagingClient:
    return MessagingClient(
        app_id=settings.MESSAGING_APP_ID,
        app_secret=settings.MESSAGING_APP_SECRET,
        base_url=settings.MESSAGING_BASE_URL,
        timeout=settings.MESSAGING_TIMEOUT_SECONDS,
    )


def notify_mrp_run(run) -> bool:
    """
    Post a run summary when messaging is configured.

    Returns True if a message was sent. Failures are logged, never raised.
    """
    if not settings.MESSAGING_ENABLED:
        return False
    if not (settings.MESSAGING_APP_ID and settings.MESSAGING_APP_SECRET and settings.MESSAGING_WEBHOOK_CHAT_ID):
        logger.warning("Messaging enabled but app credentials or chat id are missing")
        return False
    try:
        get_messaging_client().notify_mrp_run(run, settings.MESSAGING_WEBHOOK_CHAT_ID)
    except IntegrationError as e:
        logger.warning(
            f"MRP run notification failed: {e.message}",
            extra={"mrp_run_id": run.id, **e.details},
        )
        return False
    logger.info("MRP run notification sent", extra={"mrp_run_id": run.id})
    return True
