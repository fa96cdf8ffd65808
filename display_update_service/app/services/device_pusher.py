# display_update_service/app/services/device_pusher.py
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

import httpx

from ..models import DisplayPayload
from .display_formatter import to_device_body

logger = logging.getLogger(__name__)

USER_AGENT = "BinDisplayUpdater/1.0"


def backoff_delay(attempt: int, initial_delay: float) -> float:
    """Delay after failed attempt `attempt` (1-based): initial, 2x, 4x, ..."""
    return initial_delay * (2 ** (attempt - 1))


class DevicePusher:
    def __init__(
        self,
        endpoint: str | None,
        token: str | None,
        field_names: Dict[str, str],
        timeout: float = 10.0,
        max_attempts: int = 3,
        initial_retry_delay: float = 1.0,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.endpoint = endpoint
        self.token = token
        self.field_names = field_names
        self.max_attempts = max(1, max_attempts)
        self.initial_retry_delay = initial_retry_delay
        self._sleep = sleep
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)

    def is_configured(self) -> bool:
        return bool(self.endpoint and self.token)

    async def _post(self, body: Dict[str, Any]) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
            "User-Agent": USER_AGENT,
        }
        response = await self.http_client.post(self.endpoint, json=body, headers=headers)
        response.raise_for_status()
        return response

    async def push(self, payload: DisplayPayload) -> bool:
        """
        Sends the payload to the device. Never raises.
        Returns True once an attempt gets a 2xx, False when unconfigured or out of attempts.
        """
        if not self.endpoint:
            logger.warning("DevicePusher: DEVICE_ENDPOINT not configured, skipping device update.")
            return False
        if not self.token:
            logger.warning("DevicePusher: DEVICE_TOKEN not configured, skipping device update.")
            return False

        body = to_device_body(payload, self.field_names)
        attempt = 1
        while True:
            logger.info(
                f"DevicePusher: Sending update to device (attempt {attempt}/{self.max_attempts})"
            )
            try:
                response = await self._post(body)
                logger.info(f"DevicePusher: Device updated, status {response.status_code}")
                return True
            except httpx.HTTPStatusError as e:
                logger.error(
                    f"DevicePusher: Device rejected update (attempt {attempt}/{self.max_attempts}): "
                    f"{e.response.status_code} - {e.response.text[:200]}"
                )
            except httpx.TimeoutException as e:
                logger.error(
                    f"DevicePusher: Timed out (attempt {attempt}/{self.max_attempts}): {e!r}"
                )
            except httpx.RequestError as e:
                logger.error(
                    f"DevicePusher: Device unreachable (attempt {attempt}/{self.max_attempts}): {e!r}"
                )
            except Exception as e:
                logger.error(
                    f"DevicePusher: Unexpected error (attempt {attempt}/{self.max_attempts}): {e}",
                    exc_info=True,
                )

            if attempt >= self.max_attempts:
                logger.warning(
                    "DevicePusher: Failed to update device after all attempts; "
                    "it keeps showing the last pushed content."
                )
                return False

            delay = backoff_delay(attempt, self.initial_retry_delay)
            logger.info(f"DevicePusher: Retrying in {delay:.1f}s...")
            await self._sleep(delay)
            attempt += 1

    async def close(self):
        if self.http_client:
            await self.http_client.aclose()
            logger.info("DevicePusher HTTP client closed.")
