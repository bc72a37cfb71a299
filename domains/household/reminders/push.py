"""Web Push fan-out to every registered device of a member.

Delivery goes through pywebpush (VAPID signed, aes128gcm encrypted). The HTTP
call is blocking, so each attempt runs in a worker thread with a request
timeout; a stalled push service shows up as a failed attempt.
"""

import asyncio
import json
from dataclasses import asdict, dataclass, field
from typing import Iterable, Optional

from pywebpush import WebPushException, webpush

import config
from logger import logger
from utils import sanitize_for_log
from .. import store
from ..config import PUSH_TIMEOUT_SECONDS, PUSH_TTL_SECONDS

# Push service says the subscription no longer exists
GONE_STATUS_CODES = (404, 410)


@dataclass
class ErrorDetail:
    """Why one delivery attempt failed."""
    code: Optional[int]  # HTTP status from the push service, None for local/network errors
    message: str


@dataclass
class DispatchResult:
    """Aggregate outcome of a fan-out."""
    sent: int = 0
    failed: int = 0
    configured: bool = False
    errors: list[ErrorDetail] = field(default_factory=list)

    def merge(self, other: "DispatchResult") -> None:
        self.sent += other.sent
        self.failed += other.failed
        self.configured = self.configured or other.configured
        self.errors.extend(other.errors)

    def to_dict(self) -> dict:
        return asdict(self)


class PushDispatcher:
    """Sends payloads to members' push subscriptions.

    Keys default to the process configuration; pass them explicitly to
    override (tests, multi-tenant setups).
    """

    def __init__(
        self,
        vapid_private_key: Optional[str] = None,
        vapid_subject: Optional[str] = None,
        timeout: float = PUSH_TIMEOUT_SECONDS,
        ttl: int = PUSH_TTL_SECONDS,
    ):
        self._vapid_private_key = vapid_private_key
        self._vapid_subject = vapid_subject
        self.timeout = timeout
        self.ttl = ttl

    @property
    def configured(self) -> bool:
        if self._vapid_private_key is not None:
            return bool(self._vapid_private_key)
        return config.push_configured()

    def _send(self, subscription: dict, data: str) -> None:
        """Blocking delivery of one encrypted payload."""
        webpush(
            subscription_info=subscription,
            data=data,
            vapid_private_key=self._vapid_private_key or config.VAPID_PRIVATE_KEY,
            # webpush() adds aud/exp to the claims dict, so build a fresh one per call
            vapid_claims={"sub": self._vapid_subject or config.VAPID_SUBJECT},
            ttl=self.ttl,
            timeout=self.timeout,
        )

    async def dispatch(self, member_id: int, payload: dict) -> DispatchResult:
        """Deliver payload to every subscription of a member.

        Gone subscriptions (404/410) are deleted and not counted. Any other
        failure is counted and reported; the subscription is kept for the
        next attempt.

        Returns:
            DispatchResult with sent/failed counts and error details
        """
        if not self.configured:
            return DispatchResult(configured=False)

        result = DispatchResult(configured=True)
        data = json.dumps(payload)

        for sub in store.get_subscriptions(member_id):
            try:
                await asyncio.to_thread(self._send, sub.subscription, data)
                result.sent += 1
            except WebPushException as e:
                # requests.Response is falsy for 4xx/5xx, compare against None
                response = e.response
                status = response.status_code if response is not None else None
                if status in GONE_STATUS_CODES:
                    store.delete_subscription(sub.id)
                    logger.info(f"Removed expired push subscription {sub.id} of member {member_id} ({status})")
                    continue
                message = (response.text if response is not None else "") or e.message or "Push error"
                self._record_failure(result, member_id, status, message)
            except Exception as e:
                self._record_failure(result, member_id, None, str(e) or type(e).__name__)

        return result

    @staticmethod
    def _record_failure(result: DispatchResult, member_id: int, code: Optional[int], message: str) -> None:
        result.failed += 1
        result.errors.append(ErrorDetail(code=code, message=message))
        logger.error(f"Push send failed for member {member_id}: {code or ''} {sanitize_for_log(message)}")

    async def dispatch_many(
        self,
        member_ids: Iterable[Optional[int]],
        payload: dict,
        exclude_member_id: Optional[int] = None,
    ) -> DispatchResult:
        """Fan out to several members, each at most once, skipping the actor."""
        unique_ids = [
            member_id
            for member_id in dict.fromkeys(member_ids)
            if member_id and member_id != exclude_member_id
        ]

        total = DispatchResult()
        for member_id in unique_ids:
            total.merge(await self.dispatch(member_id, payload))
        return total
