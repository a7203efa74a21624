"""Slack transport: paginated Web API access with adaptive rate limiting and metrics.

This module is the only place that talks to Slack. It:
- Uses a Slack `WebClient` with retry handlers (respecting Retry-After).
- Paces every call through a tier-aware `AdaptiveRateLimiter`.
- Emits Prometheus metrics for per-call latency/count.
- Decodes every response into a typed page before handing it to callers, and
  turns every failure into a `TransportError`.
"""

import logging
import time
from time import perf_counter
from typing import Any, Callable, Dict, Iterator, List, Optional

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError
from slack_sdk.http_retry.builtin_handlers import (
    ConnectionErrorRetryHandler,
    RateLimitErrorRetryHandler,
    ServerErrorRetryHandler,
)

from slack_archive.metrics.metrics import API_CALLS, API_LATENCY
from slack_archive.models.archive import EntityKind
from slack_archive.models.config import ArchiveConfig
from slack_archive.models.pages import ChannelPage, HistoryPage, MalformedResponseError, RepliesPage
from slack_archive.sources.ratelimiter import AdaptiveRateLimiter

logger = logging.getLogger(__name__)

NOT_FOUND_ERRORS = {"user_not_found", "bot_not_found", "users_not_found"}
MISSING_THREAD_ERRORS = {"thread_not_found", "message_not_found"}


class TransportError(Exception):
    """A Slack API call failed after retries or returned an unusable payload.

    Attributes:
        method: Slack method name (e.g. "conversations.history").
        error: Slack error code when the API reported one.
    """

    def __init__(self, method: str, message: str, error: Optional[str] = None):
        super().__init__(f"{method}: {message}")
        self.method = method
        self.error = error


class IncompleteThreadError(TransportError):
    """A thread's replies could not be read, because it is gone or the response was unusable."""


class ThreadNotFoundError(IncompleteThreadError):
    """The remote reports that a thread (or its parent message) does not exist."""


def _slack_error_code(err: SlackApiError) -> Optional[str]:
    response = getattr(err, "response", None)
    if response is None:
        return None
    try:
        return response.get("error")
    except AttributeError:
        return None


class SlackTransport:
    """Thin, paginated wrapper around the Slack Web API.

    Args:
        config: Archive configuration (page size, retries, rate tiers).
        token: Slack user or bot token.
        client: Optional pre-built `WebClient` (tests pass a mock).
        rate_limiter: Optional limiter; defaults to one built from `config`.
    """

    def __init__(
        self,
        config: ArchiveConfig,
        token: Optional[str] = None,
        client: Optional[WebClient] = None,
        rate_limiter: Optional[AdaptiveRateLimiter] = None,
    ):
        self.config = config
        if client is None:
            if not token:
                raise ValueError("Slack token is not set")
            client = WebClient(
                token=token,
                retry_handlers=[
                    RateLimitErrorRetryHandler(max_retry_count=5),
                    ServerErrorRetryHandler(max_retry_count=2),
                    ConnectionErrorRetryHandler(max_retry_count=2),
                ],
            )
        self.client = client
        self.rate_limiter = rate_limiter or AdaptiveRateLimiter.for_config(config)

    def _api_call(self, method: str, func: Callable, **kwargs: Any) -> Any:
        """Execute a Slack API call with rate limiting, retries, and metrics.

        Args:
            method: The method name for metrics and rate limiting (e.g., "users.info").
            func: The API client function to call.
            **kwargs: Arguments to pass to the function.

        Returns:
            The API response.

        Raises:
            SlackApiError: If Slack rejected the call (`ok: false` or 4xx).
            TransportError: If the call kept failing after `api_retries` attempts.
        """
        consecutive_errors = 0
        while True:
            self.rate_limiter.acquire(method)
            call_start = perf_counter()
            try:
                resp = func(**kwargs)
                status = str(getattr(resp, "status_code", 200))
                API_CALLS.labels(method=method, status=status).inc()
                API_LATENCY.labels(method=method, status=status).observe(perf_counter() - call_start)
                return resp

            except SlackApiError as e:
                response = getattr(e, "response", None)
                status_int = int(getattr(response, "status_code", 200) or 200)
                API_CALLS.labels(method=method, status=str(status_int)).inc()
                API_LATENCY.labels(method=method, status=str(status_int)).observe(perf_counter() - call_start)

                if status_int == 429:
                    wait_seconds = int(response.headers.get("Retry-After", "1"))
                    logger.info(f"429 on {method}, Retry-After={wait_seconds}s")
                    self.rate_limiter.on_rate_limited(method, wait_seconds)
                    time.sleep(wait_seconds)
                    continue

                # ok:false answers come back as HTTP 200; those and 4xx are not retried
                if status_int < 500:
                    logger.debug(f"Client error in {method}: {e}")
                    raise

                consecutive_errors += 1
                if consecutive_errors <= self.config.api_retries:
                    wait_seconds = 2**consecutive_errors
                    logger.warning(
                        f"Server error {status_int} from Slack API in {method} "
                        f"(attempt {consecutive_errors}/{self.config.api_retries}). Retrying in {wait_seconds}s..."
                    )
                    time.sleep(wait_seconds)
                    continue
                raise TransportError(method, f"server error {status_int}", _slack_error_code(e)) from e

            except Exception as e:
                consecutive_errors += 1
                if consecutive_errors <= self.config.api_retries:
                    wait_seconds = 2**consecutive_errors
                    logger.warning(
                        f"Retrying {method} after unexpected error "
                        f"(attempt {consecutive_errors}/{self.config.api_retries}) in {wait_seconds}s: {e}"
                    )
                    time.sleep(wait_seconds)
                    continue
                logger.error(f"Unexpected error in {method}: {e}")
                raise TransportError(method, str(e)) from e

    def _call(self, method: str, func: Callable, **kwargs: Any) -> Any:
        """Run `_api_call`, mapping Slack rejections to `TransportError`."""
        try:
            return self._api_call(method, func, **kwargs)
        except SlackApiError as e:
            code = _slack_error_code(e)
            raise TransportError(method, f"Slack error {code or e}", code) from e

    def list_channels(self, types: List[str], exclude_archived: bool = False) -> Iterator[ChannelPage]:
        """Yield pages of `conversations.list` until the cursor runs out."""
        types_str = ",".join(types)
        cursor: Optional[str] = None
        while True:
            resp = self._call(
                "conversations.list",
                self.client.conversations_list,
                cursor=cursor,
                limit=self.config.page_limit,
                types=types_str,
                exclude_archived=exclude_archived,
            )
            page = self._decode("conversations.list", ChannelPage.decode, resp)
            logger.debug(f"list_channels: page channels={len(page.channels)}")
            yield page
            cursor = page.next_cursor
            if not cursor:
                break

    def fetch_history(self, channel_id: str, since: Optional[str] = None) -> Iterator[HistoryPage]:
        """Yield pages of messages newer than `since`, each page newest-first.

        Args:
            channel_id: Slack channel/conversation id.
            since: Exclusive lower timestamp bound; None fetches the whole history.
        """
        cursor: Optional[str] = None
        while True:
            kwargs: Dict[str, Any] = {"channel": channel_id, "cursor": cursor, "limit": self.config.page_limit}
            if since:
                kwargs["oldest"] = since
            resp = self._call("conversations.history", self.client.conversations_history, **kwargs)
            page = self._decode("conversations.history", HistoryPage.decode, resp)
            logger.debug(f"fetch_history: page channel={channel_id} messages={len(page.messages)}")
            yield page
            cursor = page.next_cursor
            if not cursor:
                break

    def fetch_thread_replies(self, channel_id: str, anchor_ts: str, since: Optional[str] = None) -> List[dict]:
        """Return the thread transcript (parent first, then replies oldest-first).

        Raises:
            ThreadNotFoundError: If Slack reports that the thread no longer exists.
            IncompleteThreadError: If a replies page has no message list.
            TransportError: On any other failure.
        """
        messages: List[dict] = []
        cursor: Optional[str] = None
        while True:
            kwargs: Dict[str, Any] = {
                "channel": channel_id,
                "ts": anchor_ts,
                "cursor": cursor,
                "limit": self.config.page_limit,
            }
            if since:
                kwargs["oldest"] = since
            try:
                resp = self._api_call("conversations.replies", self.client.conversations_replies, **kwargs)
            except SlackApiError as e:
                code = _slack_error_code(e)
                if code in MISSING_THREAD_ERRORS:
                    raise ThreadNotFoundError("conversations.replies", f"thread {anchor_ts} not found", code) from e
                raise TransportError("conversations.replies", f"Slack error {code or e}", code) from e
            try:
                page = RepliesPage.decode(resp)
            except MalformedResponseError as e:
                raise IncompleteThreadError(
                    "conversations.replies", f"thread {anchor_ts}: {e}", "malformed_response"
                ) from e
            messages.extend(page.messages)
            cursor = page.next_cursor
            if not cursor:
                break
        return messages

    def lookup_entity(self, kind: EntityKind, identifier: str) -> Optional[Dict[str, Any]]:
        """Fetch a user (`users.info`) or bot (`bots.info`) profile.

        Returns:
            The profile payload, or None if Slack has no record for the id.
        """
        method = f"{kind.value}s.info"
        func = self.client.users_info if kind == EntityKind.user else self.client.bots_info
        try:
            resp = self._api_call(method, func, **{kind.value: identifier})
        except SlackApiError as e:
            code = _slack_error_code(e)
            if code in NOT_FOUND_ERRORS:
                logger.debug(f"{method}: no record for {identifier} ({code})")
                return None
            raise TransportError(method, f"Slack error {code or e}", code) from e
        payload = resp.get(kind.value)
        return payload if isinstance(payload, dict) and payload.get("id") else None

    def test_auth(self) -> Dict[str, Any]:
        """Return the identity of the token (`auth.test`)."""
        resp = self._call("auth.test", self.client.auth_test)
        data = getattr(resp, "data", resp)
        return dict(data) if isinstance(data, dict) else {}

    @staticmethod
    def _decode(method: str, decoder: Callable[[Any], Any], resp: Any) -> Any:
        try:
            return decoder(resp)
        except MalformedResponseError as e:
            raise TransportError(method, str(e), "malformed_response") from e
