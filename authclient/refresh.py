"""
Single-flight access token refresh.

The coordinator is consulted whenever a call made through the client fails
with an HTTP status. It owns two statuses:

* auth-expired: the first failing call starts one refresh; calls failing
  while that refresh is in flight are parked in a FIFO queue and replayed
  with the new token once it arrives.
* session-expired: the session is over; the token is dropped and the user is
  sent back to the entry route without attempting a refresh.

Every other error is re-raised untouched.

The flag check and the flag set in handle_error() happen before the first
await, so on a single event loop no second refresh can start in between.
Sharing one client across threads would need a lock around the flag and the queue.

A forced logout clears the flag and starts a new session epoch. A refresh
still on the wire at that point belongs to the old epoch: calls failing
meanwhile still park behind it, and when it settles its token is discarded
and its queue is rejected.
"""

import asyncio
import logging
from typing import List, Optional, Set

from authshared.exceptions import (
    AuthClientError, ErrorCode, ResponseError, RefreshFailureError
)
from authshared.interfaces import INavigator
from authshared.logging_config import AuditLogger, log_structured_error, mask_token
from authshared.models import (
    Notice, PendingRequest, PipelineSettings, RefreshState, RequestConfig, Response
)
from authclient.auth.token_storage import SessionTokenStore

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Session Expired"
SESSION_EXPIRED_NOTICE_ID = "session-expired"


class RefreshCoordinator:
    """
    Owns the refresh state machine and the queue of parked requests.

    One instance is created per client; nothing else mutates its state.
    """

    def __init__(
        self,
        token_store: SessionTokenStore,
        navigator: INavigator,
        settings: PipelineSettings,
        audit_logger: Optional[AuditLogger] = None
    ):
        self.token_store = token_store
        self.navigator = navigator
        self.settings = settings
        self.audit = audit_logger or AuditLogger()

        self._state = RefreshState.IDLE
        self._pending: List[PendingRequest] = []
        self._replay_tasks: Set[asyncio.Task] = set()
        self._refresh_count = 0
        self._refresh_in_flight = False
        self._epoch = 0

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def is_refreshing(self) -> bool:
        return self._state is RefreshState.REFRESHING

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def refresh_count(self) -> int:
        """Number of refresh calls issued so far."""
        return self._refresh_count

    @property
    def epoch(self) -> int:
        """Incremented by every forced logout."""
        return self._epoch

    async def handle_error(self, error: AuthClientError, client) -> Response:
        """
        Resolve or re-raise a failed call.

        Args:
            error: The error raised by the client for the original call
            client: Client used to refresh the token and replay requests

        Returns:
            Response of the replayed request

        Raises:
            The original error for statuses this coordinator does not own,
            SessionExpiredError after a forced logout, RefreshFailureError
            when the refresh call fails.
        """
        if not isinstance(error, ResponseError):
            raise error

        if error.status == self.settings.session_expired_status:
            self._force_logout(f"session expired ({error.status})", error.config)
            raise error

        if error.status != self.settings.auth_expired_status:
            raise error

        config = error.config
        if config.refresh_attempts >= self.settings.max_refresh_attempts:
            logger.warning(
                f"{config.method} {config.url} rejected again after "
                f"{config.refresh_attempts} token refresh(es); giving up"
            )
            error.error_code = ErrorCode.AUTH_RETRY_LIMIT_EXCEEDED
            error.context['refresh_attempts'] = config.refresh_attempts
            self.audit.log_error(error, url=config.url)
            raise error

        config.retrying_after_token_refresh = True
        config.refresh_attempts += 1

        if self._refresh_in_flight:
            return await self._enqueue(config, error, client)

        self._state = RefreshState.REFRESHING
        self._refresh_in_flight = True
        return await self._refresh_and_replay(config, error, client)

    async def _enqueue(self, config: RequestConfig, error: AuthClientError, client) -> Response:
        """Park a request until the in-flight refresh settles."""
        future = asyncio.get_running_loop().create_future()
        self._pending.append(PendingRequest(future=future, config=config, error=error, client=client))
        logger.debug(f"Queued {config.method} {config.url} behind token refresh ({len(self._pending)} waiting)")
        return await future

    async def _refresh_and_replay(self, config: RequestConfig, error: AuthClientError, client) -> Response:
        logger.info(f"Access token expired on {config.method} {config.url}; refreshing")
        self._refresh_count += 1
        epoch = self._epoch

        try:
            token = await client.refresh_token()
        except asyncio.CancelledError:
            self._reject_pending()
            self._settle_refresh(epoch)
            raise
        except Exception as e:
            queued = self._reject_pending()
            self._settle_refresh(epoch)
            if epoch != self._epoch:
                logger.info(f"Token refresh superseded by forced logout failed: {e}")
                raise error
            failure = e if isinstance(e, RefreshFailureError) else RefreshFailureError(cause=e)
            self.audit.log_token_refresh(False, queued_requests=queued, failure_reason=str(e))
            log_structured_error(logger, failure, url=self.settings.refresh_path)
            self._force_logout("token refresh failed", config)
            if failure is e:
                raise
            raise failure from e

        if epoch != self._epoch:
            queued = self._reject_pending()
            self._settle_refresh(epoch)
            logger.warning(
                f"Discarding token from a refresh superseded by forced logout; "
                f"rejected {queued} queued request(s)"
            )
            raise error

        self.token_store.set_token(token)
        queued = self._replay_pending()
        self._settle_refresh(epoch)
        self.audit.log_token_refresh(True, queued_requests=queued)
        logger.info(f"Token refreshed ({mask_token(token)}); replayed {queued} queued request(s)")

        # Let the queued replays reach the transport before the original request.
        await asyncio.sleep(0)
        return await client.request(config)

    def _settle_refresh(self, epoch: int) -> None:
        """Mark the refresh as finished; the flag was already cleared if the epoch moved on."""
        self._refresh_in_flight = False
        if epoch == self._epoch:
            self._state = RefreshState.IDLE

    def _replay_pending(self) -> int:
        """Resubmit every parked request in enqueue order and empty the queue."""
        pending, self._pending = self._pending, []
        for entry in pending:
            task = asyncio.ensure_future(self._replay(entry))
            self._replay_tasks.add(task)
            task.add_done_callback(self._replay_tasks.discard)
        return len(pending)

    def _reject_pending(self) -> int:
        """Fail every parked request with its own captured error and empty the queue."""
        pending, self._pending = self._pending, []
        for entry in pending:
            entry.reject(entry.error)
        return len(pending)

    async def _replay(self, entry: PendingRequest) -> None:
        try:
            response = await entry.client.request(entry.config)
        except asyncio.CancelledError:
            entry.future.cancel()
            raise
        except Exception as e:
            entry.reject(e)
        else:
            entry.resolve(response)

    def _force_logout(self, reason: str, config: Optional[RequestConfig]) -> None:
        """Drop the session and send the user back to the entry route."""
        self._epoch += 1
        self._state = RefreshState.IDLE
        rejected = self._reject_pending()
        self.token_store.clear()
        if rejected:
            logger.info(f"Rejected {rejected} queued request(s) on forced logout")

        route = self.settings.entry_route
        self.audit.log_forced_logout(reason, route, url=config.url if config else None)
        self.navigator.redirect(
            route,
            Notice(
                message=SESSION_EXPIRED_MESSAGE,
                notice_id=SESSION_EXPIRED_NOTICE_ID,
                duration_ms=self.settings.notice_duration_ms
            )
        )
