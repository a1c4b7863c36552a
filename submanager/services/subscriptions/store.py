"""
Subscription Store

The client-side owner of the signed-in user's subscriptions.

DESIGN DECISION: The store is the single source of truth for callers, the
server is the source of truth for persistence. Local state changes only
after the server confirms, and whatever the server returns overwrites the
local entry.

The store is bound to an AuthSession. When the session's token changes
(sign-in as someone else, logout) the store clears itself, so it never
holds another session's data.

Race handling:
- Several operations may be in flight at once; the last to complete wins.
- clear() bumps a generation counter. Every operation remembers the
  generation it started in, and a completion from an older generation is
  discarded instead of applied. A fetch that finishes after logout can't
  repopulate the store.
- An update for an id that is no longer in the collection is dropped, so
  a delete followed by a late update doesn't bring the entry back.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from urllib.parse import quote

import structlog

from submanager.audit import AuditLogger
from submanager.config import AppSettings, get_settings
from submanager.events import EventHub
from submanager.models.audit import AuditEvent, AuditEventBuilder
from submanager.models.auth import AuthSnapshot, Authenticated
from submanager.models.subscription import (
    StoreSnapshot,
    Subscription,
    SubscriptionCategory,
    SubscriptionEnvelope,
    SubscriptionListEnvelope,
    utc_now,
)
from submanager.queries import aggregates
from submanager.services.api import APIClient, ApiError, HTTPMethod
from submanager.services.auth import AuthSession, NoSessionError


logger = structlog.get_logger(__name__)

SUBSCRIPTIONS_ENDPOINT = "/subscriptions"
NOT_SIGNED_IN = "You need to sign in first"


class OperationFamily(str, Enum):
    """Each family has its own in-flight counter."""
    FETCH = "fetch"
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


class SubscriptionStoreError(Exception):
    """A store operation failed at the API. Wraps the ApiError."""

    def __init__(self, api_error: ApiError):
        self.api_error = api_error
        super().__init__(api_error.message)

    @property
    def message(self) -> str:
        return str(self)


class SubscriptionStore:
    """
    Ordered collection of subscriptions kept in sync with the backend.

    Every operation needs the session's bearer token; without one it raises
    NoSessionError and sends nothing.
    """

    def __init__(
        self,
        api_client: APIClient,
        session: AuthSession,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._api = api_client
        self._session = session
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

        self._subscriptions: list[Subscription] = []
        self._error_message: Optional[str] = None
        self._in_flight = {family: 0 for family in OperationFamily}
        self._generation = 0

        self.changes: EventHub[StoreSnapshot] = EventHub("subscription_store")

        self._bound_token = session.token
        self._unsubscribe = session.changes.subscribe(self._on_session_change)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def subscriptions(self) -> tuple[Subscription, ...]:
        return tuple(self._subscriptions)

    @property
    def is_loading(self) -> bool:
        return any(count > 0 for count in self._in_flight.values())

    def is_family_loading(self, family: OperationFamily) -> bool:
        return self._in_flight[family] > 0

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            subscriptions=tuple(self._subscriptions),
            is_loading=self.is_loading,
            error_message=self._error_message,
        )

    def find(self, subscription_id: str) -> Optional[Subscription]:
        for sub in self._subscriptions:
            if sub.id == subscription_id:
                return sub
        return None

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    @property
    def total_monthly_cost(self) -> Decimal:
        return aggregates.total_monthly_cost(self._subscriptions)

    @property
    def total_yearly_cost(self) -> Decimal:
        return aggregates.total_yearly_cost(self._subscriptions)

    @property
    def subscriptions_by_category(self) -> dict[SubscriptionCategory, list[Subscription]]:
        return aggregates.subscriptions_by_category(self._subscriptions)

    @property
    def monthly_cost_by_category(self) -> dict[SubscriptionCategory, Decimal]:
        return aggregates.monthly_cost_by_category(self._subscriptions)

    def upcoming_payments(
        self,
        now: Optional[datetime] = None,
        window: Optional[timedelta] = None,
    ) -> list[Subscription]:
        """Active renewals due within `window` (default from settings)."""
        if window is None:
            window = timedelta(days=self._settings.upcoming_window_days)
        return aggregates.upcoming_payments(
            self._subscriptions,
            now or utc_now(),
            window,
            include_overdue=self._settings.include_overdue_in_upcoming,
        )

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def fetch_all(self) -> list[Subscription]:
        """
        Replace the collection with the server's list.

        On failure the collection is left as it was.
        """
        token = self._require_token()
        generation = self._begin(OperationFamily.FETCH)
        try:
            try:
                envelope = await self._api.request(
                    SUBSCRIPTIONS_ENDPOINT,
                    token=token,
                    response_model=SubscriptionListEnvelope,
                )
            except ApiError as e:
                error = await self._record_failure(generation, "fetch", e)
                raise error from e

            if self._is_stale(generation):
                await self._discard("fetch")
                return list(envelope.data)

            self._subscriptions = list(envelope.data)
            await self._audit(AuditEventBuilder.subscriptions_fetched(len(envelope.data)))
            return list(envelope.data)
        finally:
            self._end(OperationFamily.FETCH, generation)

    async def add(self, subscription: Subscription) -> Subscription:
        """Create on the server, then append the server's copy."""
        token = self._require_token()
        generation = self._begin(OperationFamily.ADD)
        try:
            try:
                envelope = await self._api.request(
                    SUBSCRIPTIONS_ENDPOINT,
                    method=HTTPMethod.POST,
                    body=subscription,
                    token=token,
                    response_model=SubscriptionEnvelope,
                )
            except ApiError as e:
                error = await self._record_failure(generation, "add", e)
                raise error from e

            created = envelope.data
            if self._is_stale(generation):
                await self._discard("add")
                return created

            self._subscriptions.append(created)
            await self._audit(AuditEventBuilder.subscription_added(created.id, created.name))
            return created
        finally:
            self._end(OperationFamily.ADD, generation)

    async def update(self, subscription: Subscription) -> Subscription:
        """
        Replace on the server, then replace the first local entry with the
        same id. If no local entry has that id the result is not applied.
        """
        token = self._require_token()
        generation = self._begin(OperationFamily.UPDATE)
        try:
            try:
                envelope = await self._api.request(
                    self._item_endpoint(subscription.id),
                    method=HTTPMethod.PUT,
                    body=subscription,
                    token=token,
                    response_model=SubscriptionEnvelope,
                )
            except ApiError as e:
                error = await self._record_failure(generation, "update", e)
                raise error from e

            updated = envelope.data
            if self._is_stale(generation):
                await self._discard("update")
                return updated

            applied = False
            for index, existing in enumerate(self._subscriptions):
                if existing.id == updated.id:
                    self._subscriptions[index] = updated
                    applied = True
                    break

            if not applied:
                logger.debug("subscription_update_not_applied", subscription_id=updated.id)

            await self._audit(AuditEventBuilder.subscription_updated(updated.id, applied))
            return updated
        finally:
            self._end(OperationFamily.UPDATE, generation)

    async def delete(self, subscription_id: str) -> int:
        """
        Delete on the server, then remove every local entry with that id.

        Returns:
            How many local entries were removed
        """
        token = self._require_token()
        generation = self._begin(OperationFamily.DELETE)
        try:
            try:
                await self._api.request(
                    self._item_endpoint(subscription_id),
                    method=HTTPMethod.DELETE,
                    token=token,
                )
            except ApiError as e:
                error = await self._record_failure(generation, "delete", e)
                raise error from e

            if self._is_stale(generation):
                await self._discard("delete")
                return 0

            before = len(self._subscriptions)
            self._subscriptions = [
                sub for sub in self._subscriptions if sub.id != subscription_id
            ]
            removed = before - len(self._subscriptions)

            await self._audit(AuditEventBuilder.subscription_deleted(subscription_id, removed))
            return removed
        finally:
            self._end(OperationFamily.DELETE, generation)

    def clear(self) -> None:
        """
        Empty the collection and orphan every in-flight operation.

        Completions of operations started before this call are discarded.
        """
        self._generation += 1
        self._subscriptions = []
        self._error_message = None
        self._in_flight = {family: 0 for family in OperationFamily}

        logger.info("subscription_store_cleared", generation=self._generation)
        self._publish()

    def close(self) -> None:
        """Detach from the session."""
        self._unsubscribe()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _on_session_change(self, snapshot: AuthSnapshot) -> None:
        state = snapshot.state
        token = state.token if isinstance(state, Authenticated) else None
        if token != self._bound_token:
            self._bound_token = token
            self.clear()

    def _require_token(self) -> str:
        token = self._session.token
        if not token:
            self._error_message = NOT_SIGNED_IN
            self._publish()
            raise NoSessionError(NOT_SIGNED_IN)
        return token

    @staticmethod
    def _item_endpoint(subscription_id: str) -> str:
        return f"{SUBSCRIPTIONS_ENDPOINT}/{quote(subscription_id, safe='')}"

    def _begin(self, family: OperationFamily) -> int:
        self._in_flight[family] += 1
        self._error_message = None
        self._publish()
        return self._generation

    def _end(self, family: OperationFamily, generation: int) -> None:
        # clear() already reset the counters of older generations
        if not self._is_stale(generation):
            self._in_flight[family] -= 1
        self._publish()

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    async def _record_failure(
        self,
        generation: int,
        operation: str,
        api_error: ApiError,
    ) -> SubscriptionStoreError:
        error = SubscriptionStoreError(api_error)
        if not self._is_stale(generation):
            self._error_message = error.message
        await self._audit(
            AuditEventBuilder.external_service_error("subscriptions_api", operation, error.message)
        )
        return error

    async def _discard(self, operation: str) -> None:
        logger.info("stale_response_discarded", operation=operation)
        await self._audit(AuditEventBuilder.stale_response_discarded(operation))

    def _publish(self) -> None:
        self.changes.publish(self.snapshot())

    async def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)
