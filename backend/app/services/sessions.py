"""In-process registry of per-session workflows."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import structlog

from app.models.conversion import ConversionState
from app.models.subscription import Catalog
from app.services.converter import ConversionExecutor
from app.services.eligibility import ConversionEligibilityPolicy
from app.services.quota_ledger import QuotaLedger
from app.services.records import ConversionRecordStore, SubscriptionOrderStore
from app.workflows.conversion import ConversionWorkflow
from app.workflows.subscription import SubscriptionWorkflow

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class Session:
    """One browser session: a conversion and a subscription flow."""

    session_id: str
    conversion: ConversionWorkflow
    subscription: SubscriptionWorkflow
    last_seen: datetime = field(default_factory=_utcnow)


class SessionRegistry:
    """Creates and looks up workflows keyed by session id.

    Sessions idle for longer than ttl_minutes are dropped on the next access,
    except while a conversion is in flight.
    """

    def __init__(
        self,
        *,
        policy: ConversionEligibilityPolicy,
        ledger: QuotaLedger,
        records: ConversionRecordStore,
        converter: ConversionExecutor,
        catalog: Catalog,
        orders: SubscriptionOrderStore,
        count_premium_conversions: bool = True,
        ttl_minutes: int = 30,
        now_provider=_utcnow,
    ) -> None:
        self.policy = policy
        self.ledger = ledger
        self.records = records
        self.converter = converter
        self.catalog = catalog
        self.orders = orders
        self.count_premium_conversions = count_premium_conversions
        self.ttl = timedelta(minutes=ttl_minutes)
        self.now_provider = now_provider
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def _new_session(self, session_id: str) -> Session:
        return Session(
            session_id=session_id,
            conversion=ConversionWorkflow(
                self.policy,
                self.ledger,
                self.records,
                self.converter,
                count_premium_conversions=self.count_premium_conversions,
                now_provider=self.now_provider,
            ),
            subscription=SubscriptionWorkflow(
                self.catalog,
                self.orders,
                now_provider=self.now_provider,
            ),
            last_seen=self.now_provider(),
        )

    def _expire_idle(self, now: datetime) -> None:
        expired = [
            sid
            for sid, session in self._sessions.items()
            if now - session.last_seen > self.ttl
            and session.conversion.state != ConversionState.CONVERTING
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("sessions_expired", count=len(expired))

    def get_or_create(self, session_id: str) -> Session:
        now = self.now_provider()
        self._expire_idle(now)
        session = self._sessions.get(session_id)
        if session is None:
            session = self._new_session(session_id)
            self._sessions[session_id] = session
            logger.debug("session_created", session_id=session_id)
        session.last_seen = now
        return session

    def drop(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
