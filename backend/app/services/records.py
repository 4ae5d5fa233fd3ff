"""
Append-only stores for conversion records and subscription orders.

Both stores only insert and list rows; updates (e.g. an order moving to
active) belong to the external payment verification process.
"""

from datetime import datetime
from typing import Protocol

from app.config import PersistenceConfig
from app.models.conversion import ConversionRecord
from app.models.subscription import SubscriptionOrder


class ConversionRecordStore(Protocol):
    """Storage contract for conversion history."""

    async def append(self, record: ConversionRecord) -> ConversionRecord:
        """Insert one record."""

    async def list_for(self, principal_id: str) -> list[ConversionRecord]:
        """Records of one principal, oldest first."""


class SubscriptionOrderStore(Protocol):
    """Storage contract for subscription orders."""

    async def append(self, order: SubscriptionOrder) -> SubscriptionOrder:
        """Insert one order."""

    async def list_for(self, principal_id: str) -> list[SubscriptionOrder]:
        """Orders of one principal, oldest first."""


class InMemoryConversionRecordStore:
    """In-memory store used for tests and local fallback."""

    def __init__(self) -> None:
        self.records: list[ConversionRecord] = []

    async def append(self, record: ConversionRecord) -> ConversionRecord:
        self.records.append(record.model_copy(deep=True))
        return record

    async def list_for(self, principal_id: str) -> list[ConversionRecord]:
        return [r.model_copy(deep=True) for r in self.records if r.principal_id == principal_id]


class InMemorySubscriptionOrderStore:
    """In-memory store used for tests and local fallback."""

    def __init__(self) -> None:
        self.orders: list[SubscriptionOrder] = []

    async def append(self, order: SubscriptionOrder) -> SubscriptionOrder:
        self.orders.append(order.model_copy(deep=True))
        return order

    async def list_for(self, principal_id: str) -> list[SubscriptionOrder]:
        return [o.model_copy(deep=True) for o in self.orders if o.principal_id == principal_id]


class SupabaseConversionRecordStore:
    """Supabase-backed conversion history (conversion_history table)."""

    def __init__(self, client, config: PersistenceConfig):
        self.client = client
        self.table = config.conversions_table

    async def append(self, record: ConversionRecord) -> ConversionRecord:
        await self.client.table(self.table).insert(
            {
                "user_id": record.principal_id,
                "original_filename": record.original_filename,
                "original_format": record.original_format.value,
                "target_format": record.target_format.value,
                "file_size": record.file_size,
                "created_at": record.timestamp.isoformat(),
            }
        ).execute()
        return record

    async def list_for(self, principal_id: str) -> list[ConversionRecord]:
        response = (
            await self.client.table(self.table)
            .select("*")
            .eq("user_id", principal_id)
            .order("created_at", desc=False)
            .execute()
        )
        return [
            ConversionRecord(
                principal_id=str(row["user_id"]),
                original_filename=row["original_filename"],
                original_format=row["original_format"],
                target_format=row["target_format"],
                file_size=row.get("file_size") or 0,
                timestamp=datetime.fromisoformat(row["created_at"]),
            )
            for row in response.data or []
        ]


class SupabaseSubscriptionOrderStore:
    """Supabase-backed subscription orders (subscriptions table)."""

    def __init__(self, client, config: PersistenceConfig):
        self.client = client
        self.table = config.subscriptions_table

    async def append(self, order: SubscriptionOrder) -> SubscriptionOrder:
        payload = {
            "user_id": order.principal_id,
            "plan_name": order.plan_name,
            "price_monthly": order.price_monthly,
            "status": order.status.value,
            "payment_method": order.payment_channel,
        }
        if order.transfer_note:
            payload["transfer_note"] = order.transfer_note
        if order.created_at:
            payload["created_at"] = order.created_at.isoformat()
        await self.client.table(self.table).insert(payload).execute()
        return order

    async def list_for(self, principal_id: str) -> list[SubscriptionOrder]:
        response = (
            await self.client.table(self.table)
            .select("*")
            .eq("user_id", principal_id)
            .order("created_at", desc=False)
            .execute()
        )
        return [
            SubscriptionOrder(
                principal_id=str(row["user_id"]),
                plan_name=row["plan_name"],
                price_monthly=row["price_monthly"],
                payment_channel=row["payment_method"],
                status=row.get("status") or "pending",
                transfer_note=row.get("transfer_note"),
                created_at=(
                    datetime.fromisoformat(row["created_at"]) if row.get("created_at") else None
                ),
            )
            for row in response.data or []
        ]
