"""Append-only history log backed by a DynamoDB table."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from app.core.errors import StorageError
from app.modules.history.models import HistoryEvent, PARTITION_KEY, SORT_KEY

logger = logging.getLogger(__name__)


class HistoryLog(ABC):
    """Append-only event log. There is no update or delete."""

    @abstractmethod
    async def append(self, event: HistoryEvent) -> None:
        """Insert one event atomically."""

    @abstractmethod
    async def query(
        self,
        partition: str,
        sort_key_prefix: str,
        username: Optional[str] = None,
    ) -> list[HistoryEvent]:
        """Return events in ``partition`` whose sort key starts with the prefix.

        When ``username`` is given, events recorded for anyone else are
        dropped from the result.
        """


class DynamoHistoryLog(HistoryLog):
    """HistoryLog over a boto3 DynamoDB ``Table`` resource."""

    def __init__(self, table):
        self.table = table

    @classmethod
    def from_settings(
        cls,
        table_name: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ) -> "DynamoHistoryLog":
        resource_kwargs = {"region_name": region}
        if endpoint_url:
            resource_kwargs["endpoint_url"] = endpoint_url
        resource = boto3.resource("dynamodb", **resource_kwargs)
        return cls(resource.Table(table_name))

    async def append(self, event: HistoryEvent) -> None:
        try:
            await asyncio.to_thread(
                self.table.put_item,
                Item=event.to_item(),
                # never overwrite an existing event
                ConditionExpression="attribute_not_exists(#pk) AND attribute_not_exists(#sk)",
                ExpressionAttributeNames={"#pk": PARTITION_KEY, "#sk": SORT_KEY},
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not append history event: {e}") from e

    async def query(
        self,
        partition: str,
        sort_key_prefix: str,
        username: Optional[str] = None,
    ) -> list[HistoryEvent]:
        query_kwargs = {
            "KeyConditionExpression": (
                Key(PARTITION_KEY).eq(partition) & Key(SORT_KEY).begins_with(sort_key_prefix)
            ),
            "ScanIndexForward": True,
        }

        items: list[dict] = []
        try:
            while True:
                response = await asyncio.to_thread(self.table.query, **query_kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                query_kwargs["ExclusiveStartKey"] = last_key
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not query history: {e}") from e

        events = [HistoryEvent.from_item(item) for item in items]
        if username is not None:
            events = [event for event in events if event.username == username]
        return events
