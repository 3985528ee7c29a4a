from __future__ import annotations

import time
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .backend import BackendError


KEY_ATTR = "mnemo"
PAYLOAD_ATTR = "payload"
EXPIRES_ATTR = "expires_at"
COUNTER_ATTR = "hits"


def _error_code(e: ClientError) -> Optional[str]:
    return e.response.get("Error", {}).get("Code")


class DynamoBackend:
    """
    DynamoDB-backed storage for one-time secrets.

    Table layout
    - partition key `mnemo` (S)
    - `payload` (B): serialized secret
    - `expires_at` (N): epoch seconds; configure it as the table's TTL attribute
    - `hits` (N): counter value on counter items

    Notes
    - DynamoDB deletes expired items lazily (often hours later), so items whose
      `expires_at` has passed are treated as absent: `set_if_absent` may
      overwrite them and `pop` never returns them.
    - `pop` is a single `DeleteItem` with `ReturnValues=ALL_OLD`, which reads
      and removes the item atomically.
    """

    def __init__(
        self,
        *,
        table: str,
        dynamodb: Optional[Any] = None,
        region_name: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not table:
            raise ValueError("table is required")
        self._table = table
        self._ddb = dynamodb or boto3.client("dynamodb", region_name=region_name)
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def set_if_absent(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        now = self._now()
        try:
            self._ddb.put_item(
                TableName=self._table,
                Item={
                    KEY_ATTR: {"S": key},
                    PAYLOAD_ATTR: {"B": value},
                    EXPIRES_ATTR: {"N": str(now + ttl_seconds)},
                },
                ConditionExpression="attribute_not_exists(#k) OR #e <= :now",
                ExpressionAttributeNames={"#k": KEY_ATTR, "#e": EXPIRES_ATTR},
                ExpressionAttributeValues={":now": {"N": str(now)}},
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                return False
            raise BackendError(f"PutItem failed: {_error_code(e)}") from e
        except BotoCoreError as e:
            raise BackendError(f"PutItem failed: {e}") from e
        return True

    def pop(self, key: str) -> Optional[bytes]:
        try:
            resp = self._ddb.delete_item(
                TableName=self._table,
                Key={KEY_ATTR: {"S": key}},
                ConditionExpression="attribute_exists(#p)",
                ExpressionAttributeNames={"#p": PAYLOAD_ATTR},
                ReturnValues="ALL_OLD",
            )
        except ClientError as e:
            # Missing item (or a counter item) fails the payload condition
            if _error_code(e) == "ConditionalCheckFailedException":
                return None
            raise BackendError(f"DeleteItem failed: {_error_code(e)}") from e
        except BotoCoreError as e:
            raise BackendError(f"DeleteItem failed: {e}") from e

        item = resp.get("Attributes") or {}
        expires = item.get(EXPIRES_ATTR, {}).get("N")
        if expires is not None and int(expires) <= self._now():
            return None
        payload = item.get(PAYLOAD_ATTR, {}).get("B")
        return payload or None

    def incr(self, key: str) -> int:
        try:
            resp = self._ddb.update_item(
                TableName=self._table,
                Key={KEY_ATTR: {"S": key}},
                UpdateExpression="ADD #h :one",
                ExpressionAttributeNames={"#h": COUNTER_ATTR},
                ExpressionAttributeValues={":one": {"N": "1"}},
                ReturnValues="UPDATED_NEW",
            )
        except ClientError as e:
            raise BackendError(f"UpdateItem {key} failed: {_error_code(e)}") from e
        except BotoCoreError as e:
            raise BackendError(f"UpdateItem {key} failed: {e}") from e
        return int(resp["Attributes"][COUNTER_ATTR]["N"])
