"""Bounded feed store backed by DynamoDB."""

from typing import Any

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from .fingerprint import fingerprint
from .logging_config import create_execution_logger
from .models import FeedItem, ItemType, StoredRecord

# DynamoDB limit on operations in a single TransactWriteItems call
MAX_TRANSACTION_ITEMS = 100

DEFAULT_MAX_ITEMS = 30


class StoreError(RuntimeError):
    """Raised when a feed store transaction cannot be applied."""

    def __init__(self, action: str, message: str):
        super().__init__(f"Feed store {action} failed: {message}")
        self.action = action


class BoundedStore:
    """Keyed feed store with transactional upsert and oldest-first eviction.

    Records are keyed by the item fingerprint. Every write batch goes
    through a single TransactWriteItems call, so a batch is either fully
    visible or not at all.
    """

    KEY = "fingerprint"

    def __init__(
        self,
        table_name: str,
        aws_region: str = "us-east-1",
        execution_id: str | None = None,
    ):
        """Initialize the store.

        Args:
            table_name: Name of the DynamoDB feed table
            aws_region: AWS region for the DynamoDB client
            execution_id: Execution ID for logging context
        """
        self.table_name = table_name
        self.aws_region = aws_region
        self.logger = create_execution_logger("feed_store", execution_id)
        self.client = boto3.client("dynamodb", region_name=aws_region)
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

        self.logger.info(
            "BoundedStore initialized", table_name=table_name, aws_region=aws_region
        )

    def existing_fingerprints(self) -> set[str]:
        """Return the keys of every record currently in the store."""
        items = self._scan(
            ProjectionExpression="#key",
            ExpressionAttributeNames={"#key": self.KEY},
        )
        fingerprints = {item[self.KEY] for item in items}
        self.logger.info(
            f"Loaded {len(fingerprints)} existing fingerprints",
            items_count=len(fingerprints),
        )
        return fingerprints

    def records(self) -> list[StoredRecord]:
        """Return all records, newest first.

        Ties on timestamp are ordered by fingerprint so eviction is
        deterministic.
        """
        records = [StoredRecord.from_attributes(item) for item in self._scan()]
        records.sort(key=lambda r: (r.timestamp, r.fingerprint), reverse=True)
        return records

    def upsert(self, items: list[FeedItem]) -> int:
        """Create or merge a record for every item in one transaction.

        Attributes missing from an item's payload are left untouched on the
        stored record. Items sharing a fingerprint are collapsed into one
        write, later items overriding earlier fields.

        Args:
            items: Feed items to write

        Returns:
            Number of records written

        Raises:
            StoreError: If the transaction fails; no record is changed
        """
        payloads: dict[str, dict[str, Any]] = {}
        for item in items:
            payloads.setdefault(fingerprint(item), {}).update(item.to_record())

        operations = [
            {"Update": self._update_operation(key, payload)}
            for key, payload in payloads.items()
        ]
        self._transact("upsert", operations)
        return len(operations)

    def enforce_retention(self, max_items: int = DEFAULT_MAX_ITEMS) -> int:
        """Delete every record beyond the max_items most recent ones.

        Args:
            max_items: Number of newest records to keep

        Returns:
            Number of records deleted

        Raises:
            StoreError: If the read or the delete transaction fails
        """
        records = self.records()
        if len(records) <= max_items:
            self.logger.debug(
                "Retention cap not exceeded", items_count=len(records)
            )
            return 0

        evicted = records[max_items:]
        self.logger.warning(
            f"Feed store has {len(records)} records, evicting {len(evicted)} oldest",
            items_count=len(records),
        )
        self._transact(
            "retention", [{"Delete": self._delete_operation(r.fingerprint)} for r in evicted]
        )
        return len(evicted)

    def purge_articles(self) -> int:
        """Delete every stored article in one transaction.

        Used by the replacement policy so each cycle's articles replace the
        previous ones instead of being merged into them.

        Returns:
            Number of records deleted
        """
        articles = self._scan(
            ProjectionExpression="#key",
            FilterExpression="#type = :article",
            ExpressionAttributeNames={"#key": self.KEY, "#type": "type"},
            ExpressionAttributeValues={
                ":article": self._serializer.serialize(ItemType.ARTICLE.value)
            },
        )
        self._transact(
            "purge_articles",
            [{"Delete": self._delete_operation(item[self.KEY])} for item in articles],
        )
        return len(articles)

    def _update_operation(self, key: str, payload: dict[str, Any]) -> dict[str, Any]:
        names = {}
        values = {}
        assignments = []
        for index, (name, value) in enumerate(payload.items()):
            names[f"#f{index}"] = name
            values[f":v{index}"] = self._serializer.serialize(value)
            assignments.append(f"#f{index} = :v{index}")

        return {
            "TableName": self.table_name,
            "Key": {self.KEY: {"S": key}},
            "UpdateExpression": "SET " + ", ".join(assignments),
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
        }

    def _delete_operation(self, key: str) -> dict[str, Any]:
        return {"TableName": self.table_name, "Key": {self.KEY: {"S": key}}}

    def _transact(self, action: str, operations: list[dict[str, Any]]) -> None:
        if not operations:
            self.logger.debug(f"Nothing to commit for {action}", action=action)
            return

        if len(operations) > MAX_TRANSACTION_ITEMS:
            raise StoreError(
                action,
                f"{len(operations)} operations exceed the transaction limit "
                f"of {MAX_TRANSACTION_ITEMS}",
            )

        try:
            self.client.transact_write_items(TransactItems=operations)
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                f"Error committing {action} transaction: {e}",
                action=action,
                operation_count=len(operations),
                error=str(e),
            )
            raise StoreError(action, str(e)) from e

        self.logger.log_transaction(action, len(operations))

    def _scan(self, **kwargs) -> list[dict[str, Any]]:
        items = []
        try:
            paginator = self.client.get_paginator("scan")
            for page in paginator.paginate(TableName=self.table_name, **kwargs):
                for raw in page.get("Items", []):
                    items.append(
                        {
                            name: self._deserializer.deserialize(value)
                            for name, value in raw.items()
                        }
                    )
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"Error scanning feed store: {e}", error=str(e))
            raise StoreError("scan", str(e)) from e
        return items
