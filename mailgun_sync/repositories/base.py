"""Base repository class with common DynamoDB operations."""

from decimal import Decimal
from typing import Any

import aioboto3
from botocore.exceptions import ClientError

from mailgun_sync.config import Settings, settings
from mailgun_sync.logging.config import get_logger

logger = get_logger(__name__)


def get_aws_config(config: Settings | None = None, service: str = "dynamodb") -> dict[str, Any]:
    """
    Build aioboto3 client configuration based on environment.

    For AWS Lambda with IAM roles, returns minimal config (region only).
    For LocalStack or a moto server, includes endpoint_url and explicit credentials.

    Args:
        config: Settings to read from (defaults to global settings)
        service: "dynamodb" or "s3", selects the endpoint override

    Returns:
        Dictionary of client parameters
    """
    config = config or settings
    client_config: dict[str, Any] = {"region_name": config.aws_region}

    endpoint_url = (
        config.s3_endpoint_url if service == "s3" else config.dynamodb_endpoint_url
    )
    if endpoint_url:
        client_config["endpoint_url"] = endpoint_url

    # Lambda provides all three for temporary credentials
    if config.aws_access_key_id:
        client_config["aws_access_key_id"] = config.aws_access_key_id
    if config.aws_secret_access_key:
        client_config["aws_secret_access_key"] = config.aws_secret_access_key
    if config.aws_session_token:
        client_config["aws_session_token"] = config.aws_session_token

    if "aws_access_key_id" not in client_config:
        logger.debug(
            "AWS config: using default credential chain",
            extra={"context": {"service": service}},
        )

    return client_config


def to_dynamo(value: Any) -> Any:
    """Convert floats (rejected by boto3) to Decimal, recursively."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [to_dynamo(v) for v in value]
    return value


def is_conditional_check_failure(exc: ClientError) -> bool:
    """Whether a ClientError is a failed ConditionExpression."""
    return exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class BaseRepository:
    """
    Base repository providing common DynamoDB operations.

    All repository methods are async and use aioboto3 for
    non-blocking database operations.
    """

    def __init__(self, table_name: str, config: Settings | None = None) -> None:
        """
        Initialize repository with table name.

        Args:
            table_name: Name of the DynamoDB table
            config: Settings for endpoint and credentials
        """
        self.table_name = table_name
        self.config = config or settings
        self.session = aioboto3.Session()

    def _resource(self):
        return self.session.resource("dynamodb", **get_aws_config(self.config))

    async def put_item(
        self, item: dict[str, Any], condition_expression: str | None = None
    ) -> None:
        """
        Put item into DynamoDB table.

        Args:
            item: Dictionary representing the item to store
            condition_expression: Optional condition, e.g. attribute_not_exists(pk)

        Raises:
            ClientError: ConditionalCheckFailedException when the condition fails
        """
        params: dict[str, Any] = {"Item": to_dynamo(item)}
        if condition_expression:
            params["ConditionExpression"] = condition_expression
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self.table_name)
            await table.put_item(**params)

    async def get_item(self, key: dict[str, Any]) -> dict[str, Any] | None:
        """
        Get item from DynamoDB table by key.

        Args:
            key: Dictionary with partition key

        Returns:
            Item dictionary or None if not found
        """
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self.table_name)
            response = await table.get_item(Key=key)
            return response.get("Item")

    async def delete_item(self, key: dict[str, Any]) -> None:
        """
        Delete item from DynamoDB table.

        Args:
            key: Dictionary with partition key
        """
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self.table_name)
            await table.delete_item(Key=key)

    async def update_item(
        self,
        key: dict[str, Any],
        update_expression: str,
        expression_values: dict[str, Any],
        expression_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any]:
        """
        Update item in DynamoDB table.

        Args:
            key: Dictionary with partition key
            update_expression: DynamoDB update expression
            expression_values: Values for the update expression
            expression_names: Optional attribute name mappings for reserved keywords
            condition_expression: Optional condition the item must satisfy

        Returns:
            Updated item attributes

        Raises:
            ClientError: ConditionalCheckFailedException when the condition fails
        """
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self.table_name)
            update_params: dict[str, Any] = {
                "Key": key,
                "UpdateExpression": update_expression,
                "ExpressionAttributeValues": to_dynamo(expression_values),
                "ReturnValues": "ALL_NEW",
            }
            if expression_names:
                update_params["ExpressionAttributeNames"] = expression_names
            if condition_expression:
                update_params["ConditionExpression"] = condition_expression

            response = await table.update_item(**update_params)
            return response.get("Attributes", {})

    async def query_all(self, **query_params: Any) -> list[dict[str, Any]]:
        """
        Run a query and follow LastEvaluatedKey until exhausted.

        Args:
            query_params: Parameters for Table.query

        Returns:
            All matching items
        """
        items: list[dict[str, Any]] = []
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self.table_name)
            while True:
                response = await table.query(**query_params)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return items
                query_params["ExclusiveStartKey"] = last_key

    async def count_all(self, **query_params: Any) -> int:
        """Count items matching a query, after any FilterExpression."""
        total = 0
        query_params["Select"] = "COUNT"
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self.table_name)
            while True:
                response = await table.query(**query_params)
                total += response.get("Count", 0)
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return total
                query_params["ExclusiveStartKey"] = last_key

    async def scan_all(self, **scan_params: Any) -> list[dict[str, Any]]:
        """
        Scan the table and follow LastEvaluatedKey until exhausted.

        Args:
            scan_params: Parameters for Table.scan

        Returns:
            All matching items
        """
        items: list[dict[str, Any]] = []
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self.table_name)
            while True:
                response = await table.scan(**scan_params)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return items
                scan_params["ExclusiveStartKey"] = last_key
