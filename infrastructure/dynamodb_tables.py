"""Script to create the DynamoDB tables and MIME bucket for LocalStack or AWS."""

import asyncio
from typing import Any

import aioboto3
from aiobotocore.config import AioConfig
from botocore.exceptions import ClientError

from mailgun_sync.config import Settings, settings
from mailgun_sync.repositories.base import get_aws_config


def _index(name: str, hash_key: str, range_key: str | None = None) -> dict[str, Any]:
    key_schema = [{"AttributeName": hash_key, "KeyType": "HASH"}]
    if range_key:
        key_schema.append({"AttributeName": range_key, "KeyType": "RANGE"})
    return {
        "IndexName": name,
        "KeySchema": key_schema,
        "Projection": {"ProjectionType": "ALL"},
    }


async def _create_table(
    dynamodb: Any,
    table_name: str,
    hash_key: str,
    attributes: dict[str, str],
    indexes: list[dict[str, Any]],
) -> None:
    try:
        table = await dynamodb.create_table(
            TableName=table_name,
            KeySchema=[{"AttributeName": hash_key, "KeyType": "HASH"}],
            AttributeDefinitions=[
                {"AttributeName": name, "AttributeType": kind}
                for name, kind in attributes.items()
            ],
            GlobalSecondaryIndexes=indexes,
            BillingMode="PAY_PER_REQUEST",
        )
        await table.wait_until_exists()
        print(f"✓ Created table: {table_name}")
    except ClientError as e:
        if e.response["Error"]["Code"] == "ResourceInUseException":
            print(f"→ Table already exists: {table_name}")
        else:
            raise


async def create_events_table(dynamodb: Any, table_name: str) -> None:
    """
    Create the Events table.

    Keyed by the dedup event_key, with GSIs for sibling events of a message,
    retention-window scans by type and date, and provider event id lookups.

    Args:
        dynamodb: DynamoDB resource
        table_name: Name of the events table
    """
    await _create_table(
        dynamodb,
        table_name,
        "event_key",
        {
            "event_key": "S",
            "message_id": "S",
            "timestamp": "N",
            "event_type": "S",
            "utc_event_date": "S",
            "event_id": "S",
        },
        [
            _index("MessageIdIndex", "message_id", "timestamp"),
            _index("EventTypeDateIndex", "event_type", "utc_event_date"),
            _index("EventIdIndex", "event_id", "utc_event_date"),
        ],
    )


async def create_submissions_table(dynamodb: Any, table_name: str) -> None:
    """Create the Submissions table with a message id GSI."""
    await _create_table(
        dynamodb,
        table_name,
        "submission_id",
        {"submission_id": "S", "message_id": "S"},
        [_index("MessageIdIndex", "message_id")],
    )


async def create_jobs_table(dynamodb: Any, table_name: str) -> None:
    """Create the Jobs table with a status/start time GSI for dequeueing."""
    await _create_table(
        dynamodb,
        table_name,
        "job_id",
        {"job_id": "S", "job_status": "S", "start_after": "S"},
        [_index("StatusIndex", "job_status", "start_after")],
    )


async def create_mime_bucket(s3: Any, bucket: str, region: str) -> None:
    """
    Create the MIME bucket.

    Args:
        s3: S3 client
        bucket: Bucket name
        region: AWS region (us-east-1 takes no location constraint)
    """
    params: dict[str, Any] = {"Bucket": bucket}
    if region != "us-east-1":
        params["CreateBucketConfiguration"] = {"LocationConstraint": region}
    try:
        await s3.create_bucket(**params)
        print(f"✓ Created bucket: {bucket}")
    except ClientError as e:
        if e.response["Error"]["Code"] in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
            print(f"→ Bucket already exists: {bucket}")
        else:
            raise


async def create_all(config: Settings | None = None) -> None:
    """Create every table and the bucket."""
    config = config or settings
    session = aioboto3.Session()
    async with session.resource("dynamodb", **get_aws_config(config)) as dynamodb:
        await create_events_table(dynamodb, config.dynamodb_table_events)
        await create_submissions_table(dynamodb, config.dynamodb_table_submissions)
        await create_jobs_table(dynamodb, config.dynamodb_table_jobs)
    async with session.client(
        "s3", config=AioConfig(s3={"addressing_style": "path"}), **get_aws_config(config, "s3")
    ) as s3:
        await create_mime_bucket(s3, config.mime_bucket, config.aws_region)


async def main() -> None:
    """Create all required resources."""
    print("Creating DynamoDB tables and MIME bucket...")
    print(f"Region: {settings.aws_region}")
    print(f"Endpoint: {settings.dynamodb_endpoint_url or 'AWS'}")
    print()

    await create_all()

    print()
    print("✓ All resources created successfully!")


if __name__ == "__main__":
    asyncio.run(main())
