from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass

import boto3

from dynamodoc import Schema, Table, schema_field


@dataclass(frozen=True)
class Note:
    author: str = schema_field(roles=["pk"])
    written: int = schema_field(roles=["sk"])
    text: str = schema_field(default="")
    likes: int = schema_field(default=0)


def _client():
    return boto3.client(
        "dynamodb",
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


def main() -> None:
    logging.basicConfig(level=logging.INFO)

    schema = Schema.from_dataclass(Note, table_name=f"dynamodoc_example_{uuid.uuid4().hex[:12]}")
    # the table does not exist yet; the first write creates it and waits for ACTIVE
    table = Table(schema, client=_client(), poll_interval_seconds=0.5)

    try:
        table.put_item(Note(author="ann", written=1, text="hello"))
        table.put_item(Note(author="ann", written=2, text="again"))
        table.put_item(Note(author="ann", written=3, text="bye"))

        table.update_item({"author": "ann", "written": 2}, {"$inc": {"likes": 3}})
        print("get:", table.get_item({"author": "ann", "written": 2}))

        page = table.query({"author": "ann", "written": {"$gte": 2}}).with_projection("written", "text").execute()
        print("query written >= 2:", page.items)
    finally:
        table.delete_table()


if __name__ == "__main__":
    main()
