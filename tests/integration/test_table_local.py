from __future__ import annotations

import os
import uuid
from dataclasses import dataclass

import boto3
import pytest

from dynamodoc import NoMoreDataError, Schema, Table, schema_field
from dynamodoc.aws_errors import is_condition_failed

pytestmark = pytest.mark.skipif(
    not os.environ.get("DYNAMODB_ENDPOINT"),
    reason="set DYNAMODB_ENDPOINT to run against DynamoDB Local",
)


@dataclass(frozen=True)
class Score:
    player: str = schema_field(roles=["pk"])
    game: str = schema_field(roles=["sk"])
    points: int = schema_field(default=0)
    badges: set[str] = schema_field(default_factory=set)


def _client():
    return boto3.client(
        "dynamodb",
        endpoint_url=os.environ["DYNAMODB_ENDPOINT"],
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


@pytest.fixture()
def table():
    client = _client()
    schema = Schema.from_dataclass(Score, table_name=f"dynamodoc_it_{uuid.uuid4().hex[:12]}")
    table = Table(schema, client=client, poll_interval_seconds=0.2)
    try:
        yield table
    finally:
        table.delete_table()


def test_table_is_created_on_first_use_and_supports_crud(table: Table) -> None:
    table.put_item(Score(player="ann", game="chess", points=10, badges={"first"}))

    assert table.get_item({"player": "ann", "game": "chess"}) == {
        "player": "ann",
        "game": "chess",
        "points": 10,
        "badges": {"first"},
    }

    updated = table.update_item(
        {"player": "ann", "game": "chess"},
        {"$inc": {"points": 5}, "$unset": {"badges": {"first"}}},
        ReturnValues="ALL_NEW",
    )
    assert updated == {"player": "ann", "game": "chess", "points": 15}

    with pytest.raises(Exception) as exc:
        table.delete_item({"player": "ann", "game": "chess"}, expected={"points": 0})
    assert is_condition_failed(exc.value)

    table.delete_item({"player": "ann", "game": "chess"})
    assert table.get_item({"player": "ann", "game": "chess"}) is None


def test_query_pages_and_batch_get(table: Table) -> None:
    for i in range(5):
        table.put_item({"player": "bob", "game": f"g{i}", "points": i})

    cursor = table.query({"player": "bob", "game": {"$begins": "g"}}).with_limit(2)
    seen = list(cursor.execute().items)
    while cursor.has_more:
        seen.extend(cursor.fetch_next().items)
    assert [s["game"] for s in seen] == ["g0", "g1", "g2", "g3", "g4"]
    with pytest.raises(NoMoreDataError):
        cursor.fetch_next()

    count = table.query({"player": "bob"}).as_count_only().execute()
    assert count.count == 5

    high = table.scan({"points": {"$gte": 3}}).execute()
    assert sorted(s["points"] for s in high.items) == [3, 4]

    got = table.batch_get_items([{"player": "bob", "game": "g1"}, {"player": "bob", "game": "g4"}])
    assert sorted(g["game"] for g in got) == ["g1", "g4"]
