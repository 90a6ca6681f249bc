from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass

from dynamorepo import DataclassCodec, Key, Model, Operator, Query, Repository, repo_field
from dynamorepo.runtime import RuntimeSettings, create_dynamodb_client


@dataclass(kw_only=True)
class Note(Model):
    owner: str = repo_field(name="Owner")
    slug: str = repo_field(name="Slug")
    value: int = repo_field(name="Value", default=0)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    os.environ.setdefault("DYNAMOREPO_ENDPOINT_URL", "http://localhost:8000")
    os.environ.setdefault("AWS_REGION", "us-east-1")
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "dummy")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "dummy")

    client = create_dynamodb_client(RuntimeSettings.from_env())
    table_name = f"dynamorepo_example_{uuid.uuid4().hex[:12]}"

    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "Owner", "KeyType": "HASH"}, {"AttributeName": "Slug", "KeyType": "RANGE"}],
        AttributeDefinitions=[
            {"AttributeName": "Owner", "AttributeType": "S"},
            {"AttributeName": "Slug", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)

    try:
        repo: Repository[Note] = Repository(DataclassCodec(Note), client=client)
        base = Key(table_name, "Owner", "A").with_range_key_name("Slug")

        for slug, value in (("001", 1), ("010", 10), ("100", 100)):
            repo.optimistic_lock_save(base.with_range_key(slug), Note(owner="A", slug=slug, value=value))

        print("get:", repo.get_item(base.with_range_key("010")))

        query = Query(table_name, "Owner", "A", "Slug", "0").with_range_op(Operator.BEGINS_WITH)
        print("query begins_with('0'):", repo.query(query))

        print("missing:", repo.get_item(base.with_range_key("999")))
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
