# Test configuration

import pytest
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


def blog_config():
    """Collection mapping used across tests."""
    return {
        "blog": {
            "meta": {"alias": ["^blog_\\d+$"]},
            "posts": {
                "columns": [
                    {"id": "TEXT", "source": "_id", "type": "TEXT"},
                    {"title": "TEXT"},
                    {"source": "author.name", "type": "TEXT", "author_name": None},
                    {"tags": "TEXT array"},
                    {"source": "$timestamp", "type": "TIMESTAMP", "synced_at": None},
                    {"source": "$exists summary", "type": "BOOLEAN", "has_summary": None},
                ],
                "meta": {
                    "table": "posts",
                    "extra_props": "JSONB",
                    "indexes": ["title"],
                },
                "related": {
                    "post_comments": [
                        {"source": "_id", "type": "TEXT", "post_id": None},
                        {"source": "comments[].author", "type": "TEXT", "author": None},
                        {"source": "comments[].body", "type": "TEXT", "body": None},
                    ],
                },
            },
            "users": {
                "columns": [
                    {"source": "_id", "type": "TEXT", "user_id": None},
                    {"email": "TEXT"},
                ],
                "meta": {"table": "users", "id": False},
            },
        },
    }


@pytest.fixture
def config():
    return blog_config()


@pytest.fixture
def schema(config):
    from docsql.mapping.schema import SchemaModel
    return SchemaModel(config)


@pytest.fixture
def memory_sink():
    from docsql.sink.memory import InMemorySink
    return InMemorySink()


@pytest.fixture
def test_settings():
    """Override settings for testing"""
    from docsql.config.settings import Settings
    return Settings(
        database_url="memory://",
        batch_size=2,
        copy_retry_attempts=2,
        log_json=False,
    )
