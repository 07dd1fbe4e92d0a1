"""
Unit tests for the schema model: parsing, namespace resolution and DDL.
"""

import pytest

from docsql.mapping.columns import EXTRA_PROPS_COLUMN, SchemaError
from docsql.mapping.schema import SchemaModel, all_columns, copy_columns
from docsql.sink.interface import ColumnDef


class TestSchemaParsing:
    """Tests for building a SchemaModel from configuration."""

    def test_indexes_always_include_id(self, schema):
        posts = schema.find_ns("blog.posts")
        assert posts.meta.indexes == ["title", "_id"]

        users = schema.find_ns("blog.users")
        assert users.meta.indexes == ["_id"]

    def test_related_columns_normalized(self, schema):
        posts = schema.find_ns("blog.posts")
        assert list(posts.related) == ["post_comments"]
        assert [c.name for c in posts.related["post_comments"]] == ["post_id", "author", "body"]

    def test_duplicate_source_names_collection(self):
        config = {"app": {"things": {
            "columns": [{"a": "TEXT"}, {"source": "a", "type": "INT", "b": None}],
            "meta": {"table": "things"},
        }}}
        with pytest.raises(SchemaError, match="app.things"):
            SchemaModel(config)

    def test_missing_columns(self):
        with pytest.raises(SchemaError, match="In spec for app.things"):
            SchemaModel({"app": {"things": {"meta": {"table": "things"}}}})

    def test_missing_table(self):
        with pytest.raises(SchemaError, match="table"):
            SchemaModel({"app": {"things": {"columns": [{"a": "TEXT"}]}}})

    def test_composite_key_and_id_exclusive(self):
        config = {"app": {"things": {
            "columns": [{"a": "TEXT"}, {"b": "TEXT"}],
            "meta": {"table": "things", "composite_key": ["a", "b"], "id": True},
        }}}
        with pytest.raises(SchemaError, match="mutually exclusive"):
            SchemaModel(config)

    def test_composite_key_must_name_columns(self):
        config = {"app": {"things": {
            "columns": [{"a": "TEXT"}],
            "meta": {"table": "things", "composite_key": ["a", "zzz"]},
        }}}
        with pytest.raises(SchemaError, match="zzz"):
            SchemaModel(config)

    def test_listing_helpers(self, schema):
        assert schema.all_databases() == ["blog"]
        assert schema.collections_for_db("blog") == ["posts", "users"]
        assert schema.collections_for_db("nope") == []


class TestNamespaceResolution:
    """Tests for find_db / find_ns."""

    def test_exact_database(self, schema):
        assert schema.find_db("blog") is not None

    def test_alias_match(self):
        model = SchemaModel({"main": {
            "meta": {"alias": ["^shard\\d+$"]},
            "items": {"columns": [{"a": "TEXT"}], "meta": {"table": "items"}},
        }})
        assert model.find_db("shard7") is model.find_db("main")
        assert model.find_db("other") is None

    def test_alias_scalar(self):
        model = SchemaModel({"main": {
            "meta": {"alias": "^copy_"},
            "items": {"columns": [{"a": "TEXT"}], "meta": {"table": "items"}},
        }})
        assert model.find_ns("copy_main.items").meta.table == "items"

    def test_alias_result_cached(self, schema):
        first = schema.find_db("blog_2")
        assert first is schema.find_db("blog")
        assert schema._resolved["blog_2"] is first

    def test_negative_result_cached(self, schema):
        assert schema.find_db("unknown") is None
        assert "unknown" in schema._resolved

    def test_unmapped_collection(self, schema):
        assert schema.find_ns("blog.drafts") is None
        assert schema.find_ns("elsewhere.posts") is None

    def test_strict_lookup_raises(self, schema):
        with pytest.raises(SchemaError, match="No mapping for namespace: blog.drafts"):
            schema.find_ns_strict("blog.drafts")

    def test_related_namespace(self, schema):
        related = schema.find_ns("blog.posts.post_comments")
        assert related.meta.table == "post_comments"
        assert [c.source for c in related.columns] == [
            "_id", "comments[].author", "comments[].body"]
        assert related.related == {}
        assert related.meta.extra_props is None
        assert related.meta.indexes == []

    def test_unknown_relation(self, schema):
        assert schema.find_ns("blog.posts.nope") is None

    def test_table_for_ns(self, schema):
        assert schema.table_for_ns("blog.posts") == "posts"
        assert schema.table_for_ns("blog_9.users") == "users"


class TestColumnsAndKeys:
    """Tests for column lists and key discovery."""

    def test_all_columns(self, schema):
        posts = schema.find_ns("blog.posts")
        assert all_columns(posts) == [
            "id", "title", "author_name", "tags", "synced_at", "has_summary",
            EXTRA_PROPS_COLUMN,
        ]

    def test_copy_columns_drop_timestamp(self, schema):
        posts = schema.find_ns("blog.posts")
        assert "synced_at" not in copy_columns(posts)
        assert copy_columns(posts)[-1] == EXTRA_PROPS_COLUMN

    def test_primary_key_from_id_source(self, schema):
        assert schema.primary_key_columns_for("blog.posts") == ["id"]
        assert schema.primary_key_columns_for("blog.users") == ["user_id"]

    def test_primary_key_composite(self):
        model = SchemaModel({"app": {"scores": {
            "columns": [{"game": "TEXT"}, {"player": "TEXT"}, {"points": "INT"}],
            "meta": {"table": "scores", "composite_key": ["game", "player"]},
        }}})
        assert model.primary_key_columns_for("app.scores") == ["game", "player"]

    def test_primary_key_skips_key_false(self):
        model = SchemaModel({"app": {"things": {
            "columns": [{"source": "_id", "type": "TEXT", "legacy": None, "key": False}],
            "meta": {"table": "things"},
        }}})
        with pytest.raises(SchemaError, match="No primary key"):
            model.primary_key_columns_for("app.things")


class TestCreateSchema:
    """Tests for DDL issued against a sink."""

    def test_tables_created(self, schema, memory_sink):
        schema.create_schema(memory_sink)
        assert set(memory_sink.tables) == {"posts", "post_comments", "users"}

    def test_main_table_columns(self, schema, memory_sink):
        schema.create_schema(memory_sink)
        posts = memory_sink.tables["posts"]

        assert posts.column_names == [
            "id", "title", "author_name", "tags", "synced_at", "has_summary",
            EXTRA_PROPS_COLUMN,
        ]
        assert posts.primary_key == ["id"]
        by_name = {c.name: c for c in posts.columns}
        assert by_name["tags"].type == "TEXT[]"
        assert by_name["synced_at"].default_now is True
        assert by_name[EXTRA_PROPS_COLUMN].type == "JSONB"

    def test_id_false_keys_on_id_source(self, schema, memory_sink):
        schema.create_schema(memory_sink)
        assert memory_sink.tables["users"].primary_key == ["user_id"]

    def test_surrogate_id_added(self, memory_sink):
        model = SchemaModel({"app": {"events": {
            "columns": [{"source": "_id", "type": "TEXT", "event_id": None}],
            "meta": {"table": "events"},
        }}})
        model.create_schema(memory_sink)
        events = memory_sink.tables["events"]
        assert events.columns[0] == ColumnDef(name="id", type="BIGINT", autoincrement=True)
        assert events.primary_key == ["id"]

    def test_related_table_without_primary_key(self, schema, memory_sink):
        schema.create_schema(memory_sink)
        comments = memory_sink.tables["post_comments"]
        assert comments.primary_key == []
        assert comments.column_names == ["post_id", "author", "body"]

    def test_create_twice_without_clobber(self, schema, memory_sink):
        schema.create_schema(memory_sink, clobber=False)
        schema.create_schema(memory_sink, clobber=False)
        assert memory_sink.created.count("posts") == 1

    def test_clobber_replaces(self, schema, memory_sink):
        schema.create_schema(memory_sink)
        memory_sink.tables["posts"].lines.append("x\n")
        schema.create_schema(memory_sink, clobber=True)
        assert memory_sink.created.count("posts") == 2
        assert memory_sink.tables["posts"].lines == []


class TestCreateIndexes:
    """Tests for index creation."""

    def test_indexes_for_listed_sources(self, schema, memory_sink):
        schema.create_schema(memory_sink)
        schema.create_indexes(memory_sink)
        assert memory_sink.indexes == {
            ("posts", "id"),
            ("posts", "title"),
            ("post_comments", "post_id"),
            ("users", "user_id"),
        }

    def test_indexes_use_concurrent_builds(self, schema):
        from unittest.mock import Mock
        sink = Mock()
        schema.create_indexes(sink)
        for call in sink.add_index.call_args_list:
            assert call.kwargs["concurrently"] is True
