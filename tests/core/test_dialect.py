"""Tests for the query provider layer."""

from __future__ import annotations

import pytest

from kvspine.core.dialect import (
    MySQLQueries,
    PostgreSQLQueries,
    QueryProvider,
    SQLiteQueries,
    get_queries,
    register_queries,
    validate_table_name,
)
from kvspine.core.errors import InvalidConfigError


# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture(params=["sqlite", "postgresql", "mysql"])
def queries(request: pytest.FixtureRequest) -> QueryProvider:
    """Parametric fixture: run each test against every dialect."""
    return get_queries(request.param, "kv")


# =========================================================================
# Protocol conformance
# =========================================================================


class TestProtocol:
    def test_is_query_provider(self, queries):
        assert isinstance(queries, QueryProvider)

    def test_table_is_bound(self, queries):
        assert queries.table == "kv"

    def test_single_key_statements_mention_table(self, queries):
        for sql in (queries.delete(), queries.exists(), queries.get(), queries.put(), queries.get_size()):
            assert " kv " in sql + " "

    def test_query_selects_key_and_data(self, queries):
        sql = queries.query()
        assert sql.startswith("SELECT")
        assert sql.endswith("FROM kv")

    def test_templates_accept_literals(self, queries):
        assert "a/" in queries.prefix() % "a/"
        assert queries.limit() % 3 == " LIMIT 3"
        assert queries.offset() % 2 == " OFFSET 2"

    def test_placeholders_consistent(self, queries):
        placeholder = "?" if queries.name == "sqlite" else "%s"
        assert queries.get().count(placeholder) == 1
        assert queries.put().count(placeholder) == 2
        assert queries.delete().count(placeholder) == 1


# =========================================================================
# Dialect specifics
# =========================================================================


class TestSQLiteQueries:
    def test_put_is_insert_or_ignore(self):
        assert SQLiteQueries("kv").put() == "INSERT OR IGNORE INTO kv (key, data) VALUES (?, ?)"

    def test_prefix_uses_glob(self):
        assert SQLiteQueries("kv").prefix() % "a/" == " WHERE key GLOB 'a/*' ORDER BY key"

    def test_size_uses_length(self):
        assert "length(data)" in SQLiteQueries("kv").get_size()

    def test_unbounded_limit(self):
        assert SQLiteQueries("kv").unbounded_limit == -1


class TestPostgreSQLQueries:
    def test_put_on_conflict_do_nothing(self):
        assert PostgreSQLQueries("kv").put().endswith("ON CONFLICT (key) DO NOTHING")

    def test_prefix_like_with_c_collation(self):
        clause = PostgreSQLQueries("kv").prefix() % "a/"
        assert clause == " WHERE key LIKE 'a/%' ORDER BY key COLLATE \"C\""

    def test_size_uses_octet_length(self):
        assert "octet_length(data)" in PostgreSQLQueries("kv").get_size()

    def test_offset_without_limit_allowed(self):
        assert PostgreSQLQueries("kv").unbounded_limit is None


class TestMySQLQueries:
    def test_key_column_quoted(self):
        assert "`key` = %s" in MySQLQueries("kv").get()

    def test_put_insert_ignore(self):
        assert MySQLQueries("kv").put().startswith("INSERT IGNORE")


# =========================================================================
# Registry and validation
# =========================================================================


class TestGetQueries:
    def test_postgres_alias(self):
        assert isinstance(get_queries("postgres"), PostgreSQLQueries)

    def test_case_insensitive(self):
        assert isinstance(get_queries("SQLite"), SQLiteQueries)

    def test_default_table(self):
        assert get_queries("sqlite").table == "kv"

    def test_unknown_dialect(self):
        with pytest.raises(ValueError, match="Unknown dialect"):
            get_queries("oracle")

    def test_register_custom(self):
        class CustomQueries(SQLiteQueries):
            dialect_name = "custom"

        register_queries("custom", CustomQueries)
        q = get_queries("custom", "providers")
        assert q.name == "custom"
        assert q.get() == "SELECT data FROM providers WHERE key = ?"

    def test_equality_by_type_and_table(self):
        assert SQLiteQueries("kv") == SQLiteQueries("kv")
        assert SQLiteQueries("kv") != SQLiteQueries("other")
        assert SQLiteQueries("kv") != PostgreSQLQueries("kv")


class TestValidateTableName:
    @pytest.mark.parametrize("name", ["kv", "providers_v2", "_t", "public.kv"])
    def test_valid(self, name):
        assert validate_table_name(name) == name

    @pytest.mark.parametrize("name", ["", "1kv", "kv; DROP TABLE x", "a.b.c", "kv-table"])
    def test_invalid(self, name):
        with pytest.raises(InvalidConfigError):
            validate_table_name(name)

    def test_provider_rejects_invalid(self):
        with pytest.raises(InvalidConfigError):
            SQLiteQueries("bad name")
