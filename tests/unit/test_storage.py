"""
Unit Tests for the In-Memory Metadata Repository
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from agent_introspection.storage import InMemoryMetadataRepository


@pytest.fixture
def repo():
    return InMemoryMetadataRepository()


@pytest.fixture
def agent(repo):
    return repo.add_data_agent("sales", engine="postgresql")


@pytest.fixture
def env(repo, agent):
    return repo.add_environment(agent.id, "prod", {"host": "db.internal"})


class TestAgentsAndEnvironments:
    """Tests for agent and environment records"""

    def test_lookup(self, repo, agent, env):
        """Test records are retrievable by id"""
        assert repo.get_data_agent(agent.id).name == "sales"
        assert repo.get_environment(env.id).data_agent_id == agent.id
        assert repo.get_data_agent("missing") is None

    def test_returned_records_are_copies(self, repo, env):
        """Test mutating a returned record does not change the store"""
        fetched = repo.get_environment(env.id)
        fetched.connection_config["host"] = "elsewhere"
        assert repo.get_environment(env.id).connection_config["host"] == "db.internal"

    def test_save_analysis(self, repo, agent):
        """Test analysis text and timestamp are recorded"""
        repo.save_relationship_analysis(agent.id, "Orders reference customers.")
        stored = repo.get_data_agent(agent.id)
        assert stored.relationship_analysis == "Orders reference customers."
        assert stored.relationship_analyzed_at is not None

    def test_save_analysis_unknown_agent(self, repo):
        """Test saving analysis for an unknown agent fails"""
        with pytest.raises(KeyError):
            repo.save_relationship_analysis("missing", "text")


class TestTablesAndColumns:
    """Tests for table and column upserts"""

    def test_upsert_table_idempotent(self, repo, agent, env):
        """Test re-importing a table updates it in place"""
        first = repo.upsert_table(agent.id, env.id, "public", "orders", row_count=10)
        second = repo.upsert_table(agent.id, env.id, "public", "orders", row_count=25, comment="Orders")
        assert first.id == second.id
        tables = repo.list_tables(agent.id)
        assert len(tables) == 1
        assert tables[0].row_count == 25
        assert tables[0].comment == "Orders"

    def test_schema_is_part_of_identity(self, repo, agent, env):
        """Test the same table name in two schemas is two tables"""
        repo.upsert_table(agent.id, env.id, "public", "orders")
        repo.upsert_table(agent.id, env.id, "archive", "orders")
        assert len(repo.list_tables(agent.id, env.id)) == 2

    def test_negative_row_count_clamped(self, repo, agent, env):
        """Test stored row counts are never negative"""
        table = repo.upsert_table(agent.id, env.id, None, "t", row_count=-1)
        assert table.row_count == 0

    def test_upsert_column_idempotent(self, repo, agent, env):
        """Test columns are unique per table and name"""
        table = repo.upsert_table(agent.id, env.id, "public", "orders")
        repo.upsert_column(table.id, "id", "integer", nullable=False, is_primary_key=True)
        repo.upsert_column(table.id, "id", "bigint", nullable=False, is_primary_key=True)
        columns = repo.list_columns(table.id)
        assert len(columns) == 1
        assert columns[0].data_type == "bigint"

    def test_column_requires_table(self, repo):
        """Test columns cannot reference unknown tables"""
        with pytest.raises(KeyError):
            repo.upsert_column("missing", "id", "integer")


class TestRelationships:
    """Tests for relationship upserts and cascade delete"""

    @pytest.fixture
    def tables(self, repo, agent, env):
        orders = repo.upsert_table(agent.id, env.id, "public", "orders")
        customers = repo.upsert_table(agent.id, env.id, "public", "customers")
        return orders, customers

    def test_upsert_relationship(self, repo, agent, tables):
        """Test relationships are unique per endpoint pair"""
        orders, customers = tables
        first = repo.upsert_relationship(agent.id, orders.id, customers.id, "customer_id", "id", "one_to_many", 0.9)
        second = repo.upsert_relationship(agent.id, orders.id, customers.id, "customer_id", "id", "one_to_many", 0.95)
        assert first.id == second.id
        assert first.created_at == second.created_at
        assert len(repo.list_relationships(agent.id)) == 1
        assert not second.is_verified

    def test_find_existing(self, repo, agent, tables):
        """Test lookup by endpoint pair"""
        orders, customers = tables
        assert repo.find_existing_relationship(agent.id, orders.id, customers.id, "customer_id", "id") is None
        repo.upsert_relationship(agent.id, orders.id, customers.id, "customer_id", "id", "one_to_many")
        found = repo.find_existing_relationship(agent.id, orders.id, customers.id, "customer_id", "id")
        assert found.kind == "one_to_many"

    def test_cascade_delete(self, repo, agent, tables):
        """Test deleting a table removes its columns and relationships"""
        orders, customers = tables
        repo.upsert_column(orders.id, "customer_id", "integer")
        repo.upsert_relationship(agent.id, orders.id, customers.id, "customer_id", "id", "one_to_many")

        assert repo.delete_table(orders.id)
        assert repo.list_columns(orders.id) == []
        assert repo.list_relationships(agent.id) == []
        assert [t.table_name for t in repo.list_tables(agent.id)] == ["customers"]
        assert not repo.delete_table(orders.id)

    def test_relationship_requires_tables(self, repo, agent, tables):
        """Test relationships cannot reference unknown tables"""
        orders, _customers = tables
        with pytest.raises(KeyError):
            repo.upsert_relationship(agent.id, orders.id, "missing", "customer_id", "id", "one_to_many")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
