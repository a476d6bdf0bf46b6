"""Tests for the Sequelize extractor."""

import pytest

from miglock.exceptions import ExtractionError
from miglock.extractors import SequelizeExtractor
from miglock.extractors.sequelize_extractor import js_object, js_string, split_js_top_level, strip_js_comments
from miglock.models import ConstraintKind, OperationKind, TransactionTokenKind


@pytest.fixture
def extractor():
    """Fixture for creating an extractor instance."""
    return SequelizeExtractor()


def migration(up_body, down_body="await queryInterface.dropTable('users');"):
    return f"""'use strict';

module.exports = {{
  async up(queryInterface, Sequelize) {{
    {up_body}
  }},

  async down(queryInterface, Sequelize) {{
    {down_body}
  }},
}};
"""


def test_add_column_not_null(extractor):
    source = migration(
        """
    await queryInterface.addColumn('users', 'email', {
      type: Sequelize.STRING,
      allowNull: false,
    });
"""
    )

    ops = extractor.extract(source).operations

    assert len(ops) == 1
    assert ops[0].kind == OperationKind.ADD_COLUMN
    assert ops[0].target_table == "users"
    assert ops[0].column == "email"
    assert ops[0].has_not_null is True
    assert ops[0].has_default is False


def test_add_column_with_volatile_default(extractor):
    source = migration(
        "await queryInterface.addColumn('users', 'token', "
        "{ type: Sequelize.UUID, defaultValue: Sequelize.fn('gen_random_uuid'), allowNull: false });"
    )

    ops = extractor.extract(source).operations

    assert ops[0].has_default is True
    assert ops[0].default_is_volatile is True


def test_add_column_with_constant_default(extractor):
    source = migration(
        "await queryInterface.addColumn('users', 'active', { type: Sequelize.BOOLEAN, defaultValue: true });"
    )

    ops = extractor.extract(source).operations

    assert ops[0].has_default is True
    assert ops[0].default_is_volatile is False
    assert ops[0].has_not_null is False


def test_add_column_with_reference(extractor):
    source = migration(
        "await queryInterface.addColumn('orders', 'userId', "
        "{ type: Sequelize.INTEGER, references: { model: 'users', key: 'id' } });"
    )

    ops = extractor.extract(source).operations

    assert [op.kind for op in ops] == [OperationKind.ADD_COLUMN, OperationKind.ADD_CONSTRAINT]
    assert ops[1].referenced_table == "users"


def test_table_with_schema(extractor):
    source = migration("await queryInterface.removeColumn({ tableName: 'users', schema: 'app' }, 'email');")

    ops = extractor.extract(source).operations

    assert ops[0].kind == OperationKind.DROP_COLUMN
    assert ops[0].target_table == "app.users"


def test_change_column(extractor):
    source = migration(
        "await queryInterface.changeColumn('users', 'email', { type: Sequelize.TEXT, allowNull: false });"
    )

    ops = extractor.extract(source).operations

    assert [op.kind for op in ops] == [OperationKind.ALTER_COLUMN_TYPE, OperationKind.SET_NOT_NULL]


def test_indexes(extractor):
    source = migration(
        """
    await queryInterface.addIndex('users', ['email'], { name: 'users_email', concurrently: true });
    await queryInterface.removeIndex('users', 'users_name');
"""
    )

    ops = extractor.extract(source).operations

    assert ops[0].kind == OperationKind.CREATE_INDEX
    assert ops[0].index_name == "users_email"
    assert ops[0].concurrently is True
    assert ops[1].kind == OperationKind.DROP_INDEX
    assert ops[1].index_name == "users_name"
    assert ops[1].target_table == "users"


def test_add_foreign_key_constraint(extractor):
    source = migration(
        "await queryInterface.addConstraint('orders', { fields: ['user_id'], type: 'foreign key', "
        "name: 'fk_orders_user', references: { table: 'users', field: 'id' } });"
    )

    ops = extractor.extract(source).operations

    assert ops[0].kind == OperationKind.ADD_CONSTRAINT
    assert ops[0].constraint_kind == ConstraintKind.FOREIGN_KEY
    assert ops[0].constraint_name == "fk_orders_user"
    assert ops[0].referenced_table == "users"


def test_create_table_references(extractor):
    source = migration(
        """
    await queryInterface.createTable('orders', {
      id: { type: Sequelize.INTEGER, primaryKey: true, autoIncrement: true },
      userId: { type: Sequelize.INTEGER, references: { model: 'users', key: 'id' } },
    });
"""
    )

    ops = extractor.extract(source).operations

    assert len(ops) == 1
    assert ops[0].kind == OperationKind.CREATE_TABLE
    assert ops[0].referenced_table == "users"


def test_raw_query_delegates_to_sql(extractor):
    source = migration("await queryInterface.sequelize.query('CREATE INDEX CONCURRENTLY idx ON users (email)');")

    ops = extractor.extract(source).operations

    assert ops[0].kind == OperationKind.CREATE_INDEX
    assert ops[0].concurrently is True


def test_transaction_wrapper(extractor):
    source = migration(
        """
    await queryInterface.sequelize.transaction(async (t) => {
      await queryInterface.addIndex('users', ['email'], { concurrently: true, transaction: t });
    });
"""
    )

    result = extractor.extract(source)

    assert result.transaction_tokens
    assert all(t.kind == TransactionTokenKind.WRAPPER for t in result.transaction_tokens)
    assert result.operations[0].concurrently is True


def test_down_is_ignored(extractor):
    ops = extractor.extract(migration("await queryInterface.dropTable('legacy');")).operations

    assert [(op.kind, op.target_table) for op in ops] == [(OperationKind.DROP_TABLE, "legacy")]


def test_unknown_call(extractor):
    ops = extractor.extract(migration("await queryInterface.bulkInsert('users', rows);")).operations

    assert ops[0].kind == OperationKind.UNKNOWN
    assert ops[0].statement.startswith("bulkInsert(")


def test_commented_out_calls_are_ignored(extractor):
    source = migration(
        """
    // await queryInterface.dropTable('users');
    /* await queryInterface.removeColumn('users', 'email'); */
    await queryInterface.renameTable('users', 'accounts');
"""
    )

    ops = extractor.extract(source).operations

    assert [op.kind for op in ops] == [OperationKind.RENAME_TABLE]
    assert ops[0].new_name == "accounts"


def test_unbalanced_call_raises(extractor):
    with pytest.raises(ExtractionError):
        extractor.extract("module.exports = { up: async (queryInterface) => { queryInterface.addColumn('users', ")


class TestJsHelpers:
    """Tests for the literal readers."""

    def test_js_string(self):
        assert js_string("'users'") == "users"
        assert js_string('"it\\"s"') == 'it"s'
        assert js_string("tableName") is None

    def test_js_object(self):
        assert js_object("{ allowNull: false, 'type': Sequelize.STRING }") == {
            "allowNull": "false",
            "type": "Sequelize.STRING",
        }
        assert js_object("['email']") == {}

    def test_split_js_top_level(self):
        assert split_js_top_level("'a,b', { x: 1, y: 2 }, [1, 2]") == ["'a,b'", "{ x: 1, y: 2 }", "[1, 2]"]

    def test_strip_js_comments_keeps_strings(self):
        assert strip_js_comments("a('//not a comment') // comment") == "a('//not a comment') "
