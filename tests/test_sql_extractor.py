"""Tests for the SQL extractor."""

import pytest

from miglock.exceptions import ExtractionError
from miglock.extractors import SqlExtractor
from miglock.extractors.tracking import ExtractionBuilder
from miglock.models import ConstraintKind, OperationKind, TransactionTokenKind


@pytest.fixture
def extractor():
    """Fixture for creating an extractor instance."""
    return SqlExtractor()


def extract(extractor, sql):
    return extractor.extract(sql).operations


class TestAddColumn:
    """Tests for ALTER TABLE ... ADD COLUMN."""

    def test_not_null_without_default(self, extractor):
        ops = extract(extractor, "ALTER TABLE users ADD COLUMN email text NOT NULL;")

        assert len(ops) == 1
        assert ops[0].kind == OperationKind.ADD_COLUMN
        assert ops[0].target_table == "users"
        assert ops[0].column == "email"
        assert ops[0].has_not_null is True
        assert ops[0].has_default is False

    def test_constant_default(self, extractor):
        ops = extract(extractor, "ALTER TABLE users ADD COLUMN created_at timestamptz DEFAULT now() NOT NULL")

        assert ops[0].has_default is True
        assert ops[0].default_is_volatile is False
        assert ops[0].has_not_null is True

    def test_volatile_default(self, extractor):
        ops = extract(extractor, "ALTER TABLE users ADD COLUMN token uuid DEFAULT gen_random_uuid()")

        assert ops[0].has_default is True
        assert ops[0].default_is_volatile is True

    def test_serial_counts_as_volatile_default(self, extractor):
        ops = extract(extractor, "ALTER TABLE users ADD COLUMN seq bigserial")

        assert ops[0].has_default is True
        assert ops[0].default_is_volatile is True

    def test_identity_counts_as_volatile_default(self, extractor):
        ops = extract(extractor, "ALTER TABLE users ADD COLUMN n integer GENERATED ALWAYS AS IDENTITY")

        assert ops[0].default_is_volatile is True

    def test_generated_stored(self, extractor):
        ops = extract(
            extractor, "ALTER TABLE orders ADD COLUMN total numeric GENERATED ALWAYS AS (price * qty) STORED"
        )

        assert ops[0].is_generated_stored is True

    def test_not_null_inside_check_is_ignored(self, extractor):
        ops = extract(extractor, "ALTER TABLE users ADD COLUMN age int CHECK (age IS NOT NULL OR age > 0)")

        assert ops[0].has_not_null is False
        assert ops[1].kind == OperationKind.ADD_CONSTRAINT
        assert ops[1].constraint_kind == ConstraintKind.CHECK

    def test_inline_reference_adds_foreign_key(self, extractor):
        ops = extract(extractor, "ALTER TABLE orders ADD COLUMN user_id bigint REFERENCES users(id)")

        assert [op.kind for op in ops] == [OperationKind.ADD_COLUMN, OperationKind.ADD_CONSTRAINT]
        assert ops[1].constraint_kind == ConstraintKind.FOREIGN_KEY
        assert ops[1].referenced_table == "users"

    def test_inline_unique_adds_constraint(self, extractor):
        ops = extract(extractor, "ALTER TABLE users ADD COLUMN handle text UNIQUE")

        assert ops[1].constraint_kind == ConstraintKind.UNIQUE

    def test_pg_version_before_11(self):
        ops = SqlExtractor(pg_version=10).extract("ALTER TABLE users ADD COLUMN flag boolean DEFAULT false").operations

        assert ops[0].pg_version_at_least_11 is False

    def test_pg_version_defaults_to_11_or_later(self, extractor):
        ops = extract(extractor, "ALTER TABLE users ADD COLUMN flag boolean DEFAULT false")

        assert ops[0].pg_version_at_least_11 is True


class TestAlterTable:
    """Tests for the other ALTER TABLE actions."""

    def test_multiple_actions(self, extractor):
        ops = extract(extractor, "ALTER TABLE users ADD COLUMN a numeric(10, 2), DROP COLUMN b")

        assert [op.kind for op in ops] == [OperationKind.ADD_COLUMN, OperationKind.DROP_COLUMN]
        assert [op.position for op in ops] == [0, 1]

    @pytest.mark.parametrize(
        "action, kind",
        [
            ("DROP COLUMN email", OperationKind.DROP_COLUMN),
            ("DROP CONSTRAINT users_email_key", OperationKind.DROP_CONSTRAINT),
            ("ALTER COLUMN email SET DEFAULT 'x'", OperationKind.SET_DEFAULT),
            ("ALTER COLUMN email DROP DEFAULT", OperationKind.DROP_DEFAULT),
            ("ALTER COLUMN email SET NOT NULL", OperationKind.SET_NOT_NULL),
            ("ALTER COLUMN email DROP NOT NULL", OperationKind.DROP_NOT_NULL),
            ("ALTER COLUMN email TYPE varchar(320)", OperationKind.ALTER_COLUMN_TYPE),
            ("ALTER COLUMN email SET DATA TYPE text", OperationKind.ALTER_COLUMN_TYPE),
            ("RENAME COLUMN email TO email_address", OperationKind.RENAME_COLUMN),
            ("RENAME TO accounts", OperationKind.RENAME_TABLE),
            ("VALIDATE CONSTRAINT users_email_check", OperationKind.VALIDATE_CONSTRAINT),
        ],
    )
    def test_actions(self, extractor, action, kind):
        ops = extract(extractor, f"ALTER TABLE users {action};")

        assert len(ops) == 1
        assert ops[0].kind == kind
        assert ops[0].target_table == "users"

    def test_unrecognized_action_is_unknown(self, extractor):
        ops = extract(extractor, "ALTER TABLE users SET UNLOGGED")

        assert ops[0].kind == OperationKind.UNKNOWN
        assert "SET UNLOGGED" in ops[0].statement

    def test_identifiers_are_normalized(self, extractor):
        ops = extract(extractor, 'ALTER TABLE Public."UserAccounts" DROP COLUMN Email')

        assert ops[0].target_table == "public.UserAccounts"
        assert ops[0].column == "email"


class TestConstraints:
    """Tests for ADD CONSTRAINT."""

    def test_foreign_key_not_valid(self, extractor):
        ops = extract(
            extractor,
            "ALTER TABLE orders ADD CONSTRAINT fk_user FOREIGN KEY (user_id) REFERENCES users (id) NOT VALID",
        )

        assert ops[0].kind == OperationKind.ADD_CONSTRAINT
        assert ops[0].constraint_kind == ConstraintKind.FOREIGN_KEY
        assert ops[0].constraint_name == "fk_user"
        assert ops[0].referenced_table == "users"
        assert ops[0].has_not_valid is True

    def test_unique_using_index(self, extractor):
        ops = extract(extractor, "ALTER TABLE users ADD CONSTRAINT users_email_key UNIQUE USING INDEX users_email_idx")

        assert ops[0].constraint_kind == ConstraintKind.UNIQUE
        assert ops[0].uses_existing_index is True

    def test_primary_key(self, extractor):
        ops = extract(extractor, "ALTER TABLE users ADD PRIMARY KEY (id)")

        assert ops[0].constraint_kind == ConstraintKind.PRIMARY_KEY
        assert ops[0].uses_existing_index is False

    def test_validated_not_null_check_lets_set_not_null_skip_scan(self, extractor):
        sql = """
        ALTER TABLE users ADD CONSTRAINT users_email_nn CHECK (email IS NOT NULL) NOT VALID;
        ALTER TABLE users VALIDATE CONSTRAINT users_email_nn;
        ALTER TABLE users ALTER COLUMN email SET NOT NULL;
        """

        ops = extract(extractor, sql)

        assert ops[0].column == "email"
        assert ops[2].kind == OperationKind.SET_NOT_NULL
        assert ops[2].has_existing_check_constraint is True

    def test_unvalidated_check_does_not_help_set_not_null(self, extractor):
        sql = """
        ALTER TABLE users ADD CONSTRAINT users_email_nn CHECK (email IS NOT NULL) NOT VALID;
        ALTER TABLE users ALTER COLUMN email SET NOT NULL;
        """

        ops = extract(extractor, sql)

        assert ops[1].has_existing_check_constraint is False


class TestIndexes:
    """Tests for index statements."""

    def test_create_index_concurrently(self, extractor):
        ops = extract(extractor, "CREATE INDEX CONCURRENTLY idx_users_email ON users (email);")

        assert ops[0].kind == OperationKind.CREATE_INDEX
        assert ops[0].concurrently is True
        assert ops[0].index_name == "idx_users_email"
        assert ops[0].target_table == "users"

    def test_create_unique_index_if_not_exists(self, extractor):
        ops = extract(extractor, "CREATE UNIQUE INDEX IF NOT EXISTS idx ON public.users USING btree (email)")

        assert ops[0].target_table == "public.users"
        assert ops[0].concurrently is False

    def test_drop_index_resolves_table_from_earlier_create(self, extractor):
        ops = extract(extractor, "CREATE INDEX idx_email ON users (email); DROP INDEX idx_email;")

        assert ops[1].kind == OperationKind.DROP_INDEX
        assert ops[1].target_table == "users"

    def test_drop_index_without_known_table(self, extractor):
        ops = extract(extractor, "DROP INDEX CONCURRENTLY IF EXISTS idx_a")

        assert ops[0].target_table is None
        assert ops[0].index_name == "idx_a"
        assert ops[0].concurrently is True

    def test_drop_several_indexes(self, extractor):
        ops = extract(extractor, "DROP INDEX idx_a, idx_b CASCADE")

        assert [op.index_name for op in ops] == ["idx_a", "idx_b"]

    def test_reindex(self, extractor):
        ops = extract(extractor, "REINDEX TABLE users; REINDEX INDEX CONCURRENTLY idx_a; REINDEX (CONCURRENTLY) INDEX idx_b;")

        assert ops[0].target_table == "users"
        assert ops[0].concurrently is False
        assert ops[1].index_name == "idx_a"
        assert ops[1].concurrently is True
        assert ops[2].concurrently is True

    def test_reindex_database_is_unknown(self, extractor):
        ops = extract(extractor, "REINDEX DATABASE app")

        assert ops[0].kind == OperationKind.UNKNOWN


class TestTables:
    """Tests for table-level statements."""

    def test_create_table_with_references(self, extractor):
        sql = "CREATE TABLE orders (id serial PRIMARY KEY, user_id int REFERENCES users(id), shop_id int REFERENCES shops)"

        ops = extract(extractor, sql)

        assert [op.kind for op in ops] == [OperationKind.CREATE_TABLE, OperationKind.CREATE_TABLE]
        assert [op.referenced_table for op in ops] == ["users", "shops"]
        assert all(op.is_new_table for op in ops)

    def test_create_table_self_reference_is_new(self, extractor):
        ops = extract(extractor, "CREATE TABLE categories (id int PRIMARY KEY, parent_id int REFERENCES categories(id))")

        assert ops[0].referenced_is_new_table is True

    def test_operations_on_created_table_are_new(self, extractor):
        sql = """
        CREATE TABLE accounts (id bigint);
        ALTER TABLE accounts ADD COLUMN email text NOT NULL;
        CREATE INDEX idx_accounts_email ON accounts (email);
        ALTER TABLE users ADD COLUMN account_id bigint;
        """

        ops = extract(extractor, sql)

        assert [op.is_new_table for op in ops] == [True, True, True, False]

    def test_reference_to_created_table_is_new(self, extractor):
        sql = """
        CREATE TABLE accounts (id bigint PRIMARY KEY);
        ALTER TABLE users ADD CONSTRAINT fk_account FOREIGN KEY (account_id) REFERENCES accounts (id);
        """

        ops = extract(extractor, sql)

        assert ops[1].referenced_is_new_table is True

    def test_drop_and_truncate_lists(self, extractor):
        ops = extract(extractor, "DROP TABLE IF EXISTS a, b CASCADE; TRUNCATE TABLE ONLY c, d RESTART IDENTITY;")

        assert [(op.kind, op.target_table) for op in ops] == [
            (OperationKind.DROP_TABLE, "a"),
            (OperationKind.DROP_TABLE, "b"),
            (OperationKind.TRUNCATE, "c"),
            (OperationKind.TRUNCATE, "d"),
        ]

    @pytest.mark.parametrize("sql", ["VACUUM FULL users", "VACUUM (FULL, VERBOSE) users", "VACUUM FULL VERBOSE users"])
    def test_vacuum_full(self, extractor, sql):
        ops = extract(extractor, sql)

        assert ops[0].kind == OperationKind.VACUUM_FULL
        assert ops[0].target_table == "users"

    @pytest.mark.parametrize("sql", ["VACUUM users", "VACUUM ANALYZE users", "VACUUM FULL", "VACUUM (FULL false) users"])
    def test_vacuum_without_rewrite_is_unknown(self, extractor, sql):
        assert extract(extractor, sql)[0].kind == OperationKind.UNKNOWN

    def test_cluster(self, extractor):
        ops = extract(extractor, "CLUSTER users USING users_pkey")

        assert ops[0].kind == OperationKind.CLUSTER
        assert ops[0].target_table == "users"
        assert ops[0].index_name == "users_pkey"


class TestTransactions:
    """Tests for transaction tokens."""

    def test_begin_commit_tokens_carry_positions(self, extractor):
        result = extractor.extract("BEGIN; CREATE INDEX CONCURRENTLY idx ON users (email); COMMIT;")

        assert [t.kind for t in result.transaction_tokens] == [TransactionTokenKind.BEGIN, TransactionTokenKind.COMMIT]
        assert [t.position for t in result.transaction_tokens] == [0, 1]
        assert len(result.operations) == 1

    def test_start_transaction(self, extractor):
        result = extractor.extract("START TRANSACTION; DROP TABLE a; END;")

        assert [t.text for t in result.transaction_tokens] == ["START TRANSACTION", "END"]

    def test_no_tokens_without_explicit_syntax(self, extractor):
        assert extractor.extract("CREATE INDEX CONCURRENTLY idx ON users (email)").transaction_tokens == []


class TestParsing:
    """Tests for statement splitting and unknown statements."""

    def test_comments_are_ignored(self, extractor):
        sql = """
        -- add email
        ALTER TABLE users /* inline */ ADD COLUMN email text;
        """

        ops = extract(extractor, sql)

        assert len(ops) == 1
        assert ops[0].column == "email"

    def test_semicolon_inside_string(self, extractor):
        ops = extract(extractor, "ALTER TABLE users ALTER COLUMN note SET DEFAULT 'a;b';")

        assert len(ops) == 1
        assert ops[0].kind == OperationKind.SET_DEFAULT

    def test_unrecognized_statement_is_unknown(self, extractor):
        ops = extract(extractor, "GRANT SELECT ON users TO app;")

        assert ops[0].kind == OperationKind.UNKNOWN
        assert ops[0].statement == "GRANT SELECT ON users TO app"

    def test_empty_script(self, extractor):
        result = extractor.extract("-- nothing here\n")

        assert result.operations == []
        assert result.transaction_tokens == []

    def test_extract_into_rejects_non_string(self, extractor):
        with pytest.raises(ExtractionError):
            extractor.extract_into(None, ExtractionBuilder())

    def test_extract_source_checks_dialect(self, extractor):
        from miglock.sources import StringMigrationSource

        source = StringMigrationSource("def upgrade():\n    pass\n", "0001.py")

        with pytest.raises(ValueError):
            extractor.extract_source(source)
