"""Tests for the Django extractor and operation converter."""

import ast

import pytest

from miglock.exceptions import ExtractionError
from miglock.extractors import DjangoExtractor, SqlExtractor
from miglock.extractors.django_converter import DjangoOperationConverter, model_table
from miglock.extractors.django_extractor import find_migration_class
from miglock.extractors.tracking import ExtractionBuilder
from miglock.models import ConstraintKind, OperationKind, TransactionTokenKind


@pytest.fixture
def extractor():
    """Fixture for creating an extractor instance."""
    return DjangoExtractor()


def migration(operations, extra=""):
    body = "".join(f"        {line}\n" for line in operations.strip("\n").splitlines())
    return f"""from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
{extra}
    dependencies = [("shop", "0001_initial")]

    operations = [
{body}    ]
"""


def convert(source):
    builder = ExtractionBuilder()
    converter = DjangoOperationConverter(builder, SqlExtractor())
    converter.convert(ast.parse(source, mode="eval").body)
    return builder.finish().operations


def test_model_table():
    assert model_table("Order") == "order"
    assert model_table("shop.OrderItem") == "orderitem"


class TestAddField:
    """Tests for AddField conversion."""

    def test_not_null_without_default(self):
        ops = convert('migrations.AddField(model_name="order", name="note", field=models.TextField())')

        assert ops[0].kind == OperationKind.ADD_COLUMN
        assert ops[0].target_table == "order"
        assert ops[0].column == "note"
        assert ops[0].has_not_null is True
        assert ops[0].has_default is False

    def test_nullable_field(self):
        ops = convert('migrations.AddField("order", "note", models.TextField(null=True))')

        assert ops[0].has_not_null is False

    def test_default_is_constant(self):
        ops = convert('migrations.AddField("order", "paid", models.BooleanField(default=False))')

        assert ops[0].has_default is True
        assert ops[0].default_is_volatile is False

    def test_volatile_db_default(self):
        ops = convert(
            'migrations.AddField("order", "token", models.UUIDField(db_default=RandomUUID()))'
        )

        assert ops[0].has_default is True
        assert ops[0].default_is_volatile is True

    def test_foreign_key(self):
        ops = convert(
            'migrations.AddField("order", "customer", '
            'models.ForeignKey(to="shop.customer", on_delete=django.db.models.deletion.CASCADE, null=True))'
        )

        assert [op.kind for op in ops] == [OperationKind.ADD_COLUMN, OperationKind.ADD_CONSTRAINT]
        assert ops[0].column == "customer_id"
        assert ops[1].constraint_kind == ConstraintKind.FOREIGN_KEY
        assert ops[1].referenced_table == "customer"

    def test_foreign_key_without_db_constraint(self):
        ops = convert(
            'migrations.AddField("order", "customer", models.ForeignKey("shop.Customer", on_delete=None, '
            "db_constraint=False, null=True))"
        )

        assert [op.kind for op in ops] == [OperationKind.ADD_COLUMN]

    def test_unique_field(self):
        ops = convert('migrations.AddField("order", "code", models.CharField(max_length=20, unique=True, null=True))')

        assert ops[1].constraint_kind == ConstraintKind.UNIQUE

    def test_db_index_field(self):
        ops = convert('migrations.AddField("order", "code", models.CharField(max_length=20, db_index=True, null=True))')

        assert ops[1].kind == OperationKind.CREATE_INDEX
        assert ops[1].target_table == "order"

    def test_generated_field(self):
        ops = convert(
            'migrations.AddField("order", "total", models.GeneratedField(expression=F("price"), '
            "output_field=models.DecimalField(), db_persist=True))"
        )

        assert ops[0].is_generated_stored is True

    def test_many_to_many_creates_join_table(self):
        ops = convert('migrations.AddField("order", "tags", models.ManyToManyField(to="shop.tag"))')

        assert [(op.kind, op.target_table, op.referenced_table) for op in ops] == [
            (OperationKind.CREATE_TABLE, "order_tags", "order"),
            (OperationKind.CREATE_TABLE, "order_tags", "tag"),
        ]


class TestOtherOperations:
    """Tests for the remaining operation types."""

    def test_remove_and_rename_field(self):
        assert convert('migrations.RemoveField("order", "note")')[0].kind == OperationKind.DROP_COLUMN
        renamed = convert('migrations.RenameField("order", "note", "comment")')[0]

        assert renamed.kind == OperationKind.RENAME_COLUMN
        assert renamed.new_name == "comment"

    def test_create_model_with_foreign_key(self):
        ops = convert(
            'migrations.CreateModel(name="Order", fields=[("id", models.BigAutoField(primary_key=True)), '
            '("customer", models.ForeignKey(to="shop.customer", on_delete=None))])'
        )

        assert len(ops) == 1
        assert ops[0].kind == OperationKind.CREATE_TABLE
        assert ops[0].target_table == "order"
        assert ops[0].referenced_table == "customer"

    def test_delete_and_rename_model(self):
        assert convert('migrations.DeleteModel("Order")')[0].kind == OperationKind.DROP_TABLE
        renamed = convert('migrations.RenameModel("Order", "Purchase")')[0]

        assert renamed.kind == OperationKind.RENAME_TABLE
        assert renamed.new_name == "purchase"

    def test_add_index_concurrently(self):
        ops = convert(
            'AddIndexConcurrently("order", models.Index(fields=["created"], name="order_created_idx"))'
        )

        assert ops[0].kind == OperationKind.CREATE_INDEX
        assert ops[0].concurrently is True
        assert ops[0].index_name == "order_created_idx"

    def test_remove_index(self):
        ops = convert('migrations.RemoveIndex("order", "order_created_idx")')

        assert ops[0].kind == OperationKind.DROP_INDEX
        assert ops[0].target_table == "order"

    def test_add_check_constraint_not_valid(self):
        ops = convert(
            'AddConstraintNotValid("order", models.CheckConstraint(check=Q(total__gte=0), name="total_positive"))'
        )

        assert ops[0].constraint_kind == ConstraintKind.CHECK
        assert ops[0].has_not_valid is True
        assert ops[0].constraint_name == "total_positive"

    def test_partial_unique_constraint_is_index(self):
        ops = convert(
            'migrations.AddConstraint("order", models.UniqueConstraint(fields=["code"], '
            'condition=Q(active=True), name="uniq_active_code"))'
        )

        assert ops[0].kind == OperationKind.CREATE_INDEX
        assert ops[0].index_name == "uniq_active_code"

    def test_validate_constraint(self):
        ops = convert('ValidateConstraint("order", "total_positive")')

        assert ops[0].kind == OperationKind.VALIDATE_CONSTRAINT

    def test_run_sql(self):
        ops = convert('migrations.RunSQL(["ALTER TABLE shop_order DROP COLUMN note", ("TRUNCATE logs", None)])')

        assert [op.kind for op in ops] == [OperationKind.DROP_COLUMN, OperationKind.TRUNCATE]

    def test_separate_database_and_state(self):
        ops = convert(
            'migrations.SeparateDatabaseAndState(state_operations=[migrations.RemoveField("order", "x")], '
            'database_operations=[migrations.RunSQL("DROP TABLE legacy")])'
        )

        assert [(op.kind, op.target_table) for op in ops] == [(OperationKind.DROP_TABLE, "legacy")]

    @pytest.mark.parametrize(
        "source",
        [
            'migrations.AlterField("order", "note", models.TextField(null=True))',
            "migrations.RunPython(forwards, backwards)",
        ],
    )
    def test_operations_without_lock_mapping_are_unknown(self, source):
        ops = convert(source)

        assert ops[0].kind == OperationKind.UNKNOWN
        assert ops[0].statement


class TestDjangoExtractor:
    """Tests for reading whole migration files."""

    def test_extract_operations_in_order(self, extractor):
        source = migration(
            """
migrations.AddField("order", "note", models.TextField(null=True)),
migrations.RemoveField("order", "legacy"),
"""
        )

        ops = extractor.extract(source).operations

        assert [op.kind for op in ops] == [OperationKind.ADD_COLUMN, OperationKind.DROP_COLUMN]
        assert [op.position for op in ops] == [0, 1]

    def test_atomic_true_is_wrapper(self, extractor):
        source = migration(
            'AddIndexConcurrently("order", models.Index(fields=["created"], name="idx"))',
            extra="    atomic = True\n",
        )

        result = extractor.extract(source)

        assert [(t.kind, t.text) for t in result.transaction_tokens] == [
            (TransactionTokenKind.WRAPPER, "atomic = True")
        ]

    def test_implicit_atomic_is_not_assumed(self, extractor):
        source = migration('AddIndexConcurrently("order", models.Index(fields=["created"], name="idx"))')

        assert extractor.extract(source).transaction_tokens == []

    def test_atomic_false(self, extractor):
        source = migration(
            'AddIndexConcurrently("order", models.Index(fields=["created"], name="idx"))',
            extra="    atomic = False\n",
        )

        assert extractor.extract(source).transaction_tokens == []

    def test_created_model_is_new_table(self, extractor):
        source = migration(
            """
migrations.CreateModel(name="Invoice", fields=[("id", models.BigAutoField(primary_key=True))]),
migrations.AddField("invoice", "number", models.IntegerField()),
"""
        )

        ops = extractor.extract(source).operations

        assert all(op.is_new_table for op in ops)

    def test_missing_migration_class(self, extractor):
        with pytest.raises(ExtractionError, match="No Migration class"):
            extractor.extract("x = 1\n")

    def test_syntax_error(self, extractor):
        with pytest.raises(ExtractionError):
            extractor.extract("class Migration(migrations.Migration:\n")

    def test_find_migration_class(self):
        tree = ast.parse("from django.db.migrations import Migration\n\nclass Migration(Migration):\n    pass\n")

        assert find_migration_class(tree).name == "Migration"
