"""
Tests for model configuration, the registry and filter composition.
"""

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table

from record_store.services.crud import (
    ModelConfig,
    ModelRegistry,
    QueryOptions,
    Visibility,
    compose_filter,
    default_primary_key,
    page_window,
    soft_delete_values,
)
from shared.utils.exceptions import ConfigurationError, NotFoundError
from tests.conftest import BranchPrice, Product, ProductAllergen


def _sql(clause):
    return str(clause.compile(compile_kwargs={"literal_binds": True}))


class TestPrimaryKey:
    """Tests for primary key resolution."""

    @pytest.mark.parametrize(
        "table_name, expected",
        [
            ("products", "product_id"),
            ("categories", "category_id"),
            ("addresses", "address_id"),
            ("branches", "branch_id"),
            ("staff", "staff_id"),
        ],
    )
    def test_default_primary_key(self, table_name, expected):
        assert default_primary_key(table_name) == expected

    def test_convention_applies_to_mapped_class(self):
        config = ModelConfig(name="products", table=Product)

        assert config.primary_key == "product_id"
        assert config.table is Product.__table__

    def test_falls_back_to_table_primary_key(self):
        table = Table("tags", MetaData(), Column("id", Integer, primary_key=True), Column("label", String))

        assert ModelConfig(name="tags", table=table).primary_key == "id"

    def test_explicit_primary_key(self):
        config = ModelConfig(name="allergens", table=ProductAllergen, primary_key="product_allergen_id")

        assert config.pk_column.name == "product_allergen_id"

    def test_unknown_explicit_primary_key(self):
        with pytest.raises(ConfigurationError):
            ModelConfig(name="products", table=Product, primary_key="id")

    def test_composite_without_convention(self):
        table = Table(
            "links",
            MetaData(),
            Column("left", Integer, primary_key=True),
            Column("right", Integer, primary_key=True),
        )

        with pytest.raises(ConfigurationError):
            ModelConfig(name="links", table=table)


class TestModelConfig:
    """Tests for ModelConfig validation."""

    def test_unknown_feature_column(self):
        with pytest.raises(ConfigurationError):
            ModelConfig(name="products", table=Product, sort_order_field="position")

    def test_not_a_table(self):
        with pytest.raises(ConfigurationError):
            ModelConfig(name="products", table="products")

    def test_unknown_column_lookup(self):
        config = ModelConfig(name="products", table=Product)

        with pytest.raises(ConfigurationError):
            config.column("position")

    def test_relations_resolved_from_declarations(self):
        config = ModelConfig(
            name="products",
            table=Product,
            cascade={"branch_prices": {"keys": "product_id", "hard_delete": True}},
        )

        [(name, relation)] = config.relations()

        assert name == "branch_prices"
        assert relation.hard_delete is True


class TestRegistry:
    """Tests for ModelRegistry"""

    def test_get_unknown_model(self, registry):
        with pytest.raises(NotFoundError):
            registry.get("orders")

    def test_names_and_membership(self, registry):
        assert "products" in registry
        assert "orders" not in registry
        assert registry.names() == ["categories", "products", "product_allergens", "branch_prices"]

    def test_register_replaces(self):
        registry = ModelRegistry([ModelConfig(name="products", table=Product)])
        replacement = ModelConfig(name="products", table=Product, soft_delete_field="is_deleted")

        registry.register(replacement)

        assert registry.get("products") is replacement

    def test_handles_are_independent(self, registry, db_session):
        first = registry.handle("products", db_session)
        second = registry.handle("products", db_session)

        assert first is not second
        assert first.category(1).options != second.options


class TestComposeFilter:
    """Tests for compose_filter()"""

    @pytest.fixture
    def product_config(self, registry):
        return registry.get("products")

    def test_default_hides_deleted(self, product_config):
        sql = _sql(compose_filter(product_config, QueryOptions()))

        assert "products.is_deleted IS 0" in sql or "products.is_deleted IS false" in sql

    def test_with_deleted_has_no_flag_clause(self, product_config):
        options = QueryOptions(visibility=Visibility.WITH_DELETED)

        assert _sql(compose_filter(product_config, options)) in ("true", "1 = 1")

    def test_only_deleted(self, product_config):
        options = QueryOptions(visibility=Visibility.ONLY_DELETED)

        assert "products.is_deleted IS" in _sql(compose_filter(product_config, options))

    def test_category_and_extra_criteria(self, product_config):
        options = QueryOptions(category=4)
        extra = product_config.column("name") == "Empanada"

        sql = _sql(compose_filter(product_config, options, extra, None))

        assert "products.category_id = 4" in sql
        assert "products.name = 'Empanada'" in sql

    def test_visibility_override(self, product_config):
        options = QueryOptions(visibility=Visibility.WITH_DELETED)

        sql = _sql(compose_filter(product_config, options, visibility=Visibility.ONLY_DELETED))

        assert "products.is_deleted" in sql

    def test_no_soft_delete_or_category(self):
        config = ModelConfig(name="branch_prices", table=BranchPrice)
        options = QueryOptions(visibility=Visibility.ONLY_DELETED, category=3)

        assert _sql(compose_filter(config, options)) in ("true", "1 = 1")

    def test_options_are_immutable(self):
        options = QueryOptions()
        changed = options.replace(category=2)

        assert options.category is None
        assert changed.category == 2
        with pytest.raises(AttributeError):
            options.category = 5


class TestSoftDeleteValues:
    """Tests for soft_delete_values()"""

    def test_delete_values(self, registry):
        values = soft_delete_values(registry.get("products"), deleted=True)

        assert values["is_deleted"] is True
        assert values["deleted_at"] is not None

    def test_undelete_values(self, registry):
        values = soft_delete_values(registry.get("products"), deleted=False)

        assert values == {"is_deleted": False, "deleted_at": None}

    def test_without_timestamp_column(self):
        config = ModelConfig(name="allergens", table=ProductAllergen, soft_delete_field="is_deleted")

        assert soft_delete_values(config, deleted=True) == {"is_deleted": True}


class TestPageWindow:
    """Tests for page_window()"""

    @pytest.mark.parametrize(
        "total, size, page, expected",
        [
            (5, 2, 3, (3, 4, 3)),
            (5, 2, 9, (3, 4, 3)),
            (5, 2, -1, (1, 0, 3)),
            (0, 10, 1, (1, 0, 1)),
            (7, 0, 4, (1, 0, 1)),
        ],
    )
    def test_page_window(self, total, size, page, expected):
        assert page_window(total, size, page) == expected
