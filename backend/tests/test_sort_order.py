"""
Tests for the sort order engine.

Tests cover:
- Insert at the end of the table-wide sequence
- Move up / move down, including scoped moves that skip rows
- Boundaries (first/last position, missing rows, sort order not configured)
- Renumbering on physical removal
- Rollback of a failed move
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from shared.utils.exceptions import DatabaseError
from tests.conftest import positions, seed_products


class TestInsert:
    """Tests for RecordModel.insert() sort order assignment."""

    def test_insert_appends_to_sequence(self, products):
        """Each insert takes max + 1."""
        ids = seed_products(products, [None, None, None])

        assert positions(products) == {ids[0]: 1, ids[1]: 2, ids[2]: 3}

    def test_insert_counts_every_category(self, products):
        """The maximum is table-wide, not per category."""
        ids = seed_products(products, [1, 2, 1])

        assert positions(products)[ids[2]] == 3

    def test_insert_ignores_explicit_sort_order(self, products):
        """A sort order passed by the caller is replaced."""
        seed_products(products, [None])
        new_id = products.insert({"name": "Late", "sort_order": 99})

        assert positions(products)[new_id] == 2

    def test_insert_counts_soft_deleted_rows(self, products):
        """Soft-deleted rows keep their slot, so new rows go after them."""
        ids = seed_products(products, [None, None])
        products.delete(ids[1])

        new_id = products.insert({"name": "After deleted"})

        assert positions(products)[new_id] == 3


class TestMoveDown:
    """Tests for RecordModel.move_down()"""

    def test_move_down_swaps_with_next(self, products):
        """[1,2,3] move_down(1) -> [2,1,3]."""
        ids = seed_products(products, [None, None, None])

        assert products.move_down(ids[0]) is True

        assert positions(products) == {ids[1]: 1, ids[0]: 2, ids[2]: 3}
        assert [row["product_id"] for row in products.get()] == [ids[1], ids[0], ids[2]]

    def test_move_down_last_row_is_noop(self, products):
        ids = seed_products(products, [None, None, None])

        assert products.move_down(ids[2]) is False
        assert positions(products) == {ids[0]: 1, ids[1]: 2, ids[2]: 3}

    def test_move_down_missing_row(self, products):
        seed_products(products, [None])

        assert products.move_down(999) is False

    def test_move_down_last_in_category(self, products):
        """No following row in the scope: nothing moves."""
        ids = seed_products(products, [1, 2, 2])

        assert products.category(1).move_down(ids[0]) is False
        assert positions(products) == {ids[0]: 1, ids[1]: 2, ids[2]: 3}

    def test_move_down_skips_other_categories(self, products):
        """Rows of other categories between the two are shifted as a block."""
        ids = seed_products(products, [1, 2, 2, 1])

        assert products.category(1).move_down(ids[0]) is True

        assert positions(products) == {ids[1]: 1, ids[2]: 2, ids[3]: 3, ids[0]: 4}
        order = [row["product_id"] for row in products.category(1).get()]
        assert order == [ids[3], ids[0]]


class TestMoveUp:
    """Tests for RecordModel.move_up()"""

    def test_move_up_swaps_with_previous(self, products):
        ids = seed_products(products, [None, None, None])

        assert products.move_up(ids[2]) is True

        assert positions(products) == {ids[0]: 1, ids[2]: 2, ids[1]: 3}

    def test_move_up_first_row_is_noop(self, products):
        ids = seed_products(products, [None, None])

        assert products.move_up(ids[0]) is False
        assert positions(products) == {ids[0]: 1, ids[1]: 2}

    def test_move_up_missing_row(self, products):
        seed_products(products, [None])

        assert products.move_up(12345) is False

    def test_move_up_first_in_category(self, products):
        """The first row of a category cannot move up inside it."""
        ids = seed_products(products, [2, 1, 1])

        assert products.category(1).move_up(ids[1]) is False
        assert positions(products) == {ids[0]: 1, ids[1]: 2, ids[2]: 3}

    def test_move_up_skips_other_categories(self, products):
        ids = seed_products(products, [1, 2, 1])

        assert products.category(1).move_up(ids[2]) is True

        assert positions(products) == {ids[2]: 1, ids[0]: 2, ids[1]: 3}

    def test_move_up_skips_soft_deleted_rows(self, products):
        """Deleted rows are not neighbors under the default visibility."""
        ids = seed_products(products, [None, None, None])
        products.delete(ids[1])

        assert products.move_up(ids[2]) is True

        assert positions(products) == {ids[2]: 1, ids[0]: 2, ids[1]: 3}
        assert [row["product_id"] for row in products.get()] == [ids[2], ids[0]]

    def test_move_up_with_deleted_swaps_with_deleted_row(self, products):
        ids = seed_products(products, [None, None, None])
        products.delete(ids[1])

        assert products.with_deleted().move_up(ids[2]) is True

        assert positions(products) == {ids[0]: 1, ids[2]: 2, ids[1]: 3}

    def test_move_without_sort_order_configured(self, allergens):
        """Moves are a no-op on models without a sort order column."""
        allergen_id = allergens.insert({"product_id": 1, "allergen": "Gluten"})

        assert allergens.move_up(allergen_id) is False
        assert allergens.move_down(allergen_id) is False
        assert allergens.resequence() == 0

    def test_failed_move_rolls_back(self, products, monkeypatch):
        """A statement failure leaves every position as it was."""
        ids = seed_products(products, [None, None, None])
        before = positions(products)

        original_update = products.store.update
        calls = []

        def failing_update(where, values):
            calls.append(values)
            if len(calls) == 2:
                raise SQLAlchemyError("disk full")
            return original_update(where, values)

        monkeypatch.setattr(products.store, "update", failing_update)

        with pytest.raises(DatabaseError):
            products.move_up(ids[2])

        monkeypatch.undo()
        assert positions(products) == before


class TestRemoval:
    """Tests for renumbering when rows are physically removed."""

    def test_hard_delete_closes_gap(self, prices):
        ids = [
            prices.insert({"product_id": 1, "branch_id": 1, "price_cents": 100 * i})
            for i in range(1, 5)
        ]

        result = prices.delete(ids[1])

        assert result.affected == 1
        assert positions(prices) == {ids[0]: 1, ids[2]: 2, ids[3]: 3}

    def test_hard_delete_several_rows(self, prices):
        """Rows are removed from the highest position down."""
        ids = [
            prices.insert({"product_id": 1, "branch_id": 1, "price_cents": 100})
            for _ in range(5)
        ]

        result = prices.delete([ids[0], ids[2], ids[3]])

        assert result.affected == 3
        assert positions(prices) == {ids[1]: 1, ids[4]: 2}

    def test_hard_delete_override_on_soft_delete_model(self, products):
        ids = seed_products(products, [None, None, None])

        result = products.hard_delete().delete(ids[0])

        assert result.affected == 1
        assert positions(products) == {ids[1]: 1, ids[2]: 2}

    def test_hard_delete_removes_soft_deleted_row(self, products):
        ids = seed_products(products, [None, None, None])
        products.delete(ids[0])

        result = products.hard_delete().delete(ids[0])

        assert result.affected == 1
        assert positions(products) == {ids[1]: 1, ids[2]: 2}

    def test_hard_delete_only_deleted_purges_trash(self, products):
        ids = seed_products(products, [None, None, None, None])
        products.delete([ids[1], ids[3]])

        result = products.only_deleted().hard_delete().delete()

        assert result.affected == 2
        assert positions(products) == {ids[0]: 1, ids[2]: 2}

    def test_soft_delete_keeps_positions(self, products):
        ids = seed_products(products, [None, None, None])
        before = positions(products)

        products.delete(ids[1])
        products.undelete(ids[1])

        assert positions(products) == before


class TestResequence:
    """Tests for RecordModel.resequence()"""

    def test_resequence_repairs_gaps_and_duplicates(self, products, db_session):
        ids = seed_products(products, [None, None, None, None])
        products.store.update(products.config.pk_column == ids[0], {"sort_order": 7})
        products.store.update(products.config.pk_column == ids[2], {"sort_order": 2})
        db_session.commit()

        changed = products.resequence()

        assert changed == 3
        assert positions(products) == {ids[1]: 1, ids[2]: 2, ids[3]: 3, ids[0]: 4}

    def test_resequence_dense_table_changes_nothing(self, products):
        seed_products(products, [None, None])

        assert products.resequence() == 0
