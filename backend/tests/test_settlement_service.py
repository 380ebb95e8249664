import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from sell.errors import InvalidStateError, InsufficientStockError, NotFoundError, PersistenceError
from sell.models import Sale, Staff, StaffTariff, FinancialTransaction, InventoryLedgerEntry
from sell.extensions import db
from sell.services import basket_service, concurrency, sales_service, settlement_service
from sell.services.settlement_service import compute_commission
from sell.validation import ValidationError


def _staff_balance(db_session, staff_id):
    db_session.expire_all()
    return db_session.get(Staff, staff_id).balance


class TestSuccessSettlement:

    def test_two_line_sale_cash_fixed_tariff(
        self, db_session, branch, cashier, product_a, product_b, stock, on_hand, open_sale
    ):
        stock(product_a, branch, 10)
        stock(product_b, branch, 5)
        basket_service.add_product(open_sale.id, product_a.id, 2)
        basket_service.add_product(open_sale.id, product_b.id, 1)

        result = settlement_service.settle_sale(open_sale.id, "success", "cash")

        assert result.sale.status == "success"
        assert result.sale.total_price == 1300
        assert result.sale.completed_at is not None
        assert [c.to_dict() for c in result.commissions] == [
            {"staff_id": cashier.id, "role": "cashier", "commission": 100},
        ]
        assert _staff_balance(db_session, cashier.id) == 100
        assert on_hand(product_a, branch) == 8
        assert on_hand(product_b, branch) == 4

    def test_total_equals_sum_of_line_prices(self, db_session, branch, product_a, product_b, stock, open_sale):
        stock(product_a, branch, 10)
        stock(product_b, branch, 10)
        basket_service.add_product(open_sale.id, product_a.id, 3)
        basket_service.add_product(open_sale.id, product_b.id, 2)
        basket_service.add_product(open_sale.id, product_a.id, 1)

        result = settlement_service.settle_sale(open_sale.id, "success")

        _, lines = sales_service.get_sale(open_sale.id)
        assert result.sale.total_price == sum(line.price for line in lines) == 4 * 500 + 2 * 300

    def test_ledger_entries_appended_per_line(self, db_session, branch, product_a, product_b, stock, open_sale):
        stock(product_a, branch, 10)
        stock(product_b, branch, 10)
        basket_service.add_product(open_sale.id, product_a.id, 2)
        basket_service.add_product(open_sale.id, product_b.id, 1)

        settlement_service.settle_sale(open_sale.id, "success")

        entries = db_session.query(InventoryLedgerEntry).filter_by(sale_id=open_sale.id).all()
        assert sorted((e.product_id, e.entry_type, e.price, e.quantity) for e in entries) == sorted([
            (product_a.id, "minus", 1000, 2),
            (product_b.id, "minus", 300, 1),
        ])

    def test_percent_tariff_cash_commission_truncates(
        self, db_session, branch, percent_tariff, product_b, stock
    ):
        cashier = Staff(name="Percent Cashier", branch_id=branch.id, tariff_id=percent_tariff.id)
        db_session.add(cashier)
        db_session.commit()
        sale = sales_service.create_sale(branch_id=branch.id, cashier_id=cashier.id)
        stock(product_b, branch, 10)
        basket_service.add_product(sale.id, product_b.id, 1)

        result = settlement_service.settle_sale(sale.id, "success", "cash")

        # 300 * 5 / 100 = 15
        assert result.commissions[0].commission == 15
        assert _staff_balance(db_session, cashier.id) == 15

    def test_card_payment_uses_card_amount(self, db_session, branch, cashier, product_a, stock, open_sale):
        stock(product_a, branch, 10)
        basket_service.add_product(open_sale.id, product_a.id, 1)

        result = settlement_service.settle_sale(open_sale.id, "success", "card")

        assert result.sale.payment_type == "card"
        assert result.commissions[0].commission == 80
        assert _staff_balance(db_session, cashier.id) == 80

    def test_shop_assistant_paid_by_own_tariff(
        self, db_session, branch, cashier, shop_assistant, product_a, stock
    ):
        sale = sales_service.create_sale(
            branch_id=branch.id,
            cashier_id=cashier.id,
            shop_assistant_id=shop_assistant.id,
            payment_type="cash",
        )
        stock(product_a, branch, 10)
        basket_service.add_product(sale.id, product_a.id, 3)

        result = settlement_service.settle_sale(sale.id, "success")

        by_role = {c.role: c for c in result.commissions}
        assert by_role["cashier"].commission == 100
        # 1500 * 5 / 100
        assert by_role["shop_assistant"].commission == 75
        assert _staff_balance(db_session, cashier.id) == 100
        assert _staff_balance(db_session, shop_assistant.id) == 75

        topups = db_session.query(FinancialTransaction).filter_by(
            sale_id=sale.id, transaction_type="topup"
        ).all()
        assert len(topups) == 2
        assert {t.amount for t in topups} == {1500}
        assert {t.description for t in topups} == {"staff sell products"}

    def test_empty_basket_rejected(self, db_session, open_sale):
        with pytest.raises(ValidationError):
            settlement_service.settle_sale(open_sale.id, "success")

        db_session.expire_all()
        assert db_session.get(Sale, open_sale.id).status == "open"


class TestCancelSettlement:

    def test_cancel_leaves_inventory_untouched(
        self, db_session, branch, cashier, product_a, stock, on_hand, open_sale
    ):
        stock(product_a, branch, 10)
        basket_service.add_product(open_sale.id, product_a.id, 4)

        result = settlement_service.settle_sale(open_sale.id, "cancel")

        assert result.sale.status == "cancel"
        assert result.sale.total_price == 0
        assert result.commissions == []
        assert on_hand(product_a, branch) == 10
        assert _staff_balance(db_session, cashier.id) == 0
        assert db_session.query(InventoryLedgerEntry).count() == 0

    def test_cancel_records_zero_withdraw(self, db_session, cashier, open_sale):
        settlement_service.settle_sale(open_sale.id, "cancel")

        txs = db_session.query(FinancialTransaction).filter_by(sale_id=open_sale.id).all()
        assert len(txs) == 1
        assert txs[0].transaction_type == "withdraw"
        assert txs[0].amount == 0
        assert txs[0].staff_id == cashier.id

    def test_cancel_audit_row_goes_to_shop_assistant(self, db_session, branch, cashier, shop_assistant):
        sale = sales_service.create_sale(
            branch_id=branch.id, cashier_id=cashier.id, shop_assistant_id=shop_assistant.id
        )

        settlement_service.settle_sale(sale.id, "cancel")

        txs = db_session.query(FinancialTransaction).filter_by(sale_id=sale.id).all()
        assert [(t.staff_id, t.transaction_type, t.amount) for t in txs] == [(shop_assistant.id, "withdraw", 0)]
        assert _staff_balance(db_session, shop_assistant.id) == 0


class TestSettlementRejections:

    def test_settling_twice_fails(self, db_session, branch, product_a, stock, open_sale):
        stock(product_a, branch, 10)
        basket_service.add_product(open_sale.id, product_a.id, 1)
        settlement_service.settle_sale(open_sale.id, "success")

        with pytest.raises(InvalidStateError):
            settlement_service.settle_sale(open_sale.id, "success")
        with pytest.raises(InvalidStateError):
            settlement_service.settle_sale(open_sale.id, "cancel")

    def test_cancelled_sale_cannot_be_settled(self, db_session, open_sale):
        settlement_service.settle_sale(open_sale.id, "cancel")

        with pytest.raises(InvalidStateError):
            settlement_service.settle_sale(open_sale.id, "success")

    def test_missing_sale(self, db_session):
        with pytest.raises(NotFoundError):
            settlement_service.settle_sale(999, "success")

    @pytest.mark.parametrize("status,payment_type", [("open", None), ("done", "cash"), ("success", "crypto")])
    def test_invalid_arguments(self, db_session, open_sale, status, payment_type):
        with pytest.raises(ValidationError):
            settlement_service.settle_sale(open_sale.id, status, payment_type)

    def test_insufficient_stock_changes_nothing(
        self, db_session, branch, cashier, product_a, product_b, stock, on_hand, open_sale
    ):
        stock(product_a, branch, 10)
        stock(product_b, branch, 5)
        basket_service.add_product(open_sale.id, product_a.id, 2)
        basket_service.add_product(open_sale.id, product_b.id, 5)
        # Stock shrinks after the basket was filled
        stock(product_b, branch, 2)

        with pytest.raises(InsufficientStockError) as exc_info:
            settlement_service.settle_sale(open_sale.id, "success")

        assert exc_info.value.details["items"] == [
            {"product_id": product_b.id, "requested_quantity": 5, "available": 2},
        ]
        db_session.expire_all()
        sale = db_session.get(Sale, open_sale.id)
        assert sale.status == "open"
        assert sale.total_price == 0
        assert on_hand(product_a, branch) == 10
        assert on_hand(product_b, branch) == 2
        assert _staff_balance(db_session, cashier.id) == 0
        assert db_session.query(InventoryLedgerEntry).count() == 0
        assert db_session.query(FinancialTransaction).count() == 0

    def test_shortages_reported_in_product_order(
        self, db_session, branch, product_a, product_b, stock, open_sale
    ):
        stock(product_a, branch, 5)
        stock(product_b, branch, 5)
        basket_service.add_product(open_sale.id, product_b.id, 2)
        basket_service.add_product(open_sale.id, product_a.id, 2)
        stock(product_a, branch, 0)
        stock(product_b, branch, 0)

        with pytest.raises(InsufficientStockError) as exc_info:
            settlement_service.settle_sale(open_sale.id, "success")

        reported = [item["product_id"] for item in exc_info.value.details["items"]]
        assert reported == sorted([product_a.id, product_b.id])

    def test_stock_is_branch_scoped(self, db_session, branch, other_branch, product_a, stock, open_sale):
        stock(product_a, branch, 3)
        basket_service.add_product(open_sale.id, product_a.id, 3)
        stock(product_a, branch, 0)
        stock(product_a, other_branch, 100)

        with pytest.raises(InsufficientStockError):
            settlement_service.settle_sale(open_sale.id, "success")

    def test_storage_failure_rolls_back_everything(
        self, db_session, branch, cashier, product_a, stock, on_hand, open_sale, monkeypatch
    ):
        stock(product_a, branch, 10)
        basket_service.add_product(open_sale.id, product_a.id, 2)

        def _boom(*args, **kwargs):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(settlement_service, "_pay_staff", _boom)

        with pytest.raises(PersistenceError):
            settlement_service.settle_sale(open_sale.id, "success")

        db_session.expire_all()
        sale = db_session.get(Sale, open_sale.id)
        assert sale.status == "open"
        assert sale.total_price == 0
        assert on_hand(product_a, branch) == 10
        assert db_session.query(InventoryLedgerEntry).count() == 0

        # The sale can still be settled once storage recovers
        monkeypatch.undo()
        result = settlement_service.settle_sale(open_sale.id, "success")
        assert result.sale.total_price == 1000
        assert _staff_balance(db_session, cashier.id) == 100


class TestSettlementRetry:

    @pytest.fixture
    def backoffs(self, monkeypatch):
        waits = []
        monkeypatch.setattr(concurrency.time, "sleep", waits.append)
        return waits

    @staticmethod
    def _assert_untouched(db_session, sale_id, cashier, product_a, branch, on_hand):
        db_session.expire_all()
        sale = db_session.get(Sale, sale_id)
        assert sale.status == "open"
        assert sale.total_price == 0
        assert on_hand(product_a, branch) == 10
        assert _staff_balance(db_session, cashier.id) == 0
        assert db_session.query(InventoryLedgerEntry).count() == 0
        assert db_session.query(FinancialTransaction).count() == 0

    def test_version_conflict_is_retried(
        self, db_session, branch, cashier, product_a, stock, on_hand, open_sale, monkeypatch, backoffs
    ):
        stock(product_a, branch, 10)
        basket_service.add_product(open_sale.id, product_a.id, 2)
        real_success = settlement_service._success_locked
        calls = []

        def _conflict_once(sale):
            calls.append(sale.id)
            result = real_success(sale)
            if len(calls) == 1:
                raise StaleDataError("sale row changed underneath")
            return result

        monkeypatch.setattr(settlement_service, "_success_locked", _conflict_once)

        result = settlement_service.settle_sale(open_sale.id, "success")

        assert len(calls) == 2
        assert len(backoffs) == 1
        assert result.sale.status == "success"
        # Only the second attempt's writes are kept
        assert on_hand(product_a, branch) == 8
        assert _staff_balance(db_session, cashier.id) == 100
        assert db_session.query(InventoryLedgerEntry).filter_by(sale_id=open_sale.id).count() == 1
        assert db_session.query(FinancialTransaction).filter_by(sale_id=open_sale.id).count() == 1

    def test_sale_settled_between_attempts(
        self, db_session, branch, cashier, product_a, stock, on_hand, open_sale, monkeypatch
    ):
        stock(product_a, branch, 10)
        basket_service.add_product(open_sale.id, product_a.id, 2)

        def _conflict(sale):
            raise StaleDataError("sale row changed underneath")

        def _settled_elsewhere(delay):
            db.session.query(Sale).filter_by(id=open_sale.id).update({"status": "cancel"}, synchronize_session=False)
            db.session.commit()

        monkeypatch.setattr(settlement_service, "_success_locked", _conflict)
        monkeypatch.setattr(concurrency.time, "sleep", _settled_elsewhere)

        with pytest.raises(InvalidStateError) as exc_info:
            settlement_service.settle_sale(open_sale.id, "success")

        assert exc_info.value.details["status"] == "cancel"
        db_session.expire_all()
        assert db_session.get(Sale, open_sale.id).status == "cancel"
        assert on_hand(product_a, branch) == 10
        assert _staff_balance(db_session, cashier.id) == 0
        assert db_session.query(InventoryLedgerEntry).count() == 0
        assert db_session.query(FinancialTransaction).count() == 0

    def test_conflict_on_every_attempt_is_persistence_error(
        self, db_session, branch, cashier, product_a, stock, on_hand, open_sale, monkeypatch, backoffs
    ):
        stock(product_a, branch, 10)
        basket_service.add_product(open_sale.id, product_a.id, 2)
        real_success = settlement_service._success_locked
        calls = []

        def _always_conflict(sale):
            calls.append(sale.id)
            real_success(sale)
            raise StaleDataError("sale row changed underneath")

        monkeypatch.setattr(settlement_service, "_success_locked", _always_conflict)

        with pytest.raises(PersistenceError) as exc_info:
            settlement_service.settle_sale(open_sale.id, "success")

        assert exc_info.value.details == {"reason": "StaleDataError"}
        assert len(calls) == 3
        assert len(backoffs) == 2
        self._assert_untouched(db_session, open_sale.id, cashier, product_a, branch, on_hand)


class TestComputeCommission:

    def test_fixed_ignores_total(self):
        tariff = StaffTariff(tariff_type="fixed", amount_for_cash=100, amount_for_card=80)
        assert compute_commission(tariff, "cash", 1) == 100
        assert compute_commission(tariff, "cash", 1_000_000) == 100
        assert compute_commission(tariff, "card", 1_000_000) == 80

    def test_percent_floors(self):
        tariff = StaffTariff(tariff_type="percent", amount_for_cash=7, amount_for_card=2)
        assert compute_commission(tariff, "cash", 1299) == 90
        assert compute_commission(tariff, "card", 1299) == 25

    def test_unknown_type(self):
        tariff = StaffTariff(tariff_type="bonus", amount_for_cash=1, amount_for_card=1)
        with pytest.raises(ValidationError):
            compute_commission(tariff, "cash", 100)
