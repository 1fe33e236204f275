"""Earnings ledger: credits, guarded debits, withdrawals and penalties."""

from __future__ import annotations

import pytest

from hailing.domain.enums import ActorRole, TransactionType, WithdrawalStatus
from hailing.domain.errors import InsufficientBalance, NotFound, WithdrawalBelowMinimum
from hailing.domain.penalties import PenaltyStatus, PenaltyType, default_amount
from hailing.infrastructure.repositories import DriverRepository
from hailing.services.ledger import EarningsLedger


@pytest.fixture
def ledger(db_session):
    return EarningsLedger(db_session)


class TestCreditDebit:
    @pytest.mark.asyncio
    async def test_credit_appends_and_updates_balance(self, ledger, driver):
        tx = await ledger.credit(driver.id, 250, "Trip earnings")
        assert tx.type == TransactionType.CREDIT
        assert tx.amount == 250
        assert tx.created_at is not None
        assert await ledger.balance(driver.id) == 250

    @pytest.mark.asyncio
    async def test_credit_unknown_driver(self, ledger):
        with pytest.raises(NotFound):
            await ledger.credit(404, 10, "Trip earnings")

    @pytest.mark.asyncio
    async def test_debit_within_balance(self, ledger, driver):
        await ledger.credit(driver.id, 300, "Trip earnings")
        tx = await ledger.debit(driver.id, 120, "Fuel advance")
        assert tx.type == TransactionType.DEBIT
        assert await ledger.balance(driver.id) == 180

    @pytest.mark.asyncio
    async def test_debit_exceeding_balance_changes_nothing(self, ledger, driver):
        await ledger.credit(driver.id, 100, "Trip earnings")
        with pytest.raises(InsufficientBalance):
            await ledger.debit(driver.id, 101, "Fuel advance")

        assert await ledger.balance(driver.id) == 100
        assert len(await ledger.transactions(driver.id)) == 1

    @pytest.mark.asyncio
    async def test_balance_equals_signed_sum(self, ledger, driver):
        await ledger.credit(driver.id, 500, "Trip earnings")
        await ledger.debit(driver.id, 120, "Penalty")
        await ledger.credit(driver.id, 75, "Trip earnings")
        await ledger.debit(driver.id, 55, "Penalty")

        balance, total = await ledger.audit(driver.id)
        assert balance == total == 400

    @pytest.mark.asyncio
    async def test_transactions_in_append_order(self, ledger, driver):
        await ledger.credit(driver.id, 10, "first")
        await ledger.credit(driver.id, 20, "second")
        transactions = await ledger.transactions(driver.id)
        assert [t.description for t in transactions] == ["first", "second"]


class TestWithdrawal:
    @pytest.mark.asyncio
    async def test_over_balance_rejected_without_transaction(self, ledger, driver):
        await ledger.credit(driver.id, 500, "Trip earnings")

        with pytest.raises(InsufficientBalance):
            await ledger.request_withdrawal(driver.id, 800)

        assert await ledger.balance(driver.id) == 500
        assert len(await ledger.transactions(driver.id)) == 1
        assert await DriverRepository(ledger.session).get_withdrawals(driver.id) == []

    @pytest.mark.asyncio
    async def test_below_minimum_rejected(self, ledger, driver):
        await ledger.credit(driver.id, 500, "Trip earnings")
        with pytest.raises(WithdrawalBelowMinimum):
            await ledger.request_withdrawal(driver.id, 99)
        assert await ledger.balance(driver.id) == 500

    @pytest.mark.asyncio
    async def test_withdrawal_debits_and_queues(self, ledger, driver):
        await ledger.credit(driver.id, 500, "Trip earnings")
        withdrawal = await ledger.request_withdrawal(driver.id, 300, "HDFC0001234")

        assert withdrawal.status == WithdrawalStatus.PENDING
        assert withdrawal.amount == 300
        assert withdrawal.bank_reference == "HDFC0001234"
        assert await ledger.balance(driver.id) == 200

        debit = (await ledger.transactions(driver.id))[-1]
        assert debit.type == TransactionType.DEBIT
        assert debit.id == withdrawal.transaction_id


class TestPenalty:
    @pytest.mark.asyncio
    async def test_penalty_with_default_amount(self, ledger, driver):
        await ledger.credit(driver.id, 1000, "Trip earnings")
        penalty = await ledger.apply_penalty(driver.id, PenaltyType.CAR_NOT_CLEAN, applied_by=1)

        assert penalty.amount == default_amount(PenaltyType.CAR_NOT_CLEAN)
        assert penalty.status == PenaltyStatus.PAID
        assert penalty.applied_by_role == ActorRole.ADMIN
        assert penalty.reason == "car not clean"
        assert await ledger.balance(driver.id) == 1000 - penalty.amount

    @pytest.mark.asyncio
    async def test_penalty_with_supplied_amount(self, ledger, driver):
        await ledger.credit(driver.id, 1000, "Trip earnings")
        penalty = await ledger.apply_penalty(
            driver.id, PenaltyType.DRIVER_MISBEHAVED, amount=350, reason="Rude to rider"
        )
        assert penalty.amount == 350
        assert await ledger.balance(driver.id) == 650

    @pytest.mark.asyncio
    async def test_unaffordable_penalty_rejected(self, ledger, driver):
        with pytest.raises(InsufficientBalance):
            await ledger.apply_penalty(driver.id, PenaltyType.WRONG_CAR_ASSIGNED)
        assert await DriverRepository(ledger.session).get_penalties(driver.id) == []
