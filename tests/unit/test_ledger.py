"""
Unit tests for the ledger service
"""
import pytest
from decimal import Decimal
from unittest.mock import patch
from wallet_api.database import queries
from wallet_api.database.models import Transaction
from wallet_api.utils.exceptions import (
    ConcurrentUpdateError,
    InsufficientBalanceError,
    NotFoundError,
    PriceUnavailableError,
    RestrictedSwapError,
    ValidationError
)
from tests.fixtures.sample_data import create_sample_user, balances_of


@pytest.fixture
def fixed_amc(test_db):
    """Pin AMC at 2.00 with drift off"""
    queries.update_token_config(test_db, "AMC", {
        "current_price": "2",
        "base_price": "2",
        "auto_mode": "none",
    })


def transaction_count(db):
    return db.query(Transaction).count()


class TestSwap:
    """Tests for swaps between a user's balances"""

    @pytest.mark.asyncio
    async def test_swap_btc_to_amc(self, test_db, ledger, fixed_amc):
        user = create_sample_user(test_db, {"BTC": "0.5"})

        result = await ledger.swap(test_db, user.id, "BTC", "AMC", "0.1")

        assert result.received == Decimal("2500")
        balances = balances_of(test_db, user.id)
        assert balances["BTC"] == "0.4"
        assert balances["AMC"] == "2500"

    @pytest.mark.asyncio
    async def test_swap_records_source_leg(self, test_db, ledger, fixed_amc):
        user = create_sample_user(test_db, {"BTC": "0.5"})

        result = await ledger.swap(test_db, user.id, "BTC", "AMC", 0.1)

        tx = result.transaction
        assert transaction_count(test_db) == 1
        assert tx.type == "swap"
        assert tx.amount == "0.1"
        assert tx.currency == "BTC"
        assert tx.from_address == "BTC"
        assert tx.to_address == "AMC"
        assert tx.user_id == user.id
        assert tx.status == "completed"
        assert len(tx.id) == 8
        assert tx.hash.startswith("0x") and len(tx.hash) == 66

    @pytest.mark.asyncio
    async def test_swap_between_market_symbols_round_trips(self, test_db, ledger):
        user = create_sample_user(test_db, {"BTC": "1"})

        there = await ledger.swap(test_db, user.id, "BTC", "ETH", "1")
        assert there.received == Decimal("20")
        back = await ledger.swap(test_db, user.id, "ETH", "BTC", there.received)

        assert back.received == Decimal("1")
        balances = balances_of(test_db, user.id)
        assert Decimal(balances["BTC"]) == Decimal("1")
        assert Decimal(balances["ETH"]) == 0

    @pytest.mark.asyncio
    async def test_synthetic_token_cannot_be_swapped_out(self, test_db, ledger):
        user = create_sample_user(test_db, {"AMC": "100"})

        with pytest.raises(RestrictedSwapError) as exc_info:
            await ledger.swap(test_db, user.id, "AMC", "BTC", "10")

        assert "requires support approval" in exc_info.value.message
        assert balances_of(test_db, user.id)["AMC"] == "100"
        assert transaction_count(test_db) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["-5", "0", "abc", None, "1000000"])
    async def test_synthetic_token_restricted_whatever_the_amount(self, test_db, ledger, amount):
        user = create_sample_user(test_db, {"AMC": "100"})

        with pytest.raises(RestrictedSwapError):
            await ledger.swap(test_db, user.id, "AMC", "ETH", amount)

        assert balances_of(test_db, user.id)["AMC"] == "100"

    @pytest.mark.asyncio
    async def test_same_symbol_rejected(self, test_db, ledger):
        user = create_sample_user(test_db, {"BTC": "1"})
        with pytest.raises(ValidationError):
            await ledger.swap(test_db, user.id, "BTC", "BTC", "0.1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-1", "abc", None, "NaN"])
    async def test_invalid_amount_rejected(self, test_db, ledger, amount):
        user = create_sample_user(test_db, {"BTC": "1"})
        with pytest.raises(ValidationError):
            await ledger.swap(test_db, user.id, "BTC", "ETH", amount)

    @pytest.mark.asyncio
    async def test_insufficient_balance_changes_nothing(self, test_db, ledger, fixed_amc):
        user = create_sample_user(test_db, {"BTC": "0.05"})

        with pytest.raises(InsufficientBalanceError):
            await ledger.swap(test_db, user.id, "BTC", "AMC", "0.1")

        balances = balances_of(test_db, user.id)
        assert balances["BTC"] == "0.05"
        assert balances["AMC"] == "0"
        assert transaction_count(test_db) == 0

    @pytest.mark.asyncio
    async def test_missing_balance_row(self, test_db, ledger):
        user = queries.create_user(
            test_db, name="Bob", email="bob@example.com",
            wallet_address="0xbob", seed_phrase="bob seed"
        )
        with pytest.raises(NotFoundError):
            await ledger.swap(test_db, user.id, "BTC", "ETH", "0.1")

    @pytest.mark.asyncio
    async def test_missing_price_rejected(self, test_db, ledger, quote_source):
        user = create_sample_user(test_db, {"BTC": "1"})
        quote_source.fail = True

        with pytest.raises(PriceUnavailableError):
            await ledger.swap(test_db, user.id, "BTC", "AMC", "0.5")

        assert balances_of(test_db, user.id)["BTC"] == "1"

    @pytest.mark.asyncio
    async def test_swap_value_is_conserved(self, test_db, ledger, fixed_amc):
        user = create_sample_user(test_db, {"ETH": "3"})

        result = await ledger.swap(test_db, user.id, "ETH", "AMC", "1.5")

        # 1.5 ETH at 2500 is worth 3750 USD, which buys 1875 AMC at 2.00
        assert result.received * Decimal("2") == Decimal("1.5") * Decimal("2500")


class TestFund:
    """Tests for admin funding with and without auto-swap"""

    @pytest.mark.asyncio
    async def test_direct_credit_without_auto_swap(self, test_db, ledger):
        user = create_sample_user(test_db)

        result = await ledger.fund(test_db, user.id, "BTC", "0.25")

        assert not result.swapped
        assert result.final_currency == "BTC"
        assert balances_of(test_db, user.id)["BTC"] == "0.25"
        assert result.transaction.type == "receive"
        assert result.transaction.to_address == user.wallet_address

    @pytest.mark.asyncio
    async def test_auto_swap_converts_to_synthetic(self, test_db, ledger, fixed_amc):
        queries.update_app_settings(test_db, auto_swap_enabled=True)
        user = create_sample_user(test_db)

        result = await ledger.fund(test_db, user.id, "BTC", "0.1")

        assert result.swapped
        assert result.original_currency == "BTC"
        assert result.original_amount == Decimal("0.1")
        assert result.final_currency == "AMC"
        assert result.final_amount == Decimal("2500")
        balances = balances_of(test_db, user.id)
        assert balances["AMC"] == "2500"
        assert balances["BTC"] == "0"

    @pytest.mark.asyncio
    async def test_auto_swap_records_one_swap_transaction(self, test_db, ledger, fixed_amc):
        queries.update_app_settings(test_db, auto_swap_enabled=True)
        user = create_sample_user(test_db)

        result = await ledger.fund(test_db, user.id, "ETH", "2")

        assert transaction_count(test_db) == 1
        assert result.transaction.type == "swap"
        assert result.transaction.amount == "2"
        assert result.transaction.currency == "ETH"

    @pytest.mark.asyncio
    async def test_auto_swap_leaves_synthetic_funding_alone(self, test_db, ledger, fixed_amc):
        queries.update_app_settings(test_db, auto_swap_enabled=True)
        user = create_sample_user(test_db)

        result = await ledger.fund(test_db, user.id, "AMC", "10")

        assert not result.swapped
        assert balances_of(test_db, user.id)["AMC"] == "10"

    @pytest.mark.asyncio
    async def test_auto_swap_falls_back_without_price(self, test_db, ledger, quote_source):
        queries.update_app_settings(test_db, auto_swap_enabled=True)
        quote_source.fail = True
        user = create_sample_user(test_db)

        result = await ledger.fund(test_db, user.id, "BTC", "0.1")

        assert not result.swapped
        assert result.transaction.type == "receive"
        assert balances_of(test_db, user.id)["BTC"] == "0.1"

    @pytest.mark.asyncio
    async def test_unknown_user(self, test_db, ledger):
        with pytest.raises(NotFoundError):
            await ledger.fund(test_db, "no-such-user", "BTC", "1")

    @pytest.mark.asyncio
    async def test_unsupported_currency(self, test_db, ledger):
        user = create_sample_user(test_db)
        with pytest.raises(ValidationError):
            await ledger.fund(test_db, user.id, "DOGE", "1")

    @pytest.mark.asyncio
    async def test_funding_notifies_user(self, test_db, ledger, notifier, delivery):
        user = create_sample_user(test_db)

        await ledger.fund(test_db, user.id, "ETH", "1.5")
        await notifier.drain()

        delivery.assert_awaited_once()
        user_id, payload = delivery.await_args.args
        assert user_id == user.id
        assert payload["body"] == "You received 1.5 ETH"


class TestSend:
    """Tests for outgoing sends"""

    @pytest.mark.asyncio
    async def test_send_debits_balance(self, test_db, ledger):
        user = create_sample_user(test_db, {"ETH": "2"})

        tx = await ledger.send(test_db, user.id, "ETH", "0.5", to_address="0xfriend")

        assert balances_of(test_db, user.id)["ETH"] == "1.5"
        assert tx.type == "send"
        assert tx.from_address == user.wallet_address
        assert tx.to_address == "0xfriend"

    @pytest.mark.asyncio
    async def test_send_more_than_balance(self, test_db, ledger):
        user = create_sample_user(test_db, {"ETH": "0.1"})
        with pytest.raises(InsufficientBalanceError):
            await ledger.send(test_db, user.id, "ETH", "1")
        assert transaction_count(test_db) == 0


class TestRecordTransaction:
    """Tests for admin-entered transactions"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tx_type", ["receive", "buy"])
    async def test_credit_types_add_to_balance(self, test_db, ledger, tx_type):
        user = create_sample_user(test_db, {"BTC": "1"})

        await ledger.record_transaction(test_db, tx_type, "0.5", "BTC", user_id=user.id)

        assert balances_of(test_db, user.id)["BTC"] == "1.5"

    @pytest.mark.asyncio
    async def test_send_subtracts_from_balance(self, test_db, ledger):
        user = create_sample_user(test_db, {"BTC": "1"})

        tx = await ledger.record_transaction(test_db, "send", "0.25", "BTC", user_id=user.id)

        assert balances_of(test_db, user.id)["BTC"] == "0.75"
        assert tx.from_address == user.wallet_address
        assert tx.to_address

    @pytest.mark.asyncio
    async def test_send_cannot_overdraw(self, test_db, ledger):
        user = create_sample_user(test_db, {"BTC": "0.1"})
        with pytest.raises(InsufficientBalanceError):
            await ledger.record_transaction(test_db, "send", "1", "BTC", user_id=user.id)
        assert balances_of(test_db, user.id)["BTC"] == "0.1"

    @pytest.mark.asyncio
    async def test_without_user_only_records(self, test_db, ledger):
        tx = await ledger.record_transaction(
            test_db, "receive", "3", "ETH", from_address="0xa", to_address="0xb"
        )
        assert tx.user_id is None
        assert tx.from_address == "0xa"
        assert transaction_count(test_db) == 1

    @pytest.mark.asyncio
    async def test_swap_type_rejected(self, test_db, ledger):
        with pytest.raises(ValidationError):
            await ledger.record_transaction(test_db, "swap", "1", "BTC")

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, test_db, ledger):
        with pytest.raises(ValidationError):
            await ledger.record_transaction(test_db, "steal", "1", "BTC")

    @pytest.mark.asyncio
    async def test_unknown_user_rejected(self, test_db, ledger):
        with pytest.raises(NotFoundError):
            await ledger.record_transaction(test_db, "receive", "1", "BTC", user_id="ghost")


class TestConcurrentUpdates:
    """Tests for the compare-and-swap balance write"""

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self, test_db, ledger):
        user = create_sample_user(test_db, {"BTC": "1"})

        with patch.object(queries, "compare_and_set_balance", return_value=False) as cas:
            with pytest.raises(ConcurrentUpdateError) as exc_info:
                await ledger.send(test_db, user.id, "BTC", "0.5")

        assert cas.call_count == 3
        assert exc_info.value.attempts == 3
        assert balances_of(test_db, user.id)["BTC"] == "1"
        assert transaction_count(test_db) == 0

    @pytest.mark.asyncio
    async def test_retry_succeeds_after_one_conflict(self, test_db, ledger):
        user = create_sample_user(test_db, {"BTC": "1"})
        real_cas = queries.compare_and_set_balance
        outcomes = iter([False])

        def flaky(db, asset_id, expected, new_balance):
            if next(outcomes, True) is False:
                return False
            return real_cas(db, asset_id, expected, new_balance)

        with patch.object(queries, "compare_and_set_balance", side_effect=flaky):
            await ledger.send(test_db, user.id, "BTC", "0.5")

        assert balances_of(test_db, user.id)["BTC"] == "0.5"

    def test_stale_expected_value_does_not_write(self, test_db):
        user = create_sample_user(test_db, {"BTC": "1"})
        asset = queries.get_user_asset(test_db, user.id, "BTC")

        assert queries.compare_and_set_balance(test_db, asset.id, "1", "2")
        assert not queries.compare_and_set_balance(test_db, asset.id, "1", "3")
        test_db.commit()

        assert balances_of(test_db, user.id)["BTC"] == "2"
