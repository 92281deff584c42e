"""
Tests for QuoteService: line items, the persisted total cascade, tax-mode
switching, payment schedules, and sending.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.line_item import LineItemInput
from billing_engines.quote_totals import DiscountType
from billing_kernel.exceptions import (
    InvalidFieldCombinationError,
    InvalidStateTransitionError,
    LineItemNotFoundError,
    NegativeAmountError,
    PaymentScheduleInvalidError,
    PercentageOutOfRangeError,
    QuoteNotFoundError,
)
from billing_modules.quote.models import QuoteStatus


@pytest.fixture
def quote(quote_service):
    """A draft quote at 8.5% tax."""
    return quote_service.create_quote(
        "Bathroom remodel",
        customer_name="Dana Builder",
        tax_rate=Decimal("8.5"),
    )


@pytest.fixture
def priced_quote(quote_service, quote):
    """Draft quote with one 180.00 line (2 x 100 less 10%)."""
    return quote_service.add_line_item(
        quote.id,
        "Tile",
        quantity=Decimal("2"),
        unit_price=Decimal("100"),
        discount_percentage=Decimal("10"),
    )


# ============================================================================
# Creation
# ============================================================================


class TestCreateQuote:
    def test_defaults(self, quote_service, config):
        quote = quote_service.create_quote("Deck")

        assert quote.status is QuoteStatus.DRAFT
        assert quote.quote_number.startswith(f"{config.quote_number_prefix}-")
        assert quote.tax_rate == config.default_tax_rate
        assert quote.down_payment_percentage == Decimal("40")
        assert quote.milestone_payment_percentage == Decimal("40")
        assert quote.final_payment_percentage == Decimal("20")
        assert quote.total == Decimal("0.00")
        assert quote.line_items == ()

    def test_numbers_increase(self, quote_service):
        first = quote_service.create_quote("One")
        second = quote_service.create_quote("Two")

        assert int(second.quote_number.split("-")[-1]) == int(first.quote_number.split("-")[-1]) + 1

    def test_unknown_quote(self, quote_service):
        with pytest.raises(QuoteNotFoundError):
            quote_service.get_quote(uuid4())


# ============================================================================
# Line items
# ============================================================================


class TestLineItems:
    def test_add_line_item_recomputes(self, priced_quote):
        assert len(priced_quote.line_items) == 1
        line = priced_quote.line_items[0]
        assert line.total_price == Decimal("180.00")
        assert line.sort_order == 0
        assert priced_quote.subtotal == Decimal("180.00")
        assert priced_quote.tax_amount == Decimal("15.30")
        assert priced_quote.total == Decimal("195.30")

    def test_update_line_item(self, quote_service, priced_quote):
        line = priced_quote.line_items[0]

        quote = quote_service.update_line_item(
            priced_quote.id, line.id, quantity=Decimal("3"), description="Floor tile"
        )

        updated = quote.line_items[0]
        assert updated.description == "Floor tile"
        assert updated.discount_percentage == Decimal("10")
        assert updated.total_price == Decimal("270.00")
        assert quote.subtotal == Decimal("270.00")

    def test_remove_line_item_renumbers(self, quote_service, priced_quote):
        quote = quote_service.add_line_item(
            priced_quote.id, "Grout", quantity=Decimal("1"), unit_price=Decimal("20")
        )
        quote = quote_service.add_line_item(
            quote.id, "Sealer", quantity=Decimal("1"), unit_price=Decimal("5")
        )

        quote = quote_service.remove_line_item(quote.id, quote.line_items[0].id)

        assert [i.description for i in quote.line_items] == ["Grout", "Sealer"]
        assert [i.sort_order for i in quote.line_items] == [0, 1]
        assert quote.subtotal == Decimal("25.00")

    def test_unknown_line_item(self, quote_service, priced_quote):
        with pytest.raises(LineItemNotFoundError):
            quote_service.update_line_item(priced_quote.id, uuid4(), quantity=Decimal("1"))

    def test_invalid_line_rejected_and_quote_unchanged(self, quote_service, priced_quote):
        with pytest.raises(PercentageOutOfRangeError):
            quote_service.add_line_item(
                priced_quote.id, "Bad", quantity=Decimal("1"),
                unit_price=Decimal("1"), discount_percentage=Decimal("150"),
            )
        with pytest.raises(NegativeAmountError):
            quote_service.update_line_item(
                priced_quote.id, priced_quote.line_items[0].id, unit_price=Decimal("-1")
            )

        assert quote_service.get_quote(priced_quote.id).total == priced_quote.total


# ============================================================================
# Financials
# ============================================================================


class TestUpdateFinancials:
    def test_fixed_discount_cascade(self, quote_service, priced_quote):
        quote = quote_service.update_financials(
            priced_quote.id, discount_amount=Decimal("20")
        )

        assert quote.discount_type is DiscountType.FIXED
        assert quote.discount_amount == Decimal("20.00")
        assert quote.after_discount == Decimal("160.00")
        assert quote.tax_amount == Decimal("13.60")
        assert quote.total == Decimal("173.60")

    def test_percentage_wins_over_amount(self, quote_service, priced_quote):
        quote = quote_service.update_financials(
            priced_quote.id,
            discount_percentage=Decimal("10"),
            discount_amount=Decimal("50"),
        )

        assert quote.discount_type is DiscountType.PERCENTAGE
        assert quote.discount_amount == Decimal("18.00")

    def test_zero_percentage_clears_discount(self, quote_service, priced_quote):
        quote_service.update_financials(priced_quote.id, discount_amount=Decimal("20"))

        quote = quote_service.update_financials(
            priced_quote.id, discount_percentage=Decimal("0")
        )

        assert quote.discount_type is DiscountType.PERCENTAGE
        assert quote.discount_amount == Decimal("0.00")
        assert quote.total == Decimal("195.30")

    def test_tax_rate_change(self, quote_service, priced_quote):
        quote = quote_service.update_financials(priced_quote.id, tax_rate=Decimal("0"))

        assert quote.tax_amount == Decimal("0.00")
        assert quote.total == Decimal("180.00")

    def test_tax_amount_in_rate_mode_rejected(self, quote_service, priced_quote):
        with pytest.raises(InvalidFieldCombinationError) as exc_info:
            quote_service.update_financials(priced_quote.id, tax_amount=Decimal("5"))

        assert exc_info.value.fields == ["taxAmount", "isManualTax"]

    def test_manual_tax_through_financials(self, quote_service, priced_quote):
        quote = quote_service.update_financials(
            priced_quote.id, is_manual_tax=True, tax_amount=Decimal("7.77")
        )

        assert quote.is_manual_tax
        assert quote.total == Decimal("187.77")

    def test_percentage_over_100_rejected(self, quote_service, priced_quote):
        with pytest.raises(PercentageOutOfRangeError):
            quote_service.update_financials(priced_quote.id, discount_percentage=Decimal("101"))


class TestTaxMode:
    """Switching between computed and entered tax is explicit."""

    def test_manual_amount_survives_line_edits(self, quote_service, priced_quote):
        quote_service.set_tax_mode(priced_quote.id, True, Decimal("5"))

        quote = quote_service.add_line_item(
            priced_quote.id, "Grout", quantity=Decimal("1"), unit_price=Decimal("20")
        )

        assert quote.tax_amount == Decimal("5.00")
        assert quote.total == Decimal("205.00")

    def test_switch_to_manual_freezes_current_tax(self, quote_service, priced_quote):
        quote = quote_service.set_tax_mode(priced_quote.id, True)

        assert quote.is_manual_tax
        assert quote.tax_amount == Decimal("15.30")

        quote = quote_service.update_financials(priced_quote.id, tax_rate=Decimal("20"))
        assert quote.tax_amount == Decimal("15.30")

    def test_switch_back_to_rate_recomputes(self, quote_service, priced_quote):
        quote_service.set_tax_mode(priced_quote.id, True, Decimal("1"))

        quote = quote_service.set_tax_mode(priced_quote.id, False)

        assert not quote.is_manual_tax
        assert quote.tax_amount == Decimal("15.30")

    def test_amount_with_rate_mode_rejected(self, quote_service, priced_quote):
        with pytest.raises(InvalidFieldCombinationError):
            quote_service.set_tax_mode(priced_quote.id, False, Decimal("3"))


class TestPreviewTotals:
    def test_preview_matches_persisted_quote(self, quote_service, priced_quote):
        persisted = quote_service.update_financials(
            priced_quote.id, discount_amount=Decimal("20")
        )

        preview = quote_service.preview_totals(
            [LineItemInput(Decimal("2"), Decimal("100"), Decimal("10"))],
            discount_type=DiscountType.FIXED,
            discount_value=Decimal("20"),
            tax_rate=Decimal("8.5"),
        )

        assert preview.line_items[0].total == Decimal("180.00")
        assert preview.totals.total == persisted.total
        assert preview.totals.tax_amount == persisted.tax_amount

    def test_preview_validates(self, quote_service):
        with pytest.raises(PercentageOutOfRangeError):
            quote_service.preview_totals([], tax_rate=Decimal("200"))


# ============================================================================
# Payment schedule and sending
# ============================================================================


class TestPaymentSchedule:
    def test_view_includes_amounts_when_valid(self, quote_service, priced_quote):
        view = quote_service.get_payment_schedule(priced_quote.id)

        assert view.validation.is_valid
        assert view.amounts.down_payment == Decimal("78.12")
        assert (
            view.amounts.down_payment + view.amounts.milestone_payment + view.amounts.final_payment
            == Decimal("195.30")
        )

    def test_invalid_sum_is_saved_and_reported(self, quote_service, priced_quote, captured_logs):
        view = quote_service.update_payment_schedule(
            priced_quote.id,
            down_payment_percentage=Decimal("33"),
            milestone_payment_percentage=Decimal("33"),
            final_payment_percentage=Decimal("33"),
        )

        assert not view.validation.is_valid
        assert view.validation.total == Decimal("99")
        assert view.amounts is None
        assert quote_service.get_quote(priced_quote.id).final_payment_percentage == Decimal("33")
        assert any(r["message"] == "quote_schedule_saved_invalid" for r in captured_logs())

    def test_out_of_range_rejected_on_save(self, quote_service, priced_quote):
        with pytest.raises(PercentageOutOfRangeError):
            quote_service.update_payment_schedule(
                priced_quote.id,
                down_payment_percentage=Decimal("120"),
                milestone_payment_percentage=Decimal("0"),
                final_payment_percentage=Decimal("-20"),
            )


class TestSendQuote:
    def test_send(self, quote_service, priced_quote, clock):
        sent = quote_service.send_quote(priced_quote.id)

        assert sent.status is QuoteStatus.SENT
        assert sent.sent_at == clock.now()
        assert sent.total == Decimal("195.30")

    def test_invalid_schedule_blocks_send(self, quote_service, priced_quote):
        quote_service.update_payment_schedule(
            priced_quote.id,
            down_payment_percentage=Decimal("50"),
            milestone_payment_percentage=Decimal("31"),
            final_payment_percentage=Decimal("20"),
        )

        with pytest.raises(PaymentScheduleInvalidError) as exc_info:
            quote_service.send_quote(priced_quote.id)

        assert exc_info.value.total == "101"
        assert quote_service.get_quote(priced_quote.id).status is QuoteStatus.DRAFT

    def test_sent_quote_is_read_only(self, quote_service, priced_quote):
        quote_service.send_quote(priced_quote.id)

        with pytest.raises(InvalidStateTransitionError):
            quote_service.add_line_item(
                priced_quote.id, "Late", quantity=Decimal("1"), unit_price=Decimal("1")
            )
        with pytest.raises(InvalidStateTransitionError):
            quote_service.send_quote(priced_quote.id)
