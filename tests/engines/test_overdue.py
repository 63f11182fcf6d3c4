"""Tests for read-time OVERDUE presentation."""

from datetime import date

import pytest

from autoexport_engines.overdue import is_overdue, presented_payment_status
from autoexport_kernel.domain.statuses import PaymentStatus

AS_OF = date(2024, 3, 31)


class TestPresentedStatus:
    @pytest.mark.parametrize("stored", [PaymentStatus.PENDING, PaymentStatus.PARTIALLY_PAID])
    def test_open_and_past_due_is_overdue(self, stored):
        assert presented_payment_status(stored, date(2024, 3, 30), AS_OF) is PaymentStatus.OVERDUE

    def test_due_today_is_not_overdue(self):
        assert presented_payment_status("PENDING", AS_OF, AS_OF) is PaymentStatus.PENDING

    @pytest.mark.parametrize("stored", [PaymentStatus.PAID, PaymentStatus.CANCELLED])
    def test_closed_never_overdue(self, stored):
        assert presented_payment_status(stored, date(2023, 1, 1), AS_OF) is stored

    def test_no_due_date(self):
        assert not is_overdue(PaymentStatus.PENDING, None, AS_OF)

    def test_stored_string_is_accepted(self):
        assert is_overdue("PARTIALLY_PAID", date(2024, 1, 1), AS_OF)
