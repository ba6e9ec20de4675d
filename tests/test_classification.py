from datetime import datetime, timezone

from dealer_yard.domain.classification import UnitType, classify_customer, model_range
from dealer_yard.domain.models import ChassisUnit, UnitState


def test_stock_when_customer_ends_with_stock():
    assert classify_customer("ABC Pty Ltd Stock") is UnitType.STOCK
    assert classify_customer("frankston STOCK") is UnitType.STOCK


def test_customer_when_named():
    assert classify_customer("John Smith") is UnitType.CUSTOMER


def test_stock_when_blank():
    assert classify_customer("") is UnitType.STOCK
    assert classify_customer(None) is UnitType.STOCK
    assert classify_customer("   ") is UnitType.STOCK


def test_model_range_fallbacks():
    assert model_range("srp19", "1TPQ205") == "SRP"
    assert model_range("", "1tpq205") == "1TP"
    assert model_range(None, None) == "OTHER"


def test_unit_days_in_yard_never_negative():
    received = datetime(2025, 3, 1, tzinfo=timezone.utc)
    unit = ChassisUnit(chassis="X1", dealer_slug="geelong", state=UnitState.YARD_STOCK, received_at=received)
    assert unit.days_in_yard(datetime(2025, 3, 11, tzinfo=timezone.utc)) == 10
    assert unit.days_in_yard(datetime(2025, 2, 1, tzinfo=timezone.utc)) == 0
    assert ChassisUnit(chassis="X2", dealer_slug="geelong", state=UnitState.YARD_STOCK).days_in_yard(received) == 0


def test_stock_must_be_a_whole_word():
    assert classify_customer("Livestock") is UnitType.CUSTOMER
    assert classify_customer("Bairnsdale Livestock") is UnitType.CUSTOMER
    assert classify_customer("Dealer-Stock") is UnitType.STOCK
