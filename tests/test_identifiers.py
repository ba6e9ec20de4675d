import pytest

from dealer_yard.domain.errors import InvalidIdentifier
from dealer_yard.domain.identifiers import (
    normalize_chassis,
    normalize_dealer_slug,
    prettify_dealer_name,
    require_chassis,
    require_dealer,
    slugify,
)


def test_slugify_collapses_non_alphanumeric_runs():
    assert slugify("ST James") == "st-james"
    assert slugify("  Geelong -- Caravans!! ") == "geelong-caravans"
    assert slugify(None) == ""


def test_normalize_dealer_slug_strips_legacy_suffix():
    assert normalize_dealer_slug("Frankston-ab12cd") == "frankston"
    assert normalize_dealer_slug("st-james") == "st-james"
    assert normalize_dealer_slug("traralgon") == "traralgon"


def test_prettify_dealer_name():
    assert prettify_dealer_name("st-james") == "St James"
    assert prettify_dealer_name("launceston") == "Launceston"


@pytest.mark.parametrize("name", ["ST James", "Geelong  Caravans", "frankston", "a-b c_d", ""])
def test_display_name_round_trips_to_slug(name):
    slug = slugify(name)
    assert slugify(prettify_dealer_name(slug)) == slug


@pytest.mark.parametrize("raw", [" 1tpq205 ", "SRP-19x", "", "abc def"])
def test_normalize_chassis_is_idempotent(raw):
    once = normalize_chassis(raw)
    assert normalize_chassis(once) == once


def test_require_chassis_rejects_blank():
    assert require_chassis(" 1tpq205") == "1TPQ205"
    with pytest.raises(InvalidIdentifier):
        require_chassis("   ")
    with pytest.raises(InvalidIdentifier):
        require_chassis(None)


def test_require_dealer_rejects_blank():
    assert require_dealer("St James") == "st-james"
    with pytest.raises(InvalidIdentifier):
        require_dealer("--")
