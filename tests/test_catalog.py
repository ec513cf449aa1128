from firm_market.catalog import FIRMS, get_catalog, get_firm, is_outcome


def test_catalog_order_and_size():
    assert len(get_catalog()) == 14
    assert get_catalog()[0] == "Jane Street"
    assert get_catalog() == tuple(f.name for f in FIRMS)


def test_get_firm():
    firm = get_firm("Hudson River Trading")
    assert firm.slug == "hrt"
    assert firm.logo == "/logos/hrt.png"
    assert get_firm("hrt") is None


def test_is_outcome():
    assert is_outcome("Citadel")
    assert not is_outcome("citadel")
    assert not is_outcome(None)
