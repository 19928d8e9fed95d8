from types import SimpleNamespace

from app.services.stock_status import classify, count_low_stock, status_of


def test_classify_boundaries():
    assert classify(0, 5) == "out"
    assert classify(1, 5) == "low"
    assert classify(5, 5) == "low"
    assert classify(6, 5) == "ok"


def test_zero_threshold():
    assert classify(0, 0) == "out"
    assert classify(1, 0) == "ok"


def test_status_of_and_count():
    variants = [
        SimpleNamespace(stock_quantity=0, low_stock_threshold=5),
        SimpleNamespace(stock_quantity=3, low_stock_threshold=5),
        SimpleNamespace(stock_quantity=30, low_stock_threshold=5),
    ]

    assert [status_of(v) for v in variants] == ["out", "low", "ok"]
    assert count_low_stock(variants) == 2
