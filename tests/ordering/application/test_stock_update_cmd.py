"""Application tests for the UpdateStock command."""

import json

import pytest
from ordering.inventory.product import ApplyDelta, Product, SetAbsolute, SetSizeStocks
from ordering.inventory.stock import UpdateStock, build_stock_update
from protean import current_domain
from protean.exceptions import ValidationError


def _update(product_id, kind, **kwargs):
    current_domain.process(UpdateStock(product_id=product_id, kind=kind, **kwargs), asynchronous=False)
    return current_domain.repository_for(Product).get(product_id)


class TestBuildStockUpdate:
    def test_set_absolute(self):
        assert build_stock_update("set_absolute", stock=4) == SetAbsolute(stock=4)

    def test_apply_delta(self):
        assert build_stock_update("apply_delta", delta=-2) == ApplyDelta(delta=-2)

    def test_set_size_stocks(self):
        assert build_stock_update("set_size_stocks", sizes={"M": "3"}) == SetSizeStocks(sizes={"M": 3})

    def test_missing_argument(self):
        with pytest.raises(ValidationError) as exc:
            build_stock_update("apply_delta")
        assert "delta" in exc.value.messages

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            build_stock_update("restock_everything", stock=1)


class TestUpdateStockCommand:
    def test_set_absolute_persists(self, make_product):
        product = make_product(stock=0)
        updated = _update(product.id, "set_absolute", stock=8)
        assert updated.stock == 8
        assert updated.in_stock is True

    def test_delta_persists(self, make_product):
        product = make_product(stock=8)
        updated = _update(product.id, "apply_delta", delta=-8)
        assert updated.stock == 0
        assert updated.in_stock is False

    def test_size_stocks_persist(self, make_product):
        product = make_product(stock=0, sizes=[{"size": "S", "stock": 1}])
        updated = _update(product.id, "set_size_stocks", sizes=json.dumps({"S": 5, "L": 2}))
        assert updated.find_size("S").stock == 5
        assert updated.find_size("L").stock == 2
        assert updated.stock == 7

    def test_rejected_update_leaves_stock(self, make_product):
        product = make_product(stock=2)
        with pytest.raises(ValidationError):
            _update(product.id, "apply_delta", delta=-5)
        assert current_domain.repository_for(Product).get(product.id).stock == 2
