import pytest

from bigasan_pos.exceptions import CheckoutError
from bigasan_pos.models import WALK_IN_CUSTOMER
from bigasan_pos.services import SalesService


@pytest.fixture
def sales(data):
    return SalesService(data)


@pytest.fixture
def rice(data):
    return data.save_product({'name': 'Jasmine', 'type': 'kilo', 'price': 62, 'unit': 'kg', 'stock': 20})


@pytest.fixture
def rosy(data):
    return data.save_customer({'name': 'Rosy', 'address': 'San Luis'})


def test_cash_sale_computes_change_and_deducts_stock(sales, data, rice, now):
    result = sales.checkout([{'productId': rice['id'], 'qty': 2.5}], 'cash', tendered=200, now=now)
    txn = result['transaction']
    assert txn['total'] == 155
    assert txn['tendered'] == 200
    assert txn['change'] == 45
    assert txn['receiptNo'] == '#20250305-001'
    assert txn['customerName'] == WALK_IN_CUSTOMER
    assert result['credit'] is None
    assert data.get_product(rice['id'])['stock'] == 17.5


def test_cart_lines_for_same_product_are_merged(sales, rice, now):
    txn = sales.checkout(
        [{'productId': rice['id'], 'qty': 1}, {'productId': rice['id'], 'qty': 2}],
        'gcash', now=now,
    )['transaction']
    assert len(txn['items']) == 1
    assert txn['items'][0]['qty'] == 3


def test_gcash_tendered_equals_total(sales, rice, now):
    txn = sales.checkout([{'productId': rice['id'], 'qty': 1}], 'gcash', discount=2, now=now)['transaction']
    assert txn['total'] == 60
    assert txn['tendered'] == 60
    assert txn['change'] == 0


def test_credit_sale_opens_credit(sales, data, rice, rosy, now):
    result = sales.checkout([{'productId': rice['id'], 'qty': 5}], 'credit', customer_id=rosy['id'], now=now)
    txn, credit = result['transaction'], result['credit']
    assert txn['tendered'] == 0 and txn['change'] == 0
    assert txn['customerName'] == 'Rosy'
    assert credit['transactionId'] == txn['id']
    assert credit['totalAmount'] == 310
    assert credit['balance'] == 310
    assert credit['status'] == 'active'
    assert data.get_credits_by_customer(rosy['id']) == [credit]


def test_credit_sale_requires_customer(sales, data, rice, now):
    with pytest.raises(CheckoutError):
        sales.checkout([{'productId': rice['id'], 'qty': 1}], 'credit', now=now)
    assert data.get_transactions() == []
    assert data.get_credits() == []


@pytest.mark.parametrize('cart, method, kwargs', [
    ([], 'cash', {'tendered': 100}),
    ([{'productId': 'missing', 'qty': 1}], 'cash', {'tendered': 100}),
    ([{'qty': 1}], 'gcash', {}),
    ([{'productId': None, 'qty': 0}], 'gcash', {}),
])
def test_invalid_carts_are_rejected(sales, data, cart, method, kwargs):
    with pytest.raises(CheckoutError):
        sales.checkout(cart, method, **kwargs)
    assert data.get_transactions() == []


def test_insufficient_cash_and_stock(sales, data, rice, now):
    with pytest.raises(CheckoutError):
        sales.checkout([{'productId': rice['id'], 'qty': 1}], 'cash', tendered=10, now=now)
    with pytest.raises(CheckoutError):
        sales.checkout([{'productId': rice['id'], 'qty': 21}], 'cash', tendered=5000, now=now)
    assert data.get_transactions() == []
    assert data.get_product(rice['id'])['stock'] == 20


def test_unknown_payment_method_or_customer(sales, rice, now):
    with pytest.raises(CheckoutError):
        sales.checkout([{'productId': rice['id'], 'qty': 1}], 'bitcoin', now=now)
    with pytest.raises(CheckoutError):
        sales.checkout([{'productId': rice['id'], 'qty': 1}], 'gcash', customer_id='ghost', now=now)


def test_receipt_numbers_increase(sales, rice, now):
    first = sales.checkout([{'productId': rice['id'], 'qty': 1}], 'gcash', now=now)['transaction']
    second = sales.checkout([{'productId': rice['id'], 'qty': 1}], 'gcash', now=now)['transaction']
    assert first['receiptNo'] == '#20250305-001'
    assert second['receiptNo'] == '#20250305-002'
