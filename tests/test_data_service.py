import json

import pytest

from bigasan_pos.exceptions import InvalidFormat, RecordNotFound, ValidationError
from bigasan_pos.models import DEFAULT_SETTINGS
from bigasan_pos.repositories import COLLECTION_SLICES


def _remote_names(fake_db):
    return {doc_id for doc_id, _ in fake_db.writes}


def test_save_product_pushes_collection(data, fake_db):
    product = data.save_product({'name': 'Dinorado', 'price': '58', 'unit': 'kg', 'stock': 5})
    assert product['price'] == 58.0
    assert product['lowStock'] == 10.0
    assert fake_db.remote_value('bigasan_products') == data.get_products()


def test_save_product_requires_name(data, store):
    with pytest.raises(ValidationError):
        data.save_product({'name': '  ', 'price': 10, 'unit': 'kg'})
    assert store.products == []


def test_customer_and_supplier_require_name(data, store):
    with pytest.raises(ValidationError):
        data.save_customer({'phone': '0917'})
    with pytest.raises(ValidationError):
        data.save_supplier({'contact': 'x'})
    assert store.customers == [] and store.suppliers == []


def test_update_stock_never_negative(data):
    product = data.save_product({'name': 'Sinandomeng', 'price': 50, 'unit': 'kg', 'stock': 3})
    assert data.update_stock(product['id'], -10)['stock'] == 0
    assert data.update_stock(product['id'], 2.5)['stock'] == 2.5


def test_update_stock_unknown_product(data):
    with pytest.raises(RecordNotFound):
        data.update_stock('nope', 1)


def test_save_restock_adds_stock_and_pushes_both(data, fake_db, now):
    product = data.save_product({'name': 'Jasmine', 'price': 62, 'unit': 'kg', 'stock': 8})
    fake_db.writes.clear()

    restock = data.save_restock({'productId': product['id'], 'qty': 25, 'cost': 1200}, now)
    assert restock['id']
    assert data.get_product(product['id'])['stock'] == 33
    assert _remote_names(fake_db) == {'bigasan_restocks', 'bigasan_products'}


def test_save_restock_validation(data):
    with pytest.raises(ValidationError):
        data.save_restock({'productId': '', 'qty': 5})
    with pytest.raises(RecordNotFound):
        data.save_restock({'productId': 'missing', 'qty': 5})


def test_settings_partial_save(data, fake_db):
    saved = data.save_settings({'phone': '0917 000 0000'})
    assert saved['phone'] == '0917 000 0000'
    assert saved['storeName'] == DEFAULT_SETTINGS['storeName']
    assert fake_db.remote_value('bigasan_settings') == saved


def test_open_credit_and_payment_are_pushed(data, fake_db, now):
    txn = data.save_transaction({
        'items': [{'productId': 'p1', 'name': 'Jasmine', 'price': 62, 'qty': 5}],
        'paymentMethod': 'credit',
        'customerId': 'c1',
        'customerName': 'Rosy',
    }, now)
    credit = data.open_credit(txn, now)
    assert data.get_credit_by_transaction(txn['id'])['id'] == credit['id']

    data.add_credit_payment(credit['id'], 100, 'abono', now)
    remote = fake_db.remote_value('bigasan_credits')
    assert remote[0]['balance'] == 210
    assert data.get_total_outstanding() == 210
    assert data.get_credits_by_customer('c1')[0]['amountPaid'] == 100


def test_refresh_credit_statuses_pushes_only_on_change(data, fake_db, now):
    txn = data.save_transaction({'items': [], 'paymentMethod': 'credit', 'customerName': 'She'}, now)
    data.save_credit_record({'transactionId': txn['id'], 'customerName': 'She',
                             'totalAmount': 100, 'dueDate': '2025-01-01T00:00:00.000Z'}, now)
    fake_db.writes.clear()

    assert data.refresh_credit_statuses(now) is True
    assert data.get_credits()[0]['status'] == 'overdue'
    assert _remote_names(fake_db) == {'bigasan_credits'}

    fake_db.writes.clear()
    assert data.refresh_credit_statuses(now) is False
    assert fake_db.writes == []


# ==============================================================================
# RESPALDOS
# ==============================================================================

def test_export_import_round_trip(data, store, now):
    data.seed_if_empty()
    product = data.get_products()[0]
    data.save_restock({'productId': product['id'], 'qty': 2}, now)
    exported = data.export_snapshot(now)
    assert exported['_version'] == 2
    assert exported['_exportedAt'].endswith('Z')

    data.clear_all_data()
    assert store.products == []

    restored = data.import_snapshot(json.dumps(exported))
    assert set(restored) == set(COLLECTION_SLICES) | {'settings'}
    again = data.export_snapshot(now)
    assert again == exported


def test_export_is_a_copy(data):
    data.seed_if_empty()
    exported = data.export_snapshot()
    exported['products'][0]['name'] = 'Cambiado'
    assert data.get_products()[0]['name'] == 'Master Chef Jasmine'


@pytest.mark.parametrize('payload', [
    '{not json',
    '[]',
    json.dumps({'products': []}),
    json.dumps({'_version': '2', 'products': []}),
    json.dumps({'_version': True, 'products': []}),
    json.dumps({'_version': 99, 'products': []}),
    json.dumps({'_version': 2, 'products': {'id': 'x'}}),
    json.dumps({'_version': 2, 'customers': ['Rosy']}),
    json.dumps({'_version': 2, 'settings': 'Bigasan'}),
])
def test_import_rejects_invalid_backups(data, store, payload):
    data.seed_if_empty()
    before = store.snapshot()
    with pytest.raises(InvalidFormat):
        data.import_snapshot(payload)
    assert store.snapshot() == before


def test_import_keeps_missing_collections(data, store):
    data.seed_if_empty()
    customers = store.customers
    restored = data.import_snapshot({'_version': 1, 'products': [], 'settings': {'phone': '123'}})
    assert restored == ['products', 'settings']
    assert store.customers is customers
    assert store.products == []
    assert store.settings['phone'] == '123'
    assert store.settings['storeName'] == DEFAULT_SETTINGS['storeName']


# ==============================================================================
# MANTENIMIENTO
# ==============================================================================

def test_seed_if_empty_is_idempotent(data, store):
    assert data.seed_if_empty() is True
    counts = (len(store.products), len(store.customers), len(store.suppliers))
    assert counts == (1, 3, 2)
    assert data.seed_if_empty() is False
    assert (len(store.products), len(store.customers), len(store.suppliers)) == counts


def test_clear_all_data_resets_and_pushes(data, store, fake_db):
    data.seed_if_empty()
    data.save_settings({'storeName': 'Otra tienda'})
    fake_db.writes.clear()

    data.clear_all_data()
    for name in COLLECTION_SLICES:
        assert store.get(name) == []
        assert fake_db.remote_value(f'bigasan_{name}') == []
    assert store.settings == DEFAULT_SETTINGS


def test_offline_facade_keeps_working(offline_data, store, fake_db):
    offline_data.seed_if_empty()
    product = offline_data.get_products()[0]
    offline_data.update_stock(product['id'], -1)
    assert offline_data.get_product(product['id'])['stock'] == 7
    assert fake_db.writes == []


def test_report_pass_throughs(data, now):
    product = data.save_product({'name': 'Jasmine', 'price': 62, 'unit': 'kg', 'stock': 8})
    txn = data.save_transaction({
        'items': [{'productId': product['id'], 'name': 'Jasmine', 'price': 62, 'qty': 2}],
        'paymentMethod': 'gcash',
    }, now)
    assert data.get_transaction(txn['id']) == txn
    assert data.get_today_transactions(now) == [txn]
    assert data.get_transactions_by_date_range('2025-03-01', '2025-03-31') == [txn]
    assert data.get_sales_summary_for_days(1, now)[0]['total'] == 124
    assert data.get_top_products(data.get_transactions())[0]['revenue'] == 124
