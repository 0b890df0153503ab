from datetime import datetime

import pytest

from bigasan_pos.models import DEFAULT_SETTINGS
from bigasan_pos.repositories import StateStore


def test_upsert_product_assigns_identity(store):
    saved = store.upsert_product({'name': 'Dinorado', 'price': 58, 'unit': 'kg', 'stock': 20})
    assert saved['id']
    assert saved['createdAt'].endswith('Z')
    assert store.find('products', saved['id']) == saved


def test_update_keeps_created_at(store):
    saved = store.upsert_product({'name': 'Dinorado', 'price': 58, 'stock': 20})
    updated = store.upsert_product({'id': saved['id'], 'name': 'Dinorado Premium', 'price': 60, 'stock': 20})
    assert updated['createdAt'] == saved['createdAt']
    assert len(store.products) == 1
    assert store.products[0]['name'] == 'Dinorado Premium'


def test_adjust_stock_never_negative(store):
    p = store.upsert_product({'name': 'Jasmine', 'price': 62, 'stock': 3})
    assert store.adjust_stock(p['id'], -5)['stock'] == 0
    assert store.adjust_stock(p['id'], 2.5)['stock'] == 2.5
    assert store.adjust_stock('missing', 1) is None


def test_subscribers_fire_once_in_order(store):
    calls = []
    store.subscribe('products', lambda new, old: calls.append(('first', len(new))))
    store.subscribe('products', lambda new, old: calls.append(('second', len(new))))
    store.subscribe('customers', lambda new, old: calls.append(('customers', len(new))))

    store.upsert_product({'name': 'Jasmine', 'price': 62})
    assert calls == [('first', 1), ('second', 1)]


def test_unsubscribe_stops_notifications(store):
    calls = []
    unsubscribe = store.subscribe('products', lambda new, old: calls.append(new))
    store.upsert_product({'name': 'A', 'price': 1})
    unsubscribe()
    store.upsert_product({'name': 'B', 'price': 1})
    assert len(calls) == 1


def test_actions_do_not_mutate_previous_values(store):
    store.upsert_product({'name': 'A', 'price': 1, 'stock': 5})
    before = store.products
    store.upsert_product({'name': 'B', 'price': 1})
    assert len(before) == 1
    assert len(store.products) == 2


def test_set_slice_does_not_fabricate_identity(store):
    store.set_slice('customers', [{'name': 'Rosy'}])
    assert store.customers == [{'name': 'Rosy'}]


def test_add_transaction_assigns_receipt_and_totals(store):
    now = datetime(2025, 3, 5, 10, 0)
    txn = store.add_transaction({
        'items': [{'productId': 'p1', 'name': 'Jasmine', 'price': 62, 'qty': 2, 'unit': 'kg', 'type': 'kilo'}],
        'discount': 4,
        'paymentMethod': 'cash',
    }, now)
    assert txn['receiptNo'] == '#20250305-001'
    assert txn['subtotal'] == 124
    assert txn['total'] == 120
    assert txn['items'][0]['subtotal'] == 124
    second = store.add_transaction({'items': []}, now)
    assert second['receiptNo'] == '#20250305-002'


def test_add_restock_updates_both_slices_in_one_action(store):
    p = store.upsert_product({'name': 'Jasmine', 'price': 62, 'stock': 2})
    calls = []
    store.subscribe('products', lambda new, old: calls.append('products'))
    store.subscribe('restocks', lambda new, old: calls.append('restocks'))

    store.add_restock({'productId': p['id'], 'qty': 25, 'cost': 1200})
    assert calls == ['products', 'restocks']
    assert store.find('products', p['id'])['stock'] == 27
    assert len(store.restocks) == 1


def test_settings_merge_keeps_unspecified_fields(store):
    store.set_settings({'storeName': 'Bigasan ni Ana'})
    store.set_settings({'phone': '0917'})
    settings = store.settings
    assert settings['storeName'] == 'Bigasan ni Ana'
    assert settings['phone'] == '0917'
    assert settings['receiptNote'] == DEFAULT_SETTINGS['receiptNote']


def test_snapshot_excludes_owner():
    store = StateStore(owner={'username': 'owner'})
    snapshot = store.snapshot()
    assert 'owner' not in snapshot
    assert 'products' in snapshot and 'settings' in snapshot


def test_unknown_slice_raises(store):
    with pytest.raises(KeyError):
        store.set_slice('orders', [])


def test_delete_returns_removed_record(store):
    c = store.upsert_customer({'name': 'Rosy'})
    assert store.delete_customer(c['id'])['name'] == 'Rosy'
    assert store.delete_customer(c['id']) is None
    assert store.customers == []


def test_selector_function_over_state(store):
    low_stock = []
    store.subscribe(
        lambda state: [p for p in state['products'] if p['stock'] <= 1],
        lambda new, old: low_stock.append(len(new)),
    )
    store.upsert_product({'name': 'Jasmine', 'stock': 1})
    assert low_stock == [1]
    assert store.state['products'] is store.products
    with pytest.raises(TypeError):
        store.state['products'] = []
