from datetime import date, datetime, timedelta

import pytest

from bigasan_pos.services import StatsService
from bigasan_pos.services.stats_service import day_bounds


@pytest.fixture
def stats(store):
    return StatsService(store)


def _sale(store, when, total, product_id='p1', name='Jasmine', qty=1):
    return store.add_transaction({
        'items': [{'productId': product_id, 'name': name, 'price': total / qty, 'qty': qty}],
        'paymentMethod': 'cash',
        'tendered': total,
    }, when)


def test_day_bounds_cover_whole_local_days():
    start, end = day_bounds('2025-03-01', date(2025, 3, 2))
    assert start == datetime(2025, 3, 1, 0, 0).astimezone()
    assert end == datetime(2025, 3, 2, 23, 59, 59, 999999).astimezone()


def test_day_bounds_rejects_garbage():
    with pytest.raises(ValueError):
        day_bounds('ayer', 'hoy')


def test_transactions_between_is_inclusive(store, stats, now):
    _sale(store, now.replace(hour=0, minute=0), 100)
    _sale(store, now.replace(hour=23, minute=59), 50)
    _sale(store, now - timedelta(days=1), 10)
    _sale(store, now + timedelta(days=1), 20)

    assert len(stats.transactions_between('2025-03-05', '2025-03-05')) == 2
    assert len(stats.transactions_between('2025-03-04', '2025-03-06')) == 4
    assert len(stats.today_transactions(now)) == 2


def test_sales_summary_for_days(store, stats, now):
    _sale(store, now, 100)
    _sale(store, now, 24)
    _sale(store, now - timedelta(days=2), 60)
    _sale(store, now - timedelta(days=9), 999)

    summary = stats.sales_summary_for_days(7, now)
    assert len(summary) == 7
    assert summary[0]['date'] == '2025-02-27'
    assert summary[-1] == {'label': 'Mar 5', 'date': '2025-03-05', 'total': 124.0, 'count': 2}
    assert summary[-3]['total'] == 60
    assert sum(day['count'] for day in summary) == 3


def test_top_products_ranked_by_revenue(store, stats, now):
    _sale(store, now, 62, 'p1', 'Jasmine')
    _sale(store, now, 124, 'p1', 'Jasmine', qty=2)
    _sale(store, now, 150, 'p2', 'Dinorado')
    _sale(store, now, 40, 'p3', 'Malagkit')

    top = stats.top_products(store.transactions, 2)
    assert [p['productId'] for p in top] == ['p1', 'p2']
    assert top[0]['qty'] == 3
    assert top[0]['revenue'] == 186


def test_credit_stats(store, stats, now):
    store.upsert_credit({'customerName': 'Rosy', 'totalAmount': 300,
                         'dueDate': '2025-03-06T12:00:00.000Z'}, now)
    store.upsert_credit({'customerName': 'She', 'totalAmount': 200, 'status': 'overdue',
                         'dueDate': '2025-02-01T00:00:00.000Z'}, now)
    paid = store.upsert_credit({'customerName': 'Jovy', 'totalAmount': 50,
                                'dueDate': '2025-03-10T00:00:00.000Z'}, now)
    store.add_credit_payment(paid['id'], 50, '', now)
    store.add_credit_payment(store.credits[0]['id'], 100, '', now)

    result = stats.credit_stats(now)
    assert result['totalOutstanding'] == 400
    assert result['overdueAmount'] == 200
    assert result['dueSoon'] == 1
    assert result['collectedThisMonth'] == 150


def test_dashboard(store, stats, now):
    store.upsert_product({'id': 'p1', 'name': 'Jasmine', 'stock': 8, 'lowStock': 0})
    store.upsert_product({'id': 'p2', 'name': 'Dinorado', 'stock': 0, 'lowStock': 5})
    store.upsert_product({'id': 'p3', 'name': 'Sinandomeng', 'stock': 50, 'lowStock': 5})
    _sale(store, now, 62)
    _sale(store, now - timedelta(days=3), 38)

    board = stats.dashboard(now)
    assert board['todaySales'] == 62
    assert board['todayCount'] == 1
    assert board['monthSales'] == 100
    assert board['monthCount'] == 2
    assert [p['id'] for p in board['lowStock']] == ['p1', 'p2']
    assert board['outOfStockCount'] == 1
    assert board['productCount'] == 3
    assert board['topProducts'][0]['revenue'] == 100
    assert board['totalOutstanding'] == 0
