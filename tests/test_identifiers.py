import re
from datetime import datetime

from bigasan_pos.identifiers import generate_receipt_number, new_id, receipt_prefix


def test_new_id_is_unique_and_base36():
    ids = {new_id() for _ in range(500)}
    assert len(ids) == 500
    for value in ids:
        assert re.fullmatch(r'[0-9a-z]+', value)
        assert len(value) > 5


def test_first_receipt_of_the_day_is_001():
    now = datetime(2025, 3, 5, 9, 0)
    assert receipt_prefix(now) == '#20250305'
    assert generate_receipt_number([], now) == '#20250305-001'


def test_receipts_increase_within_a_day():
    now = datetime(2025, 3, 5, 9, 0)
    txns = []
    numbers = []
    for _ in range(12):
        number = generate_receipt_number(txns, now)
        numbers.append(number)
        txns.append({'receiptNo': number})
    assert numbers[0] == '#20250305-001'
    assert numbers[9] == '#20250305-010'
    assert numbers == sorted(numbers)
    assert len(set(numbers)) == 12


def test_new_day_resets_sequence():
    txns = [{'receiptNo': '#20250305-001'}, {'receiptNo': '#20250305-002'}]
    assert generate_receipt_number(txns, datetime(2025, 3, 6, 8, 0)) == '#20250306-001'


def test_ignores_transactions_without_receipt():
    txns = [{'receiptNo': None}, {}, {'receiptNo': '#20250305-001'}]
    assert generate_receipt_number(txns, datetime(2025, 3, 5, 18, 0)) == '#20250305-002'
