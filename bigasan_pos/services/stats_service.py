# ==============================================================================
# SERVICIO DE ESTADÍSTICAS - Dashboard y reportes
# ==============================================================================
# Todos los cálculos son de solo lectura sobre el store.
#
# REGLA DE FECHAS: los días son días de calendario LOCAL (la tienda trabaja
# en hora local) aunque los timestamps se guarden en UTC.
# ==============================================================================

from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from bigasan_pos.models import CreditStatus
from bigasan_pos.repositories.state_store import StateStore
from bigasan_pos.time_utils import ensure_aware, local_date, parse_iso, utc_now

DateLike = Union[date, datetime, str]

# Umbral cuando el producto no define lowStock
DEFAULT_LOW_STOCK = 10.0

DUE_SOON_DAYS = 3


def _as_date(value: DateLike) -> date:
    """Fecha de calendario local de un date/datetime/'YYYY-MM-DD'."""
    if isinstance(value, datetime):
        return local_date(value)
    if isinstance(value, date):
        return value
    text = str(value or '').strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        parsed = parse_iso(text)
        if parsed is None:
            raise ValueError(f'Fecha inválida: {value!r}')
        return local_date(parsed)


def day_bounds(start: DateLike, end: DateLike) -> Tuple[datetime, datetime]:
    """Desde las 00:00:00 del primer día hasta las 23:59:59.999999 del último (hora local)."""
    start_dt = datetime.combine(_as_date(start), time.min).astimezone()
    end_dt = datetime.combine(_as_date(end), time.max).astimezone()
    return start_dt, end_dt


def _amount(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class StatsService:
    """
    Servicio de estadísticas.

    Responsabilidades:
    - Ventas por rango de días
    - Resumen diario para gráficos
    - Productos más vendidos
    - Indicadores de créditos y del dashboard
    """

    def __init__(self, store: StateStore, clock: Callable[[], datetime] = None):
        self.store = store
        self._clock = clock or utc_now

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_aware(now or self._clock())

    # =========================================================================
    # VENTAS
    # =========================================================================

    def transactions_between(self, start: DateLike, end: DateLike) -> List[Dict[str, Any]]:
        """Ventas entre dos fechas, días completos inclusive."""
        start_dt, end_dt = day_bounds(start, end)
        result = []
        for t in self.store.transactions:
            created = parse_iso(t.get('createdAt'))
            if created is not None and start_dt <= created <= end_dt:
                result.append(t)
        return result

    def today_transactions(self, now: datetime = None) -> List[Dict[str, Any]]:
        now = self._now(now)
        return self.transactions_between(now, now)

    def sales_summary_for_days(self, n: int, now: datetime = None) -> List[Dict[str, Any]]:
        """
        Totales por día de los últimos n días (el más antiguo primero).

        Returns:
            [{'label': 'Mar 5', 'date': '2025-03-05', 'total': 1240.0, 'count': 7}, ...]
        """
        today = local_date(self._now(now))
        days: "OrderedDict[date, Dict[str, Any]]" = OrderedDict()
        for i in range(max(0, int(n)) - 1, -1, -1):
            d = today - timedelta(days=i)
            days[d] = {
                'label': f"{d.strftime('%b')} {d.day}",
                'date': d.isoformat(),
                'total': 0.0,
                'count': 0,
            }
        for t in self.store.transactions:
            created = parse_iso(t.get('createdAt'))
            if created is None:
                continue
            bucket = days.get(local_date(created))
            if bucket is not None:
                bucket['total'] = round(bucket['total'] + _amount(t.get('total')), 2)
                bucket['count'] += 1
        return list(days.values())

    def top_products(self, transactions: Iterable[Mapping[str, Any]], n: int = 5) -> List[Dict[str, Any]]:
        """Productos con más ingresos en las ventas dadas."""
        totals: Dict[Any, Dict[str, Any]] = {}
        for t in transactions:
            for item in (t.get('items') or []):
                pid = item.get('productId')
                entry = totals.setdefault(pid, {'productId': pid, 'name': item.get('name'), 'qty': 0.0, 'revenue': 0.0})
                entry['qty'] += _amount(item.get('qty'))
                entry['revenue'] = round(entry['revenue'] + _amount(item.get('subtotal')), 2)
        ranked = sorted(totals.values(), key=lambda e: e['revenue'], reverse=True)
        return ranked[:n]

    # =========================================================================
    # CRÉDITOS
    # =========================================================================

    def credit_stats(self, now: datetime = None) -> Dict[str, Any]:
        now = self._now(now)
        credits = self.store.credits
        outstanding = [c for c in credits if c.get('status') != CreditStatus.PAID.value]

        soon_limit = now + timedelta(days=DUE_SOON_DAYS)
        due_soon = 0
        for c in outstanding:
            due = parse_iso(c.get('dueDate'))
            if due is not None and now <= due <= soon_limit:
                due_soon += 1

        month_start, _ = day_bounds(local_date(now).replace(day=1), now)
        collected = 0.0
        for c in credits:
            for p in (c.get('payments') or []):
                paid_at = parse_iso(p.get('date'))
                if paid_at is not None and paid_at >= month_start:
                    collected += _amount(p.get('amount'))

        return {
            'totalOutstanding': round(sum(_amount(c.get('balance')) for c in outstanding), 2),
            'overdueAmount': round(sum(
                _amount(c.get('balance')) for c in outstanding
                if c.get('status') == CreditStatus.OVERDUE.value
            ), 2),
            'dueSoon': due_soon,
            'collectedThisMonth': round(collected, 2),
        }

    # =========================================================================
    # DASHBOARD
    # =========================================================================

    def low_stock_products(self) -> List[Dict[str, Any]]:
        """Productos en o bajo su umbral (incluye agotados)."""
        result = []
        for p in self.store.products:
            threshold = _amount(p.get('lowStock')) or DEFAULT_LOW_STOCK
            if _amount(p.get('stock')) <= threshold:
                result.append(p)
        return result

    def dashboard(self, now: datetime = None) -> Dict[str, Any]:
        now = self._now(now)
        today = self.today_transactions(now)
        month = self.transactions_between(local_date(now).replace(day=1), now)
        low = self.low_stock_products()
        return {
            'todaySales': round(sum(_amount(t.get('total')) for t in today), 2),
            'todayCount': len(today),
            'monthSales': round(sum(_amount(t.get('total')) for t in month), 2),
            'monthCount': len(month),
            'lowStock': low,
            'lowStockCount': len(low),
            'outOfStockCount': sum(1 for p in low if _amount(p.get('stock')) <= 0),
            'productCount': len(self.store.products),
            'topProducts': self.top_products(month),
            'totalOutstanding': self.credit_stats(now)['totalOutstanding'],
        }
