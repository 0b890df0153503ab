# ==============================================================================
# SERVICIO DE CRÉDITOS (FIADOS)
# ==============================================================================
# Centraliza la lógica del libro de créditos:
#   - abrir un crédito al vender fiado (vence a 14 días)
#   - registrar abonos (validados ANTES de tocar el store)
#   - pasar a 'overdue' los créditos vencidos
#   - consultas de saldo por cliente / venta
#
# INVARIANTES (los recalcula CreditRecord en cada cambio):
#   amountPaid = suma de abonos
#   balance    = max(0, totalAmount - amountPaid)
#   status     = paid <=> balance <= 0
# ==============================================================================

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from bigasan_pos.exceptions import ExceedsBalance, InvalidAmount, RecordNotFound
from bigasan_pos.models import CreditRecord, CreditStatus
from bigasan_pos.repositories.state_store import StateStore
from bigasan_pos.time_utils import utc_now

logger = logging.getLogger(__name__)


class CreditService:
    """
    Servicio del libro de créditos.

    Responsabilidades:
    - Validar y aplicar abonos
    - Mantener estados (active / overdue / paid)
    - Consultas de saldos pendientes
    """

    def __init__(self, store: StateStore, clock: Callable[[], datetime] = None):
        self.store = store
        self._clock = clock or utc_now

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_credits(self) -> List[Dict[str, Any]]:
        return self.store.credits

    def get_credit(self, credit_id: str) -> Optional[Dict[str, Any]]:
        return self.store.find('credits', credit_id)

    def get_by_customer(self, customer_id: str) -> List[Dict[str, Any]]:
        return [c for c in self.store.credits if c.get('customerId') == customer_id]

    def get_by_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        return next(
            (c for c in self.store.credits if c.get('transactionId') == transaction_id),
            None
        )

    def get_outstanding(self) -> List[Dict[str, Any]]:
        """Créditos con saldo pendiente (todo lo que no está pagado)."""
        return [c for c in self.store.credits if c.get('status') != CreditStatus.PAID.value]

    def get_total_outstanding(self) -> float:
        return round(sum(float(c.get('balance') or 0) for c in self.get_outstanding()), 2)

    def customer_balance(self, customer_id: str) -> float:
        """Saldo total pendiente de un cliente."""
        return round(sum(
            float(c.get('balance') or 0)
            for c in self.get_by_customer(customer_id)
            if c.get('status') != CreditStatus.PAID.value
        ), 2)

    # =========================================================================
    # OPERACIONES
    # =========================================================================

    def validate_payment(self, credit_id: str, amount: Any) -> Dict[str, Any]:
        """
        Valida un abono sin aplicarlo.

        Returns:
            {'ok': True, 'balance': ..., 'remaining_after': ...}
            o {'ok': False, 'error': '...'}
        """
        current = self.get_credit(credit_id)
        if current is None:
            return {'ok': False, 'error': str(RecordNotFound('credits', credit_id))}
        record = CreditRecord.from_dict(current)
        try:
            updated = record.with_payment(amount, '', self._clock(), 'preview')
        except (InvalidAmount, ExceedsBalance) as e:
            return {'ok': False, 'error': str(e), 'balance': record.balance}
        return {'ok': True, 'balance': record.balance, 'remaining_after': updated.balance}

    def add_payment(
        self,
        credit_id: str,
        amount: Any,
        note: str = '',
        now: datetime = None
    ) -> Dict[str, Any]:
        """
        Registra un abono.

        Raises:
            InvalidAmount: monto <= 0
            ExceedsBalance: monto mayor al saldo (+0.01) o crédito pagado
            RecordNotFound: crédito inexistente
        """
        updated = self.store.add_credit_payment(credit_id, amount, note, now or self._clock())
        logger.info(
            '[CREDIT] Abono a %s: saldo %.2f (%s)',
            updated.get('receiptNo') or credit_id, updated['balance'], updated['status']
        )
        return updated

    def open_for_transaction(self, transaction: Mapping[str, Any], now: datetime = None) -> Dict[str, Any]:
        """Crea el crédito de una venta fiada."""
        now = now or self._clock()
        record = CreditRecord.for_transaction(transaction, now)
        return self.store.upsert_credit(record.to_dict(), now)

    def save(self, credit: Mapping[str, Any], now: datetime = None) -> Dict[str, Any]:
        return self.store.upsert_credit(credit, now or self._clock())

    def refresh_statuses(self, now: datetime = None) -> bool:
        """
        Marca como vencidos los créditos activos pasada su fecha.

        Returns:
            True si algún crédito cambió
        """
        changed = self.store.refresh_credit_statuses(now or self._clock())
        if changed:
            logger.info('[CREDIT] Estados de créditos actualizados')
        return changed
