# ==============================================================================
# SERVICIO DE VENTAS - Cobro del carrito
# ==============================================================================
# Flujo de checkout:
#   1. Validar carrito, stock, efectivo y cliente (ANTES de escribir nada)
#   2. Guardar la venta (id + número de boleta)
#   3. Si es fiado: crear el crédito a 14 días
#   4. Descontar stock de cada línea
#
# Métodos de pago:
#   cash   -> tendered = monto entregado, change = tendered - total
#   gcash  -> tendered = total, change = 0
#   credit -> tendered = 0,     change = 0 (requiere cliente registrado)
# ==============================================================================

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from bigasan_pos.exceptions import CheckoutError
from bigasan_pos.models import WALK_IN_CUSTOMER, LineItem, PaymentMethod, Transaction

from .data_service import DataService

logger = logging.getLogger(__name__)


def _number(value: Any, label: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise CheckoutError(f'{label} inválido')


class SalesService:
    """
    Servicio de ventas.

    Uso:
        result = sales.checkout(
            [{'productId': 'abc', 'qty': 2.5}],
            payment_method='cash', tendered=200
        )
        result['transaction']['receiptNo']  # '#20250305-001'
    """

    def __init__(self, data_service: DataService):
        self.data = data_service

    def _build_items(self, cart: Iterable[Mapping[str, Any]]) -> List[LineItem]:
        """Líneas con la foto actual de cada producto; valida cantidades y stock."""
        quantities: Dict[str, float] = {}
        for entry in cart or []:
            product_id = entry.get('productId')
            qty = _number(entry.get('qty'), 'Cantidad')
            if not product_id:
                raise CheckoutError('Producto no especificado')
            if qty <= 0:
                raise CheckoutError('La cantidad debe ser mayor a 0')
            quantities[product_id] = round(quantities.get(product_id, 0.0) + qty, 3)

        if not quantities:
            raise CheckoutError('El carrito está vacío')

        items = []
        for product_id, qty in quantities.items():
            product = self.data.get_product(product_id)
            if product is None:
                raise CheckoutError(f'Producto no encontrado: {product_id}')
            available = float(product.get('stock') or 0)
            if qty > available:
                raise CheckoutError(
                    f"Stock insuficiente para {product.get('name')} "
                    f"(disponible: {available:g} {product.get('unit') or ''})".strip()
                )
            items.append(LineItem.from_product(product, qty))
        return items

    def checkout(
        self,
        cart: Iterable[Mapping[str, Any]],
        payment_method: str,
        discount: Any = 0,
        tendered: Any = None,
        customer_id: Optional[str] = None,
        now: datetime = None
    ) -> Dict[str, Any]:
        """
        Cobra el carrito.

        Args:
            cart: [{'productId': ..., 'qty': ...}, ...]
            payment_method: 'cash', 'gcash' o 'credit'
            discount: Descuento en pesos
            tendered: Efectivo entregado (solo cash)
            customer_id: Cliente registrado (obligatorio para credit)
            now: Momento de la venta

        Returns:
            {'transaction': {...}, 'credit': {...} o None}

        Raises:
            CheckoutError: carrito vacío, stock insuficiente, efectivo
                           insuficiente o fiado sin cliente
        """
        try:
            method = PaymentMethod(str(payment_method or '').lower())
        except ValueError:
            raise CheckoutError(f'Método de pago inválido: {payment_method}')

        items = self._build_items(cart)
        discount = max(0.0, _number(discount or 0, 'Descuento'))
        draft = Transaction(items=items, discount=discount, payment_method=method.value)
        total = draft.total

        customer = self.data.get_customer(customer_id) if customer_id else None
        if customer_id and customer is None:
            raise CheckoutError('Cliente no encontrado')

        if method == PaymentMethod.CASH:
            cash = _number(tendered or 0, 'Efectivo')
            if cash < total:
                raise CheckoutError('El efectivo entregado es menor al total')
            draft.tendered = round(cash, 2)
            draft.change = round(cash - total, 2)
        elif method == PaymentMethod.CREDIT:
            if customer is None:
                raise CheckoutError('Las ventas al fiado requieren un cliente registrado')
            draft.tendered = 0.0
            draft.change = 0.0
        else:
            draft.tendered = total
            draft.change = 0.0

        draft.customer_id = customer_id if customer else None
        draft.customer_name = customer.get('name') if customer else WALK_IN_CUSTOMER

        transaction = self.data.save_transaction(draft.to_dict(), now)

        credit = None
        if method == PaymentMethod.CREDIT:
            credit = self.data.open_credit(transaction, now)

        for item in items:
            self.data.update_stock(item.product_id, -item.qty)

        logger.info(
            '[SALE] %s %s total=%.2f', transaction['receiptNo'], method.value, transaction['total']
        )
        return {'transaction': transaction, 'credit': credit}
