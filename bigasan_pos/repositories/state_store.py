# ==============================================================================
# STORE REACTIVO - Fuente única de verdad en memoria
# ==============================================================================
# Mantiene todas las colecciones (slices) de la aplicación:
#   products, transactions, customers, suppliers, restocks, credits,
#   settings (registro único) y owner (credenciales locales).
#
# REGLAS:
# - Cada acción reemplaza el valor del slice (nueva lista, nuevos dicts);
#   nunca muta en sitio lo que ya vieron los suscriptores.
# - Los suscriptores se notifican de forma síncrona al terminar la acción,
#   en orden de registro, como máximo una vez por acción.
# - Todo se aplica bajo un RLock: los callbacks de Firestore llegan en otro
#   hilo y deben serializarse con las acciones locales.
# ==============================================================================

import threading
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from bigasan_pos.exceptions import RecordNotFound
from bigasan_pos.models import (
    CreditRecord,
    CreditStatus,
    Settings,
    Transaction,
    clamp_stock,
)
from bigasan_pos.identifiers import generate_receipt_number, new_id
from bigasan_pos.time_utils import to_iso, utc_now


# ==============================================================================
# NOMBRES DE SLICES
# ==============================================================================

COLLECTION_SLICES = ('products', 'transactions', 'customers', 'suppliers', 'restocks', 'credits')

# Slices que se reflejan en Firestore y en los respaldos
SYNCABLE_SLICES = COLLECTION_SLICES + ('settings',)

SLICES = SYNCABLE_SLICES + ('owner',)

# Claves de almacenamiento (mismos nombres que usan los clientes web)
STORAGE_KEYS: Dict[str, str] = {name: f'bigasan_{name}' for name in SLICES}
STORAGE_KEYS['session'] = 'bigasan_session'


Selector = Union[str, Callable[[Mapping[str, Any]], Any]]
Listener = Callable[[Any, Any], None]


@dataclass(eq=False)
class _Subscription:
    selector: Callable[[Mapping[str, Any]], Any]
    listener: Listener


class StateStore:
    """
    Store reactivo con API de mutación síncrona y notificación por slice.

    Uso:
        store = StateStore()
        unsubscribe = store.subscribe('products', lambda new, old: ...)
        store.upsert_product({'name': 'Jasmine', 'price': 62})
    """

    def __init__(
        self,
        owner: Optional[Mapping[str, Any]] = None,
        clock: Callable[[], datetime] = None,
        id_factory: Callable[[], str] = None
    ):
        """
        Args:
            owner: Credenciales locales del dueño (no se sincronizan)
            clock: Función que retorna 'ahora' (inyectable para tests)
            id_factory: Generador de IDs
        """
        self._lock = threading.RLock()
        self._clock = clock or utc_now
        self._new_id = id_factory or new_id
        self._subscriptions: List[_Subscription] = []
        self._state: Dict[str, Any] = {name: [] for name in COLLECTION_SLICES}
        self._state['settings'] = Settings().to_dict()
        self._state['owner'] = dict(owner) if owner else None

    # =========================================================================
    # LECTURA
    # =========================================================================

    @property
    def state(self) -> Mapping[str, Any]:
        """Vista de solo lectura del estado actual."""
        return MappingProxyType(self._state)

    def get(self, name: str) -> Any:
        self._check_slice(name)
        return self._state[name]

    def read(self, name: str, reader: Callable[[Any], Any]) -> Any:
        """Aplica `reader` al valor actual del slice sin que otra acción lo cambie en medio."""
        with self._lock:
            return reader(self.get(name))

    @property
    def products(self) -> List[Dict[str, Any]]:
        return self._state['products']

    @property
    def transactions(self) -> List[Dict[str, Any]]:
        return self._state['transactions']

    @property
    def customers(self) -> List[Dict[str, Any]]:
        return self._state['customers']

    @property
    def suppliers(self) -> List[Dict[str, Any]]:
        return self._state['suppliers']

    @property
    def restocks(self) -> List[Dict[str, Any]]:
        return self._state['restocks']

    @property
    def credits(self) -> List[Dict[str, Any]]:
        return self._state['credits']

    @property
    def settings(self) -> Dict[str, Any]:
        return self._state['settings']

    @property
    def owner(self) -> Optional[Dict[str, Any]]:
        return self._state['owner']

    def find(self, name: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Busca un registro por id dentro de una colección."""
        for record in self.get(name):
            if record.get('id') == record_id:
                return record
        return None

    def snapshot(self) -> Dict[str, Any]:
        """Valores actuales de todos los slices sincronizables."""
        with self._lock:
            return {name: self._state[name] for name in SYNCABLE_SLICES}

    # =========================================================================
    # SUSCRIPCIONES
    # =========================================================================

    def subscribe(self, selector: Selector, listener: Listener) -> Callable[[], None]:
        """
        Registra un listener que se invoca cuando cambia la referencia del
        valor seleccionado.

        Args:
            selector: Nombre de slice o función(state) -> valor
            listener: Función(nuevo_valor, valor_anterior)

        Returns:
            Función para cancelar la suscripción
        """
        if isinstance(selector, str):
            self._check_slice(selector)
            name = selector
            selector_fn = lambda state: state[name]
        else:
            selector_fn = selector

        subscription = _Subscription(selector_fn, listener)
        with self._lock:
            self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            with self._lock:
                if subscription in self._subscriptions:
                    self._subscriptions.remove(subscription)

        return unsubscribe

    def _commit(self, updates: Dict[str, Any]) -> None:
        """Aplica los nuevos valores y notifica a los suscriptores afectados."""
        with self._lock:
            previous = MappingProxyType(dict(self._state))
            self._state.update(updates)
            current = MappingProxyType(dict(self._state))
            for subscription in list(self._subscriptions):
                old_value = subscription.selector(previous)
                new_value = subscription.selector(current)
                if new_value is not old_value:
                    subscription.listener(new_value, old_value)

    # =========================================================================
    # SETTERS MASIVOS (hidratación desde Firestore / respaldos)
    # =========================================================================

    def set_slice(self, name: str, value: Any) -> None:
        """
        Reemplaza un slice completo. Los valores llegan ya normalizados:
        no se asignan IDs ni timestamps.
        """
        self.set_slices({name: value})

    def set_slices(self, values: Mapping[str, Any]) -> None:
        """Reemplaza varios slices en una sola acción."""
        updates = {}
        for name, value in values.items():
            self._check_slice(name)
            if name == 'settings':
                updates[name] = Settings.merged(value).to_dict()
            elif name == 'owner':
                updates[name] = dict(value) if value else None
            else:
                updates[name] = list(value or [])
        if updates:
            self._commit(updates)

    def set_slice_if_changed(
        self,
        name: str,
        value: Any,
        same: Callable[[Any, Any], bool]
    ) -> bool:
        """
        Reemplaza el slice solo si `same(actual, nuevo)` es falso.
        Comparación y escritura ocurren bajo el mismo lock.

        Returns:
            True si se reemplazó
        """
        with self._lock:
            if same(self.get(name), value):
                return False
            self.set_slices({name: value})
            return True

    def set_settings(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        """Guarda solo los campos provistos sobre la configuración actual."""
        with self._lock:
            merged = Settings.merged(self.settings, partial).to_dict()
            self._commit({'settings': merged})
            return merged

    def set_owner(self, owner: Optional[Mapping[str, Any]]) -> None:
        self.set_slices({'owner': owner})

    # =========================================================================
    # ACCIONES - PRODUCTOS
    # =========================================================================

    def upsert_product(self, product: Mapping[str, Any]) -> Dict[str, Any]:
        record = dict(product)
        record['stock'] = clamp_stock(record.get('stock'))
        return self._upsert('products', record)

    def delete_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self._delete('products', product_id)

    def adjust_stock(self, product_id: str, delta: float) -> Optional[Dict[str, Any]]:
        """Suma delta al stock (nunca baja de 0). None si el producto no existe."""
        with self._lock:
            products, updated = self._with_stock_delta(self.products, product_id, delta)
            if updated is None:
                return None
            self._commit({'products': products})
            return updated

    def _with_stock_delta(self, products, product_id, delta):
        result = []
        updated = None
        for p in products:
            if p.get('id') == product_id:
                p = {**p, 'stock': clamp_stock(clamp_stock(p.get('stock')) + float(delta))}
                updated = p
            result.append(p)
        return result, updated

    # =========================================================================
    # ACCIONES - VENTAS
    # =========================================================================

    def add_transaction(self, transaction: Mapping[str, Any], now: datetime = None) -> Dict[str, Any]:
        """
        Registra una venta: asigna id, número de boleta y fecha, y calcula
        subtotales y total.
        """
        with self._lock:
            now = now or self._clock()
            txn = Transaction.from_dict(transaction)
            txn.id = self._new_id()
            txn.receipt_no = generate_receipt_number(self.transactions, now)
            txn.created_at = to_iso(now)
            record = txn.to_dict()
            self._commit({'transactions': [*self.transactions, record]})
            return record

    # =========================================================================
    # ACCIONES - CLIENTES / PROVEEDORES
    # =========================================================================

    def upsert_customer(self, customer: Mapping[str, Any]) -> Dict[str, Any]:
        return self._upsert('customers', dict(customer))

    def delete_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        return self._delete('customers', customer_id)

    def upsert_supplier(self, supplier: Mapping[str, Any]) -> Dict[str, Any]:
        return self._upsert('suppliers', dict(supplier))

    def delete_supplier(self, supplier_id: str) -> Optional[Dict[str, Any]]:
        return self._delete('suppliers', supplier_id)

    # =========================================================================
    # ACCIONES - REABASTECIMIENTOS
    # =========================================================================

    def add_restock(self, restock: Mapping[str, Any], now: datetime = None) -> Dict[str, Any]:
        """Registra el ingreso y suma la cantidad al stock del producto."""
        with self._lock:
            now = now or self._clock()
            record = dict(restock)
            record['id'] = self._new_id()
            record['createdAt'] = to_iso(now)
            updates = {'restocks': [*self.restocks, record]}
            products, updated = self._with_stock_delta(
                self.products, record.get('productId'), record.get('qty') or 0
            )
            if updated is not None:
                updates['products'] = products
            self._commit(updates)
            return record

    # =========================================================================
    # ACCIONES - CRÉDITOS
    # =========================================================================

    def upsert_credit(self, credit: Mapping[str, Any], now: datetime = None) -> Dict[str, Any]:
        """
        Crea o reemplaza un crédito recalculando monto pagado, saldo y estado.
        Un crédito vencido no vuelve a 'active' por este camino.
        """
        with self._lock:
            now = now or self._clock()
            record = CreditRecord.from_dict(credit)
            if record.balance <= 0:
                record.status = CreditStatus.PAID.value
            elif record.status == CreditStatus.PAID.value:
                record.status = record.status_at(now)
            return self._upsert('credits', record.to_dict(), now)

    def add_credit_payment(
        self,
        credit_id: str,
        amount: Any,
        note: str = '',
        now: datetime = None
    ) -> Dict[str, Any]:
        """
        Aplica un abono. Valida antes de mutar (InvalidAmount, ExceedsBalance).

        Raises:
            RecordNotFound: si el crédito no existe
        """
        with self._lock:
            now = now or self._clock()
            current = self.find('credits', credit_id)
            if current is None:
                raise RecordNotFound('credits', credit_id)
            updated = CreditRecord.from_dict(current).with_payment(
                amount, note, now, self._new_id()
            ).to_dict()
            credits = [updated if c.get('id') == credit_id else c for c in self.credits]
            self._commit({'credits': credits})
            return updated

    def refresh_credit_statuses(self, now: datetime = None) -> bool:
        """
        Pasa a 'overdue' los créditos activos cuya fecha de vencimiento ya pasó.
        Nunca regresa un crédito vencido a 'active'.

        Returns:
            True si cambió algún crédito
        """
        with self._lock:
            now = now or self._clock()
            changed = False
            credits = []
            for c in self.credits:
                if CreditRecord.from_dict(c).overdue_at(now):
                    c = {**c, 'status': CreditStatus.OVERDUE.value}
                    changed = True
                credits.append(c)
            if changed:
                self._commit({'credits': credits})
            return changed

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _upsert(self, name: str, record: Dict[str, Any], now: datetime = None) -> Dict[str, Any]:
        with self._lock:
            items = list(self._state[name])
            record_id = record.get('id')
            index = next(
                (i for i, r in enumerate(items) if record_id and r.get('id') == record_id),
                None
            )
            if index is not None:
                # Conservar la fecha de creación si el formulario no la envía
                if not record.get('createdAt') and items[index].get('createdAt'):
                    record['createdAt'] = items[index]['createdAt']
                items[index] = record
            else:
                if not record_id:
                    record['id'] = self._new_id()
                if not record.get('createdAt'):
                    record['createdAt'] = to_iso(now or self._clock())
                items.append(record)
            self._commit({name: items})
            return record

    def _delete(self, name: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            removed = self.find(name, record_id)
            if removed is None:
                return None
            self._commit({name: [r for r in self._state[name] if r.get('id') != record_id]})
            return removed

    @staticmethod
    def _check_slice(name: str) -> None:
        if name not in SLICES:
            raise KeyError(f'Slice desconocido: {name}')
