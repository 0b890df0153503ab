# ==============================================================================
# SERVICIO DE DATOS - Fachada única de acceso
# ==============================================================================
# Todas las vistas (rutas Flask, scripts) leen y escriben SOLO por aquí:
#   1. la acción se aplica en el store (fuente de verdad local)
#   2. si hay conexión, se sube la colección afectada a Firestore
#
# Los cambios que llegan desde la nube NO pasan por esta fachada (los aplica
# CloudSyncService directo en el store), así no se re-suben.
#
# Las credenciales del dueño se delegan a AuthService: solo locales.
# ==============================================================================

import copy
import json
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from bigasan_pos.exceptions import InvalidFormat, RecordNotFound
from bigasan_pos.models import (
    DEFAULT_SETTINGS,
    Customer,
    Product,
    Restock,
    Settings,
    Supplier,
)
from bigasan_pos.repositories.state_store import COLLECTION_SLICES, SYNCABLE_SLICES, StateStore
from bigasan_pos.time_utils import to_iso, utc_now

from .credit_service import CreditService
from .stats_service import StatsService

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]

# ==============================================================================
# DATOS INICIALES (primer arranque con inventario vacío)
# ==============================================================================

SEED_PRODUCTS = [
    {'name': 'Master Chef Jasmine', 'type': 'kilo', 'price': 62, 'unit': 'kg', 'stock': 8, 'lowStock': 0},
]

SEED_CUSTOMERS = [
    {'name': 'Rosy', 'phone': '', 'address': 'San luis Batangas'},
    {'name': 'She', 'phone': '', 'address': 'Sukol Batangas'},
    {'name': 'Jovy', 'phone': '', 'address': 'Sukol Batangas'},
]

SEED_SUPPLIERS = [
    {'name': 'Escalona Delen', 'contact': '', 'address': 'Balayong Bauan Batangas'},
    {'name': 'Ka Pedro', 'contact': '', 'address': 'lemery, batangas'},
]


class DataService:
    """
    Fachada de datos: store + sincronización.

    Uso:
        data = DataService(store, sync)
        product = data.save_product({'name': 'Dinorado', 'price': 58})
        data.update_stock(product['id'], -2.5)
    """

    BACKUP_VERSION = 2

    def __init__(
        self,
        store: StateStore,
        sync=None,
        auth_service=None,
        credit_service: CreditService = None,
        stats_service: StatsService = None,
        clock: Callable[[], datetime] = None
    ):
        """
        Args:
            store: Store reactivo
            sync: CloudSyncService (opcional; sin él todo es local)
            auth_service: AuthService para credenciales del dueño
            credit_service: Servicio de créditos
            stats_service: Servicio de reportes
            clock: Función que retorna 'ahora'
        """
        self.store = store
        self.sync = sync
        self.auth_service = auth_service
        self._clock = clock or utc_now
        self.credit_service = credit_service or CreditService(store, self._clock)
        self.stats_service = stats_service or StatsService(store, self._clock)

    def _sync_to_cloud(self, *names: str) -> None:
        """Sube las colecciones indicadas si hay conexión."""
        if self.sync is None or not self.sync.is_connected():
            return
        for name in names:
            self.sync.push_one(name)

    # =========================================================================
    # CONFIGURACIÓN
    # =========================================================================

    def get_settings(self) -> Dict[str, str]:
        return Settings.merged(self.store.settings).to_dict()

    def save_settings(self, partial: Mapping[str, Any]) -> Dict[str, str]:
        saved = self.store.set_settings(partial or {})
        self._sync_to_cloud('settings')
        return saved

    # =========================================================================
    # DUEÑO (solo local)
    # =========================================================================

    def get_owner(self) -> Optional[str]:
        return self.auth_service.get_owner()

    def save_owner(self, username: str, password: str, confirm: str = None) -> str:
        return self.auth_service.save_owner(username, password, confirm)

    def check_credentials(self, username: str, password: str) -> bool:
        return self.auth_service.check_credentials(username, password)

    # =========================================================================
    # PRODUCTOS
    # =========================================================================

    def get_products(self) -> List[Dict[str, Any]]:
        return self.store.products

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self.store.find('products', product_id)

    def save_product(self, product: Mapping[str, Any]) -> Dict[str, Any]:
        entity = Product.from_dict(product)
        entity.validate()
        saved = self.store.upsert_product({**product, **entity.to_dict()})
        self._sync_to_cloud('products')
        return saved

    def delete_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        removed = self.store.delete_product(product_id)
        self._sync_to_cloud('products')
        return removed

    def update_stock(self, product_id: str, delta: float) -> Dict[str, Any]:
        """
        Suma delta al stock (negativo para descontar, nunca baja de 0).

        Raises:
            RecordNotFound: producto inexistente
        """
        updated = self.store.adjust_stock(product_id, delta)
        if updated is None:
            raise RecordNotFound('products', product_id)
        self._sync_to_cloud('products')
        return updated

    # =========================================================================
    # VENTAS
    # =========================================================================

    def get_transactions(self) -> List[Dict[str, Any]]:
        return self.store.transactions

    def get_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        return self.store.find('transactions', transaction_id)

    def save_transaction(self, transaction: Mapping[str, Any], now: datetime = None) -> Dict[str, Any]:
        saved = self.store.add_transaction(transaction, now or self._clock())
        self._sync_to_cloud('transactions')
        return saved

    def get_transactions_by_date_range(self, start: DateLike, end: DateLike) -> List[Dict[str, Any]]:
        return self.stats_service.transactions_between(start, end)

    def get_today_transactions(self, now: datetime = None) -> List[Dict[str, Any]]:
        return self.stats_service.today_transactions(now)

    # =========================================================================
    # CLIENTES
    # =========================================================================

    def get_customers(self) -> List[Dict[str, Any]]:
        return self.store.customers

    def get_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        return self.store.find('customers', customer_id)

    def save_customer(self, customer: Mapping[str, Any]) -> Dict[str, Any]:
        entity = Customer.from_dict(customer)
        entity.validate()
        saved = self.store.upsert_customer({**customer, **entity.to_dict()})
        self._sync_to_cloud('customers')
        return saved

    def delete_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        removed = self.store.delete_customer(customer_id)
        self._sync_to_cloud('customers')
        return removed

    # =========================================================================
    # CRÉDITOS
    # =========================================================================

    def get_credits(self) -> List[Dict[str, Any]]:
        return self.credit_service.get_credits()

    def get_credit(self, credit_id: str) -> Optional[Dict[str, Any]]:
        return self.credit_service.get_credit(credit_id)

    def get_credits_by_customer(self, customer_id: str) -> List[Dict[str, Any]]:
        return self.credit_service.get_by_customer(customer_id)

    def get_credit_by_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        return self.credit_service.get_by_transaction(transaction_id)

    def save_credit_record(self, credit: Mapping[str, Any], now: datetime = None) -> Dict[str, Any]:
        saved = self.credit_service.save(credit, now)
        self._sync_to_cloud('credits')
        return saved

    def open_credit(self, transaction: Mapping[str, Any], now: datetime = None) -> Dict[str, Any]:
        """Crédito a 14 días para una venta fiada."""
        saved = self.credit_service.open_for_transaction(transaction, now)
        self._sync_to_cloud('credits')
        return saved

    def add_credit_payment(
        self,
        credit_id: str,
        amount: Any,
        note: str = '',
        now: datetime = None
    ) -> Dict[str, Any]:
        """
        Raises:
            InvalidAmount, ExceedsBalance, RecordNotFound (sin cambios en el store)
        """
        updated = self.credit_service.add_payment(credit_id, amount, note, now)
        self._sync_to_cloud('credits')
        return updated

    def get_outstanding_credits(self) -> List[Dict[str, Any]]:
        return self.credit_service.get_outstanding()

    def get_total_outstanding(self) -> float:
        return self.credit_service.get_total_outstanding()

    def refresh_credit_statuses(self, now: datetime = None) -> bool:
        changed = self.credit_service.refresh_statuses(now)
        if changed:
            self._sync_to_cloud('credits')
        return changed

    # =========================================================================
    # PROVEEDORES Y REABASTECIMIENTOS
    # =========================================================================

    def get_suppliers(self) -> List[Dict[str, Any]]:
        return self.store.suppliers

    def save_supplier(self, supplier: Mapping[str, Any]) -> Dict[str, Any]:
        entity = Supplier.from_dict(supplier)
        entity.validate()
        saved = self.store.upsert_supplier({**supplier, **entity.to_dict()})
        self._sync_to_cloud('suppliers')
        return saved

    def delete_supplier(self, supplier_id: str) -> Optional[Dict[str, Any]]:
        removed = self.store.delete_supplier(supplier_id)
        self._sync_to_cloud('suppliers')
        return removed

    def get_restocks(self) -> List[Dict[str, Any]]:
        return self.store.restocks

    def save_restock(self, restock: Mapping[str, Any], now: datetime = None) -> Dict[str, Any]:
        """Registra el ingreso y suma la cantidad al stock del producto."""
        entity = Restock.from_dict(restock)
        entity.validate()
        if self.get_product(entity.product_id) is None:
            raise RecordNotFound('products', entity.product_id)
        saved = self.store.add_restock({**restock, **entity.to_dict()}, now or self._clock())
        self._sync_to_cloud('restocks', 'products')
        return saved

    # =========================================================================
    # REPORTES
    # =========================================================================

    def get_sales_summary_for_days(self, n: int, now: datetime = None) -> List[Dict[str, Any]]:
        return self.stats_service.sales_summary_for_days(n, now)

    def get_top_products(self, transactions: List[Mapping[str, Any]], n: int = 5) -> List[Dict[str, Any]]:
        return self.stats_service.top_products(transactions, n)

    # =========================================================================
    # RESPALDOS
    # =========================================================================

    def export_snapshot(self, now: datetime = None) -> Dict[str, Any]:
        """Documento de respaldo con todas las colecciones y la configuración."""
        snapshot = {
            '_version': self.BACKUP_VERSION,
            '_exportedAt': to_iso(now or self._clock()),
        }
        for name in SYNCABLE_SLICES:
            snapshot[name] = copy.deepcopy(self.store.get(name))
        return snapshot

    def import_snapshot(self, data: Union[str, bytes, Mapping[str, Any]]) -> List[str]:
        """
        Restaura un respaldo: reemplaza cada colección presente y la sube.
        Todo se valida antes de modificar el store.

        Raises:
            InvalidFormat: JSON ilegible, sin versión o con tipos incorrectos

        Returns:
            Nombres de los slices restaurados
        """
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except ValueError as e:
                raise InvalidFormat(f'Respaldo ilegible: {e}') from e
        if not isinstance(data, Mapping):
            raise InvalidFormat('El respaldo debe ser un objeto JSON')

        version = data.get('_version')
        if isinstance(version, bool) or not isinstance(version, int) or not 1 <= version <= self.BACKUP_VERSION:
            raise InvalidFormat('Archivo de respaldo inválido (sin versión reconocida)')

        updates: Dict[str, Any] = {}
        for name in COLLECTION_SLICES:
            value = data.get(name)
            if value is None:
                continue
            if not isinstance(value, list) or not all(isinstance(r, Mapping) for r in value):
                raise InvalidFormat(f'"{name}" debe ser una lista de registros')
            updates[name] = [dict(r) for r in value]

        settings = data.get('settings')
        if settings is not None:
            if not isinstance(settings, Mapping):
                raise InvalidFormat('"settings" debe ser un objeto')
            updates['settings'] = Settings.merged(self.store.settings, settings).to_dict()

        self.store.set_slices(updates)
        self._sync_to_cloud(*updates.keys())
        logger.info('[BACKUP] Respaldo restaurado: %s', ', '.join(updates) or '(vacío)')
        return list(updates)

    # =========================================================================
    # MANTENIMIENTO
    # =========================================================================

    def seed_if_empty(self) -> bool:
        """
        Carga los datos de ejemplo si no hay productos.

        Returns:
            True si se sembraron datos
        """
        if not self.store.settings.get('storeName'):
            self.save_settings(DEFAULT_SETTINGS)
        if self.store.products:
            return False

        for product in SEED_PRODUCTS:
            self.save_product(product)
        for customer in SEED_CUSTOMERS:
            self.save_customer(customer)
        for supplier in SEED_SUPPLIERS:
            self.save_supplier(supplier)
        logger.info('[SEED] Datos iniciales cargados')
        return True

    def clear_all_data(self) -> None:
        """Borra todas las colecciones y restablece la configuración."""
        updates: Dict[str, Any] = {name: [] for name in COLLECTION_SLICES}
        updates['settings'] = dict(DEFAULT_SETTINGS)
        self.store.set_slices(updates)
        if self.sync is not None:
            self.sync.push_all()
        logger.warning('[DATA] Todos los datos fueron borrados')
