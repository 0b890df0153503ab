# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único para obtener el store, los repositorios y los servicios.
# Facilita:
#   - Inyección de dependencias
#   - Testing (se inyecta un cliente de Firestore falso y una carpeta temporal)
#
# ARRANQUE (start):
#   1. Cargar la copia local (pos_data.json) en el store
#   2. Conectar a Firestore (sin conexión: se sigue offline)
#   3. Descargar todas las colecciones
#   4. Sembrar datos iniciales si no hay productos
#   5. Actualizar créditos vencidos
#   6. Escuchar cambios remotos en tiempo real
# ==============================================================================

import logging
from typing import Any, Callable, List, Optional

from bigasan_pos.config import AppConfig, load_config
from bigasan_pos.exceptions import SyncConnectionError

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Store en memoria + archivos JSON locales
# ═══════════════════════════════════════════════════════════════════════════════
from bigasan_pos.repositories import (
    SYNCABLE_SLICES,
    OwnerRepository,
    SnapshotRepository,
    StateStore,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from bigasan_pos.services import (
    AuthService,
    BackupService,
    CloudSyncService,
    CreditService,
    DataService,
    SalesService,
    StatsService,
)

logger = logging.getLogger(__name__)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    del store y de cada servicio.

    Uso:
        container = AppContainer(config=load_config())
        container.start()
        data = container.data_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, config: AppConfig = None, firestore_client: Any = None, sync_background: bool = True):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config: AppConfig = None, firestore_client: Any = None, sync_background: bool = True):
        """
        Args:
            config: Configuración (por defecto, desde el entorno)
            firestore_client: Cliente de Firestore ya creado (tests)
            sync_background: False para escribir a Firestore en línea
        """
        if self._initialized:
            return

        self.config = config or load_config()
        self._firestore_client = firestore_client
        self._sync_background = sync_background
        self._unsubscribers: List[Callable[[], None]] = []
        self._started = False

        self._store: Optional[StateStore] = None
        self._owner_repo: Optional[OwnerRepository] = None
        self._snapshot_repo: Optional[SnapshotRepository] = None

        self._sync_service: Optional[CloudSyncService] = None
        self._credit_service: Optional[CreditService] = None
        self._stats_service: Optional[StatsService] = None
        self._auth_service: Optional[AuthService] = None
        self._data_service: Optional[DataService] = None
        self._sales_service: Optional[SalesService] = None
        self._backup_service: Optional[BackupService] = None

        self._initialized = True

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def store(self) -> StateStore:
        """Store reactivo (singleton)."""
        if self._store is None:
            self._store = StateStore()
        return self._store

    @property
    def owner_repo(self) -> OwnerRepository:
        if self._owner_repo is None:
            self._owner_repo = OwnerRepository(self.config.data_dir)
        return self._owner_repo

    @property
    def snapshot_repo(self) -> SnapshotRepository:
        if self._snapshot_repo is None:
            self._snapshot_repo = SnapshotRepository(self.config.data_dir)
        return self._snapshot_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def sync_service(self) -> CloudSyncService:
        if self._sync_service is None:
            self._sync_service = CloudSyncService(
                self.store,
                collection=self.config.firebase_collection,
                background=self._sync_background,
            )
        return self._sync_service

    @property
    def credit_service(self) -> CreditService:
        if self._credit_service is None:
            self._credit_service = CreditService(self.store)
        return self._credit_service

    @property
    def stats_service(self) -> StatsService:
        if self._stats_service is None:
            self._stats_service = StatsService(self.store)
        return self._stats_service

    @property
    def auth_service(self) -> AuthService:
        if self._auth_service is None:
            self._auth_service = AuthService(self.owner_repo, self.store)
        return self._auth_service

    @property
    def data_service(self) -> DataService:
        """Fachada de datos (singleton)."""
        if self._data_service is None:
            self._data_service = DataService(
                self.store,
                sync=self.sync_service,
                auth_service=self.auth_service,
                credit_service=self.credit_service,
                stats_service=self.stats_service,
            )
        return self._data_service

    @property
    def sales_service(self) -> SalesService:
        if self._sales_service is None:
            self._sales_service = SalesService(self.data_service)
        return self._sales_service

    @property
    def backup_service(self) -> BackupService:
        if self._backup_service is None:
            self._backup_service = BackupService(
                self.data_service,
                self.config.data_dir,
                self.config.max_backups,
            )
        return self._backup_service

    # =========================================================================
    # CICLO DE VIDA
    # =========================================================================

    def _sync_wanted(self) -> bool:
        return self._firestore_client is not None or self.config.sync_enabled

    def start(self) -> None:
        """Arranque completo (ver encabezado). Se ejecuta una sola vez."""
        if self._started:
            return
        self._started = True

        # 1. Copia local -> store, y desde aquí cada cambio se guarda en disco
        cached = self.snapshot_repo.load_slices()
        if cached:
            self.store.set_slices(cached)
            logger.info('[STARTUP] Copia local cargada: %s', ', '.join(cached))
        for name in SYNCABLE_SLICES:
            self._unsubscribers.append(self.store.subscribe(
                name, lambda new, old, name=name: self.snapshot_repo.save_slice(name, new)
            ))

        self.auth_service.ensure_owner()

        # 2-3. Nube
        if self._sync_wanted():
            try:
                self.sync_service.connect(self.config.firebase_options(), client=self._firestore_client)
            except SyncConnectionError as e:
                logger.warning('[STARTUP] Trabajando sin conexión: %s', e)
            else:
                self.sync_service.pull_all()
        else:
            logger.info('[STARTUP] Sincronización desactivada')

        # 4-5. Datos
        self.data_service.seed_if_empty()
        self.data_service.refresh_credit_statuses()

        # 6. Tiempo real
        self.sync_service.listen_all()

        try:
            self.backup_service.run_daily_backup()
        except OSError as e:
            logger.error('[BACKUP] No se pudo ejecutar el respaldo diario: %s', e)

    def shutdown(self) -> None:
        """Cierra listeners y vacía la cola de escritura a Firestore."""
        if self._sync_service is not None:
            self._sync_service.disconnect()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._started = False

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    @classmethod
    def get_instance(cls, config: AppConfig = None, **kwargs) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            config: Configuración (solo se usa en primera llamada)
        """
        if cls._instance is None:
            return cls(config, **kwargs)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.shutdown()
            cls._instance = None


def get_container(config: AppConfig = None) -> AppContainer:
    """Obtiene el contenedor de dependencias global."""
    return AppContainer.get_instance(config)
