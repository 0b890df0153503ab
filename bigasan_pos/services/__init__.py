# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# ESTRUCTURA:
# ├── sync_service.py    → Sincronización store <-> Firestore
# ├── credit_service.py  → Libro de créditos (abonos, vencimientos)
# ├── stats_service.py   → Dashboard y reportes
# ├── data_service.py    → Fachada única de acceso a datos
# ├── sales_service.py   → Checkout del carrito
# ├── auth_service.py    → Credenciales del dueño (solo locales)
# └── backup_service.py  → Respaldos diarios en JSON
#
# Las rutas solo orquestan request → service → response.
# ==============================================================================

from .sync_service import CloudSyncService, SyncStatus
from .credit_service import CreditService
from .stats_service import StatsService
from .data_service import DataService
from .sales_service import SalesService
from .auth_service import AuthService
from .backup_service import BackupService

__all__ = [
    'CloudSyncService',
    'SyncStatus',
    'CreditService',
    'StatsService',
    'DataService',
    'SalesService',
    'AuthService',
    'BackupService',
]
