# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# ESTRUCTURA:
# ├── state_store.py          → Store reactivo en memoria (fuente de verdad)
# ├── base.py                 → Clases base para archivos JSON
# ├── owner_repository.py     → Acceso a owner.json (solo local)
# └── snapshot_repository.py  → Acceso a pos_data.json (copia offline)
#
# La nube (Firestore) no es un repositorio: la maneja CloudSyncService,
# que refleja el store completo.
# ==============================================================================

from .state_store import (
    COLLECTION_SLICES,
    SLICES,
    STORAGE_KEYS,
    SYNCABLE_SLICES,
    StateStore,
)
from .base import DictRepository, JsonFileRepository
from .owner_repository import OwnerRepository
from .snapshot_repository import SnapshotRepository

__all__ = [
    # Store
    'COLLECTION_SLICES',
    'SLICES',
    'STORAGE_KEYS',
    'SYNCABLE_SLICES',
    'StateStore',

    # Clases base
    'JsonFileRepository',
    'DictRepository',

    # Implementaciones JSON
    'OwnerRepository',
    'SnapshotRepository',
]
