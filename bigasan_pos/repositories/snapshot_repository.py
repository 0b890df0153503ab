# ==============================================================================
# REPOSITORIO DE COPIA LOCAL (OFFLINE)
# ==============================================================================
# Guarda en pos_data.json el último valor de cada colección sincronizable,
# con la misma clave que su documento en Firestore (bigasan_products, ...).
# Permite reiniciar la app sin red y seguir trabajando con los datos locales.
# ==============================================================================

import os
from typing import Any, Dict

from .base import DictRepository
from .state_store import STORAGE_KEYS, SYNCABLE_SLICES


class SnapshotRepository(DictRepository):
    """Copia local de los slices sincronizables."""

    FILE_NAME = 'pos_data.json'

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, self.FILE_NAME))

    def load_slices(self) -> Dict[str, Any]:
        """
        Retorna {slice: valor} solo para los slices guardados con el tipo
        correcto (lista para colecciones, dict para settings).
        """
        data = self.get_all()
        slices = {}
        for name in SYNCABLE_SLICES:
            value = data.get(STORAGE_KEYS[name])
            if name == 'settings':
                if isinstance(value, dict):
                    slices[name] = value
            elif isinstance(value, list):
                slices[name] = value
        return slices

    def save_slice(self, name: str, value: Any) -> None:
        if name not in SYNCABLE_SLICES:
            return
        self.update(STORAGE_KEYS[name], value)
