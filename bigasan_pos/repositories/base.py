# ==============================================================================
# ARCHIVOS JSON LOCALES
# ==============================================================================
# Persistencia local (equivalente al localStorage del navegador):
#   - owner.json     -> credenciales del dueño (nunca van a la nube)
#   - pos_data.json  -> copia local de las colecciones para arrancar offline
#
# REGLAS:
# - Cada archivo tiene su propio lock (compartido por todas las instancias
#   que apunten a la misma ruta).
# - Escritura: archivo temporal único en la misma carpeta, fsync y
#   os.replace. Un corte a mitad de escritura deja el archivo anterior intacto.
# - Un archivo ilegible se aparta como <archivo>.corrupt y se arranca vacío.
# ==============================================================================

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict

logger = logging.getLogger(__name__)

CORRUPT_SUFFIX = '.corrupt'

_path_locks: Dict[str, threading.RLock] = {}
_path_locks_guard = threading.Lock()


def lock_for(path: str) -> threading.RLock:
    """Lock reentrante asociado a la ruta real del archivo."""
    key = os.path.realpath(path)
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.RLock()
        return lock


class JsonFileRepository(ABC):
    """Repositorio respaldado por un único archivo JSON."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self.directory = os.path.dirname(os.path.abspath(file_path))
        os.makedirs(self.directory, exist_ok=True)
        self._lock = lock_for(file_path)

    @abstractmethod
    def _empty_data(self) -> Any:
        """Contenido cuando el archivo no existe o no se puede leer."""

    def _load(self) -> Any:
        with self._lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except FileNotFoundError:
                return self._empty_data()
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                self._quarantine(e)
                return self._empty_data()

    def _quarantine(self, reason: Exception) -> None:
        """Aparta el archivo ilegible para no pisarlo en la próxima escritura."""
        target = self.file_path + CORRUPT_SUFFIX
        try:
            os.replace(self.file_path, target)
        except OSError as e:
            logger.error('[STORAGE] No se pudo apartar %s: %s', self.file_path, e)
            return
        logger.warning('[STORAGE] %s ilegible (%s), movido a %s', self.file_path, reason, target)

    def _store(self, data: Any) -> None:
        with self._lock:
            fd, temp_path = tempfile.mkstemp(
                prefix='.' + os.path.basename(self.file_path) + '.',
                suffix='.tmp',
                dir=self.directory,
            )
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_path, self.file_path)
            except BaseException:
                try:
                    os.remove(temp_path)
                except FileNotFoundError:
                    pass
                raise


class DictRepository(JsonFileRepository):
    """Archivo cuyo contenido es un objeto {clave: valor}."""

    def _empty_data(self) -> Dict[str, Any]:
        return {}

    def get_all(self) -> Dict[str, Any]:
        data = self._load()
        if isinstance(data, dict):
            return data
        logger.warning('[STORAGE] %s no contiene un objeto, se ignora', self.file_path)
        return {}

    def save_all(self, data: Dict[str, Any]) -> None:
        self._store(data)

    def update(self, key: str, value: Any) -> None:
        """Cambia una clave conservando las demás (lectura y escritura bajo el mismo lock)."""
        with self._lock:
            data = self.get_all()
            data[key] = value
            self._store(data)
