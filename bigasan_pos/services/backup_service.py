# ==============================================================================
# SERVICIO DE RESPALDOS
# ==============================================================================
# Guarda el documento de respaldo (export_snapshot) en disco, uno por día.
# Mantiene solo los últimos N respaldos (rotación automática).
#
# FORMATO: backups/bigasan-backup-YYYY-MM-DD.json
# (mismo JSON que descarga la app web: se puede restaurar en cualquiera)
# ==============================================================================

import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from bigasan_pos.exceptions import InvalidFormat
from bigasan_pos.time_utils import local_date, utc_now

from .data_service import DataService

logger = logging.getLogger(__name__)


class BackupService:
    """
    Servicio de respaldos diarios.

    Uso:
        backups = BackupService(data_service, base_path='/data')
        backups.run_daily_backup()
    """

    MAX_BACKUPS = 7
    BACKUP_DIR_NAME = 'backups'
    FILE_PREFIX = 'bigasan-backup-'
    FILE_SUFFIX = '.json'

    def __init__(self, data_service: DataService, base_path: str, max_backups: int = None):
        """
        Args:
            data_service: Fachada de datos (exporta/importa)
            base_path: Carpeta de datos (se crea backups/ adentro)
            max_backups: Respaldos a conservar
        """
        self.data = data_service
        self.max_backups = max_backups or self.MAX_BACKUPS
        self.backup_root = os.path.join(base_path, self.BACKUP_DIR_NAME)
        os.makedirs(self.backup_root, exist_ok=True)

    def file_name(self, now: datetime = None) -> str:
        """Nombre del respaldo del día: bigasan-backup-YYYY-MM-DD.json"""
        now = now or utc_now()
        return f'{self.FILE_PREFIX}{local_date(now).isoformat()}{self.FILE_SUFFIX}'

    def _path_for(self, now: datetime) -> str:
        return os.path.join(self.backup_root, self.file_name(now))

    def list_backups(self) -> List[str]:
        """
        Respaldos existentes, el más reciente primero.
        Ignora archivos que no tienen el formato de nombre esperado.
        """
        backups = []
        for item in os.listdir(self.backup_root):
            if not (item.startswith(self.FILE_PREFIX) and item.endswith(self.FILE_SUFFIX)):
                continue
            date_str = item[len(self.FILE_PREFIX):-len(self.FILE_SUFFIX)]
            try:
                datetime.strptime(date_str, '%Y-%m-%d')
            except ValueError:
                continue
            if os.path.isfile(os.path.join(self.backup_root, item)):
                backups.append(item)
        backups.sort(reverse=True)
        return backups

    def write_backup(self, now: datetime = None) -> str:
        """
        Escribe el respaldo del día (sobrescribe el de hoy si ya existe)
        y rota los antiguos.

        Returns:
            Ruta del archivo escrito
        """
        now = now or utc_now()
        path = self._path_for(now)
        snapshot = self.data.export_snapshot(now)
        temp_path = path + '.tmp'
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(snapshot, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, path)
        except OSError:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise
        size_kb = round(os.path.getsize(path) / 1024, 2)
        logger.info('[BACKUP] Respaldo creado: %s (%s KB)', os.path.basename(path), size_kb)
        self.rotate_backups()
        return path

    def rotate_backups(self) -> int:
        """
        Elimina los respaldos más antiguos.

        Returns:
            Cantidad eliminada
        """
        deleted = 0
        for name in self.list_backups()[self.max_backups:]:
            try:
                os.remove(os.path.join(self.backup_root, name))
                deleted += 1
                logger.info('[BACKUP] Eliminado respaldo antiguo: %s', name)
            except OSError as e:
                logger.warning('[BACKUP] No se pudo eliminar %s: %s', name, e)
        return deleted

    def run_daily_backup(self, now: datetime = None) -> Optional[str]:
        """Crea el respaldo de hoy si aún no existe. Retorna la ruta nueva o None."""
        now = now or utc_now()
        path = self._path_for(now)
        if os.path.exists(path) and os.path.getsize(path) > 0:
            logger.info('[BACKUP] Respaldo ya existe hoy: %s', os.path.basename(path))
            self.rotate_backups()
            return None
        return self.write_backup(now)

    def restore_file(self, path: str) -> List[str]:
        """
        Restaura un archivo de respaldo.

        Raises:
            InvalidFormat: archivo ilegible o sin el formato de respaldo
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise InvalidFormat(f'No se pudo leer el respaldo: {e}') from e
        restored = self.data.import_snapshot(data)
        logger.info('[BACKUP] Restaurado desde %s', os.path.basename(path))
        return restored

    def get_backup_status(self) -> Dict[str, Any]:
        backups = []
        for name in self.list_backups():
            size_bytes = os.path.getsize(os.path.join(self.backup_root, name))
            backups.append({
                'filename': name,
                'date': name[len(self.FILE_PREFIX):-len(self.FILE_SUFFIX)],
                'size_bytes': size_bytes,
                'size_kb': round(size_bytes / 1024, 2),
            })
        return {
            'total_backups': len(backups),
            'max_backups': self.max_backups,
            'backup_root': self.backup_root,
            'backups': backups,
        }
