# ==============================================================================
# CONFIGURACIÓN - Variables de entorno
# ==============================================================================
# Todas las opciones se leen del entorno al arrancar:
#   POS_DATA_DIR          carpeta de owner.json, pos_data.json y backups/
#   POS_SECRET_KEY        clave de sesiones Flask (OBLIGATORIA en producción)
#   POS_PRODUCTION        1/true/yes/on
#   POS_SYNC_ENABLED      activa Firestore (por defecto: si hay credenciales)
#   FIREBASE_CREDENTIALS  ruta al JSON de la cuenta de servicio
#   FIREBASE_PROJECT_ID   proyecto (con credenciales por defecto de Google)
#   FIREBASE_COLLECTION   colección remota (por defecto 'pos')
#   POS_MAX_BACKUPS       respaldos diarios conservados (por defecto 7)
#   POS_LOG_LEVEL         nivel de logging (por defecto INFO)
# ==============================================================================

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

_DEFAULT_SECRET = 'bigasan_pos_dev_secret_key_change_in_production'

_TRUE_VALUES = ('1', 'true', 'yes', 'on')

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def _flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in _TRUE_VALUES


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value not in (None, '') else default
    except ValueError:
        logger.warning('[CONFIG] Valor entero inválido %r, usando %d', value, default)
        return default


@dataclass(frozen=True)
class AppConfig:
    data_dir: str = os.path.abspath('data')
    secret_key: str = _DEFAULT_SECRET
    production: bool = False
    sync_enabled: bool = False
    firebase_credentials: Optional[str] = None
    firebase_project_id: Optional[str] = None
    firebase_collection: str = 'pos'
    max_backups: int = 7
    log_level: str = 'INFO'

    def firebase_options(self) -> Dict[str, Any]:
        """Opciones para CloudSyncService.connect()."""
        return {
            'credentials': self.firebase_credentials,
            'project_id': self.firebase_project_id,
        }


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Construye la configuración desde el entorno.

    Args:
        environ: Mapeo de variables (por defecto os.environ)
    """
    env = os.environ if environ is None else environ

    production = _flag(env.get('POS_PRODUCTION'))
    secret_key = env.get('POS_SECRET_KEY')
    if production and not secret_key:
        logger.warning('[CONFIG] POS_PRODUCTION activo sin POS_SECRET_KEY definida')
        logger.warning('[CONFIG] Define la variable de entorno para mayor seguridad')

    credentials_path = env.get('FIREBASE_CREDENTIALS') or None
    project_id = env.get('FIREBASE_PROJECT_ID') or None

    return AppConfig(
        data_dir=os.path.abspath(env.get('POS_DATA_DIR') or 'data'),
        secret_key=secret_key or _DEFAULT_SECRET,
        production=production,
        sync_enabled=_flag(env.get('POS_SYNC_ENABLED'), bool(credentials_path or project_id)),
        firebase_credentials=credentials_path,
        firebase_project_id=project_id,
        firebase_collection=env.get('FIREBASE_COLLECTION') or 'pos',
        max_backups=max(1, _int(env.get('POS_MAX_BACKUPS'), 7)),
        log_level=(env.get('POS_LOG_LEVEL') or 'INFO').upper(),
    )


def configure_logging(level: str = 'INFO') -> None:
    """Formato básico de logging (una vez, al arrancar)."""
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)
