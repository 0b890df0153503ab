# ==============================================================================
# SERVICIO DE AUTENTICACIÓN DEL DUEÑO
# ==============================================================================
# Un único usuario (el dueño de la tienda). Sus credenciales viven SOLO en
# owner.json: nunca se suben a Firestore ni se incluyen en los respaldos.
#
# Primer arranque: se crea el usuario por defecto owner / 1234 (con hash)
# y se avisa en el log para que se cambie desde Configuración.
# ==============================================================================

import logging
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from bigasan_pos.exceptions import InvalidCredentials, ValidationError
from bigasan_pos.models import OwnerCredentials
from bigasan_pos.repositories.owner_repository import OwnerRepository
from bigasan_pos.repositories.state_store import StateStore

logger = logging.getLogger(__name__)


class AuthService:
    """
    Servicio de credenciales del dueño.

    Responsabilidades:
    - Crear las credenciales por defecto
    - Cambiar usuario/contraseña (validado)
    - Verificar el login (solo check_password_hash)
    """

    DEFAULT_USERNAME = 'owner'
    DEFAULT_PASSWORD = '1234'
    MIN_PASSWORD_LENGTH = 4

    def __init__(self, owner_repo: OwnerRepository, store: StateStore = None):
        self.owner_repo = owner_repo
        self.store = store

    def _publish(self, owner: OwnerCredentials) -> None:
        # El store solo conoce el nombre de usuario
        if self.store is not None:
            self.store.set_owner({'username': owner.username})

    def ensure_owner(self) -> OwnerCredentials:
        """Retorna las credenciales guardadas o crea las de por defecto."""
        owner = self.owner_repo.load()
        if owner is None:
            owner = OwnerCredentials(
                username=self.DEFAULT_USERNAME,
                password_hash=generate_password_hash(self.DEFAULT_PASSWORD),
            )
            self.owner_repo.save(owner)
            logger.warning('[AUTH] Usando credenciales por defecto (%s); cámbielas en Configuración',
                           self.DEFAULT_USERNAME)
        self._publish(owner)
        return owner

    def get_owner(self) -> Optional[str]:
        """Nombre de usuario del dueño."""
        owner = self.owner_repo.load()
        return owner.username if owner else None

    def save_owner(self, username: str, password: str, confirm: str = None) -> str:
        """
        Cambia las credenciales.

        Raises:
            ValidationError: usuario vacío, contraseña corta o no coincide
        """
        username = (username or '').strip()
        if not username:
            raise ValidationError('El usuario no puede estar vacío')
        if confirm is not None and password != confirm:
            raise ValidationError('Las contraseñas no coinciden')
        if len(password or '') < self.MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f'La contraseña debe tener al menos {self.MIN_PASSWORD_LENGTH} caracteres'
            )

        owner = OwnerCredentials(username=username, password_hash=generate_password_hash(password))
        self.owner_repo.save(owner)
        self._publish(owner)
        logger.info('[AUTH] Credenciales del dueño actualizadas (%s)', username)
        return username

    def check_credentials(self, username: str, password: str) -> bool:
        owner = self.owner_repo.load() or self.ensure_owner()
        if (username or '').strip() != owner.username:
            return False
        return check_password_hash(owner.password_hash, password or '')

    def authenticate(self, username: str, password: str) -> str:
        """
        Raises:
            InvalidCredentials: usuario o contraseña incorrectos
        """
        if not self.check_credentials(username, password):
            logger.info('[AUTH] Login fallido para %r', username)
            raise InvalidCredentials('Usuario o contraseña incorrectos')
        return username.strip()
