# ==============================================================================
# REPOSITORIO DE CREDENCIALES DEL DUEÑO
# ==============================================================================
# Encapsula el acceso a owner.json. Datos sensibles: SOLO locales, nunca se
# suben a Firestore ni se incluyen en los respaldos.
# ==============================================================================

import os
from typing import Optional

from bigasan_pos.models import OwnerCredentials
from .base import DictRepository


class OwnerRepository(DictRepository):
    """
    Formato de owner.json:
    {
        "username": "owner",
        "password_hash": "scrypt:..."
    }
    """

    FILE_NAME = 'owner.json'

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, self.FILE_NAME))

    def load(self) -> Optional[OwnerCredentials]:
        data = self.get_all()
        if not data.get('username') or not data.get('password_hash'):
            return None
        return OwnerCredentials.from_dict(data)

    def save(self, owner: OwnerCredentials) -> None:
        self.save_all(owner.to_dict())
