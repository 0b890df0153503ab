# ==============================================================================
# IDENTIFICADORES Y NÚMEROS DE BOLETA
# ==============================================================================
# - new_id(): ID opaco = milisegundos en base36 + 5 caracteres aleatorios
# - generate_receipt_number(): "#YYYYMMDD-NNN", secuencia diaria desde 001
#
# NOTA: la secuencia cuenta las boletas existentes del día en el momento de
# la llamada (sin reserva). Con un solo escritor por sesión es suficiente;
# dos dispositivos vendiendo a la vez el mismo día pueden repetir número.
# ==============================================================================

import secrets
import time
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from bigasan_pos.time_utils import local_date

_BASE36 = '0123456789abcdefghijklmnopqrstuvwxyz'


def _to_base36(number: int) -> str:
    if number == 0:
        return '0'
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return ''.join(reversed(digits))


def new_id() -> str:
    """Genera un ID único (prefijo temporal + sufijo aleatorio)."""
    millis = int(time.time() * 1000)
    suffix = ''.join(secrets.choice(_BASE36) for _ in range(5))
    return _to_base36(millis) + suffix


def receipt_prefix(now: datetime) -> str:
    """Prefijo de boleta del día: '#YYYYMMDD'."""
    return '#' + local_date(now).strftime('%Y%m%d')


def generate_receipt_number(
    existing_transactions: Iterable[Dict[str, Any]],
    now: Optional[datetime] = None
) -> str:
    """
    Genera el siguiente número de boleta del día.

    Args:
        existing_transactions: Transacciones ya registradas
        now: Momento de la venta (por defecto, ahora)

    Returns:
        Número con formato '#YYYYMMDD-NNN'
    """
    prefix = receipt_prefix(now or datetime.now())
    count = sum(
        1 for t in existing_transactions
        if str(t.get('receiptNo') or '').startswith(prefix)
    )
    return f'{prefix}-{count + 1:03d}'
