from datetime import date, datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """'Ahora' en UTC (con zona horaria)."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """
    Asegura que el datetime tenga zona horaria.
    Un datetime naive se interpreta como hora local (igual que datetime.now()).
    """
    if dt.tzinfo is None:
        return dt.astimezone()
    return dt


def to_iso(dt: datetime) -> str:
    """
    Serializa a ISO-8601 en UTC con 'Z' final, el mismo formato que
    Date.toISOString() de los clientes web.
    """
    dt_utc = ensure_aware(dt).astimezone(timezone.utc)
    return dt_utc.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """
    Parsea un timestamp ISO-8601 guardado en los datos.

    - None / "" / basura -> None
    - "...Z" o "...+HH:MM" -> datetime con zona
    - sin zona -> se interpreta como UTC
    """
    if not value or not isinstance(value, str):
        return None
    s = value.strip()
    if s.endswith('Z'):
        s = s[:-1] + '+00:00'
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def local_date(dt: datetime) -> date:
    """Fecha de calendario local de un instante."""
    return ensure_aware(dt).astimezone().date()
