"""
Utilidades para el manejo de zonas horarias en el sistema.

Todas las fechas se guardan en la base de datos como datetime naive en UTC.
Los límites de día (check-in diario, ventanas de analytics) se calculan en la
zona horaria configurada para cada gimnasio.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple

import pytz
from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    """Reloj único del sistema: hora actual en UTC como datetime naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """
    Normaliza un datetime a UTC naive (formato de almacenamiento).
    Los datetime naive se asumen ya expresados en UTC.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def convert_utc_to_local(utc_dt: datetime, gym_timezone: str) -> datetime:
    """
    Convierte un datetime UTC a hora local del gimnasio.

    Args:
        utc_dt: Datetime en UTC (naive se interpreta como UTC)
        gym_timezone: Zona horaria del gimnasio

    Returns:
        Datetime aware en la zona horaria del gimnasio
    """
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=timezone.utc)

    tz = pytz.timezone(gym_timezone)
    return utc_dt.astimezone(tz)


def local_date(utc_dt: datetime, gym_timezone: str) -> date:
    """Día calendario del gimnasio al que corresponde un instante UTC."""
    return convert_utc_to_local(utc_dt, gym_timezone).date()


def local_hour(utc_dt: datetime, gym_timezone: str) -> int:
    return convert_utc_to_local(utc_dt, gym_timezone).hour


def local_midnight_utc(day: date, gym_timezone: str) -> datetime:
    """
    Medianoche local del gimnasio para `day`, expresada en UTC naive.
    pytz.localize resuelve correctamente los cambios de horario de verano.
    """
    tz = pytz.timezone(gym_timezone)
    local_start = tz.localize(datetime.combine(day, time.min))
    return local_start.astimezone(timezone.utc).replace(tzinfo=None)


def local_day_bounds_utc(day: date, gym_timezone: str) -> Tuple[datetime, datetime]:
    """Rango [inicio, fin) en UTC naive que cubre el día local `day`."""
    return (
        local_midnight_utc(day, gym_timezone),
        local_midnight_utc(day + timedelta(days=1), gym_timezone),
    )


def local_range_bounds_utc(start_day: date, end_day: date, gym_timezone: str) -> Tuple[datetime, datetime]:
    """Rango [start_day 00:00, end_day 00:00) local, expresado en UTC naive."""
    return local_midnight_utc(start_day, gym_timezone), local_midnight_utc(end_day, gym_timezone)


def add_duration(start: datetime, duration: int, duration_type: str) -> datetime:
    """
    Suma la duración de un plan a una fecha.

    - "days": suma días exactos.
    - "months": suma meses calendario; si el día no existe en el mes destino
      se ajusta al último día del mes (31/01 + 1 mes = 28/02 o 29/02).
    """
    if duration_type == "months":
        return start + relativedelta(months=duration)
    if duration_type == "days":
        return start + timedelta(days=duration)
    raise ValueError(f"Tipo de duración no soportado: {duration_type}")


def is_valid_timezone(name: str) -> bool:
    return name in pytz.all_timezones_set
