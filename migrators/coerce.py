"""
Conversión de valores de documentos MongoDB a tipos de columnas PostgreSQL.

Los respaldos traen el mismo campo en varias formas según quién lo escribió:
tipos BSON nativos, Extended JSON ({'$date': ...}, {'$numberInt': ...})
o strings. Estas funciones aceptan todas y retornan None (o el default)
cuando el valor no es interpretable.
"""

import math
from datetime import datetime, timedelta, timezone

from bson import Decimal128, Int64, ObjectId, json_util
from bson.datetime_ms import DatetimeMS
from bson.errors import BSONError
from bson.json_util import RELAXED_JSON_OPTIONS
from psycopg2.extras import Json


def utcnow() -> datetime:
    """Fecha actual en UTC sin tzinfo (las columnas son TIMESTAMP sin zona)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_millis(millis) -> datetime:
    return datetime(1970, 1, 1) + timedelta(milliseconds=int(millis))


def to_date(value):
    """
    Parsea una fecha.

    Formatos soportados:
    - datetime nativo de pymongo
    - DatetimeMS (fechas fuera de rango: None si no es representable)
    - Extended JSON: {'$date': '2021-03-22T07:49:18.242Z'} o {'$date': {'$numberLong': '...'}}
    - ISO8601 con 'Z' o con offset: '2022-06-02T13:54:12.273+00:00'
    - Milisegundos desde epoch (int/float)

    Returns:
        datetime|None: Fecha en UTC sin tzinfo
    """
    if value is None or value == "" or isinstance(value, bool):
        return None

    try:
        if isinstance(value, datetime):
            return _naive_utc(value)

        if isinstance(value, DatetimeMS):
            return _naive_utc(value.as_datetime())

        if isinstance(value, dict) and "$date" in value:
            inner = value["$date"]
            if isinstance(inner, dict) and "$numberLong" in inner:
                return _from_millis(inner["$numberLong"])
            return to_date(inner)

        if isinstance(value, (int, float)):
            if isinstance(value, float) and math.isnan(value):
                return None
            return _from_millis(value)

        if isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            return _naive_utc(datetime.fromisoformat(text))
    except (ValueError, OverflowError, OSError, BSONError):
        return None

    return None


def to_number(value):
    """
    Convierte a número (int o float).

    Acepta int/float, Int64, Decimal128, Extended JSON ($numberInt,
    $numberLong, $numberDouble, $numberDecimal) y strings numéricos.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, dict):
        for key in ("$numberInt", "$numberLong"):
            if key in value:
                return to_number(value[key])
        for key in ("$numberDouble", "$numberDecimal"):
            if key in value:
                return to_number(str(value[key]))
        return None

    if isinstance(value, Int64):
        return int(value)

    if isinstance(value, Decimal128):
        value = float(value.to_decimal())

    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None
        return value

    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        if math.isnan(number) or math.isinf(number):
            return None
        return int(number) if number.is_integer() and "." not in value else number

    return None


def to_int(value):
    """Como to_number() pero truncado a entero (columnas INTEGER)."""
    number = to_number(value)
    return int(number) if number is not None else None


def to_bool(value, default: bool = False) -> bool:
    """Booleano con default para None y valores no reconocidos."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if value in ("true", 1):
        return True
    if value in ("false", 0):
        return False
    return default


def to_text(value):
    """Texto para columnas TEXT (ids, números y fechas se convierten a string)."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return _naive_utc(value).isoformat()
    if isinstance(value, (ObjectId, int, float, Int64, Decimal128)):
        return str(value)
    return _dumps(value)


def to_list(value) -> list:
    """Lista de strings para columnas TEXT[]; [] si el valor no es una lista."""
    if not isinstance(value, list):
        return []
    return [to_text(item) for item in value if item is not None]


def _dumps(value):
    return json_util.dumps(value, json_options=RELAXED_JSON_OPTIONS)


def to_json(value):
    """
    Valor para columnas JSONB.

    Objetos y listas se serializan con bson.json_util (ObjectId y fechas
    quedan en Extended JSON relajado). Un string se interpreta como JSON.

    Returns:
        Json|None: Adaptador de psycopg2 o None si el valor está vacío o no es JSON
    """
    if not value:
        return None
    if isinstance(value, (dict, list)):
        return Json(value, dumps=_dumps)
    if isinstance(value, str):
        try:
            return Json(json_util.loads(value), dumps=_dumps)
        except ValueError:
            return None
    return None


def first_present(doc: dict, *fields):
    """Primer valor no vacío entre varios nombres de campo (renombres del origen)."""
    for field in fields:
        value = doc.get(field)
        if value is not None and value != "":
            return value
    return None
