"""
Lectura de respaldos MongoDB sin necesidad de un servidor MongoDB.

Formatos soportados:
- Archivo de `mongodump --archive --gzip`: se descomprime completo en memoria
  y se recorre con scan_documents() buscando documentos BSON.
- Directorio de `mongodump` (un .bson o .bson.gz por colección, o exports
  .json de mongoexport): load_dump_directory() retorna los documentos
  agrupados por nombre de archivo.

El formato interno del archive no está documentado. scan_documents() no lo
interpreta: busca en cada posición un prefijo de longitud plausible, intenta
decodificar y, si falla, avanza un byte. Es tolerante a corrupción pero
aproximado: una región basura puede pasar los controles y decodificarse.
"""

import gzip
import struct
import zlib
from pathlib import Path
from typing import Iterator, NamedTuple

import bson
from bson import json_util
from bson.codec_options import CodecOptions, DatetimeConversion
from bson.errors import BSONError

import config

# Fechas fuera de rango de datetime (años < 1 o > 9999) quedan como DatetimeMS
# en vez de abortar la decodificación del documento completo
CODEC_OPTIONS = CodecOptions(datetime_conversion=DatetimeConversion.DATETIME_AUTO)


class ArchiveError(Exception):
    """El respaldo no existe o no se puede leer/descomprimir."""


class ScannedDocument(NamedTuple):
    """
    Documento recuperado por el escáner.

    Attributes:
        offset: Posición del documento en el buffer
        size: Longitud declarada en el prefijo
        skipped: Bytes descartados desde el documento anterior. Un valor
                 distinto de 0 indica resincronización y baja confianza.
        document: Documento decodificado
    """

    offset: int
    size: int
    skipped: int
    document: dict


def read_archive(path) -> bytes:
    """
    Descomprime un archivo gzip completo en memoria.

    Args:
        path: Ruta al archivo .gz

    Returns:
        bytes: Contenido descomprimido

    Raises:
        ArchiveError: Si el archivo no existe o no es un gzip válido
    """
    archive_path = Path(path)
    if not archive_path.is_file():
        raise ArchiveError(f"No se encontró el archivo de respaldo: {archive_path}")

    try:
        with gzip.open(archive_path, "rb") as f:
            return f.read()
    except (OSError, EOFError, zlib.error) as e:
        raise ArchiveError(f"No se pudo descomprimir '{archive_path}': {e}") from e


def scan_documents(
    buffer: bytes, max_size: int = config.MAX_DOCUMENT_SIZE
) -> Iterator[ScannedDocument]:
    """
    Recorre un buffer buscando documentos BSON con prefijo de longitud.

    En cada posición:
    1. Lee un int32 little-endian como longitud del documento
    2. Controla límites: mínimo 5 bytes, máximo max_size, que entre en el
       buffer y que el último byte sea el terminador 0x00
    3. Intenta decodificar; si falla avanza 1 byte y reintenta
    4. Si decodifica, salta el documento completo y lo retorna

    Args:
        buffer: Bytes a recorrer (ya descomprimidos)
        max_size: Longitud máxima aceptada para un documento

    Yields:
        ScannedDocument: Documentos decodificados en orden de aparición
    """
    view = memoryview(buffer)
    length = len(buffer)
    offset = 0
    skipped = 0

    while offset + 4 <= length:
        (size,) = struct.unpack_from("<i", buffer, offset)

        if (
            size < config.MIN_DOCUMENT_SIZE
            or size > max_size
            or offset + size > length
            or buffer[offset + size - 1] != 0
        ):
            offset += 1
            skipped += 1
            continue

        try:
            document = bson.decode(view[offset : offset + size], codec_options=CODEC_OPTIONS)
        except (BSONError, ValueError, OverflowError):
            offset += 1
            skipped += 1
            continue

        yield ScannedDocument(offset, size, skipped, document)
        offset += size
        skipped = 0


def is_archive_metadata(document: dict) -> bool:
    """Los documentos de cabecera del archive describen colecciones (db + collection)."""
    return "db" in document and "collection" in document


def _read_bson_file(path: Path) -> list:
    if path.name.endswith(".gz"):
        data = read_archive(path)
    else:
        data = path.read_bytes()
    return [scanned.document for scanned in scan_documents(data)]


def _read_json_file(path: Path) -> list:
    content = path.read_text(encoding="utf-8").strip()
    if not content:
        return []
    try:
        if content.startswith("["):
            return json_util.loads(content)
        # JSON Lines (mongoexport por defecto)
        return [json_util.loads(line) for line in content.splitlines() if line.strip()]
    except ValueError as e:
        raise ArchiveError(f"JSON inválido en '{path}': {e}") from e


def load_dump_directory(path) -> dict:
    """
    Carga un directorio de dump: un archivo por colección.

    Se leen recursivamente *.bson, *.bson.gz y *.json (los *.metadata.json
    de mongodump se ignoran).

    Args:
        path: Directorio del dump

    Returns:
        dict: nombre de colección (nombre de archivo sin extensión) → lista de documentos

    Raises:
        ArchiveError: Si el directorio no existe o un archivo no se puede leer
    """
    dump_path = Path(path)
    if not dump_path.is_dir():
        raise ArchiveError(f"No se encontró el directorio de dump: {dump_path}")

    collections = {}
    for file_path in sorted(dump_path.rglob("*")):
        name = file_path.name
        if not file_path.is_file() or name.endswith(".metadata.json"):
            continue

        if name.endswith(".bson.gz"):
            collection_name = name[: -len(".bson.gz")]
            documents = _read_bson_file(file_path)
        elif name.endswith(".bson"):
            collection_name = name[: -len(".bson")]
            documents = _read_bson_file(file_path)
        elif name.endswith(".json"):
            collection_name = name[: -len(".json")]
            documents = _read_json_file(file_path)
        else:
            continue

        collections.setdefault(collection_name, []).extend(documents)

    return collections
