"""
Traductor de identificadores MongoDB → PostgreSQL.

Las tablas destino usan ids TEXT con uuid4. Cada tag tiene su propio mapa
ObjectId → uuid, que se llena a medida que se migran registros y se
consulta para resolver las FKs de las entidades dependientes.

Se instancia una vez por ejecución y se pasa a cada migrador; no hay
persistencia entre ejecuciones.
"""

import uuid

from bson import ObjectId


def new_identifier() -> str:
    return str(uuid.uuid4())


class IdentifierTranslator:
    """
    Mapas por tag de id de origen → id de destino.

    - translate(): obtiene o genera el id destino (idempotente)
    - resolve(): sólo consulta; None si el origen aún no se migró
    - alias(): apunta un id de origen a un destino ya existente (duplicados)
    - forget(): elimina un mapeo (registro que falló al insertarse)
    """

    def __init__(self, id_factory=new_identifier):
        self._maps = {}
        self._new_id = id_factory

    @staticmethod
    def normalize(source_id):
        """
        Convierte un id de origen a su forma canónica (string).

        Acepta ObjectId, Extended JSON {'$oid': '...'} y strings.
        Retorna None para valores vacíos.
        """
        if source_id is None or source_id == "":
            return None
        if isinstance(source_id, ObjectId):
            return str(source_id)
        if isinstance(source_id, dict):
            oid = source_id.get("$oid")
            return str(oid) if oid else None
        return str(source_id)

    def translate(self, source_id, tag: str) -> str:
        """
        Id destino para (source_id, tag); lo genera la primera vez.

        Un source_id vacío recibe un id nuevo que no se guarda en el mapa.
        """
        key = self.normalize(source_id)
        if key is None:
            return self._new_id()

        mapping = self._maps.setdefault(tag, {})
        if key not in mapping:
            mapping[key] = self._new_id()
        return mapping[key]

    def resolve(self, source_id, tag: str):
        """Id destino ya asignado, o None si el registro de origen no se migró."""
        key = self.normalize(source_id)
        if key is None:
            return None
        return self._maps.get(tag, {}).get(key)

    def alias(self, source_id, tag: str, destination_id: str):
        """Hace que source_id resuelva a un destino existente (duplicado descartado)."""
        key = self.normalize(source_id)
        if key is not None:
            self._maps.setdefault(tag, {})[key] = destination_id

    def forget(self, source_id, tag: str):
        key = self.normalize(source_id)
        if key is not None:
            self._maps.get(tag, {}).pop(key, None)

    def size(self, tag: str) -> int:
        return len(self._maps.get(tag, {}))

    def summary(self) -> dict:
        """Cantidad de ids mapeados por tag (sólo tags con al menos uno)."""
        return {tag: len(mapping) for tag, mapping in self._maps.items() if mapping}
