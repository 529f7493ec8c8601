"""
Almacén en memoria de documentos clasificados.

Un bucket por tag de entidad, más el bucket de no identificados. Vive sólo
durante la ejecución; los migradores leen su bucket una vez.
"""

UNIDENTIFIED = "_unidentified"


class CollectionBuckets:
    """
    Buckets de documentos por tag.

    Mantiene el orden de inserción tanto de los tags como de los documentos
    dentro de cada bucket (primer documento visto = primero en migrarse).
    """

    def __init__(self):
        self._buckets = {}

    def add(self, tag: str, document: dict):
        self._buckets.setdefault(tag, []).append(document)

    def extend(self, tag: str, documents):
        self._buckets.setdefault(tag, []).extend(documents)

    def get(self, tag: str) -> list:
        """Documentos de un tag (lista vacía si no hay ninguno)."""
        return self._buckets.get(tag, [])

    @property
    def unidentified(self) -> list:
        return self.get(UNIDENTIFIED)

    def discard_unidentified(self) -> int:
        """Descarta los no identificados y retorna cuántos eran."""
        return len(self._buckets.pop(UNIDENTIFIED, []))

    def tags(self) -> list:
        """Tags con al menos un documento, sin contar los no identificados."""
        return [tag for tag in self._buckets if tag != UNIDENTIFIED]

    def counts(self) -> dict:
        return {tag: len(documents) for tag, documents in self._buckets.items()}

    def __contains__(self, tag):
        return tag in self._buckets

    def __len__(self):
        return sum(len(documents) for documents in self._buckets.values())
