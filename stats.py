"""
Estadísticas por colección y reporte final de la migración.

Cada registro procesado produce un resultado tipado:
- Success(destination_id): fila creada
- Skipped(reason): omitido a propósito (FK sin migrar, duplicado, violación prevista)
- Failed(kind, detail): error no previsto al transformar o insertar

CollectionStats agrega los resultados de un migrador y MigrationReport
agrega todas las colecciones e imprime el resumen. El reporte es sólo
observacional: no afecta el resultado de la migración.
"""

import time
from collections import Counter
from typing import NamedTuple

import config


class Success(NamedTuple):
    destination_id: str


class Skipped(NamedTuple):
    reason: str


class Failed(NamedTuple):
    kind: str
    detail: str


class CollectionStats:
    """
    Contadores de una colección.

    Invariante: migrated + skipped + errors == total al terminar. En modo
    simulación los tres contadores quedan en 0 y sólo se informa `total`.
    """

    def __init__(self, collection: str, total: int, dry_run: bool = False):
        self.collection = collection
        self.total = total
        self.dry_run = dry_run
        self.migrated = 0
        self.skipped = 0
        self.errors = 0
        self.skip_reasons = Counter()
        self.error_details = []
        self.started_at = time.perf_counter()
        self.finished_at = None

    def record(self, result, source_id=None):
        if isinstance(result, Success):
            self.migrated += 1
        elif isinstance(result, Skipped):
            self.skipped += 1
            self.skip_reasons[result.reason] += 1
        elif isinstance(result, Failed):
            self.errors += 1
            if len(self.error_details) < config.ERROR_DETAIL_LIMIT:
                self.error_details.append(f"[{result.kind}] {source_id}: {result.detail}")
        else:
            raise TypeError(f"Resultado desconocido: {result!r}")

    def finish(self):
        self.finished_at = time.perf_counter()

    @property
    def elapsed(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.perf_counter()
        return end - self.started_at

    @property
    def success_rate(self) -> float:
        return self.migrated * 100 / self.total if self.total else 0.0

    @property
    def is_balanced(self) -> bool:
        if self.dry_run:
            return self.migrated == self.skipped == self.errors == 0
        return self.migrated + self.skipped + self.errors == self.total

    def summary_line(self) -> str:
        if self.dry_run:
            return f"Simulación: se migrarían {self.total:,} registros"
        return (
            f"Migrados: {self.migrated:,}/{self.total:,} ({self.success_rate:.1f}%) | "
            f"Omitidos: {self.skipped:,} | Errores: {self.errors:,} | "
            f"Tiempo: {self.elapsed:.2f}s"
        )


class MigrationReport:
    """Agrega las estadísticas de todas las colecciones de una ejecución."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.collections = []
        self.unidentified = 0
        self.started_at = time.perf_counter()

    def add(self, stats: CollectionStats):
        self.collections.append(stats)

    def totals(self) -> dict:
        return {
            "total": sum(s.total for s in self.collections),
            "migrated": sum(s.migrated for s in self.collections),
            "skipped": sum(s.skipped for s in self.collections),
            "errors": sum(s.errors for s in self.collections),
        }

    def unbalanced(self) -> list:
        return [s.collection for s in self.collections if not s.is_balanced]

    def render(self, id_summary=None, error_limit: int = config.REPORT_ERRORS_PER_COLLECTION) -> str:
        """
        Arma el reporte final como texto.

        Args:
            id_summary: Dict tag → cantidad de ids mapeados (IdentifierTranslator.summary())
            error_limit: Detalles de error mostrados por colección

        Returns:
            str: Reporte listo para imprimir
        """
        lines = ["=" * 70, "📊 RESUMEN DE MIGRACIÓN", "=" * 70]

        if self.dry_run:
            lines.append("⚠️  SIMULACIÓN: no se escribió ningún dato")

        lines.append("")
        lines.append("Registros por colección:")
        for stats in self.collections:
            status = "⚠️ " if stats.errors else "✅"
            lines.append(f"  {status} {stats.collection}: {stats.summary_line()}")
            for reason, count in stats.skip_reasons.most_common():
                lines.append(f"      ↳ omitidos ({reason}): {count:,}")

        failing = [s for s in self.collections if s.error_details]
        if failing:
            lines.append("")
            lines.append("Errores (primeros por colección):")
            for stats in failing:
                lines.append(f"  ❌ {stats.collection} ({stats.errors:,} errores)")
                for detail in stats.error_details[:error_limit]:
                    lines.append(f"      - {detail}")

        totals = self.totals()
        lines.append("")
        lines.append(f"Total de registros leídos: {totals['total']:,}")
        if not self.dry_run:
            lines.append(f"Total migrados: {totals['migrated']:,}")
            lines.append(f"Total omitidos: {totals['skipped']:,}")
            lines.append(f"Total errores: {totals['errors']:,}")
        if self.unidentified:
            lines.append(f"Documentos no identificados (descartados): {self.unidentified:,}")

        unbalanced = self.unbalanced()
        if unbalanced:
            lines.append(f"⚠️  Conteos inconsistentes en: {', '.join(unbalanced)}")

        if id_summary:
            lines.append("")
            lines.append("Mapas de identificadores:")
            for tag, size in id_summary.items():
                lines.append(f"  • {tag}: {size:,}")

        elapsed = time.perf_counter() - self.started_at
        lines.append("")
        lines.append(f"Tiempo total: {elapsed:.2f}s")
        lines.append("=" * 70)
        return "\n".join(lines)
