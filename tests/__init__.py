"""
Suite de tests para la migración del CMS de prácticas MongoDB → PostgreSQL.

Los tests NO se conectan a MongoDB ni a PostgreSQL, solo validan:
- Sintaxis e interfaz de los migradores
- Configuración y orden de migración
- Escáner BSON, clasificador y traductor de identificadores
- Contabilidad de los migradores contra un destino en memoria (FakeStore)
- Lógica pura de los scripts de reparación
"""
