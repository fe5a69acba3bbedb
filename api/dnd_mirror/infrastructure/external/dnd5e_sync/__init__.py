"""
Pipeline de sincronización one-way: API D&D 5e -> base de datos relacional.

Objetivos de diseño:
- Idempotencia: se puede ejecutar N veces sin duplicar datos (UPSERT por `index`).
- Snapshot completo: cada sync relee la colección remota entera; no hay diff.
- Tablas hijas reemplazadas por completo (DELETE + INSERT) dentro de la misma
  transacción que el UPSERT del padre.
- Control total: mapeo/transformaciones definidas en código (table_mappings).
"""
