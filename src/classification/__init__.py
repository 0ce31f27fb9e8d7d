"""ACT_ECON → category classification.

- mapping_table: candidate mappings per code, highest confidence wins
- rules: heuristic mapping generation (code ranges, keyword/prefix scoring)
- engine: classify one business record (additive, idempotent)
- runner: paged, resumable batch classification with retry queue
- coverage: read-only classification statistics
"""
