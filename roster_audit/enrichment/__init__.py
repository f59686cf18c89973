"""
Enrichment: weekly kill diffing, cross-source merge, gear audit and the
per-character orchestrator.

Modules:
  baseline.py    compute_weekly_kills(): diff lifetime counters vs. baseline
  merge.py       merge_boss_kills(), pick_weekly_details(), merge_character()
  gear_audit.py  build_gear_audit(): tracks, enchants, tier, raid vault
  enricher.py    CharacterEnricher: concurrent fan-out over source clients
"""
