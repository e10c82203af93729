"""
Node provider reconciliation pipeline package.

Components:
    - ingestion: account registry, duplicate guard, declarations table,
      roster, ledger and governance connectors
    - rewards: per-provider reward aggregation and mint summaries
    - collection: concurrent per-entity ledger transaction collection
    - reconciliation: document hash checks and roster/declarations merge
"""
