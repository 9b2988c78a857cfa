"""
Application services.

- domain: sync reconciliation, sync ledger, inventory
- events: transactional outbox writer and processor
"""
