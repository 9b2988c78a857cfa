"""
API routers.

- sync: pull, push and the sync ledger
- inventory: stock status and restock
- public: health checks
"""
