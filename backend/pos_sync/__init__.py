"""
POS sync service: offline-first pull/push reconciliation for terminals.
"""
