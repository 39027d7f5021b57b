"""
auth — API caller authentication.

Provides:
  • Bearer token creation & verification (account-scoped)
  • ``get_current_account_id`` FastAPI dependency
  • ``get_oauth_manager`` FastAPI dependency
"""
