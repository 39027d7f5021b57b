"""
connectors — OAuth token lifecycle for third-party integrations.

Handles, for Google Sheets, Notion and Slack:
  • OAuth2 auth-URL generation with a signed, expiring state
  • Callback handling (code → token exchange)
  • Fernet encryption of credentials at rest, one row per account/provider
  • Refresh-token rotation
  • Revocation / disconnect (provider revoke is best effort, local clear always)

``OAuthManager`` in ``connectors.token_manager`` is the entry point.
"""
