"""
Built-in provider catalogue — endpoints and scopes for every supported
integration. Client credentials come from settings at registry build time.
"""

from __future__ import annotations

from typing import Dict, Tuple

GOOGLE_SHEETS = "google_sheets"
NOTION = "notion"
SLACK = "slack"

# provider key → (display name, auth url, token url, scopes, callback slug)
PROVIDER_CATALOGUE: Dict[str, Tuple[str, str, str, Tuple[str, ...], str]] = {
    GOOGLE_SHEETS: (
        "Google Sheets",
        "https://accounts.google.com/o/oauth2/v2/auth",
        "https://oauth2.googleapis.com/token",
        ("https://www.googleapis.com/auth/spreadsheets",),
        "google",
    ),
    NOTION: (
        "Notion",
        "https://api.notion.com/v1/oauth/authorize",
        "https://api.notion.com/v1/oauth/token",
        ("read_content", "update_content"),
        "notion",
    ),
    SLACK: (
        "Slack",
        "https://slack.com/oauth/v2/authorize",
        "https://slack.com/api/oauth.v2.access",
        ("chat:write", "chat:write.public"),
        "slack",
    ),
}


def display_name(provider: str) -> str:
    entry = PROVIDER_CATALOGUE.get(provider)
    return entry[0] if entry else provider.replace("_", " ").title()


def provider_for_callback(slug: str) -> str:
    """Map a callback path slug (``google``) back to its provider key."""
    for provider, entry in PROVIDER_CATALOGUE.items():
        if entry[4] == slug:
            return provider
    return slug


def redirect_uri(api_base_url: str, provider: str) -> str:
    """Callback URL registered with the provider's OAuth app."""
    slug = PROVIDER_CATALOGUE[provider][4]
    return f"{api_base_url.rstrip('/')}/auth/callback/{slug}"
