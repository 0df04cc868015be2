"""
User directory: role-scoped listings, incremental search, profiles,
company/generation browsing and a couple of admin-only status changes.
"""
