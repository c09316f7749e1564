"""
Authentication helpers for the teamspace API.

Design goals:
- GitHub OAuth login; identity is the GitHub login.
- Server-enforced auth: every teamspace route needs a signed session.
- Cookie-based session (HttpOnly) for same-origin UI.
"""
