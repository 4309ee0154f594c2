"""
FinFlow - Session Core

The authenticated-session layer of the FinFlow personal finance client.
It holds credentials, refreshes expired access tokens behind concurrent
API calls, and publishes session state to whoever is listening.

DESIGN PRINCIPLES:
1. Exactly one token refresh in flight at a time
2. Backend error messages are shown verbatim, never reformatted
3. Logout always succeeds locally
4. Only the session manager changes session state
5. Storage backends are swappable
"""

__version__ = "1.0.0"
__author__ = "FinFlow Team"
