"""Credential-holding proxy for the shared ceremony state.

Forwards GET/POST on a single ``/state`` path to the GitHub Gist API so
browser sessions never see the write token.
"""

from .app import create_app

__all__ = ["create_app"]
