"""Web reader for the Folio comic library.

Serves /reader for browsing albums and fetching covers and pages.
"""

from .router import router

__all__ = ["router"]
