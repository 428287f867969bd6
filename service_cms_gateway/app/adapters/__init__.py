"""
Adapters package for the CMS gateway.

Contains HTTP client wrappers for the two upstreams (WordPress REST API and
the Supabase auth API). These adapters encapsulate:

- Base URLs, headers and request shapes
- Bounded timeouts on a shared ``httpx.AsyncClient``
- Error handling that maps to shared errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .identity_client import IdentityClient
from .wordpress_client import WordPressClient, WordPressPage

__all__ = ["IdentityClient", "WordPressClient", "WordPressPage"]
