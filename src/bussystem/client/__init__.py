"""Request dispatch and response caching for bussystem.

Classes:
    :class:`RequestDispatcher` -- one JSON POST per call over :class:`httpx.Client`,
    with credential injection and failure classification.
    :class:`CachedOperation` -- per-operation TTL caching in front of the
    dispatcher.

Example::

    from bussystem.client import CachedOperation, RequestDispatcher

    with RequestDispatcher(settings) as dispatcher:
        cached = CachedOperation(settings, dispatcher, cache)
        routes = cached.invoke("get_routes", "/curl/get_routes.php", {"date": "2024-09-09"})
"""

from bussystem.client.cached import CachedOperation
from bussystem.client.dispatcher import RequestDispatcher

__all__ = ["CachedOperation", "RequestDispatcher"]
