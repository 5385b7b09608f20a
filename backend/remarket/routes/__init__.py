"""
Remarket Backend - API Routes Package
=======================================

What:  HTTP route handlers, one module per resource, all under /api/v1
       except the health probe.

Route Inventory:
    - users.py:       /api/v1/users/...        accounts, profile, favorites, admin
    - listings.py:    /api/v1/listings/...     search, detail, seller actions, moderation
    - categories.py:  /api/v1/categories/...
    - reviews.py:     /api/v1/reviews/...
    - messages.py:    /api/v1/messages/...     conversations and direct messages
    - dashboard.py:   /api/v1/dashboard/stats
    - health.py:      /health

Routes stay thin: they read the request, resolve the caller through
deps.py, call one service and shape the response.
"""
