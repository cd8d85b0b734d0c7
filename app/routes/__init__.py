# Routes package init
"""
Venue Gallery Backend — API Routes Package
===========================================

What:  HTTP route handlers that accept requests and return the JSON envelope.
How:   One module per resource, each exposing an APIRouter.

Route Inventory:
    - categories.py: /api/categories   (CRUD, lookups, search, stats, recount)
    - images.py:     /api/images       (upload, listings, homepage, search,
                                        stats, detail, update, delete)
    - health.py:     GET /health, GET / (liveness and API index)

Routes stay thin: they validate input, call a service and wrap the result.
Business rules live in app.services.
"""
