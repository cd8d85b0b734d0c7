# Services package init
"""
Venue Gallery Backend — Services Layer
=======================================

What:  Business logic between the routes (HTTP) and persistence.
How:   Services receive their gateways in the constructor and are injected
       into routes via FastAPI dependencies (see app.dependencies).

Service Inventory:
    - StorageGateway:   Typed query / insert / atomic-increment helpers over
                        the request's AsyncSession
    - AssetHostGateway: Cloudinary uploads, deletions and URL building
    - FileService:      Upload validation (extension, MIME type, size)
    - CategoryService:  Category rules, cascade delete, stats
    - ImageService:     Upload orchestration, listings, search, stats

Gateways never commit; the request-scoped session commits on success and
rolls back on any exception.
"""
