# Schemas package init
"""
Pydantic request / response models. Everything on the wire is camelCase
(see CamelModel in app.schemas.common).
"""
