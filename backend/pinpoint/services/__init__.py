"""
Pinpoint Backend — Services Layer
==================================

Service Inventory:
    - EntityStore:  users, images, markers, comments and their cascade rules
    - UserService:  sign-up, sign-in, session-token authentication
    - RealtimeHub:  saved/removed fan-out to WebSocket clients
    - FileService:  image blob storage on disk

Services take the request's AsyncSession as their first argument and hold
no per-request state.
"""
