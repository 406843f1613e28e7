"""
Pinpoint Backend — API Routes Package
======================================

Route Inventory:
    - api_info.py: GET  /api                      (service info)
    - users.py:    POST /api/User, GET|PUT|DELETE /api/Me
    - images.py:   /api/Image, /api/Image/{id}, /api/Image/{id}/blob
    - markers.py:  /api/Marker, /api/Marker/{id}, /api/Marker/{id}/Comment[/{id}]
    - realtime.py: WS   /realtime

Routes stay thin: resolve the caller and path entities through
dependencies, call the store or a service, wrap the result in a schema.
"""
