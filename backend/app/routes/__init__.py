"""
LocalSpots Backend - API Routes Package
=========================================

Route Inventory:
    - spots.py:       /api/v1/spots              (list, create)
                      /api/v1/spots/nearby       (radius search)
                      /api/v1/spots/{id}         (get, update, delete)
    - reviews.py:     /api/v1/spots/{id}/reviews  (CRUD, stats)
                      /api/v1/reviews/recent, /api/v1/users/{id}/reviews
    - categories.py:  /api/v1/categories         (CRUD, spot counts, popular,
                                                  search, spots)
    - health.py:      /health, /health/ping

Routes stay thin: they parse parameters, call a service and set the status
code. Business rules live in app.services.
"""
