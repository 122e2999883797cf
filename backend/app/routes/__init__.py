"""
ClubShelf Voting Backend — API Routes Package
===============================================

Route Inventory:
    - suggestions.py: GET/POST /api/clubs/{id}/suggestions
                      POST/DELETE /api/clubs/{id}/suggestions/{sid}/vote
    - voting.py:      GET  /api/clubs/{id}/voting
                      POST /api/clubs/{id}/voting/open
                      POST /api/clubs/{id}/voting/results
                      POST /api/clubs/{id}/voting/select-winner
    - clubs.py:       POST /api/clubs/{id}/complete-book
    - health.py:      GET  /health

Design Principle:
    Routes are thin: resolve the caller, hand the request to a service,
    return its response model. They never catch; every failure is a
    ClubShelfError rendered by the global handlers in main.py.
"""
