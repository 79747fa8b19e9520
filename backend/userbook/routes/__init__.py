# Routes package init
"""
Userbook Backend - API Routes Package
=====================================

Route Inventory:
    - users.py:   POST /api/users, GET /api/users, GET/PUT /api/users/{id},
                  GET /uploads/{filename}
    - health.py:  GET /health

Routes stay thin: extract form fields and files, call UserService, return
the model. Errors are formatted by the handlers registered in main.py.
"""
