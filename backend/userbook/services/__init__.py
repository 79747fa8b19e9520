# Services package init
"""
Userbook Backend - Services Layer
=================================

What:  Logic between routes (HTTP) and the flat-file stores.

Service Inventory:
    - AssetService: stores uploaded images under generated names
    - UserService: stores the upload, then creates/updates the record
"""
