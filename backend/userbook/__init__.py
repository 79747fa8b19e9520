"""
Userbook Backend - Application Package
======================================

What: A small user directory service. Each user record may carry one
      uploaded image; records live in a single JSON document.
Who:  Imported by uvicorn (userbook.main:app) and by pytest.

Layering:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Orchestration)    │  upload first, then record
    ├─────────────────────────────────────┤
    │        Schemas (Pydantic models)    │  record shape + API contract
    ├─────────────────────────────────────┤
    │   RecordStore / AssetService        │  flat-file persistence
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
