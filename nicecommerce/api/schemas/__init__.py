"""
  API Schemas (DTOs)

  Pydantic models for request validation and response serialization.
"""
