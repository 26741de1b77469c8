"""
  API Layer

  FastAPI routes, request/response schemas, authentication and error
  handling. Entry point: nicecommerce.api.app:app
"""
