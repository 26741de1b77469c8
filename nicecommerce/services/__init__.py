"""
  Service Layer

  Business rules between the API routes and the repositories:
    - accounts: sign-up, sign-in, profile, password recovery
    - products: catalog, categories, waitlist
    - orders: checkout with idempotency keys, cancellation, payment
    - payments: resilient charging, gateway webhooks
"""
