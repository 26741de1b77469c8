"""
  Domain Layer

  Plain dataclasses and rules with no I/O:
    - accounts: User, PasswordResetToken
    - products: Category, Product (per-size stock), Waitlist, slugs
    - orders: Order, OrderItem, order numbers
    - payments: Payment, WebhookLog, PaymentResult
    - pagination: Page of a zero-indexed listing
    - events: Kafka integration events
    - exceptions: errors the API maps to HTTP statuses
"""
