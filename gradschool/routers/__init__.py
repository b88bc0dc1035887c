from gradschool.routers import defense_requests, payment_rates

__all__ = [
    'defense_requests',
    'payment_rates',
]
