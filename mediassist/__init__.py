"""MediAssist booking engine.

Reconciles a hospital booking assistant's chat replies into a booking
ledger: parses the model's JSON block, applies bookings and cancellations,
derives admin statistics and triggers WhatsApp notifications.
"""

__version__ = "0.1.0"
