"""
Rental Reservation Reconciliation Pipeline.

Ingests bookings from listing-platform iCal feeds and forwarded notification
emails, and reconciles them into one reservation record per booking.
"""

__version__ = "1.0.0"
__description__ = "Calendar and notification email reconciliation for rental reservations"
