"""Appointment availability, booking and session core for the realty site."""
