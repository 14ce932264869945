"""Clinic application for the hospital backend.

Models, services and API views for appointments, billing, campaigns and
the WhatsApp booking assistant.
"""
