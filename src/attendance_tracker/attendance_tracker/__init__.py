"""Attendance Tracker package.

Multi-tenant attendance backend organized by feature modules (organizations,
users, attendance, reporting, aadhaar) with a thin Flask controller layer over
service and repository layers.
"""
