"""Portal application of the MedPoint backend.

Accounts and sessions, the doctor directory, appointments with their
status workflow, and the admin console, exposed as a JSON API.
"""
