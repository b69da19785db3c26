"""
NutriScope backend package.

Only the reminder scheduling and delivery engine lives here; the CRUD layer
and UI are separate services.
"""
