"""
WSGI entry point and Flask-Migrate / Alembic target.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi init-settings
    gunicorn wsgi:app
"""

from travel_desk import create_app

app = create_app()
