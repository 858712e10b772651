"""
Travel Desk
SQLAlchemy extension and model registry.

Models import ``db`` from here; ``create_app`` binds it to the Flask app.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
