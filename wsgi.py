"""
WSGI entry point and Flask-Migrate / Alembic target.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi issue-token dispatcher --role admin
"""

from fieldops import create_app

app = create_app()
