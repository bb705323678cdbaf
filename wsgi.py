"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
    flask --app wsgi create-user --username ada --email ada@example.com --name "Ada L" --role ADMIN
"""

from taskboard import create_app

app = create_app()
