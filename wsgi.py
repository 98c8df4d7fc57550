"""
WSGI entry point and Flask CLI target.

Usage:
    gunicorn wsgi:app
    FLASK_APP=wsgi flask deliver-notifications --loop --interval 30
    flask db init       # first time only (creates migrations/)
    flask db migrate -m "description"
    flask db upgrade
"""

from apprenticeship_registry import create_app

app = create_app()
