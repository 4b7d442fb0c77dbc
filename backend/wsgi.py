# backend/wsgi.py
from maca import create_app

app = create_app()
