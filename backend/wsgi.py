# backend/wsgi.py
from shopoms import create_app

app = create_app()
