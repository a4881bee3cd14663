"""WSGI entry point for Gunicorn: `gunicorn wsgi:app`."""
import os
import sys

sys.path.insert(0, os.path.dirname(__file__))

from pos_app import create_app

# POS_CONFIG selects the config class, e.g. config.TestConfig for smoke runs
app = create_app(os.getenv('POS_CONFIG', 'config.Config'))

if __name__ == "__main__":
    app.run()
