#!/usr/bin/env python3
"""
WhereShot Application Entry Point.

Run the development server:
    python run.py

Or with Flask CLI:
    FLASK_APP=run flask run

For production, use a proper WSGI server like Gunicorn:
    gunicorn -w 4 -b 0.0.0.0:5000 'run:app'
"""
import logging
import os
import sys

# Configure logging before the app starts emitting
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s:%(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    stream=sys.stdout,
)

from whereshot import create_app

# Determine config from environment, default to development
config_name = os.environ.get('FLASK_ENV', 'development')

app = create_app(config_name)


if __name__ == '__main__':
    host = os.environ.get('HOST', '127.0.0.1')
    port = int(os.environ.get('PORT', 5000))
    app.run(host=host, port=port, debug=app.config.get('DEBUG', False))
