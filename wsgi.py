"""
Web process for the dashboard: `gunicorn wsgi:app`.

Discovery and scoring runs are executed by a separate `rq worker` process
reading the same REDIS_URL. `python wsgi.py` serves the app alone for local
development.
"""
import os

from leadgen import create_app

app = create_app()

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 8080)), debug=bool(os.getenv('FLASK_DEBUG')))
