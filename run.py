#!/usr/bin/env python
"""
Achatons API entry point.

Development:  python run.py
Production:   gunicorn -c gunicorn.conf.py run:app
"""
import os
from dotenv import load_dotenv

# .env must be loaded before app.config reads the environment
load_dotenv()

from app import create_app  # noqa: E402

app = create_app(os.environ.get('FLASK_ENV', 'development'))

if __name__ == '__main__':
    host = os.environ.get('FLASK_HOST', '0.0.0.0')
    port = int(os.environ.get('FLASK_PORT', 5000))
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'

    print(f"""
    ============================================================
              ACHATONS - Group Buying API
    ============================================================
      API:         http://{host}:{port}/api/v1/offers
      Environment: {os.environ.get('FLASK_ENV', 'development')}
      Debug mode:  {debug}
    ============================================================
    """)

    app.run(host=host, port=port, debug=debug)
