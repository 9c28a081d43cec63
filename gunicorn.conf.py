# =============================================================================
# Achatons - Gunicorn Production Configuration
# =============================================================================
import os
import multiprocessing

wsgi_app = "run:app"
bind = f"0.0.0.0:{os.environ.get('PORT', '8080')}"

# Offer writes hold a row lock for one short transaction; a few threads per
# worker keep concurrent participations on the same offer queued, not failed
workers = int(os.environ.get("WEB_CONCURRENCY", min(multiprocessing.cpu_count() * 2 + 1, 4)))
worker_class = "gthread"
threads = int(os.environ.get("GUNICORN_THREADS", 4))

preload_app = True

timeout = 60
graceful_timeout = 30
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(L)ss "%({x-request-id}i)s"'

max_requests = 1000
max_requests_jitter = 50

limit_request_line = 4094
limit_request_fields = 50

forwarded_allow_ips = "*"


def post_fork(server, worker):
    """Drop pooled connections inherited from the preloaded master."""
    from run import app
    from app.extensions import db

    with app.app_context():
        db.engine.dispose()
