import os

# gunicorn -c gunicorn.config.py wsgi:app
# gevent workers patch the standard library themselves; the app never monkeypatches.
worker_class = "gevent"
workers = int(os.getenv("WEB_CONCURRENCY", "2"))
worker_connections = 1000
timeout = 120
graceful_timeout = 30
bind = "0.0.0.0:{}".format(os.getenv("PORT", "10000"))

loglevel = os.getenv("LOG_LEVEL", "info")
accesslog = "-"
errorlog = "-"
