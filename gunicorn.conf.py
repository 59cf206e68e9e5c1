# gunicorn.conf.py — serve the pricing API: gunicorn -c gunicorn.conf.py
import os

wsgi_app = "app.main:app"
bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"
workers = int(os.getenv("WEB_CONCURRENCY", "2"))
worker_class = "uvicorn.workers.UvicornWorker"
# each worker keeps its own RuleLoader; reloads are per process
preload_app = False
timeout = 30
keepalive = 5
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
