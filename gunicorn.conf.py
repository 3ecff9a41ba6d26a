"""
Gunicorn configuration for NewsRelay.
Run with: gunicorn -c gunicorn.conf.py wsgi:app
"""

import multiprocessing
import os

bind = f"{os.getenv('HOST', '0.0.0.0')}:{os.getenv('PORT', '5000')}"
backlog = 2048

# In-memory cache and quota stores are per process; use one worker without MONGODB_URI
if os.getenv("IS_LOCAL_DEPLOYMENT", "False").lower() == "true" or not (
    os.getenv("MONGODB_URI") or os.getenv("MONGO_URI")
):
    workers = 1
else:
    workers = multiprocessing.cpu_count() * 2 + 1
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 1000
max_requests_jitter = 50
# Longer than PROVIDER_TIMEOUT_S plus one regeneration round
timeout = 90
graceful_timeout = 30
keepalive = 5

proc_name = "newsrelay"

accesslog = os.getenv("ACCESS_LOG", "-")
errorlog = os.getenv("ERROR_LOG", "-")
loglevel = os.getenv("LOG_LEVEL", "info").lower()
capture_output = True

daemon = False


def when_ready(server):
    server.log.info("Server is ready. Spawning workers")


def post_fork(server, worker):
    server.log.info(f"Worker spawned (pid: {worker.pid})")


def on_exit(server):
    server.log.info("Shutting down Gunicorn server")
