# backend/gunicorn_conf.py

# Gunicorn config file

import os

# Basic configuration
bind = f"0.0.0.0:{os.getenv('PORT', '3000')}"
workers = int(os.getenv("WEB_CONCURRENCY", "2"))
worker_class = "uvicorn.workers.UvicornWorker"

# The outbound webhook may wait out the order lookup budget before answering
timeout = 150

# Settings for running behind a reverse proxy like Nginx
forwarded_allow_ips = "*"

# --- Logging ---
# Send access and error logs to stdout and stderr
accesslog = "-"
errorlog = "-"
# Set the log level
loglevel = "info"
