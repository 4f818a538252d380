import os

# Gunicorn configuration
bind = f"0.0.0.0:{os.getenv('PORT', '10000')}"
# Active quizzes live in process memory, so a learner must stay on one worker.
workers = 1
threads = int(os.getenv("GUNICORN_THREADS", "4"))
worker_class = "gthread"
timeout = 120
keepalive = 5

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()


# Startup hook to verify environment
def on_starting(server):
    print("=" * 60)
    print("GUNICORN STARTING - Environment Check:")
    print(f"  PORT: {os.getenv('PORT', 'not set')}")
    print(f"  FLASK_ENV: {os.getenv('FLASK_ENV', 'not set')}")
    print(f"  QUESTION_SOURCE: {os.getenv('QUESTION_SOURCE', 'bank')}")
    print(f"  DATABASE_URL: {'SET' if os.getenv('DATABASE_URL') else 'default sqlite'}")

    if os.getenv("QUESTION_SOURCE", "bank").strip().lower() == "openai":
        raw_key = os.getenv("OPENAI_API_KEY")
        print(f"  OPENAI_API_KEY: {'SET' if raw_key else 'NOT SET'}")
        if raw_key and (raw_key.startswith('"') or raw_key.startswith("'")):
            print("  ⚠️  WARNING: API key contains quotes!")

    print("=" * 60)
