import logging
import sys

from flask import Flask, jsonify
from flask_wtf.csrf import CSRFProtect
from config import Config
from controllers.quiz_controller import quiz_bp

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = Flask(__name__)
app.config.from_object(Config)

print("[APP STARTUP] Environment check:", file=sys.stderr)
print(f"  QUESTION_SOURCE: {Config.QUESTION_SOURCE}", file=sys.stderr)
print(f"  QUESTIONS_PER_SESSION: {Config.QUESTIONS_PER_SESSION}", file=sys.stderr)
print(f"  DAILY_GAME_LIMIT: {Config.DAILY_GAME_LIMIT or 'unlimited'}", file=sys.stderr)

if Config.QUESTION_SOURCE.strip().lower() == "openai":
    if Config.OPENAI_API_KEY:
        print("  ✓ Config.OPENAI_API_KEY loaded successfully", file=sys.stderr)
    else:
        print("  ✗ Config.OPENAI_API_KEY is None/empty", file=sys.stderr)

csrf = CSRFProtect(app)

app.register_blueprint(quiz_bp)


@app.errorhandler(404)
def not_found_error(error):
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(500)
def internal_error(error):
    return jsonify({"error": "Internal server error"}), 500


if __name__ == "__main__":
    try:
        Config.validate()
    except ValueError as e:
        print(f"Configuration warning: {e}")
        print("Some features may not work without proper configuration.")

    app.run(debug=app.config["DEBUG"], host="0.0.0.0", port=5000)
