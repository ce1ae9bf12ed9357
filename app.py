import logging

from newsdash import create_app
from newsdash.config import Settings

# ---------- Configuration ----------
# Set env vars (or a .env file) for local testing; see newsdash/config.py
settings = Settings.from_env()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
# -----------------------------------

app = create_app(settings)

if __name__ == "__main__":
    logging.getLogger("newsdash").info("Running at http://localhost:%d", settings.port)
    app.run(host="0.0.0.0", port=settings.port, debug=True)
