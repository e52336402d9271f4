from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS
import os

# Flask extensions singletons

db = SQLAlchemy()
migrate = Migrate(compare_type=True)


def _allowed_origins() -> list[str]:
	# Comma-separated CORS_ALLOW_ORIGINS; never a wildcard in production
	raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
	origins = [o.strip() for o in raw.split(",") if o.strip()]
	if origins:
		return origins
	if os.getenv("FLASK_ENV", "development").lower() == "production":
		return []
	# Local frontends
	return [
		"http://localhost:5173",
		"http://127.0.0.1:5173",
		"http://localhost:3000",
		"http://127.0.0.1:3000",
	]


cors = CORS(resources={r"/api/*": {"origins": _allowed_origins()}})
