import os
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

# Security settings
SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")  # Replace with strong env value in production
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./lessonly.db")

# Mode the dashboard opens in when the client does not say otherwise
DEFAULT_MODE = os.getenv("DEFAULT_MODE", "teacher")

# CORS settings (comma-separated)
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173",
    ).split(",")
    if o.strip()
]
