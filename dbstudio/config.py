import os

from dotenv import load_dotenv

# Load settings from a .env file in the working directory, if any
load_dotenv()


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


CORS_ORIGINS = _split_list(
    os.getenv("DBSTUDIO_CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
)
LOG_LEVEL = os.getenv("DBSTUDIO_LOG_LEVEL", "INFO").upper()
HOST = os.getenv("DBSTUDIO_HOST", "0.0.0.0")
PORT = int(os.getenv("DBSTUDIO_PORT", "8000"))
