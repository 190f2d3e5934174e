import uvicorn

from backoffice.config import settings
from backoffice.main import app  # noqa: F401

if __name__ == "__main__":
    uvicorn.run("backoffice.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
