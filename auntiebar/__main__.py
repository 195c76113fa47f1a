"""Run the API server: python -m auntiebar."""
import uvicorn

from auntiebar.config import settings

if __name__ == "__main__":
    uvicorn.run("auntiebar.main:app", host=settings.host, port=settings.port, reload=settings.debug)
