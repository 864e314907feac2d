import uvicorn

from config import settings
from services.logger import setup_logging


def main():
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    uvicorn.run(
        "api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,  # keep our logging configuration
    )

if __name__ == "__main__":
    main()
