"""
main.py — Uvicorn entry point.

Run with:
  uvicorn speexify.main:app --reload --host 0.0.0.0 --port 5050
"""
from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

from .api.app import create_app  # noqa: E402

app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "speexify.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5050")),
        reload=os.getenv("RELOAD", "false").lower() == "true",
    )
