import argparse
import logging
import uvicorn
from fastapi import FastAPI
from contextlib import asynccontextmanager

import sys
from pathlib import Path

# Add project root to path for package imports
base_dir = Path(__file__).parent
sys.path.insert(0, str(base_dir))

from db.database import init_db
from config import load_config
from routes import stories, words, grammar, users  # Import routers
from utils.migrate import import_export_file

# First-run init
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: init DB and config
    config = load_config()  # Ensures config exists
    logging.getLogger().setLevel(config["logging"]["level"])
    init_db()
    yield

app = FastAPI(
    title="Tadoku Review",
    description="Vocabulary and grammar extraction for graded reading practice",
    lifespan=lifespan,
)

# Include routers
app.include_router(stories.router, prefix="/stories", tags=["stories"])
app.include_router(words.router, prefix="/words", tags=["words"])
app.include_router(grammar.router, prefix="/grammar", tags=["grammar"])
app.include_router(users.router, prefix="/users", tags=["users"])

@app.get("/health")
async def health():
    return {"status": "ok"}

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Tadoku Review service")
    parser.add_argument("--init", action="store_true", help="Initialize DB and config")
    parser.add_argument("--dev", action="store_true", help="Run in dev mode with reload")
    parser.add_argument("--import-export", metavar="PATH", type=Path,
                        help="Import a JSON export of the legacy store and exit")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()
    config = load_config()
    logging.basicConfig(
        level=config["logging"]["level"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.init or args.import_export:
        init_db()
        print("DB initialized and config copied to ~/.tadoku/")
    if args.import_export:
        report = import_export_file(args.import_export)
        for entity, counts in report.items():
            print(f"{entity}: {counts['migrated']} migrated, {counts['skipped']} skipped")
    if args.init or args.import_export:
        exit(0)
    # Run server
    uvicorn.run("main:app", host="127.0.0.1", port=args.port, reload=args.dev, log_level="info")
