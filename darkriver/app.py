import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from darkriver import storage
from darkriver.routes import router
from darkriver.transport import Transport, transport_from_env

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None, transport: Transport | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    storage.init_storage(resolved)

    app = FastAPI(title="Dark River Mail")
    app.state.transport = transport or transport_from_env(
        storage.get_config()["sender_address"]
    )
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
