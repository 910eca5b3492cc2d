from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

from .config import configure_logging, load_env
from .errors import CurationError, NotFoundError, ValidationError
from .game import SongGame
from .rounds import RoundState


class GuessRequest(BaseModel):
    id: str
    guess: str = ""


def _require_id(round_id: Optional[str]) -> str:
    if not round_id:
        raise ValidationError("missing id")
    return round_id


def create_app(game: Optional[SongGame] = None) -> FastAPI:
    """Build the HTTP surface around a SongGame (built from .env when omitted)."""
    if game is None:
        load_env()
        configure_logging()
        game = SongGame.from_config()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        game.shutdown()

    app = FastAPI(lifespan=lifespan)
    app.state.game = game
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(NotFoundError)
    async def _not_found(_request: Request, exc: NotFoundError):
        return JSONResponse({"detail": "round not found"}, status_code=404)

    @app.exception_handler(ValidationError)
    async def _bad_request(_request: Request, exc: ValidationError):
        return JSONResponse({"detail": str(exc)}, status_code=400)

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(_request: Request, exc: RequestValidationError):
        return JSONResponse({"detail": "invalid json"}, status_code=400)

    @app.exception_handler(CurationError)
    async def _curation_failed(_request: Request, exc: CurationError):
        return JSONResponse({"detail": f"failed to fetch songs: {exc}"}, status_code=502)

    @app.get('/start')
    def start(lang: Optional[str] = None, clipLength: Optional[str] = None):
        """Resolve a song and return the round id before the clip is ready."""
        return game.start(lang, clipLength)

    @app.get('/status')
    def status(id: Optional[str] = None):
        return game.status(_require_id(id))

    @app.get('/clip')
    def clip(id: Optional[str] = None):
        """Serve the clip once ready; never waits for preparation."""
        rnd = game.clip(_require_id(id))
        if rnd.state is RoundState.FAILED:
            return JSONResponse({"detail": f"clip error: {rnd.error}"}, status_code=500)
        if rnd.state is RoundState.PENDING:
            return JSONResponse({"detail": "clip not ready yet"}, status_code=503)
        if not rnd.clip_path or not Path(rnd.clip_path).exists():
            return JSONResponse({"detail": "clip open error"}, status_code=500)
        return FileResponse(rnd.clip_path, media_type="audio/mpeg")

    @app.post('/guess')
    def guess(body: GuessRequest):
        return game.guess(body.id, body.guess)

    @app.get('/reveal')
    def reveal(id: Optional[str] = None):
        return game.reveal(_require_id(id))

    @app.api_route('/refreshCache', methods=['GET', 'POST'])
    def refresh_cache(lang: Optional[str] = None):
        """Force a fresh curated batch for the language."""
        return game.refresh_cache(lang)

    return app

