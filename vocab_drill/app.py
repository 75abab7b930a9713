"""FastAPI application hosting practice sessions."""
from __future__ import annotations

import logging
import os

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request

from vocab_drill.config import Settings, load_settings, save_settings
from vocab_drill.db import Database
from vocab_drill.judge import JudgmentCache, LLMJudge
from vocab_drill.models import AnswerResult
from vocab_drill.parsers.items_parser import parse_items_file
from vocab_drill.progress import ProgressStore
from vocab_drill.session import SessionEngine

app = FastAPI(title="Vocab Drill")

# Global state (initialized in startup)
_db: Database | None = None
_settings: Settings | None = None
_judge: LLMJudge | None = None
_engines: dict[str, SessionEngine] = {}  # session_id -> live engine

_log = logging.getLogger("vocab_drill.app")


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def _get_llm():
    s = get_settings()
    if s.llm_provider == "ollama":
        from vocab_drill.providers.llm_ollama import OllamaProvider
        return OllamaProvider(base_url=s.ollama_url, model=s.llm_model)
    elif s.llm_provider == "anthropic":
        from vocab_drill.providers.llm_anthropic import AnthropicProvider
        return AnthropicProvider(model=s.llm_model)
    elif s.llm_provider == "openai":
        from vocab_drill.providers.llm_openai import OpenAIProvider
        return OpenAIProvider(model=s.llm_model)
    raise ValueError(f"Unknown LLM provider: {s.llm_provider}")


def get_judge() -> LLMJudge:
    """The shared judge; rebuilt (with an empty cache) when settings change."""
    global _judge
    if _judge is None:
        s = get_settings()
        _judge = LLMJudge(
            _get_llm(),
            temperature=s.judge_temperature,
            retries=s.judge_retries,
            retry_delay=s.judge_retry_delay,
            cache=JudgmentCache(max_age=s.judge_cache_seconds),
            thinking=s.llm_thinking,
        )
    return _judge


def import_item_files(db: Database, settings: Settings, only_changed: bool = False) -> int:
    """Import lesson files into the database. Returns the number of lessons imported."""
    total = 0
    for f in settings.resolved_item_files():
        if not f.exists():
            continue
        mtime = f.stat().st_mtime_ns
        if only_changed and db.get_file_mtime(str(f)) == mtime:
            continue
        _log.info("Importing %s", f.name)
        db.delete_lessons_by_source(f.name)
        total += db.import_lessons(parse_items_file(f))
        db.set_file_mtime(str(f), mtime)
    return total


@app.on_event("startup")
async def startup():
    global _db, _settings
    if _db is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _db = Database(_settings.db_full_path)
    if not os.environ.get("VOCAB_DRILL_NO_AUTO_IMPORT"):
        import_item_files(_db, _settings, only_changed=True)


@app.on_event("shutdown")
async def shutdown():
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()
    if _db:
        _db.close()


# ── API: Stats & content ─────────────────────────────────────────────────

@app.get("/api/stats")
async def api_stats():
    return get_db().get_stats()


@app.post("/api/import")
async def api_import():
    db = get_db()
    n = import_item_files(db, get_settings())
    return {
        "lessons_imported": n,
        "total_lessons": db.get_lesson_count(),
        "total_items": db.get_item_count(),
    }


@app.get("/api/lessons")
async def api_lessons():
    return {"lessons": get_db().get_lessons()}


# ── API: Sessions ────────────────────────────────────────────────────────

def _completion_handler(session_id: str):
    def on_complete(answers: list[AnswerResult]) -> None:
        correct = sum(1 for a in answers if a.correct)
        get_db().record_session(session_id, len(answers), correct)
        _engines.pop(session_id, None)
    return on_complete


def _get_engine(session_id: str) -> SessionEngine:
    engine = _engines.get(session_id)
    if engine is None:
        raise HTTPException(404, "Session not found")
    return engine


@app.post("/api/session/{session_id}/start")
async def api_session_start(session_id: str):
    engine = _engines.get(session_id)
    if engine is None:
        items = get_db().get_lesson_items(session_id)
        if not items:
            raise HTTPException(404, f"No practice items for '{session_id}'. Import lessons first.")
        s = get_settings()
        store = ProgressStore(get_db(), max_age_hours=s.progress_max_age_hours)
        engine = SessionEngine(
            session_id,
            items,
            judge=get_judge(),
            store=store,
            on_complete=_completion_handler(session_id),
        )
        engine.hydrate()
        _engines[session_id] = engine
    return engine.snapshot()


@app.get("/api/session/{session_id}")
async def api_session_state(session_id: str):
    return _get_engine(session_id).snapshot()


@app.post("/api/session/{session_id}/answer")
async def api_session_answer(session_id: str, request: Request):
    engine = _get_engine(session_id)
    body = await request.json()
    answer = body.get("answer")
    phonetic = body.get("phonetic")
    if not isinstance(answer, str):
        raise HTTPException(400, "No answer provided")
    if phonetic is not None and not isinstance(phonetic, str):
        raise HTTPException(400, "phonetic must be a string")

    result = await engine.submit(answer, phonetic=phonetic)
    return {
        "accepted": result is not None,
        "result": result.to_dict() if result else None,
        "state": engine.snapshot(),
    }


@app.post("/api/session/{session_id}/continue")
async def api_session_continue(session_id: str):
    engine = _get_engine(session_id)
    moved = engine.continue_to_next()
    return {"accepted": moved, "state": engine.snapshot()}


@app.post("/api/session/{session_id}/skip")
async def api_session_skip(session_id: str):
    engine = _get_engine(session_id)
    skipped = engine.skip()
    return {"accepted": skipped, "state": engine.snapshot()}


@app.post("/api/session/{session_id}/goto")
async def api_session_goto(session_id: str, request: Request):
    engine = _get_engine(session_id)
    body = await request.json()
    index = body.get("index")
    if not isinstance(index, int) or isinstance(index, bool):
        raise HTTPException(400, "index must be an integer")
    moved = engine.go_to_item(index)
    return {"accepted": moved, "state": engine.snapshot()}


@app.post("/api/session/{session_id}/reset")
async def api_session_reset(session_id: str):
    engine = _get_engine(session_id)
    engine.reset()
    return {"accepted": True, "state": engine.snapshot()}


@app.post("/api/session/{session_id}/fresh")
async def api_session_fresh(session_id: str):
    engine = _get_engine(session_id)
    engine.start_fresh()
    return {"accepted": True, "state": engine.snapshot()}


@app.get("/api/sessions/history")
async def api_session_history():
    return {"sessions": get_db().get_session_history(limit=10)}


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    global _judge, _settings
    body = await request.json()
    if not isinstance(body, dict):
        raise HTTPException(400, "Expected a JSON object")
    merged = get_settings().to_dict()
    merged.update({k: v for k, v in body.items() if k in merged})
    try:
        s = Settings(**merged)
    except (TypeError, ValueError) as e:
        raise HTTPException(400, str(e))
    save_settings(s)
    _settings = s
    # Live engines keep their judge; new sessions pick up the new settings.
    _judge = None
    return s.to_dict()
