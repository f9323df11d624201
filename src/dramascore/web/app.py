"""Flask web application for DramaScore."""

import asyncio
import logging

from flask import Flask, jsonify, request
from pydantic import ValidationError

from ..ai.orchestrator import AIScoringOrchestrator
from ..ai.schemas import ScoreRequest
from ..config import Config, Language, Tokenizer
from ..core.models import (
    ConfigurationError,
    DramaScoreError,
    Episode,
    IngestMetadata,
    PresentationContractError,
    RequestValidationError,
)
from ..core.preflight import parse_and_preflight
from ..core.windows import build_windows
from ..scoring.rules import score_document

logger = logging.getLogger(__name__)

app = Flask(__name__)

ENGINE_AI = 'ai'
ENGINE_RULES = 'rules'


def error_response(code: str, message: str, status: int):
    return jsonify({'error': {'code': code, 'message': message}}), status


def require_api_key() -> None:
    if not Config.has_api_key():
        raise ConfigurationError("ANTHROPIC_API_KEY is required for server-side scoring.")


def get_orchestrator() -> AIScoringOrchestrator:
    """Build the AI orchestrator; raises ConfigurationError without an API key."""
    require_api_key()
    return AIScoringOrchestrator()


def parse_score_request(payload) -> ScoreRequest:
    if not isinstance(payload, dict):
        raise RequestValidationError("Request body must be a JSON object.")
    try:
        return ScoreRequest.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        where = '.'.join(str(part) for part in first['loc'])
        raise RequestValidationError(f"Invalid request: {where}: {first['msg']}")


async def _evaluate_and_close(orchestrator, episodes, language, tokenizer):
    try:
        return await orchestrator.evaluate(episodes, language, tokenizer)
    finally:
        await orchestrator.aclose()


@app.errorhandler(DramaScoreError)
def handle_domain_error(e: DramaScoreError):
    if isinstance(e, RequestValidationError):
        return error_response(e.code, e.message, 400)
    if isinstance(e, PresentationContractError):
        logger.error("Presentation contract violation: %s", e.message)
        return error_response('ERR_AI_EVAL', e.message, 500)
    logger.error("%s: %s", e.code, e.message)
    return error_response(e.code, e.message, 500)


@app.route('/api/preflight', methods=['POST'])
def api_preflight():
    """Parse a raw script and return document meta, episodes and issues."""
    data = request.get_json(silent=True)
    text = data.get('text', '') if isinstance(data, dict) else request.get_data(as_text=True)
    if not text or not text.strip():
        return error_response('ERR_BAD_REQUEST', 'Please provide script text', 400)

    parsed = parse_and_preflight(text)
    return jsonify(parsed.to_dict())


@app.route('/api/score', methods=['POST'])
def api_score():
    """Score pre-parsed episodes. `?engine=rules` uses the deterministic scorer."""
    engine = request.args.get('engine', ENGINE_AI)
    if engine not in (ENGINE_AI, ENGINE_RULES):
        return error_response('ERR_BAD_REQUEST', f'Unknown engine: {engine}', 400)
    if engine == ENGINE_AI:
        require_api_key()

    payload = request.get_json(silent=True)
    if payload is None:
        return error_response('ERR_BAD_REQUEST', 'Request body must be valid JSON.', 400)
    req = parse_score_request(payload)

    episodes = [Episode(number=e.number, text=e.text, paywall_count=e.paywallCount) for e in req.episodes]
    language = Language(req.language)
    tokenizer = Tokenizer(req.tokenizer)

    if engine == ENGINE_RULES:
        ingest = IngestMetadata.from_dict(req.ingest.model_dump()) if req.ingest else None
        ordered = sorted(episodes, key=lambda e: e.number)
        result = score_document(
            ordered,
            build_windows(ordered, tokenizer),
            language,
            tokenizer,
            total_words=int(req.totalWordsFromL1),
            ingest=ingest,
        )
        body = result.to_dict()
        body['presentation'] = None
        return jsonify(body)

    orchestrator = get_orchestrator()
    result = asyncio.run(_evaluate_and_close(orchestrator, episodes, language, tokenizer))
    body = result.to_dict()
    return jsonify({'score': body['score'], 'presentation': body['presentation'], 'meta': body['meta']})


def run_app(host=None, port=None, debug=False):
    """Run the Flask application."""
    app.run(host=host or Config.HOST, port=port or Config.PORT, debug=debug)


if __name__ == '__main__':
    run_app()
