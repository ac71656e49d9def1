"""
Web API for the ROM launcher using Flask + an embedded launcher page.

Routes
------
- ``GET  /api/health``     liveness + environment tag
- ``GET  /api/roms``       playable ROM filenames
- ``POST /api/rom-play``   record a play event
- ``GET  /api/rom-stats``  play counts per ROM
- ``GET  /roms/<name>``    raw ROM bytes for the emulator
- anything else            front-end document

Shared state (event store, rate limiter, ROM library) is built by the caller
and handed to ``create_app``; handlers reach it through ``current_app``.
"""

import logging
import os
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import (
    Blueprint, Flask, current_app, g, jsonify, render_template_string,
    request, send_from_directory,
)
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import AppConfig, ensure_directories, load_config
from .errors import AppError, RomListingError
from .library import RomLibrary
from .models import HTTP_ERROR, INVALID_BODY, RATE_LIMITED
from .monitor import (
    install_shutdown_hooks, monitor_action, setup_runtime_monitor,
    shutdown_runtime_monitor,
)
from .ratelimit import SlidingWindowLimiter
from .store import EventStore
from .validation import body_depth_exceeded, sanitize_text, validate_rom_name

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'romlauncher'
ROM_CACHE_SECONDS = 365 * 24 * 60 * 60

EMULATORJS_CDN = 'https://cdn.emulatorjs.org'

CONTENT_SECURITY_POLICY = '; '.join([
    "default-src 'self'",
    f"script-src 'self' 'unsafe-inline' https://unpkg.com {EMULATORJS_CDN}",
    "style-src 'self' 'unsafe-inline'",
    "img-src 'self' data: https:",
    f"connect-src 'self' {EMULATORJS_CDN}",
    "font-src 'self' data:",
    "frame-src 'self'",
    "worker-src 'self' blob:",
])


@dataclass
class LauncherState:
    """Everything request handlers share; owned by whoever built the app."""
    config: AppConfig
    store: Any
    limiter: SlidingWindowLimiter
    library: RomLibrary


def _state() -> LauncherState:
    return current_app.extensions[EXTENSION_KEY]


def _is_api_path(path: str) -> bool:
    return path == '/api' or path.startswith('/api/')


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


# ── Security event recording ──────────────────────────────────

def _record_security_event(event_type: str, details: Dict[str, Any]) -> None:
    """Best-effort audit write; must never break the response being built."""
    try:
        _state().store.append_security_event(event_type, details)
    except Exception:
        logger.exception("Security event %s could not be recorded", event_type)


def _error_response(message: str, status_code: int, event_type: Optional[str],
                    exc: Optional[BaseException] = None):
    config = _state().config

    _record_security_event(event_type or HTTP_ERROR, {
        'statusCode': status_code,
        'path': request.path,
        'method': request.method,
        'message': message,
    })

    if config.is_production and status_code >= 500:
        message = 'Internal server error.'

    payload: Dict[str, Any] = {'error': message}
    if config.is_development and exc is not None and exc.__traceback__ is not None:
        payload['stack'] = ''.join(
            traceback.format_exception(type(exc), exc, exc.__traceback__))
    return jsonify(payload), status_code


def handle_app_error(err: AppError):
    if not err.operational:
        logger.error("Unexpected error on %s %s: %s", request.method, request.path, err.message)
    return _error_response(err.message, err.status_code, err.event_type, err)


def handle_http_exception(err: HTTPException):
    status = err.code or 500
    if isinstance(err, RequestEntityTooLarge):
        message = 'Request entity too large.'
    elif status == 404:
        message = f'Route {request.path} not found'
    else:
        message = err.description or err.name
    return _error_response(message, status, HTTP_ERROR, err)


def handle_unexpected_error(err: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return _error_response(str(err) or 'Internal server error.', 500, HTTP_ERROR, err)


# ── Request hooks ─────────────────────────────────────────────

RATE_LIMIT_EXEMPT = frozenset(['/api/health'])


def enforce_rate_limit():
    if not _is_api_path(request.path) or request.method == 'OPTIONS':
        return None
    if request.path in RATE_LIMIT_EXEMPT:
        return None
    state = _state()
    client = request.remote_addr or 'unknown'
    decision = state.limiter.hit(client)
    g.rate_decision = decision
    if not decision.allowed:
        logger.warning("Rate limit exceeded for %s on %s", client, request.path)
        raise AppError('Too many requests. Please try again later.', 429,
                       event_type=RATE_LIMITED)
    return None


def apply_response_headers(response):
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'SAMEORIGIN'
    response.headers['Referrer-Policy'] = 'no-referrer'
    response.headers.setdefault('Content-Security-Policy', CONTENT_SECURITY_POLICY)

    decision = g.get('rate_decision')
    if decision is not None:
        for key, value in decision.headers().items():
            response.headers[key] = value
    return response


# ── API Routes ────────────────────────────────────────────────

api = Blueprint('api', __name__, url_prefix='/api')


@api.route('/health')
def health():
    return jsonify({
        'status': 'ok',
        'timestamp': _utc_timestamp(),
        'environment': _state().config.environment,
    })


@api.route('/roms')
def list_roms():
    try:
        roms = _state().library.list_roms()
    except RomListingError:
        raise AppError('Failed to list ROMs.', 500, operational=False)
    return jsonify({'roms': roms})


def _json_object_body() -> Dict[str, Any]:
    """Decode the request body as one JSON object of bounded depth."""
    raw = request.get_data(cache=True)
    if not raw.strip():
        return {}
    body = request.get_json(force=True, silent=True)
    if not isinstance(body, dict):
        raise AppError('Invalid request format.', 400, event_type=INVALID_BODY)
    if body_depth_exceeded(body):
        raise AppError('Request structure too complex.', 400, event_type=INVALID_BODY)
    return body


@api.route('/rom-play', methods=['POST'])
def rom_play():
    body = _json_object_body()
    rom_name = body.get('romName')

    result = validate_rom_name(rom_name)
    if not result.ok:
        logger.info("Rejected rom-play (%s): %r", result.reason,
                    sanitize_text(rom_name, 80) if isinstance(rom_name, str) else type(rom_name).__name__)
        raise AppError(result.message, 400, event_type=result.reason)

    try:
        outcome = _state().store.append_play_event(result.name)
        if not outcome.ok:
            logger.warning("Play event for %s not recorded: %s", result.name, outcome.error)
    except Exception:
        logger.exception("Play event store raised for %s", result.name)

    return jsonify({'ok': True}), 201


@api.route('/rom-stats')
def rom_stats():
    result = _state().store.get_play_stats()
    if not result.ok:
        raise AppError('Failed to get statistics.', 500, operational=False)
    return jsonify({'data': [stat.to_dict() for stat in result.value]})


# ── Static assets ─────────────────────────────────────────────

def serve_rom(filename: str):
    state = _state()
    if not state.library.exists(filename):
        raise AppError('ROM not found.', 404)
    response = send_from_directory(
        state.library.roms_dir,
        filename,
        mimetype='application/octet-stream',
        max_age=ROM_CACHE_SECONDS,
    )
    response.cache_control.immutable = True
    return response


def _no_cache(response):
    response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
    response.headers['Pragma'] = 'no-cache'
    response.headers['Expires'] = '0'
    return response


def frontend(path: str = ''):
    """Serve files from the public directory, falling back to the launcher page."""
    if _is_api_path('/' + path):
        raise AppError(f'Route /{path} not found', 404)
    if request.method not in ('GET', 'HEAD'):
        raise AppError(f'Route /{path} not found', 404)

    public_dir = _state().config.public_dir
    if path and os.path.isfile(os.path.join(public_dir, path)) and path != 'index.html':
        return send_from_directory(public_dir, path)

    if os.path.isfile(os.path.join(public_dir, 'index.html')):
        return _no_cache(send_from_directory(public_dir, 'index.html'))

    html = render_template_string(LAUNCHER_TEMPLATE, environment=_state().config.environment)
    return _no_cache(current_app.response_class(html, mimetype='text/html'))


_ALL_METHODS = ['GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE']


def create_app(config: Optional[AppConfig] = None, store=None,
               limiter: Optional[SlidingWindowLimiter] = None,
               library: Optional[RomLibrary] = None) -> Flask:
    """
    Build the Flask application.

    Collaborators not supplied are created from ``config``; a store created
    here is initialized immediately and closed by whoever owns the app.
    """
    config = config or load_config()
    if store is None:
        store = EventStore(config.db_path)
        store.initialize()
    if limiter is None:
        limiter = SlidingWindowLimiter(config.rate_limit_max, config.rate_limit_window_seconds)
    if library is None:
        library = RomLibrary(config.roms_dir)

    app = Flask(__name__, static_folder=None)
    app.config['MAX_CONTENT_LENGTH'] = config.max_content_length
    app.extensions[EXTENSION_KEY] = LauncherState(
        config=config, store=store, limiter=limiter, library=library)

    if config.trust_proxy:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1)

    CORS(app, origins=config.cors_origins, methods=['GET', 'POST'],
         allow_headers=['Content-Type'])
    app.before_request(enforce_rate_limit)
    app.after_request(apply_response_headers)
    app.register_error_handler(AppError, handle_app_error)
    app.register_error_handler(HTTPException, handle_http_exception)
    app.register_error_handler(Exception, handle_unexpected_error)

    app.register_blueprint(api)
    app.add_url_rule('/roms/<path:filename>', 'serve_rom', serve_rom)
    app.add_url_rule('/', 'frontend', frontend, methods=_ALL_METHODS)
    app.add_url_rule('/<path:path>', 'frontend', frontend, methods=_ALL_METHODS)
    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None,
               debug: bool = False, config: Optional[AppConfig] = None):
    """Run the web server until interrupted, then close the event store."""
    config = config or load_config()
    log = setup_runtime_monitor(log_dir=config.log_dir)
    host = host or config.host
    port = port or config.port
    monitor_action(f"run_server called: host={host} port={port} env={config.environment}",
                   logger=log)

    ensure_directories(config)
    store = EventStore(config.db_path)
    store.initialize()
    app = create_app(config, store=store)

    install_shutdown_hooks(store.close, logger=log)

    print("GBA Playground - ROM launcher")
    print("=" * 50)
    print(f"Open in your browser: http://{host}:{port}")
    print(f"Environment: {config.environment}")
    print("Press Ctrl+C to stop")
    print()
    try:
        app.run(host=host, port=port, debug=debug, threaded=True, use_reloader=False)
    finally:
        store.close()
        monitor_action("server stopped", logger=log)
        shutdown_runtime_monitor()


LAUNCHER_TEMPLATE = r'''
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>GBA Playground</title>
    <style>
        body { font-family: sans-serif; background: #0f172a; color: #e2e8f0; margin: 0; display: flex; min-height: 100vh; }
        aside { width: 280px; border-right: 1px solid #334155; padding: 16px; overflow-y: auto; }
        main { flex: 1; display: flex; align-items: center; justify-content: center; }
        li { list-style: none; padding: 8px; border-radius: 6px; cursor: pointer; }
        li:hover { background: #1e293b; }
        ul { padding: 0; }
        #game { width: 720px; height: 480px; }
        .muted { color: #94a3b8; font-size: 12px; }
    </style>
</head>
<body>
    <aside>
        <h2>ROMs</h2>
        <p class="muted">Environment: {{ environment }}</p>
        <ul id="rom-list"><li class="muted">Loading...</li></ul>
    </aside>
    <main><div id="game"><p class="muted">Pick a game to start.</p></div></main>
    <script>
        const list = document.getElementById('rom-list');

        function startGame(name) {
            fetch('/api/rom-play', {
                method: 'POST',
                headers: { 'Content-Type': 'application/json' },
                body: JSON.stringify({ romName: name }),
            }).catch(() => {});

            document.getElementById('game').innerHTML = '';
            window.EJS_player = '#game';
            window.EJS_gameUrl = '/roms/' + encodeURIComponent(name);
            window.EJS_core = 'gba';
            window.EJS_pathtodata = 'https://cdn.emulatorjs.org/stable/data/';
            const script = document.createElement('script');
            script.src = 'https://cdn.emulatorjs.org/stable/data/loader.js';
            script.crossOrigin = 'anonymous';
            document.body.appendChild(script);
        }

        fetch('/api/roms').then(r => r.json()).then(data => {
            list.innerHTML = '';
            const roms = data.roms || [];
            if (!roms.length) {
                list.innerHTML = '<li class="muted">No ROMs found. Drop .gba files into the ROM folder.</li>';
                return;
            }
            roms.forEach(name => {
                const li = document.createElement('li');
                li.textContent = name;
                li.addEventListener('click', () => startGame(name));
                list.appendChild(li);
            });
        }).catch(() => {
            list.innerHTML = '<li class="muted">Failed to load ROM list.</li>';
        });
    </script>
</body>
</html>
'''
