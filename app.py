#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
YouTube Chapter Summarizer - Flask Application
HTTP entrypoint for the chaptered summarization pipeline
"""

import logging
import traceback
from datetime import datetime

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from config import Settings
from routes.summarize import summarize_bp
from services.errors import InternalError, SummarizerError
from services.summary import create_summary_service

logger = logging.getLogger(__name__)


def create_app(settings=None, service=None):
    """Application factory; tests inject a service with fake collaborators"""
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config['SETTINGS'] = settings
    app.json.sort_keys = False

    if service is None:
        service = create_summary_service(settings)
    app.extensions['summary_service'] = service

    app.register_blueprint(summarize_bp)
    register_error_handlers(app, settings.debug)

    @app.route('/health')
    def health():
        store = service.result_cache.store
        generator = service.pipeline.pool.generator
        return jsonify({
            'status': 'ok',
            'cache_backend': getattr(store, 'name', type(store).__name__),
            'provider': getattr(generator, 'name', type(generator).__name__),
        })

    return app


# ============================================================================
# Error Handlers
# ============================================================================

def register_error_handlers(app, debug=False):
    def error_response(error, tb=None):
        body = error.to_dict()
        body['timestamp'] = datetime.now().isoformat()
        if debug and tb:
            body['traceback'] = tb
        return jsonify(body), error.status_code

    @app.errorhandler(SummarizerError)
    def summarizer_error(error):
        logger.warning(f"[API] {error.kind}: {error.detail}")
        return error_response(error, traceback.format_exc())

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({
            'error': error.name,
            'message': error.description,
            'timestamp': datetime.now().isoformat(),
        }), error.code

    @app.errorhandler(Exception)
    def unexpected_error(error):
        logger.exception(f"[API] Unexpected error: {error}")
        return error_response(InternalError('Unexpected server error'), traceback.format_exc())


# ============================================================================
# Application Startup
# ============================================================================

if __name__ == '__main__':
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    app = create_app(settings)

    print(f"Starting YouTube Chapter Summarizer on http://localhost:{settings.port}")
    app.run(debug=settings.debug, host='0.0.0.0', port=settings.port)
