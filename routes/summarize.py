"""
Summarize Routes
API endpoints for chapter summaries and usage analytics
"""
from flask import Blueprint, current_app, jsonify, request

from services.errors import InvalidIdentifierError

# Create blueprint
summarize_bp = Blueprint('summarize', __name__)


def _service():
    return current_app.extensions['summary_service']


@summarize_bp.route('/api/summarise')
@summarize_bp.route('/api/summarize')
def summarise():
    """
    Chaptered summary for a YouTube video
    GET /api/summarise?url=https://www.youtube.com/watch?v=dQw4w9WgXcQ
    """
    url = request.args.get('url', '').strip()
    if not url:
        raise InvalidIdentifierError('Missing URL parameter')

    result = _service().summarize(url)
    return jsonify(result), 200


@summarize_bp.route('/api/top-videos')
def top_videos():
    """
    Most requested videos in the current usage window
    GET /api/top-videos?limit=10
    """
    limit = request.args.get('limit', 10, type=int)

    # Validate limit parameter
    if limit < 1 or limit > 100:
        return jsonify({'error': 'InvalidParameter', 'message': 'limit must be between 1 and 100'}), 400

    return jsonify({'results': _service().top_videos(limit)})
