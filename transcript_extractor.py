import re
from urllib.parse import urlparse, parse_qs

from services.errors import InvalidIdentifierError

VIDEO_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")

YOUTUBE_HOSTS = ('www.youtube.com', 'youtube.com', 'm.youtube.com', 'music.youtube.com')


class TranscriptExtractor:
    def extract_video_id(self, youtube_url):
        """Extract video ID from a YouTube URL or accept a bare 11-character ID"""
        if not youtube_url or not youtube_url.strip():
            raise InvalidIdentifierError("Missing URL parameter")

        youtube_url = youtube_url.strip()
        if VIDEO_ID.match(youtube_url):
            return youtube_url

        if '://' not in youtube_url:
            youtube_url = 'https://' + youtube_url
        parsed_url = urlparse(youtube_url)
        hostname = (parsed_url.hostname or '').lower()

        video_id = None
        if hostname == 'youtu.be':
            video_id = parsed_url.path[1:].split('/')[0]
        elif hostname in YOUTUBE_HOSTS:
            if parsed_url.path == '/watch':
                video_id = parse_qs(parsed_url.query).get('v', [None])[0]
            elif parsed_url.path[:7] == '/embed/':
                video_id = parsed_url.path.split('/')[2]
            elif parsed_url.path[:3] == '/v/':
                video_id = parsed_url.path.split('/')[2]
            elif parsed_url.path[:8] == '/shorts/':
                video_id = parsed_url.path.split('/')[2]

        if not video_id or not VIDEO_ID.match(video_id):
            raise InvalidIdentifierError(f"Invalid YouTube URL: {youtube_url}")

        return video_id


def extract_video_id(youtube_url):
    return TranscriptExtractor().extract_video_id(youtube_url)
