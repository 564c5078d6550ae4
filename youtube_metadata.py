import logging

import yt_dlp

from services.captions_format import format_timestamp

logger = logging.getLogger(__name__)


class YouTubeMetadata:
    def __init__(self, socket_timeout=15.0):
        # Configure yt-dlp to be quiet and only extract info
        self.ydl_opts = {
            'quiet': True,
            'no_warnings': True,
            'skip_download': True,
            'extract_flat': False,
            'socket_timeout': socket_timeout,
        }

    def get_video_info(self, video_id):
        """
        Get video metadata using yt-dlp
        Never raises: failures come back as an error placeholder
        """
        url = f"https://www.youtube.com/watch?v={video_id}"
        try:
            with yt_dlp.YoutubeDL(self.ydl_opts) as ydl:
                info = ydl.extract_info(url, download=False) or {}
            duration = int(info.get('duration') or 0)
        except Exception as e:
            logger.warning(f"[METADATA] yt-dlp failed for {video_id}: {e}")
            return self.placeholder(video_id, str(e))

        return {
            'videoId': video_id,
            'title': info.get('title', 'Unknown Title'),
            'description': info.get('description', ''),
            'uploader': info.get('uploader', info.get('channel', 'Unknown Channel')),
            'publishDate': self._format_date(info.get('upload_date', '')),
            'duration': duration,
            'durationFormatted': format_timestamp(duration * 1000) if duration else 'Unknown',
            'thumbnailUrl': f"https://img.youtube.com/vi/{video_id}/mqdefault.jpg",
        }

    def placeholder(self, video_id, error):
        return {'videoId': video_id, 'error': error}

    def _format_date(self, upload_date):
        """YYYYMMDD -> YYYY-MM-DD"""
        upload_date = str(upload_date or '')
        if len(upload_date) == 8 and upload_date.isdigit():
            return f"{upload_date[:4]}-{upload_date[4:6]}-{upload_date[6:8]}"
        return upload_date
