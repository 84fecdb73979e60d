from typing import List, Optional
from socialdl.models.internal import ExtractionRequest, MediaFormat

BEST = "best"

class FormatDecision:
    """Make format decisions"""

    @staticmethod
    def max_height(quality: Optional[str]) -> Optional[int]:
        """'720p' / '720' -> 720, anything else means unconstrained"""
        if not quality:
            return None
        value = quality.strip().lower()
        if value.endswith('p'):
            value = value[:-1]
        if not value.isdigit() or int(value) == 0:
            return None
        return int(value)
    
    @staticmethod
    def decide(request: ExtractionRequest) -> str:
        """Decide format selector based on request"""
        if request.desired_format is MediaFormat.AUDIO:
            return 'bestaudio/best'

        height = FormatDecision.max_height(request.desired_quality)
        if height:
            return (
                f"bestvideo[height<={height}]+bestaudio/"
                f"best[height<={height}]/best"
            )
        
        # Merge best video and best audio, progressive stream otherwise
        return "bestvideo+bestaudio/best"

    @staticmethod
    def build_args(request: ExtractionRequest) -> List[str]:
        """yt-dlp arguments selecting format and output container"""
        args = ['-f', FormatDecision.decide(request)]

        if request.desired_format is MediaFormat.AUDIO:
            args.extend(['--extract-audio', '--audio-format', 'mp3'])
            quality = (request.desired_quality or BEST).strip()
            if quality.lower() != BEST:
                args.extend(['--audio-quality', quality])
            return args

        args.extend(['--merge-output-format', 'mp4', '--remux-video', 'mp4'])
        return args
