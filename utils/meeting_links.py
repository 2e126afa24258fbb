# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Meeting Links - Detect video conferencing URLs in event text
"""
import re
from typing import List, Optional, Pattern, Tuple

from models import VideoMeetingInfo

# URL-safe run: stops at whitespace, angle brackets and quotes (HTML descriptions)
_URL = r'[^\s<>"]+'
_HOST = r'[^\s<>"/]*'

# Order matters: first match wins, generic fallbacks last
PLATFORM_PATTERNS: List[Tuple[Pattern, str]] = [(re.compile(p, re.IGNORECASE), name) for p, name in [
    (rf'https://{_HOST}zoom\.us/j/(\d+)[^\s<>"]*', 'Zoom'),
    (rf'https://{_HOST}zoom\.us/my/({_URL})', 'Zoom'),
    (rf'https://{_HOST}zoom\.us/s/({_URL})', 'Zoom'),
    (r'https://meet\.google\.com/([a-z]+(?:-[a-z]+)*)', 'Google Meet'),
    (rf'https://teams\.microsoft\.com/l/meetup-join/({_URL})', 'Teams'),
    (rf'https://teams\.live\.com/({_URL})', 'Teams'),
    (rf'https://{_HOST}webex\.com/({_URL})', 'Webex'),
    (rf'https://join\.skype\.com/({_URL})', 'Skype'),
    (rf'https://{_HOST}gotomeeting\.com/({_URL})', 'GoToMeeting'),
    (rf'https://{_HOST}bluejeans\.com/({_URL})', 'BlueJeans'),
    (rf'https://{_HOST}ringcentral\.com/({_URL})', 'RingCentral'),
    (rf'https://{_HOST}whereby\.com/({_URL})', 'Whereby'),
    (rf'https://{_HOST}jitsi\.org/({_URL})', 'Jitsi'),
    (rf'https://meet\.jit\.si/({_URL})', 'Jitsi'),
    (rf'https://discord\.gg/({_URL})', 'Discord'),
    (rf'https://{_HOST}discord\.com/channels/({_URL})', 'Discord'),
    (rf'https://{_HOST}slack\.com/archives/({_URL})', 'Slack'),
    (rf'https://app\.slack\.com/meet/({_URL})', 'Slack'),
    (rf'facetime://({_URL})', 'FaceTime'),
    (rf'facetime-audio://({_URL})', 'FaceTime'),
    # Scheme-less zoom links
    (r'zoom\.us/j/(\d+)', 'Zoom'),
    (rf'zoom\.us/my/({_URL})', 'Zoom'),
    # Generic fallbacks
    (r'https://([^\s<>"]*meet[^\s<>"]*)', 'Meeting'),
    (r'https://([^\s<>"]*call[^\s<>"]*)', 'Meeting'),
    (r'https://([^\s<>"]*video[^\s<>"]*)', 'Meeting'),
]]

PASSWORD_PATTERNS: List[Pattern] = [re.compile(p, re.IGNORECASE) for p in [
    r'\bpassword[:\s]+([A-Za-z0-9]+)',
    r'\bpasscode[:\s]+([A-Za-z0-9]+)',
    r'\bpwd[:\s]+([A-Za-z0-9]+)',
    r'\bpass[:\s]+([A-Za-z0-9]+)',
    r'\bcode[:\s]+([A-Za-z0-9]+)',
    r'\bpin[:\s]+([A-Za-z0-9]+)',
]]


def extract_meeting_password(text: Optional[str]) -> Optional[str]:
    """Find a meeting passcode written next to a common marker"""
    if not text:
        return None

    for pattern in PASSWORD_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def extract_video_link(description: Optional[str], location: Optional[str] = None) -> Optional[VideoMeetingInfo]:
    """
    Scan event text for a video meeting URL

    Args:
        description: Event description (may contain HTML)
        location: Event location field

    Returns:
        VideoMeetingInfo for the first matching platform pattern, or None
    """
    combined_text = f"{description or ''} {location or ''}"
    if not combined_text.strip():
        return None

    for pattern, platform in PLATFORM_PATTERNS:
        match = pattern.search(combined_text)
        if match:
            return VideoMeetingInfo(
                platform=platform,
                url=match.group(0),
                meeting_id=match.group(1),
                password=extract_meeting_password(combined_text)
            )

    return None
