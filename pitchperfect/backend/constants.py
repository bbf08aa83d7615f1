MAX_UPLOAD_BYTES = 10 * 1024 * 1024   # 10 MB recorded pitch audio
MAX_REQUEST_BYTES = 12 * 1024 * 1024  # audio + multipart overhead
CHUNK_SIZE = 1024 * 1024
UNSET = object()

ROLES = ("user", "team_lead", "admin")
MANAGER_ROLES = ("team_lead", "admin")
ADMIN_ROLES = ("admin",)

XP_BY_DIFFICULTY = {
    "easy": 50,
    "medium": 100,
    "hard": 200,
}
DEFAULT_SESSION_XP = 50

TEXT_SESSION_AUDIO_URL = "text-based-session"
TEXT_ONLY_AUDIO_URL = "text-only"
