"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:3000",      # React dev server
    "http://localhost:5173",      # Vite dev server
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# User roles
ROLE_PATIENT = "patient"
ROLE_CAREGIVER = "caregiver"
ROLE_ADMIN = "admin"
SELF_REGISTER_ROLES = [ROLE_PATIENT, ROLE_CAREGIVER]

# Password policy
MIN_PASSWORD_LENGTH = 8

# Report file intake
MAX_REPORT_SIZE_BYTES = 100 * 1024 * 1024  # 100MB for stored reports
MAX_INLINE_ANALYSIS_SIZE_BYTES = 10 * 1024 * 1024  # 10MB for synchronous AI routes
ALLOWED_REPORT_CONTENT_TYPES = [
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
]
# The inline AI routes only accept what the vision model can read
ALLOWED_INLINE_ANALYSIS_CONTENT_TYPES = [
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
]
REPORT_FILE_FIELD = "report"

# Upload progress checkpoints
UPLOAD_PROGRESS_STARTED = 0
UPLOAD_PROGRESS_STORED = 50
UPLOAD_PROGRESS_COMPLETE = 100
DEFAULT_MAX_UPLOAD_RETRIES = 3

# Hosted model call parameters
ANALYSIS_MAX_TOKENS = 1000
ANALYSIS_TEMPERATURE = 0.3
CONTEXT_ANALYSIS_MAX_TOKENS = 1500
CONTEXT_ANALYSIS_TEMPERATURE = 0.2
EXTRACTION_MAX_TOKENS = 1000
EXTRACTION_TEMPERATURE = 0.1
DEFAULT_EXTRACTION_TYPES = ["vitals", "medications", "diagnoses", "recommendations"]

# Analysis expiry job
ANALYSIS_CLEANUP_HOUR = 3  # 3 AM UTC

# Pagination
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
