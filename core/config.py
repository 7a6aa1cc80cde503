"""
Configuration for the Caste No Bar application.

Contains:
- Server configuration (environment-based)
- Supabase connection settings (auth, tables, storage bucket)
- The reserved administrator credentials

Everything is read from environment variables once, at import time,
with defaults suitable for local development.
"""

import os

# =============================================================================
# Server Configuration (from environment variables)
# =============================================================================

# Network binding
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5001"))

# Debug mode (enables hot reload, verbose logging)
DEBUG = os.getenv("DEBUG", "true").lower() == "true"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Signs the session cookie that carries the Supabase tokens
SESSION_SECRET = os.getenv("SESSION_SECRET", "dev-secret-change-in-production")

# =============================================================================
# Supabase (auth + PostgREST + storage)
# =============================================================================

SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")

# Seconds before an outbound Supabase request is abandoned
SUPABASE_TIMEOUT = float(os.getenv("SUPABASE_TIMEOUT", "15"))

PROFILES_TABLE = os.getenv("PROFILES_TABLE", "cnb_profiles")
SETTINGS_TABLE = os.getenv("SETTINGS_TABLE", "user_settings")
PHOTO_BUCKET = os.getenv("PHOTO_BUCKET", "cnb-photos")

# Phone numbers are turned into synthetic emails on this domain
CREDENTIAL_EMAIL_DOMAIN = os.getenv("CREDENTIAL_EMAIL_DOMAIN", "cnb.app")

# =============================================================================
# Administrator
# =============================================================================

# The admin account signs in without a profile lookup.
# Leave either value empty to disable the bypass.
ADMIN_WHATSAPP_NUMBER = os.getenv("ADMIN_WHATSAPP_NUMBER", "").strip()
ADMIN_PIN = os.getenv("ADMIN_PIN", "").strip()
