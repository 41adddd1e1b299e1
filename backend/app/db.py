"""
Database client configuration.
Uses Supabase (PostgreSQL) for users, purchases and the outbound email queue.
"""

import os
from supabase import create_client, Client
from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

if not SUPABASE_URL or not SUPABASE_KEY:
    raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")

# Admin client for the webhook; there are no end-user sessions in this service
supabase_admin: Client = create_client(
    SUPABASE_URL, SUPABASE_SERVICE_KEY or SUPABASE_KEY
)
