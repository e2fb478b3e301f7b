import os

# Managed backend (PostgREST + GoTrue)
SUPABASE_URL = os.environ.get("SUPABASE_URL", "http://localhost:54321").rstrip("/")
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")

# External providers
WEATHER_API_URL = os.environ.get("WEATHER_API_URL", "https://api.open-meteo.com/v1/forecast")
CHAT_API_URL = os.environ.get("CHAT_API_URL", "https://api.openai.com/v1/chat/completions")
CHAT_API_KEY = os.environ.get("CHAT_API_KEY", "")
CHAT_MODEL = os.environ.get("CHAT_MODEL", "gpt-4o-mini")

# Where the CLI reaches the crop advisor endpoint of this service
ADVISOR_URL = os.environ.get("ADVISOR_URL", "http://localhost:8000/crop-advisor")

HTTP_TIMEOUT = float(os.environ.get("HTTP_TIMEOUT", "30"))
ALERT_WINDOW_DAYS = int(os.environ.get("ALERT_WINDOW_DAYS", "7"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")
