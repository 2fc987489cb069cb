# src/proactive_bot/config.py
import os

APP_ID = os.getenv("MicrosoftAppId", "")
APP_PASSWORD = os.getenv("MicrosoftAppPassword", "")
TENANT_ID = os.getenv("MicrosoftAppTenantId", "")
PORT = int(os.getenv("PORT", "3978"))

# Single-slot store for the receiving conversation
REFERENCE_PATH = os.getenv("CONVERSATION_REFERENCE_PATH", "./ConversationReference.json")

# False -> single-flow variant (relay every message, no wizard)
WITH_DIALOG = os.getenv("PROACTIVE_WITH_DIALOG", "true").strip().lower() not in ("0", "false", "no", "off")

PLAYGROUND_HOST = os.getenv("PLAYGROUND_HOST", "host.docker.internal")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
