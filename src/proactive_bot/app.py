# src/proactive_bot/app.py
import asyncio
import logging
import math
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from aiohttp import web
from botbuilder.core import (
    BotAdapter,
    BotFrameworkAdapter,
    BotFrameworkAdapterSettings,
    ConversationState,
    MemoryStorage,
    TurnContext,
    UserState,
)
from botbuilder.schema import Activity

from . import config
from .bot import ProactiveBot
from .delivery import ProactiveMessenger, TextMessage
from .dialogs import WizardDialogs
from .errors import CorruptReferenceError, DeliveryFailedError, ReferenceNotFoundError, StorageIOError
from .scheduler import DeliveryScheduler
from .state import Accessors
from .storage import FileReferenceStore

ADAPTER_KEY = web.AppKey("adapter", BotAdapter)
BOT_KEY = web.AppKey("bot", ProactiveBot)
STORE_KEY = web.AppKey("store", FileReferenceStore)
MESSENGER_KEY = web.AppKey("messenger", ProactiveMessenger)
SCHEDULER_KEY = web.AppKey("scheduler", DeliveryScheduler)

# One year; keeps run dates inside datetime range
MAX_DELAY_MINUTES = 60 * 24 * 365

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Authorization, Content-Type",
}


def create_adapter(app_id: str = config.APP_ID, app_password: str = config.APP_PASSWORD,
                   tenant_id: str = config.TENANT_ID) -> BotFrameworkAdapter:
    settings = BotFrameworkAdapterSettings(
        app_id,
        app_password,
        channel_auth_tenant=tenant_id or None,
    )
    return BotFrameworkAdapter(settings)


def make_error_handler(conversation_state: ConversationState):
    async def on_error(context: TurnContext, error: Exception):
        # Failures stay silent for the user; the log carries the detail
        logging.error("[ERR] unhandled error in turn: %s", error, exc_info=error)
        # Only a turn that loaded conversation state has anything to clear
        if conversation_state.get_cached_state(context) is not None:
            await conversation_state.delete(context)
    return on_error


# Helper function
def _rewrite_service_url(url: str, host_override: str = config.PLAYGROUND_HOST) -> str:
    """If the serviceUrl uses localhost, point it to the host so the container can reach it."""
    try:
        u = urlsplit(url)
        if u.hostname in ("localhost", "127.0.0.1"):
            netloc = f"{host_override}:{u.port}" if u.port else host_override
            return urlunsplit((u.scheme, netloc, u.path, u.query, u.fragment))
    except ValueError:
        logging.warning("[NET] unparsable serviceUrl %r", url)
    return url


# Routes
routes = web.RouteTableDef()


@routes.options("/api/messages")
async def messages_options(request: web.Request):
    return web.Response(status=200, headers=CORS_HEADERS)


@routes.head("/api/messages")
async def messages_head(request: web.Request):
    # Health/HEAD probe
    return web.Response(status=200)


@routes.post("/api/messages")
async def messages(req: web.Request):
    if "application/json" not in req.headers.get("Content-Type", ""):
        return web.Response(status=415)
    activity = Activity.deserialize(await req.json())
    if activity.service_url:
        rewritten = _rewrite_service_url(activity.service_url)
        if rewritten != activity.service_url:
            logging.info("[NET] serviceUrl %s -> %s", activity.service_url, rewritten)
            activity.service_url = rewritten

    conversation_id = activity.conversation.id if activity.conversation else None
    logging.info("[IN] %s on %s conversation=%s", activity.type, activity.channel_id, conversation_id)

    bot = req.app[BOT_KEY]
    auth_header = req.headers.get("Authorization", "")
    response = await req.app[ADAPTER_KEY].process_activity(activity, auth_header, bot.on_turn)
    if response:
        return web.json_response(data=response.body, status=response.status)
    return web.Response(status=201)


@routes.post("/api/notify")
async def notify(req: web.Request):
    """External trigger: push text into the receiving conversation, now or later."""
    try:
        body = await req.json()
    except ValueError:
        return web.json_response({"error": "body must be JSON"}, status=400)
    text = body.get("text") if isinstance(body, dict) else None
    if not isinstance(text, str) or not text.strip():
        return web.json_response({"error": "text is required"}, status=400)
    try:
        delay = float(body.get("delayMinutes") or 0)
    except (TypeError, ValueError):
        delay = math.nan
    if not math.isfinite(delay) or delay > MAX_DELAY_MINUTES:
        return web.json_response(
            {"error": f"delayMinutes must be a number up to {MAX_DELAY_MINUTES}"}, status=400
        )

    store = req.app[STORE_KEY]
    adapter = req.app[ADAPTER_KEY]
    messenger = req.app[MESSENGER_KEY]

    try:
        if delay > 0:
            # Fail fast when nothing has been registered yet
            await store.load()
            req.app[SCHEDULER_KEY].schedule_in_minutes(delay, _deliver_stored, store, messenger, adapter, text)
            return web.json_response({"scheduled": True, "delayMinutes": delay}, status=202)
        await _deliver_stored(store, messenger, adapter, text)
    except ReferenceNotFoundError as e:
        return web.json_response({"error": str(e)}, status=404)
    except (CorruptReferenceError, StorageIOError) as e:
        logging.error("[ERR] notify: %s", e)
        return web.json_response({"error": str(e)}, status=500)
    except DeliveryFailedError as e:
        logging.error("[ERR] notify: %s", e)
        return web.json_response({"error": str(e)}, status=502)
    return web.json_response({"delivered": True})


async def _deliver_stored(store: FileReferenceStore, messenger: ProactiveMessenger, adapter: BotAdapter, text: str):
    reference = await store.load()
    await messenger.deliver(adapter, reference, TextMessage(text))


@routes.get("/healthz")
async def health(_):
    return web.json_response({"ok": True})


async def _on_startup(app: web.Application):
    loop = asyncio.get_running_loop()
    app[SCHEDULER_KEY].start(loop)


async def _on_cleanup(app: web.Application):
    app[SCHEDULER_KEY].shutdown()


def create_app(
    adapter: Optional[BotAdapter] = None,
    reference_path: str = config.REFERENCE_PATH,
    with_dialog: bool = config.WITH_DIALOG,
    app_id: str = config.APP_ID,
) -> web.Application:
    """Wire store, state, dialogs, bot and adapter into one aiohttp application."""
    storage = MemoryStorage()
    conversation_state = ConversationState(storage)
    user_state = UserState(storage)
    accessors = Accessors(conversation_state, user_state)
    dialogs = WizardDialogs(accessors) if with_dialog else None

    store = FileReferenceStore(reference_path)
    messenger = ProactiveMessenger(app_id, dialogs)
    bot = ProactiveBot(store, messenger, accessors, dialogs, with_dialog=with_dialog)

    if adapter is None:
        adapter = create_adapter(app_id)
    adapter.on_turn_error = make_error_handler(conversation_state)

    app = web.Application()
    app[ADAPTER_KEY] = adapter
    app[BOT_KEY] = bot
    app[STORE_KEY] = store
    app[MESSENGER_KEY] = messenger
    app[SCHEDULER_KEY] = DeliveryScheduler()
    app.add_routes(routes)
    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    logging.info("[APP] ready (with_dialog=%s, reference=%s)", with_dialog, reference_path)
    return app


def main():
    logging.basicConfig(level=config.LOG_LEVEL)
    web.run_app(create_app(), host="0.0.0.0", port=config.PORT)


if __name__ == "__main__":
    main()
