from __future__ import annotations

import asyncio
import logging
import signal

from aiohttp import web
from dotenv import load_dotenv

from .bot import CabinetBot
from .config import load_settings
from .logging_setup import setup_logging
from .web import create_app, start_web_server

log = logging.getLogger("cabinet.main")


async def main_async() -> None:
    load_dotenv()
    settings = load_settings()
    setup_logging(settings.log_level)

    bot = CabinetBot(settings)

    runner: web.AppRunner | None = None
    if settings.web_enabled:
        app = create_app(bot, settings, bot.reaction_roles, bot.starboard_store, bot.observability)
        runner = await start_web_server(app, settings.web_host, settings.web_port)
        bot.observability.log_startup_event("web", "OK", {"port": settings.web_port})
    else:
        bot.observability.log_startup_event("web", "OK", {"enabled": False})

    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows / limited environments
            pass

    try:
        async with bot:
            bot_task = asyncio.create_task(bot.start(settings.token), name="cabinet-bot")
            stop_task = asyncio.create_task(stop_event.wait(), name="cabinet-stop")
            done, pending = await asyncio.wait({bot_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

            if stop_event.is_set():
                log.info("Shutdown signal received; closing bot...")
                await bot.close()

            for t in pending:
                t.cancel()
            if bot_task in done and bot_task.exception() is not None:
                raise bot_task.exception()
    finally:
        if runner is not None:
            await runner.cleanup()


def main() -> None:
    asyncio.run(main_async())


if __name__ == "__main__":
    main()
