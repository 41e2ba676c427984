from __future__ import annotations

import hmac
import json
import logging
import os
from typing import Any, Awaitable, Callable, Optional

import discord
from aiohttp import web
from discord.ext import commands

from .config import Settings
from .database import get_database_info
from .observability import ObservabilityManager
from .services.reaction_roles import ReactionRoleManager
from .services.starboard_store import StarboardStore
from .utils import reaction_key

log = logging.getLogger("cabinet.web")

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

BOT_KEY = web.AppKey("bot", commands.Bot)
SETTINGS_KEY = web.AppKey("settings", Settings)
MANAGER_KEY = web.AppKey("reaction_roles", ReactionRoleManager)
STARBOARD_KEY = web.AppKey("starboard_store", StarboardStore)
OBSERVABILITY_KEY = web.AppKey("observability", ObservabilityManager)

API_KEY_HEADER = "X-API-Key"
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": f"Content-Type, {API_KEY_HEADER}",
}


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _parse_id(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


async def _json_body(request: web.Request) -> dict[str, Any]:
    # auth_middleware may already have read the body; aiohttp caches it
    if not request.body_exists:
        return {}
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


async def _request_key(request: web.Request) -> str:
    key = request.headers.get(API_KEY_HEADER) or request.query.get("key")
    if key:
        return key
    if request.content_type == "application/json":
        body = await _json_body(request)
        value = body.get("key")
        if isinstance(value, str):
            return value
    return ""


@web.middleware
async def cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(CORS_HEADERS)
        raise
    response.headers.update(CORS_HEADERS)
    return response


@web.middleware
async def auth_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Shared-secret check for /api, plus the IP allow-list for /api/admin."""
    if not request.path.startswith("/api/"):
        return await handler(request)

    settings = request.app[SETTINGS_KEY]
    if settings.api_key:
        supplied = await _request_key(request)
        if not hmac.compare_digest(supplied.encode(), settings.api_key.encode()):
            log.warning("Rejected %s %s from %s: bad API key", request.method, request.path, request.remote)
            return _error("Unauthorized", 401)

    if request.path.startswith("/api/admin/") and request.remote not in settings.admin_ips:
        log.warning("Rejected admin request %s from %s", request.path, request.remote)
        return _error("Forbidden", 403)

    return await handler(request)


@web.middleware
async def observability_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    observability = request.app[OBSERVABILITY_KEY]
    resource = request.match_info.route.resource
    route = resource.canonical if resource is not None else request.path
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        observability.log_api_call(request.method, route, exc.status)
        raise
    observability.log_api_call(request.method, route, response.status)
    return response


async def health(_: web.Request) -> web.Response:
    return web.json_response({"ok": True, "service": "cabinet"})


async def index(request: web.Request) -> web.StreamResponse:
    path = os.path.join(request.app[SETTINGS_KEY].static_dir, "index.html")
    if not os.path.isfile(path):
        return _error("Dashboard not installed", 404)
    return web.FileResponse(path)


async def list_reaction_roles(request: web.Request) -> web.Response:
    manager = request.app[MANAGER_KEY]
    try:
        bindings = await manager.store.list_all()
    except Exception:
        log.exception("Failed to get reaction roles")
        return _error("Failed to get reaction roles", 500)
    return web.json_response([b.to_dict() for b in bindings])


async def create_reaction_role(request: web.Request) -> web.Response:
    body = await _json_body(request)
    message_id = _parse_id(body.get("messageId"))
    role_id = _parse_id(body.get("roleId"))
    reaction = body.get("reaction")
    if message_id is None or role_id is None or not isinstance(reaction, str) or not reaction.strip():
        return _error("Missing required fields", 400)

    key = reaction_key(discord.PartialEmoji.from_str(reaction.strip()))
    try:
        binding = await request.app[MANAGER_KEY].add_binding(message_id, role_id, key)
    except Exception:
        log.exception("Failed to create reaction role")
        return _error("Failed to create reaction role", 500)

    return web.json_response(
        {
            "success": True,
            "message": "Reaction role created successfully",
            "reactionRole": binding.to_dict(),
        },
        status=201,
    )


async def delete_reaction_role(request: web.Request) -> web.Response:
    binding_id = _parse_id(request.match_info["id"])
    if binding_id is None:
        return _error("Invalid reaction role id", 400)
    manager = request.app[MANAGER_KEY]
    try:
        binding = await manager.store.get(binding_id)
        if binding is None:
            return _error("Reaction role not found", 404)
        await manager.delete_binding(binding.id)
    except Exception:
        log.exception("Failed to delete reaction role %s", binding_id)
        return _error("Failed to delete reaction role", 500)

    log.info("Deleted reaction role %s (message=%s role=%s)", binding.id, binding.message_id, binding.role_id)
    return web.json_response({"success": True, "message": "Reaction role deleted successfully"})


async def starboard_top(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS_KEY]
    guild_id = _parse_id(request.query.get("guildId", ""))
    limit = _parse_id(request.query.get("limit", "")) or settings.starboard_top_limit
    try:
        entries = await request.app[STARBOARD_KEY].top(guild_id, min(limit, 50))
    except Exception:
        log.exception("Failed to read starboard")
        return _error("Failed to read starboard", 500)
    return web.json_response([e.to_dict() for e in entries])


async def discord_resources(request: web.Request) -> web.Response:
    bot = request.app[BOT_KEY]
    guilds = [
        {
            "id": str(guild.id),
            "name": guild.name,
            "roles": [
                {"id": str(role.id), "name": role.name, "color": str(role.color)}
                for role in guild.roles
                if not role.managed and not role.is_default()
            ],
            "channels": [{"id": str(channel.id), "name": channel.name} for channel in guild.text_channels],
        }
        for guild in bot.guilds
    ]
    return web.json_response(guilds)


def _get_guild(request: web.Request) -> Optional[discord.Guild]:
    guild_id = _parse_id(request.match_info["guild_id"])
    if guild_id is None:
        return None
    return request.app[BOT_KEY].get_guild(guild_id)


async def guild_emojis(request: web.Request) -> web.Response:
    guild = _get_guild(request)
    if guild is None:
        return _error("Guild not found", 404)
    return web.json_response(
        [
            {"id": str(emoji.id), "name": emoji.name, "animated": emoji.animated, "available": emoji.available}
            for emoji in guild.emojis
        ]
    )


async def admin_status(request: web.Request) -> web.Response:
    observability = request.app[OBSERVABILITY_KEY]
    manager = request.app[MANAGER_KEY]
    try:
        database = await get_database_info(request.app[SETTINGS_KEY].sqlite_path)
    except Exception:
        log.exception("Failed to read database info")
        database = None
    return web.json_response(
        {
            "health": observability.get_health_status(),
            "stats": observability.get_stats(),
            "reactionRoles": {"bindings": len(manager.bindings), "listenersAttached": manager.attached},
            "database": database,
        }
    )


async def admin_members(request: web.Request) -> web.Response:
    guild = _get_guild(request)
    if guild is None:
        return _error("Guild not found", 404)
    return web.json_response(
        [
            {
                "id": str(member.id),
                "name": str(member),
                "displayName": member.display_name,
                "bot": member.bot,
                "roles": [str(role.id) for role in member.roles if not role.is_default()],
            }
            for member in guild.members
        ]
    )


async def _resolve_member(guild: discord.Guild, raw_member_id: str) -> Optional[discord.Member]:
    member_id = _parse_id(raw_member_id)
    if member_id is None:
        return None
    member = guild.get_member(member_id)
    if member is not None:
        return member
    try:
        return await guild.fetch_member(member_id)
    except discord.HTTPException:
        return None


async def _change_member_role(request: web.Request, role_id: Optional[int], *, grant: bool) -> web.Response:
    guild = _get_guild(request)
    if guild is None:
        return _error("Guild not found", 404)
    member = await _resolve_member(guild, request.match_info["member_id"])
    if member is None:
        return _error("Member not found", 404)
    role = guild.get_role(role_id) if role_id is not None else None
    if role is None:
        return _error("Role not found", 404)

    has_role = any(r.id == role.id for r in member.roles)
    if has_role == grant:
        return web.json_response({"success": True, "changed": False})

    try:
        if grant:
            await member.add_roles(role, reason="Admin API")
        else:
            await member.remove_roles(role, reason="Admin API")
    except discord.Forbidden:
        return _error("Missing permissions to manage that role", 403)
    except discord.HTTPException:
        log.exception("Failed to update roles for member %s", member.id)
        return _error("Failed to update member roles", 500)

    log.info("Admin API %s role %s for member %s", "granted" if grant else "revoked", role.id, member.id)
    return web.json_response({"success": True, "changed": True})


async def admin_grant_role(request: web.Request) -> web.Response:
    body = await _json_body(request)
    return await _change_member_role(request, _parse_id(body.get("roleId")), grant=True)


async def admin_revoke_role(request: web.Request) -> web.Response:
    return await _change_member_role(request, _parse_id(request.match_info["role_id"]), grant=False)


def create_app(
    bot: commands.Bot,
    settings: Settings,
    manager: ReactionRoleManager,
    starboard_store: StarboardStore,
    observability: ObservabilityManager,
) -> web.Application:
    app = web.Application(middlewares=[cors_middleware, observability_middleware, auth_middleware])
    app[BOT_KEY] = bot
    app[SETTINGS_KEY] = settings
    app[MANAGER_KEY] = manager
    app[STARBOARD_KEY] = starboard_store
    app[OBSERVABILITY_KEY] = observability

    app.router.add_get("/", index)
    app.router.add_get("/healthz", health)

    app.router.add_get("/api/reaction-roles", list_reaction_roles)
    app.router.add_post("/api/reaction-roles", create_reaction_role)
    app.router.add_delete("/api/reaction-roles/{id}", delete_reaction_role)
    app.router.add_get("/api/starboard", starboard_top)
    app.router.add_get("/api/discord/resources", discord_resources)
    app.router.add_get("/api/discord/guild/{guild_id}/emojis", guild_emojis)

    app.router.add_get("/api/admin/status", admin_status)
    app.router.add_get("/api/admin/guild/{guild_id}/members", admin_members)
    app.router.add_post("/api/admin/guild/{guild_id}/members/{member_id}/roles", admin_grant_role)
    app.router.add_delete("/api/admin/guild/{guild_id}/members/{member_id}/roles/{role_id}", admin_revoke_role)

    if os.path.isdir(settings.static_dir):
        app.router.add_static("/static", settings.static_dir)

    return app


async def start_web_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    log.info("Web API listening on %s:%s", host, port)
    return runner
