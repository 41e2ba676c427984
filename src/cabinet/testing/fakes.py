from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import discord

from ..utils import AnyEmoji, reaction_key, same_reaction

_ids = itertools.count(900_000_000_000_000_000)


def next_id() -> int:
    return next(_ids)


@dataclass
class _FakeResponse:
    status: int
    reason: str


def not_found(what: str = "Unknown Message") -> discord.NotFound:
    return discord.NotFound(_FakeResponse(404, "Not Found"), what)


def forbidden(what: str = "Missing Access") -> discord.Forbidden:
    return discord.Forbidden(_FakeResponse(403, "Forbidden"), what)


@dataclass
class FakeAsset:
    url: str = "https://cdn.discordapp.com/embed/avatars/0.png"


class FakeUser:
    """Fake Discord User for testing."""

    def __init__(self, id: int | None = None, name: str = "TestUser", bot: bool = False):
        self.id = id if id is not None else next_id()
        self.name = name
        self.display_name = name
        self.bot = bot
        self.mention = f"<@{self.id}>"
        self.display_avatar = FakeAsset()

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<FakeUser id={self.id} name={self.name}>"


class FakeRole:
    """Fake Discord Role for testing."""

    def __init__(self, id: int | None = None, name: str = "TestRole", managed: bool = False, default: bool = False):
        self.id = id if id is not None else next_id()
        self.name = name
        self.managed = managed
        self.color = discord.Color.blue()
        self.mention = f"<@&{self.id}>"
        self._default = default

    def is_default(self) -> bool:
        return self._default

    def __repr__(self) -> str:
        return f"<FakeRole id={self.id} name={self.name}>"


class FakeMember(FakeUser):
    """Fake Discord Member that records role changes."""

    def __init__(self, id: int | None = None, name: str = "TestMember", bot: bool = False, roles: list[FakeRole] | None = None):
        super().__init__(id=id, name=name, bot=bot)
        self.roles: list[FakeRole] = list(roles or [])
        self.added: list[FakeRole] = []
        self.removed: list[FakeRole] = []
        self.fail_with: Optional[Exception] = None

    async def add_roles(self, *roles: FakeRole, reason: str | None = None) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        for role in roles:
            self.added.append(role)
            if role not in self.roles:
                self.roles.append(role)

    async def remove_roles(self, *roles: FakeRole, reason: str | None = None) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        for role in roles:
            self.removed.append(role)
            if role in self.roles:
                self.roles.remove(role)


@dataclass
class FakeAttachment:
    url: str = "https://cdn.discordapp.com/attachments/1/2/file.png"
    content_type: Optional[str] = "image/png"


class FakeReaction:
    """A reaction on a message with its live user list."""

    def __init__(self, emoji: AnyEmoji, users: list[FakeUser] | None = None):
        self.emoji = emoji
        self._users: list[FakeUser] = list(users or [])

    @property
    def count(self) -> int:
        return len(self._users)

    async def users(self):
        for user in list(self._users):
            yield user


class FakePartialMessage:
    def __init__(self, channel: "FakeTextChannel", id: int):
        self.channel = channel
        self.id = id

    async def delete(self) -> None:
        if self.channel.fail_deletes:
            raise forbidden()
        if self.id not in self.channel.messages:
            raise not_found()
        self.channel.messages.pop(self.id)
        self.channel.deleted.append(self.id)


class FakeMessage:
    """Fake Discord Message for testing."""

    def __init__(
        self,
        content: str = "Test message",
        author: FakeUser | None = None,
        channel: "FakeTextChannel | None" = None,
        id: int | None = None,
        attachments: list[FakeAttachment] | None = None,
        embeds: list[discord.Embed] | None = None,
    ):
        self.id = id if id is not None else next_id()
        self.content = content
        self.author = author or FakeUser()
        self.channel = channel
        self.attachments = list(attachments or [])
        self.embeds = list(embeds or [])
        self.reactions: list[FakeReaction] = []
        self.created_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.edits: list[discord.Embed | None] = []
        self.added_reactions: list[AnyEmoji] = []
        self.reaction_user: FakeUser = FakeUser(name="Bot", bot=True)

    @property
    def guild(self) -> "FakeGuild | None":
        return self.channel.guild if self.channel is not None else None

    @property
    def jump_url(self) -> str:
        guild_id = self.guild.id if self.guild else "@me"
        channel_id = self.channel.id if self.channel else 0
        return f"https://discord.com/channels/{guild_id}/{channel_id}/{self.id}"

    def _find_reaction(self, emoji: AnyEmoji) -> Optional[FakeReaction]:
        key = reaction_key(emoji)
        for reaction in self.reactions:
            if same_reaction(reaction_key(reaction.emoji), key):
                return reaction
        return None

    def react_as(self, user: FakeUser, emoji: AnyEmoji = "⭐") -> None:
        reaction = self._find_reaction(emoji)
        if reaction is None:
            reaction = FakeReaction(emoji)
            self.reactions.append(reaction)
        if all(u.id != user.id for u in reaction._users):
            reaction._users.append(user)

    def unreact_as(self, user: FakeUser, emoji: AnyEmoji = "⭐") -> None:
        reaction = self._find_reaction(emoji)
        if reaction is None:
            return
        reaction._users = [u for u in reaction._users if u.id != user.id]
        if not reaction._users:
            self.reactions.remove(reaction)

    async def add_reaction(self, emoji: AnyEmoji) -> None:
        self.added_reactions.append(emoji)
        self.react_as(self.reaction_user, emoji)

    async def edit(self, *, embed: discord.Embed | None = None, **kwargs: Any) -> "FakeMessage":
        self.edits.append(embed)
        self.embeds = [embed] if embed is not None else []
        return self

    def __repr__(self) -> str:
        return f"<FakeMessage id={self.id}>"


class FakeTextChannel:
    """Fake Discord TextChannel holding its own messages."""

    def __init__(self, id: int | None = None, name: str = "test-channel", guild: "FakeGuild | None" = None):
        self.id = id if id is not None else next_id()
        self.name = name
        self.mention = f"<#{self.id}>"
        self.guild = guild
        self.messages: dict[int, FakeMessage] = {}
        self.sent: list[FakeMessage] = []
        self.deleted: list[int] = []
        self.fetches = 0
        self.forbidden = False
        self.fail_deletes = False

    def add_message(self, message: FakeMessage) -> FakeMessage:
        message.channel = self
        self.messages[message.id] = message
        return message

    async def send(self, content: str | None = None, *, embed: discord.Embed | None = None, **kwargs: Any) -> FakeMessage:
        message = FakeMessage(content=content or "", author=FakeUser(name="Bot", bot=True), channel=self)
        if embed is not None:
            message.embeds = [embed]
        self.messages[message.id] = message
        self.sent.append(message)
        return message

    async def fetch_message(self, message_id: int) -> FakeMessage:
        self.fetches += 1
        if self.forbidden:
            raise forbidden()
        try:
            return self.messages[message_id]
        except KeyError:
            raise not_found() from None

    def get_partial_message(self, message_id: int) -> FakePartialMessage:
        return FakePartialMessage(self, message_id)

    def __repr__(self) -> str:
        return f"<FakeTextChannel id={self.id} name={self.name}>"


@dataclass
class FakeEmoji:
    id: int
    name: str
    animated: bool = False
    available: bool = True


class FakeGuild:
    """Fake Discord Guild for testing."""

    def __init__(self, id: int | None = None, name: str = "TestGuild"):
        self.id = id if id is not None else next_id()
        self.name = name
        self.default_role = FakeRole(id=self.id, name="@everyone", default=True)
        self.text_channels: list[FakeTextChannel] = []
        self.roles: list[FakeRole] = [self.default_role]
        self.members: list[FakeMember] = []
        self.emojis: list[FakeEmoji] = []

    def add_channel(self, name: str, id: int | None = None) -> FakeTextChannel:
        channel = FakeTextChannel(id=id, name=name, guild=self)
        self.text_channels.append(channel)
        return channel

    def add_role(self, name: str, id: int | None = None, managed: bool = False) -> FakeRole:
        role = FakeRole(id=id, name=name, managed=managed)
        self.roles.append(role)
        return role

    def add_member(self, name: str = "Member", id: int | None = None, bot: bool = False) -> FakeMember:
        member = FakeMember(id=id, name=name, bot=bot, roles=[self.default_role])
        self.members.append(member)
        return member

    def get_channel(self, channel_id: int) -> FakeTextChannel | None:
        return next((c for c in self.text_channels if c.id == channel_id), None)

    def get_member(self, member_id: int) -> FakeMember | None:
        return next((m for m in self.members if m.id == member_id), None)

    async def fetch_member(self, member_id: int) -> FakeMember:
        member = self.get_member(member_id)
        if member is None:
            raise not_found("Unknown Member")
        return member

    def get_role(self, role_id: int) -> FakeRole | None:
        return next((r for r in self.roles if r.id == role_id), None)

    def __repr__(self) -> str:
        return f"<FakeGuild id={self.id} name={self.name}>"


class FakeBot:
    """Just enough of commands.Bot for the reconcilers and the web API."""

    def __init__(self, guilds: list[FakeGuild] | None = None):
        self.guilds: list[FakeGuild] = list(guilds or [])
        self.user = FakeUser(name="Cabinet", bot=True)
        self.listeners: dict[str, list[Callable[..., Any]]] = {}

    def get_guild(self, guild_id: int) -> FakeGuild | None:
        return next((g for g in self.guilds if g.id == guild_id), None)

    def add_listener(self, func: Callable[..., Any], name: str) -> None:
        self.listeners.setdefault(name, []).append(func)

    def remove_listener(self, func: Callable[..., Any], name: str) -> None:
        if func in self.listeners.get(name, []):
            self.listeners[name].remove(func)

    async def dispatch(self, name: str, *args: Any) -> None:
        for listener in list(self.listeners.get(name, [])):
            await listener(*args)


@dataclass
class FakeReactionPayload:
    """Mirror of discord.RawReactionActionEvent."""
    message_id: int
    user_id: int
    emoji: discord.PartialEmoji
    guild_id: Optional[int] = None
    channel_id: int = 0
    member: Any = None
    event_type: str = "REACTION_ADD"

    @classmethod
    def for_reaction(
        cls,
        message: FakeMessage,
        user: FakeUser,
        emoji: str = "⭐",
        event_type: str = "REACTION_ADD",
    ) -> "FakeReactionPayload":
        return cls(
            message_id=message.id,
            user_id=user.id,
            emoji=discord.PartialEmoji.from_str(emoji),
            guild_id=message.guild.id if message.guild else None,
            channel_id=message.channel.id if message.channel else 0,
            event_type=event_type,
        )


class FakeInteractionResponse:
    """Fake InteractionResponse recording what a command replied."""

    def __init__(self) -> None:
        self._responded = False
        self.deferred = False
        self.messages: list[dict[str, Any]] = []

    async def send_message(self, content: str | None = None, **kwargs: Any) -> None:
        self._responded = True
        self.messages.append({"content": content, **kwargs})

    async def defer(self, ephemeral: bool = False, thinking: bool = False) -> None:
        self._responded = True
        self.deferred = True

    def is_done(self) -> bool:
        return self._responded


class FakeFollowup:
    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def send(self, content: str | None = None, **kwargs: Any) -> None:
        self.messages.append({"content": content, **kwargs})


class FakeInteraction:
    """Fake Discord Interaction for calling app command callbacks directly."""

    def __init__(self, guild: FakeGuild | None = None, user: FakeUser | None = None):
        self.guild = guild
        self.guild_id = guild.id if guild is not None else None
        self.user = user or FakeUser()
        self.response = FakeInteractionResponse()
        self.followup = FakeFollowup()
        self.command = None

    def replies(self) -> list[dict[str, Any]]:
        """Everything sent back, initial response first."""
        return self.response.messages + self.followup.messages
