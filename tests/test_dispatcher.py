"""Tests for interaction dispatch and the command handlers."""

from types import SimpleNamespace

import discord
import pytest
import pytest_asyncio

from bot.dispatcher import CommandSpec
from bot.initializer import build_dispatcher
from bot.replies import success_reply
from bot.requests import Actor, ButtonRequest, CommandRequest, ModalRequest, Origin, parse_interaction
from core.constants import CustomIds
from core.exceptions import ValidationError

from conftest import (
    BUYER_USER_ID,
    GUILD_ID,
    PREMIUM_ROLE_ID,
    PROMPT_CHANNEL_ID,
    STAFF_ROLE_ID,
    STAFF_USER_ID,
    insert_profile,
    make_admin,
    queued_audit_titles,
)

ORIGIN = Origin(guild_id=GUILD_ID, guild_name="Atlas HQ", channel_id="400000000000000001")
BUYER = Actor(id=BUYER_USER_ID, username="buyer", tag="buyer#0001")
STAFF = Actor(id=STAFF_USER_ID, username="staff", tag="staff#0001")


def command(name, actor=BUYER, **options):
    return CommandRequest(actor=actor, origin=ORIGIN, name=name, options=options)


@pytest_asyncio.fixture
async def wired(config, gateway, audit, db_pool):
    gateway.member_roles[STAFF_USER_ID] = [PREMIUM_ROLE_ID, STAFF_ROLE_ID]
    dispatcher, deps = build_dispatcher(config, gateway, db_pool, audit)
    return dispatcher, deps


@pytest_asyncio.fixture
async def dispatcher(wired):
    return wired[0]


@pytest_asyncio.fixture
async def connected(db_pool):
    await insert_profile(
        db_pool,
        "acct-buyer",
        "buyer",
        display_name="Buyer",
        badges=["verified"],
        discord_user_id=BUYER_USER_ID,
    )


# Routing


def test_command_payload_lists_every_command_in_order(dispatcher):
    names = [item["name"] for item in dispatcher.command_payload()]
    assert names == [
        "site", "ping", "support", "help",
        "premium", "premiuminfo", "give-premium", "remove-premium", "premium-status",
        "claim-ticket", "close-ticket",
        "connect", "account", "editor", "dashboard", "profile", "whois", "admin",
    ]
    close = next(item for item in dispatcher.command_payload() if item["name"] == "close-ticket")
    assert close["options"] == [
        {"type": 3, "name": "reason", "description": "Optional reason for closing the ticket", "required": False}
    ]


def test_duplicate_registration_is_rejected(dispatcher):
    with pytest.raises(ValueError):
        dispatcher.command("ping", CommandSpec(lambda request, context: None, "again"))


@pytest.mark.asyncio
async def test_every_command_is_audited(dispatcher, audit):
    reply = await dispatcher.dispatch(command("site"))
    assert reply.title == "Atlas"
    [entry] = list(audit._queue._queue)
    assert entry.title == "Command Received"
    assert entry.description == "/site"
    assert dict(entry.fields) == {
        "User": f"buyer#0001 ({BUYER_USER_ID})",
        "Guild": "Atlas HQ",
        "Channel": "<#400000000000000001>",
    }


@pytest.mark.asyncio
async def test_unknown_command_for_unlinked_user_prompts_connect(dispatcher):
    reply = await dispatcher.dispatch(command("frobnicate"))
    assert reply.title == "Connect Atlas To Discord"
    assert reply.buttons[0].url == "https://atlas.test/api/integrations/discord/connect"


@pytest.mark.asyncio
async def test_unknown_command_for_linked_user(dispatcher, connected):
    reply = await dispatcher.dispatch(command("frobnicate"))
    assert reply.title == "Unknown Command"


@pytest.mark.asyncio
async def test_stale_button_and_modal(dispatcher):
    button = await dispatcher.dispatch(ButtonRequest(actor=BUYER, origin=ORIGIN, custom_id="old_button_v0"))
    assert button.title == "Unsupported Action"
    modal = await dispatcher.dispatch(ModalRequest(actor=BUYER, origin=ORIGIN, custom_id="old_modal_v0"))
    assert modal.title == "Unsupported Modal"


@pytest.mark.asyncio
async def test_role_gated_command_denied_with_role_names(dispatcher):
    reply = await dispatcher.dispatch(command("give-premium", handle="buyer"))
    assert reply.title == "Access Denied"
    assert reply.description == f"/give-premium requires <@&{PREMIUM_ROLE_ID}>."


@pytest.mark.asyncio
async def test_account_commands_require_a_link(dispatcher):
    reply = await dispatcher.dispatch(command("editor"))
    assert reply.title == "Connect Atlas To Discord"


@pytest.mark.asyncio
async def test_handler_exception_becomes_generic_error(dispatcher, audit):
    async def explode(request, context):
        raise RuntimeError("kaboom")

    dispatcher.command("explode", CommandSpec(explode, "Always fails"))

    reply = await dispatcher.dispatch(command("explode"))

    assert reply.title == "Something Went Wrong"
    assert "kaboom" not in reply.description
    errors = [e for e in list(audit._queue._queue) if e.title == "Command Handler Error"]
    assert dict(errors[0].fields)["Error"] == "kaboom"


@pytest.mark.asyncio
async def test_validation_error_uses_its_title(dispatcher):
    async def strict(request, context):
        raise ValidationError("Bad input.", title="Invalid Input")

    dispatcher.command("strict", CommandSpec(strict, "Validates"))
    reply = await dispatcher.dispatch(command("strict"))
    assert (reply.title, reply.description) == ("Invalid Input", "Bad input.")


# General and account handlers


@pytest.mark.asyncio
async def test_ping_reports_gateway_latency(dispatcher):
    reply = await dispatcher.dispatch(command("ping"))
    assert "**42ms**" in reply.description


@pytest.mark.asyncio
async def test_help_for_connected_admin(dispatcher, connected, db_pool):
    await make_admin(db_pool, "acct-buyer")
    reply = await dispatcher.dispatch(command("help"))
    assert reply.embeds[0].field_value("Connected account") == "@buyer (Admin)"


@pytest.mark.asyncio
async def test_connect_shows_linked_account(dispatcher, connected):
    reply = await dispatcher.dispatch(command("connect"))
    assert reply.title == "Atlas Connected"
    assert "Role: Creator" in reply.embeds[0].field_value("Account state")


@pytest.mark.asyncio
async def test_profile_validates_handle(dispatcher, connected):
    bad = await dispatcher.dispatch(command("profile", handle="No Spaces"))
    assert bad.title == "Invalid Handle"
    good = await dispatcher.dispatch(command("profile", handle="@Someone"))
    assert good.title == "Profile @someone"
    assert "https://atlas.test/@someone" in good.description


@pytest.mark.asyncio
async def test_whois_hides_admin_data_from_non_admins(dispatcher, connected, db_pool):
    await insert_profile(db_pool, "acct-target", "target", display_name="Target")
    async with db_pool.connection() as conn:
        await conn.execute("INSERT INTO links (user_id, url) VALUES ('acct-target', 'https://a'), ('acct-target', 'https://b')")
        await conn.commit()

    reply = await dispatcher.dispatch(command("whois", handle="target"))

    assert reply.title == "Whois @target"
    assert "Links: 2" in reply.embeds[0].field_value("Stats")
    assert reply.embeds[0].field_value("Admin Data") is None


@pytest.mark.asyncio
async def test_whois_errors(dispatcher, connected):
    invalid = await dispatcher.dispatch(command("whois", handle="x"))
    assert invalid.title == "Invalid Handle"
    missing = await dispatcher.dispatch(command("whois", handle="nobody_here"))
    assert missing.title == "Profile Not Found"


@pytest.mark.asyncio
async def test_admin_requires_admin_account(dispatcher, connected, db_pool):
    denied = await dispatcher.dispatch(command("admin"))
    assert denied.title == "Admin Access Required"
    await make_admin(db_pool, "acct-buyer")
    allowed = await dispatcher.dispatch(command("admin"))
    assert allowed.title == "Atlas Admin Tools"


# Premium and ticket handlers


@pytest.mark.asyncio
async def test_give_premium_grants_and_audits(dispatcher, connected, audit):
    reply = await dispatcher.dispatch(command("give-premium", actor=STAFF, handle="@buyer"))
    assert reply.title == "Premium Granted"
    assert reply.embeds[0].field_value("Badges") == "verified, pro"
    assert "Premium Granted" in queued_audit_titles(audit)

    again = await dispatcher.dispatch(command("give-premium", actor=STAFF, handle="buyer"))
    assert again.title == "Premium Already Active"


@pytest.mark.asyncio
async def test_premium_status_for_unknown_handle(dispatcher):
    reply = await dispatcher.dispatch(command("premium-status", actor=STAFF, handle="ghost_user"))
    assert reply.title == "Profile Not Found"


@pytest.mark.asyncio
async def test_premium_posts_prompt(dispatcher, gateway):
    reply = await dispatcher.dispatch(command("premium", actor=STAFF))
    assert reply.title == "Premium Embed Posted"
    assert len(gateway.messages_to(PROMPT_CHANNEL_ID)) == 1


@pytest.mark.asyncio
async def test_open_button_returns_purchase_modal(dispatcher):
    reply = await dispatcher.dispatch(
        ButtonRequest(actor=BUYER, origin=ORIGIN, custom_id=CustomIds.OPEN_TICKET_BUTTON)
    )
    assert reply.modal is not None
    assert reply.modal.custom_id == CustomIds.PREMIUM_MODAL


@pytest.mark.asyncio
async def test_modal_with_bad_payment_method_creates_nothing(dispatcher, gateway):
    reply = await dispatcher.dispatch(
        ModalRequest(
            actor=BUYER,
            origin=ORIGIN,
            custom_id=CustomIds.PREMIUM_MODAL,
            fields={CustomIds.PAYMENT_METHOD_FIELD: "zelle", CustomIds.PAYMENT_TAG_FIELD: "@me"},
        )
    )
    assert reply.title == "Invalid Payment Method"
    assert gateway.created == []


@pytest.mark.asyncio
async def test_modal_submission_opens_ticket(dispatcher, gateway):
    reply = await dispatcher.dispatch(
        ModalRequest(
            actor=BUYER,
            origin=ORIGIN,
            custom_id=CustomIds.PREMIUM_MODAL,
            fields={CustomIds.PAYMENT_METHOD_FIELD: "PayPal", CustomIds.PAYMENT_TAG_FIELD: "buyer@example.com"},
        )
    )
    assert reply.title == "Ticket Submitted"
    assert len(gateway.created) == 1


@pytest.mark.asyncio
async def test_close_button_deletes_channel_after_reply(dispatcher, gateway):
    gateway.add_ticket_channel(ORIGIN.channel_id)

    reply = await dispatcher.dispatch(
        ButtonRequest(actor=STAFF, origin=ORIGIN, custom_id=CustomIds.CLOSE_TICKET_BUTTON)
    )

    assert reply.title == "Ticket Closed"
    assert gateway.deleted == []
    await reply.run_after()
    assert gateway.deleted == [(ORIGIN.channel_id, "Closed by staff#0001: Closed from ticket button.")]


@pytest.mark.asyncio
async def test_claim_in_wrong_channel(dispatcher):
    reply = await dispatcher.dispatch(command("claim-ticket", actor=STAFF))
    assert reply.title == "Invalid Channel"


@pytest.mark.asyncio
async def test_run_after_swallows_failures():
    reply = success_reply("Done", "ok")

    async def broken():
        raise RuntimeError("gone")

    reply.after.append(broken)
    await reply.run_after()


# Interaction parsing


class FakeUser:
    def __init__(self, user_id, name):
        self.id = user_id
        self.name = name

    def __str__(self):
        return self.name


def _interaction(kind, data, user_id=int(BUYER_USER_ID)):
    return SimpleNamespace(
        type=kind,
        data=data,
        user=FakeUser(user_id, "buyer"),
        guild=SimpleNamespace(name="Atlas HQ"),
        guild_id=int(GUILD_ID),
        channel_id=400000000000000001,
    )


def test_parse_command_interaction():
    request = parse_interaction(
        _interaction(
            discord.InteractionType.application_command,
            {"name": "whois", "options": [{"name": "handle", "type": 3, "value": "@buyer"}]},
        )
    )
    assert isinstance(request, CommandRequest)
    assert request.option("handle") == "@buyer"
    assert request.origin.guild_id == GUILD_ID


def test_parse_modal_interaction_reads_fields():
    request = parse_interaction(
        _interaction(
            discord.InteractionType.modal_submit,
            {
                "custom_id": CustomIds.PREMIUM_MODAL,
                "components": [
                    {"type": 1, "components": [{"type": 4, "custom_id": "payment_method", "value": "venmo"}]},
                    {"type": 1, "components": [{"type": 4, "custom_id": "notes", "value": ""}]},
                ],
            },
        )
    )
    assert isinstance(request, ModalRequest)
    assert request.fields == {"payment_method": "venmo", "notes": ""}


def test_parse_rejects_malformed_interactions():
    with pytest.raises(ValidationError):
        parse_interaction(_interaction(discord.InteractionType.application_command, {}))
    with pytest.raises(ValidationError):
        parse_interaction(_interaction(discord.InteractionType.ping, {"name": "x"}))
    with pytest.raises(ValidationError):
        parse_interaction(SimpleNamespace(type=discord.InteractionType.component, data=None))
