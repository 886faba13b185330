"""
Turns provider webhook envelopes into rows.

Each envelope names an instance and an event; its ``data`` is one element
or a list of them. Elements are processed independently: a broken element
is logged and counted, and its siblings still get stored.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from chathub.core.errors import DuplicateInstanceNameError
from chathub.core.logging import get_logger
from chathub.models.instance import Instance, InstanceStatus
from chathub.models.message import MULTIMEDIA_TYPES, Message
from chathub.realtime.hub import RealtimeHub, instance_group
from chathub.repositories.chats import ChatRepository
from chathub.repositories.contacts import ContactRepository
from chathub.repositories.instances import InstanceRepository
from chathub.repositories.messages import MessageRepository
from chathub.repositories.users import UserRepository
from chathub.schemas.entities import ChatCreate, ContactCreate, InstanceCreate, MessageCreate
from chathub.schemas.webhook import WebhookEnvelope
from chathub.services.media import MediaFetcher

logger = get_logger(__name__)

MESSAGES_UPSERT = "messages.upsert"
MESSAGES_UPDATE = "messages.update"
SEND_MESSAGE = "send.message"
CONTACTS_UPDATE = "contacts.update"
CONTACTS_UPSERT = "contacts.upsert"
CHATS_UPDATE = "chats.update"
CHATS_UPSERT = "chats.upsert"
PRESENCE_UPDATE = "presence.update"
CONNECTION_UPDATE = "connection.update"


class SkipItem(Exception):
    """Element lacks the fields needed to store it."""


def normalize_event_name(event: str) -> str:
    """``MESSAGES_UPSERT`` and ``messages.upsert`` name the same event."""
    return event.strip().lower().replace("_", ".")


def extract_content(message: Optional[Dict[str, Any]], message_type: Optional[str]) -> str:
    """Human readable summary of a message body; the first matching kind wins."""
    if not message:
        return ""

    if message.get("conversation"):
        return message["conversation"]
    if message.get("extendedTextMessage"):
        return message["extendedTextMessage"].get("text") or ""
    if message.get("imageMessage"):
        return f"[Imagen] {message['imageMessage'].get('caption') or ''}".strip()
    if message.get("videoMessage"):
        return f"[Video] {message['videoMessage'].get('caption') or ''}".strip()
    if message.get("documentMessage"):
        return f"[Documento] {message['documentMessage'].get('fileName') or ''}".strip()
    if message.get("audioMessage"):
        return "[Audio]"
    if message.get("stickerMessage"):
        return "[Sticker]"
    return f"[{message_type or 'Mensaje'}]"


def coerce_timestamp(value: Any) -> Optional[int]:
    """Epoch seconds from an int, a numeric string or a protobuf long."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return None
    if isinstance(value, dict) and "low" in value:
        low = int(value.get("low") or 0) & 0xFFFFFFFF
        high = int(value.get("high") or 0)
        return (high << 32) | low
    return None


def message_event_payload(message: Message) -> Dict[str, Any]:
    """Fields pushed to dashboards for a stored message; no raw payload, no local path."""
    return {
        "id": message.id,
        "remote_jid": message.remote_jid,
        "participant": message.participant,
        "push_name": message.push_name,
        "message_type": message.message_type,
        "message_timestamp": message.message_timestamp,
        "owner": message.owner,
        "source": message.source,
        "content": message.content,
        "media_type": message.media_type,
        "media_path": message.media_path,
        "media_mimetype": message.media_mimetype,
        "media_downloaded": bool(message.media_downloaded),
    }


@dataclass
class NormalizeResult:
    event: str
    processed: int = 0
    skipped: int = 0
    failed: int = 0


class WebhookNormalizer:
    """
    Dispatches one webhook envelope to the matching handler.

    The session, hub and media fetcher are passed in by the caller; the
    normalizer keeps no state between envelopes.
    """

    def __init__(
        self,
        db: Session,
        hub: Optional[RealtimeHub] = None,
        media_fetcher: Optional[MediaFetcher] = None,
        default_owner_email: Optional[str] = None,
        group: str = "admin",
    ):
        self.db = db
        self.hub = hub
        self.media_fetcher = media_fetcher
        self.default_owner_email = default_owner_email
        self.group = group

        self.instances = InstanceRepository(db)
        self.contacts = ContactRepository(db)
        self.chats = ChatRepository(db)
        self.messages = MessageRepository(db)

        self._handlers: Dict[str, Callable[[Dict[str, Any], WebhookEnvelope], None]] = {
            MESSAGES_UPSERT: self._store_message,
            SEND_MESSAGE: self._store_message,
            CONTACTS_UPDATE: self._store_contact,
            CONTACTS_UPSERT: self._store_contact,
            CHATS_UPDATE: self._store_chat,
            CHATS_UPSERT: self._store_chat,
            PRESENCE_UPDATE: self._log_presence,
            MESSAGES_UPDATE: self._update_message_status,
            CONNECTION_UPDATE: self._update_connection_state,
        }

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def process(self, envelope: WebhookEnvelope) -> NormalizeResult:
        """
        Store everything the envelope carries.

        Store errors while resolving the instance propagate to the caller;
        errors on individual elements are caught and counted.
        """
        event = normalize_event_name(envelope.event)
        result = NormalizeResult(event=event)

        self.resolve_instance(envelope.instance)

        handler = self._handlers.get(event)
        if handler is None:
            logger.info("Unhandled webhook event", extra={"extra_data": {"event": envelope.event, "instance": envelope.instance}})
            return result

        for item in envelope.items():
            if not isinstance(item, dict):
                logger.warning("Webhook element is not an object", extra={"extra_data": {"event": event}})
                result.skipped += 1
                continue
            try:
                handler(item, envelope)
                result.processed += 1
            except SkipItem as exc:
                logger.warning(str(exc), extra={"extra_data": {"event": event, "instance": envelope.instance}})
                result.skipped += 1
            except OperationalError:
                # The store itself is gone; nothing else will succeed
                self.db.rollback()
                raise
            except Exception:
                self.db.rollback()
                logger.exception("Failed to process webhook element", extra={"extra_data": {"event": event, "instance": envelope.instance}})
                result.failed += 1

        logger.info(
            "Webhook processed",
            extra={"extra_data": {
                "event": event,
                "instance": envelope.instance,
                "processed": result.processed,
                "skipped": result.skipped,
                "failed": result.failed,
            }},
        )
        return result

    def resolve_instance(self, name: str) -> Instance:
        """Return the named instance, creating it for the default owner on first sight."""
        instance = self.instances.get_by_name(name)
        if instance is not None:
            return instance

        owner_id = None
        if self.default_owner_email:
            owner = UserRepository(self.db).get_by_email(self.default_owner_email)
            owner_id = owner.id if owner else None

        try:
            instance = self.instances.create(InstanceCreate(name=name, user_id=owner_id))
            logger.info("Instance auto-created", extra={"extra_data": {"instance": name, "user_id": owner_id}})
            return instance
        except DuplicateInstanceNameError:
            # A concurrent delivery created it between our check and insert
            logger.info("Instance created concurrently", extra={"extra_data": {"instance": name}})
            return self.instances.get_by_name(name)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _store_message(self, item: Dict[str, Any], envelope: WebhookEnvelope) -> None:
        key = item.get("key") or {}
        message_id = key.get("id")
        remote_jid = key.get("remoteJid")
        if not message_id or not remote_jid:
            raise SkipItem("Message without id or remoteJid skipped")

        owner = envelope.instance
        message_type = item.get("messageType")
        body = item.get("message") if isinstance(item.get("message"), dict) else None

        self._ensure_chat(remote_jid, owner)

        fields: Dict[str, Any] = {}
        if message_type in MULTIMEDIA_TYPES and envelope.server_url and envelope.apikey and self.media_fetcher:
            media_info = (body or {}).get(message_type) or {}
            descriptor = self.media_fetcher.fetch(
                message_id,
                message_type,
                envelope.server_url,
                envelope.apikey,
                media_info=media_info,
            )
            if descriptor is not None:
                fields = descriptor.as_message_fields()

        stored = self.messages.create(MessageCreate(
            id=message_id,
            remote_jid=remote_jid,
            owner=owner,
            participant=key.get("participant") or item.get("participant"),
            push_name=item.get("pushName"),
            message_type=message_type,
            message_timestamp=coerce_timestamp(item.get("messageTimestamp")),
            source=item.get("source"),
            content=extract_content(body, message_type),
            status=item.get("status"),
            raw_data=item,
            **fields,
        ))
        logger.debug("Message stored", extra={"extra_data": {"message_id": message_id, "owner": owner}})
        self._publish("new_message", message_event_payload(stored))

    def _ensure_chat(self, remote_jid: str, owner: str) -> None:
        if self.chats.get_by_id(remote_jid) is not None:
            return
        try:
            chat = self.chats.create(ChatCreate(id=remote_jid, owner=owner))
        except IntegrityError:
            self.db.rollback()
            return
        self._publish("new_chat", {"id": chat.id, "owner": chat.owner})

    def _store_contact(self, item: Dict[str, Any], envelope: WebhookEnvelope) -> None:
        contact_id = item.get("id") or item.get("remoteJid")
        if not contact_id:
            raise SkipItem("Contact without id skipped")

        contact = self.contacts.create(ContactCreate(
            id=contact_id,
            owner=envelope.instance,
            push_name=item.get("pushName"),
            profile_picture_url=item.get("profilePictureUrl") or item.get("profilePicUrl"),
            raw_data=item,
        ))
        self._publish("new_contact", {
            "id": contact.id,
            "push_name": contact.push_name,
            "profile_picture_url": contact.profile_picture_url,
            "owner": contact.owner,
        })

    def _store_chat(self, item: Dict[str, Any], envelope: WebhookEnvelope) -> None:
        chat_id = item.get("id") or item.get("remoteJid")
        if not chat_id:
            raise SkipItem("Chat without id skipped")

        chat = self.chats.create(ChatCreate(id=chat_id, owner=envelope.instance, raw_data=item))
        self._publish("new_chat", {"id": chat.id, "owner": chat.owner})

    def _log_presence(self, item: Dict[str, Any], envelope: WebhookEnvelope) -> None:
        logger.debug(
            "Presence update",
            extra={"extra_data": {"instance": envelope.instance, "id": item.get("id"), "presences": item.get("presences")}},
        )

    def _update_message_status(self, item: Dict[str, Any], envelope: WebhookEnvelope) -> None:
        key = item.get("key") or {}
        message_id = item.get("keyId") or key.get("id")
        update = item.get("update") if isinstance(item.get("update"), dict) else {}
        status = item.get("status") or update.get("status")
        if not message_id or status is None:
            raise SkipItem("Message status update without id or status skipped")

        if not self.messages.set_status(message_id, str(status)):
            raise SkipItem(f"Status update for unknown message {message_id} skipped")

    def _update_connection_state(self, item: Dict[str, Any], envelope: WebhookEnvelope) -> None:
        state = item.get("state") or item.get("status")
        if not state:
            raise SkipItem("Connection update without state skipped")
        self.instances.update_status_by_name(envelope.instance, InstanceStatus.coerce(state))

    def _publish(self, event: str, data: Dict[str, Any]) -> None:
        """Every event goes to the admin group and to its instance's own group."""
        if self.hub is None:
            return
        self.hub.publish(self.group, event, data)
        if data.get("owner"):
            self.hub.publish(instance_group(data["owner"]), event, data)
