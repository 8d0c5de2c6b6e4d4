"""
Pubky Messenger - New-message notifications.

A best-effort side channel: after storing a message the sender may drop a
small record into the recipient's notification directory. The recipient
drains that directory, deleting every object it reads.

Record formats:
- current: {"timestamp": u64, "sender": "<public key>", "msg_id": "<id>"}
- legacy:  {"timestamp": u64, "encrypted_sender": [...], "msg_id": "<id>"}
  (recognized only so it can be deleted; nothing is extracted)
Anything else is treated as unrecognized garbage and deleted as well.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union

from .constants import NOTIFICATIONS_PATH, OBJECT_SUFFIX
from .errors import ErrorCode, KeyConversionError, MessengerError, StoreError
from .keys import Keypair, PublicKey
from .store import ObjectStore, build_uri, is_success
from .utils import abbreviate_key, unix_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentNotification:
    """Notification with a plaintext sender."""

    timestamp: int
    sender: str
    msg_id: str

    def to_json(self) -> str:
        return json.dumps(
            {"timestamp": self.timestamp, "sender": self.sender, "msg_id": self.msg_id}
        )


@dataclass(frozen=True)
class LegacyNotification:
    """Older notification whose sender field was encrypted."""

    timestamp: int
    msg_id: str


@dataclass(frozen=True)
class UnrecognizedNotification:
    """Object in the notification directory matching no known format."""

    raw: bytes = b""


Notification = Union[CurrentNotification, LegacyNotification, UnrecognizedNotification]


@dataclass
class DrainResult:
    """Outcome of draining the notification directory."""

    entries: List[Tuple[PublicKey, str]] = field(default_factory=list)
    legacy: int = 0
    unrecognized: int = 0
    failed: int = 0


def _is_u64(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < 2 ** 64


def decode_notification(raw: Union[str, bytes]) -> Notification:
    """
    Classify a notification object, trying each format in order.

    Never raises: anything that is neither a current nor a legacy record
    comes back as UnrecognizedNotification.
    """
    raw_bytes = raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)
    try:
        data = json.loads(raw_bytes)
    except ValueError:
        return UnrecognizedNotification(raw_bytes)

    if not isinstance(data, dict):
        return UnrecognizedNotification(raw_bytes)

    timestamp = data.get("timestamp")
    msg_id = data.get("msg_id")
    if not _is_u64(timestamp) or not isinstance(msg_id, str):
        return UnrecognizedNotification(raw_bytes)

    sender = data.get("sender")
    if isinstance(sender, str):
        return CurrentNotification(timestamp=timestamp, sender=sender, msg_id=msg_id)

    encrypted_sender = data.get("encrypted_sender")
    if isinstance(encrypted_sender, list) and all(
        _is_u64(b) and b < 256 for b in encrypted_sender
    ):
        return LegacyNotification(timestamp=timestamp, msg_id=msg_id)

    return UnrecognizedNotification(raw_bytes)


def notification_prefix(public_key: Union[PublicKey, str]) -> str:
    """Directory URI of an account's notifications."""
    return build_uri(public_key, NOTIFICATIONS_PATH)


async def notify(store: ObjectStore, sender_keypair: Keypair,
                 recipient: Union[PublicKey, str], message_id: str) -> str:
    """
    Announce a new message to the recipient.

    Returns:
        URI of the notification object

    Raises:
        StoreError: If the PUT is not successful
    """
    record = CurrentNotification(
        timestamp=unix_timestamp(),
        sender=str(sender_keypair.public_key()),
        msg_id=message_id,
    )
    uri = f"{notification_prefix(recipient)}{uuid.uuid4()}{OBJECT_SUFFIX}"

    status = await store.put(uri, record.to_json())
    if not is_success(status):
        raise StoreError(
            ErrorCode.E303_WRITE_FAILED,
            f"Failed to store notification: {status}",
            {"status": status},
        )
    logger.debug(f"Notified {abbreviate_key(recipient)} of message {message_id}")
    return uri


async def drain_notifications(store: ObjectStore, keypair: Keypair) -> DrainResult:
    """
    Read and delete every object in the local notification directory.

    Each object is deleted once it has been read and classified, whatever
    its format. Failures on one object are logged and counted; they never
    abort the drain.
    """
    result = DrainResult()
    prefix = notification_prefix(keypair.public_key())

    try:
        uris = await store.list(prefix)
    except StoreError as e:
        logger.warning(f"Could not list notifications: {e}")
        return result

    for uri in uris:
        try:
            response = await store.get(uri)
        except StoreError as e:
            logger.warning(f"Failed to read notification {uri}: {e}")
            result.failed += 1
            continue
        if not response.ok:
            logger.debug(f"Notification {uri} returned status {response.status}")
            result.failed += 1
            continue

        notification = decode_notification(response.body)
        entry: Optional[Tuple[PublicKey, str]] = None

        if isinstance(notification, CurrentNotification):
            try:
                entry = (PublicKey.from_string(notification.sender), notification.msg_id)
            except KeyConversionError:
                logger.info("Deleting notification with invalid sender key")
                result.unrecognized += 1
        elif isinstance(notification, LegacyNotification):
            logger.info("Deleting legacy notification")
            result.legacy += 1
        else:
            logger.info("Deleting unknown notification format")
            result.unrecognized += 1

        if entry is not None:
            result.entries.append(entry)

        await _delete_quietly(store, uri, result)

    logger.debug(
        f"Drained {len(result.entries)} notifications "
        f"({result.legacy} legacy, {result.unrecognized} unrecognized, {result.failed} failed)"
    )
    return result


async def _delete_quietly(store: ObjectStore, uri: str, result: DrainResult) -> None:
    try:
        status = await store.delete(uri)
    except MessengerError as e:
        logger.warning(f"Failed to delete notification {uri}: {e}")
        result.failed += 1
        return
    if not is_success(status):
        logger.warning(f"Delete of notification {uri} returned status {status}")
        result.failed += 1
