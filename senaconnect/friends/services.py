"""Friend requests, friendships and blocking.

A friendship is an accepted :class:`FriendRequest` in either direction. Every
change that the other side should see is published after commit through the
friends gateway.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from django.db.transaction import on_commit
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError

from senaconnect.chat import services as chat_services
from senaconnect.realtime.publishers.friends import build_friend_request_payload
from senaconnect.realtime.publishers.friends import publish_friend_request_accepted
from senaconnect.realtime.publishers.friends import publish_friend_request_deleted
from senaconnect.realtime.publishers.friends import publish_friend_request_rejected
from senaconnect.realtime.publishers.friends import publish_friend_request_sent
from senaconnect.realtime.publishers.friends import publish_user_blocked

from .models import Block
from .models import FriendRequest

if TYPE_CHECKING:  # import for type checking only
    from django.db.models import QuerySet

    from senaconnect.chat.models import Conversation
    from senaconnect.users.models import User

logger = logging.getLogger(__name__)

UserModel = get_user_model()

SEARCH_LIMIT = 20

STATUS_NONE = "none"
STATUS_FRIEND = "friend"
STATUS_REQUEST_SENT = "request_sent"
STATUS_REQUEST_RECEIVED = "request_received"

PENDING = FriendRequest.Status.PENDING
ACCEPTED = FriendRequest.Status.ACCEPTED
REJECTED = FriendRequest.Status.REJECTED


def _between(user_id: int, other_id: int) -> Q:
    return Q(sender_id=user_id, receiver_id=other_id) | Q(
        sender_id=other_id, receiver_id=user_id
    )


def _involving(user_id: int) -> Q:
    return Q(sender_id=user_id) | Q(receiver_id=user_id)


def _active_user(user_id: int) -> User:
    user = UserModel.objects.filter(pk=user_id, is_active=True).first()
    if user is None:
        msg = "User not found."
        raise NotFound(msg)
    return user


def friend_ids(user_id: int) -> set[int]:
    pairs = FriendRequest.objects.filter(_involving(user_id), status=ACCEPTED).values_list(
        "sender_id", "receiver_id"
    )
    return {receiver if sender == user_id else sender for sender, receiver in pairs}


def friends_of(user: User) -> QuerySet[User]:
    return UserModel.objects.filter(pk__in=friend_ids(user.pk), is_active=True).order_by(
        "name", "id"
    )


def are_friends(user_id: int, other_id: int) -> bool:
    return FriendRequest.objects.filter(_between(user_id, other_id), status=ACCEPTED).exists()


def blocked_ids(user_id: int) -> set[int]:
    """Users hidden from ``user_id`` because either side blocked the other."""

    pairs = Block.objects.filter(Q(blocker_id=user_id) | Q(blocked_id=user_id)).values_list(
        "blocker_id", "blocked_id"
    )
    return {blocked if blocker == user_id else blocker for blocker, blocked in pairs}


def is_blocked(user_id: int, other_id: int) -> bool:
    return other_id in blocked_ids(user_id)


def friend_statuses(user_id: int) -> dict[int, str]:
    statuses: dict[int, str] = {}
    rows = (
        FriendRequest.objects.filter(_involving(user_id))
        .exclude(status=REJECTED)
        .values_list("sender_id", "receiver_id", "status")
    )
    for sender_id, receiver_id, status in rows:
        other = receiver_id if sender_id == user_id else sender_id
        if status == ACCEPTED:
            statuses[other] = STATUS_FRIEND
        elif statuses.get(other) != STATUS_FRIEND:
            statuses[other] = (
                STATUS_REQUEST_SENT if sender_id == user_id else STATUS_REQUEST_RECEIVED
            )
    return statuses


def search_users(user: User, query: str, *, limit: int = SEARCH_LIMIT) -> list[User]:
    """Match on email, name or username; each result carries ``friend_status``."""

    query = (query or "").strip()
    queryset = (
        UserModel.objects.filter(is_active=True)
        .exclude(pk=user.pk)
        .exclude(pk__in=blocked_ids(user.pk))
    )
    if query:
        queryset = queryset.filter(
            Q(email__icontains=query) | Q(name__icontains=query) | Q(username__icontains=query)
        )
    found = list(queryset.order_by("name", "id")[:limit])
    statuses = friend_statuses(user.pk)
    for candidate in found:
        candidate.friend_status = statuses.get(candidate.pk, STATUS_NONE)
    return found


def incoming_requests(user: User) -> QuerySet[FriendRequest]:
    return FriendRequest.objects.filter(receiver=user, status=PENDING).select_related(
        "sender", "receiver"
    )


def outgoing_requests(user: User) -> QuerySet[FriendRequest]:
    return FriendRequest.objects.filter(sender=user, status=PENDING).select_related(
        "sender", "receiver"
    )


def send_request(sender: User, receiver_id: int) -> FriendRequest:
    if receiver_id == sender.pk:
        msg = "You cannot send a friend request to yourself."
        raise ValidationError({"receiverId": [msg]})
    receiver = _active_user(receiver_id)
    if is_blocked(sender.pk, receiver.pk):
        msg = "You cannot send a friend request to this user."
        raise PermissionDenied(msg)

    with transaction.atomic():
        existing = set(
            FriendRequest.objects.filter(_between(sender.pk, receiver.pk))
            .exclude(status=REJECTED)
            .values_list("status", flat=True)
        )
        if ACCEPTED in existing:
            msg = "You are already friends."
            raise ValidationError({"detail": msg})
        if PENDING in existing:
            msg = "A friend request between you already exists."
            raise ValidationError({"detail": msg})
        request = FriendRequest.objects.create(sender=sender, receiver=receiver)

    logger.info("User %s sent friend request %s to user %s", sender.pk, request.pk, receiver.pk)
    on_commit(lambda: publish_friend_request_sent(request))
    return request


def _get_request(request_id: int) -> FriendRequest:
    request = (
        FriendRequest.objects.select_related("sender", "receiver").filter(pk=request_id).first()
    )
    if request is None:
        msg = "Friend request not found."
        raise NotFound(msg)
    return request


def respond_to_request(
    request_id: int, user: User, *, accept: bool
) -> tuple[FriendRequest, Conversation | None]:
    """Accept or reject a pending request addressed to ``user``.

    Accepting opens (or reuses) the pair's conversation so they can chat at
    once. Returns the request and that conversation.
    """

    request = _get_request(request_id)
    if request.receiver_id != user.pk:
        msg = "Only the receiver can respond to this friend request."
        raise PermissionDenied(msg)
    if request.status != PENDING:
        msg = "This friend request was already answered."
        raise ValidationError({"detail": msg})

    conversation = None
    with transaction.atomic():
        request.status = ACCEPTED if accept else REJECTED
        request.save(update_fields=["status", "updated_at"])
        if accept:
            conversation, _created = chat_services.get_or_create_conversation(
                user, [request.sender_id]
            )

    logger.info("User %s %s friend request %s", user.pk, request.status, request.pk)
    if accept:
        on_commit(lambda: publish_friend_request_accepted(request, conversation))
    else:
        on_commit(lambda: publish_friend_request_rejected(request))
    return request, conversation


def cancel_request(request_id: int, user: User) -> None:
    """Withdraw (sender) or dismiss (receiver) a pending request."""

    request = _get_request(request_id)
    if user.pk not in (request.sender_id, request.receiver_id):
        msg = "You are not part of this friend request."
        raise PermissionDenied(msg)
    if request.status != PENDING:
        msg = "Only pending friend requests can be deleted."
        raise ValidationError({"detail": msg})

    payload = build_friend_request_payload(request)
    request.delete()
    logger.info("User %s deleted friend request %s", user.pk, request_id)
    on_commit(lambda: publish_friend_request_deleted(payload))


def remove_friend(user: User, friend_id: int) -> None:
    accepted = FriendRequest.objects.select_related("sender", "receiver").filter(
        _between(user.pk, friend_id), status=ACCEPTED
    )
    requests = list(accepted)
    if not requests:
        msg = "You are not friends with this user."
        raise NotFound(msg)

    payloads = [build_friend_request_payload(request) for request in requests]
    accepted.delete()
    logger.info("User %s removed friend %s", user.pk, friend_id)
    for payload in payloads:
        on_commit(lambda payload=payload: publish_friend_request_deleted(payload))


def block_user(blocker: User, blocked_id: int) -> Block:
    """Block a user; pending requests and any friendship between them are dropped."""

    if blocked_id == blocker.pk:
        msg = "You cannot block yourself."
        raise ValidationError({"userId": [msg]})
    blocked = _active_user(blocked_id)

    with transaction.atomic():
        block, created = Block.objects.get_or_create(blocker=blocker, blocked=blocked)
        dropped, _unused = (
            FriendRequest.objects.filter(_between(blocker.pk, blocked.pk))
            .exclude(status=REJECTED)
            .delete()
        )

    if created:
        logger.info(
            "User %s blocked user %s (%d friend requests dropped)",
            blocker.pk,
            blocked.pk,
            dropped,
        )
        on_commit(lambda: publish_user_blocked(blocker.pk, blocked.pk))
    return block


def unblock_user(blocker: User, blocked_id: int) -> None:
    deleted, _unused = Block.objects.filter(blocker=blocker, blocked_id=blocked_id).delete()
    if not deleted:
        msg = "This user is not blocked."
        raise NotFound(msg)
    logger.info("User %s unblocked user %s", blocker.pk, blocked_id)
