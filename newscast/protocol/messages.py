"""Protocol messages and their record codec.

Every message is a flat record keyed by ``type``. The codec converts
between those records and one frozen dataclass per message type, so the
drivers decode once and then dispatch on the class.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Union

from ..errors import MalformedMessage, UnknownMessageType
from ..models import Article

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Heartbeat:
    """Client liveness ping; registers the client with the server."""

    client_id: str
    type = "heartbeat"


@dataclass(frozen=True)
class HeartbeatResponse:
    """Server's unicast reply to a heartbeat."""

    type = "heartbeat_response"


@dataclass(frozen=True)
class ServerHeartbeat:
    """Periodic server beacon. No reply is expected."""

    type = "server_heartbeat"


@dataclass(frozen=True)
class RequestSync:
    """Client asks for the full article set."""

    client_id: str
    type = "request_sync"


@dataclass(frozen=True)
class FullSync:
    """Authoritative snapshot of every current article, keyed by id."""

    articles: dict[str, Article] = field(default_factory=dict)
    type = "full_sync"


@dataclass(frozen=True)
class NewArticle:
    """A single newly created article."""

    article: Article
    type = "new_article"


@dataclass(frozen=True)
class Delete:
    """A single article removal."""

    article_id: str
    type = "delete"


Message = Union[
    Heartbeat,
    HeartbeatResponse,
    ServerHeartbeat,
    RequestSync,
    FullSync,
    NewArticle,
    Delete,
]

# Direction of each message type. A node only acts on the types addressed
# to its role and ignores the others when it hears them on the broadcast topic.
CLIENT_MESSAGE_TYPES = frozenset({Heartbeat.type, RequestSync.type})
SERVER_MESSAGE_TYPES = frozenset({
    HeartbeatResponse.type,
    ServerHeartbeat.type,
    FullSync.type,
    NewArticle.type,
    Delete.type,
})


def encode(message: Message) -> dict[str, Any]:
    """Encode a message as a wire record.

    Args:
        message: Message to encode.

    Returns:
        JSON-serializable record with a ``type`` discriminant.
    """
    match message:
        case Heartbeat(client_id=client_id) | RequestSync(client_id=client_id):
            return {"type": message.type, "clientId": client_id}
        case HeartbeatResponse() | ServerHeartbeat():
            return {"type": message.type}
        case FullSync(articles=articles):
            return {
                "type": message.type,
                "articles": {aid: a.to_dict() for aid, a in articles.items()},
            }
        case NewArticle(article=article):
            return {"type": message.type, "article": article.to_dict()}
        case Delete(article_id=article_id):
            return {"type": message.type, "articleId": article_id}
        case _:
            raise TypeError(f"Not a protocol message: {message!r}")


def _require_id(record: dict[str, Any], key: str) -> str:
    """Read an identifier field, accepting strings and integers."""
    value = record.get(key)
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str) and value:
        return value
    raise MalformedMessage(f"{record.get('type')}: missing or invalid {key!r}")


def _decode_article(data: Any) -> Article:
    try:
        return Article.from_dict(data)
    except ValueError as e:
        raise MalformedMessage(f"Invalid article: {e}") from e


def _decode_articles(data: Any) -> dict[str, Article]:
    """Decode a full-sync article collection.

    The collection is a mapping of id to article; a plain list of articles
    is also accepted and keyed by each article's own id. Entries that do
    not decode are skipped so the rest of the snapshot still applies.
    """
    if isinstance(data, dict):
        items = list(data.values())
    elif isinstance(data, list):
        items = data
    else:
        raise MalformedMessage("full_sync: 'articles' must be a mapping or list")

    articles: dict[str, Article] = {}
    for item in items:
        try:
            article = Article.from_dict(item)
        except ValueError as e:
            logger.warning(f"full_sync: skipping unreadable article: {e}")
            continue
        articles[article.id] = article
    return articles


def decode(record: Any) -> Message:
    """Decode a wire record into a message.

    Args:
        record: Parsed payload, normally a dict.

    Returns:
        The decoded message.

    Raises:
        UnknownMessageType: If ``type`` is not a protocol message type.
        MalformedMessage: If the record is not a mapping or lacks
            required fields.
    """
    if not isinstance(record, dict):
        raise MalformedMessage(f"Message must be a mapping, got {type(record).__name__}")

    message_type = record.get("type")
    match message_type:
        case "heartbeat":
            return Heartbeat(client_id=_require_id(record, "clientId"))
        case "heartbeat_response":
            return HeartbeatResponse()
        case "server_heartbeat":
            return ServerHeartbeat()
        case "request_sync":
            return RequestSync(client_id=_require_id(record, "clientId"))
        case "full_sync":
            if "articles" not in record:
                raise MalformedMessage("full_sync: missing 'articles'")
            return FullSync(articles=_decode_articles(record["articles"]))
        case "new_article":
            if "article" not in record:
                raise MalformedMessage("new_article: missing 'article'")
            return NewArticle(article=_decode_article(record["article"]))
        case "delete":
            return Delete(article_id=_require_id(record, "articleId"))
        case _:
            raise UnknownMessageType(message_type)
