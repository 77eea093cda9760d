"""
Notion property mapping: the only place that knows Notion property names.

The databases were edited by hand over time, so several concepts live under
more than one property name or property type. Every fallback is resolved
here and nowhere else:

- page -> typed record (``proposal_from_page``, ``member_from_page``,
  ``ticket_from_page``)
- internal fields -> Notion properties (``encode_properties``)
- FieldFilter -> Notion query filter (``encode_filter``)
"""

from datetime import date, datetime, timezone
from typing import Any

from ..models import (
    ApprovalTicket,
    AudienceTarget,
    Collection,
    Decision,
    DispatchStatus,
    Member,
    Proposal,
    ServiceStatus,
)
from .base import FieldFilter


# =============================================================================
# PROPERTY NAMES
# =============================================================================

PROPOSAL_TITLE = ("タイトル", "名前")
PROPOSAL_AUDIENCE = "承認対象"
PROPOSAL_CATEGORY_CODE = "区分コード"
PROPOSAL_CATEGORY = "区分"
PROPOSAL_CREATED = "作成日時"
PROPOSAL_ISSUE_NUMBER = "連番"
PROPOSAL_DISPATCH_STATUS = "送信ステータス"
PROPOSAL_DISPLAY_NUMBER = ("議案番号フォーミュラ", "議案番号", "議案番号（自動）")
PROPOSAL_DESCRIPTION = "内容（説明）"
PROPOSAL_PROPOSERS = "発議者"
PROPOSAL_DEADLINE = ("承認期限", "期限")
PROPOSAL_ATTACHMENT_PREFIX = "添付リンク"

MEMBER_NAME = ("氏名", "名前", "タイトル")
MEMBER_IS_DIRECTOR = "理事"
MEMBER_IS_GENERAL = "正会員"
MEMBER_CHANNEL_ID = "LINEユーザーID"
MEMBER_SERVICE_STATUS = "承認システム利用ステータス"
MEMBER_NOTIFICATIONS_ENABLED = "LINE承認有効"

TICKET_PROPOSAL = "議案"
TICKET_MEMBER = "会員"
TICKET_DECISION = "承認結果"
TICKET_DECIDED_AT = "承認日時"
TICKET_COMMENT = ("コメント（表示用）", "コメント", "コメント（表示）")
TICKET_FORM_URL = "送信URL"

# Select option values
AUDIENCE_OPTIONS = {
    "理事会": AudienceTarget.BOARD_OF_DIRECTORS,
    "正会員": AudienceTarget.GENERAL_MEMBERS,
}
DECISION_OPTIONS = {
    "承認": Decision.APPROVED,
    "否認": Decision.DENIED,
}
DISPATCH_OPTIONS = {
    "未送信": DispatchStatus.PENDING,
    "送信済": DispatchStatus.SENT,
}
SERVICE_STATUS_PRODUCTION = "本番"


def _option_name(options: dict, value) -> str:
    for name, member in options.items():
        if member == value:
            return name
    raise ValueError(f"No select option for {value!r}")


# =============================================================================
# VALUE EXTRACTION
# =============================================================================


def _plain_text(items: list | None) -> str:
    return "".join(item.get("plain_text", "") for item in items or []).strip()


def extract_text(prop: dict | None) -> str:
    """
    Read a string out of any text-like property.

    Handles formula (string/number), rollup (array/number/date), rich_text,
    title and bare plain_text shapes. Returns "" when nothing is present.
    """
    if not prop:
        return ""

    formula = prop.get("formula")
    if formula:
        if isinstance(formula.get("string"), str) and formula["string"].strip():
            return formula["string"].strip()
        if isinstance(formula.get("number"), (int, float)):
            return _number_text(formula["number"])

    rollup = prop.get("rollup")
    if rollup:
        array = rollup.get("array")
        if isinstance(array, list) and array:
            first = array[0]
            for key in ("rich_text", "title"):
                if isinstance(first.get(key), list):
                    return _plain_text(first[key])
            if isinstance(first.get("plain_text"), str):
                return first["plain_text"].strip()
            inner = first.get(first.get("type", ""))
            if isinstance(inner, list):
                return _plain_text(inner)
        if isinstance(rollup.get("number"), (int, float)):
            return _number_text(rollup["number"])
        date = rollup.get("date")
        if date and isinstance(date.get("start"), str):
            return date["start"]

    for key in ("rich_text", "title"):
        if isinstance(prop.get(key), list):
            return _plain_text(prop[key])

    if isinstance(prop.get("plain_text"), str):
        return prop["plain_text"].strip()

    return ""


def _number_text(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _select_name(prop: dict | None) -> str:
    select = (prop or {}).get("select") or {}
    return (select.get("name") or "").strip()


def _checkbox(prop: dict | None, default: bool = False) -> bool:
    if not prop or "checkbox" not in prop:
        return default
    return bool(prop["checkbox"])


def _first_relation_id(prop: dict | None) -> str | None:
    relation = (prop or {}).get("relation") or []
    if relation and relation[0].get("id"):
        return relation[0]["id"]
    return None


def _relation_ids(prop: dict | None) -> tuple[str, ...]:
    relation = (prop or {}).get("relation") or []
    return tuple(item["id"] for item in relation if item.get("id"))


def _url(prop: dict | None) -> str | None:
    if not prop or prop.get("type", "url") != "url":
        return None
    return prop.get("url") or None


def _first_present(props: dict, names: tuple[str, ...]) -> dict | None:
    for name in names:
        if name in props:
            return props[name]
    return None


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def category_key(props: dict) -> str | None:
    """
    Category used for numbering buckets, by priority:

    1. text of the category code property (formula, rollup, text)
    2. select name of the category property
    3. first related page ID of the category property
    """
    code = extract_text(props.get(PROPOSAL_CATEGORY_CODE))
    if code:
        return code
    name = _select_name(props.get(PROPOSAL_CATEGORY))
    if name:
        return name
    return _first_relation_id(props.get(PROPOSAL_CATEGORY))


def deadline_date(props: dict) -> date | None:
    """First of the deadline properties that holds a date."""
    for name in PROPOSAL_DEADLINE:
        start = ((props.get(name) or {}).get("date") or {}).get("start")
        if start:
            return date.fromisoformat(start[:10])
    return None


def attachment_urls(props: dict) -> tuple[str, ...]:
    """URLs of every URL property whose name starts with the attachment prefix."""
    urls = []
    for name, prop in props.items():
        if not name.startswith(PROPOSAL_ATTACHMENT_PREFIX):
            continue
        url = _url(prop)
        if url:
            urls.append(url)
    return tuple(urls)


# =============================================================================
# PAGE -> RECORD
# =============================================================================


def proposal_from_page(page: dict) -> Proposal:
    props = page.get("properties") or {}

    created = (props.get(PROPOSAL_CREATED) or {}).get("created_time") or page.get("created_time")

    issue_number = (props.get(PROPOSAL_ISSUE_NUMBER) or {}).get("number")
    if isinstance(issue_number, float):
        issue_number = int(issue_number)

    dispatch_name = _select_name(props.get(PROPOSAL_DISPATCH_STATUS))

    return Proposal(
        id=page["id"],
        title=extract_text(_first_present(props, PROPOSAL_TITLE)),
        audience_target=AUDIENCE_OPTIONS.get(_select_name(props.get(PROPOSAL_AUDIENCE))),
        category=category_key(props),
        created_at=parse_timestamp(created),
        issue_number=issue_number,
        dispatch_status=DISPATCH_OPTIONS.get(dispatch_name),
        display_number=extract_text(_first_present(props, PROPOSAL_DISPLAY_NUMBER)),
        description=extract_text(props.get(PROPOSAL_DESCRIPTION)),
        proposer_ids=_relation_ids(props.get(PROPOSAL_PROPOSERS)),
        deadline=deadline_date(props),
        attachment_urls=attachment_urls(props),
    )


def member_from_page(page: dict) -> Member:
    props = page.get("properties") or {}
    channel_id = extract_text(props.get(MEMBER_CHANNEL_ID)) or None
    status = _select_name(props.get(MEMBER_SERVICE_STATUS))

    return Member(
        id=page["id"],
        display_name=extract_text(_first_present(props, MEMBER_NAME)),
        is_board_director=_checkbox(props.get(MEMBER_IS_DIRECTOR)),
        is_general_member=_checkbox(props.get(MEMBER_IS_GENERAL)),
        notification_channel_id=channel_id,
        service_status=(
            ServiceStatus.PRODUCTION
            if status == SERVICE_STATUS_PRODUCTION
            else ServiceStatus.OTHER
        ),
        notifications_enabled=_checkbox(props.get(MEMBER_NOTIFICATIONS_ENABLED)),
    )


def ticket_comment_property(props: dict) -> str | None:
    """Name of the comment property present on a ticket page, if any."""
    for name in TICKET_COMMENT:
        prop = props.get(name)
        if prop is not None and prop.get("type", "rich_text") == "rich_text":
            return name
    return None


def ticket_from_page(page: dict) -> ApprovalTicket:
    props = page.get("properties") or {}
    comment_name = ticket_comment_property(props)
    comment = extract_text(props.get(comment_name)) if comment_name else ""

    decided = ((props.get(TICKET_DECIDED_AT) or {}).get("date") or {}).get("start")

    return ApprovalTicket(
        id=page["id"],
        proposal_id=_first_relation_id(props.get(TICKET_PROPOSAL)) or "",
        member_id=_first_relation_id(props.get(TICKET_MEMBER)) or "",
        decision=DECISION_OPTIONS.get(_select_name(props.get(TICKET_DECISION))),
        decided_at=parse_timestamp(decided),
        comment=comment or None,
        form_url=_url(props.get(TICKET_FORM_URL)),
    )


PAGE_PARSERS = {
    Collection.PROPOSALS: proposal_from_page,
    Collection.MEMBERS: member_from_page,
    Collection.APPROVAL_TICKETS: ticket_from_page,
}


# =============================================================================
# FIELDS -> PROPERTIES
# =============================================================================


def _rich_text(text: str | None) -> dict:
    if not text:
        return {"rich_text": []}
    return {"rich_text": [{"type": "text", "text": {"content": text}}]}


def encode_properties(
    collection: Collection,
    fields: dict[str, Any],
    comment_property: str | None = None,
) -> dict[str, Any]:
    """Translate internal field values into a Notion ``properties`` payload."""
    properties: dict[str, Any] = {}

    for field, value in fields.items():
        if collection == Collection.PROPOSALS and field == "issue_number":
            properties[PROPOSAL_ISSUE_NUMBER] = {"number": value}
        elif collection == Collection.PROPOSALS and field == "dispatch_status":
            properties[PROPOSAL_DISPATCH_STATUS] = {
                "select": {"name": _option_name(DISPATCH_OPTIONS, value)}
            }
        elif collection == Collection.APPROVAL_TICKETS and field == "proposal_id":
            properties[TICKET_PROPOSAL] = {"relation": [{"id": value}]}
        elif collection == Collection.APPROVAL_TICKETS and field == "member_id":
            properties[TICKET_MEMBER] = {"relation": [{"id": value}]}
        elif collection == Collection.APPROVAL_TICKETS and field == "decision":
            properties[TICKET_DECISION] = {
                "select": {"name": _option_name(DECISION_OPTIONS, value)}
            }
        elif collection == Collection.APPROVAL_TICKETS and field == "decided_at":
            properties[TICKET_DECIDED_AT] = {"date": {"start": value.isoformat()}}
        elif collection == Collection.APPROVAL_TICKETS and field == "form_url":
            properties[TICKET_FORM_URL] = {"url": value}
        elif collection == Collection.APPROVAL_TICKETS and field == "comment":
            # Tickets without a comment property silently drop the comment
            if comment_property:
                properties[comment_property] = _rich_text(value)
        else:
            raise ValueError(f"Field {field} is not writable on {collection.value}")

    return properties


# =============================================================================
# FILTERS
# =============================================================================


def encode_filter(collection: Collection, flt: FieldFilter) -> dict[str, Any]:
    """Translate one FieldFilter into a Notion database query filter."""
    field, value, op = flt.field, flt.value, flt.op

    if field == "created_at" and op in ("on_or_after", "before"):
        return {
            "timestamp": "created_time",
            "created_time": {op: value.isoformat()},
        }

    if op == "equals":
        if collection == Collection.PROPOSALS and field == "audience_target":
            return {
                "property": PROPOSAL_AUDIENCE,
                "select": {"equals": _option_name(AUDIENCE_OPTIONS, value)},
            }
        if collection == Collection.PROPOSALS and field == "dispatch_status":
            if value is None:
                return {"property": PROPOSAL_DISPATCH_STATUS, "select": {"is_empty": True}}
            return {
                "property": PROPOSAL_DISPATCH_STATUS,
                "select": {"equals": _option_name(DISPATCH_OPTIONS, value)},
            }
        if collection == Collection.MEMBERS and field == "is_board_director":
            return {"property": MEMBER_IS_DIRECTOR, "checkbox": {"equals": bool(value)}}
        if collection == Collection.MEMBERS and field == "is_general_member":
            return {"property": MEMBER_IS_GENERAL, "checkbox": {"equals": bool(value)}}
        if collection == Collection.MEMBERS and field == "service_status":
            if value != ServiceStatus.PRODUCTION:
                raise ValueError("Only the production service status can be queried")
            return {
                "property": MEMBER_SERVICE_STATUS,
                "select": {"equals": SERVICE_STATUS_PRODUCTION},
            }

    if op == "contains" and collection == Collection.APPROVAL_TICKETS:
        if field == "proposal_id":
            return {"property": TICKET_PROPOSAL, "relation": {"contains": value}}
        if field == "member_id":
            return {"property": TICKET_MEMBER, "relation": {"contains": value}}

    raise ValueError(f"Unsupported filter on {collection.value}: {field} {op}")
