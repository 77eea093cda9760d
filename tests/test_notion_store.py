"""
Tests for the Notion record store and its property mapping.

HTTP is served by httpx.MockTransport; no network access.
"""

import json
from datetime import date, datetime, timezone

import httpx
import pytest

from approval_desk.core.config import Settings
from approval_desk.core.errors import ConfigurationError, NotFound, UpstreamUnavailable
from approval_desk.models import (
    AudienceTarget,
    Collection,
    Decision,
    DispatchStatus,
    ServiceStatus,
)
from approval_desk.store import FieldFilter, NotionRecordStore
from approval_desk.store.notion_mapping import (
    category_key,
    encode_filter,
    member_from_page,
    proposal_from_page,
    ticket_from_page,
)


def notion_settings(**overrides) -> Settings:
    values = {
        "notion_api_key": "secret_test",
        "notion_proposal_database_id": "db-proposals",
        "notion_member_database_id": "db-members",
        "notion_approval_database_id": "db-tickets",
    }
    values.update(overrides)
    return Settings(**values)


def proposal_page(page_id="P1", **props) -> dict:
    properties = {
        "タイトル": {"type": "title", "title": [{"plain_text": "Buy a tractor"}]},
        "承認対象": {"type": "select", "select": {"name": "理事会"}},
        "連番": {"type": "number", "number": None},
        "送信ステータス": {"type": "select", "select": None},
    }
    properties.update(props)
    return {"id": page_id, "created_time": "2025-03-14T09:30:00.000Z", "properties": properties}


def ticket_page(page_id="T1", **props) -> dict:
    properties = {
        "議案": {"type": "relation", "relation": [{"id": "P1"}]},
        "会員": {"type": "relation", "relation": [{"id": "M1"}]},
        "承認結果": {"type": "select", "select": None},
        "承認日時": {"type": "date", "date": None},
    }
    properties.update(props)
    return {"id": page_id, "properties": properties}


class RecordingHandler:
    """Collects requests and answers them from a list of responses."""

    def __init__(self, *responses):
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def body(self, index: int) -> dict:
        return json.loads(self.requests[index].content)


def store_with(handler: RecordingHandler, **overrides) -> NotionRecordStore:
    return NotionRecordStore(notion_settings(**overrides), transport=httpx.MockTransport(handler))


# =============================================================================
# TEST: PAGE PARSING
# =============================================================================


class TestProposalParsing:

    def test_reads_all_fields(self):
        page = proposal_page(
            **{
                "連番": {"type": "number", "number": 3.0},
                "送信ステータス": {"type": "select", "select": {"name": "送信済"}},
                "区分": {"type": "select", "select": {"name": "財務"}},
            }
        )

        proposal = proposal_from_page(page)

        assert proposal.title == "Buy a tractor"
        assert proposal.audience_target == AudienceTarget.BOARD_OF_DIRECTORS
        assert proposal.created_at == datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)
        assert proposal.issue_number == 3
        assert proposal.dispatch_status == DispatchStatus.SENT
        assert proposal.category == "財務"

    def test_unknown_audience_is_none(self):
        page = proposal_page(**{"承認対象": {"type": "select", "select": {"name": "総会"}}})

        assert proposal_from_page(page).audience_target is None

    def test_falls_back_to_name_title(self):
        page = proposal_page()
        del page["properties"]["タイトル"]
        page["properties"]["名前"] = {"type": "title", "title": [{"plain_text": "Old title"}]}

        assert proposal_from_page(page).title == "Old title"

    def test_reads_form_view_fields(self):
        page = proposal_page(
            **{
                "議案番号フォーミュラ": {
                    "type": "formula",
                    "formula": {"type": "string", "string": "2025-03-理-001"},
                },
                "内容（説明）": {
                    "type": "rich_text",
                    "rich_text": [{"plain_text": "Replace the "}, {"plain_text": "tractor."}],
                },
                "発議者": {"type": "relation", "relation": [{"id": "M1"}, {"id": "M2"}]},
                "期限": {"type": "date", "date": {"start": "2025-03-31"}},
                "添付リンク1": {"type": "url", "url": "https://files.example.org/quote.pdf"},
                "添付リンク2": {"type": "url", "url": None},
                "参考リンク": {"type": "url", "url": "https://example.org/ignored"},
            }
        )

        proposal = proposal_from_page(page)

        assert proposal.display_number == "2025-03-理-001"
        assert proposal.description == "Replace the tractor."
        assert proposal.proposer_ids == ("M1", "M2")
        assert proposal.deadline == date(2025, 3, 31)
        assert proposal.attachment_urls == ("https://files.example.org/quote.pdf",)

    def test_display_number_falls_back_to_rich_text(self):
        page = proposal_page(
            **{"議案番号": {"type": "rich_text", "rich_text": [{"plain_text": "No. 7"}]}}
        )

        assert proposal_from_page(page).display_number == "No. 7"

    def test_approval_deadline_wins_over_plain_deadline(self):
        page = proposal_page(
            **{
                "承認期限": {"type": "date", "date": {"start": "2025-04-10T09:00:00+09:00"}},
                "期限": {"type": "date", "date": {"start": "2025-03-31"}},
            }
        )

        assert proposal_from_page(page).deadline == date(2025, 4, 10)

    def test_form_view_fields_default_empty(self):
        proposal = proposal_from_page(proposal_page())

        assert proposal.display_number == ""
        assert proposal.description == ""
        assert proposal.proposer_ids == ()
        assert proposal.deadline is None
        assert proposal.attachment_urls == ()


class TestCategoryKey:

    def test_code_wins_over_select(self):
        props = {
            "区分コード": {"type": "formula", "formula": {"type": "string", "string": "FIN"}},
            "区分": {"type": "select", "select": {"name": "財務"}},
        }

        assert category_key(props) == "FIN"

    def test_rollup_code(self):
        props = {
            "区分コード": {
                "type": "rollup",
                "rollup": {
                    "type": "array",
                    "array": [{"type": "rich_text", "rich_text": [{"plain_text": "EVT"}]}],
                },
            },
        }

        assert category_key(props) == "EVT"

    def test_relation_id_when_no_code_or_select(self):
        props = {"区分": {"type": "relation", "relation": [{"id": "cat-page-1"}]}}

        assert category_key(props) == "cat-page-1"

    def test_absent_category_is_none(self):
        assert category_key({}) is None


class TestMemberAndTicketParsing:

    def test_member_flags_and_defaults(self):
        page = {
            "id": "M1",
            "properties": {
                "氏名": {"type": "title", "title": [{"plain_text": "Sato"}]},
                "理事": {"type": "checkbox", "checkbox": True},
                "正会員": {"type": "checkbox", "checkbox": False},
                "LINEユーザーID": {"type": "rich_text", "rich_text": [{"plain_text": "U123"}]},
                "承認システム利用ステータス": {"type": "select", "select": {"name": "本番"}},
            },
        }

        member = member_from_page(page)

        assert member.display_name == "Sato"
        assert member.is_board_director is True
        assert member.is_general_member is False
        assert member.notification_channel_id == "U123"
        assert member.service_status == ServiceStatus.PRODUCTION
        assert member.notifications_enabled is False
        assert member.is_eligible_for(AudienceTarget.BOARD_OF_DIRECTORS) is False

    def test_checked_opt_in_enables_notifications(self):
        page = {
            "id": "M1",
            "properties": {
                "LINE承認有効": {"type": "checkbox", "checkbox": True},
            },
        }

        assert member_from_page(page).notifications_enabled is True

    def test_member_without_channel_or_status(self):
        member = member_from_page({"id": "M2", "properties": {}})

        assert member.notification_channel_id is None
        assert member.service_status == ServiceStatus.OTHER
        assert member.notifications_enabled is False

    def test_ticket_decision_and_comment_fallback(self):
        page = ticket_page(
            **{
                "承認結果": {"type": "select", "select": {"name": "否認"}},
                "承認日時": {"type": "date", "date": {"start": "2025-03-20T12:00:00+00:00"}},
                "コメント": {"type": "rich_text", "rich_text": [{"plain_text": "Too costly"}]},
            }
        )

        ticket = ticket_from_page(page)

        assert ticket.proposal_id == "P1"
        assert ticket.member_id == "M1"
        assert ticket.decision == Decision.DENIED
        assert ticket.decided_at == datetime(2025, 3, 20, 12, 0, tzinfo=timezone.utc)
        assert ticket.comment == "Too costly"

    def test_ticket_form_url(self):
        page = ticket_page(**{"送信URL": {"type": "url", "url": "https://forms.example.org/a?id=T1"}})

        assert ticket_from_page(page).form_url == "https://forms.example.org/a?id=T1"
        assert ticket_from_page(ticket_page()).form_url is None


class TestEncodeFilter:

    def test_unset_dispatch_status_is_empty_select(self):
        flt = encode_filter(Collection.PROPOSALS, FieldFilter("dispatch_status", None))

        assert flt == {"property": "送信ステータス", "select": {"is_empty": True}}

    def test_created_range_uses_timestamp_filter(self):
        start = datetime(2025, 3, 1, tzinfo=timezone.utc)

        flt = encode_filter(Collection.PROPOSALS, FieldFilter("created_at", start, "on_or_after"))

        assert flt == {
            "timestamp": "created_time",
            "created_time": {"on_or_after": "2025-03-01T00:00:00+00:00"},
        }

    def test_unsupported_filter_raises(self):
        with pytest.raises(ValueError):
            encode_filter(Collection.MEMBERS, FieldFilter("display_name", "Sato"))


# =============================================================================
# TEST: HTTP
# =============================================================================


class TestNotionRequests:

    async def test_get_sends_auth_and_version_headers(self):
        handler = RecordingHandler(httpx.Response(200, json=proposal_page()))

        proposal = await store_with(handler).get(Collection.PROPOSALS, "P1")

        request = handler.requests[0]
        assert proposal.id == "P1"
        assert request.method == "GET"
        assert request.url == "https://api.notion.com/v1/pages/P1"
        assert request.headers["Authorization"] == "Bearer secret_test"
        assert request.headers["Notion-Version"] == "2022-06-28"

    async def test_query_follows_cursor_and_combines_filters(self):
        handler = RecordingHandler(
            httpx.Response(
                200,
                json={"results": [proposal_page("P1")], "has_more": True, "next_cursor": "c2"},
            ),
            httpx.Response(
                200,
                json={"results": [proposal_page("P2")], "has_more": False, "next_cursor": None},
            ),
        )

        proposals = await store_with(handler).query(
            Collection.PROPOSALS,
            [FieldFilter("audience_target", AudienceTarget.GENERAL_MEMBERS)],
        )

        assert [p.id for p in proposals] == ["P1", "P2"]
        assert handler.requests[0].url.path == "/v1/databases/db-proposals/query"
        assert handler.body(0)["filter"] == {
            "and": [{"property": "承認対象", "select": {"equals": "正会員"}}]
        }
        assert "start_cursor" not in handler.body(0)
        assert handler.body(1)["start_cursor"] == "c2"

    async def test_create_ticket_sets_relations(self):
        handler = RecordingHandler(httpx.Response(200, json=ticket_page("T9")))

        ticket = await store_with(handler).create(
            Collection.APPROVAL_TICKETS, {"proposal_id": "P1", "member_id": "M1"}
        )

        assert ticket.id == "T9"
        assert handler.body(0) == {
            "parent": {"database_id": "db-tickets"},
            "properties": {
                "議案": {"relation": [{"id": "P1"}]},
                "会員": {"relation": [{"id": "M1"}]},
            },
        }

    async def test_comment_update_writes_to_existing_comment_property(self):
        existing = ticket_page(**{"コメント（表示）": {"type": "rich_text", "rich_text": []}})
        handler = RecordingHandler(
            httpx.Response(200, json=existing),
            httpx.Response(200, json=existing),
        )

        await store_with(handler).update(
            Collection.APPROVAL_TICKETS,
            "T1",
            {
                "decision": Decision.APPROVED,
                "decided_at": datetime(2025, 3, 20, 12, 0, tzinfo=timezone.utc),
                "comment": "OK",
            },
        )

        assert [r.method for r in handler.requests] == ["GET", "PATCH"]
        properties = handler.body(1)["properties"]
        assert properties["承認結果"] == {"select": {"name": "承認"}}
        assert properties["承認日時"] == {"date": {"start": "2025-03-20T12:00:00+00:00"}}
        assert properties["コメント（表示）"]["rich_text"][0]["text"]["content"] == "OK"

    async def test_number_update_skips_page_lookup(self):
        handler = RecordingHandler(httpx.Response(200, json=proposal_page()))

        await store_with(handler).update(Collection.PROPOSALS, "P1", {"issue_number": 4})

        assert len(handler.requests) == 1
        assert handler.body(0) == {"properties": {"連番": {"number": 4}}}

    async def test_form_url_update_writes_url_property(self):
        handler = RecordingHandler(httpx.Response(200, json=ticket_page()))

        await store_with(handler).update(
            Collection.APPROVAL_TICKETS, "T1", {"form_url": "https://forms.example.org/a?id=T1"}
        )

        assert len(handler.requests) == 1
        assert handler.body(0) == {
            "properties": {"送信URL": {"url": "https://forms.example.org/a?id=T1"}}
        }


class TestNotionFailures:

    async def test_missing_page_raises_not_found(self):
        handler = RecordingHandler(httpx.Response(404, json={"code": "object_not_found"}))

        with pytest.raises(NotFound) as exc_info:
            await store_with(handler).get(Collection.MEMBERS, "M404")

        assert exc_info.value.record_id == "M404"

    async def test_server_error_is_upstream_unavailable(self):
        handler = RecordingHandler(httpx.Response(502, text="bad gateway"))

        with pytest.raises(UpstreamUnavailable) as exc_info:
            await store_with(handler).query(Collection.MEMBERS)

        assert exc_info.value.step == "query members"

    async def test_non_json_body_is_upstream_unavailable(self):
        handler = RecordingHandler(httpx.Response(200, text="<html>maintenance</html>"))

        with pytest.raises(UpstreamUnavailable) as exc_info:
            await store_with(handler).get(Collection.PROPOSALS, "P1")

        assert exc_info.value.step == "get proposals"

    async def test_transport_error_is_upstream_unavailable(self):
        handler = RecordingHandler(httpx.ConnectError("connection refused"))

        with pytest.raises(UpstreamUnavailable):
            await store_with(handler).get(Collection.PROPOSALS, "P1")

    async def test_missing_api_key_is_configuration_error(self):
        handler = RecordingHandler()

        with pytest.raises(ConfigurationError):
            await store_with(handler, notion_api_key=None).get(Collection.PROPOSALS, "P1")

        assert handler.requests == []

    async def test_missing_database_id_is_configuration_error(self):
        handler = RecordingHandler()

        with pytest.raises(ConfigurationError):
            await store_with(handler, notion_member_database_id=None).query(Collection.MEMBERS)
