"""Integration catalog - actions and parameters of each integration node."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DynamicField:
    """A parameter whose options come from the integration's live data."""

    field_type: str
    # Wire key of the parameter this one depends on (worksheet -> spreadsheet)
    parent_key: str | None = None
    parent_required: bool = True


@dataclass(frozen=True)
class ParamSpec:
    key: str
    label: str
    required: bool = False
    dynamic: DynamicField | None = None


@dataclass(frozen=True)
class ActionSpec:
    value: str
    label: str
    description: str
    params: tuple[ParamSpec, ...] = ()

    def keys(self) -> tuple[str, ...]:
        return tuple(param.key for param in self.params)

    def dynamic_params(self) -> tuple[ParamSpec, ...]:
        return tuple(param for param in self.params if param.dynamic)


@dataclass(frozen=True)
class Integration:
    integration_type: str
    label: str
    default_response_variable: str
    actions: dict[str, ActionSpec] = field(default_factory=dict)


def _actions(*specs: ActionSpec) -> dict[str, ActionSpec]:
    return {spec.value: spec for spec in specs}


_CHANNEL = ParamSpec("channel", "Channel", required=True, dynamic=DynamicField("channel"))
_MESSAGE = ParamSpec("message", "Message", required=True)
_MESSAGE_TS = ParamSpec("messageTs", "Message Timestamp", required=True)

SLACK = Integration(
    integration_type="slack",
    label="Slack",
    default_response_variable="slackResponse",
    actions=_actions(
        ActionSpec(
            "post_message",
            "Post Message",
            "Post a message to a channel",
            (
                _CHANNEL,
                _MESSAGE,
                ParamSpec("username", "Bot Username"),
                ParamSpec("iconEmoji", "Icon Emoji"),
                ParamSpec("messageFormat", "Message Format"),
            ),
        ),
        ActionSpec(
            "send_dm",
            "Send Direct Message",
            "Send a DM to a user",
            (
                ParamSpec("user", "User", required=True, dynamic=DynamicField("user")),
                _MESSAGE,
            ),
        ),
        ActionSpec(
            "create_channel",
            "Create Channel",
            "Create a new channel",
            (
                ParamSpec("channelName", "Channel Name", required=True),
                ParamSpec("isPrivate", "Private Channel"),
            ),
        ),
        ActionSpec(
            "update_message",
            "Update Message",
            "Update an existing message",
            (_CHANNEL, _MESSAGE_TS, _MESSAGE),
        ),
        ActionSpec(
            "add_reaction",
            "Add Reaction",
            "Add an emoji reaction",
            (_CHANNEL, _MESSAGE_TS, ParamSpec("emoji", "Emoji", required=True)),
        ),
        ActionSpec(
            "upload_file",
            "Upload File",
            "Upload a file to a channel",
            (
                _CHANNEL,
                ParamSpec("fileUrl", "File URL", required=True),
                ParamSpec("filename", "Filename"),
                ParamSpec("comment", "Comment"),
            ),
        ),
        ActionSpec(
            "set_topic",
            "Set Channel Topic",
            "Update channel topic",
            (_CHANNEL, ParamSpec("topic", "Topic", required=True)),
        ),
        ActionSpec(
            "invite_to_channel",
            "Invite to Channel",
            "Invite users to a channel",
            (_CHANNEL, ParamSpec("users", "Users", required=True)),
        ),
    ),
)

_SPREADSHEET = ParamSpec(
    "spreadsheetId", "Spreadsheet", required=True, dynamic=DynamicField("spreadsheet")
)
_WORKSHEET = ParamSpec(
    "worksheetId",
    "Worksheet",
    required=True,
    dynamic=DynamicField("worksheet", parent_key="spreadsheetId"),
)

GOOGLE_SHEETS = Integration(
    integration_type="google_sheets",
    label="Google Sheets",
    default_response_variable="sheetsData",
    actions=_actions(
        ActionSpec(
            "read",
            "Read Rows",
            "Read data from a spreadsheet",
            (
                _SPREADSHEET,
                _WORKSHEET,
                ParamSpec("range", "Range"),
                ParamSpec("hasHeaders", "First Row Has Headers"),
            ),
        ),
        ActionSpec(
            "append",
            "Append Row",
            "Add a new row to a sheet",
            (_SPREADSHEET, _WORKSHEET, ParamSpec("rowData", "Row Data", required=True)),
        ),
        ActionSpec(
            "update",
            "Update Rows",
            "Update existing rows",
            (
                _SPREADSHEET,
                _WORKSHEET,
                ParamSpec("range", "Range", required=True),
                ParamSpec("values", "Values", required=True),
            ),
        ),
        ActionSpec(
            "clear",
            "Clear Rows",
            "Clear data from a range",
            (_SPREADSHEET, _WORKSHEET, ParamSpec("range", "Range", required=True)),
        ),
        ActionSpec(
            "create_sheet",
            "Create Sheet",
            "Create a new sheet in spreadsheet",
            (_SPREADSHEET, ParamSpec("sheetName", "Sheet Name", required=True)),
        ),
    ),
)

_DATABASE = ParamSpec("databaseId", "Database", required=True, dynamic=DynamicField("database"))
_PAGE = ParamSpec(
    "pageId",
    "Page",
    required=True,
    dynamic=DynamicField("page", parent_key="databaseId", parent_required=False),
)

NOTION = Integration(
    integration_type="notion",
    label="Notion",
    default_response_variable="notionData",
    actions=_actions(
        ActionSpec(
            "create_page",
            "Create Page",
            "Create a new page in a database",
            (
                _DATABASE,
                ParamSpec("pageTitle", "Page Title", required=True),
                ParamSpec("properties", "Properties (JSON)"),
            ),
        ),
        ActionSpec(
            "update_page",
            "Update Page",
            "Update an existing page",
            (_PAGE, ParamSpec("properties", "Properties (JSON)", required=True)),
        ),
        ActionSpec(
            "query_database",
            "Query Database",
            "Search and filter database entries",
            (_DATABASE, ParamSpec("filter", "Filter (JSON)"), ParamSpec("limit", "Limit")),
        ),
        ActionSpec("retrieve_page", "Retrieve Page", "Get a specific page by ID", (_PAGE,)),
        ActionSpec("archive_page", "Archive Page", "Move a page to archive", (_PAGE,)),
    ),
)

INTEGRATIONS: dict[str, Integration] = {
    integration.integration_type: integration
    for integration in (SLACK, GOOGLE_SHEETS, NOTION)
}
