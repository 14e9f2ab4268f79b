"""Wire and result models for Magnus Tool.

Pydantic models for the JSON payloads exchanged with the remote server
and for the row/summary shapes handed to callers. Incoming payload keys
are camel case once the session has normalized them.
"""

from __future__ import annotations

import os
from enum import IntEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ColumnType(IntEnum):
    """Semantic type of a result column. Governs display formatting only."""

    UNKNOWN = 0
    STRING = 1
    NUMBER = 2
    BOOLEAN = 3
    DATETIME = 4
    BYTE_ARRAY = 5


class NodeType(IntEnum):
    DATABASES_FOLDER = 0
    DATABASE = 1
    TABLES_FOLDER = 2
    TABLE = 3
    COLUMNS_FOLDER = 4
    COLUMN = 5


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ServerDetails(WireModel):
    """Static facts returned when the session is negotiated."""

    database_name: str = ""
    os_version: str = Field(
        default="", validation_alias=AliasChoices("osVersion", "oSVersion", "os_version")
    )
    platform_version: str = Field(
        default="",
        validation_alias=AliasChoices("rockVersion", "platformVersion", "platform_version"),
    )
    engine_edition: str = Field(
        default="",
        validation_alias=AliasChoices("sqlEdition", "engineEdition", "engine_edition"),
    )
    engine_version: str = Field(
        default="",
        validation_alias=AliasChoices("sqlVersion", "engineVersion", "engine_version"),
    )


class QueryMessage(WireModel):
    """One diagnostic line emitted by the server while a query runs."""

    text: str = Field(default="", alias="message")
    code: int | None = None
    severity: int | None = Field(default=None, alias="level")
    state: int | None = None
    line_number: int | None = None

    @property
    def is_error(self) -> bool:
        return bool(self.code)


class QueryColumn(WireModel):
    name: str
    type: ColumnType = ColumnType.UNKNOWN

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            key = v.strip().upper()
            if key in ColumnType.__members__:
                return ColumnType[key]
            if key == "BYTEARRAY":
                return ColumnType.BYTE_ARRAY
            return ColumnType.UNKNOWN
        if isinstance(v, int) and v not in ColumnType._value2member_map_:
            return ColumnType.UNKNOWN
        if v is None:
            return ColumnType.UNKNOWN
        return v


class QueryResultSet(WireModel):
    columns: list[QueryColumn] = []
    rows: list[list[Any]] = []

    @property
    def row_count(self) -> int:
        return len(self.rows)


class QueryProgress(WireModel):
    """Server view of one execution, returned by submit and every poll."""

    identifier: str | None = None
    is_complete: bool = False
    duration_millis: float | None = Field(
        default=None, validation_alias=AliasChoices("duration", "durationMillis")
    )
    messages: list[QueryMessage] = []
    result_sets: list[QueryResultSet] | None = None


class ObjectExplorerNode(WireModel):
    id: str
    type: NodeType
    name: str


class ResultSetSummary(BaseModel):
    id: int
    batch_id: int = 0
    row_count: int
    columns: list[QueryColumn]
    complete: bool = True


class DbCellValue(BaseModel):
    display_value: str
    is_null: bool
    invariant_culture_display_value: str


class ResultSubset(BaseModel):
    row_count: int
    rows: list[list[DbCellValue]]


class BatchSummary(BaseModel):
    id: int = 0
    execution_start: str
    execution_end: str | None = None
    execution_elapsed: str | None = None
    has_error: bool = False
    result_set_summaries: list[ResultSetSummary] = []


class SaveResultsRequest(BaseModel):
    """Export parameters for one result set of an owner's active query."""

    owner_uri: str
    result_set_index: int = 0
    file_path: str
    result_format: str
    include_headers: bool = False
    delimiter: str = ","
    line_separator: str = os.linesep
    text_identifier: str = '"'
    encoding: str = "utf-8"


class SaveResultsResult(BaseModel):
    messages: str = ""


class ConnectionSummary(BaseModel):
    server_name: str
    database_name: str
    user_name: str


class ConnectionCompleteEvent(BaseModel):
    """Outcome of a connect attempt; error_message is empty on success."""

    owner_uri: str
    connection_id: str | None = None
    error_message: str = ""
    summary: ConnectionSummary | None = None
    server_details: ServerDetails | None = None

    @property
    def success(self) -> bool:
        return not self.error_message


class QueryMessageEvent(BaseModel):
    owner_uri: str
    batch_id: int = 0
    is_error: bool = False
    message: str


class ResultSetAvailableEvent(BaseModel):
    owner_uri: str
    summary: ResultSetSummary


class BatchEvent(BaseModel):
    owner_uri: str
    batch: BatchSummary


class QueryCompleteEvent(BaseModel):
    owner_uri: str
    batch_summaries: list[BatchSummary] = []
