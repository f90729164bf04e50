"""Detail and summary audit records correlated by transaction ID.

Every handled request produces two records:

- **DetailLog**: a fine-grained trace. Each call to a collaborator is
  appended as an Input entry (what was sent) and an Output entry (what came
  back), tagged with an invoke id from ``create_invoke``.
- **SummaryLog**: a coarse outcome. Each collaborator call appends one
  sequence block with a result code and description; ``end`` records the
  final result of the request.

Both records are assembled in memory and handed to the ``LogSink`` in a
single ``emit`` call when ``end`` runs, so concurrent requests never
interleave partial records. A record can be ended once; any append or
``end`` afterwards raises ``AuditLogClosedError``.

Example:
    audit = factory.open(request, scenario="get-all-user")
    with audit:
        invoke = audit.detail.create_invoke("postgres")
        audit.detail.add_input_request("postgres", "find-many", invoke, query)
        ...
        return audit.respond(envelope)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from types import TracebackType
from typing import TYPE_CHECKING, Any, Protocol, Self

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import to_jsonable_python

from waypoint.core.context import RequestContext, generate_transaction_id
from waypoint.core.error_context import sanitize_value
from waypoint.core.exceptions import classify_error

if TYPE_CHECKING:
    from starlette.requests import Request

    from waypoint.core.config import Settings
    from waypoint.core.types import AuditPayload, RequestSnapshot

DEFAULT_INVOKE = "initInvoke"
INBOUND_INVOKE = "default"


class LogType(StrEnum):
    """Logical type stamped on every entry of a record."""

    SUMMARY = "SUMMARY"
    DETAIL = "DETAIL"


class AuditLogClosedError(RuntimeError):
    """Raised when a record is modified or ended after ``end()``."""


def utc_now() -> datetime:
    """Default clock for audit records."""
    return datetime.now(UTC)


def _truncate_to_ms(moment: datetime) -> datetime:
    return moment.replace(microsecond=moment.microsecond // 1000 * 1000)


def format_timestamp(moment: datetime) -> str:
    """Render ``YYYY-MM-DD HH:MM:SS.mmm``."""
    return f"{moment:%Y-%m-%d %H:%M:%S}.{moment.microsecond // 1000:03d}"


def compact_timestamp(moment: datetime) -> str:
    """Render ``YYYYMMDDHHMMSSmmm``, used inside invoke ids."""
    return f"{moment:%Y%m%d%H%M%S}{moment.microsecond // 1000:03d}"


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Whole milliseconds between two millisecond-truncated instants."""
    return (end - start) // timedelta(milliseconds=1)


def resolve_transaction_id(request: Request, header: str) -> str:
    """Return the transaction id of ``request``, creating it if missing.

    The inbound header wins, then the id stored in the request context. A
    generated id is written back to the context so the second record of the
    pair picks up the same value.
    """
    transaction_id = request.headers.get(header) or RequestContext.get_transaction_id()
    if not transaction_id:
        transaction_id = generate_transaction_id()
        RequestContext.set_transaction_id(transaction_id)
    return transaction_id


def extract_request_info(request: Request) -> RequestSnapshot:
    """Snapshot the caller-facing metadata of ``request``.

    ``ip`` prefers X-Real-IP, then the first X-Forwarded-For hop, then the
    socket peer. ``clientIp`` keeps the raw X-Forwarded-For value when present.
    """
    headers = request.headers
    peer = request.client.host if request.client else None
    forwarded_for = headers.get("x-forwarded-for")
    first_hop = forwarded_for.split(",")[0].strip() if forwarded_for else None
    query = request.url.query

    return {
        "path": f"{request.url.path}?{query}" if query else request.url.path,
        "connection": headers.get("connection"),
        "cache-control": headers.get("cache-control"),
        "sec-ch-ua": headers.get("sec-ch-ua"),
        "sec-ch-ua-mobile": headers.get("sec-ch-ua-mobile"),
        "sec-ch-ua-platform": headers.get("sec-ch-ua-platform"),
        "upgrade-insecure-requests": headers.get("upgrade-insecure-requests"),
        "ip": headers.get("x-real-ip") or first_hop or peer,
        "device": headers.get("user-agent"),
        "location": headers.get("x-location"),
        "host": headers.get("host"),
        "baseUrl": request.scope.get("root_path", ""),
        "url": str(request.url),
        "method": request.method,
        "clientIp": forwarded_for or peer,
    }


class LogSink(Protocol):
    """Destination of finished audit records."""

    def emit(self, kind: LogType, record: Mapping[str, Any], level: str) -> None:
        """Write one fully assembled record."""
        ...


class LoguruSink:
    """Writes each audit record as one Loguru message."""

    def emit(self, kind: LogType, record: Mapping[str, Any], level: str) -> None:
        """Log ``record`` under ``audit_record`` at ``level``."""
        logger.bind(audit_type=kind.value.lower(), audit_record=dict(record)).log(
            level, "{} audit record", kind.value.title()
        )


class AuditEntry(BaseModel):
    """One Input or Output entry of a detail record."""

    model_config = ConfigDict(frozen=True)

    invoke: str = Field(serialization_alias="Invoke")
    event: str = Field(serialization_alias="Event")
    type: LogType = Field(serialization_alias="Type")
    data: Any = Field(default=None, serialization_alias="Data")
    protocol: str | None = Field(default=None, serialization_alias="Protocol")


class SequenceResult(BaseModel):
    """Result code and description of one collaborator call."""

    model_config = ConfigDict(frozen=True)

    result: str = Field(serialization_alias="Result")
    desc: str = Field(serialization_alias="Desc")


class SequenceBlock(BaseModel):
    """Summary block for one node/command pair."""

    model_config = ConfigDict(frozen=True)

    node: str = Field(serialization_alias="Node")
    command: str = Field(serialization_alias="Command")
    results: list[SequenceResult] = Field(serialization_alias="result")


class DetailRecord(BaseModel):
    """Finished detail record, as handed to the sink."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(serialization_alias="Host")
    app_name: str = Field(serialization_alias="AppName")
    instance: str = Field(serialization_alias="Instance")
    session: str = Field(serialization_alias="Session")
    init_invoke: str = Field(serialization_alias="InitInvoke")
    scenario: str = Field(serialization_alias="Scenario")
    identity: str = Field(serialization_alias="Identity")
    input_timestamp: str = Field(serialization_alias="InputTimeStamp")
    inputs: list[AuditEntry] = Field(serialization_alias="Input")
    output_timestamp: str = Field(serialization_alias="OutputTimeStamp")
    outputs: list[AuditEntry] = Field(serialization_alias="Output")
    processing_time: str = Field(serialization_alias="ProcessingTime")


class SummaryRecord(BaseModel):
    """Finished summary record, as handed to the sink."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(serialization_alias="Host")
    type: LogType = Field(serialization_alias="Type")
    app_name: str = Field(serialization_alias="AppName")
    instance: str = Field(serialization_alias="Instance")
    session: str = Field(serialization_alias="Session")
    init_invoke: str = Field(serialization_alias="InitInvoke")
    scenario: str = Field(serialization_alias="Scenario")
    identity: str = Field(serialization_alias="Identity")
    response_result: str = Field(serialization_alias="ResponseResult")
    response_desc: str = Field(serialization_alias="ResponseDesc")
    sequences: list[SequenceBlock] = Field(serialization_alias="Sequences")
    end_process_timestamp: str = Field(serialization_alias="EndProcessTimeStamp")
    process_time: str = Field(serialization_alias="ProcessTime")
    request: dict[str, str | None] = Field(serialization_alias="Request")


def render_record(record: BaseModel) -> dict[str, Any]:
    """Dump a finished record with its log field names."""
    return record.model_dump(by_alias=True, mode="json", exclude_unset=True)


@dataclass(frozen=True, slots=True)
class AuditOptions:
    """Process-wide inputs shared by every record."""

    app_name: str
    instance: str = "0"
    level: str = "INFO"
    transaction_id_header: str = "x-transaction-id"
    sensitive_fields: tuple[str, ...] = ()
    sink: LogSink = field(default_factory=LoguruSink)
    clock: Callable[[], datetime] = utc_now


class _AuditRecordBuilder:
    """State shared by the detail and summary builders."""

    log_type: LogType

    def __init__(
        self,
        request: Request,
        invoke: str,
        scenario: str,
        identity: str,
        options: AuditOptions,
    ) -> None:
        self._options = options
        self.host = request.url.hostname or ""
        self.session = resolve_transaction_id(request, options.transaction_id_header)
        self.input_time = self._now()
        self.init_invoke = f"{invoke}_{format_timestamp(self.input_time)}"
        self.scenario = scenario
        self.identity = identity
        self.ended = False

    def _now(self) -> datetime:
        return _truncate_to_ms(self._options.clock())

    def _finish_time(self) -> datetime:
        # Never earlier than the input time, even if the wall clock stepped back
        return max(self._now(), self.input_time)

    def _ensure_open(self) -> None:
        if self.ended:
            msg = f"{self.log_type.value.title()} record already ended"
            raise AuditLogClosedError(msg)

    def _payload(self, data: AuditPayload) -> Any:  # noqa: ANN401
        jsonable = to_jsonable_python(data, fallback=str)
        return sanitize_value(jsonable, "", self._options.sensitive_fields)

    def _emit(self, record: BaseModel) -> None:
        self._options.sink.emit(
            self.log_type, render_record(record), self._options.level
        )


class DetailLog(_AuditRecordBuilder):
    """Fine-grained per-request trace of collaborator inputs and outputs."""

    log_type = LogType.DETAIL

    def __init__(
        self,
        request: Request,
        invoke: str,
        scenario: str,
        identity: str,
        options: AuditOptions,
    ) -> None:
        super().__init__(request, invoke, scenario, identity, options)
        self.inputs: list[AuditEntry] = []
        self.outputs: list[AuditEntry] = []

        method = request.method.lower()
        self.inputs.append(
            AuditEntry(
                invoke=INBOUND_INVOKE,
                event=f"client.{method}{request.url.path.replace('/', '.')}",
                type=self.log_type,
                data={},
                protocol=f"http.{method}",
            )
        )

    def create_invoke(self, node_name: str | None = None) -> str:
        """Return a fresh invoke id ``<node>_<compact timestamp>``.

        Pass the id to the ``add_*`` calls of one collaborator call so its
        request and response entries can be paired.
        """
        node = node_name or self._options.app_name
        return f"{node}_{compact_timestamp(self._options.clock())}"

    def _entry(
        self,
        node: str,
        cmd: str,
        invoke: str,
        data: AuditPayload,
        protocol: str | None,
        protocol_method: str | None,
    ) -> AuditEntry:
        self._ensure_open()
        fields: dict[str, Any] = {
            "invoke": invoke,
            "event": f"{node}.{cmd}",
            "type": self.log_type,
            "data": self._payload(data),
        }
        if protocol and protocol_method:
            fields["protocol"] = f"{protocol}.{protocol_method}"
        return AuditEntry(**fields)

    def add_input_request(
        self,
        node: str,
        cmd: str,
        invoke: str,
        data: AuditPayload,
        protocol: str | None = None,
        protocol_method: str | None = None,
    ) -> Self:
        """Record a request this service received."""
        self.inputs.append(
            self._entry(node, cmd, invoke, data, protocol, protocol_method)
        )
        return self

    def add_output_request(
        self,
        node: str,
        cmd: str,
        invoke: str,
        data: AuditPayload,
        protocol: str | None = None,
        protocol_method: str | None = None,
    ) -> Self:
        """Record what a collaborator returned (or the error it raised)."""
        self.outputs.append(
            self._entry(node, cmd, invoke, data, protocol, protocol_method)
        )
        return self

    def add_input_response(
        self,
        node: str,
        cmd: str,
        invoke: str,
        data: AuditPayload,
        protocol: str | None = None,
        protocol_method: str | None = None,
    ) -> Self:
        """Record a response received from a collaborator."""
        self.inputs.append(
            self._entry(node, cmd, invoke, data, protocol, protocol_method)
        )
        return self

    def add_output_response(
        self,
        node: str,
        cmd: str,
        invoke: str,
        data: AuditPayload,
        protocol: str | None = None,
        protocol_method: str | None = None,
    ) -> Self:
        """Record a response this service sent back."""
        self.outputs.append(
            self._entry(node, cmd, invoke, data, protocol, protocol_method)
        )
        return self

    def end(self) -> DetailRecord:
        """Stamp the output time, emit the record and close it.

        Raises:
            AuditLogClosedError: If the record was already ended.
        """
        self._ensure_open()
        output_time = self._finish_time()
        record = DetailRecord(
            host=self.host,
            app_name=self._options.app_name,
            instance=self._options.instance,
            session=self.session,
            init_invoke=self.init_invoke,
            scenario=self.scenario,
            identity=self.identity,
            input_timestamp=format_timestamp(self.input_time),
            inputs=list(self.inputs),
            output_timestamp=format_timestamp(output_time),
            outputs=list(self.outputs),
            processing_time=str(elapsed_ms(self.input_time, output_time)),
        )
        self.ended = True
        self._emit(record)
        return record


class SummaryLog(_AuditRecordBuilder):
    """Coarse per-request outcome with one block per collaborator call."""

    log_type = LogType.SUMMARY

    def __init__(
        self,
        request: Request,
        invoke: str,
        scenario: str,
        identity: str,
        options: AuditOptions,
    ) -> None:
        super().__init__(request, invoke, scenario, identity, options)
        self.sequences: list[SequenceBlock] = []
        # Point-in-time copy; later changes to the request are not reflected
        self.request_info = dict(extract_request_info(request))

    def _add_block(self, node: str, cmd: str, result: str, desc: str) -> Self:
        self._ensure_open()
        self.sequences.append(
            SequenceBlock(
                node=node,
                command=cmd,
                results=[SequenceResult(result=result, desc=desc)],
            )
        )
        return self

    def add_success_block(self, node: str, cmd: str, result: str, desc: str) -> Self:
        """Append a block for a collaborator call that succeeded."""
        return self._add_block(node, cmd, result, desc)

    def add_error_block(self, node: str, cmd: str, result: str, desc: str) -> Self:
        """Append a block for a collaborator call that failed."""
        return self._add_block(node, cmd, result, desc)

    def end(self, result: str = "OK", desc: str = "Success") -> SummaryRecord:
        """Record the request outcome, emit the record and close it.

        Raises:
            AuditLogClosedError: If the record was already ended.
        """
        self._ensure_open()
        end_time = self._finish_time()
        record = SummaryRecord(
            host=self.host,
            type=self.log_type,
            app_name=self._options.app_name,
            instance=self._options.instance,
            session=self.session,
            init_invoke=self.init_invoke,
            scenario=self.scenario,
            identity=self.identity,
            response_result=result,
            response_desc=desc,
            sequences=list(self.sequences),
            end_process_timestamp=format_timestamp(end_time),
            process_time=str(elapsed_ms(self.input_time, end_time)),
            request=self.request_info,
        )
        self.ended = True
        self._emit(record)
        return record


class AuditLogger:
    """The detail/summary pair of one request.

    Used as a context manager, it guarantees both records are emitted: if
    the block raises before ``respond``, each open record is ended with the
    classified status and message and the error propagates unchanged.
    """

    def __init__(self, detail: DetailLog, summary: SummaryLog) -> None:
        self.detail = detail
        self.summary = summary

    @property
    def session(self) -> str:
        """Transaction id shared by both records."""
        return self.detail.session

    def respond[T](self, response: T) -> T:
        """End both records and hand ``response`` back to the caller."""
        self.detail.end()
        self.summary.end()
        return response

    def __enter__(self) -> Self:
        """Enter the request scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """End whichever record is still open."""
        if exc is None:
            result, desc = "OK", "Success"
        else:
            classified = classify_error(exc)
            result, desc = str(classified.status_code), classified.message

        if not self.detail.ended:
            self.detail.end()
        if not self.summary.ended:
            self.summary.end(result, desc)


class AuditLogFactory:
    """Builds ``AuditLogger`` pairs from injected configuration."""

    def __init__(self, options: AuditOptions) -> None:
        self.options = options

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        sink: LogSink | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> Self:
        """Create a factory from application settings."""
        return cls(
            AuditOptions(
                app_name=settings.app_name,
                instance=settings.audit_config.instance,
                level=settings.audit_config.level,
                transaction_id_header=settings.server_config.transaction_id_header,
                sensitive_fields=tuple(settings.log_config.sensitive_fields),
                sink=sink or LoguruSink(),
                clock=clock or utc_now,
            )
        )

    def open(
        self,
        request: Request,
        scenario: str,
        invoke: str = DEFAULT_INVOKE,
        identity: str = "",
    ) -> AuditLogger:
        """Start the detail and summary records of ``request``."""
        detail = DetailLog(request, invoke, scenario, identity, self.options)
        summary = SummaryLog(request, invoke, scenario, identity, self.options)
        return AuditLogger(detail, summary)
