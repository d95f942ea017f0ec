"""Status advice parsing (sese.024-style documents from the depository).

Vendors differ in namespace declarations across message families, so every
lookup is by local element name. Each section is extracted on its own: a
missing or malformed section is logged and the rest still comes through.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from xml.etree.ElementTree import Element, ParseError, fromstring

from app.models.enums import CanonicalStatus
from app.util.time import now_utc

log = logging.getLogger("status.parser")

STATUS_CODES: dict[str, CanonicalStatus] = {
    "0201": CanonicalStatus.MATCHED,
    "0202": CanonicalStatus.SETTLED,
    "0203": CanonicalStatus.FAILED,
    "0204": CanonicalStatus.CANCELLED,
    "0205": CanonicalStatus.PENDING,
    "0206": CanonicalStatus.REJECTED,
}


@dataclass(frozen=True)
class StatusRecord:
    source_queue: str
    received_at: datetime
    correlation_key: str | None = None
    raw_status_code: str | None = None
    canonical_status: CanonicalStatus = CanonicalStatus.UNKNOWN
    additional_reason_info: str | None = None
    status_issuer: str | None = None

    # header
    business_message_id: str | None = None
    message_definition_id: str | None = None
    creation_date: datetime | None = None
    from_bic: str | None = None
    to_bic: str | None = None

    # identification
    account_owner_transaction_id: str | None = None
    account_servicer_transaction_id: str | None = None
    trade_ids: tuple[str, ...] = ()

    # transaction details
    isin: str | None = None
    instrument_description: str | None = None
    settlement_quantity: int | None = None
    settlement_amount: str | None = None
    currency: str | None = None
    credit_debit_indicator: str | None = None
    movement_type: str | None = None
    payment_type: str | None = None
    account_owner_id: str | None = None
    safekeeping_account_id: str | None = None
    expected_settlement_date: date | None = None
    settlement_date: date | None = None
    trade_date: date | None = None

    # settlement parties
    receiving_depository: str | None = None
    receiving_processing_id: str | None = None
    delivering_depository: str | None = None
    delivering_processing_id: str | None = None

    raw_body: str = field(default="", repr=False)

    @property
    def matchable(self) -> bool:
        return bool(self.correlation_key)

    def summary(self) -> dict:
        return {
            "raw_status_code": self.raw_status_code,
            "status_issuer": self.status_issuer,
            "business_message_id": self.business_message_id,
            "movement_type": self.movement_type,
            "source_queue": self.source_queue,
            "received_at": self.received_at.isoformat(),
        }


def map_status_code(code: str | None, reason: str | None = None) -> CanonicalStatus:
    if not code:
        return CanonicalStatus.UNKNOWN
    status = STATUS_CODES.get(code.strip())
    if status is None:
        log.warning("Unknown status code: %s with reason: %s", code, reason)
        return CanonicalStatus.UNKNOWN
    return status


def parse_status(xml_body: str | bytes | None, source_queue: str) -> StatusRecord | None:
    """Parse one status document; None if it is not XML at all. Never raises."""

    if not xml_body:
        log.error("Empty status message from queue: %s", source_queue)
        return None
    try:
        root = fromstring(xml_body)
    except (ParseError, ValueError) as e:
        log.error("Failed to parse status message from queue %s: %s", source_queue, str(e))
        return None

    fields: dict = {}
    for section, extract in _SECTIONS:
        try:
            extract(root, fields)
        except Exception as e:
            log.warning("Failed to parse %s from queue %s: %s", section, source_queue, str(e))

    body = xml_body.decode("utf-8", errors="replace") if isinstance(xml_body, bytes) else xml_body
    record = StatusRecord(source_queue=source_queue, received_at=now_utc(), raw_body=body, **fields)
    log.info(
        "Parsed status message correlation_key=%s status=%s movement=%s queue=%s",
        record.correlation_key,
        record.canonical_status.value,
        record.movement_type,
        source_queue,
    )
    return record


# ---------- lookup helpers (local names only) ----------


def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def find_first(parent: Element, name: str) -> Element | None:
    for el in parent.iter():
        if el is not parent and local_name(el.tag) == name:
            return el
    return None


def find_all(parent: Element, name: str) -> list[Element]:
    return [el for el in parent.iter() if el is not parent and local_name(el.tag) == name]


def find_path(parent: Element | None, path: str) -> Element | None:
    current = parent
    for part in path.split("/"):
        if current is None:
            return None
        current = find_first(current, part)
    return current


def text_at(parent: Element | None, path: str) -> str | None:
    el = find_path(parent, path)
    if el is None:
        return None
    value = "".join(el.itertext()).strip()
    return value or None


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        log.warning("Failed to parse date: %s", value)
        return None


_FRACTION = re.compile(r"\.(\d+)")


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    v = value.strip()
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    # Vendor timestamps carry 7 fractional digits; datetime takes at most 6.
    v = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), v, count=1)
    try:
        return datetime.fromisoformat(v)
    except ValueError:
        log.warning("Failed to parse creation date: %s", value)
        return None


# ---------- sections ----------


def _header(root: Element, out: dict) -> None:
    hdr = find_first(root, "AppHdr")
    if hdr is None:
        return
    out["business_message_id"] = text_at(hdr, "BizMsgIdr")
    out["message_definition_id"] = text_at(hdr, "MsgDefIdr")
    out["creation_date"] = _parse_datetime(text_at(hdr, "CreDt"))
    out["from_bic"] = text_at(hdr, "Fr/OrgId/Id/OrgId/AnyBIC")
    out["to_bic"] = text_at(hdr, "To/OrgId/Id/OrgId/AnyBIC")


def _identification(root: Element, out: dict) -> None:
    tx = find_first(root, "TxId")
    if tx is not None:
        out["account_owner_transaction_id"] = text_at(tx, "AcctOwnrTxId")
        out["account_servicer_transaction_id"] = text_at(tx, "AcctSvcrTxId")
        out["correlation_key"] = text_at(tx, "CmonId")
    if not out.get("correlation_key"):
        # Some families carry the common id outside TxId.
        out["correlation_key"] = text_at(root, "CmonId")

    trade_ids = []
    for el in find_all(root, "TradId"):
        value = "".join(el.itertext()).strip()
        if value:
            trade_ids.append(value)
    out["trade_ids"] = tuple(trade_ids)


def _status(root: Element, out: dict) -> None:
    sts = find_first(root, "PrcgSts")
    code = issuer = reason = None
    if sts is not None:
        code = text_at(sts, "Prtry/PrtrySts/Id")
        issuer = text_at(sts, "Prtry/PrtrySts/Issr")
        reason = text_at(sts, "Prtry/PrtryRsn/AddtlRsnInf")
    out["raw_status_code"] = code
    out["status_issuer"] = issuer
    out["additional_reason_info"] = reason
    out["canonical_status"] = map_status_code(code, reason)


def _details(root: Element, out: dict) -> None:
    dtls = find_first(root, "TxDtls")
    if dtls is None:
        return
    out["account_owner_id"] = text_at(dtls, "AcctOwnr/PrtryId/Id")
    out["safekeeping_account_id"] = text_at(dtls, "SfkpgAcct/Id")
    out["isin"] = text_at(dtls, "FinInstrmId/ISIN")
    out["instrument_description"] = text_at(dtls, "FinInstrmId/Desc")

    qty = text_at(dtls, "SttlmQty/Qty/Unit")
    if qty:
        try:
            out["settlement_quantity"] = int(float(qty))
        except (ValueError, OverflowError):
            log.warning("Failed to parse settlement quantity: %s", qty)

    amt = find_path(dtls, "SttlmAmt/Amt")
    if amt is not None:
        out["settlement_amount"] = (amt.text or "").strip() or None
        out["currency"] = amt.get("Ccy")
    out["credit_debit_indicator"] = text_at(dtls, "SttlmAmt/CdtDbtInd")

    out["expected_settlement_date"] = _parse_date(text_at(dtls, "XpctdSttlmDt/Dt"))
    out["settlement_date"] = _parse_date(text_at(dtls, "SttlmDt/Dt/Dt"))
    out["trade_date"] = _parse_date(text_at(dtls, "TradDt/Dt/Dt"))
    out["movement_type"] = text_at(dtls, "SctiesMvmntTp")
    out["payment_type"] = text_at(dtls, "Pmt")


def _parties(root: Element, out: dict) -> None:
    out["receiving_depository"] = text_at(root, "RcvgSttlmPties/Dpstry/Id/AnyBIC")
    out["receiving_processing_id"] = text_at(root, "RcvgSttlmPties/Dpstry/PrcgId")
    out["delivering_depository"] = text_at(root, "DlvrgSttlmPties/Dpstry/Id/AnyBIC")
    out["delivering_processing_id"] = text_at(root, "DlvrgSttlmPties/Dpstry/PrcgId")


_SECTIONS = (
    ("message header", _header),
    ("transaction identification", _identification),
    ("status information", _status),
    ("transaction details", _details),
    ("settlement parties", _parties),
)
