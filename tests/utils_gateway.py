from __future__ import annotations

import time
from collections import defaultdict, deque
from datetime import date

from app.queue.gateway import QueueGatewayError


class FakeGateway:
    """In-memory queue gateway.

    ``refuse_sends`` / ``raise_sends`` hold send attempt indexes (0 = first
    send) that return False / raise. ``receive_errors[q]`` is how many of the
    next receives on ``q`` raise. ``receive_delays[q]`` seconds are slept
    inside every receive on ``q``; ``received_at[q]`` holds the monotonic time
    each receive returned.
    """

    kind = "fake"

    def __init__(self, *, refuse_sends=(), raise_sends=()):
        self.queues: dict[str, deque] = defaultdict(deque)
        self.attempts: list[tuple[str, str]] = []
        self.refuse_sends = set(refuse_sends)
        self.raise_sends = set(raise_sends)
        self.receive_errors: dict[str, int] = defaultdict(int)
        self.receive_calls: dict[str, int] = defaultdict(int)
        self.receive_delays: dict[str, float] = {}
        self.received_at: dict[str, list[float]] = defaultdict(list)

    def _send(self, destination: str, body: str) -> bool:
        idx = len(self.attempts)
        self.attempts.append((destination, body))
        if idx in self.raise_sends:
            raise QueueGatewayError(f"connection reset on send {idx}")
        if idx in self.refuse_sends:
            return False
        self.queues[destination].append(body)
        return True

    def send_local(self, queue_name: str, body: str) -> bool:
        return self._send(queue_name, body)

    def send_remote(self, remote_address: str, body: str) -> bool:
        return self._send(remote_address, body)

    def receive(self, queue_name: str, timeout_ms: int) -> str | None:
        self.receive_calls[queue_name] += 1
        if queue_name in self.receive_delays:
            time.sleep(self.receive_delays[queue_name])
        self.received_at[queue_name].append(time.monotonic())
        if self.receive_errors[queue_name] > 0:
            self.receive_errors[queue_name] -= 1
            raise QueueGatewayError(f"receive failed on {queue_name}")
        q = self.queues[queue_name]
        return q.popleft() if q else None

    def push(self, queue_name: str, body: str) -> None:
        self.queues[queue_name].append(body)


def settlement_payload(**overrides) -> dict:
    data = {
        "isin_code": "TZ1996100214",
        "security_name": "CRDB BANK PLC",
        "quantity": 1500,
        "seller_account_id": "SOR-100234",
        "buyer_account_id": "SOR-200871",
        "seller_name": "Amani Holdings",
        "buyer_name": "Pwani Capital",
        "trade_date": date(2026, 3, 2).isoformat(),
        "settlement_date": date(2026, 3, 5).isoformat(),
        "queue_name": "settlement_out",
        "seller_broker_bic": "ORBSTZTZ",
        "buyer_broker_bic": "VERTTZTZ",
        "environment": "local",
    }
    data.update(overrides)
    return data


def pledge_payload(**overrides) -> dict:
    data = {
        "security_isin": "TZ1996100305",
        "security_desc": "NMB BANK PLC",
        "quantity": 250,
        "broker_code": "B02",
        "csd_account": "SOR-300112",
        "pledgee_bpid": "PLG-77",
        "queue_name": "pledge_out",
        "environment": "local",
    }
    data.update(overrides)
    return data


def status_xml(
    correlation_key: str | None,
    code: str | None = "0202",
    *,
    reason: str | None = None,
    movement: str = "RECE",
) -> str:
    cmon = f"<CmonId>{correlation_key}</CmonId>" if correlation_key else ""
    sts = ""
    if code is not None:
        rsn = f"<PrtryRsn><AddtlRsnInf>{reason}</AddtlRsnInf></PrtryRsn>" if reason else ""
        sts = f"<PrcgSts><Prtry><PrtrySts><Id>{code}</Id><Issr>DSTX</Issr></PrtrySts>{rsn}</Prtry></PrcgSts>"
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<RequestPayload xmlns="SWIFTNetBusinessEnvelope">'
        '<h:AppHdr xmlns:h="urn:iso:std:iso:20022:tech:xsd:head.001.001.01">'
        "<h:Fr><h:OrgId><h:Id><h:OrgId><h:AnyBIC>DSTXTZTZXXX</h:AnyBIC></h:OrgId></h:Id></h:OrgId></h:Fr>"
        "<h:To><h:OrgId><h:Id><h:OrgId><h:AnyBIC>SAFMXXXXXXX</h:AnyBIC></h:OrgId></h:Id></h:OrgId></h:To>"
        "<h:BizMsgIdr>Settlement Status</h:BizMsgIdr>"
        "<h:MsgDefIdr>sese.024.001.10</h:MsgDefIdr>"
        "<h:CreDt>2026-03-05T10:15:30.1234567Z</h:CreDt>"
        "</h:AppHdr>"
        '<Document xmlns="urn:iso:std:iso:20022:tech:xsd:sese.024.001.10">'
        "<SctiesSttlmTxStsAdvc>"
        f"<TxId><AcctOwnrTxId>260305ABC123A</AcctOwnrTxId><AcctSvcrTxId>SVC-9</AcctSvcrTxId>{cmon}"
        "<TradId>T-1</TradId><TradId>T-2</TradId></TxId>"
        f"{sts}"
        "<TxDtls>"
        "<AcctOwnr><PrtryId><Id>SOR-100234</Id></PrtryId></AcctOwnr>"
        "<SfkpgAcct><Id>ORBSTZTZ/C</Id><Nm>Orbit</Nm></SfkpgAcct>"
        "<FinInstrmId><ISIN>TZ1996100214</ISIN><Desc>CRDB BANK PLC</Desc></FinInstrmId>"
        "<SttlmQty><Qty><Unit>1500</Unit></Qty></SttlmQty>"
        '<SttlmAmt><Amt Ccy="TZS">2250000</Amt><CdtDbtInd>DBIT</CdtDbtInd></SttlmAmt>'
        "<XpctdSttlmDt><Dt>2026-03-05</Dt></XpctdSttlmDt>"
        "<SttlmDt><Dt><Dt>2026-03-05</Dt></Dt></SttlmDt>"
        "<TradDt><Dt><Dt>2026-03-02</Dt></Dt></TradDt>"
        f"<SctiesMvmntTp>{movement}</SctiesMvmntTp><Pmt>FREE</Pmt>"
        "<RcvgSttlmPties><Dpstry><Id><AnyBIC>SAFMXXXX</AnyBIC></Id><PrcgId>21</PrcgId></Dpstry></RcvgSttlmPties>"
        "<DlvrgSttlmPties><Dpstry><Id><AnyBIC>DSTXTZTZ</AnyBIC></Id><PrcgId>260305ABC123A</PrcgId></Dpstry></DlvrgSttlmPties>"
        "</TxDtls>"
        "</SctiesSttlmTxStsAdvc>"
        "</Document>"
        "</RequestPayload>"
    )
