"""
GSM 03.40 PDU codec for messages stored on the ICC

Builds the SMS-DELIVER / SMS-SUBMIT units a card write accepts, and parses
them back for the simulated card. Pure functions only.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from iccmirror.models.icc_message import Mailbox

# GSM 03.38 default alphabet; position == septet value, 0x1B is the escape
GSM7_BASIC = (
    "@£$¥èéùìòÇ\nØø\rÅåΔ_ΦΓΛΩΠΨΣΘΞ\x1bÆæßÉ !\"#¤%&'()*+,-./0123456789:;<=>?"
    "¡ABCDEFGHIJKLMNOPQRSTUVWXYZÄÖÑÜ§¿abcdefghijklmnopqrstuvwxyzäöñüà"
)
GSM7_ESCAPE = 0x1B
GSM7_EXTENSION = {
    "\x0c": 0x0A,
    "^": 0x14,
    "{": 0x28,
    "}": 0x29,
    "\\": 0x2F,
    "[": 0x3C,
    "~": 0x3D,
    "]": 0x3E,
    "|": 0x40,
    "€": 0x65,
}

_BASIC_INDEX = {ch: i for i, ch in enumerate(GSM7_BASIC) if i != GSM7_ESCAPE}
_EXTENSION_REVERSE = {v: k for k, v in GSM7_EXTENSION.items()}

MAX_SEPTETS = 160
MAX_UCS2_OCTETS = 140
MAX_ADDRESS_DIGITS = 20

DCS_GSM7 = 0x00
DCS_UCS2 = 0x08

TOA_INTERNATIONAL = 0x91
TOA_UNKNOWN = 0x81

MTI_DELIVER = 0x00
MTI_SUBMIT = 0x01

_DIALABLE = {"0": 0, "1": 1, "2": 2, "3": 3, "4": 4, "5": 5, "6": 6, "7": 7,
             "8": 8, "9": 9, "*": 0x0A, "#": 0x0B}
_DIALABLE_REVERSE = {v: k for k, v in _DIALABLE.items()}
_VISUAL_SEPARATORS = frozenset(" -().")


@dataclass(frozen=True)
class EncodedPdu:
    """Encoded message plus the service-center address octets, if any"""
    pdu: bytes
    sc_address: Optional[bytes] = None

    def to_raw(self) -> bytes:
        """Service-center octets followed by the PDU, as the card stores them"""
        sc = self.sc_address if self.sc_address is not None else zero_center_address()
        return sc + self.pdu


@dataclass(frozen=True)
class DecodedPdu:
    """Fields recovered from a stored PDU"""
    is_deliver: bool
    address: str
    body: str
    service_center: Optional[str] = None
    timestamp: Optional[Tuple[int, int, int, int, int, int]] = None
    status_report: bool = False


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

def _swap_digits(value: int) -> int:
    """Two decimal digits as one semi-octet: tens in the low nibble"""
    return (((value // 10) % 10) & 0x0F) | (((value % 10) & 0x0F) << 4)


def _unswap_digits(octet: int) -> int:
    return (octet & 0x0F) * 10 + (octet >> 4)


def encode_timestamp(when: datetime) -> bytes:
    """
    Encode a local time as the 7-octet service-centre time stamp

    Year mod 100, month, day, hour, minute, second, then a zero timezone
    octet. Each octet holds two swapped decimal digits.
    """
    if not isinstance(when, datetime):
        raise TypeError(f"timestamp must be a datetime, got {type(when).__name__}")
    fields = (when.year % 100, when.month, when.day, when.hour, when.minute, when.second, 0)
    return bytes(_swap_digits(value) for value in fields)


def decode_timestamp(data: bytes) -> Tuple[int, int, int, int, int, int]:
    """Inverse of :func:`encode_timestamp`, ignoring the timezone octet"""
    if len(data) < 6:
        raise ValueError(f"timestamp needs 6 octets, got {len(data)}")
    yy, month, day, hour, minute, second = (_unswap_digits(b) for b in data[:6])
    year = 2000 + yy if yy < 90 else 1900 + yy
    return year, month, day, hour, minute, second


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------

def _to_bcd(values: List[int]) -> bytes:
    out = bytearray()
    for i in range(0, len(values), 2):
        low = values[i]
        high = values[i + 1] if i + 1 < len(values) else 0x0F
        out.append(low | (high << 4))
    return bytes(out)


def _from_bcd(data: bytes, ndigits: Optional[int] = None) -> str:
    digits = []
    for octet in data:
        for nibble in (octet & 0x0F, octet >> 4):
            if nibble == 0x0F:
                continue
            digits.append(_DIALABLE_REVERSE.get(nibble, ""))
    text = "".join(digits)
    return text[:ndigits] if ndigits is not None else text


def _parse_number(address: Optional[str]) -> Optional[Tuple[int, List[int]]]:
    """Type-of-address and digit values, or None if the number is not dialable"""
    if not address:
        return None
    text = address.strip()
    international = text.startswith("+")
    if international:
        text = text[1:]
    values = []
    for ch in text:
        if ch in _VISUAL_SEPARATORS:
            continue
        if ch not in _DIALABLE:
            return None
        values.append(_DIALABLE[ch])
    if not values or len(values) > MAX_ADDRESS_DIGITS:
        return None
    return (TOA_INTERNATIONAL if international else TOA_UNKNOWN), values


def encode_address(address: Optional[str]) -> Optional[bytes]:
    """TP-OA / TP-DA field: digit count, type of address, semi-octets"""
    parsed = _parse_number(address)
    if parsed is None:
        return None
    toa, values = parsed
    return bytes([len(values), toa]) + _to_bcd(values)


def encode_service_center(address: Optional[str]) -> Optional[bytes]:
    """SMSC field: octet count (type of address included), type of address, semi-octets"""
    parsed = _parse_number(address)
    if parsed is None:
        return None
    toa, values = parsed
    bcd = _to_bcd(values)
    return bytes([len(bcd) + 1, toa]) + bcd


def zero_center_address() -> bytes:
    """Empty SMSC field; the card falls back to its default service center"""
    return b"\x00"


def _with_plus(toa: int, digits: str) -> str:
    return f"+{digits}" if (toa & 0x70) == 0x10 else digits


# ---------------------------------------------------------------------------
# User data
# ---------------------------------------------------------------------------

def to_septets(text: str) -> Optional[List[int]]:
    """Map text onto the default alphabet; None if any character is missing"""
    septets = []
    for ch in text:
        if ch in _BASIC_INDEX:
            septets.append(_BASIC_INDEX[ch])
        elif ch in GSM7_EXTENSION:
            septets.extend((GSM7_ESCAPE, GSM7_EXTENSION[ch]))
        else:
            return None
    return septets


def pack_septets(septets: List[int]) -> bytes:
    out = bytearray()
    acc = 0
    nbits = 0
    for septet in septets:
        acc |= (septet & 0x7F) << nbits
        nbits += 7
        while nbits >= 8:
            out.append(acc & 0xFF)
            acc >>= 8
            nbits -= 8
    if nbits:
        out.append(acc & 0xFF)
    return bytes(out)


def unpack_septets(data: bytes, count: int) -> List[int]:
    septets = []
    acc = 0
    nbits = 0
    for octet in data:
        acc |= octet << nbits
        nbits += 8
        while nbits >= 7 and len(septets) < count:
            septets.append(acc & 0x7F)
            acc >>= 7
            nbits -= 7
    if len(septets) < count:
        raise ValueError(f"user data holds {len(septets)} septets, header says {count}")
    return septets


def septets_to_text(septets: List[int]) -> str:
    chars = []
    escaped = False
    for septet in septets:
        if escaped:
            chars.append(_EXTENSION_REVERSE.get(septet, " "))
            escaped = False
        elif septet == GSM7_ESCAPE:
            escaped = True
        else:
            chars.append(GSM7_BASIC[septet])
    return "".join(chars)


def encode_user_data(body: str) -> Optional[Tuple[int, int, bytes]]:
    """(data coding scheme, TP-UDL, TP-UD) for a single-part message"""
    septets = to_septets(body)
    if septets is not None:
        if len(septets) > MAX_SEPTETS:
            return None
        return DCS_GSM7, len(septets), pack_septets(septets)
    data = body.encode("utf-16-be")
    if len(data) > MAX_UCS2_OCTETS:
        return None
    return DCS_UCS2, len(data), data


# ---------------------------------------------------------------------------
# Whole units
# ---------------------------------------------------------------------------

def encode_outgoing(
    mailbox: Mailbox,
    address: Optional[str],
    body: Optional[str],
    timestamp: Optional[datetime] = None,
    service_center: Optional[str] = None,
    status_report: bool = False,
) -> Optional[EncodedPdu]:
    """
    Encode a message for storage on the card

    Inbox messages become an SMS-DELIVER carrying ``timestamp`` as the
    service-centre time stamp. Everything else becomes an SMS-SUBMIT; when a
    timestamp is given it travels as an absolute validity period, otherwise
    the unit has no validity period (an unsent draft).

    Returns None when the address or body cannot be represented in a single
    PDU; the caller must not contact the hardware in that case.
    """
    address_field = encode_address(address)
    if address_field is None:
        return None
    user_data = encode_user_data(body or "")
    if user_data is None:
        return None
    dcs, udl, ud = user_data

    sc_address = None
    if service_center:
        sc_address = encode_service_center(service_center)
        if sc_address is None:
            return None

    if Mailbox(mailbox) == Mailbox.INBOX:
        first_octet = MTI_DELIVER | 0x04  # TP-MMS: no more messages
        if status_report:
            first_octet |= 0x20  # TP-SRI
        scts = encode_timestamp(timestamp if timestamp is not None else datetime.now())
        pdu = bytes([first_octet]) + address_field + bytes([0x00, dcs]) + scts + bytes([udl]) + ud
    else:
        first_octet = MTI_SUBMIT
        validity = b""
        if timestamp is not None:
            first_octet |= 0x18  # TP-VPF: absolute
            validity = encode_timestamp(timestamp)
        if status_report:
            first_octet |= 0x20  # TP-SRR
        pdu = (
            bytes([first_octet, 0x00]) + address_field + bytes([0x00, dcs])
            + validity + bytes([udl]) + ud
        )

    return EncodedPdu(pdu=pdu, sc_address=sc_address)


def _decode_address_field(raw: bytes, pos: int) -> Tuple[str, int]:
    ndigits = raw[pos]
    toa = raw[pos + 1]
    nbytes = (ndigits + 1) // 2
    digits = raw[pos + 2:pos + 2 + nbytes]
    if len(digits) < nbytes:
        raise IndexError("address truncated")
    return _with_plus(toa, _from_bcd(digits, ndigits)), pos + 2 + nbytes


def decode_stored_pdu(raw: bytes) -> DecodedPdu:
    """Parse ``SMSC octets + PDU`` as written by :meth:`EncodedPdu.to_raw`"""
    try:
        sc_len = raw[0]
        service_center = None
        if sc_len:
            service_center = _with_plus(raw[1], _from_bcd(raw[2:1 + sc_len]))
        pos = 1 + sc_len

        first_octet = raw[pos]
        pos += 1
        mti = first_octet & 0x03
        timestamp = None

        if mti == MTI_DELIVER:
            address, pos = _decode_address_field(raw, pos)
            dcs = raw[pos + 1]
            pos += 2
            timestamp = decode_timestamp(raw[pos:pos + 7])
            pos += 7
            status_report = bool(first_octet & 0x20)
        elif mti == MTI_SUBMIT:
            pos += 1  # TP-MR
            address, pos = _decode_address_field(raw, pos)
            dcs = raw[pos + 1]
            pos += 2
            vpf = (first_octet >> 3) & 0x03
            if vpf == 0x03:
                timestamp = decode_timestamp(raw[pos:pos + 7])
                pos += 7
            elif vpf == 0x01:
                pos += 7  # enhanced format, not a time stamp
            elif vpf == 0x02:
                pos += 1
            status_report = bool(first_octet & 0x20)
        else:
            raise ValueError(f"unsupported message type indicator {mti}")

        udl = raw[pos]
        ud = raw[pos + 1:]
    except IndexError as exc:
        raise ValueError("truncated PDU") from exc

    if (dcs & 0x0C) == DCS_UCS2:
        if len(ud) < udl:
            raise ValueError("truncated PDU")
        body = ud[:udl].decode("utf-16-be")
    else:
        body = septets_to_text(unpack_septets(ud, udl))

    return DecodedPdu(
        is_deliver=(mti == MTI_DELIVER),
        address=address,
        body=body,
        service_center=service_center,
        timestamp=timestamp,
        status_report=status_report,
    )
