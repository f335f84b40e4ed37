from pathlib import Path
from warnings import warn
from pcr_core.errors import FormatError
from pcr_core.fields import read_u32
from pcr_core.header import read_header
from pcr_core.protocol import HEADER_LEN, RECORD_OVERHEAD, RECORD_PREFIX_LEN, SIZE_LEN, VERSION
from pcr_core.records import read_record, record_length
from .const import ERRORS

def _error(code: str, **detail) -> dict:
    return {"code": code, "message": ERRORS[code], **detail}

def _result(errors: list, stats: dict) -> dict:
    return {"status": "FAIL" if errors else "PASS", "error_count": len(errors), "errors": errors, "stats": stats}

def scan_forward(f, file_size: int) -> tuple[list[dict], list[dict]]:
    """Walk records from the header onwards using leading sizes only.

    Stops at the first record that cannot be trusted.
    """
    records, errors = [], []
    pos = HEADER_LEN
    expected = 0
    while pos < file_size:
        if file_size - pos < SIZE_LEN + RECORD_PREFIX_LEN:
            errors.append(_error("E_TORN_RECORD", offset=pos))
            break

        f.seek(pos)
        size = read_u32(f)
        if size < RECORD_OVERHEAD:
            errors.append(_error("E_RECORD", offset=pos, detail=f"size {size} below minimum"))
            break
        end = pos + record_length(size)
        if end > file_size:
            errors.append(_error("E_TORN_RECORD", offset=pos, size=size))
            break

        f.seek(end - SIZE_LEN)
        trailing = read_u32(f)
        if trailing != size:
            errors.append(_error("E_SIZE_MISMATCH", offset=pos, leading=size, trailing=trailing))
            break

        f.seek(pos)
        try:
            rec = read_record(f)
        except FormatError as e:
            errors.append(_error("E_RECORD", offset=pos, detail=str(e)))
            break

        if rec.index != expected:
            errors.append(_error("E_INDEX_DRIFT", offset=pos, expected=expected, found=rec.index))
        records.append({"offset": pos, "index": rec.index, "time": rec.time, "size": size})
        expected = rec.index + 1
        pos = end
    return records, errors

def scan_backward(f, file_size: int) -> list[int]:
    """Record offsets found by hopping over trailing sizes from the end."""
    offsets = []
    pos = file_size
    while pos - SIZE_LEN >= HEADER_LEN:
        f.seek(pos - SIZE_LEN)
        size = read_u32(f)
        if size == 0 or pos - record_length(size) < HEADER_LEN:
            break
        pos -= record_length(size)
        offsets.append(pos)
    return offsets

def verify_container(path: Path) -> dict:
    path = Path(path)
    errors = []
    stats = {"records": 0, "file_size": 0}

    if not path.is_file():
        errors.append({"code":"E_LAYOUT_MISSING","message":ERRORS["E_LAYOUT_MISSING"],"path":str(path)})
        return _result(errors, stats)

    file_size = path.stat().st_size
    stats["file_size"] = file_size

    with open(path, "rb") as f:
        try:
            header = read_header(f)
        except FormatError as e:
            errors.append(_error("E_HEADER", detail=str(e)))
            return _result(errors, stats)

        if header.version != VERSION:
            errors.append(_error("E_VERSION", found=header.version, supported=VERSION))

        records, scan_errors = scan_forward(f, file_size)
        errors.extend(scan_errors)
        stats["records"] = len(records)

        if header.frame_count != len(records):
            # Stale counts are reported, never repaired.
            warn(f"Header claims {header.frame_count} frames, {len(records)} found in {path}")
            errors.append(_error("E_FRAME_COUNT", header=header.frame_count, found=len(records)))

        if records and (header.start_time != records[0]["time"] or header.end_time != records[-1]["time"]):
            errors.append(_error(
                "E_TIME_RANGE",
                header=[header.start_time, header.end_time],
                found=[records[0]["time"], records[-1]["time"]],
            ))

        if not scan_errors:
            backward = scan_backward(f, file_size)
            forward = [r["offset"] for r in records]
            if backward[::-1] != forward:
                errors.append(_error("E_BACKWARD_WALK", forward=len(forward), backward=len(backward)))

    return _result(errors, stats)
