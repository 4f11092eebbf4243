import hashlib
from typing import List
from sqlalchemy import delete, func, insert, select, text
from orcachat.db.utils import SQLITE_BEGIN_OPTION, is_postgres
from orcachat.schema.full_schema import SendAttempt, VerificationRequest


def advisory_lock_key(value: str) -> int:
    h = hashlib.sha256(value.encode()).digest()[:8]
    val = int.from_bytes(h, "big", signed=False)
    # convert to signed 64-bit
    if val > (1 << 63) - 1:
        val = val - (1 << 64)
    return val


async def lock_send_keys(session, destination: str, client_address: str):
    """
    Serialize concurrent admissions for the same destination or client address until the
    surrounding transaction ends. Keys are taken in sorted order so two requests never deadlock.
    On sqlite, which has no advisory locks, the transaction is begun IMMEDIATE instead, taking
    the database write lock before the counts are read. Must run before anything else in the
    transaction.
    """
    if not is_postgres(session.bind):
        await session.connection(execution_options={SQLITE_BEGIN_OPTION: "IMMEDIATE"})
        return
    keys = sorted({advisory_lock_key(f"otp:dest:{destination}"), advisory_lock_key(f"otp:ip:{client_address}")})
    for key in keys:
        await session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})


async def recent_send_times(session, destination: str, window_start: int) -> List[int]:
    stmt = (
        select(SendAttempt.ts)
        .where(SendAttempt.destination == destination, SendAttempt.ts > window_start)
        .order_by(SendAttempt.ts.desc())
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def count_recent_sends_from(session, client_address: str, window_start: int) -> int:
    stmt = (
        select(func.count(SendAttempt.id))
        .where(SendAttempt.client_address == client_address, SendAttempt.ts > window_start)
    )
    res = await session.execute(stmt)
    return int(res.scalar_one())


async def record_send_attempt(session, destination: str, client_address: str, ts: int):
    stmt = insert(SendAttempt).values(destination=destination, client_address=client_address, ts=ts)
    await session.execute(stmt)


async def replace_verification_request(session, destination: str, code: str, expires_at: int):
    await session.execute(delete(VerificationRequest).where(VerificationRequest.destination == destination))
    await session.execute(
        insert(VerificationRequest).values(destination=destination, code=code, expires_at=expires_at)
    )


async def consume_verification_request(session, destination: str, code: str, now_ms: int) -> bool:
    """Single-use consumption: the row disappears only when code matches and has not expired."""
    stmt = delete(VerificationRequest).where(
        VerificationRequest.destination == destination,
        VerificationRequest.code == code,
        VerificationRequest.expires_at >= now_ms,
    )
    res = await session.execute(stmt)
    return res.rowcount == 1
