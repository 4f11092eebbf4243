from typing import Dict, List
from sqlalchemy import insert, select
from orcachat.common.utils import isoformat, now
from orcachat.schema.full_schema import Conversation, Turn, TurnRole


async def create_conversation(session,owner_id: int,title: str) -> int:
    stmt=insert(Conversation).values(owner_id=owner_id,title=title,created_at=now()).returning(Conversation.id)
    res=await session.execute(stmt)
    return res.scalar_one()


async def conversation_owner(session,conversation_id: int):
    stmt=select(Conversation.owner_id).where(Conversation.id==conversation_id)
    res=await session.execute(stmt)
    return res.scalar_one_or_none()


async def list_conversations(session,owner_id: int) -> List[Dict]:
    stmt=(
        select(Conversation.id,Conversation.title,Conversation.created_at)
        .where(Conversation.owner_id==owner_id)
        .order_by(Conversation.created_at.desc(),Conversation.id.desc())
    )
    res=await session.execute(stmt)
    return [{"id": r.id, "title": r.title, "created_at": isoformat(r.created_at)} for r in res.all()]


async def append_turn(session,conversation_id: int,role: TurnRole,content: str) -> int:
    stmt=(
        insert(Turn)
        .values(conversation_id=conversation_id,role=role.value,content=content,created_at=now())
        .returning(Turn.id)
    )
    res=await session.execute(stmt)
    return res.scalar_one()


async def list_turns(session,conversation_id: int) -> List[Dict[str, str]]:
    """Full history in creation order; the autoincrement id is the ordering key."""
    stmt=select(Turn.role,Turn.content).where(Turn.conversation_id==conversation_id).order_by(Turn.id)
    res=await session.execute(stmt)
    return [{"role": r.role, "content": r.content} for r in res.all()]
