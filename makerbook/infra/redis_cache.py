import json
from makerbook.infra.redis_client import get_redis


async def get_json(key: str):
    r = await get_redis()
    raw = await r.get(key)
    return json.loads(raw) if raw else None


async def set_json(key: str, value, ttl_sec: int):
    r = await get_redis()
    await r.set(key, json.dumps(value), ex=ttl_sec)
