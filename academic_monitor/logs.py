import json, logging, time, uuid, datetime as dt
from typing import Optional
from .db import get_conn

logger = logging.getLogger("academic_monitor.oplog")

# Indonesia Western Time (WIB)
_WIB = dt.timezone(dt.timedelta(hours=7))

_JSON_COLS = ("before_json", "after_json", "payload_json")

DDL = """
CREATE TABLE IF NOT EXISTS operation_log (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  user TEXT NOT NULL,
  action TEXT NOT NULL,
  entity_type TEXT,
  entity_id TEXT,
  request_id TEXT,
  before_json TEXT,
  after_json TEXT,
  payload_json TEXT,
  result TEXT,
  err_msg TEXT,
  latency_ms INTEGER
);
CREATE INDEX IF NOT EXISTS idx_log_ts ON operation_log(ts);
CREATE INDEX IF NOT EXISTS idx_log_action ON operation_log(action);
CREATE INDEX IF NOT EXISTS idx_log_entity ON operation_log(entity_type, entity_id);
"""

def ensure_log_schema():
    with get_conn() as conn:
        conn.executescript(DDL)

def _dump(obj) -> Optional[str]:
    # rows and numpy scalars fall back to str
    return json.dumps(obj, ensure_ascii=False, default=str) if obj is not None else None

class LogContext:
    """One audit row per operation: who, what entity, before/after state, outcome, latency."""

    def __init__(self, action: str, user: str = "system"):
        self.action = action
        self.user = user
        self.request_id = str(uuid.uuid4())
        self.start = time.perf_counter()
        self.before = None
        self.after = None
        self.payload = None
        self.entity_type = None
        self.entity_id = None

    def set_user(self, user: str): self.user = user

    def set_entity(self, etype: str, eid: str):
        self.entity_type = etype
        self.entity_id = eid

    def set_before(self, obj): self.before = obj
    def set_after(self, obj): self.after = obj
    def set_payload(self, obj): self.payload = obj

    def write(self, result: str = "OK", err: Optional[str] = None):
        elapsed_ms = int((time.perf_counter() - self.start) * 1000)
        if result != "OK":
            logger.warning("%s by %s failed (%s %s): %s", self.action, self.user, self.entity_type, self.entity_id, err)
        rec = {
            "ts": dt.datetime.now(_WIB).isoformat(),
            "user": self.user,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "request_id": self.request_id,
            "before_json": _dump(self.before),
            "after_json": _dump(self.after),
            "payload_json": _dump(self.payload),
            "result": result,
            "err_msg": err,
            "latency_ms": elapsed_ms,
        }
        with get_conn() as conn:
            conn.execute(
                """INSERT INTO operation_log
                (ts,user,action,entity_type,entity_id,request_id,before_json,after_json,payload_json,result,err_msg,latency_ms)
                VALUES(:ts,:user,:action,:entity_type,:entity_id,:request_id,:before_json,:after_json,:payload_json,:result,:err_msg,:latency_ms)""",
                rec
            )

def _decode(row) -> dict:
    out = dict(row)
    for col in _JSON_COLS:
        raw = out.pop(col, None)
        key = col[:-len("_json")]
        try:
            out[key] = json.loads(raw) if raw else None
        except ValueError:
            out[key] = raw
    return out

def search_logs(q: str|None, action: str|None, ts_from: str|None, ts_to: str|None, page: int, size: int,
                user: str|None = None, entity_id: str|None = None, result: str|None = None):
    """
    Newest first. `q` matches payload/before/after JSON and the error text;
    `entity_id` narrows to one student/course/user. JSON columns come back decoded
    as before/after/payload.
    """
    where = []
    params = {}
    if q:
        where.append("(payload_json LIKE :q OR before_json LIKE :q OR after_json LIKE :q OR err_msg LIKE :q)")
        params["q"] = f"%{q}%"
    if action:
        where.append("action = :action")
        params["action"] = action
    if user:
        where.append("user = :user")
        params["user"] = user
    if entity_id:
        where.append("entity_id = :entity_id")
        params["entity_id"] = entity_id
    if result:
        where.append("result = :result")
        params["result"] = result.upper()
    if ts_from:
        where.append("ts >= :from")
        params["from"] = ts_from
    if ts_to:
        where.append("ts <= :to")
        params["to"] = ts_to
    wh = " WHERE " + " AND ".join(where) if where else ""
    sql = f"SELECT * FROM operation_log{wh} ORDER BY ts DESC, id DESC LIMIT :limit OFFSET :offset"
    count_sql = f"SELECT COUNT(1) AS cnt FROM operation_log{wh}"
    with get_conn() as conn:
        total = conn.execute(count_sql, params).fetchone()["cnt"]
        rows = conn.execute(sql, {**params, "limit": size, "offset": (page-1)*size}).fetchall()
        return total, [_decode(r) for r in rows]
