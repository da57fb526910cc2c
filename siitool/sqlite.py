import json
import logging

from .values import Link

log = logging.getLogger(__name__)

INT64_MAX = (1 << 63) - 1

def quoted(name):
    return '"%s"' % name.replace('"', '""')

def _plain(value):
    if isinstance(value, Link):
        return str(value)
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    return value

def to_sql(value):
    if isinstance(value, Link):
        return str(value)
    if isinstance(value, tuple):
        return json.dumps(_plain(value))
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int) and value > INT64_MAX:
        # online_job_id and friends are u64 -1
        return value - (1 << 64)
    return value

def create_table(conn, definition):
    columns = [quoted("struct_id")] + [quoted(f.name) for f in definition.fields]
    conn.execute("CREATE TABLE IF NOT EXISTS %s (%s)" % (quoted(definition.name), ", ".join(columns)))

def insert_instance(conn, instance):
    columns = [quoted("struct_id")] + [quoted(k) for k in instance.fields]
    params = [str(instance.id)] + [to_sql(v) for v in instance.fields.values()]
    conn.execute("INSERT INTO %s (%s) VALUES (%s)" % (
        quoted(instance.struct_name), ", ".join(columns), ", ".join("?" * len(params))), params)

def copy_to_sqlite(document, conn):
    with conn:
        for definition in document.definitions.values():
            create_table(conn, definition)
        for instance in document:
            insert_instance(conn, instance)
    log.debug("copied %d instances into %d tables", len(document), len(document.definitions))

__all__ = ["copy_to_sqlite", "to_sql"]
